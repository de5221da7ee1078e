"""Shared fixtures: an in-memory DuckDB with the partition catalog and seeded tables."""

import pytest

from partition_catalog.partition_scheme import PartitionSchemeManager
from partition_lifecycle.resources import DuckDBResource

ORDERS_DDL = """
    CREATE TABLE {name} (
        id BIGINT PRIMARY KEY,
        order_date DATE,
        amount DOUBLE
    )
"""


@pytest.fixture
def duckdb_resource():
    """In-memory DuckDB resource with the catalog tables created."""
    resource = DuckDBResource(database_path=":memory:")
    resource.ensure_catalog()
    yield resource
    resource.close()


@pytest.fixture
def scheme(duckdb_resource):
    return PartitionSchemeManager(duckdb_resource)


def create_orders_table(duckdb_resource, name="orders"):
    """Create an orders-shaped table (id, order_date, amount)."""
    duckdb_resource.execute_command(ORDERS_DDL.format(name=name))
    return name


def insert_orders(duckdb_resource, rows, table="orders"):
    """Insert (id, order_date, amount) tuples."""
    for order_id, order_date, amount in rows:
        duckdb_resource.execute_command(
            f"INSERT INTO {table} VALUES ({{id:Int64}}, {{order_date:Date}}, {{amount:Float64}})",
            parameters={"id": order_id, "order_date": order_date, "amount": amount},
        )


@pytest.fixture
def orders(duckdb_resource, scheme):
    """Orders table partitioned on order_date with boundaries 2020-12-31 and 2021-12-31."""
    create_orders_table(duckdb_resource)
    scheme.create_partition_function("orders", "order_date", ["2020-12-31", "2021-12-31"])
    return "orders"

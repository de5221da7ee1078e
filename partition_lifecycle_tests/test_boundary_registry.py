"""Tests for the partition boundary registry."""

from datetime import date

import pytest

from partition_catalog.boundary_registry import PartitionBoundaryRegistry
from partition_lifecycle.utils.exceptions import NotFoundError


def test_list_boundaries_ascending(duckdb_resource, orders):
    """Test that boundaries come back ascending and typed as dates."""
    registry = PartitionBoundaryRegistry(duckdb_resource)
    assert registry.boundary_values(orders) == [date(2020, 12, 31), date(2021, 12, 31)]
    assert [str(b) for b in registry.list_boundaries(orders)] == ["2020-12-31", "2021-12-31"]


def test_partition_function(duckdb_resource, orders):
    """Test that the partition function records the column and its type."""
    function = PartitionBoundaryRegistry(duckdb_resource).get_partition_function(orders)
    assert function.partition_column == "order_date"
    assert function.boundary_type == "DATE"
    assert function.range_type == "RIGHT"
    assert function.is_temporal


def test_unpartitioned_table_raises(duckdb_resource):
    """Test that reading boundaries of an unregistered table raises NotFoundError."""
    registry = PartitionBoundaryRegistry(duckdb_resource)
    assert not registry.is_partitioned("missing")
    with pytest.raises(NotFoundError):
        registry.list_boundaries("missing")


def test_boundary_exists_and_max(duckdb_resource, orders):
    """Test membership and maximum lookups."""
    registry = PartitionBoundaryRegistry(duckdb_resource)
    assert registry.boundary_exists(orders, "2021-12-31")
    assert not registry.boundary_exists(orders, date(2022, 12, 31))
    assert registry.max_boundary(orders).value == date(2021, 12, 31)


def test_partition_ranges(duckdb_resource, orders):
    """Test that n boundaries give n + 1 half-open ranges."""
    ranges = PartitionBoundaryRegistry(duckdb_resource).partition_ranges(orders)
    assert [(r.ordinal, r.lower_bound, r.upper_bound) for r in ranges] == [
        (1, None, date(2020, 12, 31)),
        (2, date(2020, 12, 31), date(2021, 12, 31)),
        (3, date(2021, 12, 31), None),
    ]
    assert ranges[1].contains(date(2021, 6, 1))
    assert not ranges[1].contains(date(2021, 12, 31))


def test_partition_number_for_value_range_right(duckdb_resource, orders):
    """Test that a value equal to a boundary belongs to the partition on its right."""
    registry = PartitionBoundaryRegistry(duckdb_resource)
    assert registry.partition_number_for_value(orders, "2020-06-01") == 1
    assert registry.partition_number_for_value(orders, "2020-12-31") == 2
    assert registry.partition_number_for_value(orders, "2021-12-30") == 2
    assert registry.partition_number_for_value(orders, "2022-01-01") == 3
    assert registry.partition_number_for_value(orders, None) == 1


def test_list_partitioned_tables_and_describe(duckdb_resource, orders):
    """Test listing registered tables and the log rendering of boundaries."""
    registry = PartitionBoundaryRegistry(duckdb_resource)
    assert registry.list_partitioned_tables() == ["orders"]
    assert registry.describe(orders) == "2020-12-31, 2021-12-31"

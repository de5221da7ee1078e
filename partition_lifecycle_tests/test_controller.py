"""Tests for the partition lifecycle controller."""

from datetime import date, datetime

import pytest
from conftest import create_orders_table, insert_orders

from partition_catalog.leases import LeaseManager
from partition_catalog.partition_scheme import PartitionSchemeManager
from partition_lifecycle.lifecycle.controller import PartitionLifecycleController
from partition_lifecycle.utils.datetime_utils import UTC
from partition_lifecycle.utils.exceptions import ConflictError, NotFoundError

JUNE_FIRST_2022 = datetime(2022, 6, 1, 9, 30, tzinfo=UTC)


def test_ensure_boundary_ahead_adds_one_year(duckdb_resource, orders):
    """Test that a table with no boundary ahead of now gets B_max + 1 year."""
    controller = PartitionLifecycleController(duckdb_resource)

    result = controller.ensure_boundary_ahead(orders, "1 year", now=JUNE_FIRST_2022)

    assert result.added_boundary == date(2022, 12, 31)
    assert result.boundaries_before == [date(2020, 12, 31), date(2021, 12, 31)]
    assert result.boundaries_after == [date(2020, 12, 31), date(2021, 12, 31), date(2022, 12, 31)]
    assert result.rows_in_split_range == 0
    assert not result.behind_schedule
    assert not result.is_noop


def test_ensure_boundary_ahead_is_idempotent(duckdb_resource, orders):
    """Test that a second call within the same period is a no-op."""
    controller = PartitionLifecycleController(duckdb_resource)
    controller.ensure_boundary_ahead(orders, "1 year", now=JUNE_FIRST_2022)

    second = controller.ensure_boundary_ahead(orders, "1 year", now=JUNE_FIRST_2022)

    assert second.is_noop
    assert second.boundaries_after == second.boundaries_before
    assert len(controller.registry.boundary_values(orders)) == 3


def test_ensure_boundary_ahead_uses_clock(duckdb_resource, orders):
    """Test that the controller clock is used when no time is passed."""
    controller = PartitionLifecycleController(duckdb_resource, clock=lambda: JUNE_FIRST_2022)
    assert controller.ensure_boundary_ahead(orders, "1 year").added_boundary == date(2022, 12, 31)


def test_ensure_boundary_ahead_behind_schedule(duckdb_resource, scheme):
    """Test that one boundary is added per call even when several are missing."""
    create_orders_table(duckdb_resource)
    scheme.create_partition_function("orders", "order_date", ["2020-12-31"])
    controller = PartitionLifecycleController(duckdb_resource)

    first = controller.ensure_boundary_ahead("orders", "1 year", now=JUNE_FIRST_2022)
    second = controller.ensure_boundary_ahead("orders", "1 year", now=JUNE_FIRST_2022)

    assert first.added_boundary == date(2021, 12, 31)
    assert first.behind_schedule
    assert second.added_boundary == date(2022, 12, 31)
    assert not second.behind_schedule


def test_ensure_boundary_ahead_reports_rows_in_split_range(duckdb_resource, orders):
    """Test that rows already past the new boundary are reported."""
    insert_orders(duckdb_resource, [(1, date(2023, 1, 15), 1.0)])
    controller = PartitionLifecycleController(duckdb_resource)

    result = controller.ensure_boundary_ahead(orders, "1 year", now=JUNE_FIRST_2022)

    assert result.rows_in_split_range == 1


def test_ensure_boundary_ahead_month_end(duckdb_resource, scheme):
    """Test that monthly boundaries stay on month ends."""
    create_orders_table(duckdb_resource)
    scheme.create_partition_function("orders", "order_date", ["2022-01-31"])
    controller = PartitionLifecycleController(duckdb_resource)

    feb = controller.ensure_boundary_ahead("orders", "1 month", now=date(2022, 2, 10))
    mar = controller.ensure_boundary_ahead("orders", "1 month", now=date(2022, 3, 1))

    assert feb.added_boundary == date(2022, 2, 28)
    assert mar.added_boundary == date(2022, 3, 31)


def test_ensure_boundary_ahead_timestamp(duckdb_resource, scheme):
    """Test advancing a TIMESTAMP partitioned table."""
    duckdb_resource.execute_command("CREATE TABLE events (id BIGINT, created_at TIMESTAMP)")
    scheme.create_partition_function("events", "created_at", ["2022-01-01 00:00:00"])
    controller = PartitionLifecycleController(duckdb_resource)

    result = controller.ensure_boundary_ahead(
        "events", "1 month", now=datetime(2022, 1, 20, tzinfo=UTC)
    )

    assert result.added_boundary == datetime(2022, 2, 1)
    assert not result.behind_schedule


def test_ensure_boundary_ahead_integer_keys(duckdb_resource, scheme):
    """Test that integer partitioned tables advance past the highest key."""
    duckdb_resource.execute_command("CREATE TABLE ledger (id BIGINT, note VARCHAR)")
    duckdb_resource.execute_command("INSERT INTO ledger SELECT range, 'x' FROM range(1, 1501)")
    scheme.create_partition_function("ledger", "id", [1000])
    controller = PartitionLifecycleController(duckdb_resource)

    first = controller.ensure_boundary_ahead("ledger", "1000 steps")
    second = controller.ensure_boundary_ahead("ledger", "1000 steps")

    assert first.added_boundary == 2000
    assert first.rows_in_split_range == 0
    assert second.is_noop


def test_ensure_boundary_ahead_requires_partitioned_table(duckdb_resource):
    """Test that unknown tables raise NotFoundError."""
    controller = PartitionLifecycleController(duckdb_resource)
    with pytest.raises(NotFoundError):
        controller.ensure_boundary_ahead("missing", "1 year", now=JUNE_FIRST_2022)


def test_ensure_boundary_ahead_requires_a_boundary(duckdb_resource, scheme):
    """Test that a partition function without boundaries cannot be advanced."""
    create_orders_table(duckdb_resource)
    scheme.create_partition_function("orders", "order_date")
    controller = PartitionLifecycleController(duckdb_resource)

    with pytest.raises(NotFoundError):
        controller.ensure_boundary_ahead("orders", "1 year", now=JUNE_FIRST_2022)
    assert LeaseManager(duckdb_resource).current_holder(controller.lease_name("orders")) is None


def test_ensure_boundary_ahead_lease_held(duckdb_resource, orders):
    """Test that a concurrent controller run is refused with the known boundaries."""
    leases = LeaseManager(duckdb_resource)
    controller = PartitionLifecycleController(duckdb_resource, leases=leases)
    leases.acquire(controller.lease_name(orders), "other-controller")

    with pytest.raises(ConflictError) as exc_info:
        controller.ensure_boundary_ahead(orders, "1 year", now=JUNE_FIRST_2022)

    assert exc_info.value.boundaries == [date(2020, 12, 31), date(2021, 12, 31)]
    assert len(controller.registry.boundary_values(orders)) == 2
    assert leases.current_holder(controller.lease_name(orders)) == "other-controller"


def test_ensure_boundary_ahead_releases_lease(duckdb_resource, orders):
    """Test that the lease is released after the call."""
    controller = PartitionLifecycleController(duckdb_resource)
    controller.ensure_boundary_ahead(orders, "1 year", now=JUNE_FIRST_2022, holder="run-1")
    assert controller.leases.current_holder(controller.lease_name(orders)) is None


class RacingSchemeManager(PartitionSchemeManager):
    """Scheme manager that lets another writer split first."""

    def split_range(self, table, value, expected_max=None):
        super().split_range(table, date(2022, 6, 30))
        return super().split_range(table, value, expected_max=expected_max)


def test_ensure_boundary_ahead_concurrent_split(duckdb_resource, orders):
    """Test that a boundary added concurrently surfaces as ConflictError."""
    controller = PartitionLifecycleController(
        duckdb_resource, scheme=RacingSchemeManager(duckdb_resource)
    )

    with pytest.raises(ConflictError) as exc_info:
        controller.ensure_boundary_ahead(orders, "1 year", now=JUNE_FIRST_2022)

    assert exc_info.value.boundaries[-1] == date(2022, 6, 30)
    assert date(2022, 12, 31) not in controller.registry.boundary_values(orders)

"""Tests for catalog leases."""

from datetime import datetime, timedelta

import pytest

from partition_catalog.leases import LeaseManager
from partition_lifecycle.utils.exceptions import ConflictError

T0 = datetime(2024, 1, 1, 12, 0, 0)


def test_acquire_and_release(duckdb_resource):
    """Test that a lease is visible while held and gone after release."""
    leases = LeaseManager(duckdb_resource, ttl_seconds=60, clock=lambda: T0)
    leases.acquire("partition-controller:orders", "a")
    assert leases.current_holder("partition-controller:orders") == "a"

    leases.release("partition-controller:orders", "a")
    assert leases.current_holder("partition-controller:orders") is None


def test_second_holder_is_refused(duckdb_resource):
    """Test that an unexpired lease blocks other holders."""
    leases = LeaseManager(duckdb_resource, ttl_seconds=60, clock=lambda: T0)
    leases.acquire("partition-controller:orders", "a")

    with pytest.raises(ConflictError):
        leases.acquire("partition-controller:orders", "b")
    assert leases.current_holder("partition-controller:orders") == "a"


def test_release_by_other_holder_is_ignored(duckdb_resource):
    """Test that only the holder can release its lease."""
    leases = LeaseManager(duckdb_resource, ttl_seconds=60, clock=lambda: T0)
    leases.acquire("partition-controller:orders", "a")
    leases.release("partition-controller:orders", "b")
    assert leases.current_holder("partition-controller:orders") == "a"


def test_expired_lease_can_be_taken_over(duckdb_resource):
    """Test that a crashed holder blocks the resource only until its lease expires."""
    LeaseManager(duckdb_resource, ttl_seconds=60, clock=lambda: T0).acquire("job", "crashed")
    later = LeaseManager(duckdb_resource, ttl_seconds=60, clock=lambda: T0 + timedelta(seconds=61))

    assert later.current_holder("job") is None
    later.acquire("job", "b")
    assert later.current_holder("job") == "b"


def test_hold_context_manager(duckdb_resource):
    """Test that hold() releases the lease even when the block raises."""
    leases = LeaseManager(duckdb_resource, ttl_seconds=60, clock=lambda: T0)

    with pytest.raises(RuntimeError):
        with leases.hold("job") as holder:
            assert leases.current_holder("job") == holder
            raise RuntimeError("boom")

    assert leases.current_holder("job") is None


def test_independent_resources(duckdb_resource):
    """Test that leases on different resources do not interfere."""
    leases = LeaseManager(duckdb_resource, ttl_seconds=60, clock=lambda: T0)
    leases.acquire("partition-controller:orders", "a")
    leases.acquire("partition-controller:events", "b")
    assert leases.current_holder("partition-controller:events") == "b"

"""Advisory leases giving one holder at a time exclusive use of a named resource."""

import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Callable, Iterator, Optional

import duckdb
from dagster import get_dagster_logger

from partition_catalog import ddl
from partition_catalog.utils import query_to_dict
from partition_lifecycle.resources.database_protocol import PartitionedDatabaseResource
from partition_lifecycle.utils.constants import DEFAULT_LEASE_TTL_SECONDS
from partition_lifecycle.utils.datetime_utils import to_naive_utc, utc_now
from partition_lifecycle.utils.exceptions import ConflictError

logger = get_dagster_logger()


class LeaseManager:
    """Manager for time-bounded advisory leases stored in the catalog.

    An expired lease is treated as released, so a crashed holder blocks the
    resource for at most ``ttl_seconds``.
    """

    def __init__(
        self,
        database: PartitionedDatabaseResource,
        ttl_seconds: int = DEFAULT_LEASE_TTL_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.database = database
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    def _now(self) -> datetime:
        return to_naive_utc(self.clock())

    def current_holder(self, resource_name: str) -> Optional[str]:
        """Return the holder of an unexpired lease, or None."""
        row = query_to_dict(
            self.database.execute_query(ddl.GET_LEASE, parameters={"resource_name": resource_name})
        )
        if row is None or row["expires_at"] <= self._now():
            return None
        return row["holder"]

    def acquire(self, resource_name: str, holder: str) -> None:
        """Acquire a lease.

        Raises:
            ConflictError: If another holder has an unexpired lease
        """
        now = self._now()
        # Expired leases are cleared in their own statement; DuckDB rejects
        # re-inserting a key deleted earlier in the same transaction.
        self.database.execute_command(
            ddl.DELETE_EXPIRED_LEASE,
            parameters={"resource_name": resource_name, "now": now},
        )
        try:
            self.database.execute_command(
                ddl.INSERT_LEASE,
                parameters={
                    "resource_name": resource_name,
                    "holder": holder,
                    "now": now,
                    "expires_at": now + timedelta(seconds=self.ttl_seconds),
                },
            )
        except (duckdb.ConstraintException, duckdb.TransactionException) as e:
            raise ConflictError(
                f"Lease '{resource_name}' is held by {self.current_holder(resource_name) or 'another holder'}"
            ) from e
        logger.debug(f"Lease {resource_name} acquired by {holder}")

    def release(self, resource_name: str, holder: str) -> None:
        """Release a lease held by ``holder`` (no-op if it is not the holder)."""
        self.database.execute_command(
            ddl.RELEASE_LEASE, parameters={"resource_name": resource_name, "holder": holder}
        )
        logger.debug(f"Lease {resource_name} released by {holder}")

    @contextmanager
    def hold(self, resource_name: str, holder: Optional[str] = None) -> Iterator[str]:
        """Context manager that acquires a lease and releases it on exit.

        Yields:
            The holder id used for the lease
        """
        holder = holder or f"holder-{uuid.uuid4().hex}"
        self.acquire(resource_name, holder)
        try:
            yield holder
        finally:
            self.release(resource_name, holder)

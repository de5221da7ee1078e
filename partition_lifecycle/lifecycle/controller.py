"""Partition lifecycle controller: keeps an empty partition ahead of incoming data.

The controller runs on a schedule rather than on data arrival. Each call
checks whether a boundary already lies ahead of the current moment and, if
not, splits the tail partition one lead interval past the newest boundary.
Because the new range lies in the future, the split lands on an empty (or
nearly empty) tail partition.
"""

import uuid
from datetime import datetime
from typing import Any, Callable, List, Optional, Union

from dagster import get_dagster_logger

from partition_catalog.boundary_registry import PartitionBoundaryRegistry
from partition_catalog.leases import LeaseManager
from partition_catalog.models import BoundaryAdvanceResult, PartitionFunction
from partition_catalog.partition_scheme import PartitionSchemeManager
from partition_catalog.utils import format_key_value, query_scalar
from partition_lifecycle.lifecycle.periods import Period, advance
from partition_lifecycle.resources.database_protocol import PartitionedDatabaseResource
from partition_lifecycle.resources.duckdb_resource import quote_identifier
from partition_lifecycle.utils.constants import CONTROLLER_LEASE_PREFIX
from partition_lifecycle.utils.datetime_utils import coerce_boundary_value, utc_now
from partition_lifecycle.utils.exceptions import ConflictError, NotFoundError

logger = get_dagster_logger()


class PartitionLifecycleController:
    """Decides when a new boundary is needed and issues the split.

    At most one controller call runs per table at a time; exclusion is a
    catalog lease named ``partition-controller:<table>``. A held lease or a
    concurrent boundary change surfaces as ConflictError and is never retried
    here; the caller re-reads boundaries and decides.
    """

    def __init__(
        self,
        database: PartitionedDatabaseResource,
        registry: Optional[PartitionBoundaryRegistry] = None,
        scheme: Optional[PartitionSchemeManager] = None,
        leases: Optional[LeaseManager] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.database = database
        self.registry = registry or PartitionBoundaryRegistry(database)
        self.scheme = scheme or PartitionSchemeManager(database, self.registry)
        self.leases = leases or LeaseManager(database)
        self.clock = clock

    @staticmethod
    def lease_name(table: str) -> str:
        return f"{CONTROLLER_LEASE_PREFIX}:{table}"

    def _known_boundaries(self, table: str) -> List[Any]:
        try:
            return self.registry.boundary_values(table)
        except NotFoundError:
            return []

    def _reference_point(self, function: PartitionFunction, now: Any) -> Any:
        """Current position in the partition column's domain.

        Temporal columns use the clock (dates compare against today); integer
        columns use ``now`` when given, else the highest key in the table.
        """
        if function.is_temporal:
            return coerce_boundary_value(now if now is not None else self.clock(), function.boundary_type)
        if now is not None:
            return coerce_boundary_value(now, function.boundary_type)
        column = quote_identifier(function.partition_column)
        table = quote_identifier(function.table_name)
        return query_scalar(self.database.execute_query(f"SELECT max({column}) FROM {table}"))

    def ensure_boundary_ahead(
        self,
        table: str,
        lead_interval: Union[str, Period],
        now: Any = None,
        holder: Optional[str] = None,
    ) -> BoundaryAdvanceResult:
        """Make sure a boundary exists ahead of the current moment.

        If the newest boundary is already ahead of ``now`` the call is a no-op,
        so repeated calls within one lead period add exactly one boundary.
        Otherwise the boundary ``B_max + lead_interval`` is split in.

        Args:
            table: Partitioned table name
            lead_interval: Period such as ``"1 year"`` (or ``"1000 steps"`` for integer keys)
            now: Current moment; defaults to the controller clock
            holder: Lease holder id; defaults to a random id

        Returns:
            BoundaryAdvanceResult describing the boundaries before and after

        Raises:
            NotFoundError: If the table is not partitioned or has no boundaries
            ConflictError: If another controller holds the lease or the
                boundaries changed during the call
        """
        period = Period.parse(lead_interval)
        lease_name = self.lease_name(table)
        holder = holder or f"controller-{uuid.uuid4().hex}"

        try:
            self.leases.acquire(lease_name, holder)
        except ConflictError as e:
            logger.error(f"Partition controller for {table} is already running: {e}")
            raise ConflictError(str(e), boundaries=self._known_boundaries(table)) from e

        try:
            return self._advance(table, period, now)
        finally:
            self.leases.release(lease_name, holder)

    def _advance(self, table: str, period: Period, now: Any) -> BoundaryAdvanceResult:
        function = self.registry.get_partition_function(table)
        before = self.registry.boundary_values(table)
        if not before:
            raise NotFoundError(
                f"Table '{table}' has no partition boundaries to advance from; "
                "create the partition function with at least one boundary"
            )

        b_max = before[-1]
        reference = self._reference_point(function, now)

        if reference is None or b_max > reference:
            logger.info(
                f"{table}: boundary {format_key_value(b_max)} is already ahead of "
                f"{format_key_value(reference)}; nothing to do"
            )
            return BoundaryAdvanceResult(
                table_name=table, boundaries_before=before, boundaries_after=before
            )

        b_next = advance(b_max, period)
        rows_moved = self.scheme.split_range(table, b_next, expected_max=b_max)
        after = self.registry.boundary_values(table)
        behind = b_next <= reference

        if rows_moved:
            logger.warning(
                f"{table}: split at {format_key_value(b_next)} moved {rows_moved} existing rows; "
                "run the maintenance schedule further ahead of incoming data"
            )
        if behind:
            logger.warning(
                f"{table}: new boundary {format_key_value(b_next)} is still not ahead of "
                f"{format_key_value(reference)}; the next run will advance again"
            )
        logger.info(f"{table}: added boundary {format_key_value(b_next)} (lead {period})")

        return BoundaryAdvanceResult(
            table_name=table,
            boundaries_before=before,
            boundaries_after=after,
            added_boundary=b_next,
            rows_in_split_range=rows_moved,
            behind_schedule=behind,
        )

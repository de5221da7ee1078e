"""Partition scheme management: create, split and switch out range partitions.

DuckDB has no native range partitioning, so a table is partitioned by
registering a partition function (column + boundary type) and its boundaries
in the catalog. Splits are catalog inserts; a switch-out copies the range to
the archive table and deletes it from the source in one transaction, so either
both tables change or neither does.
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple

import duckdb
from dagster import get_dagster_logger

from partition_catalog import ddl
from partition_catalog.boundary_registry import PartitionBoundaryRegistry
from partition_catalog.models import PartitionFunction, PartitionRange, SwitchOutResult
from partition_catalog.utils import (
    column_type,
    format_key_value,
    query_scalar,
    quote_columns,
    require_table,
)
from partition_lifecycle.resources.database_protocol import PartitionedDatabaseResource
from partition_lifecycle.resources.duckdb_resource import quote_identifier
from partition_lifecycle.utils.constants import RANGE_TYPE_RIGHT, SUPPORTED_BOUNDARY_TYPES
from partition_lifecycle.utils.datetime_utils import coerce_boundary_value
from partition_lifecycle.utils.exceptions import (
    BoundaryOrderError,
    ConflictError,
    NotFoundError,
    SchemaMismatchError,
)

logger = get_dagster_logger()

_UNSET = object()


def build_range_predicate(
    function: PartitionFunction, partition: PartitionRange
) -> Tuple[str, Dict[str, Any]]:
    """Build a WHERE predicate selecting the rows of one partition.

    NULL partition keys belong to the first partition.

    Returns:
        Tuple of (predicate_sql, parameters)
    """
    column = quote_identifier(function.partition_column)
    cast = function.boundary_type
    conditions = []
    params: Dict[str, Any] = {}

    if partition.lower_bound is not None:
        conditions.append(f"{column} >= CAST({{range_lower:String}} AS {cast})")
        params["range_lower"] = format_key_value(partition.lower_bound)
    if partition.upper_bound is not None:
        conditions.append(f"{column} < CAST({{range_upper:String}} AS {cast})")
        params["range_upper"] = format_key_value(partition.upper_bound)

    predicate = " AND ".join(conditions) if conditions else "TRUE"
    if partition.lower_bound is None:
        predicate = f"({predicate} OR {column} IS NULL)"
    return predicate, params


class PartitionSchemeManager:
    """Manager for partition function lifecycle operations on a storage engine."""

    def __init__(
        self,
        database: PartitionedDatabaseResource,
        registry: Optional[PartitionBoundaryRegistry] = None,
    ):
        """Initialize with a database resource and an optional shared registry."""
        self.database = database
        self.registry = registry or PartitionBoundaryRegistry(database)

    def create_partition_function(
        self, table: str, partition_column: str, boundaries: Iterable[Any] = ()
    ) -> PartitionFunction:
        """Register an existing table as range partitioned on a column.

        Args:
            table: Existing table name
            partition_column: Column holding the partitioning key
            boundaries: Initial boundary values, strictly increasing

        Returns:
            The registered PartitionFunction

        Raises:
            NotFoundError: If the table or column does not exist
            ConflictError: If the table is already partitioned
            BoundaryOrderError: If the boundaries are not strictly increasing
            ValueError: If the column type cannot be range partitioned
        """
        columns = require_table(self.database, table)
        boundary_type = column_type(columns, partition_column, table)
        if boundary_type not in SUPPORTED_BOUNDARY_TYPES:
            raise ValueError(
                f"Column '{partition_column}' has type {boundary_type}; "
                f"supported partition column types are {', '.join(SUPPORTED_BOUNDARY_TYPES)}"
            )

        values = [coerce_boundary_value(b, boundary_type) for b in boundaries]
        for previous, current in zip(values, values[1:]):
            if current <= previous:
                raise BoundaryOrderError(
                    f"Boundaries for '{table}' must be strictly increasing: "
                    f"{format_key_value(current)} follows {format_key_value(previous)}",
                    boundaries=values,
                )

        with self.database.transaction():
            if self.registry.is_partitioned(table):
                raise ConflictError(
                    f"Table '{table}' is already partitioned",
                    boundaries=self.registry.boundary_values(table),
                )
            self.database.execute_command(
                ddl.INSERT_PARTITION_FUNCTION,
                parameters={
                    "table": table,
                    "column": partition_column,
                    "boundary_type": boundary_type,
                    "range_type": RANGE_TYPE_RIGHT,
                },
            )
            for value in values:
                self.database.execute_command(
                    ddl.INSERT_BOUNDARY,
                    parameters={"table": table, "boundary_value": format_key_value(value)},
                )

        logger.info(
            f"Created partition function on {table}.{partition_column} "
            f"({boundary_type}) with {len(values)} boundaries"
        )
        return self.registry.get_partition_function(table)

    def drop_partition_function(self, table: str) -> None:
        """Unregister a partitioned table (catalog only, data is untouched).

        Raises:
            NotFoundError: If the table is not partitioned
        """
        self.registry.get_partition_function(table)
        with self.database.transaction():
            self.database.execute_command(ddl.DELETE_PARTITION_BOUNDARIES, parameters={"table": table})
            self.database.execute_command(ddl.DELETE_PARTITION_FUNCTION, parameters={"table": table})
        logger.info(f"Dropped partition function for {table}")

    def split_range(self, table: str, value: Any, expected_max: Any = _UNSET) -> int:
        """Add a boundary above the current maximum, splitting the tail partition.

        The current boundaries are re-read inside the transaction. If
        ``expected_max`` is given and the maximum changed since the caller read
        it, the split is refused.

        Args:
            table: Partitioned table name
            value: New boundary value
            expected_max: Maximum boundary the caller based its decision on

        Returns:
            Number of existing rows that fall into the newly created partition

        Raises:
            NotFoundError: If the table is not partitioned
            ConflictError: If the boundaries changed concurrently
            BoundaryOrderError: If value is not above the current maximum
        """
        function = self.registry.get_partition_function(table)
        new_value = coerce_boundary_value(value, function.boundary_type)

        with self.database.transaction():
            current = self.registry.boundary_values(table)
            current_max = current[-1] if current else None

            if expected_max is not _UNSET and current_max != expected_max:
                raise ConflictError(
                    f"Boundaries of '{table}' changed concurrently: expected maximum "
                    f"{format_key_value(expected_max)}, found {format_key_value(current_max)}",
                    boundaries=current,
                )
            if current_max is not None and new_value <= current_max:
                raise BoundaryOrderError(
                    f"Boundary {format_key_value(new_value)} for '{table}' must be greater "
                    f"than the current maximum {format_key_value(current_max)}",
                    boundaries=current,
                )

            try:
                self.database.execute_command(
                    ddl.INSERT_BOUNDARY,
                    parameters={"table": table, "boundary_value": format_key_value(new_value)},
                )
            except duckdb.ConstraintException as e:
                raise ConflictError(
                    f"Boundary {format_key_value(new_value)} for '{table}' was added concurrently",
                    boundaries=current,
                ) from e

            new_partition = PartitionRange(table_name=table, ordinal=len(current) + 2, lower_bound=new_value)
            predicate, params = build_range_predicate(function, new_partition)
            rows_moved = query_scalar(
                self.database.execute_query(
                    ddl.COUNT_ROWS_IN_RANGE.format(table=quote_identifier(table), predicate=predicate),
                    parameters=params,
                )
            )

        logger.info(f"Split {table} at {format_key_value(new_value)} ({rows_moved} rows in new range)")
        return int(rows_moved or 0)

    def partition_stats(self, table: str) -> List[PartitionRange]:
        """List every partition of a table with its row count.

        Raises:
            NotFoundError: If the table is not partitioned
        """
        function = self.registry.get_partition_function(table)
        stats = []
        for partition in self.registry.partition_ranges(table):
            predicate, params = build_range_predicate(function, partition)
            count = query_scalar(
                self.database.execute_query(
                    ddl.COUNT_ROWS_IN_RANGE.format(table=quote_identifier(table), predicate=predicate),
                    parameters=params,
                )
            )
            stats.append(partition.model_copy(update={"row_count": int(count or 0)}))
        return stats

    def _switch_mismatches(
        self, function: PartitionFunction, partition: PartitionRange, archive_table: str
    ) -> List[str]:
        """Collect every violated switch-out precondition."""
        table = function.table_name
        mismatches: List[str] = []

        source_columns = require_table(self.database, table)
        archive_columns = self.database.get_table_columns(archive_table)
        if not archive_columns:
            raise NotFoundError(f"Archive table '{archive_table}' does not exist")

        if source_columns != archive_columns:
            source_desc = [(c["name"], c["type"], c["nullable"]) for c in source_columns]
            archive_desc = [(c["name"], c["type"], c["nullable"]) for c in archive_columns]
            mismatches.append(f"column definitions differ: {source_desc} != {archive_desc}")

        source_constraints = self.database.get_table_constraints(table)
        archive_constraints = self.database.get_table_constraints(archive_table)
        if source_constraints != archive_constraints:
            mismatches.append(
                f"constraints differ: {source_constraints} != {archive_constraints}"
            )

        archive_quoted = quote_identifier(archive_table)
        if self.registry.is_partitioned(archive_table):
            archive_function = self.registry.get_partition_function(archive_table)
            if (
                archive_function.partition_column != function.partition_column
                or archive_function.boundary_type != function.boundary_type
            ):
                mismatches.append("archive table is partitioned on a different column or type")
            archive_ranges = self.registry.partition_ranges(archive_table)
            if partition.ordinal > len(archive_ranges):
                mismatches.append(f"archive table has no partition {partition.ordinal}")
            else:
                target = archive_ranges[partition.ordinal - 1]
                if (target.lower_bound, target.upper_bound) != (
                    partition.lower_bound,
                    partition.upper_bound,
                ):
                    mismatches.append(
                        f"partition {partition.ordinal} boundaries are not aligned: "
                        f"[{format_key_value(partition.lower_bound)}, {format_key_value(partition.upper_bound)}) "
                        f"!= [{format_key_value(target.lower_bound)}, {format_key_value(target.upper_bound)})"
                    )
                elif not mismatches:
                    predicate, params = build_range_predicate(archive_function, target)
                    occupied = query_scalar(
                        self.database.execute_query(
                            ddl.COUNT_ROWS_IN_RANGE.format(table=archive_quoted, predicate=predicate),
                            parameters=params,
                        )
                    )
                    if occupied:
                        mismatches.append(
                            f"archive partition {partition.ordinal} is not empty ({occupied} rows)"
                        )
        elif not mismatches:
            occupied = query_scalar(
                self.database.execute_query(ddl.COUNT_ROWS.format(table=archive_quoted))
            )
            if occupied:
                mismatches.append(f"unpartitioned archive table is not empty ({occupied} rows)")

        return mismatches

    def switch_out(self, table: str, partition_ordinal: int, archive_table: str) -> SwitchOutResult:
        """Reassign all rows of one partition to an identically structured archive table.

        Args:
            table: Partitioned source table
            partition_ordinal: 1-based partition number
            archive_table: Target table (unpartitioned and empty, or partitioned
                with aligned boundaries and an empty target partition)

        Returns:
            SwitchOutResult with the switched range and row count

        Raises:
            NotFoundError: If the table, archive table or partition is missing
            SchemaMismatchError: If the archive table does not match the source
        """
        function = self.registry.get_partition_function(table)
        ranges = self.registry.partition_ranges(table)
        if partition_ordinal < 1 or partition_ordinal > len(ranges):
            raise NotFoundError(
                f"Partition {partition_ordinal} does not exist on '{table}' "
                f"(valid ordinals 1..{len(ranges)})"
            )
        partition = ranges[partition_ordinal - 1]

        mismatches = self._switch_mismatches(function, partition, archive_table)
        if mismatches:
            logger.error(f"Cannot switch {table} partition {partition_ordinal} to {archive_table}: {mismatches}")
            raise SchemaMismatchError(
                f"Cannot switch partition {partition_ordinal} of '{table}' to '{archive_table}': "
                + "; ".join(mismatches),
                mismatches=mismatches,
            )

        column_names = [c["name"] for c in self.database.get_table_columns(table)]
        predicate, params = build_range_predicate(function, partition)
        source = quote_identifier(table)

        with self.database.transaction():
            rows = query_scalar(
                self.database.execute_query(
                    ddl.COUNT_ROWS_IN_RANGE.format(table=source, predicate=predicate),
                    parameters=params,
                )
            )
            self.database.execute_command(
                ddl.COPY_RANGE_TO_ARCHIVE.format(
                    archive_table=quote_identifier(archive_table),
                    columns=quote_columns(column_names),
                    table=source,
                    predicate=predicate,
                ),
                parameters=params,
            )
            self.database.execute_command(
                ddl.DELETE_RANGE.format(table=source, predicate=predicate),
                parameters=params,
            )

        logger.info(
            f"Switched partition {partition_ordinal} of {table} "
            f"[{format_key_value(partition.lower_bound)}, {format_key_value(partition.upper_bound)}) "
            f"to {archive_table} ({rows} rows)"
        )
        return SwitchOutResult(
            table_name=table,
            archive_table=archive_table,
            partition_ordinal=partition_ordinal,
            lower_bound=partition.lower_bound,
            upper_bound=partition.upper_bound,
            rows_switched=int(rows or 0),
        )

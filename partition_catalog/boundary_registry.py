"""Read-only view over partition boundary metadata."""

from typing import Any, List, Optional

from partition_catalog import ddl
from partition_catalog.models import PartitionBoundary, PartitionFunction, PartitionRange
from partition_catalog.utils import format_key_value, query_scalar, query_to_dict
from partition_lifecycle.resources.database_protocol import PartitionedDatabaseResource
from partition_lifecycle.utils.datetime_utils import coerce_boundary_value
from partition_lifecycle.utils.exceptions import NotFoundError


class PartitionBoundaryRegistry:
    """Registry of the ordered boundary values of partitioned tables.

    Every method reflects the current committed catalog state and has no side
    effects. Tables that are not registered as partitioned raise NotFoundError.
    """

    def __init__(self, database: PartitionedDatabaseResource):
        """Initialize with a partitioned database resource."""
        self.database = database

    def get_partition_function(self, table: str) -> PartitionFunction:
        """Get the partition function (column and boundary type) of a table.

        Raises:
            NotFoundError: If the table is not partitioned
        """
        result = self.database.execute_query(ddl.GET_PARTITION_FUNCTION, parameters={"table": table})
        row = query_to_dict(result)
        if row is None:
            raise NotFoundError(f"Table '{table}' is not partitioned")
        return PartitionFunction(**row)

    def list_partitioned_tables(self) -> List[str]:
        """List the names of all tables registered as partitioned."""
        result = self.database.execute_query(ddl.LIST_PARTITION_FUNCTIONS)
        return [row[0] for row in result.result_rows]

    def is_partitioned(self, table: str) -> bool:
        try:
            self.get_partition_function(table)
        except NotFoundError:
            return False
        return True

    def list_boundaries(self, table: str) -> List[PartitionBoundary]:
        """List the boundaries of a partitioned table in ascending order.

        Args:
            table: Partitioned table name

        Returns:
            Ascending list of PartitionBoundary

        Raises:
            NotFoundError: If the table is not partitioned
        """
        function = self.get_partition_function(table)
        query = ddl.LIST_BOUNDARIES.format(boundary_type=function.boundary_type)
        result = self.database.execute_query(query, parameters={"table": table})
        return [
            PartitionBoundary(table_name=table, value=value, created_at=created_at)
            for value, created_at in result.result_rows
        ]

    def boundary_values(self, table: str) -> List[Any]:
        """List just the boundary values of a partitioned table in ascending order."""
        return [b.value for b in self.list_boundaries(table)]

    def boundary_exists(self, table: str, value: Any) -> bool:
        """Check whether a boundary value is present.

        Args:
            table: Partitioned table name
            value: Boundary value (coerced to the partition column type)

        Raises:
            NotFoundError: If the table is not partitioned
        """
        function = self.get_partition_function(table)
        wanted = coerce_boundary_value(value, function.boundary_type)
        return any(b.value == wanted for b in self.list_boundaries(table))

    def max_boundary(self, table: str) -> Optional[PartitionBoundary]:
        """Get the highest boundary, or None when the function has no boundaries."""
        function = self.get_partition_function(table)
        query = ddl.MAX_BOUNDARY.format(boundary_type=function.boundary_type)
        value = query_scalar(self.database.execute_query(query, parameters={"table": table}))
        if value is None:
            return None
        return PartitionBoundary(table_name=table, value=value)

    def partition_ranges(self, table: str) -> List[PartitionRange]:
        """Derive the half-open partition ranges from the boundaries.

        With n boundaries there are n + 1 partitions; ordinal 1 is open below
        and the last ordinal is open above.
        """
        values = self.boundary_values(table)
        lowers = [None] + values
        uppers = values + [None]
        return [
            PartitionRange(table_name=table, ordinal=i + 1, lower_bound=lo, upper_bound=hi)
            for i, (lo, hi) in enumerate(zip(lowers, uppers))
        ]

    def partition_number_for_value(self, table: str, value: Any) -> int:
        """Return the 1-based ordinal of the partition a value falls into.

        NULL keys sort below every boundary and fall into partition 1.
        """
        function = self.get_partition_function(table)
        if value is None:
            return 1
        wanted = coerce_boundary_value(value, function.boundary_type)
        # RANGE RIGHT: a value equal to a boundary belongs to the partition on its right
        return 1 + sum(1 for b in self.boundary_values(table) if b <= wanted)

    def describe(self, table: str) -> str:
        """Human readable boundary list for log messages."""
        return ", ".join(format_key_value(v) for v in self.boundary_values(table)) or "<none>"

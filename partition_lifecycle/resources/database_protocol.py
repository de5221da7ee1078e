"""Protocol/interface for partitioned database resources.

This protocol defines the storage-engine surface the partition catalog,
the lifecycle controller and the subset migrator rely on. Any engine that
can expose partition boundaries, run short transactions and interrupt a
running statement can implement it.
"""

from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Protocol, TypeVar

T = TypeVar("T")


class PartitionedDatabaseResource(Protocol):
    """Protocol defining the interface for partitioned database resources."""

    def execute_query(self, query: str, parameters: Optional[dict] = None) -> Any:
        """Execute a query and return results.

        Args:
            query: SQL query string with ``{name:Type}`` placeholders
            parameters: Query parameters keyed by placeholder name

        Returns:
            Query result object with result_rows and column_names attributes
        """
        ...

    def execute_command(self, command: str, parameters: Optional[dict] = None) -> None:
        """Execute a command (DDL/DML) without returning results."""
        ...

    @contextmanager
    def transaction(self) -> Iterator[Any]:
        """Run the enclosed statements in one transaction (commit or rollback)."""
        ...

    def run_with_timeout(self, func: Callable[[], T], timeout_seconds: Optional[float]) -> T:
        """Run ``func`` and interrupt the connection if it exceeds the timeout."""
        ...

    def table_exists(self, table: str) -> bool:
        """Check whether a table exists."""
        ...

    def get_table_columns(self, table: str) -> List[Dict[str, Any]]:
        """Get ordered column descriptions (name, type, nullable) for a table."""
        ...

    def get_table_constraints(self, table: str) -> List[str]:
        """Get normalized constraint descriptions for a table."""
        ...

    def ensure_catalog(self) -> None:
        """Create the partition catalog tables if they do not exist."""
        ...

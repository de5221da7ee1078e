"""DuckDB database resource for Dagster.

This resource provides the storage-engine primitives the partition catalog
needs: parameterized queries, short transactions, statement interruption for
batch timeouts, and table introspection for switch-out preconditions.
"""

import re
import threading
from contextlib import contextmanager
from typing import Any, Callable, ClassVar, Dict, Iterator, List, Optional, TypeVar

import duckdb
from dagster import ConfigurableResource, InitResourceContext, get_dagster_logger
from decouple import config
from pydantic import PrivateAttr

from partition_catalog import ddl
from partition_lifecycle.utils.constants import DEFAULT_DUCKDB_DATABASE_PATH
from partition_lifecycle.utils.exceptions import TransientError

logger = get_dagster_logger()

T = TypeVar("T")

# DuckDB raises these for write-write conflicts and interrupted statements
TRANSIENT_EXCEPTIONS = (duckdb.TransactionException, duckdb.InterruptException)
TRANSIENT_MESSAGE_MARKERS = ("conflict", "deadlock", "could not set lock", "interrupted", "timeout")

# Non-transient failures: schema, constraint and type problems
FATAL_EXCEPTIONS = (
    duckdb.ConstraintException,
    duckdb.BinderException,
    duckdb.CatalogException,
    duckdb.ConversionException,
    duckdb.ParserException,
)


def is_transient_error(error: BaseException) -> bool:
    """Decide whether a database error may succeed when retried.

    Args:
        error: Exception raised by the database or by the timeout wrapper

    Returns:
        True for timeouts, interrupts and write-write conflicts
    """
    if isinstance(error, TransientError):
        return True
    if isinstance(error, FATAL_EXCEPTIONS):
        return False
    if isinstance(error, TRANSIENT_EXCEPTIONS):
        return True
    if isinstance(error, duckdb.Error):
        message = str(error).lower()
        return any(marker in message for marker in TRANSIENT_MESSAGE_MARKERS)
    return False


def quote_identifier(name: str) -> str:
    """Quote a SQL identifier for DuckDB."""
    return '"' + name.replace('"', '""') + '"'


class DuckDBResult:
    """Wrapper for DuckDB query results exposing result_rows and column_names."""

    def __init__(self, rows: list, columns: list):
        self._rows = rows
        self._columns = columns

    @property
    def result_rows(self) -> list:
        """Get result rows as list of tuples."""
        return self._rows

    @property
    def column_names(self) -> list:
        """Get column names."""
        return self._columns


class DuckDBResource(ConfigurableResource):
    """Resource for interacting with a DuckDB database holding partitioned tables.

    The connection is opened lazily and shared by everything using this
    resource instance, so catalog reads, data changes and cursor updates run
    on the same connection and can share a transaction.
    """

    database_path: str = DEFAULT_DUCKDB_DATABASE_PATH
    read_only: bool = False

    _connection: Optional[duckdb.DuckDBPyConnection] = PrivateAttr(default=None)
    _transaction_depth: int = PrivateAttr(default=0)

    @classmethod
    def from_config(cls) -> "DuckDBResource":
        """Create resource from environment configuration."""
        return cls(
            database_path=config("DUCKDB_DATABASE_PATH", default=DEFAULT_DUCKDB_DATABASE_PATH),
            read_only=config("DUCKDB_READ_ONLY", default=False, cast=bool),
        )

    def setup_for_execution(self, context: InitResourceContext) -> None:
        self._open()

    def teardown_after_execution(self, context: InitResourceContext) -> None:
        self.close()

    def _open(self) -> duckdb.DuckDBPyConnection:
        if self._connection is None:
            self._connection = duckdb.connect(self.database_path, read_only=self.read_only)
            self._transaction_depth = 0
            logger.info(f"Opened DuckDB database {self.database_path}")
        return self._connection

    def close(self) -> None:
        """Close the underlying connection if it is open."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None
            self._transaction_depth = 0

    def execute_query(self, query: str, parameters: Optional[dict] = None) -> DuckDBResult:
        """Execute a query and return results.

        Args:
            query: SQL query string with ``{name:Type}`` placeholders
            parameters: Query parameters keyed by placeholder name

        Returns:
            DuckDBResult object with result_rows and column_names
        """
        duckdb_query, duckdb_params = self._convert_query_parameters(query, parameters)
        con = self._open()

        if duckdb_params:
            cursor = con.execute(duckdb_query, duckdb_params)
        else:
            cursor = con.execute(duckdb_query)

        columns = [c[0] for c in cursor.description] if cursor.description else []
        return DuckDBResult(cursor.fetchall(), columns)

    def execute_command(self, command: str, parameters: Optional[dict] = None) -> None:
        """Execute a command (DDL/DML) without returning results.

        Args:
            command: SQL command string with ``{name:Type}`` placeholders
            parameters: Command parameters keyed by placeholder name
        """
        duckdb_command, duckdb_params = self._convert_query_parameters(command, parameters)
        con = self._open()

        if duckdb_params:
            con.execute(duckdb_command, duckdb_params)
        else:
            con.execute(duckdb_command)

    @contextmanager
    def transaction(self) -> Iterator[duckdb.DuckDBPyConnection]:
        """Run the enclosed statements in a single transaction.

        Nested use joins the outer transaction; only the outermost block
        commits or rolls back.
        """
        con = self._open()
        if self._transaction_depth > 0:
            self._transaction_depth += 1
            try:
                yield con
            finally:
                self._transaction_depth -= 1
            return

        con.begin()
        self._transaction_depth = 1
        try:
            yield con
        except BaseException:
            self._transaction_depth = 0
            try:
                con.rollback()
            except duckdb.Error as rollback_error:
                logger.warning(f"Rollback failed: {rollback_error}")
            raise
        else:
            self._transaction_depth = 0
            con.commit()

    def run_with_timeout(self, func: Callable[[], T], timeout_seconds: Optional[float]) -> T:
        """Run ``func`` and interrupt the connection once the timeout elapses.

        DuckDB has no statement timeout, so a timer thread interrupts the
        running statement; the interrupt surfaces as ``TransientError``.

        Args:
            func: Callable running one or more statements on this resource
            timeout_seconds: Timeout in seconds, or None/0 for no timeout

        Returns:
            Whatever ``func`` returns

        Raises:
            TransientError: If the statement was interrupted by the timeout
        """
        if not timeout_seconds:
            return func()

        con = self._open()
        fired = threading.Event()

        def interrupt() -> None:
            fired.set()
            con.interrupt()

        timer = threading.Timer(timeout_seconds, interrupt)
        timer.daemon = True
        timer.start()
        try:
            return func()
        except duckdb.Error as e:
            if fired.is_set():
                raise TransientError(f"Statement exceeded timeout of {timeout_seconds}s") from e
            raise
        finally:
            timer.cancel()

    def table_exists(self, table: str) -> bool:
        result = self.execute_query(ddl.TABLE_EXISTS, parameters={"table": table})
        return bool(result.result_rows and result.result_rows[0][0])

    def get_table_columns(self, table: str) -> List[Dict[str, Any]]:
        """Get ordered column descriptions for a table.

        Returns:
            List of dicts with name, type and nullable keys (empty if table is missing)
        """
        result = self.execute_query(ddl.TABLE_COLUMNS, parameters={"table": table})
        return [
            {"name": name, "type": data_type.upper(), "nullable": is_nullable == "YES"}
            for name, data_type, is_nullable in result.result_rows
        ]

    def get_table_constraints(self, table: str) -> List[str]:
        """Get sorted constraint descriptions such as ``PRIMARY KEY(id)``."""
        result = self.execute_query(ddl.TABLE_CONSTRAINTS, parameters={"table": table})
        return sorted(
            f"{constraint_type}({', '.join(columns or [])})"
            for constraint_type, columns in result.result_rows
        )

    def ensure_catalog(self) -> None:
        """Create the partition catalog tables if they do not exist."""
        for statement in ddl.CATALOG_DDL:
            self.execute_command(statement)
        logger.info("Partition catalog ensured")

    # Regex pattern to match ClickHouse-style parameters: {param:Type}
    PARAM_RE: ClassVar[re.Pattern] = re.compile(r"\{(\w+):[^\}]+\}")

    def _convert_query_parameters(
        self, query: str, parameters: Optional[dict] = None
    ) -> tuple[str, Optional[list]]:
        """Convert ``{param:Type}`` placeholders to DuckDB ``?`` placeholders.

        Parameters are extracted in SQL order (left to right).

        Args:
            query: SQL with ``{param:Type}`` placeholders
            parameters: Parameter dictionary

        Returns:
            Tuple of (converted_query, duckdb_params_list)

        Raises:
            KeyError: If a parameter in the query is missing from the parameters dict
        """
        if not parameters:
            return query, None

        duckdb_params: list[Any] = []

        def replacer(match: re.Match) -> str:
            """Replace placeholder with ? and collect its value (lists expand for IN)."""
            name = match.group(1)
            if name not in parameters:
                raise KeyError(f"Missing parameter: {name}")

            value = parameters[name]

            if isinstance(value, (list, tuple)):
                # WHERE id IN () is invalid SQL
                if not value:
                    raise ValueError(f"Empty list provided for parameter '{name}'")
                placeholders = ", ".join("?" for _ in value)
                duckdb_params.extend(value)
                return f"({placeholders})"

            duckdb_params.append(value)
            return "?"

        converted_query = self.PARAM_RE.sub(replacer, query)

        return converted_query, duckdb_params

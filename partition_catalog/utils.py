"""Database utility functions for common catalog operations."""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from partition_lifecycle.resources.duckdb_resource import quote_identifier
from partition_lifecycle.utils.exceptions import NotFoundError


def query_to_dict_list(result: Any) -> List[Dict[str, Any]]:
    """Convert query result to list of dictionaries.

    Args:
        result: Query result with column_names and result_rows

    Returns:
        List of dictionaries, one per row
    """
    if not hasattr(result, "column_names") or not hasattr(result, "result_rows"):
        return []

    columns = result.column_names
    return [dict(zip(columns, row)) for row in result.result_rows]


def query_to_dict(result: Any) -> Optional[Dict[str, Any]]:
    """Convert query result to single dictionary (first row).

    Returns:
        Dictionary with first row data or None if no rows
    """
    if not hasattr(result, "result_rows") or not result.result_rows:
        return None

    columns = result.column_names
    return dict(zip(columns, result.result_rows[0]))


def query_scalar(result: Any) -> Any:
    """Return the first column of the first row, or None."""
    if not hasattr(result, "result_rows") or not result.result_rows:
        return None
    return result.result_rows[0][0]


def format_key_value(value: Any) -> Optional[str]:
    """Render a key or boundary value as text that DuckDB can cast back.

    Dates and datetimes use ISO format with a space separator, integers
    their decimal representation.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def quote_columns(columns: List[str], alias: Optional[str] = None) -> str:
    """Quote and join column names, optionally qualified by a table alias."""
    prefix = f"{alias}." if alias else ""
    return ", ".join(f"{prefix}{quote_identifier(c)}" for c in columns)


def require_table(database: Any, table: str) -> List[Dict[str, Any]]:
    """Return a table's columns, raising NotFoundError if it does not exist."""
    columns = database.get_table_columns(table)
    if not columns:
        raise NotFoundError(f"Table '{table}' does not exist")
    return columns


def column_type(columns: List[Dict[str, Any]], column: str, table: str) -> str:
    """Look up a column's type in a column description list.

    Raises:
        NotFoundError: If the column is not part of the table
    """
    for col in columns:
        if col["name"] == column:
            return col["type"]
    raise NotFoundError(f"Column '{column}' does not exist on table '{table}'")

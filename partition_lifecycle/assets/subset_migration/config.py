"""Configuration for filtered subset migration."""

from typing import List, Optional

from dagster import Config


class SubsetMigrationConfig(Config):
    """Configuration for copying a filtered subset of a table to another table."""

    run_id: str  # Stable id; re-running with the same id resumes from its cursor
    source_table: str
    destination_table: str
    key_column: str  # Monotonic key; copied verbatim into the destination
    predicate: str = ""  # SQL boolean expression, e.g. "create_date >= DATE '2020-01-01'"
    batch_size: Optional[int] = None  # Defaults to MIGRATION_BATCH_SIZE
    columns: Optional[List[str]] = None  # Defaults to the destination table's columns

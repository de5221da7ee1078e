"""Dagster resources for partition lifecycle management."""

from partition_lifecycle.resources.database_protocol import PartitionedDatabaseResource
from partition_lifecycle.resources.duckdb_resource import DuckDBResource

__all__ = [
    "DuckDBResource",
    "PartitionedDatabaseResource",
]

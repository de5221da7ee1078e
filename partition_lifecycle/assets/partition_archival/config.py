"""Configuration for partition archival."""

from dagster import Config


class PartitionArchivalConfig(Config):
    """Configuration for switching one partition out to an archive table."""

    table: str
    partition_ordinal: int  # 1-based; 1 is the range below the lowest boundary
    archive_table: str  # Same columns and constraints as table; empty target range

"""Configuration for partition boundary maintenance."""

from typing import List, Optional

from dagster import Config


class PartitionMaintenanceConfig(Config):
    """Configuration for keeping partition boundaries ahead of incoming data."""

    tables: List[str] = []  # Empty means every partitioned table in the catalog
    lead_interval: Optional[str] = None  # e.g. "1 month", "1 year", "10000 steps"; defaults to PARTITION_LEAD_INTERVAL

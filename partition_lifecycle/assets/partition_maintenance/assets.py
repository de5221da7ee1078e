"""Partition maintenance assets."""

import polars as pl
from dagster import AssetExecutionContext, asset

from partition_lifecycle.resources import DuckDBResource

from .config import PartitionMaintenanceConfig
from .logic import ensure_partition_boundaries_logic


@asset(
    group_name="partition_maintenance",
    description="Split a new empty partition in ahead of incoming data for each partitioned table",
    io_manager_key="polars_parquet_io_manager",
    kinds=["duckdb", "polars"],
)
def ensure_partition_boundaries(
    context: AssetExecutionContext,
    config: PartitionMaintenanceConfig,
    duckdb: DuckDBResource,
) -> pl.DataFrame:
    """Ensure every partitioned table has a boundary ahead of the current date.

    Runs on a schedule independent of data arrival, so new ranges are split
    while they are still empty. Conflicts are not retried within the run;
    the next scheduled run re-reads the boundaries.

    Args:
        context: Dagster execution context
        config: Tables and lead interval
        duckdb: DuckDB resource

    Returns:
        DataFrame with one row per table (status, boundary count, added boundary)
    """
    return ensure_partition_boundaries_logic(context, config, duckdb)

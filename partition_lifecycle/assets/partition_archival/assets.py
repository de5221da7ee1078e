"""Partition archival assets."""

import polars as pl
from dagster import AssetExecutionContext, asset

from partition_lifecycle.resources import DuckDBResource

from .config import PartitionArchivalConfig
from .logic import switch_out_partition_logic


@asset(
    group_name="partition_archival",
    description="Move one partition of a table into an identically structured archive table",
    io_manager_key="polars_parquet_io_manager",
    kinds=["duckdb", "polars"],
)
def switch_out_partition(
    context: AssetExecutionContext,
    config: PartitionArchivalConfig,
    duckdb: DuckDBResource,
) -> pl.DataFrame:
    """Switch out the configured partition (launched by an operator, not scheduled)."""
    return switch_out_partition_logic(context, config, duckdb)

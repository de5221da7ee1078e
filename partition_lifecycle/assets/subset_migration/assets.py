"""Filtered subset migration assets."""

import polars as pl
from dagster import AssetExecutionContext, RetryPolicy, asset

from partition_lifecycle.resources import DuckDBResource
from partition_lifecycle.utils.constants import (
    RETRY_POLICY_DELAY_DEFAULT,
    RETRY_POLICY_MAX_RETRIES_DEFAULT,
)

from .config import SubsetMigrationConfig
from .logic import migrate_filtered_subset_logic


@asset(
    group_name="subset_migration",
    description="Copy rows matching a predicate to another table in resumable, key-preserving batches",
    io_manager_key="polars_parquet_io_manager",
    kinds=["duckdb", "polars"],
    retry_policy=RetryPolicy(
        max_retries=RETRY_POLICY_MAX_RETRIES_DEFAULT, delay=RETRY_POLICY_DELAY_DEFAULT
    ),
)
def migrate_filtered_subset(
    context: AssetExecutionContext,
    config: SubsetMigrationConfig,
    duckdb: DuckDBResource,
) -> pl.DataFrame:
    """Migrate the filtered subset described by the run configuration.

    A retried or re-scheduled run with the same ``run_id`` continues after
    the last committed key.
    """
    return migrate_filtered_subset_logic(context, config, duckdb)

"""Asset checks for subset migration."""

import polars as pl
from dagster import (
    AssetCheckExecutionContext,
    AssetCheckResult,
    AssetCheckSeverity,
    asset_check,
)

from partition_lifecycle.resources import DuckDBResource

from .logic import count_duplicate_keys


@asset_check(asset="migrate_filtered_subset", name="destination_keys_unique")
def check_destination_keys_unique(
    context: AssetCheckExecutionContext,
    migrate_filtered_subset: pl.DataFrame,
    duckdb: DuckDBResource,
) -> AssetCheckResult:
    """Check that no key was copied into the destination twice."""
    if migrate_filtered_subset.is_empty():
        return AssetCheckResult(
            passed=True,
            description="No batches committed in this run",
            severity=AssetCheckSeverity.WARN,
        )

    destination = migrate_filtered_subset["destination_table"][0]
    key_column = migrate_filtered_subset["key_column"][0]
    duplicates = count_duplicate_keys(duckdb, destination, key_column)
    if duplicates:
        context.log.error(f"{destination} has {duplicates} duplicated {key_column} values")

    return AssetCheckResult(
        passed=duplicates == 0,
        description=f"Destination key uniqueness: {'PASSED' if duplicates == 0 else 'FAILED'}",
        metadata={
            "destination_table": destination,
            "key_column": key_column,
            "duplicate_keys": duplicates,
        },
        severity=AssetCheckSeverity.ERROR,
    )

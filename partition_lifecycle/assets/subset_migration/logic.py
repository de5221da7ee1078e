"""Subset migration logic: drain the bulk subset migrator for one job."""

import polars as pl
from dagster import AssetExecutionContext, Failure

from partition_catalog.models import MigrationJob
from partition_catalog.utils import query_scalar
from partition_lifecycle.lifecycle.migrator import BulkSubsetMigrator
from partition_lifecycle.resources import DuckDBResource
from partition_lifecycle.resources.duckdb_resource import quote_identifier
from partition_lifecycle.utils.database_config import (
    get_batch_size,
    get_migration_retry_settings,
)
from partition_lifecycle.utils.exceptions import FatalMigrationError

from .config import SubsetMigrationConfig

BATCH_SUMMARY_SCHEMA = {
    "run_id": pl.Utf8,
    "destination_table": pl.Utf8,
    "key_column": pl.Utf8,
    "batch_number": pl.Int64,
    "rows_migrated": pl.Int64,
    "cursor_before": pl.Utf8,
    "cursor_after": pl.Utf8,
    "attempts": pl.Int64,
    "duration_seconds": pl.Float64,
}

DUPLICATE_KEYS_SQL = """
    SELECT count(*) FROM (
        SELECT {key} FROM {table} GROUP BY {key} HAVING count(*) > 1
    )
"""


def build_migration_job(config: SubsetMigrationConfig) -> MigrationJob:
    """Build a MigrationJob from run configuration, filling in defaults."""
    return MigrationJob(
        run_id=config.run_id,
        source_table=config.source_table,
        destination_table=config.destination_table,
        key_column=config.key_column,
        predicate=config.predicate,
        batch_size=config.batch_size or get_batch_size(),
        columns=config.columns,
    )


def count_duplicate_keys(duckdb: DuckDBResource, table: str, key_column: str) -> int:
    """Count key values that occur more than once in a table."""
    query = DUPLICATE_KEYS_SQL.format(
        table=quote_identifier(table), key=quote_identifier(key_column)
    )
    return int(query_scalar(duckdb.execute_query(query)) or 0)


def migrate_filtered_subset_logic(
    context: AssetExecutionContext,
    config: SubsetMigrationConfig,
    duckdb: DuckDBResource,
) -> pl.DataFrame:
    """Copy every remaining matching row, one committed batch at a time.

    Args:
        context: Dagster execution context
        config: Migration job configuration
        duckdb: DuckDB resource

    Returns:
        DataFrame with one row per committed batch

    Raises:
        Failure: If the run aborts (not retried; the cursor keeps the last
            committed batch so the next run resumes there)
    """
    duckdb.ensure_catalog()
    job = build_migration_job(config)
    migrator = BulkSubsetMigrator(duckdb, **get_migration_retry_settings())

    context.log.info(
        f"Migrating {job.source_table} -> {job.destination_table} with run id {job.run_id}",
        extra={
            "run_id": job.run_id,
            "source_table": job.source_table,
            "destination_table": job.destination_table,
            "batch_size": job.batch_size,
        },
    )

    rows = []
    try:
        for batch in migrator.migrate(job):
            rows.append(
                {
                    **batch.model_dump(),
                    "destination_table": job.destination_table,
                    "key_column": job.key_column,
                }
            )
            context.log.info(
                f"Committed batch {batch.batch_number}: {batch.rows_migrated} rows",
                extra={"batch_number": batch.batch_number, "rows_migrated": batch.rows_migrated},
            )
    except FatalMigrationError as e:
        context.log.error(
            f"Migration run {job.run_id} aborted after {len(rows)} batches in this run: {e}",
            extra={"run_id": job.run_id, "last_cursor": e.last_cursor, "attempts": e.attempts},
        )
        raise Failure(
            description=f"Migration run {job.run_id} aborted: {e}",
            metadata={
                "run_id": job.run_id,
                "last_cursor": e.last_cursor or "",
                "attempts": e.attempts,
                "batches_this_run": len(rows),
            },
            allow_retries=False,
        ) from e

    summary = pl.DataFrame(rows, schema=BATCH_SUMMARY_SCHEMA)
    cursor = migrator.cursors.require(job.run_id)
    context.add_output_metadata(
        {
            "batches_this_run": len(rows),
            "rows_this_run": int(summary["rows_migrated"].sum()),
            "rows_migrated_total": cursor.rows_migrated,
            "cursor_value": cursor.cursor_value or "",
            "status": cursor.status.value,
        }
    )
    return summary

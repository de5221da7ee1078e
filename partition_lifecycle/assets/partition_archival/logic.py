"""Partition archival logic."""

import polars as pl
from dagster import AssetExecutionContext

from partition_catalog.models import SwitchOutResult
from partition_catalog.partition_scheme import PartitionSchemeManager
from partition_catalog.utils import format_key_value
from partition_lifecycle.lifecycle.migrator import BulkSubsetMigrator
from partition_lifecycle.resources import DuckDBResource

from .config import PartitionArchivalConfig

SWITCH_SUMMARY_SCHEMA = {
    "table_name": pl.Utf8,
    "archive_table": pl.Utf8,
    "partition_ordinal": pl.Int64,
    "lower_bound": pl.Utf8,
    "upper_bound": pl.Utf8,
    "rows_switched": pl.Int64,
}


def summarize_switch(result: SwitchOutResult) -> pl.DataFrame:
    """One-row DataFrame describing a switch-out."""
    return pl.DataFrame(
        [
            {
                "table_name": result.table_name,
                "archive_table": result.archive_table,
                "partition_ordinal": result.partition_ordinal,
                "lower_bound": format_key_value(result.lower_bound),
                "upper_bound": format_key_value(result.upper_bound),
                "rows_switched": result.rows_switched,
            }
        ],
        schema=SWITCH_SUMMARY_SCHEMA,
    )


def switch_out_partition_logic(
    context: AssetExecutionContext,
    config: PartitionArchivalConfig,
    duckdb: DuckDBResource,
) -> pl.DataFrame:
    """Switch one partition out to its archive table.

    Args:
        context: Dagster execution context
        config: Table, partition ordinal and archive table
        duckdb: DuckDB resource

    Returns:
        One-row DataFrame describing the switched range

    Raises:
        NotFoundError: If the table, archive table or partition does not exist
        SchemaMismatchError: If the archive table is not switch compatible
    """
    duckdb.ensure_catalog()
    scheme = PartitionSchemeManager(duckdb)

    for partition in scheme.partition_stats(config.table):
        context.log.debug(
            f"{config.table} partition {partition.ordinal}: "
            f"[{format_key_value(partition.lower_bound)}, {format_key_value(partition.upper_bound)}) "
            f"{partition.row_count} rows"
        )

    migrator = BulkSubsetMigrator(duckdb, scheme=scheme)
    result = migrator.switch_out(config.table, config.partition_ordinal, config.archive_table)

    context.log.info(
        f"Switched partition {result.partition_ordinal} of {result.table_name} "
        f"to {result.archive_table}",
        extra={"rows_switched": result.rows_switched},
    )
    context.add_output_metadata(
        {
            "rows_switched": result.rows_switched,
            "lower_bound": format_key_value(result.lower_bound) or "",
            "upper_bound": format_key_value(result.upper_bound) or "",
        }
    )
    return summarize_switch(result)

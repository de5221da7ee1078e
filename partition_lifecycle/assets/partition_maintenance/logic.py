"""Partition maintenance logic: advance boundaries for every configured table."""

from typing import Any, Dict, List

import polars as pl
from dagster import AssetExecutionContext

from partition_catalog.boundary_registry import PartitionBoundaryRegistry
from partition_catalog.leases import LeaseManager
from partition_catalog.models import BoundaryAdvanceResult
from partition_catalog.utils import format_key_value
from partition_lifecycle.lifecycle.controller import PartitionLifecycleController
from partition_lifecycle.resources import DuckDBResource
from partition_lifecycle.utils.database_config import get_lead_interval, get_lease_ttl_seconds
from partition_lifecycle.utils.exceptions import PartitionLifecycleError

from .config import PartitionMaintenanceConfig

MAINTENANCE_SUMMARY_SCHEMA = {
    "table_name": pl.Utf8,
    "status": pl.Utf8,
    "boundary_count": pl.Int64,
    "max_boundary": pl.Utf8,
    "added_boundary": pl.Utf8,
    "rows_in_split_range": pl.Int64,
    "behind_schedule": pl.Boolean,
}


def summarize_advance(result: BoundaryAdvanceResult) -> Dict[str, Any]:
    """Flatten a BoundaryAdvanceResult into a summary row."""
    after = result.boundaries_after
    return {
        "table_name": result.table_name,
        "status": "noop" if result.is_noop else "added",
        "boundary_count": len(after),
        "max_boundary": format_key_value(after[-1]) if after else None,
        "added_boundary": format_key_value(result.added_boundary),
        "rows_in_split_range": result.rows_in_split_range,
        "behind_schedule": result.behind_schedule,
    }


def find_boundary_order_violations(duckdb: DuckDBResource) -> Dict[str, List[str]]:
    """Find partitioned tables whose boundaries are not strictly increasing.

    Boundaries are stored as text; two texts casting to the same value (or a
    catalog edited by hand) would break the ordering.

    Returns:
        Mapping of table name to the offending boundary pairs
    """
    registry = PartitionBoundaryRegistry(duckdb)
    violations: Dict[str, List[str]] = {}
    for table in registry.list_partitioned_tables():
        values = registry.boundary_values(table)
        bad = [
            f"{format_key_value(previous)} >= {format_key_value(current)}"
            for previous, current in zip(values, values[1:])
            if current <= previous
        ]
        if bad:
            violations[table] = bad
    return violations


def ensure_partition_boundaries_logic(
    context: AssetExecutionContext,
    config: PartitionMaintenanceConfig,
    duckdb: DuckDBResource,
) -> pl.DataFrame:
    """Run the lifecycle controller once for every configured table.

    All tables are attempted; failures are collected and raised together at
    the end so one broken table does not hold back the others.

    Args:
        context: Dagster execution context
        config: Maintenance configuration
        duckdb: DuckDB resource

    Returns:
        DataFrame with one summary row per processed table

    Raises:
        PartitionLifecycleError: If any table could not be advanced
    """
    duckdb.ensure_catalog()
    registry = PartitionBoundaryRegistry(duckdb)
    controller = PartitionLifecycleController(
        duckdb,
        registry=registry,
        leases=LeaseManager(duckdb, ttl_seconds=get_lease_ttl_seconds()),
    )

    tables = config.tables or registry.list_partitioned_tables()
    lead_interval = config.lead_interval or get_lead_interval()
    context.log.info(
        f"Ensuring boundaries {lead_interval} ahead for {len(tables)} tables",
        extra={"tables": tables, "lead_interval": lead_interval},
    )

    rows = []
    failures = {}
    for table in tables:
        try:
            result = controller.ensure_boundary_ahead(
                table, lead_interval, holder=f"dagster-run-{context.run_id}"
            )
        except PartitionLifecycleError as e:
            context.log.error(f"Failed to advance boundaries for {table}: {e}")
            failures[table] = str(e)
            continue

        row = summarize_advance(result)
        rows.append(row)
        context.log.info(
            f"{table}: {row['status']}, max boundary {row['max_boundary']}",
            extra=row,
        )

    summary = pl.DataFrame(rows, schema=MAINTENANCE_SUMMARY_SCHEMA)
    context.add_output_metadata(
        {
            "tables_processed": len(rows),
            "boundaries_added": int((summary["status"] == "added").sum()),
            "tables_failed": len(failures),
        }
    )

    if failures:
        raise PartitionLifecycleError(
            f"Boundary maintenance failed for {len(failures)} of {len(tables)} tables: {failures}"
        )
    return summary

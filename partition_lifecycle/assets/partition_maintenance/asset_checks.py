"""Asset checks for partition maintenance."""

from dagster import (
    AssetCheckExecutionContext,
    AssetCheckResult,
    AssetCheckSeverity,
    asset_check,
)

from partition_lifecycle.resources import DuckDBResource

from .logic import find_boundary_order_violations


@asset_check(asset="ensure_partition_boundaries", name="boundaries_strictly_increasing")
def check_boundaries_strictly_increasing(
    context: AssetCheckExecutionContext,
    duckdb: DuckDBResource,
) -> AssetCheckResult:
    """Check that every partitioned table has strictly increasing boundaries."""
    violations = find_boundary_order_violations(duckdb)
    if violations:
        context.log.error(f"Boundary order violations: {violations}")

    return AssetCheckResult(
        passed=not violations,
        description=f"Boundary ordering: {'PASSED' if not violations else 'FAILED'}",
        metadata={
            "tables_with_violations": len(violations),
            "violations": {table: ", ".join(pairs) for table, pairs in violations.items()},
        },
        severity=AssetCheckSeverity.ERROR,
    )

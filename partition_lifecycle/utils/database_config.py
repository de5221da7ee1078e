"""Environment configuration for the partition lifecycle code location.

Values come from environment variables or a ``.env`` file via python-decouple,
falling back to the defaults in constants.py.
"""

from decouple import config

from partition_lifecycle.resources.duckdb_resource import DuckDBResource
from partition_lifecycle.utils.constants import (
    DEFAULT_BACKOFF_MULTIPLIER,
    DEFAULT_BACKOFF_SECONDS,
    DEFAULT_BATCH_SIZE,
    DEFAULT_BATCH_TIMEOUT_SECONDS,
    DEFAULT_LEAD_INTERVAL,
    DEFAULT_LEASE_TTL_SECONDS,
    DEFAULT_MAINTENANCE_CRON,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MIGRATION_CRON,
)


def get_database_resource() -> DuckDBResource:
    """Get the configured database resource instance.

    Returns:
        DuckDBResource configured from DUCKDB_DATABASE_PATH and DUCKDB_READ_ONLY
    """
    return DuckDBResource.from_config()


def get_lead_interval() -> str:
    """Default lead interval for boundary maintenance (e.g. "1 month")."""
    return config("PARTITION_LEAD_INTERVAL", default=DEFAULT_LEAD_INTERVAL)


def get_lease_ttl_seconds() -> int:
    return config("PARTITION_LEASE_TTL_SECONDS", default=DEFAULT_LEASE_TTL_SECONDS, cast=int)


def get_batch_size() -> int:
    return config("MIGRATION_BATCH_SIZE", default=DEFAULT_BATCH_SIZE, cast=int)


def get_migration_retry_settings() -> dict:
    """Get retry and timeout settings for the subset migrator.

    Returns:
        Dictionary of BulkSubsetMigrator keyword arguments
    """
    return {
        "max_attempts": config("MIGRATION_MAX_ATTEMPTS", default=DEFAULT_MAX_ATTEMPTS, cast=int),
        "backoff_seconds": config(
            "MIGRATION_BACKOFF_SECONDS", default=DEFAULT_BACKOFF_SECONDS, cast=float
        ),
        "backoff_multiplier": config(
            "MIGRATION_BACKOFF_MULTIPLIER", default=DEFAULT_BACKOFF_MULTIPLIER, cast=float
        ),
        "batch_timeout_seconds": config(
            "MIGRATION_BATCH_TIMEOUT_SECONDS", default=DEFAULT_BATCH_TIMEOUT_SECONDS, cast=float
        ),
    }


def get_maintenance_cron() -> str:
    return config("PARTITION_MAINTENANCE_CRON", default=DEFAULT_MAINTENANCE_CRON)


def get_migration_cron() -> str:
    return config("SUBSET_MIGRATION_CRON", default=DEFAULT_MIGRATION_CRON)


def get_subset_migration_run_config() -> dict:
    """Run config for the scheduled subset migration.

    The scheduled job resumes the same run id every time, so each tick copies
    only rows that arrived after the previous tick.
    """
    migration_config = {
        "run_id": config("SUBSET_MIGRATION_RUN_ID", default="scheduled-subset-migration"),
        "source_table": config("SUBSET_MIGRATION_SOURCE_TABLE", default=""),
        "destination_table": config("SUBSET_MIGRATION_DESTINATION_TABLE", default=""),
        "key_column": config("SUBSET_MIGRATION_KEY_COLUMN", default="id"),
        "predicate": config("SUBSET_MIGRATION_PREDICATE", default=""),
    }
    return {"ops": {"migrate_filtered_subset": {"config": migration_config}}}

"""Constants used across partition lifecycle assets and managers."""

# Boundary column types the catalog understands
TEMPORAL_BOUNDARY_TYPES = ("DATE", "TIMESTAMP")
INTEGER_BOUNDARY_TYPES = ("TINYINT", "SMALLINT", "INTEGER", "BIGINT", "HUGEINT")
SUPPORTED_BOUNDARY_TYPES = TEMPORAL_BOUNDARY_TYPES + INTEGER_BOUNDARY_TYPES

# Range semantics: boundary value belongs to the partition on its right
RANGE_TYPE_RIGHT = "RIGHT"

# Lease names
CONTROLLER_LEASE_PREFIX = "partition-controller"

# Defaults (overridable via environment, see utils/database_config.py)
DEFAULT_DUCKDB_DATABASE_PATH = "data/partition_lifecycle.duckdb"
DEFAULT_LEAD_INTERVAL = "1 month"
DEFAULT_LEASE_TTL_SECONDS = 300
DEFAULT_BATCH_SIZE = 100_000
DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_BACKOFF_SECONDS = 1.0
DEFAULT_BACKOFF_MULTIPLIER = 2.0
DEFAULT_BATCH_TIMEOUT_SECONDS = 300
DEFAULT_MAINTENANCE_CRON = "0 1 * * *"  # Daily at 1 AM
DEFAULT_MIGRATION_CRON = "0 3 * * *"  # Daily at 3 AM


# Dagster retry policy for assets that talk to the database
RETRY_POLICY_MAX_RETRIES_DEFAULT = 2
RETRY_POLICY_DELAY_DEFAULT = 30  # seconds

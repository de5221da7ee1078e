from dagster import (
    AssetSelection,
    DefaultScheduleStatus,
    Definitions,
    ScheduleDefinition,
    define_asset_job,
    load_asset_checks_from_modules,
    load_assets_from_modules,
)
from dagster_msteams import (
    MSTeamsResource,
    make_teams_on_run_failure_sensor,
)
from dagster_polars import PolarsParquetIOManager
from decouple import config

from partition_lifecycle.assets import (
    partition_archival,
    partition_maintenance,
    subset_migration,
)
from partition_lifecycle.notifications.teams_messages import failure_message_fn
from partition_lifecycle.utils.database_config import (
    get_database_resource,
    get_maintenance_cron,
    get_migration_cron,
    get_subset_migration_run_config,
)

all_assets = load_assets_from_modules([partition_maintenance, subset_migration, partition_archival])

all_asset_checks = load_asset_checks_from_modules([partition_maintenance, subset_migration])

resources = {
    "duckdb": get_database_resource(),
    "polars_parquet_io_manager": PolarsParquetIOManager(
        base_dir=config("PARQUET_BASE_DIR", default="data/parquet")
    ),
}

# Define jobs
partition_maintenance_job = define_asset_job(
    name="partition_maintenance_job",
    selection=AssetSelection.groups("partition_maintenance"),
    description="Keep an empty partition ahead of incoming data for every partitioned table",
)

subset_migration_job = define_asset_job(
    name="subset_migration_job",
    selection=AssetSelection.groups("subset_migration"),
    description="Copy a filtered subset of a table in resumable, key-preserving batches",
)

partition_archival_job = define_asset_job(
    name="partition_archival_job",
    selection=AssetSelection.groups("partition_archival"),
    description="Switch one partition out to an archive table",
)

# Define schedules; archival is launched by operators and has none
partition_maintenance_schedule = ScheduleDefinition(
    name="partition_maintenance_schedule",
    job=partition_maintenance_job,
    cron_schedule=get_maintenance_cron(),
)

subset_migration_run_config = get_subset_migration_run_config()
subset_migration_schedule = ScheduleDefinition(
    name="subset_migration_schedule",
    job=subset_migration_job,
    cron_schedule=get_migration_cron(),
    run_config=subset_migration_run_config,
    # Stays off until a source table is configured
    default_status=(
        DefaultScheduleStatus.RUNNING
        if subset_migration_run_config["ops"]["migrate_filtered_subset"]["config"]["source_table"]
        else DefaultScheduleStatus.STOPPED
    ),
)

sensors = []

teams_webhook_url = config("TEAMS_WEBHOOK_URL", default="")
webserver_base_url = config("DAGSTER_WEBSERVER_URL", default="") or None

if teams_webhook_url:
    resources["msteams"] = MSTeamsResource(hook_url=teams_webhook_url)
    sensors.append(
        make_teams_on_run_failure_sensor(
            hook_url=teams_webhook_url,
            message_fn=failure_message_fn,
            webserver_base_url=webserver_base_url,
        )
    )

defs = Definitions(
    assets=all_assets,
    asset_checks=all_asset_checks,
    jobs=[partition_maintenance_job, subset_migration_job, partition_archival_job],
    schedules=[partition_maintenance_schedule, subset_migration_schedule],
    sensors=sensors,
    resources=resources,
)

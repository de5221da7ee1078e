"""Durable key-value store for migration run cursors."""

from typing import List, Optional

from dagster import get_dagster_logger

from partition_catalog import ddl
from partition_catalog.models import MigrationCursor, MigrationJob, MigrationStatus
from partition_catalog.utils import query_to_dict, query_to_dict_list
from partition_lifecycle.resources.database_protocol import PartitionedDatabaseResource
from partition_lifecycle.utils.datetime_utils import to_naive_utc, utc_now
from partition_lifecycle.utils.exceptions import NotFoundError

logger = get_dagster_logger()


class MigrationCursorStore:
    """Manager for MigrationCursor records keyed by run id.

    Cursor advances are written with the same database resource as the batch
    they describe, so calling ``advance`` inside the batch transaction commits
    the cursor atomically with the migrated rows.
    """

    def __init__(self, database: PartitionedDatabaseResource):
        """Initialize with a partitioned database resource."""
        self.database = database

    def get(self, run_id: str) -> Optional[MigrationCursor]:
        """Get the cursor of a run, or None if the run is unknown."""
        result = self.database.execute_query(ddl.GET_MIGRATION_CURSOR, parameters={"run_id": run_id})
        row = query_to_dict(result)
        return MigrationCursor(**row) if row else None

    def require(self, run_id: str) -> MigrationCursor:
        """Get the cursor of a run.

        Raises:
            NotFoundError: If the run is unknown
        """
        cursor = self.get(run_id)
        if cursor is None:
            raise NotFoundError(f"Migration run '{run_id}' has no persisted cursor")
        return cursor

    def list_cursors(self) -> List[MigrationCursor]:
        """List all persisted cursors ordered by run id."""
        result = self.database.execute_query(ddl.LIST_MIGRATION_CURSORS)
        return [MigrationCursor(**row) for row in query_to_dict_list(result)]

    def get_or_create(self, job: MigrationJob) -> MigrationCursor:
        """Load the cursor for a job, registering the run if it is new.

        Raises:
            ValueError: If the run id is already used for different tables
        """
        cursor = self.get(job.run_id)
        if cursor is None:
            self.database.execute_command(
                ddl.INSERT_MIGRATION_CURSOR,
                parameters={
                    "run_id": job.run_id,
                    "source_table": job.source_table,
                    "destination_table": job.destination_table,
                    "status": MigrationStatus.PENDING.value,
                },
            )
            logger.info(f"Registered migration run {job.run_id}")
            return self.require(job.run_id)

        if (cursor.source_table, cursor.destination_table) != (job.source_table, job.destination_table):
            raise ValueError(
                f"Migration run '{job.run_id}' was registered for "
                f"{cursor.source_table} -> {cursor.destination_table}, "
                f"not {job.source_table} -> {job.destination_table}"
            )
        return cursor

    def advance(self, run_id: str, cursor_value: str, rows: int) -> None:
        """Record a committed batch: move the cursor and add to the counters."""
        self.database.execute_command(
            ddl.ADVANCE_MIGRATION_CURSOR,
            parameters={
                "run_id": run_id,
                "cursor_value": cursor_value,
                "rows": rows,
                "status": MigrationStatus.RUNNING.value,
                "now": to_naive_utc(utc_now()),
            },
        )

    def set_status(
        self, run_id: str, status: MigrationStatus, last_error: Optional[str] = None
    ) -> None:
        """Update a run's status and last error."""
        self.database.execute_command(
            ddl.SET_MIGRATION_STATUS,
            parameters={
                "run_id": run_id,
                "status": status.value,
                "last_error": last_error,
                "now": to_naive_utc(utc_now()),
            },
        )

    def delete(self, run_id: str) -> bool:
        """Delete a run's cursor.

        Returns:
            True if a cursor was deleted
        """
        existed = self.get(run_id) is not None
        self.database.execute_command(ddl.DELETE_MIGRATION_CURSOR, parameters={"run_id": run_id})
        if existed:
            logger.info(f"Deleted cursor for migration run {run_id}")
        return existed

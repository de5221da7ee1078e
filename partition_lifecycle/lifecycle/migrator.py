"""Bulk subset migrator: restartable, batched, key-preserving copy of filtered rows.

Rows matching a predicate are copied from a source table to a destination
table in key order. Every batch commits together with its cursor, so an
interrupted run resumes after the last committed key and never copies a row
twice.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

import duckdb
from dagster import get_dagster_logger

from partition_catalog import ddl
from partition_catalog.migration_cursors import MigrationCursorStore
from partition_catalog.models import (
    BatchResult,
    MigrationCursor,
    MigrationJob,
    MigrationStatus,
    SwitchOutResult,
)
from partition_catalog.partition_scheme import PartitionSchemeManager
from partition_catalog.utils import (
    column_type,
    format_key_value,
    quote_columns,
    require_table,
)
from partition_lifecycle.resources.database_protocol import PartitionedDatabaseResource
from partition_lifecycle.resources.duckdb_resource import is_transient_error, quote_identifier
from partition_lifecycle.utils.constants import (
    DEFAULT_BACKOFF_MULTIPLIER,
    DEFAULT_BACKOFF_SECONDS,
    DEFAULT_BATCH_TIMEOUT_SECONDS,
    DEFAULT_MAX_ATTEMPTS,
)
from partition_lifecycle.utils.exceptions import (
    FatalMigrationError,
    NotFoundError,
    PartitionLifecycleError,
    SchemaMismatchError,
)

logger = get_dagster_logger()


@dataclass(frozen=True)
class _BatchPlan:
    """Resolved, quoted SQL fragments for one migration job."""

    source: str
    destination: str
    key: str
    key_type: str
    columns: str
    source_columns: str


class BulkSubsetMigrator:
    """Copies a filtered subset of a table in committed, resumable batches.

    Args:
        database: Database resource shared with the cursor store
        cursors: Cursor store; defaults to one on ``database``
        scheme: Partition scheme manager used by ``switch_out``
        max_attempts: Attempts per batch before a transient failure escalates
        backoff_seconds: Delay before the first retry
        backoff_multiplier: Growth factor of the retry delay
        batch_timeout_seconds: Per-batch timeout; None or 0 disables it
        sleep: Sleep function used between retries
    """

    def __init__(
        self,
        database: PartitionedDatabaseResource,
        cursors: Optional[MigrationCursorStore] = None,
        scheme: Optional[PartitionSchemeManager] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
        backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
        batch_timeout_seconds: Optional[float] = DEFAULT_BATCH_TIMEOUT_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.database = database
        self.cursors = cursors or MigrationCursorStore(database)
        self.scheme = scheme or PartitionSchemeManager(database)
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.backoff_multiplier = backoff_multiplier
        self.batch_timeout_seconds = batch_timeout_seconds
        self.sleep = sleep

    def _plan(self, job: MigrationJob) -> _BatchPlan:
        """Validate the job against both tables and build its SQL fragments.

        Raises:
            NotFoundError: If either table or the key column is missing
            SchemaMismatchError: If a copied column is missing on either side
                or the source key column is not unique
        """
        source_columns = require_table(self.database, job.source_table)
        destination_columns = require_table(self.database, job.destination_table)
        key_type = column_type(source_columns, job.key_column, job.source_table)
        key_constraints = {f"PRIMARY KEY({job.key_column})", f"UNIQUE({job.key_column})"}
        source_constraints = self.database.get_table_constraints(job.source_table)

        source_names = {c["name"] for c in source_columns}
        destination_names = [c["name"] for c in destination_columns]
        columns: List[str] = list(job.columns or destination_names)

        mismatches = []
        missing_in_source = [c for c in columns if c not in source_names]
        if missing_in_source:
            mismatches.append(f"columns missing in {job.source_table}: {missing_in_source}")
        missing_in_destination = [c for c in columns if c not in destination_names]
        if missing_in_destination:
            mismatches.append(f"columns missing in {job.destination_table}: {missing_in_destination}")
        if job.key_column not in columns:
            mismatches.append(f"key column '{job.key_column}' is not among the copied columns")
        if not key_constraints.intersection(source_constraints):
            mismatches.append(
                f"key column '{job.key_column}' has no PRIMARY KEY or UNIQUE constraint in {job.source_table}"
            )
        if mismatches:
            raise SchemaMismatchError(
                f"Migration run '{job.run_id}' cannot copy {job.source_table} -> "
                f"{job.destination_table}: " + "; ".join(mismatches),
                mismatches=mismatches,
            )

        return _BatchPlan(
            source=quote_identifier(job.source_table),
            destination=quote_identifier(job.destination_table),
            key=quote_identifier(job.key_column),
            key_type=key_type,
            columns=quote_columns(columns),
            source_columns=quote_columns(columns, alias="s"),
        )

    def _where_clause(
        self, job: MigrationJob, plan: _BatchPlan, cursor_value: Optional[str]
    ) -> Tuple[str, Dict[str, Any]]:
        conditions = [f"s.{plan.key} IS NOT NULL"]
        params: Dict[str, Any] = {}
        if job.predicate.strip():
            conditions.append(f"({job.predicate})")
        if cursor_value is not None:
            conditions.append(f"s.{plan.key} > CAST({{cursor_key:String}} AS {plan.key_type})")
            params["cursor_key"] = cursor_value
        return " AND ".join(conditions), params

    def _execute_batch(
        self, job: MigrationJob, plan: _BatchPlan, cursor_value: Optional[str]
    ) -> Tuple[int, Optional[str]]:
        """Copy the next batch and advance the cursor in one transaction."""
        where_clause, params = self._where_clause(job, plan, cursor_value)

        with self.database.transaction():
            window = self.database.execute_query(
                ddl.BATCH_KEY_WINDOW.format(
                    source=plan.source,
                    destination=plan.destination,
                    key=plan.key,
                    where_clause=where_clause,
                ),
                parameters={**params, "batch_size": job.batch_size},
            )
            upper_key, row_count = window.result_rows[0]
            if not row_count:
                return 0, cursor_value

            upper_text = format_key_value(upper_key)
            self.database.execute_command(
                ddl.INSERT_BATCH.format(
                    destination=plan.destination,
                    columns=plan.columns,
                    source_columns=plan.source_columns,
                    source=plan.source,
                    where_clause=where_clause,
                    key=plan.key,
                    key_type=plan.key_type,
                ),
                parameters={**params, "upper_key": upper_text},
            )
            self.cursors.advance(job.run_id, upper_text, int(row_count))

        return int(row_count), upper_text

    def _run_batch(self, job: MigrationJob, plan: _BatchPlan, cursor: MigrationCursor) -> BatchResult:
        batch_number = cursor.batches_committed + 1
        started = time.monotonic()
        attempt = 0

        while True:
            attempt += 1
            try:
                rows, cursor_after = self.database.run_with_timeout(
                    lambda: self._execute_batch(job, plan, cursor.cursor_value),
                    self.batch_timeout_seconds,
                )
                break
            except (duckdb.Error, PartitionLifecycleError) as e:
                transient = is_transient_error(e)
                if transient and attempt < self.max_attempts:
                    delay = self.backoff_seconds * self.backoff_multiplier ** (attempt - 1)
                    logger.warning(
                        f"Run {job.run_id} batch {batch_number} attempt {attempt}/{self.max_attempts} "
                        f"failed with a transient error, retrying in {delay:.1f}s: {e}"
                    )
                    self.sleep(delay)
                    continue

                if transient:
                    message = (
                        f"Run {job.run_id} batch {batch_number} failed after "
                        f"{attempt} attempts: {e}"
                    )
                else:
                    message = f"Run {job.run_id} batch {batch_number} failed: {e}"
                self.cursors.set_status(job.run_id, MigrationStatus.FAILED, last_error=str(e))
                logger.error(f"{message} (last committed key: {cursor.cursor_value})")
                raise FatalMigrationError(
                    message,
                    run_id=job.run_id,
                    last_cursor=cursor.cursor_value,
                    attempts=attempt,
                ) from e

        result = BatchResult(
            run_id=job.run_id,
            batch_number=batch_number,
            rows_migrated=rows,
            cursor_before=cursor.cursor_value,
            cursor_after=cursor_after,
            attempts=attempt,
            duration_seconds=time.monotonic() - started,
        )
        if rows:
            logger.info(
                f"Run {job.run_id} batch {batch_number}: {rows} rows, "
                f"keys ({cursor.cursor_value}, {cursor_after}] in {result.duration_seconds:.2f}s"
            )
        return result

    def _prepare(self, job: MigrationJob) -> Tuple[_BatchPlan, MigrationCursor]:
        """Load the run's cursor, then validate the job against the current schemas.

        A schema problem aborts the run: it is marked FAILED and the error keeps
        the last committed key, so the run resumes there once the tables are fixed.

        Raises:
            FatalMigrationError: If a table, the key column or a copied column is
                missing, or the source key is not unique
        """
        cursor = self.cursors.get_or_create(job)
        try:
            plan = self._plan(job)
        except (NotFoundError, SchemaMismatchError) as e:
            self.cursors.set_status(job.run_id, MigrationStatus.FAILED, last_error=str(e))
            logger.error(f"Migration run {job.run_id} aborted: {e} (last committed key: {cursor.cursor_value})")
            raise FatalMigrationError(
                f"Migration run '{job.run_id}' aborted: {e}",
                run_id=job.run_id,
                last_cursor=cursor.cursor_value,
                attempts=0,
            ) from e
        return plan, cursor

    def run_batch(self, job: MigrationJob) -> BatchResult:
        """Run a single batch of a migration job.

        Returns:
            BatchResult; ``rows_migrated == 0`` means nothing is left to copy

        Raises:
            FatalMigrationError: If the batch cannot be committed
        """
        plan, cursor = self._prepare(job)
        return self._run_batch(job, plan, cursor)

    def migrate(self, job: MigrationJob) -> Iterator[BatchResult]:
        """Copy every matching row in batches, yielding one result per committed batch.

        Iteration is lazy: each batch runs when the next result is requested,
        so a caller that stops iterating cancels the run after the last
        committed batch. Re-running the same job resumes from its cursor.

        Args:
            job: Migration job to run

        Yields:
            BatchResult for each non-empty batch

        Raises:
            FatalMigrationError: If the tables do not fit the job or a batch fails
                permanently
        """
        plan, cursor = self._prepare(job)
        logger.info(
            f"Migrating {job.source_table} -> {job.destination_table} (run {job.run_id}, "
            f"batch size {job.batch_size}, resuming after {cursor.cursor_value})"
        )

        while True:
            result = self._run_batch(job, plan, cursor)
            if result.rows_migrated == 0:
                self.cursors.set_status(job.run_id, MigrationStatus.COMPLETED)
                completed = self.cursors.require(job.run_id)
                logger.info(
                    f"Migration run {job.run_id} completed: {completed.rows_migrated} rows "
                    f"in {completed.batches_committed} batches"
                )
                return
            yield result
            cursor = self.cursors.require(job.run_id)

    def reset(self, run_id: str) -> bool:
        """Forget a run's cursor so the next run with this id starts over.

        Returns:
            True if a cursor existed
        """
        return self.cursors.delete(run_id)

    def switch_out(self, table: str, partition_ordinal: int, archive_table: str) -> SwitchOutResult:
        """Move one partition of ``table`` into ``archive_table``.

        See PartitionSchemeManager.switch_out for the preconditions.
        """
        return self.scheme.switch_out(table, partition_ordinal, archive_table)

"""Custom exceptions for partition lifecycle management."""

from typing import Any, List, Optional


class PartitionLifecycleError(Exception):
    """Base exception for partition lifecycle operations."""

    pass


class NotFoundError(PartitionLifecycleError):
    """Raised when a table, partition function or partition is missing."""

    pass


class ConflictError(PartitionLifecycleError):
    """Raised when a boundary mutation races with another writer.

    Carries the last-known-good boundary list so operators can diagnose
    the conflict and re-run with a fresh read.
    """

    def __init__(self, message: str, boundaries: Optional[List[Any]] = None):
        super().__init__(message)
        self.boundaries = list(boundaries) if boundaries is not None else []


class BoundaryOrderError(ConflictError):
    """Raised when a new boundary is not strictly greater than the current maximum."""

    pass


class TransientError(PartitionLifecycleError):
    """Raised for timeouts, interrupts and write-write conflicts that may succeed on retry."""

    pass


class FatalMigrationError(PartitionLifecycleError):
    """Raised when a migration run must be aborted.

    ``last_cursor`` is the key of the last committed batch (None if nothing
    was committed yet), so the run can be resumed once the cause is fixed.
    """

    def __init__(
        self,
        message: str,
        run_id: Optional[str] = None,
        last_cursor: Optional[str] = None,
        attempts: int = 0,
    ):
        super().__init__(message)
        self.run_id = run_id
        self.last_cursor = last_cursor
        self.attempts = attempts


class SchemaMismatchError(PartitionLifecycleError):
    """Raised when tables do not fit a switch-out or a subset migration."""

    def __init__(self, message: str, mismatches: Optional[List[str]] = None):
        super().__init__(message)
        self.mismatches = list(mismatches) if mismatches is not None else []

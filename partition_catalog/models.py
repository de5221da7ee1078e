"""Pydantic models for partition metadata, migration state and results."""

from datetime import date, datetime
from enum import Enum
from typing import Any, List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from partition_lifecycle.utils.constants import TEMPORAL_BOUNDARY_TYPES

BoundaryValue = Union[datetime, date, int]


class MigrationStatus(str, Enum):
    """Migration run status enumeration."""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class PartitionFunction(BaseModel):
    """A table registered as range partitioned on one column."""

    table_name: str = Field(..., min_length=1)
    partition_column: str = Field(..., min_length=1)
    boundary_type: str
    range_type: str = "RIGHT"
    created_at: Optional[datetime] = None

    @property
    def is_temporal(self) -> bool:
        return self.boundary_type in TEMPORAL_BOUNDARY_TYPES


class PartitionBoundary(BaseModel):
    """An ordered, unique boundary value delimiting two adjacent partitions."""

    table_name: str
    value: BoundaryValue
    created_at: Optional[datetime] = None

    def __str__(self) -> str:
        return str(self.value)


class PartitionRange(BaseModel):
    """Half-open interval [lower_bound, upper_bound) between consecutive boundaries.

    ``lower_bound`` is None for the first partition and ``upper_bound`` is None
    for the last one.
    """

    table_name: str
    ordinal: int = Field(..., ge=1)
    lower_bound: Optional[BoundaryValue] = None
    upper_bound: Optional[BoundaryValue] = None
    row_count: Optional[int] = None

    def contains(self, value: Any) -> bool:
        """Check whether a value falls into this range."""
        if self.lower_bound is not None and value < self.lower_bound:
            return False
        if self.upper_bound is not None and value >= self.upper_bound:
            return False
        return True


class MigrationJob(BaseModel):
    """A subset-migration job: copy rows matching a predicate from source to destination."""

    run_id: str = Field(..., min_length=1)
    source_table: str = Field(..., min_length=1)
    destination_table: str = Field(..., min_length=1)
    key_column: str = Field(..., min_length=1)
    predicate: str = ""
    batch_size: int = Field(..., gt=0)
    columns: Optional[List[str]] = None

    @field_validator("columns")
    @classmethod
    def validate_columns(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        """Reject empty or duplicated column lists."""
        if v is None:
            return v
        if not v:
            raise ValueError("columns must not be empty when provided")
        if len(set(v)) != len(v):
            raise ValueError("columns must not contain duplicates")
        return v


class MigrationCursor(BaseModel):
    """Persisted progress of a migration run, keyed by run_id."""

    run_id: str
    source_table: str
    destination_table: str
    cursor_value: Optional[str] = None
    batches_committed: int = 0
    rows_migrated: int = 0
    status: MigrationStatus = MigrationStatus.PENDING
    last_error: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BatchResult(BaseModel):
    """Outcome of one committed migration batch."""

    run_id: str
    batch_number: int
    rows_migrated: int
    cursor_before: Optional[str] = None
    cursor_after: Optional[str] = None
    attempts: int = 1
    duration_seconds: float = 0.0


class BoundaryAdvanceResult(BaseModel):
    """Outcome of one ensure-boundary-ahead call."""

    table_name: str
    boundaries_before: List[BoundaryValue]
    boundaries_after: List[BoundaryValue]
    added_boundary: Optional[BoundaryValue] = None
    rows_in_split_range: int = 0
    behind_schedule: bool = False

    @property
    def is_noop(self) -> bool:
        return self.added_boundary is None


class SwitchOutResult(BaseModel):
    """Outcome of switching a partition out to an archive table."""

    table_name: str
    archive_table: str
    partition_ordinal: int
    lower_bound: Optional[BoundaryValue] = None
    upper_bound: Optional[BoundaryValue] = None
    rows_switched: int = 0

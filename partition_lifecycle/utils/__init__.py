"""Utility modules for partition lifecycle assets."""

from partition_lifecycle.utils.exceptions import (
    BoundaryOrderError,
    ConflictError,
    FatalMigrationError,
    NotFoundError,
    PartitionLifecycleError,
    SchemaMismatchError,
    TransientError,
)

__all__ = [
    # Exceptions
    "BoundaryOrderError",
    "ConflictError",
    "FatalMigrationError",
    "NotFoundError",
    "PartitionLifecycleError",
    "SchemaMismatchError",
    "TransientError",
]

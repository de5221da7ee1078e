from . import (
    partition_archival,
    partition_maintenance,
    subset_migration,
)

__all__ = [
    "partition_archival",
    "partition_maintenance",
    "subset_migration",
]

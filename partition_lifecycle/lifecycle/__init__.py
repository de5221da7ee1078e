"""Lifecycle controller and bulk subset migrator."""

from partition_lifecycle.lifecycle.controller import PartitionLifecycleController
from partition_lifecycle.lifecycle.migrator import BulkSubsetMigrator
from partition_lifecycle.lifecycle.periods import Period, advance

__all__ = [
    "BulkSubsetMigrator",
    "PartitionLifecycleController",
    "Period",
    "advance",
]

"""Partition boundary maintenance assets."""

from .asset_checks import check_boundaries_strictly_increasing
from .assets import ensure_partition_boundaries

__all__ = [
    "ensure_partition_boundaries",
    "check_boundaries_strictly_increasing",
]

"""Filtered subset migration assets."""

from .asset_checks import check_destination_keys_unique
from .assets import migrate_filtered_subset

__all__ = [
    "migrate_filtered_subset",
    "check_destination_keys_unique",
]

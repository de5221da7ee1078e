"""Partition archival assets."""

from .assets import switch_out_partition

__all__ = ["switch_out_partition"]

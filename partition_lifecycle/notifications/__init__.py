"""Notifications for failed partition lifecycle runs."""

from partition_lifecycle.notifications.message_builders import (
    build_failure_message,
    describe_run_tables,
)
from partition_lifecycle.notifications.teams_messages import failure_message_fn

__all__ = [
    "build_failure_message",
    "describe_run_tables",
    "failure_message_fn",
]

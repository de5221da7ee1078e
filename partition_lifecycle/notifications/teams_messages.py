"""Teams message function for the run failure sensor."""

from dagster import RunFailureSensorContext

from partition_lifecycle.notifications.message_builders import build_failure_message


def failure_message_fn(context: RunFailureSensorContext) -> str:
    """Teams markdown message naming the job, tables and error of a failed run."""
    return build_failure_message(context, format_type="teams")

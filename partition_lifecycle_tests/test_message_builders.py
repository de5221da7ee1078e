"""Tests for notification message building."""

from types import SimpleNamespace

import pytest

from partition_lifecycle.notifications.message_builders import (
    build_failure_message,
    describe_run_tables,
    load_template,
    render_message,
)
from partition_lifecycle.notifications.teams_messages import failure_message_fn

MIGRATION_RUN_CONFIG = {
    "ops": {
        "migrate_filtered_subset": {
            "config": {
                "run_id": "copy-2020",
                "source_table": "orders",
                "destination_table": "orders_copy",
                "key_column": "id",
            }
        }
    }
}


def _context(run_config=None, failure_message=None, webserver_url=None):
    run = SimpleNamespace(
        job_name="subset_migration_job",
        run_id="abc123",
        run_config=run_config or {},
    )
    failure_event = SimpleNamespace(message=failure_message) if failure_message else None
    return SimpleNamespace(
        dagster_run=run,
        failure_event=failure_event,
        instance=SimpleNamespace(webserver_url=webserver_url),
    )


def test_describe_run_tables():
    """Test collecting table names from a run config."""
    assert describe_run_tables(MIGRATION_RUN_CONFIG) == "orders, orders_copy"
    maintenance = {"ops": {"ensure_partition_boundaries": {"config": {"tables": ["a", "b", "a"]}}}}
    assert describe_run_tables(maintenance) == "a, b"
    assert describe_run_tables({}) == ""


def test_failure_message_teams_format():
    """Test that the Teams failure message includes job, tables, error and run link."""
    message = failure_message_fn(
        _context(
            MIGRATION_RUN_CONFIG,
            failure_message="FatalMigrationError: batch 3 failed",
            webserver_url="http://dagster:3000",
        )
    )

    assert message.startswith("**Partition lifecycle job failed: subset_migration_job**")
    assert "**Tables:** orders, orders_copy" in message
    assert "**Error:** FatalMigrationError: batch 3 failed" in message
    assert "**Run:** http://dagster:3000/runs/abc123" in message


def test_failure_message_plain_text_without_event():
    """Test plain text rendering and the fallbacks for missing event and URL."""
    message = build_failure_message(_context(), format_type="text")

    assert message.startswith("Partition lifecycle job failed: subset_migration_job")
    assert "Error: Unknown error" in message
    assert "Run: Run ID: abc123" in message
    assert "Tables:" not in message


def test_render_message_skips_empty_fields():
    """Test that fields rendering empty are left out of the message."""
    template = {
        "title": "Job {job_name}",
        "fields": [{"name": "Tables", "value": "{tables}"}, {"name": "Run", "value": "{run_id}"}],
    }
    message = render_message(template, {"job_name": "j", "tables": "", "run_id": "r1"}, format_type="text")
    assert message == "Job j\n\nRun: r1"


def test_load_template_unknown_name():
    """Test that asking for a template the file does not define raises KeyError."""
    assert "title" in load_template("failure")
    with pytest.raises(KeyError):
        load_template("success")

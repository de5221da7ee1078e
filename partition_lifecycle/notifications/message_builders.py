"""Failure notifications for partition lifecycle runs.

The message layout lives in ``teams_templates.yaml``; the values come from the
failed run: its job, the tables named in its run config and the error.
"""

from pathlib import Path
from typing import Any, Dict, List, Literal

import yaml
from dagster import RunFailureSensorContext, get_dagster_logger

logger = get_dagster_logger()

TEMPLATE_PATH = Path(__file__).parent / "teams_templates.yaml"

# Run config keys naming the tables an asset works on
TABLE_CONFIG_KEYS = ("table", "tables", "source_table", "destination_table", "archive_table")


def load_template(name: str) -> Dict[str, Any]:
    """Load one message template by name.

    Raises:
        FileNotFoundError: If the template file is missing
        KeyError: If the file has no template with that name
    """
    if not TEMPLATE_PATH.exists():
        raise FileNotFoundError(f"Template file not found: {TEMPLATE_PATH}")
    with open(TEMPLATE_PATH, "r") as f:
        templates = yaml.safe_load(f) or {}
    if name not in templates:
        raise KeyError(f"No '{name}' template in {TEMPLATE_PATH}")
    return templates[name]


def render_message(
    template: Dict[str, Any],
    values: Dict[str, str],
    format_type: Literal["teams", "text"] = "teams",
) -> str:
    """Render a template as Teams markdown or plain text.

    Fields whose value renders empty are left out.
    """
    bold = (lambda s: f"**{s}**") if format_type == "teams" else (lambda s: s)

    lines = [bold(template.get("title", "").format(**values)), ""]
    for field in template.get("fields", []):
        value = field.get("value", "").format(**values)
        if value:
            lines.append(f"{bold(field['name'] + ':')} {value}")

    footer = template.get("footer")
    if footer:
        lines.extend(["", footer])
    return "\n".join(lines)


def describe_run_tables(run_config: Dict[str, Any]) -> str:
    """Collect the table names configured for a run's assets.

    Args:
        run_config: Dagster run config (``{"ops": {name: {"config": {...}}}}``)

    Returns:
        Comma separated, de-duplicated table names in config order
    """
    tables: List[str] = []
    for op_config in (run_config or {}).get("ops", {}).values():
        config = (op_config or {}).get("config", {}) or {}
        for key in TABLE_CONFIG_KEYS:
            value = config.get(key)
            for table in value if isinstance(value, list) else [value]:
                if table and table not in tables:
                    tables.append(table)
    return ", ".join(tables)


def run_link(context: RunFailureSensorContext) -> str:
    """Link to the run in the webserver, or just its id when no URL is known."""
    run_id = context.dagster_run.run_id
    webserver_url = getattr(context.instance, "webserver_url", None)
    return f"{webserver_url}/runs/{run_id}" if webserver_url else f"Run ID: {run_id}"


def build_failure_message(
    context: RunFailureSensorContext,
    format_type: Literal["teams", "text"] = "teams",
) -> str:
    """Build the notification for a failed run.

    Args:
        context: Run failure sensor context
        format_type: "teams" for markdown, "text" for plain text

    Returns:
        Rendered message

    Raises:
        Exception: Rendering errors are logged and re-raised
    """
    run = context.dagster_run
    try:
        error_message = "Unknown error"
        if context.failure_event:
            error_message = context.failure_event.message or str(context.failure_event)

        return render_message(
            load_template("failure"),
            {
                "job_name": run.job_name,
                "run_id": run.run_id,
                "tables": describe_run_tables(run.run_config),
                "error_message": error_message,
                "run_url": run_link(context),
            },
            format_type=format_type,
        )
    except Exception as e:
        logger.error(
            f"Failed to build failure notification for job '{run.job_name}', run {run.run_id}: {e!s}",
            exc_info=True,
        )
        raise

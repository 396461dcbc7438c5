"""
Structured logging for workflow events.

Services log through ``logging.getLogger(__name__)`` and attach workflow
context with ``extra=``::

    logger.info("Project %s advanced", ref,
                extra={"project_id": pid, "stage_id": sid, "operation": "advance_stage"})

Production renders one JSON object per record with those keys lifted to
the top level. Development and testing render a colored line that shows
the operation and project inline. LOG_LEVEL overrides the default level.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

# Workflow context keys lifted out of ``extra=``
WORKFLOW_KEYS = (
    "operation",
    "entity_type",
    "project_id",
    "stage_id",
    "acceptance_id",
    "status_change_id",
    "request_id",
    "meeting_id",
    "actor_id",
    "event_type",
)


def workflow_context(record: logging.LogRecord) -> dict:
    """The workflow keys present on *record*, in WORKFLOW_KEYS order."""
    return {
        key: getattr(record, key)
        for key in WORKFLOW_KEYS
        if getattr(record, key, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON document per record, for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }
        entry.update(workflow_context(record))
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Colored single-line format for a terminal."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        context = workflow_context(record)
        tag = ""
        if "operation" in context:
            tag = f" [{context['operation']}]"
        if "project_id" in context:
            tag += f" project={context['project_id']}"
        line = f"{color}{ts} {record.levelname:<8}{self.RESET} {record.name}{tag}: {record.getMessage()}"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """
    Install one stderr handler on the root logger.

    JSON when the app is neither in DEBUG nor TESTING, readable otherwise.
    Default level is INFO for JSON output and DEBUG for readable output.
    """
    is_testing = app.config.get("TESTING", False)
    as_json = not app.config.get("DEBUG", False) and not is_testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if as_json else "DEBUG").upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if as_json else ReadableFormatter())
    handler.setLevel(level)

    root = logging.getLogger()
    # Replaces earlier handlers when tests build several apps
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # SQL echo and migration chatter stay at WARNING
    for noisy in ("sqlalchemy.engine", "alembic"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    app.logger.setLevel(level)
    if not is_testing:
        app.logger.info("Logging configured: level=%s format=%s",
                        level_name, "JSON" if as_json else "readable")

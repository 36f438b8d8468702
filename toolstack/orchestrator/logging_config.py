"""
ToolStack Logging Configuration
===============================

Console lines for development, JSON lines for log aggregation, optional
rotating log file.

The sync pipeline attaches run context through ``extra=``:

    logger.info("Batch 3 done", extra={"run_id": run_id, "target": "text", "batch": 3})
    logger.warning("Category missing", extra={"tool_id": tool_id})

Both formatters surface those keys, so one bulk run (or one tool) can be
followed through the log:

    2025-06-01 12:00:04 INFO    toolstack.sync.bulk: Batch 3 done [run_id=sync-text-1a2b target=text batch=3]
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

# Keys the sync pipeline passes through ``extra=``, in display order
CONTEXT_KEYS = ("run_id", "target", "batch", "tool_id")

NOISY_LOGGERS = ("urllib3", "httpx", "openai", "elastic_transport", "apscheduler")

CONSOLE_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def record_context(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key: getattr(record, key)
        for key in CONTEXT_KEYS
        if getattr(record, key, None) is not None
    }


class ContextFormatter(logging.Formatter):
    """Console format with sync context appended as ``[key=value ...]``."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = record_context(record)
        if context:
            pairs = " ".join(f"{key}={value}" for key, value in context.items())
            line = f"{line} [{pairs}]"
        return line


class JSONFormatter(logging.Formatter):
    """One JSON object per record; context keys become top-level fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update(record_context(record))
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[str] = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
):
    """
    Configure the root logger for the API, CLI and cron entry points.

    Args:
        level: Root log level name
        json_output: JSON lines instead of console lines
        log_file: Also write to this file, rotated at ``max_bytes``
    """
    if json_output:
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = ContextFormatter(CONSOLE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    handlers: list = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            log_file, maxBytes=max_bytes, backupCount=backup_count,
        ))

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.debug(f"Logging configured: level={level} json={json_output} file={log_file or 'none'}")

# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Structured logging setup for the symbol flow index.

Index runs and tool calls log to a daily JSON-lines file; an optional
console handler mirrors records in plain text on stderr, since stdout
carries the MCP stdio transport.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

DEFAULT_LOG_DIRNAME = ".symbol_flow_logs"

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CONSOLE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class StructuredFormatter(logging.Formatter):
    """One JSON object per record.

    Records may carry an ``extra_fields`` dict (passed as
    ``extra={"extra_fields": {...}}``); its keys are merged into the object.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "location": f"{record.module}:{record.lineno}",
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        fields = getattr(record, "extra_fields", None)
        if isinstance(fields, dict):
            entry.update(fields)
        return json.dumps(entry)


def log_file_path(log_dir: Path) -> Path:
    """Daily log file inside ``log_dir``."""
    day = datetime.now(timezone.utc).strftime("%Y%m%d")
    return log_dir / f"symbol_flow_{day}.log"


def _json_file_handler(log_file: Path, level: int) -> logging.Handler:
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(StructuredFormatter())
    return handler


def _stderr_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=CONSOLE_DATE_FORMAT))
    return handler


def setup_logging(
    log_dir: Optional[Path] = None,
    log_level: int = logging.INFO,
    console_output: bool = True,
) -> Path:
    """Replace the root logger's handlers with the index's own.

    Args:
        log_dir: Directory for log files (default: ./.symbol_flow_logs)
        log_level: Level for the root logger and every handler
        console_output: Also log human-readable lines to stderr

    Returns:
        Path of the JSON-lines log file.
    """
    log_dir = Path(log_dir) if log_dir is not None else Path.cwd() / DEFAULT_LOG_DIRNAME
    log_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(log_level)
    for old in list(root.handlers):
        root.removeHandler(old)
        old.close()

    log_file = log_file_path(log_dir)
    root.addHandler(_json_file_handler(log_file, log_level))
    if console_output:
        root.addHandler(_stderr_handler(log_level))

    logging.info(f"Logging initialized. Log directory: {log_dir}")
    return log_file

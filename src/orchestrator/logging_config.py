"""
ReviewPulse Structured Logging Configuration
============================================

Logging for the analytics service and CLI.

Alert context travels on records as ``extra`` fields (business, alert_id,
category, severity, duration). Both formatters render it: the JSON
formatter as keys of the log line, the text formatter as a trailing
``key=value`` list.

Per-module levels use the LOG_MODULE_LEVELS syntax
``"src.cache=DEBUG,src.alerts=WARNING"``.

Usage:
    from src.orchestrator.logging_config import setup_logging

    setup_logging(json_output=True, log_file="logs/reviewpulse.log")
    logger.info("Alert created", extra={"business": name, "alert_id": alert.id})
"""

import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from typing import Dict, Optional

from ..core.errors import ConfigError

EXTRA_FIELDS = ("business", "alert_id", "category", "severity", "duration")

TEXT_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)-30s | %(message)s"


def record_context(record: logging.LogRecord) -> Dict[str, object]:
    """Alert context fields present on a record."""
    context = {}
    for key in EXTRA_FIELDS:
        val = getattr(record, key, None)
        if val is not None:
            context[key] = val
    return context


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line.

    Output format:
        {"ts": "2026-...", "level": "INFO", "logger": "src.alerts.alert_engine",
         "msg": "Alert created: ...", "business": "Cafe Nord", "severity": "critical"}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        entry.update(record_context(record))
        return json.dumps(entry, default=str)


class ContextTextFormatter(logging.Formatter):
    """Human-readable lines with the alert context appended."""

    def __init__(self):
        super().__init__(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = record_context(record)
        if not context:
            return line
        # keep the traceback (if any) last
        head, sep, tail = line.partition("\n")
        suffix = " ".join(f"{k}={v}" for k, v in context.items())
        return f"{head} [{suffix}]{sep}{tail}"


def parse_module_levels(value: Optional[str]) -> Dict[str, int]:
    """
    ``"src.cache=DEBUG,src.alerts=WARNING"`` -> {logger name: level}.

    Raises:
        ConfigError: entry without ``=`` or unknown level name
    """
    levels: Dict[str, int] = {}
    for item in (value or "").split(","):
        item = item.strip()
        if not item:
            continue
        name, sep, level_name = item.partition("=")
        level = logging.getLevelName(level_name.strip().upper())
        if not sep or not name.strip() or not isinstance(level, int):
            raise ConfigError(f"Invalid module log level '{item}' (expected name=LEVEL)")
        levels[name.strip()] = level
    return levels


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[str] = None,
    module_levels: Optional[str] = None,
    max_bytes: int = 10 * 1024 * 1024,  # 10 MB
    backup_count: int = 5,
    stream=None,
):
    """
    Configure the root logger.

    Args:
        level: Root log level (DEBUG, INFO, WARNING, ERROR)
        json_output: JSON lines instead of text
        log_file: Rotating log file, in addition to the console
        module_levels: Per-logger overrides, "name=LEVEL,..."
        stream: Console stream (default stderr; stdout carries command output)
    """
    overrides = parse_module_levels(module_levels)

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    formatter = JSONFormatter() if json_output else ContextTextFormatter()

    console = logging.StreamHandler(stream or sys.stderr)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file:
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # HTTP and Redis client chatter
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)

    for name, module_level in overrides.items():
        logging.getLogger(name).setLevel(module_level)

    root.debug(
        "Logging configured: level=%s json=%s file=%s overrides=%s",
        level, json_output, log_file or "none", len(overrides),
    )

"""
Logging Configuration Module

Console logging for the API: colored levels during development, one JSON
object per line when ``LOG_JSON`` is set.

Form lifecycle events go through ``log_form_action`` so they share one
shape; in JSON mode its ``action``/``form_id``/``success`` land as
top-level keys.

Usage:
    from utils.logging import get_logger, log_form_action

    logger = get_logger(__name__)
    logger.warning(f"Form {form_id} not found for owner {owner_id}")
    log_form_action("created", form.id, True, "3 fields")
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from config.settings import settings

# Attributes passed through ``extra=`` that the JSON formatter emits
STRUCTURED_FIELDS = ("action", "form_id", "success", "details")

NOISY_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "asyncio", "httpx", "httpcore")


# =============================================================================
# Formatters
# =============================================================================

class ColoredFormatter(logging.Formatter):
    """Console formatter that colors the level name."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;31m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        # Records are shared between handlers; color a copy
        colored = logging.makeLogRecord(record.__dict__)
        color = self.LEVEL_COLORS.get(record.levelno, "")
        colored.levelname = f"{color}{record.levelname:8}{self.RESET}"
        return super().format(colored)


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        for key in STRUCTURED_FIELDS:
            if hasattr(record, key):
                entry[key] = getattr(record, key)

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


# =============================================================================
# Setup
# =============================================================================

def setup_logging(
    level: Optional[str] = None,
    json_format: Optional[bool] = None
) -> None:
    """
    Install a single stdout handler on the root logger.

    Args:
        level: Level name; DEBUG when ``settings.DEBUG`` else INFO
        json_format: JSON output; defaults to ``settings.LOG_JSON``
    """
    if level is None:
        level = "DEBUG" if settings.DEBUG else "INFO"
    if json_format is None:
        json_format = settings.LOG_JSON

    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(
        JSONFormatter() if json_format else ColoredFormatter(
            fmt="%(asctime)s │ %(levelname)s │ %(name)s │ %(message)s",
            datefmt="%H:%M:%S",
        )
    )

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers.clear()
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


# =============================================================================
# Form Events
# =============================================================================

def log_form_action(
    action: str,
    form_id: Optional[int],
    success: bool,
    details: Optional[str] = None
) -> None:
    """
    Log a form lifecycle or submission event.

    Successful actions log at INFO, rejected ones at WARNING.

    Args:
        action: What happened ("created", "updated", "soft-deleted", "submit")
        form_id: Form the action applied to
        success: Whether the action went through
        details: Free-form context appended to the message
    """
    marker = "✅" if success else "❌"
    message = f"{marker} {action.upper()} | form={form_id}"
    if details:
        message += f" | {details}"

    get_logger("formforge.forms").log(
        logging.INFO if success else logging.WARNING,
        message,
        extra={"action": action, "form_id": form_id, "success": success},
    )

"""
Logging configuration for BranchChat.

Sets up console and rotating file handlers according to settings. Each
entry point (API server, CLI) calls setup_logging() once with its context
name so that its log lines land in a dedicated file.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone

from branchchat.config import settings

STANDARD_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class JsonFormatter(logging.Formatter):
    """Render log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class _MaxLevelFilter(logging.Filter):
    """Only pass records strictly below a level (keeps stdout free of errors)."""

    def __init__(self, max_level: int):
        super().__init__()
        self.max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < self.max_level


def _build_formatter() -> logging.Formatter:
    if settings.log_format == "json":
        return JsonFormatter()
    return logging.Formatter(fmt=STANDARD_FORMAT, datefmt=DATE_FORMAT)


def setup_logging(context: str = "app") -> None:
    """
    Configure root logging for the given context.

    Args:
        context: Name of the entry point ("api", "cli", ...). Used as the
            log file name.

    Raises:
        PermissionError: If the log directory cannot be created
    """
    root = logging.getLogger()
    root.setLevel(settings.log_level.upper())

    # Re-running setup (e.g. uvicorn reload) must not duplicate handlers
    for handler in list(root.handlers):
        if getattr(handler, "_branchchat", False):
            root.removeHandler(handler)

    formatter = _build_formatter()
    handlers: list[logging.Handler] = []

    if settings.log_console_enabled:
        if settings.log_to_stdout:
            stdout_handler = logging.StreamHandler(sys.stdout)
            stdout_handler.addFilter(_MaxLevelFilter(logging.WARNING))
            handlers.append(stdout_handler)
        if settings.log_to_stderr:
            stderr_handler = logging.StreamHandler(sys.stderr)
            stderr_handler.setLevel(logging.WARNING)
            handlers.append(stderr_handler)

    if settings.log_file_enabled:
        log_dir = settings.log_directory
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_dir / f"{context}.log",
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
            encoding="utf-8",
        )
        handlers.append(file_handler)

    for handler in handlers:
        handler.setFormatter(formatter)
        handler._branchchat = True  # type: ignore[attr-defined]
        root.addHandler(handler)

    # SQLAlchemy echoes are noisy at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

"""
Logging utilities for the solution release engine.

Provides human-readable and JSON-structured formatters plus a run context
that stamps every record emitted during a release run with the run id and
solution name.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

PACKAGE_LOGGER = "solution_release"

_CONTEXT_FIELDS = ("run_id", "solution", "state")


class RunContextFilter(logging.Filter):
    """Copies the active RunContext fields onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in RunContext.get_current().items():
            if getattr(record, key, None) is None:
                setattr(record, key, value)
        return True


class StructuredFormatter(logging.Formatter):
    """
    Formatter that outputs JSON-structured log lines.

    Each log line includes:
    - Standard log fields (timestamp, level, message, logger)
    - Run context fields if present (run_id, solution, state)
    """

    def __init__(self, include_timestamp: bool = True):
        super().__init__()
        self.include_timestamp = include_timestamp

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_timestamp:
            log_entry["timestamp"] = datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat()

        for field in _CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Formatter that outputs human-readable log lines with run context.

    Format: TIMESTAMP [LEVEL] LOGGER - MESSAGE [run_id=X solution=Y]
    """

    def __init__(self, include_timestamp: bool = True):
        if include_timestamp:
            fmt = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
        else:
            fmt = "[%(levelname)s] %(name)s - %(message)s"
        super().__init__(fmt, datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)

        context_parts = []
        for field in ("run_id", "solution"):
            value = getattr(record, field, None)
            if value is not None:
                context_parts.append(f"{field}={value}")

        if context_parts:
            return f"{base} [{' '.join(context_parts)}]"
        return base


def configure_logging(
    level: int = logging.INFO,
    structured: bool = False,
    include_timestamp: bool = True,
) -> logging.Logger:
    """
    Configure the package logger.

    Only adds a handler if none exist, so repeated calls (tests, nested CLI
    invocations) do not duplicate output.

    Args:
        level: Logging level (default: INFO)
        structured: If True, output JSON lines; otherwise human-readable
        include_timestamp: Whether to include timestamps

    Returns:
        The configured package logger
    """
    pkg_logger = logging.getLogger(PACKAGE_LOGGER)
    pkg_logger.setLevel(level)

    if not pkg_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)
        if structured:
            handler.setFormatter(StructuredFormatter(include_timestamp=include_timestamp))
        else:
            handler.setFormatter(HumanReadableFormatter(include_timestamp=include_timestamp))
        handler.addFilter(RunContextFilter())
        pkg_logger.addHandler(handler)
    else:
        for handler in pkg_logger.handlers:
            handler.setLevel(level)

    return pkg_logger


class RunContext:
    """
    Context manager for adding run fields to log records.

    Example:
        >>> with RunContext(run_id="a1b2", solution="Contoso"):
        ...     logger.info("Exporting")  # carries run_id and solution
    """

    _current: Optional["RunContext"] = None

    def __init__(self, run_id: Optional[str] = None, solution: Optional[str] = None, **extra: Any):
        self.context = {"run_id": run_id, "solution": solution, **extra}
        self.context = {k: v for k, v in self.context.items() if v is not None}
        self._previous: Optional["RunContext"] = None

    def __enter__(self) -> "RunContext":
        self._previous = RunContext._current
        RunContext._current = self
        return self

    def __exit__(self, *args) -> None:
        RunContext._current = self._previous

    def set(self, key: str, value: Any) -> None:
        """Update a field on the active context (e.g. the current state)."""
        self.context[key] = value

    @classmethod
    def get_current(cls) -> Dict[str, Any]:
        """Get the current run context."""
        if cls._current is None:
            return {}
        return cls._current.context.copy()

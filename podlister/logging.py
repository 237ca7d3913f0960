"""structlog setup for the listing API.

Console output in development, JSON lines everywhere else. LOG_FILE adds a
second JSON-lines sink so upload runs can be replayed after the fact.
"""

from __future__ import annotations

import logging
import sys
from typing import IO, Any

import structlog

from podlister.config import settings

# Keys that may carry Printify or Gemini credentials.
_SECRET_KEYS = frozenset({"api_key", "printify_key", "token", "authorization"})


class _FileTee:
    """File-like sink writing to stdout and, if it can, to a log file.

    A log file that can't be opened or written is dropped with a warning
    on stderr; stdout keeps working.
    """

    def __init__(self, path: str) -> None:
        self._path = path
        self._file: IO[str] | None = None
        try:
            self._file = open(path, "a")  # noqa: SIM115
        except OSError as exc:
            print(f"WARNING: cannot open log file {path!r}: {exc}", file=sys.stderr)

    def _drop_file(self, reason: str) -> None:
        self._file = None
        print(f"WARNING: log file {self._path!r} disabled ({reason})", file=sys.stderr)

    def write(self, data: str) -> None:
        sys.stdout.write(data)
        if self._file is None:
            return
        try:
            self._file.write(data)
            self._file.flush()
        except (OSError, ValueError) as exc:
            self._drop_file(type(exc).__name__)

    def flush(self) -> None:
        sys.stdout.flush()
        if self._file is None:
            return
        try:
            self._file.flush()
        except (OSError, ValueError) as exc:
            self._drop_file(type(exc).__name__)


def redact_secrets(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Mask credential-looking values that slipped into a log call."""
    for key in _SECRET_KEYS.intersection(event_dict):
        event_dict[key] = "***"
    return event_dict


def configure_logging() -> None:
    """Configure structlog processors, level filtering and output sink."""
    renderer: Any = (
        structlog.dev.ConsoleRenderer()
        if settings.environment == "development"
        else structlog.processors.JSONRenderer()
    )
    level = logging.getLevelNamesMapping().get(settings.log_level.upper(), logging.INFO)

    if settings.log_file:
        logger_factory = structlog.PrintLoggerFactory(file=_FileTee(settings.log_file))  # type: ignore[arg-type]
    else:
        logger_factory = structlog.PrintLoggerFactory()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            redact_secrets,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=logger_factory,
        cache_logger_on_first_use=True,
    )

# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/tessera-python/LICENSE
# ==============================================================================

"""Logging utilities for Tessera.

Tessera logs through the standard library.  :func:`setup_logger` attaches a
single managed handler to the root logger with either colored, plain, or
structured JSON output.  The host's ``logging`` stages drive this function
through :class:`tessera.server.builders.LoggingBuilder`.
"""

from __future__ import annotations

from collections.abc import Callable
import json
import logging
import os
from typing import Any, ClassVar, Final


RESET: Final[str] = "\033[0m"
DIM: Final[str] = "\033[2m"

DEBUG_COLOR: Final[str] = "\033[36m"
INFO_COLOR: Final[str] = "\033[32m"
WARNING_COLOR: Final[str] = "\033[33m"
ERROR_COLOR: Final[str] = "\033[1;31m"
CRITICAL_COLOR: Final[str] = "\033[1;35m"

LOGGER_COLOR: Final[str] = "\033[94m"

DEFAULT_LOGGER_NAME: Final[str] = "tessera"
ENV_LOG_LEVEL: Final[str] = "TESSERA_LOG_LEVEL"
ENV_LOG_JSON: Final[str] = "TESSERA_LOG_JSON"
ENV_NO_COLOR: Final[str] = "NO_COLOR"
DEFAULT_FORMAT: Final[str] = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
DEFAULT_DATEFMT: Final[str] = "%Y-%m-%d %H:%M:%S"

JsonSerializer = Callable[[dict[str, Any]], str]
PayloadTransformer = Callable[[dict[str, Any]], dict[str, Any]]

_BUILTIN_RECORD_KEYS: set[str] = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "process",
    "processName",
    "task",
    "taskName",
    "context",
    "message",
    "asctime",
}


def _duration_suffix(record: logging.LogRecord) -> str:
    duration = getattr(record, "duration_ms", None)
    if duration is None:
        return ""
    return f" [{float(duration):.2f} ms]"


class PlainFormatter(logging.Formatter):
    """Plain-text formatter that appends request timings when present."""

    def format(self, record: logging.LogRecord) -> str:
        return super().format(record) + _duration_suffix(record)


class ColoredFormatter(PlainFormatter):
    """Formatter that adds ANSI colors to log output.

    Override LEVEL_COLORS to customize colors for each log level.
    """

    LEVEL_COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": DEBUG_COLOR,
        "INFO": INFO_COLOR,
        "WARNING": WARNING_COLOR,
        "ERROR": ERROR_COLOR,
        "CRITICAL": CRITICAL_COLOR,
    }

    def format(self, record: logging.LogRecord) -> str:
        levelname_color = self.LEVEL_COLORS.get(record.levelname, "")

        orig_levelname = record.levelname
        orig_name = record.name

        record.levelname = f"{levelname_color}{record.levelname}{RESET}"
        record.name = f"{LOGGER_COLOR}{record.name}{RESET}"

        try:
            result = logging.Formatter.format(self, record)
        finally:
            record.levelname = orig_levelname
            record.name = orig_name

        suffix = _duration_suffix(record)
        if suffix:
            result = f"{result}{DIM}{suffix}{RESET}"
        return result


class TesseraHandler(logging.StreamHandler):  # type: ignore[type-arg]
    """StreamHandler subclass managed by Tessera.

    Subclass this to customize behavior or override formatters.
    """


class StructuredJSONFormatter(logging.Formatter):
    """Serialize log records into JSON using a user-provided serializer."""

    def __init__(
        self,
        serializer: JsonSerializer,
        *,
        datefmt: str | None = None,
        payload_transformer: PayloadTransformer | None = None,
    ) -> None:
        super().__init__(datefmt=datefmt)
        self._serializer = serializer
        self._transformer = payload_transformer or _default_payload_transformer

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
            "process": record.process,
            "thread": record.thread,
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        extra = {}
        for key, value in record.__dict__.items():
            if key == "context" and isinstance(value, dict):
                extra.update(value)
                continue

            if key in _BUILTIN_RECORD_KEYS or key.startswith("_structured_"):
                continue

            if key not in extra:
                extra[key] = value
        if extra:
            payload["context"] = extra

        transformed = self._transformer(payload)
        return self._serializer(transformed)


def _default_json_serializer(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, default=str)


def _default_payload_transformer(payload: dict[str, Any]) -> dict[str, Any]:
    return payload


def _has_tessera_handler(root: logging.Logger) -> bool:
    return any(isinstance(handler, TesseraHandler) for handler in root.handlers)


def _read_bool_env(key: str) -> bool:
    value = os.getenv(key)
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def resolve_level(level: int | str | None) -> int:
    """Coerce ``level`` into a numeric logging level.

    ``None`` falls back to ``TESSERA_LOG_LEVEL`` and then ``logging.INFO``.
    Unknown names resolve to ``logging.INFO``.
    """
    if level is None:
        override = os.getenv(ENV_LOG_LEVEL)
        if override:
            level = override
        else:
            return logging.INFO

    if isinstance(level, int):
        return level

    level_value = logging.getLevelName(str(level).upper())
    if isinstance(level_value, int):
        return level_value
    return logging.INFO


def setup_logger(
    *,
    level: int | str | None = None,
    use_json: bool | None = None,
    use_color: bool | None = None,
    json_serializer: JsonSerializer | None = None,
    payload_transformer: PayloadTransformer | None = None,
    fmt: str | None = None,
    datefmt: str | None = DEFAULT_DATEFMT,
    force: bool = False,
) -> None:
    """Configure the root logger.

    Args:
        level: Override the log level. Falls back to ``TESSERA_LOG_LEVEL`` then
            ``logging.INFO``.
        use_json: Enable JSON output. Defaults to ``TESSERA_LOG_JSON`` when
            ``None``.
        use_color: Enable colored output. Defaults to ``True`` unless ``NO_COLOR``
            env var is set or ``use_json=True``. Set explicitly to override.
        json_serializer: Callable that converts the payload dict into a JSON
            string.
        payload_transformer: Callable that mutates the payload before
            serialization.
        fmt: Format string for plain-text logging.
        datefmt: Date format for plain-text logging.
        force: Reconfigure even if Tessera already attached its handler.

    """
    root = logging.getLogger()

    if _has_tessera_handler(root) and not force:
        return

    if force:
        for handler in list(root.handlers):
            if isinstance(handler, TesseraHandler):
                root.removeHandler(handler)
                handler.close()

    resolved_level = resolve_level(level)
    root.setLevel(resolved_level)

    resolved_use_json = use_json if use_json is not None else _read_bool_env(ENV_LOG_JSON)

    # explicit param > NO_COLOR env > default (True if not JSON)
    if use_color is not None:
        resolved_use_color = use_color
    elif os.getenv(ENV_NO_COLOR):
        resolved_use_color = False
    else:
        resolved_use_color = not resolved_use_json

    handler = TesseraHandler()
    handler.setLevel(resolved_level)

    formatter: logging.Formatter
    if resolved_use_json:
        serializer = json_serializer or _default_json_serializer
        formatter = StructuredJSONFormatter(serializer, datefmt=datefmt, payload_transformer=payload_transformer)
    elif resolved_use_color:
        formatter = ColoredFormatter(fmt or DEFAULT_FORMAT, datefmt=datefmt)
    else:
        formatter = PlainFormatter(fmt or DEFAULT_FORMAT, datefmt=datefmt)

    handler.setFormatter(formatter)
    root.addHandler(handler)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a logger configured for Tessera usage.

    Args:
        name: Optional logger name. Defaults to ``DEFAULT_LOGGER_NAME``.
    """
    root = logging.getLogger()
    if not _has_tessera_handler(root):
        setup_logger()
    return logging.getLogger(name or DEFAULT_LOGGER_NAME)


__all__ = [
    "DEFAULT_LOGGER_NAME",
    "ColoredFormatter",
    "PlainFormatter",
    "StructuredJSONFormatter",
    "TesseraHandler",
    "get_logger",
    "resolve_level",
    "setup_logger",
]

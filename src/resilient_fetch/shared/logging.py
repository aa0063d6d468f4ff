"""Basic logging configuration for the resilient-fetch package."""
import logging
from datetime import UTC, datetime

import orjson

TRACE = 5

logging.addLevelName(TRACE, "TRACE")

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")

BASE_LOGGER = logging.getLogger("resilient-fetch")

LOG_LEVELS: dict[str, int] = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": TRACE,
}


class StructuredFormatter(logging.Formatter):
    """Renders each record as a single JSON object.

    The object carries ``timestamp``, ``level``, ``message`` and ``metadata``. Metadata is
    whatever mapping the caller passed through ``extra={"metadata": {...}}``, plus the logger name.
    """

    def format(self, record: logging.LogRecord) -> str:
        metadata = dict(getattr(record, "metadata", None) or {})
        metadata["logger"] = record.name
        if record.exc_info:
            metadata["exception"] = self.formatException(record.exc_info)

        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname.lower(),
            "message": record.getMessage(),
            "metadata": metadata,
        }
        return orjson.dumps(entry, default=str).decode("utf-8")


def resolve_level(level: str | int) -> int:
    """Translate a level name (``error``, ``warn``, ``info``, ``debug``, ``trace``) to a logging level."""
    if isinstance(level, int):
        return level

    try:
        return LOG_LEVELS[level.strip().lower()]
    except KeyError:
        msg = f"Unknown log level: {level}"
        raise ValueError(msg) from None


def configure_logging(level: str | int = "info", structured: bool = False) -> None:
    """Set the package log level and optionally switch the root handlers to JSON output."""
    BASE_LOGGER.setLevel(resolve_level(level))

    if structured:
        for handler in logging.getLogger().handlers:
            handler.setFormatter(StructuredFormatter())

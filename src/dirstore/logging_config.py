"""Logging setup for DirStore: text or single-line JSON on stderr."""

import json
import logging
import logging.config
from datetime import datetime, timezone

# LogRecord attributes carried into JSON entries when a caller sets them
# through ``extra=``; the access log sets all of them.
_EXTRA_FIELDS = ("method", "path", "status", "duration_ms", "request_id", "action")

# The server writes its own access line per request, and aiosqlite logs
# every statement at DEBUG.
_QUIET_LOGGERS = {"uvicorn.access": "WARNING", "aiosqlite": "INFO"}

_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, message, extras."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (name, getattr(record, name))
            for name in _EXTRA_FIELDS
            if getattr(record, name, None) is not None
        )
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(level: str = "INFO", fmt: str = "text") -> None:
    """Install a single stderr handler on the root logger.

    Any handlers already on the root logger are replaced.

    Args:
        level: Log level name; unknown names fall back to INFO.
        fmt: ``"json"`` for JSONFormatter output, anything else for text.
    """
    level_name = level.upper()
    if not isinstance(logging.getLevelName(level_name), int):
        level_name = "INFO"

    formatter = {"()": JSONFormatter} if fmt == "json" else {"format": _TEXT_FORMAT}
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": formatter},
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stderr",
                    "formatter": "default",
                    "level": level_name,
                }
            },
            "loggers": {name: {"level": lvl} for name, lvl in _QUIET_LOGGERS.items()},
            "root": {"level": level_name, "handlers": ["stderr"]},
        }
    )

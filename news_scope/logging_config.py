"""
Process-wide logging for the CLI and the API server.

APP_ENV=production writes one JSON object per record to stdout; any other
environment gets a single-line text format. Policy traces go to the
`news_scope.trace` logger at DEBUG and only show when LOG_LEVEL allows it.
"""

from __future__ import annotations

import logging
import logging.config

from news_scope.config import Settings, get_settings

TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s | %(message)s"

# Chatty at INFO; kept to WARNING regardless of LOG_LEVEL
QUIET_LOGGERS = ("asyncpg", "uvicorn.access", "httpx", "httpcore")


def build_logging_config(settings: Settings) -> dict:
    level = settings.log_level.upper()
    if not isinstance(logging.getLevelName(level), int):
        level = "INFO"
    formatter = "json" if settings.env == "production" else "text"

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": "json_log_formatter.VerboseJSONFormatter"},
            "text": {"format": TEXT_FORMAT, "datefmt": "%H:%M:%S"},
        },
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
                "formatter": formatter,
            },
        },
        "loggers": {name: {"level": "WARNING"} for name in QUIET_LOGGERS},
        "root": {"level": level, "handlers": ["stdout"]},
    }


def setup_logging(settings: Settings | None = None) -> None:
    logging.config.dictConfig(build_logging_config(settings or get_settings()))

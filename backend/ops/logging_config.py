"""
Logging setup for PropLedger.

Every app logs through logging.getLogger(__name__) with structured
context in `extra`. App loggers only set a level and propagate to the
root logger, which owns the single stdout handler.

LOG_FORMAT selects the root formatter:
- json: one JSON object per line, extras under "extra" (default when DEBUG is off)
- console: "[time] LEVEL logger message" (default when DEBUG is on)

LOG_LEVEL sets the level of the root and app loggers (INFO, or DEBUG
when DEBUG is on).
"""
import json
import logging
import os
from datetime import datetime, timezone

APP_LOGGERS = (
    "accounts",
    "properties",
    "notifications",
    "rent",
    "late_fees",
    "trust",
    "expenses",
    "accounting",
    "ops",
)

# attributes every LogRecord carries; anything else came from `extra`
RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))) | {"message", "asctime"}

FORMATTERS = {
    "json": {"()": "ops.logging_config.JsonFormatter"},
    "console": {"format": "[{asctime}] {levelname} {name} {message}", "style": "{"},
}


def get_logging_config(debug: bool = False) -> dict:
    log_level = os.environ.get("LOG_LEVEL", "DEBUG" if debug else "INFO").upper()
    log_format = os.environ.get("LOG_FORMAT", "console" if debug else "json")
    if log_format not in FORMATTERS:
        log_format = "json"

    loggers = {app: {"level": log_level} for app in APP_LOGGERS}
    loggers.update({
        "celery": {"level": log_level},
        "django": {"level": log_level},
        "django.request": {"level": log_level if debug else "ERROR"},
        "django.db.backends": {"level": "DEBUG" if debug else "WARNING"},
    })

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {log_format: FORMATTERS[log_format]},
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "formatter": log_format,
                "stream": "ext://sys.stdout",
            },
        },
        "root": {"handlers": ["stdout"], "level": log_level},
        "loggers": loggers,
    }


class JsonFormatter(logging.Formatter):
    """
    One JSON object per record: timestamp (record time, UTC), level,
    logger, message, source location, exception text and the `extra`
    fields. Values json cannot encode are stringified.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extras = {key: value for key, value in record.__dict__.items() if key not in RESERVED_ATTRS}
        if extras:
            entry["extra"] = extras

        return json.dumps(entry, default=str)

"""
Relay logging.

One stdout handler on the root logger. JSON lines in production (or with
LOG_FORMAT=json), plain text otherwise.

Request bodies carry Garmin passwords and OAuth tokens. Structured
context goes through extra={"extra_fields": {...}}, and any credential
key in it is masked before the record is written.
"""
import logging
import sys
import json
from datetime import datetime, timezone
from typing import Any, Dict
from core.config import settings

REDACTED = "[redacted]"

# Compared lower-cased
SENSITIVE_KEYS = frozenset({
    "password",
    "tokenjson",
    "oauth1",
    "oauth2",
    "access_token",
    "refresh_token",
    "oauth_token",
    "oauth_token_secret",
    "authorization",
    "api_key",
})

# Third-party loggers that log request details at DEBUG/INFO
NOISY_LOGGERS = ("urllib3", "requests_oauthlib", "garth", "garminconnect")


def redact(value: Any) -> Any:
    """Copy of value with every credential field masked, at any depth."""
    if isinstance(value, dict):
        return {
            key: REDACTED if str(key).lower() in SENSITIVE_KEYS else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(item) for item in value]
    return value


class JSONFormatter(logging.Formatter):
    """One JSON object per line, extra_fields merged in after redaction."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict):
            log_data.update(redact(extra_fields))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging() -> logging.Logger:
    """Configure the root logger for the relay. Safe to call more than once."""
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    if settings.LOG_FORMAT == "json" or settings.ENVIRONMENT == "production":
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger

"""Inventory API Logging Configuration.

Bearer tokens must never reach log output in full. Code that logs a token
passes it through ``token_fingerprint``; ``TokenRedactionFilter`` catches the
rest (exception text, failure details) on the way out.
"""

import json
import logging
import re
import sys
from typing import Literal

DEV_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Number of leading token characters that may appear in logs
TOKEN_FINGERPRINT_LENGTH = 10

# Compact JWS: base64url header starting with '{"' then payload and signature
_JWT_PATTERN = re.compile(r"eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]*")

_QUIET_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def token_fingerprint(token: str | None) -> str:
    """Shorten a token for log output; full tokens are never logged."""
    if not token:
        return "<none>"
    return f"{token[:TOKEN_FINGERPRINT_LENGTH]}..."


def redact_tokens(text: str) -> str:
    return _JWT_PATTERN.sub(lambda m: token_fingerprint(m.group(0)), text)


class TokenRedactionFilter(logging.Filter):
    """Replace anything shaped like a JWT with its fingerprint."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_tokens(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line.

    Fields go through json.dumps() so quotes and newlines in messages cannot
    break the line. ``user_id`` and ``client_ip`` passed via ``extra=`` are
    copied into the entry.
    """

    context_fields = ("user_id", "client_ip")

    def __init__(self):
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in self.context_fields:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = redact_tokens(self.formatException(record.exc_info))
        return json.dumps(entry, default=str)


def setup_logging(
    level: str = "INFO",
    format_type: Literal["structured", "dev"] = "dev",
) -> None:
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: Log format - 'structured' for JSON, 'dev' for readable
    """
    numeric_level = getattr(logging, level.upper())

    handler = logging.StreamHandler(sys.stdout)
    if format_type == "structured":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(DEV_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    handler.addFilter(TokenRedactionFilter())

    logging.root.handlers = [handler]
    logging.root.setLevel(numeric_level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.DEBUG if numeric_level == logging.DEBUG else logging.WARNING
    )

    logging.getLogger("inventory_api").info(
        f"Logging configured: level={level}, format={format_type}"
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the inventory_api prefix."""
    return logging.getLogger(f"inventory_api.{name}")

"""Central logging configuration for the command line tool.

This module configures Python logging with sane defaults and is intended to be
invoked from `dbbackup.main` during startup.
"""

from __future__ import annotations

import logging
import os
from typing import Iterable, Optional

MASK = "***"

# LogRecord attributes that must not be overwritten through `extra`
_RESERVED_KEYS = {
    "name",
    "msg",
    "message",
    "asctime",
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
    "processName",
    "process",
    "args",
}

_THIRD_PARTY_LOGGERS = ("botocore", "boto3", "s3transfer", "urllib3", "azure", "google", "httpx", "httpcore")


class SecretMaskingFilter(logging.Filter):
    """Redact configured secret values (passwords, keys) from log records."""

    def __init__(self, secrets: Iterable[str] = ()) -> None:
        super().__init__()
        self._secrets: set[str] = set()
        self.add_secrets(secrets)

    def add_secrets(self, secrets: Iterable[str]) -> None:
        for value in secrets:
            # Very short values would mask unrelated text
            if value and len(value) >= 3:
                self._secrets.add(value)

    def mask(self, text: str) -> str:
        for secret in sorted(self._secrets, key=len, reverse=True):
            text = text.replace(secret, MASK)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        if not self._secrets:
            return True
        message = record.getMessage()
        masked = self.mask(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


_masking_filter = SecretMaskingFilter()


def get_masking_filter() -> SecretMaskingFilter:
    return _masking_filter


def register_secrets(secrets: Iterable[str]) -> None:
    """Add values that must never appear in log output."""
    _masking_filter.add_secrets(secrets)


def setup_logging(level: Optional[str] = None) -> None:
    """Initialize application logging.

    - Level is taken from the `LOG_LEVEL` environment variable if not provided.
    - Uses a concise, structured-ish format with timestamps.
    """

    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()

    root_logger = logging.getLogger()

    # Configure handlers once to avoid duplicates on repeated calls
    if not root_logger.handlers:
        logging.basicConfig(
            level=log_level,
            format=(
                "%(asctime)s | %(levelname)s | %(name)s | "
                "%(message)s"
            ),
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    root_logger.setLevel(log_level)

    for handler in root_logger.handlers:
        if _masking_filter not in handler.filters:
            handler.addFilter(_masking_filter)

    # SDK loggers are chatty at INFO; only surface them when DEBUG is enabled
    third_party_level = logging.DEBUG if root_logger.level == logging.DEBUG else logging.WARNING
    for name in _THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)


def log_event(logger: logging.Logger, event_name: str, *, level: int = logging.INFO, **fields: object) -> None:
    """Emit a log line with text message and structured context via `extra`.

    The message is a concise 'event | k=v ...' line to keep parity with other
    modules, and the `extra` dict carries structured fields for future handlers.
    """
    if not fields:
        logger.log(level, "%s", event_name, extra={"event": event_name})
        return

    keys = sorted(fields.keys())
    tmpl = " ".join(f"{k}=%s" for k in keys)
    values = tuple(fields[k] for k in keys)

    safe_extra: dict[str, object] = {"event": event_name}
    for k, v in fields.items():
        safe_key = k if k not in _RESERVED_KEYS else f"field_{k}"
        safe_extra[safe_key] = v

    logger.log(level, "%s | " + tmpl, event_name, *values, extra=safe_extra)

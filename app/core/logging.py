"""
Logging utilities for the FastAPI application and operator scripts.

Provides a consistent logging format and makes sure OAuth secrets never reach
a log handler in full.
"""

import logging
import re
import sys
from typing import Any

SENSITIVE_KEYS = (
    "access_token",
    "refresh_token",
    "client_id",
    "client_secret",
    "credentials",
    "password",
    "token",
)

_MESSAGE_PATTERNS = [
    re.compile(
        rf"""(["']?{key}["']?\s*[:=]\s*["']?)([^"'\s,}}]+)(["']?)""",
        re.IGNORECASE,
    )
    for key in SENSITIVE_KEYS
]

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime"}


def redact(value: Any) -> str:
    """Return a preview keeping only the first and last character."""
    text = str(value)
    if len(text) > 2:
        return f"{text[0]}****{text[-1]}"
    return "****"


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(name in lowered for name in SENSITIVE_KEYS)


def mask_mapping(data: Any) -> Any:
    """Recursively mask string values stored under sensitive keys."""
    if isinstance(data, dict):
        masked = {}
        for key, value in data.items():
            if isinstance(key, str) and _is_sensitive(key) and isinstance(value, str):
                masked[key] = redact(value)
            else:
                masked[key] = mask_mapping(value)
        return masked
    if isinstance(data, (list, tuple)):
        return type(data)(mask_mapping(item) for item in data)
    return data


def mask_message(message: str) -> str:
    for pattern in _MESSAGE_PATTERNS:
        message = pattern.sub(r"\1****\3", message)
    return message


class SecretRedactionFilter(logging.Filter):
    """Mask sensitive values in log messages and ``extra`` payloads."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = mask_message(record.msg)
        if record.args:
            if isinstance(record.args, dict):
                record.args = mask_mapping(record.args)
            else:
                record.args = tuple(
                    mask_message(arg) if isinstance(arg, str) else mask_mapping(arg)
                    for arg in record.args
                )
        for attr, value in list(vars(record).items()):
            if attr in _RESERVED_ATTRS:
                continue
            if _is_sensitive(attr) and isinstance(value, str):
                setattr(record, attr, redact(value))
            elif isinstance(value, (dict, list, tuple)):
                setattr(record, attr, mask_mapping(value))
        return True


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with a sensible default format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    redaction = SecretRedactionFilter()
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, SecretRedactionFilter) for f in handler.filters):
            handler.addFilter(redaction)


__all__ = [
    "SecretRedactionFilter",
    "configure_logging",
    "mask_mapping",
    "mask_message",
    "redact",
]

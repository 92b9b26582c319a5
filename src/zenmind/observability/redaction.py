"""Redaction helpers for safe logging. All external data must pass through these.

Phone numbers, e-mail addresses and CPF numbers never reach the logs.
Phones are logged as hash_identifier() digests when correlation is needed.
"""

import hashlib
import re
from typing import Any

_PHONE_PATTERN = re.compile(r"\+?\d[\d\s\-()]{8,}\d")
_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
_CPF_PATTERN = re.compile(r"\b\d{3}\.\d{3}\.\d{3}-\d{2}\b")

_REDACTED = "[REDACTED]"


def hash_identifier(value: str) -> str:
    """Non-reversible short hash for logging (first 12 hex chars of sha256)."""
    return hashlib.sha256(value.encode()).hexdigest()[:12]


def id_prefix(value: str | None, length: int = 16) -> str | None:
    """Leading part of a provider id, enough to correlate log lines."""
    if value is None:
        return None
    return value[:length]


def redact_string(value: str) -> str:
    """Redact PII patterns from a string."""
    result = _CPF_PATTERN.sub(_REDACTED, value)
    result = _PHONE_PATTERN.sub(_REDACTED, result)
    result = _EMAIL_PATTERN.sub(_REDACTED, result)
    return result


def redact_value(value: Any) -> str:
    """Redact any value for safe logging. Returns string representation."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, dict):
        # Structure only, never values
        return f"dict(keys={list(value.keys())})"
    if isinstance(value, (list, tuple)):
        return f"list(len={len(value)})"
    return f"<{type(value).__name__}>"


def safe_log_context(**kwargs: Any) -> dict[str, str]:
    """Build a context dict safe for logging. All values are redacted."""
    return {k: redact_value(v) for k, v in kwargs.items()}

"""Redaction helpers for safe logging.

Notification titles, bodies and payer names identify real people and are
never logged. Only their length, ids and statuses leave the process.
"""

import re
from typing import Any

_PHONE_PATTERN = re.compile(r"\+?\d[\d\s\-()]{8,}\d")
_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

_REDACTED = "[REDACTED]"

# Keys whose values are free text written by a bank or a payer
_TEXT_KEYS = frozenset({"title", "body", "text", "payer_name", "raw_json"})


def redact_string(value: str) -> str:
    """Redact PII patterns from a string."""
    result = _PHONE_PATTERN.sub(_REDACTED, value)
    result = _EMAIL_PATTERN.sub(_REDACTED, result)
    return result


def redact_text(value: str | None) -> str:
    """Describe a free-text field without revealing it."""
    if value is None:
        return "null"
    return f"text(len={len(value)})"


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
    if isinstance(value, (list, tuple, set, frozenset)):
        return f"list(len={len(value)})"
    return f"<{type(value).__name__}>"


def safe_log_context(**kwargs: Any) -> dict[str, str]:
    """Build a context dict safe for logging. All values are redacted."""
    ctx = {}
    for key, value in kwargs.items():
        if key in _TEXT_KEYS and isinstance(value, str):
            ctx[key] = redact_text(value)
        else:
            ctx[key] = redact_value(value)
    return ctx

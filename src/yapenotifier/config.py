"""Backend configuration read from environment variables.

Accessors are evaluated on every call so tests can monkeypatch the
environment without reloading modules.
"""

import os
from decimal import Decimal, InvalidOperation

DEFAULT_DUPLICATE_WINDOW_SECONDS = 5
DEFAULT_MAX_PAYMENT_AMOUNT = Decimal("1000000")

# Fields that may tighten the duplicate match
ALLOWED_MATCH_FIELDS = ("body", "amount", "payer_name")


def get_duplicate_window_seconds() -> int:
    """Matching window (seconds, either direction) for duplicate detection."""
    raw = os.environ.get("DUPLICATE_WINDOW_SECONDS", "")
    if not raw.strip():
        return DEFAULT_DUPLICATE_WINDOW_SECONDS
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"DUPLICATE_WINDOW_SECONDS must be an integer, got {raw!r}")
    if value < 0:
        raise ValueError("DUPLICATE_WINDOW_SECONDS must be >= 0")
    return value


def get_duplicate_match_fields() -> tuple[str, ...]:
    """Extra fields that must be equal for two records to be duplicates.

    Comma separated, e.g. "amount,payer_name". Empty means time-only.
    """
    raw = os.environ.get("DUPLICATE_MATCH_FIELDS", "")
    fields = tuple(f.strip() for f in raw.split(",") if f.strip())
    unknown = [f for f in fields if f not in ALLOWED_MATCH_FIELDS]
    if unknown:
        raise ValueError(f"Unknown DUPLICATE_MATCH_FIELDS: {', '.join(unknown)}")
    return fields


def get_max_amount() -> Decimal:
    raw = os.environ.get("MAX_PAYMENT_AMOUNT", "")
    if not raw.strip():
        return DEFAULT_MAX_PAYMENT_AMOUNT
    try:
        return Decimal(raw)
    except InvalidOperation:
        raise ValueError(f"MAX_PAYMENT_AMOUNT must be numeric, got {raw!r}")

"""Duplicate detection for ingested payment notifications.

The same physical payment can surface as several OS notifications in
quick succession (banner, persistent notification, dual-app mirror) and
as repeated submissions after delivery retries. A candidate is flagged
when any earlier record of the same device and app lies inside a short
window around it. Flagging never drops the record.

Records are plain mappings with the notifications table's column names.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Iterable, Mapping

MATCH_FIELDS = ("body", "amount", "payer_name")


def reference_time(record: Mapping[str, Any]) -> datetime | None:
    """posted_at when the device sent it, else received_at."""
    return record.get("posted_at") or record.get("received_at")


def _same_app(candidate: Mapping[str, Any], record: Mapping[str, Any]) -> bool:
    package_name = candidate.get("package_name")
    if package_name:
        return record.get("package_name") == package_name
    return record.get("source_app") == candidate.get("source_app")


def _field_equal(field: str, a: Any, b: Any) -> bool:
    if a is None or b is None:
        return a is None and b is None
    if field == "amount":
        return Decimal(str(a)) == Decimal(str(b))
    if field == "payer_name":
        return str(a).strip().casefold() == str(b).strip().casefold()
    return a == b


def is_duplicate(
    candidate: Mapping[str, Any],
    recent: Iterable[Mapping[str, Any]],
    *,
    window: timedelta,
    match_fields: tuple[str, ...] = (),
) -> bool:
    """Decide whether candidate re-reports an already recorded payment.

    Args:
        candidate: Incoming record (device_id, package_name, source_app,
            posted_at/received_at and any match fields).
        recent: Prior records to compare against. Need not be pre-filtered.
        window: Maximum distance between reference times, either direction.
        match_fields: Extra fields that must also be equal
            (subset of body, amount, payer_name).

    Returns:
        True if at least one prior record matches.

    Raises:
        ValueError: On an unknown match field.
    """
    unknown = [f for f in match_fields if f not in MATCH_FIELDS]
    if unknown:
        raise ValueError(f"Unknown match fields: {unknown}")

    candidate_time = reference_time(candidate)
    if candidate_time is None:
        return False

    for record in recent:
        if record.get("device_id") != candidate.get("device_id"):
            continue
        if not _same_app(candidate, record):
            continue
        record_time = reference_time(record)
        if record_time is None or abs(record_time - candidate_time) > window:
            continue
        if all(_field_equal(f, candidate.get(f), record.get(f)) for f in match_fields):
            return True

    return False

"""Notifications repository - persisted payment records.

Uses raw SQL with psycopg2 (no ORM). Every ingestion call inserts exactly
one row; duplicates are flagged, never dropped.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Any

from psycopg2.extensions import cursor as PgCursor

_NOTIFICATION_COLUMNS = """
    id, commerce_id, device_id, app_instance_id, source_app, package_name,
    android_user_id, android_uid, title, body, amount, currency, payer_name,
    posted_at, received_at, status, is_duplicate, raw_json, created_at
"""

_FIELDS = (
    "id", "commerce_id", "device_id", "app_instance_id", "source_app",
    "package_name", "android_user_id", "android_uid", "title", "body",
    "amount", "currency", "payer_name", "posted_at", "received_at",
    "status", "is_duplicate", "raw_json", "created_at",
)


def _row_to_dict(row: tuple) -> dict:
    return dict(zip(_FIELDS, row))


def insert_notification(
    cur: PgCursor,
    *,
    commerce_id: int,
    device_id: int,
    source_app: str,
    body: str,
    status: str,
    is_duplicate: bool,
    app_instance_id: int | None = None,
    package_name: str | None = None,
    android_user_id: int | None = None,
    android_uid: int | None = None,
    title: str | None = None,
    amount: Decimal | None = None,
    currency: str | None = None,
    payer_name: str | None = None,
    posted_at: datetime | None = None,
    received_at: datetime | None = None,
    raw_json: dict | None = None,
) -> dict:
    """Insert a notification record.

    received_at defaults to the server clock when the device did not send
    one.

    Returns:
        The inserted row as a dict.
    """
    cur.execute(
        f"""
        INSERT INTO notifications (
            commerce_id, device_id, app_instance_id, source_app, package_name,
            android_user_id, android_uid, title, body, amount, currency,
            payer_name, posted_at, received_at, status, is_duplicate, raw_json
        )
        VALUES (
            %s, %s, %s, %s, %s,
            %s, %s, %s, %s, %s, %s,
            %s, %s, COALESCE(%s::TIMESTAMPTZ, now()), %s, %s, %s::jsonb
        )
        RETURNING {_NOTIFICATION_COLUMNS}
        """,
        (
            commerce_id,
            device_id,
            app_instance_id,
            source_app,
            package_name,
            android_user_id,
            android_uid,
            title,
            body,
            amount,
            currency,
            payer_name,
            posted_at,
            received_at,
            status,
            is_duplicate,
            json.dumps(raw_json) if raw_json is not None else None,
        ),
    )
    return _row_to_dict(cur.fetchone())


def find_recent_notifications(
    cur: PgCursor,
    *,
    device_id: int,
    reference_time: datetime,
    window_seconds: int,
    package_name: str | None = None,
    source_app: str | None = None,
) -> list[dict]:
    """Find records of the same device and app around a reference time.

    Matches on package_name when given, otherwise on source_app. The
    reference time of stored rows is posted_at, falling back to
    received_at.

    Args:
        cur: Database cursor (within transaction).
        device_id: Device row id.
        reference_time: Candidate's reference time.
        window_seconds: Half-width of the window.
        package_name: Candidate package (preferred key).
        source_app: Candidate source app (fallback key).

    Returns:
        List of row dicts, oldest first.
    """
    if package_name:
        app_clause = "package_name = %s"
        app_value = package_name
    else:
        app_clause = "source_app = %s"
        app_value = source_app

    cur.execute(
        f"""
        SELECT {_NOTIFICATION_COLUMNS} FROM notifications
        WHERE device_id = %s
          AND {app_clause}
          AND COALESCE(posted_at, received_at)
              BETWEEN %s::TIMESTAMPTZ - make_interval(secs => %s)
                  AND %s::TIMESTAMPTZ + make_interval(secs => %s)
        ORDER BY COALESCE(posted_at, received_at), id
        """,
        (
            device_id,
            app_value,
            reference_time,
            window_seconds,
            reference_time,
            window_seconds,
        ),
    )
    return [_row_to_dict(row) for row in cur.fetchall()]


def get_notification(cur: PgCursor, *, commerce_id: int, notification_id: int) -> dict | None:
    cur.execute(
        f"""
        SELECT {_NOTIFICATION_COLUMNS} FROM notifications
        WHERE id = %s AND commerce_id = %s
        """,
        (notification_id, commerce_id),
    )
    row = cur.fetchone()
    return _row_to_dict(row) if row else None


def _build_filters(commerce_id: int, filters: dict[str, Any]) -> tuple[str, list]:
    clauses = ["n.commerce_id = %s"]
    params: list = [commerce_id]

    if filters.get("device_uuid"):
        clauses.append("d.uuid = %s")
        params.append(filters["device_uuid"])
    for column in ("source_app", "package_name", "app_instance_id", "status"):
        if filters.get(column) is not None:
            clauses.append(f"n.{column} = %s")
            params.append(filters[column])
    if filters.get("start_date") is not None:
        clauses.append("n.received_at >= %s")
        params.append(filters["start_date"])
    if filters.get("end_date") is not None:
        clauses.append("n.received_at <= %s")
        params.append(filters["end_date"])
    if filters.get("exclude_duplicates"):
        clauses.append("n.is_duplicate = false")

    return " AND ".join(clauses), params


def list_notifications(
    cur: PgCursor,
    *,
    commerce_id: int,
    filters: dict[str, Any] | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[dict]:
    """List notifications of a commerce, newest first.

    Supported filters: device_uuid, source_app, package_name,
    app_instance_id, status, start_date, end_date, exclude_duplicates.
    """
    where, params = _build_filters(commerce_id, filters or {})
    columns = ", ".join(f"n.{f}" for f in _FIELDS)

    cur.execute(
        f"""
        SELECT {columns}
        FROM notifications n
        JOIN devices d ON d.id = n.device_id
        WHERE {where}
        ORDER BY n.received_at DESC, n.id DESC
        LIMIT %s OFFSET %s
        """,
        params + [limit, offset],
    )
    return [_row_to_dict(row) for row in cur.fetchall()]


def get_statistics(
    cur: PgCursor,
    *,
    commerce_id: int,
    filters: dict[str, Any] | None = None,
) -> dict:
    """Aggregate counts and totals for a commerce.

    Totals only include non-duplicate records, split by currency.
    """
    where, params = _build_filters(commerce_id, filters or {})

    cur.execute(
        f"""
        SELECT
            COUNT(*),
            COUNT(*) FILTER (WHERE n.is_duplicate),
            COUNT(*) FILTER (WHERE n.status = 'inconsistent')
        FROM notifications n
        JOIN devices d ON d.id = n.device_id
        WHERE {where}
        """,
        params,
    )
    total, duplicates, inconsistent = cur.fetchone()

    cur.execute(
        f"""
        SELECT n.source_app, COUNT(*)
        FROM notifications n
        JOIN devices d ON d.id = n.device_id
        WHERE {where}
        GROUP BY n.source_app
        ORDER BY n.source_app
        """,
        params,
    )
    by_source_app = {row[0]: row[1] for row in cur.fetchall()}

    cur.execute(
        f"""
        SELECT COALESCE(n.currency, 'PEN'), SUM(n.amount)
        FROM notifications n
        JOIN devices d ON d.id = n.device_id
        WHERE {where} AND NOT n.is_duplicate AND n.amount IS NOT NULL
        GROUP BY COALESCE(n.currency, 'PEN')
        ORDER BY 1
        """,
        params,
    )
    totals_by_currency = {row[0]: row[1] for row in cur.fetchall()}

    return {
        "total": total,
        "duplicates": duplicates,
        "inconsistent": inconsistent,
        "by_source_app": by_source_app,
        "totals_by_currency": totals_by_currency,
    }


def update_status(
    cur: PgCursor,
    *,
    commerce_id: int,
    notification_id: int,
    status: str,
) -> dict | None:
    """Change the validation status. Returns None if not found."""
    cur.execute(
        f"""
        UPDATE notifications
        SET status = %s
        WHERE id = %s AND commerce_id = %s
        RETURNING {_NOTIFICATION_COLUMNS}
        """,
        (status, notification_id, commerce_id),
    )
    row = cur.fetchone()
    return _row_to_dict(row) if row else None

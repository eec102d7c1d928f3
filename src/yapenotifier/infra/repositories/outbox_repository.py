"""Outbox repository - publish boundary towards the dashboard transport.

Uses raw SQL with psycopg2 (no ORM). Events are written in the same
transaction as the record they describe; an external publisher relays
them to subscribers.
"""

import json

from psycopg2.extensions import cursor as PgCursor

NOTIFICATION_CREATED = "NOTIFICATION_CREATED"


def emit_event(
    cur: PgCursor,
    *,
    commerce_id: int,
    event_type: str,
    aggregate_type: str,
    aggregate_id: str,
    payload: dict | None = None,
    correlation_id: str | None = None,
) -> int:
    """Emit an event to the outbox.

    Args:
        cur: Database cursor (within transaction).
        commerce_id: Commerce the event belongs to (subscriber channel).
        event_type: Event type (e.g., NOTIFICATION_CREATED).
        aggregate_type: Aggregate type (e.g., notification).
        aggregate_id: Aggregate ID.
        payload: Optional JSON payload (no PII).
        correlation_id: Optional correlation ID for tracing.

    Returns:
        The generated event ID.
    """
    payload_json = json.dumps(payload) if payload else None

    cur.execute(
        """
        INSERT INTO outbox_events (
            commerce_id, event_type, aggregate_type,
            aggregate_id, payload, correlation_id
        )
        VALUES (%s, %s, %s, %s, %s::jsonb, %s)
        RETURNING id
        """,
        (
            commerce_id,
            event_type,
            aggregate_type,
            aggregate_id,
            payload_json,
            correlation_id,
        ),
    )
    return cur.fetchone()[0]


def emit_notification_created(
    cur: PgCursor,
    *,
    commerce_id: int,
    notification_id: int,
    device_id: int,
    source_app: str,
    is_duplicate: bool,
    status: str,
    app_instance_id: int | None = None,
    correlation_id: str | None = None,
) -> int:
    """Emit NOTIFICATION_CREATED.

    The payload carries ids and flags only. Subscribers fetch the record
    itself through the commerce-scoped read endpoints.
    """
    payload = {
        "notification_id": notification_id,
        "device_id": device_id,
        "app_instance_id": app_instance_id,
        "source_app": source_app,
        "status": status,
        "is_duplicate": is_duplicate,
    }

    return emit_event(
        cur,
        commerce_id=commerce_id,
        event_type=NOTIFICATION_CREATED,
        aggregate_type="notification",
        aggregate_id=str(notification_id),
        payload=payload,
        correlation_id=correlation_id,
    )


def list_events(
    cur: PgCursor,
    *,
    commerce_id: int,
    aggregate_type: str | None = None,
    aggregate_id: str | None = None,
    limit: int = 50,
) -> list[dict]:
    """Most recent outbox events of a commerce, newest first."""
    query = """
        SELECT id, event_type, aggregate_type, aggregate_id, payload,
               correlation_id, occurred_at
        FROM outbox_events
        WHERE commerce_id = %s
    """
    params: list = [commerce_id]
    if aggregate_type:
        query += " AND aggregate_type = %s"
        params.append(aggregate_type)
    if aggregate_id:
        query += " AND aggregate_id = %s"
        params.append(aggregate_id)
    query += " ORDER BY occurred_at DESC, id DESC LIMIT %s"
    params.append(limit)

    cur.execute(query, params)
    return [
        {
            "id": row[0],
            "event_type": row[1],
            "aggregate_type": row[2],
            "aggregate_id": row[3],
            "payload": row[4],
            "correlation_id": row[5],
            "occurred_at": row[6],
        }
        for row in cur.fetchall()
    ]

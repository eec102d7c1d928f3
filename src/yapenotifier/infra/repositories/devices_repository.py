"""Devices repository - lookup, locking and liveness of capture devices.

Uses raw SQL with psycopg2 (no ORM). Device registration itself happens
elsewhere; this module only reads and touches existing rows.
"""

from psycopg2.extensions import cursor as PgCursor

from yapenotifier.infra.db import for_update

_DEVICE_COLUMNS = "id, uuid, commerce_id, name, is_active, last_seen_at"


def _row_to_dict(row: tuple) -> dict:
    return {
        "id": row[0],
        "uuid": str(row[1]),
        "commerce_id": row[2],
        "name": row[3],
        "is_active": row[4],
        "last_seen_at": row[5],
    }


def get_device_by_uuid(cur: PgCursor, device_uuid: str) -> dict | None:
    """Fetch a device by its client-generated UUID."""
    cur.execute(
        f"SELECT {_DEVICE_COLUMNS} FROM devices WHERE uuid = %s",
        (device_uuid,),
    )
    row = cur.fetchone()
    return _row_to_dict(row) if row else None


def lock_device_by_uuid(cur: PgCursor, device_uuid: str) -> dict | None:
    """Fetch and lock a device row (SELECT ... FOR UPDATE).

    Concurrent ingestion for the same device queues on this lock, which
    makes the duplicate check and the insert that follows atomic per
    device.

    Args:
        cur: Database cursor (must be inside a transaction).
        device_uuid: Device UUID.

    Returns:
        Device dict, or None if no device has this UUID.
    """
    row = for_update(
        cur,
        f"SELECT {_DEVICE_COLUMNS} FROM devices WHERE uuid = %s",
        (device_uuid,),
    )
    return _row_to_dict(row) if row else None


def touch_last_seen(cur: PgCursor, *, device_id: int) -> None:
    cur.execute(
        """
        UPDATE devices
        SET last_seen_at = now(), updated_at = now()
        WHERE id = %s
        """,
        (device_id,),
    )


def update_health(
    cur: PgCursor,
    *,
    device_id: int,
    battery_level: int | None = None,
    battery_optimization_disabled: bool | None = None,
    notification_permission_enabled: bool | None = None,
) -> None:
    """Record a device health report.

    Fields left as None keep their previous value. Heartbeat and
    last_seen_at are always refreshed.
    """
    cur.execute(
        """
        UPDATE devices
        SET battery_level = COALESCE(%s, battery_level),
            battery_optimization_disabled = COALESCE(%s, battery_optimization_disabled),
            notification_permission_enabled = COALESCE(%s, notification_permission_enabled),
            last_heartbeat = now(),
            last_seen_at = now(),
            updated_at = now()
        WHERE id = %s
        """,
        (
            battery_level,
            battery_optimization_disabled,
            notification_permission_enabled,
            device_id,
        ),
    )

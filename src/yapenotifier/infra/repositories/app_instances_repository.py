"""App instances repository - (device, package, android user) identities.

Uses raw SQL with psycopg2 (no ORM).
"""

from psycopg2.extensions import cursor as PgCursor

from yapenotifier.domain.events import AppInstance

_INSTANCE_COLUMNS = (
    "id, commerce_id, device_id, package_name, android_user_id, instance_label"
)


def _row_to_instance(row: tuple) -> AppInstance:
    return AppInstance(
        id=row[0],
        commerce_id=row[1],
        device_id=row[2],
        package_name=row[3],
        android_user_id=row[4],
        instance_label=row[5],
    )


def upsert_instance(
    cur: PgCursor,
    *,
    commerce_id: int,
    device_id: int,
    package_name: str,
    android_user_id: int,
) -> AppInstance:
    """Find or create an app instance in one atomic statement.

    The no-op DO UPDATE makes RETURNING yield the existing row on
    conflict, so concurrent first sightings converge on one id. The
    operator label is never touched here.

    Args:
        cur: Database cursor (within transaction).
        commerce_id: Owning commerce.
        device_id: Device row id.
        package_name: Android package name.
        android_user_id: Android user / work profile id.

    Returns:
        The resolved AppInstance.
    """
    cur.execute(
        f"""
        INSERT INTO app_instances (commerce_id, device_id, package_name, android_user_id)
        VALUES (%s, %s, %s, %s)
        ON CONFLICT (device_id, package_name, android_user_id)
        DO UPDATE SET updated_at = app_instances.updated_at
        RETURNING {_INSTANCE_COLUMNS}
        """,
        (commerce_id, device_id, package_name, android_user_id),
    )
    return _row_to_instance(cur.fetchone())


def get_instance(cur: PgCursor, *, commerce_id: int, instance_id: int) -> AppInstance | None:
    cur.execute(
        f"""
        SELECT {_INSTANCE_COLUMNS} FROM app_instances
        WHERE id = %s AND commerce_id = %s
        """,
        (instance_id, commerce_id),
    )
    row = cur.fetchone()
    return _row_to_instance(row) if row else None


def list_instances(
    cur: PgCursor,
    *,
    commerce_id: int,
    device_id: int | None = None,
) -> list[AppInstance]:
    """List app instances of a commerce, optionally for one device."""
    query = f"SELECT {_INSTANCE_COLUMNS} FROM app_instances WHERE commerce_id = %s"
    params: list = [commerce_id]
    if device_id is not None:
        query += " AND device_id = %s"
        params.append(device_id)
    query += " ORDER BY device_id, package_name, android_user_id"

    cur.execute(query, params)
    return [_row_to_instance(row) for row in cur.fetchall()]


def update_label(
    cur: PgCursor,
    *,
    commerce_id: int,
    instance_id: int,
    instance_label: str | None,
) -> AppInstance | None:
    """Set (or clear) the operator label. Returns None if not found."""
    cur.execute(
        f"""
        UPDATE app_instances
        SET instance_label = %s, updated_at = now()
        WHERE id = %s AND commerce_id = %s
        RETURNING {_INSTANCE_COLUMNS}
        """,
        (instance_label, instance_id, commerce_id),
    )
    row = cur.fetchone()
    return _row_to_instance(row) if row else None

"""Instance resolution - stable identity of a package per Android user.

Android multi-user and work profiles let one device run the same banking
app under several accounts at once. Each (device, package, android user)
maps to exactly one app_instances row, created lazily on first sighting.
"""

from psycopg2.extensions import cursor as PgCursor

from yapenotifier.domain.events import AppInstance
from yapenotifier.infra.repositories.app_instances_repository import upsert_instance


def resolve(
    cur: PgCursor,
    *,
    commerce_id: int | None,
    device_id: int,
    package_name: str | None,
    android_user_id: int | None,
) -> AppInstance | None:
    """Find or create the app instance for a submission.

    Older clients do not send android_user_id; resolution is then skipped
    and the notification is stored without an instance.

    Args:
        cur: Database cursor (within the ingestion transaction).
        commerce_id: Owning commerce of the device.
        device_id: Device row id.
        package_name: Android package name.
        android_user_id: Android user / work profile id.

    Returns:
        AppInstance, or None when any key component is missing.
    """
    if android_user_id is None or not package_name or commerce_id is None:
        return None

    return upsert_instance(
        cur,
        commerce_id=commerce_id,
        device_id=device_id,
        package_name=package_name,
        android_user_id=android_user_id,
    )

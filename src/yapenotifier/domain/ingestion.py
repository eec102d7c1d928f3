"""Notification ingestion - transactional create with duplicate flagging.

One transaction per submission:
1. Lock the device row (serialises ingestion per device)
2. Decide the record status (explicit, else payment validator)
3. Resolve the app instance (atomic upsert)
4. Windowed duplicate check
5. Insert the record, touch device last_seen_at
6. Emit NOTIFICATION_CREATED to the outbox

Duplicates are stored and flagged, never rejected.
"""

from datetime import timedelta
from decimal import Decimal

from psycopg2.extensions import cursor as PgCursor

from yapenotifier import config
from yapenotifier.domain.duplicates import is_duplicate, reference_time
from yapenotifier.domain.instance_resolver import resolve
from yapenotifier.domain.payment_validator import validate_payment
from yapenotifier.infra.db import txn
from yapenotifier.infra.repositories.devices_repository import (
    lock_device_by_uuid,
    touch_last_seen,
)
from yapenotifier.infra.repositories.notifications_repository import (
    find_recent_notifications,
    insert_notification,
    update_status,
)
from yapenotifier.infra.repositories.outbox_repository import emit_notification_created
from yapenotifier.infra.time import ensure_utc, utc_now
from yapenotifier.observability.logging import get_logger
from yapenotifier.observability.redaction import safe_log_context

logger = get_logger(__name__)

DEFAULT_CURRENCY = "PEN"


class DeviceNotFoundError(Exception):
    """Raised when the submitting device UUID is not registered."""

    pass


class DeviceInactiveError(Exception):
    """Raised when the submitting device has been deactivated."""

    pass


class CommerceRequiredError(Exception):
    """Raised when the device is not linked to a commerce."""

    pass


class NotificationNotFoundError(Exception):
    """Raised when a notification does not exist in the caller's commerce."""

    pass


def create_notification(
    submission: dict,
    *,
    correlation_id: str | None = None,
    window_seconds: int | None = None,
    match_fields: tuple[str, ...] | None = None,
    max_amount: Decimal | None = None,
    cur: PgCursor | None = None,
) -> dict:
    """Create a notification record from a device submission.

    Args:
        submission: Validated request fields (device_id, source_app, body,
            and the optional fields of the ingestion endpoint).
        correlation_id: Optional correlation ID for tracing.
        window_seconds: Duplicate window override (default from config).
        match_fields: Duplicate match fields override (default from config).
        max_amount: Validator amount ceiling override (default from config).
        cur: Optional cursor to run inside an existing transaction.

    Returns:
        The inserted record as a dict, including is_duplicate.

    Raises:
        DeviceNotFoundError: Unknown device UUID.
        DeviceInactiveError: Device deactivated.
        CommerceRequiredError: Device not linked to a commerce.
    """
    if window_seconds is None:
        window_seconds = config.get_duplicate_window_seconds()
    if match_fields is None:
        match_fields = config.get_duplicate_match_fields()
    if max_amount is None:
        max_amount = config.get_max_amount()

    device_uuid = str(submission["device_id"])

    def _do(c: PgCursor) -> dict:
        device = lock_device_by_uuid(c, device_uuid)
        if device is None:
            raise DeviceNotFoundError(f"Device {device_uuid} not found")
        if not device["is_active"]:
            raise DeviceInactiveError(f"Device {device_uuid} is inactive")
        commerce_id = device["commerce_id"]
        if commerce_id is None:
            raise CommerceRequiredError(f"Device {device_uuid} has no commerce")

        status = submission.get("status")
        if status is None:
            validation = validate_payment(
                submission.get("title"),
                submission.get("body"),
                submission.get("amount"),
                max_amount=max_amount,
            )
            status = "pending" if validation.valid else "inconsistent"
            if not validation.valid:
                logger.warning(
                    "notification marked inconsistent by validator",
                    extra={
                        "extra_fields": safe_log_context(
                            device_id=device["id"],
                            source_app=submission.get("source_app"),
                            reason=validation.reason,
                        )
                    },
                )

        instance = resolve(
            c,
            commerce_id=commerce_id,
            device_id=device["id"],
            package_name=submission.get("package_name"),
            android_user_id=submission.get("android_user_id"),
        )

        candidate = {
            "device_id": device["id"],
            "source_app": submission["source_app"],
            "package_name": submission.get("package_name"),
            "body": submission.get("body"),
            "amount": submission.get("amount"),
            "payer_name": submission.get("payer_name"),
            "posted_at": ensure_utc(submission.get("posted_at")),
            "received_at": ensure_utc(submission.get("received_at")) or utc_now(),
        }

        recent = find_recent_notifications(
            c,
            device_id=device["id"],
            reference_time=reference_time(candidate),
            window_seconds=window_seconds,
            package_name=candidate["package_name"],
            source_app=candidate["source_app"],
        )
        duplicate = is_duplicate(
            candidate,
            recent,
            window=timedelta(seconds=window_seconds),
            match_fields=match_fields,
        )

        record = insert_notification(
            c,
            commerce_id=commerce_id,
            device_id=device["id"],
            app_instance_id=instance.id if instance else None,
            source_app=candidate["source_app"],
            package_name=candidate["package_name"],
            android_user_id=submission.get("android_user_id"),
            android_uid=submission.get("android_uid"),
            title=submission.get("title"),
            body=submission["body"],
            amount=submission.get("amount"),
            currency=submission.get("currency") or DEFAULT_CURRENCY,
            payer_name=submission.get("payer_name"),
            posted_at=candidate["posted_at"],
            received_at=candidate["received_at"],
            status=status,
            is_duplicate=duplicate,
            raw_json=submission.get("raw_json"),
        )

        touch_last_seen(c, device_id=device["id"])

        emit_notification_created(
            c,
            commerce_id=commerce_id,
            notification_id=record["id"],
            device_id=device["id"],
            app_instance_id=record["app_instance_id"],
            source_app=record["source_app"],
            status=record["status"],
            is_duplicate=duplicate,
            correlation_id=correlation_id,
        )

        log_ctx = safe_log_context(
            notification_id=record["id"],
            device_id=device["id"],
            app_instance_id=record["app_instance_id"],
            source_app=record["source_app"],
            status=record["status"],
            is_duplicate=duplicate,
        )
        if duplicate:
            logger.info("duplicate notification flagged", extra={"extra_fields": log_ctx})
        else:
            logger.info("notification created", extra={"extra_fields": log_ctx})

        return record

    if cur is not None:
        return _do(cur)
    with txn() as c:
        return _do(c)


def set_notification_status(
    *,
    commerce_id: int,
    notification_id: int,
    status: str,
    cur: PgCursor | None = None,
) -> dict:
    """Operator review of a stored record.

    Raises:
        NotificationNotFoundError: No such record in this commerce.
    """

    def _do(c: PgCursor) -> dict:
        record = update_status(
            c,
            commerce_id=commerce_id,
            notification_id=notification_id,
            status=status,
        )
        if record is None:
            raise NotificationNotFoundError(f"Notification {notification_id} not found")
        return record

    if cur is not None:
        return _do(cur)
    with txn() as c:
        return _do(c)

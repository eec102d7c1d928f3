"""Notifications endpoints.

POST   /notifications               → ingest from a capture device (201)
GET    /notifications               → list (commerce scoped)
GET    /notifications/statistics    → aggregates (commerce scoped)
GET    /notifications/{id}          → detail (commerce scoped)
PATCH  /notifications/{id}/status   → change validation status
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from pydantic import BaseModel, ConfigDict, Field

from yapenotifier.api.scope import CommerceContext, require_commerce
from yapenotifier.domain.ingestion import (
    CommerceRequiredError,
    DeviceInactiveError,
    DeviceNotFoundError,
    NotificationNotFoundError,
    create_notification,
    set_notification_status,
)
from yapenotifier.infra.db import txn
from yapenotifier.infra.repositories import notifications_repository
from yapenotifier.observability.correlation import get_correlation_id
from yapenotifier.observability.logging import get_logger
from yapenotifier.observability.redaction import safe_log_context

logger = get_logger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])

SourceAppField = Literal["yape", "plin", "bcp", "interbank", "bbva", "scotiabank"]
StatusField = Literal["pending", "validated", "inconsistent"]


# ── Schemas ───────────────────────────────────────────────────────────────────


class CreateNotificationRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    device_id: UUID
    source_app: SourceAppField
    package_name: str | None = Field(None, max_length=255)
    android_user_id: int | None = None
    android_uid: int | None = None
    title: str | None = Field(None, max_length=255)
    body: str
    amount: Decimal | None = Field(None, ge=0)
    currency: str | None = Field(None, min_length=3, max_length=3)
    payer_name: str | None = Field(None, max_length=255)
    posted_at: datetime | None = None
    received_at: datetime | None = None
    raw_json: dict[str, Any] | None = None
    status: StatusField | None = None


class UpdateStatusRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: StatusField


# ── Helpers ───────────────────────────────────────────────────────────────────


def _serialize(record: dict) -> dict:
    result = dict(record)
    for key in ("posted_at", "received_at", "created_at"):
        value = result.get(key)
        if value is not None:
            result[key] = value.isoformat()
    if result.get("amount") is not None:
        result["amount"] = float(result["amount"])
    return result


# ── POST /notifications ───────────────────────────────────────────────────────


@router.post("", status_code=201)
def ingest_notification(body: CreateNotificationRequest) -> dict:
    """Store a payment notification submitted by a device.

    Duplicates are stored and flagged (is_duplicate), never rejected.

    Raises:
        404: Unknown device.
        403: Inactive device, or device without commerce.
    """
    correlation_id = get_correlation_id()
    try:
        record = create_notification(
            body.model_dump(),
            correlation_id=correlation_id,
        )
    except DeviceNotFoundError:
        raise HTTPException(status_code=404, detail="Device not found")
    except DeviceInactiveError:
        raise HTTPException(status_code=403, detail="Device is inactive")
    except CommerceRequiredError:
        logger.warning(
            "ingestion attempted by device without commerce",
            extra={"extra_fields": safe_log_context(device_uuid=str(body.device_id))},
        )
        raise HTTPException(status_code=403, detail="Device is not linked to a commerce")

    return _serialize(record)


# ── GET /notifications ────────────────────────────────────────────────────────


@router.get("")
def list_notifications(
    ctx: CommerceContext = Depends(require_commerce),
    device_id: UUID | None = Query(None, description="Device UUID"),
    source_app: SourceAppField | None = Query(None),
    package_name: str | None = Query(None),
    app_instance_id: int | None = Query(None),
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    status: StatusField | None = Query(None),
    exclude_duplicates: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> dict:
    """List notifications of the caller's commerce, newest first."""
    filters = {
        "device_uuid": str(device_id) if device_id else None,
        "source_app": source_app,
        "package_name": package_name,
        "app_instance_id": app_instance_id,
        "start_date": start_date,
        "end_date": end_date,
        "status": status,
        "exclude_duplicates": exclude_duplicates,
    }
    with txn() as cur:
        rows = notifications_repository.list_notifications(
            cur,
            commerce_id=ctx.commerce_id,
            filters=filters,
            limit=limit,
            offset=offset,
        )

    return {"notifications": [_serialize(r) for r in rows], "limit": limit, "offset": offset}


@router.get("/statistics")
def notification_statistics(
    ctx: CommerceContext = Depends(require_commerce),
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
) -> dict:
    """Counts by source app and non-duplicate totals by currency."""
    with txn() as cur:
        stats = notifications_repository.get_statistics(
            cur,
            commerce_id=ctx.commerce_id,
            filters={"start_date": start_date, "end_date": end_date},
        )

    stats["totals_by_currency"] = {
        currency: float(total) for currency, total in stats["totals_by_currency"].items()
    }
    return stats


@router.get("/{notification_id}")
def get_notification(
    notification_id: int = Path(..., ge=1),
    ctx: CommerceContext = Depends(require_commerce),
) -> dict:
    with txn() as cur:
        record = notifications_repository.get_notification(
            cur, commerce_id=ctx.commerce_id, notification_id=notification_id
        )
    if record is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    return _serialize(record)


@router.patch("/{notification_id}/status")
def update_notification_status(
    body: UpdateStatusRequest,
    notification_id: int = Path(..., ge=1),
    ctx: CommerceContext = Depends(require_commerce),
) -> dict:
    """Operator review: move a record between pending/validated/inconsistent."""
    try:
        record = set_notification_status(
            commerce_id=ctx.commerce_id,
            notification_id=notification_id,
            status=body.status,
        )
    except NotificationNotFoundError:
        raise HTTPException(status_code=404, detail="Notification not found")

    logger.info(
        "notification status updated",
        extra={
            "extra_fields": safe_log_context(
                notification_id=notification_id,
                commerce_id=ctx.commerce_id,
                status=body.status,
            )
        },
    )
    return _serialize(record)

"""Device health reporting (best-effort, never part of ingestion)."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, HTTPException, Path
from pydantic import BaseModel, ConfigDict, Field

from yapenotifier.infra.db import txn
from yapenotifier.infra.repositories.devices_repository import (
    lock_device_by_uuid,
    update_health,
)
from yapenotifier.observability.logging import get_logger
from yapenotifier.observability.redaction import safe_log_context

logger = get_logger(__name__)

router = APIRouter(prefix="/devices", tags=["devices"])


class DeviceHealthRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    battery_level: int | None = Field(None, ge=0, le=100)
    battery_optimization_disabled: bool | None = None
    notification_permission_enabled: bool | None = None


@router.post("/{device_uuid}/health")
def report_device_health(
    body: DeviceHealthRequest,
    device_uuid: UUID = Path(...),
) -> dict:
    with txn() as cur:
        device = lock_device_by_uuid(cur, str(device_uuid))
        if device is None:
            raise HTTPException(status_code=404, detail="Device not found")
        update_health(
            cur,
            device_id=device["id"],
            battery_level=body.battery_level,
            battery_optimization_disabled=body.battery_optimization_disabled,
            notification_permission_enabled=body.notification_permission_enabled,
        )

    logger.info(
        "device health updated",
        extra={
            "extra_fields": safe_log_context(
                device_id=device["id"],
                battery_level=body.battery_level,
                notification_permission_enabled=body.notification_permission_enabled,
            )
        },
    )
    return {"status": "ok", "device_id": str(device_uuid)}

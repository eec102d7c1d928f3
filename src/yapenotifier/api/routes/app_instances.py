"""App instance endpoints (operator label metadata).

GET    /app-instances                      → list for the commerce
GET    /devices/{uuid}/app-instances       → list for one device
PATCH  /app-instances/{id}/label           → set or clear the label
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path
from pydantic import BaseModel, ConfigDict, Field

from yapenotifier.api.scope import CommerceContext, require_commerce
from yapenotifier.infra.db import txn
from yapenotifier.infra.repositories import app_instances_repository
from yapenotifier.infra.repositories.devices_repository import get_device_by_uuid

router = APIRouter(tags=["app-instances"])


class UpdateLabelRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    instance_label: str | None = Field(None, max_length=100)


@router.get("/app-instances")
def list_app_instances(ctx: CommerceContext = Depends(require_commerce)) -> dict:
    with txn() as cur:
        instances = app_instances_repository.list_instances(cur, commerce_id=ctx.commerce_id)
    return {"instances": [i.to_dict() for i in instances]}


@router.get("/devices/{device_uuid}/app-instances")
def list_device_app_instances(
    device_uuid: UUID = Path(...),
    ctx: CommerceContext = Depends(require_commerce),
) -> dict:
    """List the instances seen on one device of the commerce."""
    with txn() as cur:
        device = get_device_by_uuid(cur, str(device_uuid))
        if device is None or device["commerce_id"] != ctx.commerce_id:
            raise HTTPException(status_code=404, detail="Device not found")
        instances = app_instances_repository.list_instances(
            cur, commerce_id=ctx.commerce_id, device_id=device["id"]
        )
    return {"instances": [i.to_dict() for i in instances]}


@router.patch("/app-instances/{instance_id}/label")
def update_app_instance_label(
    body: UpdateLabelRequest,
    instance_id: int = Path(..., ge=1),
    ctx: CommerceContext = Depends(require_commerce),
) -> dict:
    """Set the operator label. Blank labels are stored as NULL."""
    label = body.instance_label.strip() if body.instance_label else None
    with txn() as cur:
        instance = app_instances_repository.update_label(
            cur,
            commerce_id=ctx.commerce_id,
            instance_id=instance_id,
            instance_label=label or None,
        )
    if instance is None:
        raise HTTPException(status_code=404, detail="App instance not found")
    return instance.to_dict()

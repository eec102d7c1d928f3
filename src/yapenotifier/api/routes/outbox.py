"""Outbox events endpoint for debugging the publish boundary."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from yapenotifier.api.scope import CommerceContext, require_commerce
from yapenotifier.infra.db import txn
from yapenotifier.infra.repositories.outbox_repository import list_events

router = APIRouter(prefix="/outbox", tags=["outbox"])


@router.get("")
def list_outbox_events(
    ctx: CommerceContext = Depends(require_commerce),
    aggregate_type: str | None = Query(None, description="Filter by aggregate type"),
    aggregate_id: str | None = Query(None, description="Filter by aggregate ID"),
    limit: int = Query(50, ge=1, le=200, description="Max results"),
) -> dict:
    """List outbox events of the caller's commerce.

    Payloads carry ids and flags only (no PII).
    """
    with txn() as cur:
        rows = list_events(
            cur,
            commerce_id=ctx.commerce_id,
            aggregate_type=aggregate_type,
            aggregate_id=aggregate_id,
            limit=limit,
        )

    events = [
        {**row, "occurred_at": row["occurred_at"].isoformat() if row["occurred_at"] else None}
        for row in rows
    ]
    return {"events": events}

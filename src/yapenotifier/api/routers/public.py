"""Unauthenticated routes: liveness and the device allowlist pull."""

from fastapi import APIRouter

from yapenotifier.infra.db import txn
from yapenotifier.infra.repositories.monitor_packages_repository import list_active_packages

router = APIRouter()


@router.get("/health")
def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


@router.get("/settings/monitored-packages")
def monitored_packages() -> dict:
    """Active package names the capture devices should listen to."""
    with txn() as cur:
        packages = list_active_packages(cur)
    return {"packages": packages}

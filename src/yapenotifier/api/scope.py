"""Commerce scoping for read and label endpoints.

Authentication happens upstream (gateway / session layer). By the time a
request reaches this service the caller's commerce is carried in the
X-Commerce-Id header; every read is filtered by it.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Header, HTTPException

COMMERCE_ID_HEADER = "X-Commerce-Id"


@dataclass
class CommerceContext:
    """Context returned by require_commerce."""

    commerce_id: int


def require_commerce(
    x_commerce_id: str | None = Header(None, alias=COMMERCE_ID_HEADER),
) -> CommerceContext:
    """FastAPI dependency resolving the caller's commerce.

    Raises:
        HTTPException 403: Header missing or not a positive integer.
    """
    if not x_commerce_id:
        raise HTTPException(status_code=403, detail="Commerce scope required")
    try:
        commerce_id = int(x_commerce_id)
    except ValueError:
        raise HTTPException(status_code=403, detail="Invalid commerce scope")
    if commerce_id <= 0:
        raise HTTPException(status_code=403, detail="Invalid commerce scope")
    return CommerceContext(commerce_id=commerce_id)

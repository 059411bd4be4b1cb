from __future__ import annotations

import hmac
from typing import Optional

from fastapi import Header, HTTPException, Request, status

from ..schemas.inventory import StaffContext


def _unauthorized(detail: str = "Unauthorized") -> None:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


async def require_api_key(
    request: Request,
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> None:
    """Open when ``API_KEY`` is empty, otherwise ``X-API-Key`` must match it."""

    api_key = request.app.state.settings.API_KEY
    if not api_key:
        return
    provided_key = (x_api_key or "").strip()
    if not provided_key:
        _unauthorized("API key required")
    if not hmac.compare_digest(api_key, provided_key):
        _unauthorized("Invalid API key")


async def get_staff(
    x_staff_id: Optional[int] = Header(default=None, alias="X-Staff-Id"),
    x_staff_name: Optional[str] = Header(default=None, alias="X-Staff-Name"),
) -> StaffContext:
    # Staff identity is taken as given; it only labels inventory logs.
    name = (x_staff_name or "").strip() or None
    return StaffContext(staff_id=x_staff_id, staff_name=name)

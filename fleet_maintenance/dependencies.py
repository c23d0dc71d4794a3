from typing import Optional

from fastapi import Header

from fleet_maintenance.utils.exceptions import UnauthorizedException


# ─── Current Owner ────────────────────────────────────────────────────────────
def get_current_user_id(x_user_id: Optional[str] = Header(None, alias="X-User-Id")) -> str:
    """
    Owner of every row the request touches.

    Sessions are terminated upstream (gateway / frontend server) which forwards
    the authenticated user id in the X-User-Id header. All queries are scoped
    to it, so one user never sees another user's taxonomy or fleet.
    """
    if not x_user_id or not x_user_id.strip():
        raise UnauthorizedException("Missing X-User-Id header")
    return x_user_id.strip()

"""
Shared API Dependencies
=======================

Identity resolution happens upstream (gateway / auth service); requests
reach this service with the caller in headers.
"""

from typing import Optional

from fastapi import Header, HTTPException, status

from asksync.availability.domain import Identity
from asksync.config import UserRole


async def get_identity(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    x_org_id: Optional[str] = Header(None, alias="X-Org-Id"),
    x_user_role: str = Header(UserRole.MEMBER, alias="X-User-Role"),
    x_group_ids: str = Header("", alias="X-Group-Ids"),
) -> Identity:
    """Caller identity from the forwarded identity headers."""
    if not x_user_id or not x_org_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing identity headers"
        )
    groups = tuple(g.strip() for g in x_group_ids.split(",") if g.strip())
    return Identity(user_id=x_user_id, org_id=x_org_id, role=x_user_role, group_ids=groups)

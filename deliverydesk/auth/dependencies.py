# auth/dependencies.py
"""
Session-cookie auth. Login lives in the dispatch app; this service only reads
the `user_id` it stored in the Starlette session.
"""
from fastapi import Request, HTTPException, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
import logging

from deliverydesk.db import get_db
from deliverydesk.models.user import User

log = logging.getLogger(__name__)


async def get_current_user(request: Request, db: AsyncSession = Depends(get_db)) -> User:
    user_id = request.session.get("user_id")
    if not user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")

    result = await db.execute(
        select(User).where(User.id == user_id, User.is_active.is_(True))
    )
    user = result.scalar_one_or_none()
    if not user:
        log.warning("session points at missing or inactive user: %s", user_id)
        raise HTTPException(status_code=401, detail="Session expired")
    return user


def _require_role(role: str, label: str):
    async def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role != role:
            raise HTTPException(status_code=403, detail=f"{label} access only")
        return user
    dependency.__name__ = f"get_current_{role}"
    return dependency


get_current_driver = _require_role("driver", "Driver")
get_current_admin_user = _require_role("admin", "Admin")

# app/utils/dependencies.py
from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import security
from app.core.logging import bind_user_context
from app.core.permissions import Permission
from app.db import database, models
from app.services.permission_service import PermissionService
from app.utils.exceptions import UnauthorizedError

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


async def get_current_user(
    request: Request,
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(database.get_db),
) -> models.User:
    payload = security.verify_token(token)
    if not payload:
        raise UnauthorizedError("Could not validate credentials")
    email = payload.get("sub")
    if not email:
        raise UnauthorizedError("Could not validate credentials")

    result = await db.execute(select(models.User).where(models.User.email == email))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        raise UnauthorizedError("Could not validate credentials")

    bind_user_context(request, user.id)
    return user


def require_store_permission(permission: Permission):
    """Dependency factory for routes with a `store_id` path parameter."""
    async def permission_checker(
        store_id: int,
        current_user: models.User = Depends(get_current_user),
        db: AsyncSession = Depends(database.get_db),
    ) -> models.User:
        await PermissionService(db).ensure_permission(current_user.id, store_id, permission)
        return current_user
    return permission_checker

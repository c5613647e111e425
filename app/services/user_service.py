"""
User service layer: registration and credential checks.
"""
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import security
from app.core.logging import get_logger, log_auth_event
from app.db import models
from app.schemas.user import UserCreate
from app.utils.exceptions import ConflictError, NotFoundError

logger = get_logger(__name__)


class UserService:
    """Async user service using AsyncSession."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: int) -> models.User:
        user = await self.db.get(models.User, user_id)
        if not user:
            raise NotFoundError("User", user_id)
        return user

    async def get_user_by_email(self, email: str) -> Optional[models.User]:
        result = await self.db.execute(select(models.User).where(models.User.email == email.lower()))
        return result.scalar_one_or_none()

    async def register(self, user_data: UserCreate) -> models.User:
        email = user_data.email.lower()
        if await self.get_user_by_email(email):
            log_auth_event("register", email=email, success=False, reason="duplicate_email")
            raise ConflictError("Email already registered", reason="duplicate_email")

        user = models.User(
            email=email,
            hashed_password=security.hash_password(user_data.password),
            full_name=user_data.full_name,
            phone=user_data.phone,
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Email already registered", reason="duplicate_email")
        await self.db.refresh(user)

        log_auth_event("register", email=email, success=True, user_id=user.id)
        return user

    async def authenticate(self, email: str, password: str) -> Optional[models.User]:
        """Return the user for valid credentials, else None."""
        user = await self.get_user_by_email(email)
        if not user or not user.is_active or not security.verify_password(password, user.hashed_password):
            log_auth_event("login", email=email, success=False)
            return None

        log_auth_event("login", email=user.email, success=True, user_id=user.id)
        return user

"""
Store permission resolution.

authorize() answers one question: may this user exercise this permission on
this store? The checks run in a fixed order and the first that allows wins:

1. active membership: owner/admin roles always pass, other roles pass when
   the permission is in the member's explicit set;
2. public store: anyone may view products and orders of a non-private store;
3. access grant: a live (non-revoked, unexpired) grant implies the
   permissions of its access level.

A missing store is reported as NotFoundError before any of the above.
"""
import enum
from datetime import datetime, timezone
from typing import FrozenSet, Mapping, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger, log_security_event
from app.core.permissions import (
    ACCESS_LEVEL_PERMISSIONS,
    PUBLIC_STORE_PERMISSIONS,
    ROLE_PERMISSIONS,
    SUPERUSER_ROLES,
    AccessLevel,
    MemberRole,
    Permission,
)
from app.db import models
from app.utils.exceptions import NotFoundError, PermissionDeniedError

logger = get_logger(__name__)


class AccessDecision(str, enum.Enum):
    allow = "allow"
    deny = "deny"


def member_allows(
    role: MemberRole,
    granted: FrozenSet[Permission],
    permission: Permission,
) -> bool:
    if MemberRole(role) in SUPERUSER_ROLES:
        return True
    return permission in granted


def public_store_allows(is_private: bool, permission: Permission) -> bool:
    return not is_private and permission in PUBLIC_STORE_PERMISSIONS


def access_level_allows(level: AccessLevel, permission: Permission) -> bool:
    return permission in ACCESS_LEVEL_PERMISSIONS.get(AccessLevel(level), frozenset())


class PermissionService:
    """Resolves store-scoped permissions for a user."""

    def __init__(
        self,
        db: AsyncSession,
        role_permissions: Mapping[MemberRole, FrozenSet[Permission]] = ROLE_PERMISSIONS,
    ):
        self.db = db
        self.role_permissions = role_permissions

    async def get_store(self, store_id: int) -> models.Store:
        store = await self.db.get(models.Store, store_id)
        if not store:
            raise NotFoundError("Store", store_id)
        return store

    async def find_membership(self, store_id: int, user_id: int) -> Optional[models.StoreMember]:
        result = await self.db.execute(
            select(models.StoreMember).where(
                models.StoreMember.store_id == store_id,
                models.StoreMember.user_id == user_id,
                models.StoreMember.is_active.is_(True),
            )
        )
        return result.scalar_one_or_none()

    async def find_active_grant(
        self,
        store_id: int,
        user_id: int,
        now: Optional[datetime] = None,
    ) -> Optional[models.StoreAccessGrant]:
        now = now or datetime.now(timezone.utc)
        result = await self.db.execute(
            select(models.StoreAccessGrant).where(
                models.StoreAccessGrant.store_id == store_id,
                models.StoreAccessGrant.user_id == user_id,
                models.StoreAccessGrant.is_revoked.is_(False),
                or_(
                    models.StoreAccessGrant.expires_at.is_(None),
                    models.StoreAccessGrant.expires_at > now,
                ),
            )
        )
        return result.scalars().first()

    def default_permissions(self, role: MemberRole) -> FrozenSet[Permission]:
        return self.role_permissions.get(MemberRole(role), frozenset())

    async def authorize(self, user_id: int, store_id: int, permission: Permission) -> AccessDecision:
        permission = Permission(permission)
        store = await self.get_store(store_id)

        member = await self.find_membership(store.id, user_id)
        if member and member_allows(member.role, member.permission_set, permission):
            return AccessDecision.allow

        if public_store_allows(store.is_private, permission):
            return AccessDecision.allow

        grant = await self.find_active_grant(store.id, user_id)
        if grant and access_level_allows(grant.access_level, permission):
            return AccessDecision.allow

        return AccessDecision.deny

    async def is_allowed(self, user_id: int, store_id: int, permission: Permission) -> bool:
        return await self.authorize(user_id, store_id, permission) is AccessDecision.allow

    async def ensure_permission(self, user_id: int, store_id: int, permission: Permission) -> None:
        """Raise PermissionDeniedError unless authorize() allows."""
        permission = Permission(permission)
        decision = await self.authorize(user_id, store_id, permission)
        if decision is AccessDecision.deny:
            log_security_event(
                "store_permission_denied",
                severity="low",
                user_id=user_id,
                store_id=store_id,
                permission=permission.value,
            )
            raise PermissionDeniedError(permission.value.lower().replace("_", " ") + " in", "store")

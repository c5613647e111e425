"""
Store service layer: stores, memberships and access grants.
"""
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger, log_business_event, log_security_event
from app.core.permissions import ALL_PERMISSIONS, SUPERUSER_ROLES, AccessLevel, MemberRole, Permission
from app.db import models
from app.schemas.store import StoreCreate, StoreUpdate
from app.services.permission_service import PermissionService
from app.utils.exceptions import BadRequestError, ConflictError, NotFoundError, PermissionDeniedError
from app.utils.validators import as_utc, raise_for_violations, validate_expiry, validate_slug

logger = get_logger(__name__)

MAX_PAGE_SIZE = 50


class StoreService:
    """Service class for store-related business logic."""

    def __init__(self, db: AsyncSession, permissions: PermissionService = None):
        self.db = db
        self.permissions = permissions or PermissionService(db)

    # --- STORES ---

    async def create_store(self, store_data: StoreCreate, owner_id: int) -> models.Store:
        """Create a store and enroll its owner as an Owner member in the same commit."""
        raise_for_violations(validate_slug(store_data.slug))

        existing = await self.db.execute(select(models.Store.id).where(models.Store.slug == store_data.slug))
        if existing.first():
            raise ConflictError("Store slug already taken", reason="duplicate_slug")

        store = models.Store(owner_id=owner_id, **store_data.model_dump())
        owner_member = models.StoreMember(
            user_id=owner_id,
            role=MemberRole.owner,
            invited_by=owner_id,
        )
        owner_member.permission_set = ALL_PERMISSIONS
        store.members.append(owner_member)
        self.db.add(store)

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Store slug already taken", reason="duplicate_slug")
        await self.db.refresh(store)

        log_business_event("store_created", user_id=owner_id, store_id=store.id, slug=store.slug)
        return store

    async def get_store(self, store_id: int) -> models.Store:
        """Get store by ID or raise NotFoundError."""
        return await self.permissions.get_store(store_id)

    async def list_public_stores(self, limit: int = 20, offset: int = 0) -> List[models.Store]:
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        offset = max(0, offset)
        result = await self.db.execute(
            select(models.Store)
            .where(
                models.Store.is_private.is_(False),
                models.Store.status == models.StoreStatus.active,
            )
            .order_by(models.Store.created_at.desc(), models.Store.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def update_store(self, store_id: int, update_data: StoreUpdate, user_id: int) -> models.Store:
        """Only the owner may change a store's profile, visibility or status."""
        store = await self.get_store(store_id)
        if store.owner_id != user_id:
            raise PermissionDeniedError("update", "store")

        for key, value in update_data.model_dump(exclude_unset=True).items():
            setattr(store, key, value)

        await self.db.commit()
        await self.db.refresh(store)
        logger.info("Store updated", store_id=store.id, user_id=user_id)
        return store

    # --- MEMBERS ---

    async def _get_user(self, user_id: int) -> models.User:
        user = await self.db.get(models.User, user_id)
        if not user:
            raise NotFoundError("User", user_id)
        return user

    async def _get_member_row(self, store_id: int, user_id: int) -> Optional[models.StoreMember]:
        result = await self.db.execute(
            select(models.StoreMember).where(
                models.StoreMember.store_id == store_id,
                models.StoreMember.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def _get_modifiable_member(self, store_id: int, user_id: int) -> models.StoreMember:
        member = await self._get_member_row(store_id, user_id)
        if not member or not member.is_active:
            raise NotFoundError("Store member", user_id)
        if member.role == MemberRole.owner:
            raise BadRequestError("The store owner's membership cannot be changed")
        return member

    def _resolve_permissions(
        self,
        role: MemberRole,
        permissions: Optional[Iterable[Permission]],
    ) -> frozenset:
        if permissions is not None:
            return frozenset(Permission(p) for p in permissions)
        return self.permissions.default_permissions(role)

    async def _ensure_can_delegate(
        self,
        store_id: int,
        editor_id: int,
        role: MemberRole,
        granted: frozenset,
    ) -> None:
        """Members below admin may only hand out permissions they hold themselves."""
        editor = await self.permissions.find_membership(store_id, editor_id)
        if editor and MemberRole(editor.role) in SUPERUSER_ROLES:
            return
        if role in SUPERUSER_ROLES:
            raise PermissionDeniedError("assign the admin role in", "store")
        held = editor.permission_set if editor else frozenset()
        if not granted <= held:
            log_security_event(
                "permission_delegation_denied",
                severity="medium",
                user_id=editor_id,
                store_id=store_id,
                permission=",".join(sorted(p.value for p in granted - held)),
            )
            raise PermissionDeniedError("grant permissions you do not hold in", "store")

    async def _get_editable_member(self, store_id: int, editor_id: int, user_id: int) -> models.StoreMember:
        if editor_id == user_id:
            raise PermissionDeniedError("change your own membership in", "store")
        member = await self._get_modifiable_member(store_id, user_id)
        if MemberRole(member.role) in SUPERUSER_ROLES:
            editor = await self.permissions.find_membership(store_id, editor_id)
            if not editor or MemberRole(editor.role) not in SUPERUSER_ROLES:
                raise PermissionDeniedError("change an admin's membership in", "store")
        return member

    async def list_members(self, store_id: int, user_id: int) -> List[models.StoreMember]:
        await self.permissions.ensure_permission(user_id, store_id, Permission.view_members)
        result = await self.db.execute(
            select(models.StoreMember)
            .where(models.StoreMember.store_id == store_id)
            .order_by(models.StoreMember.joined_at.desc(), models.StoreMember.id.desc())
        )
        return list(result.scalars().all())

    async def invite_member(
        self,
        store_id: int,
        inviter_id: int,
        user_id: int,
        role: MemberRole = MemberRole.staff,
        permissions: Optional[Iterable[Permission]] = None,
    ) -> models.StoreMember:
        await self.permissions.ensure_permission(inviter_id, store_id, Permission.invite_members)
        role = MemberRole(role)
        if role == MemberRole.owner:
            raise BadRequestError("A store has exactly one owner")
        await self._get_user(user_id)

        granted = self._resolve_permissions(role, permissions)
        await self._ensure_can_delegate(store_id, inviter_id, role, granted)
        member = await self._get_member_row(store_id, user_id)
        if member and member.is_active:
            raise ConflictError("User is already a member of this store", reason="duplicate_member")

        if member:
            # reactivate the retained row
            member.role = role
            member.is_active = True
            member.invited_by = inviter_id
            member.joined_at = datetime.now(timezone.utc)
        else:
            member = models.StoreMember(
                store_id=store_id,
                user_id=user_id,
                role=role,
                invited_by=inviter_id,
            )
            self.db.add(member)
        member.permission_set = granted

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("User is already a member of this store", reason="duplicate_member")
        await self.db.refresh(member)

        log_business_event(
            "member_invited",
            user_id=inviter_id,
            store_id=store_id,
            member_user_id=user_id,
            role=role.value,
        )
        return member

    async def update_member(
        self,
        store_id: int,
        editor_id: int,
        user_id: int,
        role: Optional[MemberRole] = None,
        permissions: Optional[Iterable[Permission]] = None,
    ) -> models.StoreMember:
        await self.permissions.ensure_permission(editor_id, store_id, Permission.edit_permissions)
        member = await self._get_editable_member(store_id, editor_id, user_id)
        if role is None and permissions is None:
            return member

        new_role = MemberRole(role) if role is not None else MemberRole(member.role)
        if new_role == MemberRole.owner:
            raise BadRequestError("A store has exactly one owner")
        granted = self._resolve_permissions(new_role, permissions)
        await self._ensure_can_delegate(store_id, editor_id, new_role, granted)

        member.role = new_role
        member.permission_set = granted

        await self.db.commit()
        await self.db.refresh(member)
        logger.info("Store member updated", store_id=store_id, member_user_id=user_id, editor_id=editor_id)
        return member

    async def remove_member(self, store_id: int, editor_id: int, user_id: int) -> models.StoreMember:
        """Deactivate a membership; the row stays for history."""
        await self.permissions.ensure_permission(editor_id, store_id, Permission.edit_permissions)
        member = await self._get_editable_member(store_id, editor_id, user_id)

        member.is_active = False
        await self.db.commit()
        await self.db.refresh(member)
        log_business_event("member_removed", user_id=editor_id, store_id=store_id, member_user_id=user_id)
        return member

    # --- ACCESS GRANTS ---

    async def _get_live_grant(self, store_id: int, user_id: int) -> Optional[models.StoreAccessGrant]:
        # "live" = not revoked; may still be expired
        result = await self.db.execute(
            select(models.StoreAccessGrant).where(
                models.StoreAccessGrant.store_id == store_id,
                models.StoreAccessGrant.user_id == user_id,
                models.StoreAccessGrant.is_revoked.is_(False),
            )
        )
        return result.scalars().first()

    async def grant_access(
        self,
        store_id: int,
        granter_id: int,
        user_id: int,
        access_level: AccessLevel = AccessLevel.view_and_buy,
        expires_at: Optional[datetime] = None,
    ) -> models.StoreAccessGrant:
        await self.permissions.ensure_permission(granter_id, store_id, Permission.grant_access)
        now = datetime.now(timezone.utc)
        raise_for_violations(validate_expiry(expires_at, now))
        await self._get_user(user_id)

        existing = await self._get_live_grant(store_id, user_id)
        if existing:
            if existing.expires_at is None or as_utc(existing.expires_at) > now:
                raise ConflictError("User already has active access to this store", reason="duplicate_grant")
            existing.is_revoked = True
            existing.revoked_at = now
            await self.db.flush()

        grant = models.StoreAccessGrant(
            store_id=store_id,
            user_id=user_id,
            granted_by=granter_id,
            access_level=AccessLevel(access_level),
            granted_at=now,
            expires_at=as_utc(expires_at) if expires_at else None,
        )
        self.db.add(grant)

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("User already has active access to this store", reason="duplicate_grant")
        await self.db.refresh(grant)

        log_business_event(
            "access_granted",
            user_id=granter_id,
            store_id=store_id,
            grantee_user_id=user_id,
            access_level=grant.access_level.value,
        )
        return grant

    async def revoke_access(self, store_id: int, revoker_id: int, user_id: int) -> models.StoreAccessGrant:
        """Mark the user's grant revoked; the row is kept as an audit trail."""
        await self.permissions.ensure_permission(revoker_id, store_id, Permission.revoke_access)
        grant = await self._get_live_grant(store_id, user_id)
        if not grant:
            raise NotFoundError("Access grant")

        grant.is_revoked = True
        grant.revoked_at = datetime.now(timezone.utc)
        await self.db.commit()
        await self.db.refresh(grant)

        log_business_event("access_revoked", user_id=revoker_id, store_id=store_id, grantee_user_id=user_id)
        return grant

    async def list_grants(self, store_id: int, user_id: int) -> List[models.StoreAccessGrant]:
        await self.permissions.ensure_permission(user_id, store_id, Permission.grant_access)
        result = await self.db.execute(
            select(models.StoreAccessGrant)
            .where(models.StoreAccessGrant.store_id == store_id)
            .order_by(models.StoreAccessGrant.granted_at.desc(), models.StoreAccessGrant.id.desc())
        )
        return list(result.scalars().all())

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from app.core.permissions import ALL_PERMISSIONS, AccessLevel, MemberRole, Permission
from app.db import models
from app.schemas.store import StoreCreate, StoreUpdate
from app.services.permission_service import PermissionService
from app.services.store_service import StoreService
from app.utils.exceptions import (
    BadRequestError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)


async def test_create_store_enrolls_owner(db, make_user):
    owner = await make_user()

    store = await StoreService(db).create_store(StoreCreate(name="Corner Shop", slug="corner-shop"), owner.id)

    assert store.owner_id == owner.id
    assert store.status == models.StoreStatus.active
    member = await PermissionService(db).find_membership(store.id, owner.id)
    assert member.role == MemberRole.owner
    assert member.permission_set == ALL_PERMISSIONS
    assert member.invited_by == owner.id


async def test_duplicate_slug_conflict(db, make_user):
    owner = await make_user()
    service = StoreService(db)
    await service.create_store(StoreCreate(name="One", slug="same-slug"), owner.id)

    with pytest.raises(ConflictError) as exc_info:
        await service.create_store(StoreCreate(name="Two", slug="same-slug"), owner.id)
    assert exc_info.value.reason == "duplicate_slug"


async def test_bad_slug_is_validation_error(db, make_user):
    owner = await make_user()
    with pytest.raises(ValidationError):
        await StoreService(db).create_store(StoreCreate(name="Shop", slug="Not_A_Slug"), owner.id)


async def test_list_public_stores_hides_private_and_inactive(db, make_user, make_store):
    owner = await make_user()
    public = await make_store(owner)
    await make_store(owner, is_private=True)
    await make_store(owner, status=models.StoreStatus.suspended)

    stores = await StoreService(db).list_public_stores()

    assert [s.id for s in stores] == [public.id]


async def test_list_public_stores_clamps_limit(db, make_user, make_store):
    owner = await make_user()
    for _ in range(3):
        await make_store(owner)

    assert len(await StoreService(db).list_public_stores(limit=0)) == 1
    assert len(await StoreService(db).list_public_stores(limit=500, offset=-5)) == 3


async def test_only_owner_updates_store(db, make_user, make_store, add_member):
    owner = await make_user()
    admin = await make_user()
    store = await make_store(owner)
    await add_member(store, admin, role=MemberRole.admin)
    service = StoreService(db)

    with pytest.raises(PermissionDeniedError):
        await service.update_store(store.id, StoreUpdate(name="Hijacked"), admin.id)

    updated = await service.update_store(store.id, StoreUpdate(is_private=True), owner.id)
    assert updated.is_private is True
    assert updated.name == store.name


async def test_get_missing_store(db):
    with pytest.raises(NotFoundError):
        await StoreService(db).get_store(404)


async def test_invite_member_uses_role_defaults(db, make_user, make_store):
    owner = await make_user()
    store = await make_store(owner)
    newcomer = await make_user()

    member = await StoreService(db).invite_member(store.id, owner.id, newcomer.id, role=MemberRole.manager)

    assert member.role == MemberRole.manager
    assert Permission.create_products in member.permission_set
    assert Permission.delete_products not in member.permission_set


async def test_invite_custom_member_stores_exact_set(db, make_user, make_store):
    owner = await make_user()
    store = await make_store(owner)
    newcomer = await make_user()

    member = await StoreService(db).invite_member(
        store.id, owner.id, newcomer.id, role=MemberRole.custom, permissions=[Permission.view_stats]
    )

    assert member.permissions == ["VIEW_STATS"]


async def test_invite_rules(db, make_user, make_store, add_member):
    owner = await make_user()
    store = await make_store(owner)
    staff = await make_user()
    await add_member(store, staff, role=MemberRole.staff, permissions=[Permission.view_products])
    service = StoreService(db)

    with pytest.raises(PermissionDeniedError):
        await service.invite_member(store.id, staff.id, (await make_user()).id)
    with pytest.raises(BadRequestError):
        await service.invite_member(store.id, owner.id, (await make_user()).id, role=MemberRole.owner)
    with pytest.raises(NotFoundError):
        await service.invite_member(store.id, owner.id, 9999)
    with pytest.raises(ConflictError) as exc_info:
        await service.invite_member(store.id, owner.id, staff.id)
    assert exc_info.value.reason == "duplicate_member"


async def test_remove_then_reinvite_reactivates_row(db, make_user, make_store, add_member):
    owner = await make_user()
    store = await make_store(owner)
    staff = await make_user()
    original = await add_member(store, staff, role=MemberRole.staff)
    service = StoreService(db)

    removed = await service.remove_member(store.id, owner.id, staff.id)
    assert removed.is_active is False
    assert not await PermissionService(db).is_allowed(staff.id, store.id, Permission.view_members)

    again = await service.invite_member(store.id, owner.id, staff.id, role=MemberRole.admin)
    assert again.id == original.id
    assert again.is_active is True
    assert again.role == MemberRole.admin


async def test_update_member(db, make_user, make_store, add_member):
    owner = await make_user()
    store = await make_store(owner)
    staff = await make_user()
    await add_member(store, staff, role=MemberRole.staff)
    service = StoreService(db)

    member = await service.update_member(store.id, owner.id, staff.id, permissions=[Permission.edit_products])
    assert member.permission_set == {Permission.edit_products}

    member = await service.update_member(store.id, owner.id, staff.id, role=MemberRole.manager)
    assert member.permission_set == PermissionService(db).default_permissions(MemberRole.manager)


async def test_owner_membership_is_protected(db, make_user, make_store, add_member):
    owner = await make_user()
    store = await make_store(owner)
    admin = await make_user()
    await add_member(store, admin, role=MemberRole.admin)
    service = StoreService(db)

    with pytest.raises(BadRequestError):
        await service.remove_member(store.id, admin.id, owner.id)
    with pytest.raises(BadRequestError):
        await service.update_member(store.id, admin.id, owner.id, role=MemberRole.staff)


async def test_list_members_requires_permission(db, make_user, make_store, add_member):
    owner = await make_user()
    store = await make_store(owner)
    outsider = await make_user()
    await add_member(store, await make_user())
    service = StoreService(db)

    assert len(await service.list_members(store.id, owner.id)) == 2
    with pytest.raises(PermissionDeniedError):
        await service.list_members(store.id, outsider.id)


async def test_grant_and_revoke_access(db, make_user, make_store):
    owner = await make_user()
    store = await make_store(owner, is_private=True)
    guest = await make_user()
    service = StoreService(db)
    permissions = PermissionService(db)

    grant = await service.grant_access(store.id, owner.id, guest.id, access_level=AccessLevel.view)
    assert grant.granted_by == owner.id
    assert await permissions.is_allowed(guest.id, store.id, Permission.view_products)

    with pytest.raises(ConflictError) as exc_info:
        await service.grant_access(store.id, owner.id, guest.id)
    assert exc_info.value.reason == "duplicate_grant"

    revoked = await service.revoke_access(store.id, owner.id, guest.id)
    assert revoked.is_revoked is True
    assert revoked.revoked_at is not None
    assert not await permissions.is_allowed(guest.id, store.id, Permission.view_products)

    # revoked rows stay for the audit trail and a new grant is allowed
    await service.grant_access(store.id, owner.id, guest.id)
    grants = await service.list_grants(store.id, owner.id)
    assert len(grants) == 2
    assert sorted(g.is_revoked for g in grants) == [False, True]


async def test_expired_grant_is_replaced(db, make_user, make_store):
    owner = await make_user()
    store = await make_store(owner, is_private=True)
    guest = await make_user()
    expired = models.StoreAccessGrant(
        store_id=store.id,
        user_id=guest.id,
        granted_by=owner.id,
        access_level=AccessLevel.view,
        expires_at=datetime.now(timezone.utc) - timedelta(days=1),
    )
    db.add(expired)
    await db.commit()

    fresh = await StoreService(db).grant_access(store.id, owner.id, guest.id)

    assert fresh.id != expired.id
    rows = (await db.execute(
        select(models.StoreAccessGrant).where(models.StoreAccessGrant.user_id == guest.id)
    )).scalars().all()
    assert {row.id: row.is_revoked for row in rows} == {expired.id: True, fresh.id: False}


async def test_grant_rejects_past_expiry(db, make_user, make_store):
    owner = await make_user()
    store = await make_store(owner)
    guest = await make_user()

    with pytest.raises(ValidationError):
        await StoreService(db).grant_access(
            store.id, owner.id, guest.id, expires_at=datetime.now(timezone.utc) - timedelta(seconds=1)
        )


async def test_revoke_without_grant(db, make_user, make_store):
    owner = await make_user()
    store = await make_store(owner)

    with pytest.raises(NotFoundError):
        await StoreService(db).revoke_access(store.id, owner.id, (await make_user()).id)


async def test_member_cannot_promote_themselves(db, make_user, make_store, add_member):
    owner = await make_user()
    store = await make_store(owner)
    clerk = await make_user()
    await add_member(store, clerk, role=MemberRole.custom, permissions=[Permission.edit_permissions])
    service = StoreService(db)

    with pytest.raises(PermissionDeniedError):
        await service.update_member(store.id, clerk.id, clerk.id, role=MemberRole.admin)
    with pytest.raises(PermissionDeniedError):
        await service.update_member(store.id, clerk.id, clerk.id, permissions=list(ALL_PERMISSIONS))
    with pytest.raises(PermissionDeniedError):
        await service.remove_member(store.id, clerk.id, clerk.id)

    assert not await PermissionService(db).is_allowed(clerk.id, store.id, Permission.delete_products)


async def test_only_owner_or_admin_assigns_admin_role(db, make_user, make_store, add_member):
    owner = await make_user()
    store = await make_store(owner)
    recruiter = await make_user()
    admin = await make_user()
    await add_member(store, recruiter, role=MemberRole.custom, permissions=[Permission.invite_members])
    await add_member(store, admin, role=MemberRole.admin)
    service = StoreService(db)

    with pytest.raises(PermissionDeniedError):
        await service.invite_member(store.id, recruiter.id, (await make_user()).id, role=MemberRole.admin)

    member = await service.invite_member(store.id, admin.id, (await make_user()).id, role=MemberRole.admin)
    assert member.role == MemberRole.admin


async def test_editor_only_grants_permissions_they_hold(db, make_user, make_store, add_member):
    owner = await make_user()
    store = await make_store(owner)
    lead = await make_user()
    staff = await make_user()
    await add_member(
        store,
        lead,
        role=MemberRole.custom,
        permissions=[Permission.invite_members, Permission.edit_permissions, Permission.view_products],
    )
    await add_member(store, staff, role=MemberRole.custom, permissions=[])
    service = StoreService(db)

    with pytest.raises(PermissionDeniedError):
        await service.update_member(store.id, lead.id, staff.id, permissions=[Permission.delete_products])
    with pytest.raises(PermissionDeniedError):
        await service.update_member(store.id, lead.id, staff.id, role=MemberRole.manager)
    with pytest.raises(PermissionDeniedError):
        await service.invite_member(
            store.id, lead.id, (await make_user()).id, role=MemberRole.custom, permissions=[Permission.view_stats]
        )

    member = await service.update_member(store.id, lead.id, staff.id, permissions=[Permission.view_products])
    assert member.permission_set == {Permission.view_products}


async def test_non_admin_editor_cannot_touch_admin(db, make_user, make_store, add_member):
    owner = await make_user()
    store = await make_store(owner)
    lead = await make_user()
    admin = await make_user()
    await add_member(store, lead, role=MemberRole.custom, permissions=[Permission.edit_permissions])
    await add_member(store, admin, role=MemberRole.admin)
    service = StoreService(db)

    with pytest.raises(PermissionDeniedError):
        await service.update_member(store.id, lead.id, admin.id, role=MemberRole.staff)
    with pytest.raises(PermissionDeniedError):
        await service.remove_member(store.id, lead.id, admin.id)

    demoted = await service.update_member(store.id, owner.id, admin.id, role=MemberRole.staff)
    assert demoted.role == MemberRole.staff

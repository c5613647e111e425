from datetime import datetime, timedelta, timezone

import pytest

from app.core.permissions import AccessLevel, MemberRole, Permission
from app.db import models
from app.services.permission_service import AccessDecision, PermissionService
from app.utils.exceptions import NotFoundError, PermissionDeniedError


async def _grant(db, store, user, level=AccessLevel.view_and_buy, expires_at=None, is_revoked=False):
    grant = models.StoreAccessGrant(
        store_id=store.id,
        user_id=user.id,
        granted_by=store.owner_id,
        access_level=level,
        expires_at=expires_at,
        is_revoked=is_revoked,
        revoked_at=datetime.now(timezone.utc) if is_revoked else None,
    )
    db.add(grant)
    await db.commit()
    return grant


@pytest.mark.parametrize("role", [MemberRole.owner, MemberRole.admin])
async def test_owner_and_admin_allowed_everything_with_empty_set(db, make_user, make_store, add_member, role):
    owner = await make_user()
    store = await make_store(owner, is_private=True)
    user = await make_user()
    if role == MemberRole.admin:
        await add_member(store, user, role=MemberRole.admin, permissions=())
    else:
        user = owner
        member = (await PermissionService(db).find_membership(store.id, owner.id))
        member.permission_set = ()
        await db.commit()

    service = PermissionService(db)
    for permission in Permission:
        assert await service.authorize(user.id, store.id, permission) is AccessDecision.allow


async def test_member_with_explicit_permission(db, make_user, make_store, add_member):
    store = await make_store(await make_user(), is_private=True)
    staff = await make_user()
    await add_member(store, staff, role=MemberRole.custom, permissions=[Permission.edit_products])

    service = PermissionService(db)
    assert await service.is_allowed(staff.id, store.id, Permission.edit_products)
    assert not await service.is_allowed(staff.id, store.id, Permission.create_products)


async def test_stored_permissions_match_case_insensitively(db, make_user, make_store, add_member):
    store = await make_store(await make_user(), is_private=True)
    staff = await make_user()
    member = await add_member(store, staff, role=MemberRole.custom)
    member.permissions = ["create_products", "Unknown_Thing"]
    await db.commit()

    assert await PermissionService(db).is_allowed(staff.id, store.id, Permission.create_products)


async def test_inactive_membership_is_ignored(db, make_user, make_store, add_member):
    store = await make_store(await make_user(), is_private=True)
    former = await make_user()
    await add_member(store, former, role=MemberRole.admin, is_active=False)

    assert not await PermissionService(db).is_allowed(former.id, store.id, Permission.view_products)


async def test_public_store_view_for_non_members(db, make_user, make_store):
    store = await make_store(await make_user(), is_private=False)
    stranger = await make_user()
    service = PermissionService(db)

    assert await service.is_allowed(stranger.id, store.id, Permission.view_products)
    assert await service.is_allowed(stranger.id, store.id, Permission.view_orders)
    with pytest.raises(PermissionDeniedError):
        await service.ensure_permission(stranger.id, store.id, Permission.create_products)


async def test_private_store_grants_nothing_to_strangers(db, make_user, make_store):
    store = await make_store(await make_user(), is_private=True)
    stranger = await make_user()

    assert not await PermissionService(db).is_allowed(stranger.id, store.id, Permission.view_products)


async def test_active_grant_allows_implied_permissions(db, make_user, make_store):
    store = await make_store(await make_user(), is_private=True)
    buyer = await make_user()
    await _grant(db, store, buyer, AccessLevel.view_and_buy, datetime.now(timezone.utc) + timedelta(days=1))
    service = PermissionService(db)

    assert await service.is_allowed(buyer.id, store.id, Permission.view_products)
    assert await service.is_allowed(buyer.id, store.id, Permission.process_orders)
    assert not await service.is_allowed(buyer.id, store.id, Permission.edit_products)


async def test_view_grant_does_not_allow_processing(db, make_user, make_store):
    store = await make_store(await make_user(), is_private=True)
    viewer = await make_user()
    await _grant(db, store, viewer, AccessLevel.view)
    service = PermissionService(db)

    assert await service.is_allowed(viewer.id, store.id, Permission.view_orders)
    assert not await service.is_allowed(viewer.id, store.id, Permission.process_orders)


async def test_expired_grant_behaves_like_no_grant(db, make_user, make_store):
    store = await make_store(await make_user(), is_private=True)
    user = await make_user()
    await _grant(db, store, user, expires_at=datetime.now(timezone.utc) - timedelta(minutes=1))

    assert not await PermissionService(db).is_allowed(user.id, store.id, Permission.view_products)


async def test_revoked_grant_behaves_like_no_grant(db, make_user, make_store):
    store = await make_store(await make_user(), is_private=True)
    user = await make_user()
    await _grant(db, store, user, is_revoked=True)

    assert not await PermissionService(db).is_allowed(user.id, store.id, Permission.view_products)


async def test_member_without_permission_falls_through_to_grant(db, make_user, make_store, add_member):
    store = await make_store(await make_user(), is_private=True)
    user = await make_user()
    await add_member(store, user, role=MemberRole.custom, permissions=())
    await _grant(db, store, user, AccessLevel.view)

    assert await PermissionService(db).is_allowed(user.id, store.id, Permission.view_products)


async def test_missing_store_is_not_found_before_anything_else(db, make_user):
    user = await make_user()
    with pytest.raises(NotFoundError):
        await PermissionService(db).authorize(user.id, 9999, Permission.view_products)


async def test_injected_role_mapping_is_used(db):
    custom_mapping = {MemberRole.staff: frozenset({Permission.view_stats})}
    service = PermissionService(db, role_permissions=custom_mapping)

    assert service.default_permissions(MemberRole.staff) == {Permission.view_stats}
    assert service.default_permissions(MemberRole.manager) == frozenset()

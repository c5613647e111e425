from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.permissions import Permission
from app.db import database, models
from app.schemas.product import ProductOut
from app.schemas.store import (
    AccessGrantCreate,
    AccessGrantOut,
    MemberInvite,
    MemberOut,
    MemberUpdate,
    StoreAnalyticsOut,
    StoreCreate,
    StoreOut,
    StoreUpdate,
)
from app.services.analytics_service import AnalyticsService
from app.services.product_service import ProductService
from app.services.store_service import StoreService
from app.utils.dependencies import get_current_user, require_store_permission

router = APIRouter(prefix="/stores", tags=["stores"])


@router.post("/", response_model=StoreOut, status_code=status.HTTP_201_CREATED)
async def create_store(
    store: StoreCreate,
    db: AsyncSession = Depends(database.get_db),
    current_user: models.User = Depends(get_current_user),
):
    return await StoreService(db).create_store(store, current_user.id)


@router.get("/", response_model=List[StoreOut])
async def list_stores(
    limit: int = Query(20, ge=1, le=50),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(database.get_db),
):
    """Public, active stores, newest first."""
    return await StoreService(db).list_public_stores(limit=limit, offset=offset)


@router.get("/{store_id}", response_model=StoreOut)
async def get_store(store_id: int, db: AsyncSession = Depends(database.get_db)):
    return await StoreService(db).get_store(store_id)


@router.patch("/{store_id}", response_model=StoreOut)
async def update_store(
    store_id: int,
    update: StoreUpdate,
    db: AsyncSession = Depends(database.get_db),
    current_user: models.User = Depends(get_current_user),
):
    return await StoreService(db).update_store(store_id, update, current_user.id)


@router.get("/{store_id}/products", response_model=List[ProductOut])
async def list_store_products(
    store_id: int,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(database.get_db),
    current_user: models.User = Depends(get_current_user),
):
    return await ProductService(db).list_store_products(store_id, current_user.id, limit=limit, offset=offset)


# --- members ---

@router.get("/{store_id}/members", response_model=List[MemberOut])
async def list_members(
    store_id: int,
    db: AsyncSession = Depends(database.get_db),
    current_user: models.User = Depends(get_current_user),
):
    return await StoreService(db).list_members(store_id, current_user.id)


@router.post("/{store_id}/members", response_model=MemberOut, status_code=status.HTTP_201_CREATED)
async def invite_member(
    store_id: int,
    invite: MemberInvite,
    db: AsyncSession = Depends(database.get_db),
    current_user: models.User = Depends(get_current_user),
):
    return await StoreService(db).invite_member(
        store_id,
        current_user.id,
        invite.user_id,
        role=invite.role,
        permissions=invite.permissions,
    )


@router.patch("/{store_id}/members/{user_id}", response_model=MemberOut)
async def update_member(
    store_id: int,
    user_id: int,
    update: MemberUpdate,
    db: AsyncSession = Depends(database.get_db),
    current_user: models.User = Depends(get_current_user),
):
    return await StoreService(db).update_member(
        store_id,
        current_user.id,
        user_id,
        role=update.role,
        permissions=update.permissions,
    )


@router.delete("/{store_id}/members/{user_id}", response_model=MemberOut)
async def remove_member(
    store_id: int,
    user_id: int,
    db: AsyncSession = Depends(database.get_db),
    current_user: models.User = Depends(get_current_user),
):
    return await StoreService(db).remove_member(store_id, current_user.id, user_id)


# --- access grants ---

@router.get("/{store_id}/grants", response_model=List[AccessGrantOut])
async def list_grants(
    store_id: int,
    db: AsyncSession = Depends(database.get_db),
    current_user: models.User = Depends(get_current_user),
):
    return await StoreService(db).list_grants(store_id, current_user.id)


@router.post("/{store_id}/grants", response_model=AccessGrantOut, status_code=status.HTTP_201_CREATED)
async def grant_access(
    store_id: int,
    grant: AccessGrantCreate,
    db: AsyncSession = Depends(database.get_db),
    current_user: models.User = Depends(get_current_user),
):
    return await StoreService(db).grant_access(
        store_id,
        current_user.id,
        grant.user_id,
        access_level=grant.access_level,
        expires_at=grant.expires_at,
    )


@router.post("/{store_id}/grants/{user_id}/revoke", response_model=AccessGrantOut)
async def revoke_access(
    store_id: int,
    user_id: int,
    db: AsyncSession = Depends(database.get_db),
    current_user: models.User = Depends(get_current_user),
):
    return await StoreService(db).revoke_access(store_id, current_user.id, user_id)


# --- analytics ---

@router.get("/{store_id}/analytics", response_model=StoreAnalyticsOut)
async def store_analytics(
    store_id: int,
    days: int = Query(30, ge=1, le=180),
    top: int = Query(5, ge=1, le=50),
    db: AsyncSession = Depends(database.get_db),
    current_user: models.User = Depends(require_store_permission(Permission.view_stats)),
):
    return await AnalyticsService(db).store_analytics(store_id, days=days, top=top)

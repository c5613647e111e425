from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.db import database, models
from app.schemas import order as order_schema
from app.services.order_service import OrderService
from app.utils.dependencies import get_current_user

router = APIRouter(prefix="/orders", tags=["orders"])
logger = get_logger(__name__)


@router.post("/checkout", response_model=order_schema.CheckoutSummaryOut, status_code=status.HTTP_201_CREATED)
async def checkout(
    request: order_schema.CheckoutRequest,
    db: AsyncSession = Depends(database.get_db),
    current_user: models.User = Depends(get_current_user),
):
    """Turn the cart into one order per store. Honours an Idempotency-Key header."""
    logger.info("Checkout requested", user_id=current_user.id)
    summary = await OrderService(db).checkout(current_user.id, request.shipping_address)
    return order_schema.CheckoutSummaryOut.model_validate(summary)


@router.get("/", response_model=List[order_schema.OrderOut])
async def list_my_orders(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(database.get_db),
    current_user: models.User = Depends(get_current_user),
):
    return await OrderService(db).list_orders(current_user.id, limit=limit, offset=offset)


@router.get("/groups/{group_id}", response_model=order_schema.OrderGroupDetailOut)
async def get_order_group(
    group_id: int,
    db: AsyncSession = Depends(database.get_db),
    current_user: models.User = Depends(get_current_user),
):
    return await OrderService(db).get_order_group(current_user.id, group_id)


@router.get("/{order_id}", response_model=order_schema.OrderOut)
async def get_order(
    order_id: int,
    db: AsyncSession = Depends(database.get_db),
    current_user: models.User = Depends(get_current_user),
):
    return await OrderService(db).get_order(current_user.id, order_id)

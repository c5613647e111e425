from typing import List

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import database, models
from app.schemas.cart import CartItemAdd, CartItemOut, CartItemQuantity, CartLineOut
from app.services.cart_service import CartService
from app.utils.dependencies import get_current_user

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("/items", response_model=List[CartLineOut])
async def list_cart(
    db: AsyncSession = Depends(database.get_db),
    current_user: models.User = Depends(get_current_user),
):
    # CartLine is a dataclass with a computed line_total; validate explicitly
    lines = await CartService(db).list_items(current_user.id)
    return [CartLineOut.model_validate(line) for line in lines]


@router.post("/items", response_model=CartItemOut, status_code=status.HTTP_201_CREATED)
async def add_to_cart(
    item: CartItemAdd,
    db: AsyncSession = Depends(database.get_db),
    current_user: models.User = Depends(get_current_user),
):
    return await CartService(db).add_item(current_user.id, item.product_id, item.quantity)


@router.put("/items/{product_id}", response_model=CartItemOut)
async def set_cart_quantity(
    product_id: int,
    item: CartItemQuantity,
    db: AsyncSession = Depends(database.get_db),
    current_user: models.User = Depends(get_current_user),
):
    return await CartService(db).update_quantity(current_user.id, product_id, item.quantity)


@router.delete("/items/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_from_cart(
    product_id: int,
    db: AsyncSession = Depends(database.get_db),
    current_user: models.User = Depends(get_current_user),
):
    await CartService(db).remove_item(current_user.id, product_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/items", status_code=status.HTTP_204_NO_CONTENT)
async def clear_cart(
    db: AsyncSession = Depends(database.get_db),
    current_user: models.User = Depends(get_current_user),
):
    await CartService(db).clear(current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

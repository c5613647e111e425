from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import database, models
from app.schemas.product import ProductCreate, ProductOut, ProductUpdate
from app.services.product_service import ProductService
from app.utils.dependencies import get_current_user

router = APIRouter(prefix="/products", tags=["products"])


@router.post("/", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
async def create_product(
    product: ProductCreate,
    db: AsyncSession = Depends(database.get_db),
    current_user: models.User = Depends(get_current_user),
):
    return await ProductService(db).create_product(product, current_user.id)


@router.get("/{product_id}", response_model=ProductOut)
async def get_product(
    product_id: int,
    db: AsyncSession = Depends(database.get_db),
    current_user: models.User = Depends(get_current_user),
):
    return await ProductService(db).get_visible_product(product_id, current_user.id)


@router.patch("/{product_id}", response_model=ProductOut)
async def update_product(
    product_id: int,
    update: ProductUpdate,
    db: AsyncSession = Depends(database.get_db),
    current_user: models.User = Depends(get_current_user),
):
    return await ProductService(db).update_product(product_id, update, current_user.id)


@router.delete("/{product_id}", response_model=ProductOut)
async def delete_product(
    product_id: int,
    db: AsyncSession = Depends(database.get_db),
    current_user: models.User = Depends(get_current_user),
):
    """Deactivates the product; existing orders keep referencing it."""
    return await ProductService(db).deactivate_product(product_id, current_user.id)

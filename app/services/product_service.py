"""
Product service layer for business logic separation.
"""
from typing import List

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.core.permissions import Permission
from app.db import models
from app.db.unit_of_work import UnitOfWork
from app.schemas.product import ProductCreate, ProductUpdate
from app.services.permission_service import PermissionService
from app.utils.exceptions import ConflictError, InsufficientStockError, NotFoundError

logger = get_logger(__name__)


class ProductService:
    """Service class for product-related business logic."""

    def __init__(self, db: AsyncSession, permissions: PermissionService = None):
        self.db = db
        self.permissions = permissions or PermissionService(db)

    async def get_product(self, product_id: int) -> models.Product:
        """Get product by ID or raise NotFoundError."""
        product = await self.db.get(models.Product, product_id)
        if not product:
            raise NotFoundError("Product", product_id)
        return product

    async def get_visible_product(self, product_id: int, user_id: int) -> models.Product:
        product = await self.get_product(product_id)
        await self.permissions.ensure_permission(user_id, product.store_id, Permission.view_products)
        return product

    async def list_store_products(
        self,
        store_id: int,
        user_id: int,
        limit: int = 20,
        offset: int = 0,
    ) -> List[models.Product]:
        await self.permissions.ensure_permission(user_id, store_id, Permission.view_products)
        result = await self.db.execute(
            select(models.Product)
            .where(models.Product.store_id == store_id)
            .order_by(models.Product.created_at.desc(), models.Product.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def create_product(self, product_data: ProductCreate, user_id: int) -> models.Product:
        """Create a product in a store the user may add products to."""
        await self.permissions.ensure_permission(user_id, product_data.store_id, Permission.create_products)

        existing = await self.db.execute(
            select(models.Product.id).where(
                models.Product.store_id == product_data.store_id,
                models.Product.sku == product_data.sku,
            )
        )
        if existing.first():
            raise ConflictError("SKU already exists in this store", reason="duplicate_sku")

        product = models.Product(**product_data.model_dump())
        self.db.add(product)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("SKU already exists in this store", reason="duplicate_sku")
        await self.db.refresh(product)
        logger.info("Product created", product_id=product.id, store_id=product.store_id, user_id=user_id)
        return product

    async def update_product(
        self,
        product_id: int,
        update_data: ProductUpdate,
        user_id: int,
    ) -> models.Product:
        product = await self.get_product(product_id)
        await self.permissions.ensure_permission(user_id, product.store_id, Permission.edit_products)

        for key, value in update_data.model_dump(exclude_unset=True).items():
            setattr(product, key, value)

        await self.db.commit()
        await self.db.refresh(product)
        return product

    async def deactivate_product(self, product_id: int, user_id: int) -> models.Product:
        """Soft-delete: order history keeps referencing the row."""
        product = await self.get_product(product_id)
        await self.permissions.ensure_permission(user_id, product.store_id, Permission.delete_products)

        product.is_active = False
        await self.db.commit()
        await self.db.refresh(product)
        logger.info("Product deactivated", product_id=product.id, user_id=user_id)
        return product

    async def decrement_stock(self, uow: UnitOfWork, product_id: int, quantity: int) -> None:
        """
        Atomically take `quantity` units out of stock.

        The decrement is a single conditional UPDATE, so two transactions
        racing for the last unit cannot both succeed: the loser matches no
        row and gets InsufficientStockError, which aborts its unit of work.
        """
        if not uow.is_open:
            raise RuntimeError("stock can only change inside an open unit of work")

        result = await uow.execute(
            update(models.Product)
            .where(
                models.Product.id == product_id,
                models.Product.stock_quantity >= quantity,
            )
            .values(stock_quantity=models.Product.stock_quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning("Conditional stock decrement failed", product_id=product_id, requested=quantity)
            raise InsufficientStockError(product_id, quantity)

"""
Cart service: per-user product quantities with insertion-time validation.

The stock check made here is advisory only. Checkout re-checks stock with an
atomic conditional decrement, so a line that passed here can still fail
there if someone else bought the units first.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import List

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.db import models
from app.db.unit_of_work import UnitOfWork
from app.utils.exceptions import BadRequestError, ConflictError, NotFoundError
from app.utils.validators import raise_for_violations, validate_quantity

logger = get_logger(__name__)

_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


@dataclass(frozen=True)
class CartLine:
    cart_item_id: int
    product_id: int
    store_id: int
    store_name: str
    product_name: str
    unit_price: Decimal
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class CartService:
    """Service class for cart operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _load_purchasable_product(self, product_id: int, quantity: int) -> models.Product:
        raise_for_violations(validate_quantity(quantity))

        # stock may have moved through a bulk UPDATE the identity map never saw
        product = await self.db.get(models.Product, product_id, populate_existing=True)
        if not product:
            raise NotFoundError("Product", product_id)
        if not product.is_active:
            raise BadRequestError("Product is inactive")
        if product.stock_quantity < quantity:
            raise ConflictError("Insufficient stock", reason="insufficient_stock")
        return product

    def _insert_for_dialect(self):
        dialect = self.db.get_bind().dialect.name
        try:
            return _UPSERT_INSERTS[dialect]
        except KeyError:
            raise NotImplementedError(f"cart upsert is not supported on {dialect}")

    async def add_item(self, user_id: int, product_id: int, quantity: int) -> models.CartItem:
        """Add `quantity` units; an existing line grows instead of being replaced."""
        await self._load_purchasable_product(product_id, quantity)

        now = datetime.now(timezone.utc)
        insert = self._insert_for_dialect()
        stmt = insert(models.CartItem).values(
            user_id=user_id,
            product_id=product_id,
            quantity=quantity,
            added_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[models.CartItem.user_id, models.CartItem.product_id],
            set_={
                "quantity": models.CartItem.quantity + stmt.excluded.quantity,
                "updated_at": now,
            },
        ).returning(models.CartItem)

        result = await self.db.scalars(stmt, execution_options={"populate_existing": True})
        item = result.one()
        await self.db.commit()
        logger.info("Cart item added", user_id=user_id, product_id=product_id, quantity=item.quantity)
        return item

    async def update_quantity(self, user_id: int, product_id: int, quantity: int) -> models.CartItem:
        """Replace the quantity of an existing line."""
        await self._load_purchasable_product(product_id, quantity)

        result = await self.db.execute(
            select(models.CartItem).where(
                models.CartItem.user_id == user_id,
                models.CartItem.product_id == product_id,
            )
        )
        item = result.scalar_one_or_none()
        if not item:
            raise NotFoundError("Cart item")

        item.quantity = quantity
        await self.db.commit()
        await self.db.refresh(item)
        return item

    async def list_items(self, user_id: int) -> List[CartLine]:
        """Cart lines joined with the product's *current* name, price and store."""
        result = await self.db.execute(
            select(
                models.CartItem.id,
                models.CartItem.product_id,
                models.Product.store_id,
                models.Store.name,
                models.Product.name,
                models.Product.price,
                models.CartItem.quantity,
            )
            .join(models.Product, models.Product.id == models.CartItem.product_id)
            .join(models.Store, models.Store.id == models.Product.store_id)
            .where(models.CartItem.user_id == user_id)
            .order_by(models.CartItem.added_at.desc(), models.CartItem.id.desc())
        )
        return [CartLine(*row) for row in result.all()]

    async def remove_item(self, user_id: int, product_id: int) -> None:
        """Idempotent: removing an absent line is not an error."""
        await self.db.execute(
            delete(models.CartItem).where(
                models.CartItem.user_id == user_id,
                models.CartItem.product_id == product_id,
            )
        )
        await self.db.commit()

    async def clear(self, user_id: int) -> None:
        await self.db.execute(delete(models.CartItem).where(models.CartItem.user_id == user_id))
        await self.db.commit()

    async def clear_in(self, uow: UnitOfWork, user_id: int) -> None:
        """Clear the cart as part of a caller's unit of work (no commit here)."""
        await uow.execute(delete(models.CartItem).where(models.CartItem.user_id == user_id))

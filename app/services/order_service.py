"""
Checkout orchestration and order history.

A checkout turns the user's cart into one OrderGroup holding one Order per
store. Everything happens inside a single UnitOfWork: the group, its
orders and items, the conditional stock decrements and the cart clear
either all commit or all roll back.
"""
import secrets
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Mapping, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger, log_business_event
from app.db import models
from app.db.unit_of_work import UnitOfWork
from app.services.cart_service import CartLine, CartService
from app.services.product_service import ProductService
from app.utils.exceptions import BadRequestError, InternalError, NotFoundError
from app.utils.validators import raise_for_violations, validate_shipping_address

logger = get_logger(__name__)

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


def _money(value) -> Decimal:
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def generate_number(prefix: str) -> str:
    """Human-legible unique identifier, e.g. ``ORD-18c2f4a9b10-3FA9C1``."""
    millis = int(time.time() * 1000)
    return f"{prefix}-{millis:x}-{secrets.token_hex(3).upper()}"


@dataclass
class StoreOrderDraft:
    """Per-store figures computed before anything is written."""
    store_id: int
    lines: List[CartLine] = field(default_factory=list)
    tax: Decimal = ZERO
    discount: Decimal = ZERO
    shipping_cost: Decimal = ZERO

    @property
    def subtotal(self) -> Decimal:
        return _money(sum((line.unit_price * line.quantity for line in self.lines), ZERO))

    @property
    def total_amount(self) -> Decimal:
        return _money(self.subtotal + self.tax + self.shipping_cost - self.discount)


@dataclass
class CheckoutSummary:
    order_group: models.OrderGroup
    orders: List[models.Order]


def group_lines_by_store(lines: Sequence[CartLine]) -> List[StoreOrderDraft]:
    """Partition cart lines by store, keeping first-seen store order."""
    drafts: "OrderedDict[int, StoreOrderDraft]" = OrderedDict()
    for line in lines:
        draft = drafts.get(line.store_id)
        if draft is None:
            draft = drafts[line.store_id] = StoreOrderDraft(store_id=line.store_id)
        draft.lines.append(line)
    return list(drafts.values())


class OrderService:
    """Service class for checkout and order history."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.cart_service = CartService(db)
        self.product_service = ProductService(db)

    def _prepare_calculations(self, lines: Sequence[CartLine]):
        drafts = group_lines_by_store(lines)
        group_total = _money(sum((draft.total_amount for draft in drafts), ZERO))
        return drafts, group_total

    def _build_order(
        self,
        user_id: int,
        draft: StoreOrderDraft,
        shipping_address: Mapping[str, Any],
    ) -> models.Order:
        items = [
            models.OrderItem(
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price=_money(line.unit_price),
                subtotal=_money(line.unit_price * line.quantity),
            )
            for line in draft.lines
        ]
        return models.Order(
            user_id=user_id,
            store_id=draft.store_id,
            order_number=generate_number("ORD"),
            status=models.OrderStatus.pending,
            subtotal=draft.subtotal,
            tax=draft.tax,
            discount=draft.discount,
            shipping_cost=draft.shipping_cost,
            total_amount=draft.total_amount,
            shipping_address=dict(shipping_address),
            items=items,
        )

    async def checkout(self, user_id: int, shipping_address: Dict[str, Any]) -> CheckoutSummary:
        """
        Convert the user's cart into orders.

        Raises ValidationError for an empty address, BadRequestError for an
        empty cart and InsufficientStockError when any line can no longer
        be covered by stock; in the last case nothing is written.
        """
        raise_for_violations(validate_shipping_address(shipping_address))

        lines = await self.cart_service.list_items(user_id)
        if not lines:
            raise BadRequestError("Cart is empty")

        drafts, group_total = self._prepare_calculations(lines)

        try:
            async with UnitOfWork(self.db) as uow:
                group = models.OrderGroup(
                    user_id=user_id,
                    group_number=generate_number("GRP"),
                    total_amount=group_total,
                    payment_status=models.PaymentStatus.pending,
                )
                orders = []
                for draft in drafts:
                    order = self._build_order(user_id, draft, shipping_address)
                    group.orders.append(order)
                    orders.append(order)
                uow.add(group)
                await uow.flush()

                for draft in drafts:
                    for line in draft.lines:
                        await self.product_service.decrement_stock(uow, line.product_id, line.quantity)

                await self.cart_service.clear_in(uow, user_id)
        except SQLAlchemyError as e:
            logger.error(
                "Checkout failed on persistence error",
                user_id=user_id,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            raise InternalError("Checkout could not be completed")

        log_business_event(
            "checkout_completed",
            user_id=user_id,
            order_group_id=group.id,
            group_number=group.group_number,
            order_count=len(orders),
            total_amount=str(group.total_amount),
        )
        return CheckoutSummary(order_group=group, orders=orders)

    async def list_orders(self, user_id: int, limit: int = 20, offset: int = 0) -> List[models.Order]:
        result = await self.db.execute(
            select(models.Order)
            .where(models.Order.user_id == user_id)
            .order_by(models.Order.created_at.desc(), models.Order.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def get_order(self, user_id: int, order_id: int) -> models.Order:
        """Get an order owned by the user; other users' orders look absent."""
        order = await self.db.get(models.Order, order_id)
        if not order or order.user_id != user_id:
            raise NotFoundError("Order", order_id)
        return order

    async def get_order_group(self, user_id: int, group_id: int) -> models.OrderGroup:
        group = await self.db.get(models.OrderGroup, group_id)
        if not group or group.user_id != user_id:
            raise NotFoundError("Order group", group_id)
        return group

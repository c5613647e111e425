"""
Read-only sales analytics for a single store.
"""
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import models
from app.utils.exceptions import ValidationError, Violation

MIN_DAYS, MAX_DAYS = 1, 180
MIN_TOP, MAX_TOP = 1, 50

CENTS = Decimal("0.01")


def _money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENTS)


def _as_date(value) -> date:
    # func.date() comes back as a string on SQLite
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


class AnalyticsService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def store_analytics(self, store_id: int, days: int = 30, top: int = 5) -> dict:
        """Callers gate this on VIEW_STATS for the store."""
        violations = []
        if not MIN_DAYS <= days <= MAX_DAYS:
            violations.append(Violation("days", f"must be between {MIN_DAYS} and {MAX_DAYS}"))
        if not MIN_TOP <= top <= MAX_TOP:
            violations.append(Violation("top", f"must be between {MIN_TOP} and {MAX_TOP}"))
        if violations:
            raise ValidationError(violations)

        since = datetime.now(timezone.utc) - timedelta(days=days)

        return {
            "store_id": store_id,
            "summary": await self._summary(store_id, since, days),
            "sales_trend": await self._sales_trend(store_id, since),
            "top_products": await self._top_products(store_id, since, top),
        }

    async def _summary(self, store_id: int, since: datetime, days: int) -> dict:
        result = await self.db.execute(
            select(
                func.count(models.Order.id),
                func.coalesce(func.sum(models.Order.total_amount), 0),
                func.count(models.Order.user_id.distinct()),
            ).where(models.Order.store_id == store_id, models.Order.created_at >= since)
        )
        total_orders, total_revenue, unique_customers = result.one()
        revenue = _money(total_revenue)
        average = _money(revenue / total_orders) if total_orders else _money(0)
        return {
            "total_orders": total_orders,
            "total_revenue": revenue,
            "average_order_value": average,
            "unique_customers": unique_customers,
            "timeframe_days": days,
        }

    async def _sales_trend(self, store_id: int, since: datetime) -> list:
        bucket = func.date(models.Order.created_at)
        result = await self.db.execute(
            select(
                bucket.label("day"),
                func.count(models.Order.id),
                func.coalesce(func.sum(models.Order.total_amount), 0),
            )
            .where(models.Order.store_id == store_id, models.Order.created_at >= since)
            .group_by(bucket)
            .order_by(bucket)
        )
        return [
            {"day": _as_date(day), "orders": orders, "revenue": _money(revenue)}
            for day, orders, revenue in result.all()
        ]

    async def _top_products(self, store_id: int, since: datetime, top: int) -> list:
        units = func.sum(models.OrderItem.quantity).label("units_sold")
        result = await self.db.execute(
            select(
                models.OrderItem.product_id,
                models.Product.name,
                units,
                func.coalesce(func.sum(models.OrderItem.subtotal), 0),
            )
            .join(models.Order, models.Order.id == models.OrderItem.order_id)
            .join(models.Product, models.Product.id == models.OrderItem.product_id)
            .where(models.Order.store_id == store_id, models.Order.created_at >= since)
            .group_by(models.OrderItem.product_id, models.Product.name)
            .order_by(units.desc(), models.OrderItem.product_id)
            .limit(top)
        )
        return [
            {"product_id": product_id, "name": name, "units_sold": int(units_sold), "revenue": _money(revenue)}
            for product_id, name, units_sold, revenue in result.all()
        ]

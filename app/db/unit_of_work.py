"""
Explicit unit of work for multi-row writes.

A UnitOfWork is the capability to write inside one open transaction.
Repository-style helpers that must never run outside a transaction
(stock decrement, order inserts) take it as a required argument, so the
only way to reach them is through whoever opened the unit.

    async with UnitOfWork(db) as uow:
        uow.add(order)
        await product_service.decrement_stock(uow, product_id, 2)

Leaving the block commits; any exception rolls everything back and is
re-raised unchanged.
"""
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger

logger = get_logger(__name__)


class UnitOfWork:
    def __init__(self, session: AsyncSession):
        self.session = session
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    async def __aenter__(self) -> "UnitOfWork":
        self._open = True
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        self._open = False
        if exc_type is None:
            try:
                await self.session.commit()
            except Exception:
                await self.session.rollback()
                raise
            return False

        await self.session.rollback()
        logger.info("Unit of work rolled back", error_type=exc_type.__name__)
        return False

    def add(self, instance: Any) -> None:
        self.session.add(instance)

    async def flush(self) -> None:
        await self.session.flush()

    async def execute(self, statement, params=None):
        return await self.session.execute(statement, params)

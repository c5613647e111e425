# app/db/database.py (async)
import time

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger("sqlalchemy.slow")


def _async_database_url(url: str) -> str:
    # Convert DATABASE_URL to async driver if using postgresql
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def build_engine(url: str) -> AsyncEngine:
    """Create the async engine; pool tuning only applies to server databases."""
    url = _async_database_url(url)
    options = {"future": True, "echo": False}
    if not url.startswith("sqlite"):
        options.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_pre_ping=settings.DB_POOL_PRE_PING,
        )
    return create_async_engine(url, **options)


engine = build_engine(settings.DATABASE_URL)

AsyncSessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
Base = declarative_base()


def setup_slow_query_logging(target: AsyncEngine) -> None:
    @event.listens_for(target.sync_engine, "before_cursor_execute")
    def before_cursor(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault("query_start_time", []).append(time.time())

    @event.listens_for(target.sync_engine, "after_cursor_execute")
    def after_cursor(conn, cursor, statement, parameters, context, executemany):
        start_times = conn.info.get("query_start_time")
        if not start_times:
            return
        duration_ms = (time.time() - start_times.pop(-1)) * 1000
        if duration_ms >= settings.SLOW_QUERY_THRESHOLD_MS:
            logger.warning(
                "Slow query detected",
                duration_ms=round(duration_ms, 2),
                statement=statement,
            )


setup_slow_query_logging(engine)


async def create_tables(target: AsyncEngine = engine) -> None:
    """Create all tables from the ORM metadata (development / tests)."""
    # models must be imported so every table is registered on Base.metadata
    from app.db import models  # noqa: F401

    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db():
    async with AsyncSessionLocal() as session:
        yield session

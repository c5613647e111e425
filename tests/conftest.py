import os

# must be set before anything under app/ reads settings
os.environ["ENVIRONMENT"] = "testing"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./markethub-test.db"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"

from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from app.core import security
from app.core.permissions import ALL_PERMISSIONS, MemberRole
from app.db import database, models


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await database.create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    async def _make_user(email=None, password="secret-pass", full_name="Test User"):
        counter["n"] += 1
        user = models.User(
            email=email or f"user{counter['n']}@example.com",
            hashed_password=security.hash_password(password),
            full_name=full_name,
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_store(db):
    counter = {"n": 0}

    async def _make_store(owner, is_private=False, name=None, status=models.StoreStatus.active):
        counter["n"] += 1
        store = models.Store(
            owner_id=owner.id,
            name=name or f"Store {counter['n']}",
            slug=f"store-{counter['n']}",
            is_private=is_private,
            status=status,
        )
        member = models.StoreMember(user_id=owner.id, role=MemberRole.owner, invited_by=owner.id)
        member.permission_set = ALL_PERMISSIONS
        store.members.append(member)
        db.add(store)
        await db.commit()
        await db.refresh(store)
        return store

    return _make_store


@pytest.fixture
def make_product(db):
    counter = {"n": 0}

    async def _make_product(store, price="10.00", stock=10, is_active=True, name=None):
        counter["n"] += 1
        product = models.Product(
            store_id=store.id,
            sku=f"SKU-{counter['n']:04d}",
            name=name or f"Product {counter['n']}",
            price=Decimal(price),
            stock_quantity=stock,
            is_active=is_active,
        )
        db.add(product)
        await db.commit()
        await db.refresh(product)
        return product

    return _make_product


@pytest.fixture
def add_member(db):
    async def _add_member(store, user, role=MemberRole.staff, permissions=(), is_active=True):
        member = models.StoreMember(
            store_id=store.id,
            user_id=user.id,
            role=role,
            invited_by=store.owner_id,
            is_active=is_active,
        )
        member.permission_set = permissions
        db.add(member)
        await db.commit()
        await db.refresh(member)
        return member

    return _add_member


@pytest.fixture
async def client(session_factory):
    from app.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[database.get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _auth_headers(user) -> dict:
        token = security.create_access_token({"sub": user.email})
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers

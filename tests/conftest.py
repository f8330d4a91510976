"""
Shared pytest fixtures.

Every test gets its own SQLite database file, a fixed clock and seeded
users; API tests talk to the real app through httpx with ``get_db`` and
``get_now`` overridden.
"""

import os
from datetime import datetime, timezone
from decimal import Decimal
from typing import AsyncGenerator

# Ensure test environment before the app reads its config
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ["DB_TYPE"] = "sqlite"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["ORDER_NOTIFY_ROLES"] = "admin"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.db import Base, get_db
from app.core.security import create_access_token, hash_password
from app.models.catalog_models import Category, Product
from app.models.user_models import User, UserRole
from app.models.voucher_models import DiscountType, Voucher
from app.utils.time_utils import get_now
from main import app as fastapi_app

FIXED_NOW = datetime(2024, 1, 20, 12, 0, tzinfo=timezone.utc)


def utc(year, month, day, hour=0, minute=0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


class Clock:
    """Mutable request clock; tests move it with ``clock.now = ...``."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


# ============================================================================
# DATABASE FIXTURES
# ============================================================================


@pytest_asyncio.fixture
async def async_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)

    @event.listens_for(engine.sync_engine, "connect")
    def enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(async_engine) -> async_sessionmaker:
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> Clock:
    return Clock(FIXED_NOW)


# ============================================================================
# SEED DATA
# ============================================================================


@pytest_asyncio.fixture
async def users(db_session):
    """admin, product-manager and plain user accounts (password: secret123)."""
    password_hash = hash_password("secret123")
    seeded = {
        "admin": User(username="admin", password_hash=password_hash, role=UserRole.ADMIN.value),
        "manager": User(username="manager", password_hash=password_hash, role=UserRole.PRODUCT_MANAGER.value),
        "customer": User(username="customer", password_hash=password_hash, role=UserRole.USER.value),
    }
    db_session.add_all(seeded.values())
    await db_session.commit()
    for user in seeded.values():
        await db_session.refresh(user)
    return seeded


@pytest.fixture
def auth_header():
    def _header(user: User) -> dict:
        token = create_access_token(
            {"sub": user.username, "user_id": user.id, "role": user.role},
            token_version=user.token_version,
        )
        return {"Authorization": f"Bearer {token}"}
    return _header


@pytest_asyncio.fixture
async def category(db_session) -> Category:
    category = Category(name="Skin Care", slug="skin-care")
    db_session.add(category)
    await db_session.commit()
    await db_session.refresh(category)
    return category


@pytest.fixture
def make_product(db_session):
    counter = {"n": 0}

    async def _make(name=None, price="100", discount_percent="0", category=None) -> Product:
        counter["n"] += 1
        name = name or f"Product {counter['n']}"
        product = Product(
            name=name,
            slug=name.lower().replace(" ", "-"),
            sku=f"SKU-{counter['n']:04d}",
            price=Decimal(price),
            discount_percent=Decimal(discount_percent),
            category=category,
        )
        db_session.add(product)
        await db_session.commit()
        # load server defaults and the category relationship
        await db_session.refresh(product)
        return product

    return _make


@pytest.fixture
def make_voucher(db_session):
    async def _make(
        code="SAVE10",
        discount_type=DiscountType.PERCENTAGE,
        discount_value="10",
        min_purchase_amount=None,
        max_discount_amount=None,
        start_date=None,
        end_date=None,
        excluded=(),
    ) -> Voucher:
        voucher = Voucher(
            code=code,
            discount_type=discount_type,
            discount_value=Decimal(discount_value),
            min_purchase_amount=None if min_purchase_amount is None else Decimal(min_purchase_amount),
            max_discount_amount=None if max_discount_amount is None else Decimal(max_discount_amount),
            start_date=start_date or utc(2024, 1, 1),
            end_date=end_date or utc(2024, 12, 31),
        )
        voucher.excluded_products = list(excluded)
        db_session.add(voucher)
        await db_session.commit()
        await db_session.refresh(voucher)
        return voucher

    return _make


# ============================================================================
# HTTP CLIENT
# ============================================================================


@pytest_asyncio.fixture
async def client(session_factory, clock) -> AsyncGenerator[AsyncClient, None]:
    async def _get_test_db():
        async with session_factory() as session:
            yield session

    fastapi_app.dependency_overrides[get_db] = _get_test_db
    fastapi_app.dependency_overrides[get_now] = clock
    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client
    fastapi_app.dependency_overrides.clear()

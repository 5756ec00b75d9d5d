"""Shared fixtures: a fresh SQLite database per test, seed helpers and an API client."""
import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["SECRET_KEY"] = "test-secret"

import itertools
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional, Tuple

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stockroom import models  # noqa: F401
from stockroom.core.security import create_access_token
from stockroom.database import Base, build_engine, get_db
from stockroom.models import (
    User, UserRole, Product, ProductVariant, Location, LocationType, Inventory, Order, OrderItem,
)
from stockroom.models.order import OrderStatus


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'stockroom-test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


class Seed:
    """Creates committed rows for tests."""

    _numbers = itertools.count(1)

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _save(self, *objects):
        self.db.add_all(objects)
        await self.db.commit()
        return objects[0]

    async def user(self, role: UserRole = UserRole.STAFF, name: Optional[str] = None) -> User:
        n = next(self._numbers)
        return await self._save(User(
            id=uuid.uuid4(),
            email=f"user{n}@stockroom.test",
            name=name or f"User {n}",
            role=role.value,
        ))

    async def location(
        self,
        name: Optional[str] = None,
        location_type: LocationType = LocationType.STORAGE,
        pick_sequence: int = 0,
    ) -> Location:
        name = name or f"LOC-{next(self._numbers):03d}"
        return await self._save(Location(
            id=uuid.uuid4(),
            name=name,
            type=location_type.value,
            barcode=f"BC-{name}",
            pick_sequence=pick_sequence,
        ))

    async def variant(self, sku: Optional[str] = None, price: str = "25.00") -> ProductVariant:
        sku = sku or f"SKU-{next(self._numbers):03d}"
        product = Product(id=uuid.uuid4(), name=f"Product {sku}", sku=f"P-{sku}")
        variant = ProductVariant(
            id=uuid.uuid4(),
            product_id=product.id,
            name=f"Variant {sku}",
            sku=sku,
            upc=f"UPC-{sku}",
            price=Decimal(price),
        )
        self.db.add(product)
        return await self._save(variant)

    async def inventory(
        self,
        variant: ProductVariant,
        location: Location,
        on_hand: int,
        reserved: int = 0,
    ) -> Inventory:
        return await self._save(Inventory(
            id=uuid.uuid4(),
            variant_id=variant.id,
            location_id=location.id,
            quantity_on_hand=on_hand,
            quantity_reserved=reserved,
        ))

    async def order(
        self,
        lines: List[Tuple[ProductVariant, int]],
        status: OrderStatus = OrderStatus.PENDING,
        shipped_days_ago: Optional[int] = None,
        external_order_id: Optional[str] = None,
    ) -> Order:
        number = f"ORD-{next(self._numbers):05d}"
        order = Order(
            id=uuid.uuid4(),
            order_number=number,
            external_order_id=external_order_id,
            customer_email="customer@example.com",
            status=status.value,
            tracking_number="1Z999" if shipped_days_ago is not None else None,
        )
        if shipped_days_ago is not None:
            order.shipped_at = datetime.now(timezone.utc) - timedelta(days=shipped_days_ago)
        total = Decimal("0")
        for variant, quantity in lines:
            order.items.append(OrderItem(
                id=uuid.uuid4(),
                variant_id=variant.id,
                quantity=quantity,
                unit_price=variant.price,
            ))
            total += variant.price * quantity
        order.total_amount = total
        return await self._save(order)


@pytest.fixture
def seed(db):
    return Seed(db)


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}
    return _headers


@pytest.fixture
async def client(session_factory):
    from stockroom.main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()

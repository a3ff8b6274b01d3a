"""Shared fixtures: in-memory SQLite database and seed helpers for service tests."""

import uuid
from decimal import Decimal

import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from marketplace.db.base import Base
from marketplace.models import Inventory, Order, OrderItem, OrderStatus, Product, Vendor


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; emit BEGIN ourselves
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


class Seed:
    """Creates rows in their own committed session, apart from the session under test."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def _save(self, *objects):
        async with self.session_factory() as session:
            session.add_all(objects)
            await session.commit()
        return objects[0]

    async def vendor(self, commission_rate: str = "15.00", name: str = "Vendor") -> Vendor:
        return await self._save(Vendor(
            id=uuid.uuid4(),
            business_name=name,
            user_id=uuid.uuid4(),
            commission_rate=Decimal(commission_rate),
            total_sales=0,
            total_orders=0,
            total_revenue=Decimal("0.00"),
            total_commission=Decimal("0.00"),
            pending_payout=Decimal("0.00"),
        ))

    async def product(self, vendor: Vendor | None = None, price: str = "10.00") -> Product:
        suffix = uuid.uuid4().hex[:8]
        return await self._save(Product(
            id=uuid.uuid4(),
            name=f"Product {suffix}",
            sku=f"PRD-{suffix}",
            price=Decimal(price),
            vendor_id=vendor.id if vendor else None,
        ))

    async def inventory(
        self,
        product: Product,
        current_stock: int = 0,
        reserved_stock: int = 0,
        variant_id: uuid.UUID | None = None,
        **kwargs,
    ) -> Inventory:
        return await self._save(Inventory(
            id=uuid.uuid4(),
            product_id=product.id,
            variant_id=variant_id,
            sku=f"INV-{uuid.uuid4().hex[:10]}",
            current_stock=current_stock,
            reserved_stock=reserved_stock,
            **kwargs,
        ))

    async def order(
        self,
        user_id: uuid.UUID,
        lines: list[tuple[Product, int, str]],
        status: OrderStatus = OrderStatus.PENDING,
        currency: str = "USD",
    ) -> Order:
        items = [
            OrderItem(id=uuid.uuid4(), product_id=product.id, quantity=quantity, price=Decimal(price))
            for product, quantity, price in lines
        ]
        subtotal = sum((item.price * item.quantity for item in items), Decimal("0.00"))
        return await self._save(Order(
            id=uuid.uuid4(),
            order_number=f"ORD-{uuid.uuid4().hex[:10].upper()}",
            user_id=user_id,
            status=status,
            subtotal=subtotal,
            total=subtotal,
            currency=currency,
            items=items,
        ))


@pytest_asyncio.fixture
async def seed(session_factory):
    return Seed(session_factory)

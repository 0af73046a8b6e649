"""
Test fixtures - in-memory SQLite database, registries and an HTTP client
"""
from datetime import date
from typing import Dict, Optional

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from pricebook.database import Base, get_db, enable_sqlite_foreign_keys
from pricebook.main import app
from pricebook.models.customer import Customer
from pricebook.models.price_list import PriceListKind
from pricebook.models.product import Product
from pricebook.models.supplier import Supplier
from pricebook.services.price_list_store import price_list_store
from pricebook.services.version_manager import ItemInput, version_manager


@pytest_asyncio.fixture()
async def db_session():
    """Create a fresh in-memory SQLite database for each test"""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    enable_sqlite_foreign_keys(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture()
async def seed_data(db_session):
    """Two suppliers, one customer and a handful of products"""
    zeta = Supplier(id="A", name="Zeta Meat", legal_name="Zeta Meat LLC")
    alpha = Supplier(id="B", name="Alpha Farms")
    customer = Customer(id="C", name="Restaurant Prime")
    products = [
        Product(id="P100", name="Beef tenderloin", category="beef", unit="kg"),
        Product(id="P101", name="Beef brisket", category="beef", unit="kg"),
        Product(id="P200", name="Pork neck", category="pork", unit="kg"),
    ]
    db_session.add_all([zeta, alpha, customer, *products])
    await db_session.commit()
    return {"zeta": zeta, "alpha": alpha, "customer": customer, "products": products}


@pytest_asyncio.fixture()
async def make_list(db_session):
    """Create a saved price list (optionally current) for a scope and date"""

    async def _make(
        kind: PriceListKind,
        scope_key: Optional[str],
        effective_date: date,
        prices: Dict[str, object],
        make_current: bool = False,
        row_dates: Optional[Dict[str, date]] = None,
    ):
        row_dates = row_dates or {}
        draft = await price_list_store.create(db_session, kind, scope_key, effective_date)
        return await version_manager.save(
            db_session,
            draft.id,
            [ItemInput(pid, price, row_dates.get(pid)) for pid, price in prices.items()],
            effective_date=effective_date,
            make_current=make_current,
        )

    return _make


@pytest_asyncio.fixture()
async def client(db_session, seed_data):
    """httpx AsyncClient bound to the FastAPI app"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        ac.headers["X-Actor"] = "tester"
        yield ac

    app.dependency_overrides.clear()

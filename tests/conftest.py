from decimal import Decimal
from typing import AsyncGenerator

import pytest
from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from portfolio_ledger.api.errors import register_error_handlers
from portfolio_ledger.domain.models import Product, ProductCategory
from portfolio_ledger.domain.services.ledger_engine import LedgerEngine
from portfolio_ledger.infrastructure.catalog.product_catalog import StaticProductCatalog
from portfolio_ledger.infrastructure.db.database import Base, get_db
from portfolio_ledger.infrastructure.db import models  # noqa: F401
from portfolio_ledger.infrastructure.db.repositories.account_repository import AccountRepository
import portfolio_ledger.main as app_main


@pytest.fixture()
async def db_engine(tmp_path):
    db_path = tmp_path / "ledger.db"
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{db_path}",
        future=True,
        echo=False
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture()
def catalog() -> StaticProductCatalog:
    return StaticProductCatalog(
        [
            Product("TCS", "Tata Consultancy Services", ProductCategory.STOCK, Decimal("100")),
            Product("INFY", "Infosys Limited", ProductCategory.STOCK, Decimal("300")),
            Product(
                "HDFCTOP100",
                "HDFC Top 100 Fund",
                ProductCategory.MUTUAL_FUND,
                Decimal("845.20"),
            ),
            Product(
                "DELISTED",
                "Delisted Corp",
                ProductCategory.STOCK,
                Decimal("10"),
                is_active=False,
            ),
        ]
    )


@pytest.fixture()
def ledger_engine(session_factory, catalog) -> LedgerEngine:
    return LedgerEngine(
        session_factory=session_factory,
        product_catalog=catalog,
        retry_backoff_seconds=0,
    )


@pytest.fixture()
def open_account(session_factory):
    """Commit a fresh account and return its snapshot"""

    async def _open(user_id: str = "user-1", balance="100000"):
        async with session_factory() as session:
            account = await AccountRepository(session).create(user_id, Decimal(balance))
            await session.commit()
        return account

    return _open


@pytest.fixture()
async def app(session_factory, ledger_engine, catalog) -> FastAPI:
    app = FastAPI()
    app_main.include_routers(app)
    register_error_handlers(app)

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    app.state.ledger_engine = ledger_engine
    app.state.product_catalog = catalog

    return app


@pytest.fixture()
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

"""
FastAPI Main Application
Wires the ledger engine, product catalog and routers together
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI

from portfolio_ledger.api.errors import register_error_handlers
from portfolio_ledger.api.routes import accounts, health, orders, portfolio, transactions
from portfolio_ledger.config import settings
from portfolio_ledger.core.logging import setup_logging
from portfolio_ledger.domain.services.ledger_engine import LedgerEngine
from portfolio_ledger.infrastructure.catalog.product_catalog import StaticProductCatalog
from portfolio_ledger.infrastructure.db.database import close_db, get_session_factory, init_db

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[1]


def _catalog_path() -> Path:
    path = Path(settings.PRODUCT_CATALOG_PATH)
    if not path.is_absolute():
        path = PROJECT_ROOT / path
    return path


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager
    """
    logger.info("Starting Portfolio Ledger | env=%s db=%s", settings.APP_ENV, settings.DATABASE_URL)

    # 1. Database
    await init_db()
    logger.info("Database initialized")

    # 2. Product catalog
    catalog = StaticProductCatalog.from_yaml(_catalog_path())
    app.state.product_catalog = catalog
    logger.info("Product catalog loaded | %d active products", len(catalog.list_products()))

    # 3. Ledger engine
    app.state.ledger_engine = LedgerEngine(
        session_factory=get_session_factory(),
        product_catalog=catalog,
    )
    logger.info(
        "Ledger engine ready | max_attempts=%d backoff=%.3fs",
        app.state.ledger_engine.max_attempts,
        app.state.ledger_engine.retry_backoff_seconds,
    )

    yield

    logger.info("Shutting down Portfolio Ledger")
    await close_db()


def include_routers(app: FastAPI) -> None:
    app.include_router(health.router, tags=["Health"])
    app.include_router(accounts.router, prefix="/api/v1/accounts", tags=["Accounts"])
    app.include_router(orders.router, prefix="/api/v1/orders", tags=["Orders"])
    app.include_router(portfolio.router, prefix="/api/v1/portfolio", tags=["Portfolio"])
    app.include_router(transactions.router, prefix="/api/v1/transactions", tags=["Transactions"])


app = FastAPI(
    title="Portfolio Ledger",
    description="Wallet, position book and append-only ledger for simulated trading",
    version="0.1.0",
    lifespan=lifespan,
)
include_routers(app)
register_error_handlers(app)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "portfolio_ledger.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
    )

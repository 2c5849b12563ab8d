"""
Shared route dependencies
Runtime singletons live on app.state (set in main.lifespan or by tests)
"""

from fastapi import HTTPException, Request

from portfolio_ledger.domain.services.ledger_engine import LedgerEngine
from portfolio_ledger.infrastructure.catalog.product_catalog import StaticProductCatalog


def get_ledger_engine(request: Request) -> LedgerEngine:
    engine = getattr(request.app.state, "ledger_engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Ledger engine not initialized")
    return engine


def get_product_catalog(request: Request) -> StaticProductCatalog:
    catalog = getattr(request.app.state, "product_catalog", None)
    if catalog is None:
        raise HTTPException(status_code=503, detail="Product catalog not initialized")
    return catalog

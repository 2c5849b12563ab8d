"""
Portfolio API Routes
Holdings and performance marked to current catalog prices
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio_ledger.api.deps import get_product_catalog
from portfolio_ledger.api.serializers import ledger_record_to_dict, position_to_dict, valuation_to_dict
from portfolio_ledger.domain.services.portfolio_service import PortfolioService
from portfolio_ledger.domain.services.reconciliation_service import ReconciliationService
from portfolio_ledger.infrastructure.catalog.product_catalog import StaticProductCatalog
from portfolio_ledger.infrastructure.db.database import get_db

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/{user_id}")
async def get_portfolio(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    catalog: StaticProductCatalog = Depends(get_product_catalog),
):
    """
    Portfolio dashboard: summary totals plus one entry per holding
    """
    summary = await PortfolioService(db).get_portfolio_summary(user_id, catalog)
    if summary is None:
        raise HTTPException(status_code=404, detail="Account not found")

    return {
        "user_id": user_id,
        "wallet_balance": float(summary.wallet_balance),
        "summary": {
            "total_invested": float(summary.total_invested),
            "total_current_value": float(summary.total_current_value),
            "total_return": float(summary.total_return),
            "total_return_pct": float(summary.total_return_pct),
        },
        "holdings": [valuation_to_dict(h) for h in summary.holdings],
        "unpriced_product_ids": summary.unpriced_product_ids,
    }


@router.get("/{user_id}/holdings/{product_id}")
async def get_holding(
    user_id: str,
    product_id: str,
    recent: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    catalog: StaticProductCatalog = Depends(get_product_catalog),
):
    """
    One holding with its valuation and latest transactions
    """
    detail = await PortfolioService(db).get_holding_detail(user_id, product_id, catalog, recent=recent)
    if detail is None:
        raise HTTPException(status_code=404, detail="Holding not found")

    if detail.valuation is not None:
        holding = valuation_to_dict(detail.valuation)
    else:
        holding = position_to_dict(detail.position)
        holding.update(
            {
                "current_price": None,
                "current_value": None,
                "unrealized_return": None,
                "return_pct": None,
                "price_status": "UNAVAILABLE",
            }
        )

    holding["transactions"] = [ledger_record_to_dict(r) for r in detail.recent_records]
    return holding


@router.get("/{user_id}/reconciliation")
async def reconcile(user_id: str, db: AsyncSession = Depends(get_db)):
    """
    Replay the ledger against the stored wallet and positions
    """
    report = await ReconciliationService(db).reconcile_account(user_id)
    if report is None:
        raise HTTPException(status_code=404, detail="Account not found")

    return {
        "user_id": user_id,
        "is_valid": report.is_valid,
        "stored_balance": float(report.stored_balance),
        "replayed_balance": float(report.replayed_balance),
        "issues": report.issues,
        "positions": [
            {
                "product_id": p.product_id,
                "is_valid": p.is_valid,
                "stored": position_to_dict(p.stored),
                "replayed": position_to_dict(p.replayed),
                "issues": p.issues,
            }
            for p in report.positions
        ],
    }

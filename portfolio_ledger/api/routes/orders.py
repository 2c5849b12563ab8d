"""
Order Intake Routes
Buy and sell at the catalog price; execution is delegated to the ledger engine
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from portfolio_ledger.api.deps import get_ledger_engine, get_product_catalog
from portfolio_ledger.api.serializers import ledger_record_to_dict, position_to_dict
from portfolio_ledger.domain.errors import ProductUnavailable
from portfolio_ledger.domain.models import OrderOutcome, OrderSide
from portfolio_ledger.domain.services.ledger_engine import LedgerEngine
from portfolio_ledger.infrastructure.catalog.product_catalog import StaticProductCatalog

logger = logging.getLogger(__name__)
router = APIRouter()


# ------------------------------------------------------------------
# Request Models
# ------------------------------------------------------------------

class OrderRequestBody(BaseModel):
    user_id: str = Field(..., min_length=1)
    product_id: str = Field(..., min_length=1, description="Catalog product id (e.g., TCS)")
    units: float = Field(..., ge=0.01)
    notes: Optional[str] = None


def _outcome_response(outcome: OrderOutcome, message: str) -> dict:
    return {
        "status": "success",
        "message": message,
        "transaction": ledger_record_to_dict(outcome.ledger_record),
        "wallet_balance": float(outcome.updated_balance),
        "position": position_to_dict(outcome.updated_position),
    }


async def _execute(
    side: OrderSide,
    body: OrderRequestBody,
    engine: LedgerEngine,
    catalog: StaticProductCatalog,
) -> OrderOutcome:
    quote = await catalog.get_price(body.product_id)
    if quote is None:
        raise ProductUnavailable(body.product_id)

    return await engine.execute_order(
        user_id=body.user_id,
        product_id=body.product_id,
        side=side,
        units=body.units,
        unit_price=quote,
        notes=body.notes,
    )


# ------------------------------------------------------------------
# BUY
# ------------------------------------------------------------------

@router.post("/buy", status_code=201)
async def buy(
    body: OrderRequestBody,
    engine: LedgerEngine = Depends(get_ledger_engine),
    catalog: StaticProductCatalog = Depends(get_product_catalog),
):
    outcome = await _execute(OrderSide.BUY, body, engine, catalog)
    return _outcome_response(outcome, f"Purchase of {body.product_id} completed")


# ------------------------------------------------------------------
# SELL
# ------------------------------------------------------------------

@router.post("/sell", status_code=201)
async def sell(
    body: OrderRequestBody,
    engine: LedgerEngine = Depends(get_ledger_engine),
    catalog: StaticProductCatalog = Depends(get_product_catalog),
):
    outcome = await _execute(OrderSide.SELL, body, engine, catalog)
    return _outcome_response(outcome, f"Sale of {body.product_id} completed")

"""
Transaction History Routes
Read-only views over the ledger
"""

import math
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio_ledger.api.serializers import ledger_record_to_dict
from portfolio_ledger.domain.models import LedgerStatus, OrderSide
from portfolio_ledger.infrastructure.db.database import get_db
from portfolio_ledger.infrastructure.db.repositories.ledger_repository import LedgerRepository

router = APIRouter()


@router.get("/{user_id}")
async def list_transactions(
    user_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    side: Optional[OrderSide] = None,
    status: Optional[LedgerStatus] = None,
    db: AsyncSession = Depends(get_db),
):
    records, total = await LedgerRepository(db).list_for_user(
        user_id, side=side, status=status, page=page, limit=limit
    )
    total_pages = math.ceil(total / limit) if total else 0

    return {
        "data": [ledger_record_to_dict(r) for r in records],
        "pagination": {
            "current_page": page,
            "total_pages": total_pages,
            "total_transactions": total,
            "has_next_page": page < total_pages,
            "has_prev_page": page > 1,
        },
    }


@router.get("/{user_id}/stats")
async def transaction_stats(user_id: str, db: AsyncSession = Depends(get_db)):
    stats = await LedgerRepository(db).get_stats(user_id)
    return {
        key: float(value) if not isinstance(value, int) else value
        for key, value in stats.items()
    }


@router.get("/{user_id}/{record_id}")
async def get_transaction(user_id: str, record_id: int, db: AsyncSession = Depends(get_db)):
    record = await LedgerRepository(db).get(user_id, record_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return ledger_record_to_dict(record)

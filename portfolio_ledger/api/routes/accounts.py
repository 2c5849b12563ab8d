"""
Account Routes
Open and inspect wallets
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio_ledger.config import settings
from portfolio_ledger.domain.models import Account
from portfolio_ledger.infrastructure.db.database import get_db
from portfolio_ledger.infrastructure.db.repositories.account_repository import AccountRepository
from portfolio_ledger.utils.time import to_iso_db

logger = logging.getLogger(__name__)
router = APIRouter()


class OpenAccountRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=64)
    opening_balance: Optional[float] = Field(None, ge=0)


class AccountResponse(BaseModel):
    user_id: str
    wallet_balance: float
    opening_balance: float
    is_active: bool
    created_at: Optional[str]


def _to_response(account: Account) -> AccountResponse:
    return AccountResponse(
        user_id=account.user_id,
        wallet_balance=float(account.wallet_balance),
        opening_balance=float(account.opening_balance),
        is_active=account.is_active,
        created_at=to_iso_db(account.created_at) if account.created_at else None,
    )


@router.post("", response_model=AccountResponse, status_code=201)
async def open_account(request: OpenAccountRequest, db: AsyncSession = Depends(get_db)):
    repo = AccountRepository(db)

    if await repo.get(request.user_id) is not None:
        raise HTTPException(status_code=409, detail=f"Account already exists for {request.user_id}")

    opening = (
        request.opening_balance
        if request.opening_balance is not None
        else settings.DEFAULT_OPENING_BALANCE
    )
    try:
        account = await repo.create(request.user_id, opening)
    except IntegrityError:
        raise HTTPException(status_code=409, detail=f"Account already exists for {request.user_id}")

    logger.info("Account opened | user=%s balance=%s", account.user_id, account.wallet_balance)
    return _to_response(account)


@router.get("/{user_id}", response_model=AccountResponse)
async def get_account(user_id: str, db: AsyncSession = Depends(get_db)):
    account = await AccountRepository(db).get(user_id)
    if account is None:
        raise HTTPException(status_code=404, detail="Account not found")
    return _to_response(account)


@router.post("/{user_id}/deactivate", response_model=AccountResponse)
async def deactivate_account(user_id: str, db: AsyncSession = Depends(get_db)):
    account = await AccountRepository(db).deactivate(user_id)
    if account is None:
        raise HTTPException(status_code=404, detail="Account not found")
    logger.info("Account deactivated | user=%s", user_id)
    return _to_response(account)

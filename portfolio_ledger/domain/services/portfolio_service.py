"""
PORTFOLIO SERVICE
Dashboard read path: committed positions marked to current prices

RULES:
- Reads committed state only, no locks
- Prices come from a PriceProvider, never from stored data
"""

import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from portfolio_ledger.domain.models import LedgerRecord, PortfolioSummary, Position, PositionValuation
from portfolio_ledger.domain.services.valuation_service import summarize, value_position
from portfolio_ledger.infrastructure.db.repositories.account_repository import AccountRepository
from portfolio_ledger.infrastructure.db.repositories.ledger_repository import LedgerRepository
from portfolio_ledger.infrastructure.db.repositories.position_repository import PositionRepository

logger = logging.getLogger(__name__)


class PriceProvider(Protocol):
    """Protocol for current price lookups - ASYNC"""

    async def get_current_prices(self, product_ids: Iterable[str]) -> Dict[str, Decimal]:
        """Current unit price per product id; missing ids are simply absent"""
        ...


@dataclass(frozen=True)
class HoldingDetail:
    """One holding with its live valuation and most recent ledger activity"""
    position: Position
    valuation: Optional[PositionValuation]
    recent_records: List[LedgerRecord]


class PortfolioService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.accounts = AccountRepository(session)
        self.positions = PositionRepository(session)
        self.ledger = LedgerRepository(session)

    async def get_portfolio_summary(
        self,
        user_id: str,
        price_provider: PriceProvider,
    ) -> Optional[PortfolioSummary]:
        """
        Value every open position of a user

        Returns:
            PortfolioSummary, or None when the user has no account
        """
        account = await self.accounts.get(user_id)
        if account is None:
            return None

        positions = await self.positions.list_for_user(user_id)
        prices = await price_provider.get_current_prices([p.product_id for p in positions])

        summary = summarize(positions, prices)
        if summary.unpriced_product_ids:
            logger.warning(
                "Live price missing for %s (user=%s)",
                ", ".join(summary.unpriced_product_ids),
                user_id,
            )

        logger.info(
            "Portfolio summary ready | user=%s invested=%s value=%s return=%s",
            user_id,
            summary.total_invested,
            summary.total_current_value,
            summary.total_return,
        )

        return replace(summary, user_id=user_id, wallet_balance=account.wallet_balance)

    async def get_holding_detail(
        self,
        user_id: str,
        product_id: str,
        price_provider: PriceProvider,
        recent: int = 10,
    ) -> Optional[HoldingDetail]:
        """
        Valuation of a single holding plus its latest ledger records

        Returns:
            HoldingDetail (valuation is None when no price is available),
            or None when the user does not hold the product
        """
        product_id = product_id.strip().upper()
        position = await self.positions.get(user_id, product_id)
        if position is None:
            return None

        prices = await price_provider.get_current_prices([product_id])
        current_price = prices.get(product_id)
        valuation = None
        if current_price is not None and current_price > 0:
            valuation = value_position(position, current_price)
        else:
            logger.warning("Live price missing for %s (user=%s)", product_id, user_id)

        records = await self.ledger.recent_for_position(user_id, product_id, limit=recent)
        return HoldingDetail(position=position, valuation=valuation, recent_records=records)

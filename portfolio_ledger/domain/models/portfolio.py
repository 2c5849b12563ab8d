"""
DOMAIN MODELS — PORTFOLIO VALUATION

Immutable structures describing live valuations of stored positions.
No database access. No market data fetching.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from .entities import Position


@dataclass(frozen=True)
class PositionValuation:
    """A stored position marked at a current price."""
    position: Position
    current_price: Decimal
    current_value: Decimal
    unrealized_return: Decimal
    return_pct: Decimal

    @property
    def product_id(self) -> str:
        return self.position.product_id


@dataclass(frozen=True)
class PortfolioSummary:
    """Aggregated valuation across every priced position of a user."""
    total_invested: Decimal
    total_current_value: Decimal
    total_return: Decimal
    total_return_pct: Decimal
    holdings: List[PositionValuation] = field(default_factory=list)
    unpriced_product_ids: List[str] = field(default_factory=list)
    user_id: Optional[str] = None
    wallet_balance: Optional[Decimal] = None

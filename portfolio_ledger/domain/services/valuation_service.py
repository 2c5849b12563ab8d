"""
VALUATION SERVICE
Mark stored positions to current prices

RULES:
- Read-only, no persistence
- Cost data comes from the stored position, prices from the caller
- Zero invested capital yields a 0% return (explicit branch)
"""

from decimal import Decimal
from typing import Iterable, Mapping, Optional

from portfolio_ledger.domain.models import PortfolioSummary, Position, PositionValuation
from portfolio_ledger.domain.models.money import ZERO, money, pct, to_decimal


def value_position(position: Position, current_price: Decimal) -> PositionValuation:
    """
    Value one position at a current price.

    current_value = units * current_price
    unrealized_return = current_value - invested_capital
    return_pct = unrealized_return / invested_capital * 100, or 0 without capital
    """
    current_price = to_decimal(current_price)
    current_value = money(position.units * current_price)
    unrealized_return = money(current_value - position.invested_capital)

    return PositionValuation(
        position=position,
        current_price=current_price,
        current_value=current_value,
        unrealized_return=unrealized_return,
        return_pct=pct(unrealized_return, position.invested_capital),
    )


def _usable_price(price: Optional[Decimal]) -> Optional[Decimal]:
    if price is None:
        return None
    price = to_decimal(price)
    if price <= ZERO:
        return None
    return price


def summarize(
    positions: Iterable[Position],
    current_prices: Mapping[str, Decimal],
) -> PortfolioSummary:
    """
    Aggregate valuations across positions.

    Positions without a positive current price are reported in
    unpriced_product_ids and left out of every total.
    """
    holdings = []
    unpriced = []

    for position in positions:
        price = _usable_price(current_prices.get(position.product_id))
        if price is None:
            unpriced.append(position.product_id)
            continue
        holdings.append(value_position(position, price))

    total_invested = money(sum((h.position.invested_capital for h in holdings), ZERO))
    total_current_value = money(sum((h.current_value for h in holdings), ZERO))
    # Always equals the sum of the per-holding returns
    total_return = money(sum((h.unrealized_return for h in holdings), ZERO))

    return PortfolioSummary(
        total_invested=total_invested,
        total_current_value=total_current_value,
        total_return=total_return,
        total_return_pct=pct(total_return, total_invested),
        holdings=holdings,
        unpriced_product_ids=unpriced,
    )

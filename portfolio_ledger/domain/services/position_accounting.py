"""
POSITION ACCOUNTING
Weighted-average-cost transitions for a single (user, product) position

RESPONSIBILITIES:
- Apply one buy fill or one sell fill to a position snapshot
- Report the cost basis released by a sell
- Replay a sequence of fills from an empty position

RULES:
- Pure functions, no I/O
- Sells never change the average cost
- A position that reaches zero units ceases to exist (None)
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from portfolio_ledger.domain.models import LedgerRecord, LedgerStatus, OrderSide, Position
from portfolio_ledger.domain.models.money import ZERO, cost


@dataclass(frozen=True)
class SellEffect:
    """Position after a sell and the cost basis it released"""
    position: Optional[Position]
    cost_removed: Decimal


def apply_buy(
    current: Optional[Position],
    user_id: str,
    product_id: str,
    units: Decimal,
    unit_price: Decimal,
    at: Optional[datetime] = None,
) -> Position:
    """
    Apply a buy fill.

    new_average_cost = (old_units * old_average_cost + units * unit_price) / new_units
    invested_capital grows by units * unit_price.
    """
    purchase = units * unit_price

    if current is None:
        return Position(
            user_id=user_id,
            product_id=product_id,
            units=units,
            average_cost=cost(unit_price),
            invested_capital=cost(purchase),
            last_updated=at,
        )

    new_units = current.units + units
    new_average_cost = cost((current.units * current.average_cost + purchase) / new_units)

    return Position(
        user_id=current.user_id,
        product_id=current.product_id,
        units=new_units,
        average_cost=new_average_cost,
        invested_capital=cost(current.invested_capital + purchase),
        last_updated=at,
    )


def apply_sell(
    current: Position,
    units: Decimal,
    at: Optional[datetime] = None,
) -> SellEffect:
    """
    Apply a sell fill.

    The cost basis removed is units * average_cost, never the sale proceeds.
    Caller guarantees current.units >= units.
    """
    if units > current.units:
        raise ValueError(f"Cannot sell {units} units from a position of {current.units}")

    new_units = current.units - units
    cost_removed = cost(units * current.average_cost)

    if new_units == ZERO:
        return SellEffect(position=None, cost_removed=cost_removed)

    return SellEffect(
        position=Position(
            user_id=current.user_id,
            product_id=current.product_id,
            units=new_units,
            average_cost=current.average_cost,
            invested_capital=cost(current.invested_capital - cost_removed),
            last_updated=at,
        ),
        cost_removed=cost_removed,
    )


def replay(records: Iterable[LedgerRecord]) -> Optional[Position]:
    """
    Rebuild a position from its completed ledger records, in execution order.

    Records that are not completed are skipped.
    """
    position: Optional[Position] = None

    for record in records:
        if record.status != LedgerStatus.COMPLETED:
            continue

        if record.side == OrderSide.BUY:
            position = apply_buy(
                position,
                record.user_id,
                record.product_id,
                record.units,
                record.unit_price,
                at=record.executed_at,
            )
        else:
            if position is None:
                raise ValueError(
                    f"Ledger sells {record.units} units of {record.product_id} with no position"
                )
            position = apply_sell(position, record.units, at=record.executed_at).position

    return position

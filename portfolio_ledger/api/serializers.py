"""
Response shaping shared by the routers
Decimals leave the API as floats, timestamps as ISO strings
"""

from typing import Optional

from portfolio_ledger.domain.models import LedgerRecord, Position, PositionValuation
from portfolio_ledger.utils.time import to_iso_db


def ledger_record_to_dict(record: LedgerRecord) -> dict:
    return {
        "id": record.id,
        "user_id": record.user_id,
        "product_id": record.product_id,
        "side": record.side.value,
        "units": float(record.units),
        "unit_price": float(record.unit_price),
        "gross_amount": float(record.gross_amount),
        "fees": float(record.fees),
        "total_amount": float(record.total_amount),
        "realized_return": float(record.realized_return),
        "balance_after": float(record.balance_after),
        "status": record.status.value,
        "executed_at": to_iso_db(record.executed_at),
        "notes": record.notes,
    }


def position_to_dict(position: Optional[Position]) -> Optional[dict]:
    if position is None:
        return None
    return {
        "product_id": position.product_id,
        "units": float(position.units),
        "average_cost": float(position.average_cost),
        "invested_capital": float(position.invested_capital),
        "last_updated": to_iso_db(position.last_updated) if position.last_updated else None,
    }


def valuation_to_dict(valuation: PositionValuation) -> dict:
    data = position_to_dict(valuation.position)
    data.update(
        {
            "current_price": float(valuation.current_price),
            "current_value": float(valuation.current_value),
            "unrealized_return": float(valuation.unrealized_return),
            "return_pct": float(valuation.return_pct),
            "price_status": "LIVE",
        }
    )
    return data

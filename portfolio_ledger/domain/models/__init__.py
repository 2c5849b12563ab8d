"""
Domain Models Package
Export all domain entities
"""

from .entities import (
    # Enums
    LedgerStatus,
    OrderSide,
    ProductCategory,

    # Entities
    Account,
    LedgerRecord,
    OrderOutcome,
    Position,
    Product,
)
from .portfolio import PortfolioSummary, PositionValuation

__all__ = [
    # Enums
    "LedgerStatus",
    "OrderSide",
    "ProductCategory",

    # Entities
    "Account",
    "LedgerRecord",
    "OrderOutcome",
    "Position",
    "Product",

    # Valuation
    "PortfolioSummary",
    "PositionValuation",
]

"""
Domain Models - Entities
Pure domain objects with no infrastructure dependencies
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from .money import ZERO, cost


class OrderSide(str, Enum):
    """Direction of an order"""
    BUY = "buy"
    SELL = "sell"


class LedgerStatus(str, Enum):
    """Ledger record status"""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ProductCategory(str, Enum):
    """Catalog product category"""
    STOCK = "stock"
    MUTUAL_FUND = "mutual_fund"


@dataclass(frozen=True)
class Product:
    """Catalog product - Immutable"""
    product_id: str
    name: str
    category: ProductCategory
    price_per_unit: Decimal
    is_active: bool = True
    sector: Optional[str] = None

    def __post_init__(self):
        if not self.product_id:
            raise ValueError("Product id cannot be empty")
        if self.price_per_unit <= ZERO:
            raise ValueError("Price per unit must be positive")


@dataclass(frozen=True)
class Account:
    """Wallet owner - Immutable snapshot"""
    user_id: str
    wallet_balance: Decimal
    opening_balance: Decimal
    is_active: bool
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if self.wallet_balance < ZERO:
            raise ValueError("Wallet balance cannot be negative")


@dataclass(frozen=True)
class Position:
    """One user's holding of one product - Immutable snapshot"""
    user_id: str
    product_id: str
    units: Decimal
    average_cost: Decimal
    invested_capital: Decimal
    last_updated: Optional[datetime] = None

    def __post_init__(self):
        if self.units <= ZERO:
            raise ValueError("Position units must be positive")
        if self.average_cost <= ZERO:
            raise ValueError("Average cost must be positive")

    @property
    def cost_basis(self) -> Decimal:
        """units * average_cost, recomputed from scratch"""
        return cost(self.units * self.average_cost)

    @property
    def capital_drift(self) -> Decimal:
        """Gap between the incrementally kept invested capital and the cost basis"""
        return abs(self.invested_capital - self.cost_basis)


@dataclass(frozen=True)
class LedgerRecord:
    """Executed order - Immutable audit record"""
    user_id: str
    product_id: str
    side: OrderSide
    units: Decimal
    unit_price: Decimal
    fees: Decimal
    total_amount: Decimal
    realized_return: Decimal
    balance_after: Decimal
    status: LedgerStatus
    executed_at: datetime
    id: Optional[int] = None
    notes: Optional[str] = None

    def __post_init__(self):
        if self.units <= ZERO:
            raise ValueError("Ledger units must be positive")
        if self.unit_price <= ZERO:
            raise ValueError("Ledger unit price must be positive")
        if self.fees < ZERO:
            raise ValueError("Fees cannot be negative")

    @property
    def gross_amount(self) -> Decimal:
        return self.units * self.unit_price


@dataclass(frozen=True)
class OrderOutcome:
    """Result of a successfully executed order"""
    ledger_record: LedgerRecord
    updated_balance: Decimal
    updated_position: Optional[Position]

    @property
    def position_closed(self) -> bool:
        return self.updated_position is None

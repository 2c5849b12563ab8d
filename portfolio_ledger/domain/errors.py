"""
Order error taxonomy.

Every failure of an order surfaces as exactly one of these; none of them
leaves a partial mutation behind.
"""

from decimal import Decimal
from typing import Any, Dict


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    return value


class OrderError(Exception):
    """Base class for order failures"""

    code = "ORDER_ERROR"
    retryable = False

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": {k: _jsonable(v) for k, v in self.details.items()},
        }


class InvalidInput(OrderError):
    code = "INVALID_INPUT"


class InsufficientFunds(OrderError):
    code = "INSUFFICIENT_FUNDS"

    def __init__(self, required: Decimal, available: Decimal):
        super().__init__(
            f"Insufficient wallet balance: required {required}, available {available}",
            required=required,
            available=available,
        )
        self.required = required
        self.available = available


class InsufficientHoldings(OrderError):
    code = "INSUFFICIENT_HOLDINGS"

    def __init__(self, available: Decimal, requested: Decimal):
        super().__init__(
            f"Insufficient units to sell: available {available}, requested {requested}",
            available=available,
            requested=requested,
        )
        self.available = available
        self.requested = requested


class ProductUnavailable(OrderError):
    code = "PRODUCT_UNAVAILABLE"

    def __init__(self, product_id: str):
        super().__init__(f"Product not found or not available: {product_id}", product_id=product_id)
        self.product_id = product_id


class AccountUnavailable(OrderError):
    code = "ACCOUNT_UNAVAILABLE"

    def __init__(self, user_id: str):
        super().__init__(f"Account not found or inactive: {user_id}", user_id=user_id)
        self.user_id = user_id


class ConcurrentModification(OrderError):
    code = "CONCURRENT_MODIFICATION"
    retryable = True

    def __init__(self, user_id: str, attempts: int):
        super().__init__(
            f"Order for {user_id} conflicted with a concurrent write after {attempts} attempts",
            user_id=user_id,
            attempts=attempts,
        )
        self.attempts = attempts


class StorageFailure(OrderError):
    code = "STORAGE_FAILURE"

    def __init__(self, message: str = "Ledger storage failure"):
        super().__init__(message)


class LedgerImmutableError(RuntimeError):
    """Raised when a flush tries to edit or delete a completed ledger record"""

"""
LEDGER ENGINE
Single writer for wallets, positions and the ledger

RESPONSIBILITIES:
- Validate an order against the committed wallet and position
- Apply balance, position and ledger changes as one transaction
- Serialize orders per user and retry optimistic conflicts a bounded number of times

RULES:
❌ No partial mutation: wallet, position and ledger commit together or not at all
❌ No price fetching, the caller supplies the execution price
✅ Preconditions checked inside the transaction, never beforehand
✅ Decimal arithmetic only
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional, Protocol, Tuple

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from portfolio_ledger.config import settings
from portfolio_ledger.domain.errors import (
    AccountUnavailable,
    ConcurrentModification,
    InsufficientFunds,
    InsufficientHoldings,
    InvalidInput,
    OrderError,
    ProductUnavailable,
    StorageFailure,
)
from portfolio_ledger.domain.models import (
    LedgerRecord,
    LedgerStatus,
    OrderOutcome,
    OrderSide,
    Position,
)
from portfolio_ledger.domain.models.money import (
    MIN_ORDER_UNITS,
    ZERO,
    money,
    money_down,
    money_up,
    price,
    to_decimal,
    units,
)
from portfolio_ledger.domain.services.position_accounting import apply_buy, apply_sell
from portfolio_ledger.domain.services.user_locks import UserLockRegistry
from portfolio_ledger.infrastructure.db.repositories.account_repository import AccountRepository
from portfolio_ledger.infrastructure.db.repositories.ledger_repository import LedgerRepository
from portfolio_ledger.infrastructure.db.repositories.position_repository import PositionRepository
from portfolio_ledger.utils.time import now_naive

logger = logging.getLogger(__name__)


class ProductCatalog(Protocol):
    """Protocol for the product catalog collaborator - ASYNC"""

    async def is_available(self, product_id: str) -> bool:
        """True when the product exists and is active"""
        ...

    async def get_price(self, product_id: str) -> Optional[Decimal]:
        """Current execution price, None when the product cannot be traded"""
        ...


UNIQUE_VIOLATION_SQLSTATE = "23505"


def _is_unique_violation(exc: IntegrityError) -> bool:
    """
    True when the integrity error comes from a unique constraint
    (a racing first buy), not from a check or foreign key constraint.
    """
    code = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
    if code:
        return code == UNIQUE_VIOLATION_SQLSTATE
    # SQLite reports "UNIQUE constraint failed: ..."
    return "unique" in str(exc.orig).lower()


@dataclass(frozen=True)
class OrderRequest:
    """Normalized order, quantized and validated for shape"""
    user_id: str
    product_id: str
    side: OrderSide
    units: Decimal
    unit_price: Decimal
    fees: Decimal
    notes: Optional[str] = None

    @property
    def gross_amount(self) -> Decimal:
        """units * unit_price rounded against the user (up on buys, down on sells)"""
        gross = self.units * self.unit_price
        if self.side == OrderSide.BUY:
            return money_up(gross)
        return money_down(gross)

    @property
    def total_amount(self) -> Decimal:
        """Cash moved by the order: debited on buys, credited on sells"""
        if self.side == OrderSide.BUY:
            return self.gross_amount + self.fees
        return self.gross_amount - self.fees


class LedgerEngine:
    """
    Ledger Engine
    Executes buy/sell orders atomically against wallet, position and ledger
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        product_catalog: Optional[ProductCatalog] = None,
        lock_registry: Optional[UserLockRegistry] = None,
        max_attempts: Optional[int] = None,
        retry_backoff_seconds: Optional[float] = None,
    ):
        """
        Args:
            session_factory: Factory for the sessions each attempt runs in
            product_catalog: Availability check re-run inside the transaction
            lock_registry: Per-user locks (share one registry per process)
            max_attempts: Attempts before a conflict is surfaced
            retry_backoff_seconds: Base delay between attempts (linear)
        """
        self.session_factory = session_factory
        self.product_catalog = product_catalog
        self.locks = lock_registry or UserLockRegistry()
        self.max_attempts = max_attempts if max_attempts is not None else settings.ORDER_MAX_ATTEMPTS
        self.retry_backoff_seconds = (
            retry_backoff_seconds
            if retry_backoff_seconds is not None
            else settings.ORDER_RETRY_BACKOFF_SECONDS
        )

        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    async def execute_order(
        self,
        user_id: str,
        product_id: str,
        side,
        units,
        unit_price,
        fees=ZERO,
        notes: Optional[str] = None,
    ) -> OrderOutcome:
        """
        Execute one order

        Args:
            user_id: Owner of the wallet
            product_id: Product being traded
            side: "buy" / "sell" or OrderSide
            units: Quantity, positive
            unit_price: Execution price supplied by the catalog, positive
            fees: Additive fees, default 0
            notes: Optional free text stored on the ledger record

        Returns:
            OrderOutcome with the ledger record, new balance and new position

        Raises:
            OrderError subclass; nothing is written when one is raised
        """
        order = self._normalize(user_id, product_id, side, units, unit_price, fees, notes)

        async with self.locks.hold(order.user_id):
            try:
                outcome = await self._execute_with_retry(order)
            except OrderError as exc:
                logger.info(
                    "Order rejected | user=%s product=%s side=%s units=%s code=%s",
                    order.user_id,
                    order.product_id,
                    order.side.value,
                    order.units,
                    exc.code,
                )
                raise

        record = outcome.ledger_record
        logger.info(
            "Order executed | id=%s user=%s product=%s side=%s units=%s price=%s total=%s balance=%s",
            record.id,
            record.user_id,
            record.product_id,
            record.side.value,
            record.units,
            record.unit_price,
            record.total_amount,
            outcome.updated_balance,
        )
        return outcome

    async def buy(self, user_id: str, product_id: str, units, unit_price, **kwargs) -> OrderOutcome:
        return await self.execute_order(user_id, product_id, OrderSide.BUY, units, unit_price, **kwargs)

    async def sell(self, user_id: str, product_id: str, units, unit_price, **kwargs) -> OrderOutcome:
        return await self.execute_order(user_id, product_id, OrderSide.SELL, units, unit_price, **kwargs)

    # ------------------------------------------------------------------
    # Input normalization
    # ------------------------------------------------------------------

    @staticmethod
    def _normalize(user_id, product_id, side, qty, quote, fees, notes) -> OrderRequest:
        if not isinstance(user_id, str) or not user_id:
            raise InvalidInput("user_id must be a non-empty string")
        if not isinstance(product_id, str) or not product_id.strip():
            raise InvalidInput("product_id must be a non-empty string")

        try:
            side = OrderSide(side)
        except ValueError:
            raise InvalidInput(f"Unknown order side: {side}", side=side)

        try:
            qty, quote, fees = to_decimal(qty), to_decimal(quote), to_decimal(fees)
        except (InvalidOperation, TypeError, ValueError):
            raise InvalidInput("units, unit_price and fees must be numeric")

        if not (qty.is_finite() and quote.is_finite() and fees.is_finite()):
            raise InvalidInput("units, unit_price and fees must be finite")

        qty, quote, fees = units(qty), price(quote), money(fees)

        if qty <= ZERO:
            raise InvalidInput("units must be positive", units=qty)
        if qty < MIN_ORDER_UNITS:
            raise InvalidInput(f"units must be at least {MIN_ORDER_UNITS}", units=qty)
        if quote <= ZERO:
            raise InvalidInput("unit_price must be positive", unit_price=quote)
        if fees < ZERO:
            raise InvalidInput("fees cannot be negative", fees=fees)
        if money(qty * quote) == ZERO:
            raise InvalidInput(
                "order value rounds to zero",
                units=qty,
                unit_price=quote,
            )

        order = OrderRequest(
            user_id=user_id,
            product_id=product_id.strip().upper(),
            side=side,
            units=qty,
            unit_price=quote,
            fees=fees,
            notes=notes,
        )

        if order.side == OrderSide.SELL and order.total_amount < ZERO:
            raise InvalidInput(
                "fees exceed sale proceeds",
                fees=fees,
                gross_amount=order.gross_amount,
            )

        return order

    # ------------------------------------------------------------------
    # Retry boundary
    # ------------------------------------------------------------------

    async def _execute_with_retry(self, order: OrderRequest) -> OrderOutcome:
        last_error: Optional[SQLAlchemyError] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                return await self._execute_once(order)
            except (StaleDataError, IntegrityError) as exc:
                if isinstance(exc, IntegrityError) and not _is_unique_violation(exc):
                    logger.exception("Ledger constraint violated for user=%s", order.user_id)
                    raise StorageFailure("Ledger storage failure: constraint violated") from exc
                last_error = exc
                logger.warning(
                    "Concurrent write for user=%s (attempt %d/%d): %s",
                    order.user_id,
                    attempt,
                    self.max_attempts,
                    exc.__class__.__name__,
                )
            except OperationalError as exc:
                last_error = exc
                logger.warning(
                    "Transient storage error for user=%s (attempt %d/%d): %s",
                    order.user_id,
                    attempt,
                    self.max_attempts,
                    exc.__class__.__name__,
                )
            except SQLAlchemyError as exc:
                logger.exception("Ledger storage failure for user=%s", order.user_id)
                raise StorageFailure(f"Ledger storage failure: {exc.__class__.__name__}") from exc

            if attempt < self.max_attempts:
                await asyncio.sleep(self.retry_backoff_seconds * attempt)

        if isinstance(last_error, OperationalError):
            logger.error(
                "Giving up on user=%s after %d attempts: storage unavailable",
                order.user_id,
                self.max_attempts,
            )
            raise StorageFailure(
                f"Ledger storage unavailable after {self.max_attempts} attempts"
            ) from last_error

        raise ConcurrentModification(order.user_id, self.max_attempts) from last_error

    # ------------------------------------------------------------------
    # Single atomic attempt
    # ------------------------------------------------------------------

    async def _execute_once(self, order: OrderRequest) -> OrderOutcome:
        async with self.session_factory() as session:
            async with session.begin():
                accounts = AccountRepository(session)
                positions = PositionRepository(session)
                ledger = LedgerRepository(session)

                account = await accounts.get_model(order.user_id, for_update=True)
                if account is None or not account.is_active:
                    raise AccountUnavailable(order.user_id)

                if self.product_catalog is not None:
                    if not await self.product_catalog.is_available(order.product_id):
                        raise ProductUnavailable(order.product_id)

                position_row, current = await positions.get_for_update(
                    order.user_id, order.product_id
                )
                balance = money(account.wallet_balance)
                executed_at = now_naive()

                if order.side == OrderSide.BUY:
                    new_balance, new_position, realized = self._apply_buy(
                        order, balance, current, executed_at
                    )
                else:
                    new_balance, new_position, realized = self._apply_sell(
                        order, balance, current, executed_at
                    )

                await accounts.set_balance(account, new_balance)
                await positions.save(position_row, new_position)
                record = await ledger.append(
                    LedgerRecord(
                        user_id=order.user_id,
                        product_id=order.product_id,
                        side=order.side,
                        units=order.units,
                        unit_price=order.unit_price,
                        fees=order.fees,
                        total_amount=order.total_amount,
                        realized_return=realized,
                        balance_after=new_balance,
                        status=LedgerStatus.COMPLETED,
                        executed_at=executed_at,
                        notes=order.notes,
                    )
                )

        return OrderOutcome(
            ledger_record=record,
            updated_balance=new_balance,
            updated_position=new_position,
        )

    @staticmethod
    def _apply_buy(
        order: OrderRequest,
        balance: Decimal,
        current: Optional[Position],
        executed_at: datetime,
    ) -> Tuple[Decimal, Position, Decimal]:
        required = order.total_amount
        if balance < required:
            raise InsufficientFunds(required=required, available=balance)

        position = apply_buy(
            current,
            order.user_id,
            order.product_id,
            order.units,
            order.unit_price,
            at=executed_at,
        )
        return money(balance - required), position, money(ZERO)

    @staticmethod
    def _apply_sell(
        order: OrderRequest,
        balance: Decimal,
        current: Optional[Position],
        executed_at: datetime,
    ) -> Tuple[Decimal, Optional[Position], Decimal]:
        available = current.units if current is not None else units(ZERO)
        if current is None or current.units < order.units:
            raise InsufficientHoldings(available=available, requested=order.units)

        effect = apply_sell(current, order.units, at=executed_at)
        proceeds = order.total_amount
        realized = money(proceeds - effect.cost_removed)

        return money(balance + proceeds), effect.position, realized

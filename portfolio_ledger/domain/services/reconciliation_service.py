"""
RECONCILIATION SERVICE
Replay the ledger and compare it with stored state

RESPONSIBILITIES:
- Rebuild each position from its completed ledger records
- Rebuild the wallet balance from the opening balance
- Check invested capital against units * average cost

RULES:
❌ Never mutates anything
✅ Uses the same accounting functions as the ledger engine
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from portfolio_ledger.config import settings
from portfolio_ledger.domain.models import OrderSide, Position
from portfolio_ledger.domain.models.money import money, to_decimal
from portfolio_ledger.domain.services.position_accounting import replay
from portfolio_ledger.infrastructure.db.repositories.account_repository import AccountRepository
from portfolio_ledger.infrastructure.db.repositories.ledger_repository import LedgerRepository
from portfolio_ledger.infrastructure.db.repositories.position_repository import PositionRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PositionReconciliation:
    user_id: str
    product_id: str
    stored: Optional[Position]
    replayed: Optional[Position]
    issues: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.issues


@dataclass(frozen=True)
class AccountReconciliation:
    user_id: str
    stored_balance: Decimal
    replayed_balance: Decimal
    positions: List[PositionReconciliation] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.issues and all(p.is_valid for p in self.positions)


def compare_positions(
    stored: Optional[Position],
    replayed: Optional[Position],
    tolerance: Decimal,
) -> List[str]:
    """
    Compare a stored position with its replayed counterpart

    Returns:
        List of issues (empty when consistent)
    """
    issues = []

    if stored is None and replayed is None:
        return issues
    if stored is None:
        issues.append(f"Ledger implies {replayed.units} units but no position is stored")
        return issues
    if replayed is None:
        issues.append(f"Position of {stored.units} units has no ledger history")
        return issues

    if stored.units != replayed.units:
        issues.append(f"Units mismatch: stored {stored.units}, ledger {replayed.units}")
    if abs(stored.average_cost - replayed.average_cost) > tolerance:
        issues.append(
            f"Average cost mismatch: stored {stored.average_cost}, ledger {replayed.average_cost}"
        )
    if abs(stored.invested_capital - replayed.invested_capital) > tolerance:
        issues.append(
            f"Invested capital mismatch: stored {stored.invested_capital}, "
            f"ledger {replayed.invested_capital}"
        )
    if stored.capital_drift > tolerance:
        issues.append(
            f"Invested capital {stored.invested_capital} drifted from "
            f"units * average cost {stored.cost_basis}"
        )

    return issues


class ReconciliationService:
    def __init__(self, session: AsyncSession, tolerance: Optional[Decimal] = None):
        self.accounts = AccountRepository(session)
        self.positions = PositionRepository(session)
        self.ledger = LedgerRepository(session)
        self.tolerance = to_decimal(
            tolerance if tolerance is not None else settings.RECONCILIATION_TOLERANCE
        )

    async def reconcile_position(self, user_id: str, product_id: str) -> PositionReconciliation:
        records = await self.ledger.list_for_position(user_id, product_id)
        stored = await self.positions.get(user_id, product_id)

        try:
            replayed = replay(records)
        except ValueError as exc:
            return PositionReconciliation(
                user_id=user_id,
                product_id=product_id,
                stored=stored,
                replayed=None,
                issues=[str(exc)],
            )

        issues = compare_positions(stored, replayed, self.tolerance)
        if issues:
            logger.warning(
                "Position %s/%s failed reconciliation: %s",
                user_id,
                product_id,
                "; ".join(issues),
            )

        return PositionReconciliation(
            user_id=user_id,
            product_id=product_id,
            stored=stored,
            replayed=replayed,
            issues=issues,
        )

    async def reconcile_account(self, user_id: str) -> Optional[AccountReconciliation]:
        """
        Replay the wallet and every position the user has touched

        Returns:
            AccountReconciliation, or None when the user has no account
        """
        account = await self.accounts.get(user_id)
        if account is None:
            return None

        records = await self.ledger.list_completed_for_user(user_id)

        balance = account.opening_balance
        for record in records:
            if record.side == OrderSide.BUY:
                balance -= record.total_amount
            else:
                balance += record.total_amount
        balance = money(balance)

        issues = []
        if balance != account.wallet_balance:
            issues.append(
                f"Wallet mismatch: stored {account.wallet_balance}, ledger {balance}"
            )
        if records and records[-1].balance_after != account.wallet_balance:
            issues.append(
                f"Last ledger balance {records[-1].balance_after} differs from "
                f"stored wallet {account.wallet_balance}"
            )

        product_ids = sorted(
            {r.product_id for r in records}
            | {p.product_id for p in await self.positions.list_for_user(user_id)}
        )
        positions = [await self.reconcile_position(user_id, pid) for pid in product_ids]

        return AccountReconciliation(
            user_id=user_id,
            stored_balance=account.wallet_balance,
            replayed_balance=balance,
            positions=positions,
            issues=issues,
        )

"""
Account Repository
Wallet owners and their balances
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio_ledger.domain.models import Account
from portfolio_ledger.domain.models.money import money
from portfolio_ledger.infrastructure.db.models import AccountModel


class AccountRepository:
    """Repository for Account"""

    def __init__(self, session: AsyncSession):
        """Initialize with database session"""
        self.session = session

    async def create(self, user_id: str, opening_balance: Decimal) -> Account:
        """
        Open a wallet for a user

        Args:
            user_id: External user identifier
            opening_balance: Initial wallet credit

        Returns:
            Created Account
        """
        opening_balance = money(opening_balance)
        model = AccountModel(
            user_id=user_id,
            wallet_balance=opening_balance,
            opening_balance=opening_balance,
            is_active=True,
        )
        self.session.add(model)
        await self.session.flush()

        return self._to_domain(model)

    async def get(self, user_id: str) -> Optional[Account]:
        """Get account snapshot by user id"""
        model = await self.get_model(user_id)
        return self._to_domain(model) if model else None

    async def get_model(self, user_id: str, for_update: bool = False) -> Optional[AccountModel]:
        """
        Load the mutable account row

        Args:
            user_id: External user identifier
            for_update: Take a row lock where the backend supports it

        Returns:
            AccountModel or None
        """
        stmt = select(AccountModel).where(AccountModel.user_id == user_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def set_balance(self, model: AccountModel, balance: Decimal) -> None:
        """Write a new wallet balance; the version column is bumped on flush"""
        model.wallet_balance = money(balance)
        await self.session.flush()

    async def deactivate(self, user_id: str) -> Optional[Account]:
        model = await self.get_model(user_id, for_update=True)
        if model is None:
            return None
        model.is_active = False
        await self.session.flush()
        return self._to_domain(model)

    @staticmethod
    def _to_domain(model: Optional[AccountModel]) -> Optional[Account]:
        """Convert database model to domain entity"""
        if model is None:
            return None

        return Account(
            user_id=model.user_id,
            wallet_balance=money(model.wallet_balance),
            opening_balance=money(model.opening_balance),
            is_active=model.is_active,
            version=model.version,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

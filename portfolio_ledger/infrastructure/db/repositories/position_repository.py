"""
Position Repository
Current holdings, one row per (user, product)
"""

from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio_ledger.domain.models import Position
from portfolio_ledger.domain.models.money import cost, units
from portfolio_ledger.infrastructure.db.models import PositionModel


class PositionRepository:
    """Repository for Position"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, user_id: str, product_id: str) -> Optional[Position]:
        model = await self.get_model(user_id, product_id)
        return self._to_domain(model)

    async def get_for_update(
        self,
        user_id: str,
        product_id: str,
    ) -> Tuple[Optional[PositionModel], Optional[Position]]:
        """Load the mutable row together with its domain snapshot"""
        model = await self.get_model(user_id, product_id, for_update=True)
        return model, self._to_domain(model)

    async def get_model(
        self,
        user_id: str,
        product_id: str,
        for_update: bool = False,
    ) -> Optional[PositionModel]:
        stmt = select(PositionModel).where(
            PositionModel.user_id == user_id,
            PositionModel.product_id == product_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: str) -> List[Position]:
        """All open positions of a user, ordered by product"""
        result = await self.session.execute(
            select(PositionModel)
            .where(PositionModel.user_id == user_id)
            .order_by(PositionModel.product_id)
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    async def save(self, model: Optional[PositionModel], position: Optional[Position]) -> None:
        """
        Persist a position transition

        Args:
            model: Row loaded before the transition (None if there was none)
            position: Position after the transition (None once fully sold)
        """
        if position is None:
            if model is not None:
                await self.session.delete(model)
        elif model is None:
            self.session.add(
                PositionModel(
                    user_id=position.user_id,
                    product_id=position.product_id,
                    units=position.units,
                    average_cost=position.average_cost,
                    invested_capital=position.invested_capital,
                    last_updated=position.last_updated,
                )
            )
        else:
            model.units = position.units
            model.average_cost = position.average_cost
            model.invested_capital = position.invested_capital
            model.last_updated = position.last_updated

        await self.session.flush()

    @staticmethod
    def _to_domain(model: Optional[PositionModel]) -> Optional[Position]:
        """Convert database model to domain entity"""
        if model is None:
            return None

        return Position(
            user_id=model.user_id,
            product_id=model.product_id,
            units=units(model.units),
            average_cost=cost(model.average_cost),
            invested_capital=cost(model.invested_capital),
            last_updated=model.last_updated,
        )

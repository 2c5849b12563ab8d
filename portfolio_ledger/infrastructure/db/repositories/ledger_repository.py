"""
Ledger Repository
Append-only ledger records (audit trail of executed orders)
"""

from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio_ledger.domain.models import LedgerRecord, LedgerStatus, OrderSide
from portfolio_ledger.domain.models.money import money, price, units
from portfolio_ledger.infrastructure.db.models import LedgerRecordModel


class LedgerRepository:
    """Repository for LedgerRecord"""

    def __init__(self, session: AsyncSession):
        """Initialize with database session"""
        self.session = session

    async def append(self, record: LedgerRecord) -> LedgerRecord:
        """
        Append a ledger record

        Args:
            record: LedgerRecord domain object (id ignored)

        Returns:
            The stored record, with its id
        """
        model = LedgerRecordModel(
            user_id=record.user_id,
            product_id=record.product_id,
            side=record.side,
            units=record.units,
            unit_price=record.unit_price,
            fees=record.fees,
            total_amount=record.total_amount,
            realized_return=record.realized_return,
            balance_after=record.balance_after,
            status=record.status,
            executed_at=record.executed_at,
            notes=record.notes,
        )

        self.session.add(model)
        await self.session.flush()

        return self._to_domain(model)

    async def get(self, user_id: str, record_id: int) -> Optional[LedgerRecord]:
        """Get one record, scoped to its owner"""
        result = await self.session.execute(
            select(LedgerRecordModel).where(
                LedgerRecordModel.id == record_id,
                LedgerRecordModel.user_id == user_id,
            )
        )
        return self._to_domain(result.scalar_one_or_none())

    async def list_for_user(
        self,
        user_id: str,
        side: Optional[OrderSide] = None,
        status: Optional[LedgerStatus] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[LedgerRecord], int]:
        """
        Page through a user's ledger, newest first

        Args:
            user_id: Owner of the records
            side: Optional buy/sell filter
            status: Optional status filter
            page: 1-based page number
            limit: Page size

        Returns:
            (records on the page, total matching records)
        """
        filters = [LedgerRecordModel.user_id == user_id]
        if side is not None:
            filters.append(LedgerRecordModel.side == side)
        if status is not None:
            filters.append(LedgerRecordModel.status == status)

        total = await self.session.scalar(
            select(func.count(LedgerRecordModel.id)).where(*filters)
        )

        result = await self.session.execute(
            select(LedgerRecordModel)
            .where(*filters)
            .order_by(LedgerRecordModel.executed_at.desc(), LedgerRecordModel.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        records = [self._to_domain(m) for m in result.scalars().all()]

        return records, int(total or 0)

    async def list_for_position(
        self,
        user_id: str,
        product_id: str,
        completed_only: bool = True,
    ) -> List[LedgerRecord]:
        """Records of one (user, product) pair in execution order"""
        stmt = select(LedgerRecordModel).where(
            LedgerRecordModel.user_id == user_id,
            LedgerRecordModel.product_id == product_id,
        )
        if completed_only:
            stmt = stmt.where(LedgerRecordModel.status == LedgerStatus.COMPLETED)

        result = await self.session.execute(stmt.order_by(LedgerRecordModel.id))
        return [self._to_domain(m) for m in result.scalars().all()]

    async def recent_for_position(
        self,
        user_id: str,
        product_id: str,
        limit: int = 10,
    ) -> List[LedgerRecord]:
        """Most recent records of one (user, product) pair, newest first"""
        result = await self.session.execute(
            select(LedgerRecordModel)
            .where(
                LedgerRecordModel.user_id == user_id,
                LedgerRecordModel.product_id == product_id,
            )
            .order_by(LedgerRecordModel.id.desc())
            .limit(limit)
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    async def list_completed_for_user(self, user_id: str) -> List[LedgerRecord]:
        """Every completed record of a user in execution order"""
        result = await self.session.execute(
            select(LedgerRecordModel)
            .where(
                LedgerRecordModel.user_id == user_id,
                LedgerRecordModel.status == LedgerStatus.COMPLETED,
            )
            .order_by(LedgerRecordModel.id)
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    async def get_stats(self, user_id: str) -> dict:
        """
        Aggregate statistics over a user's completed records

        Returns:
            Counts per side, amount invested (buys), amount received (sells)
            and realized return
        """
        is_buy = LedgerRecordModel.side == OrderSide.BUY
        is_sell = LedgerRecordModel.side == OrderSide.SELL

        result = await self.session.execute(
            select(
                func.count(LedgerRecordModel.id).label("total"),
                func.coalesce(func.sum(case((is_buy, 1), else_=0)), 0).label("buys"),
                func.coalesce(func.sum(case((is_sell, 1), else_=0)), 0).label("sells"),
                func.coalesce(
                    func.sum(case((is_buy, LedgerRecordModel.total_amount), else_=0)), 0
                ).label("invested"),
                func.coalesce(
                    func.sum(case((is_sell, LedgerRecordModel.total_amount), else_=0)), 0
                ).label("received"),
                func.coalesce(func.sum(LedgerRecordModel.realized_return), 0).label("realized"),
            ).where(
                LedgerRecordModel.user_id == user_id,
                LedgerRecordModel.status == LedgerStatus.COMPLETED,
            )
        )
        row = result.one()

        return {
            "total_transactions": int(row.total or 0),
            "total_buy_transactions": int(row.buys or 0),
            "total_sell_transactions": int(row.sells or 0),
            "total_amount_invested": money(Decimal(str(row.invested))),
            "total_amount_received": money(Decimal(str(row.received))),
            "total_realized_return": money(Decimal(str(row.realized))),
        }

    @staticmethod
    def _to_domain(model: Optional[LedgerRecordModel]) -> Optional[LedgerRecord]:
        """Convert database model to domain entity"""
        if model is None:
            return None

        return LedgerRecord(
            id=model.id,
            user_id=model.user_id,
            product_id=model.product_id,
            side=OrderSide(model.side),
            units=units(model.units),
            unit_price=price(model.unit_price),
            fees=money(model.fees),
            total_amount=money(model.total_amount),
            realized_return=money(model.realized_return),
            balance_after=money(model.balance_after),
            status=LedgerStatus(model.status),
            executed_at=model.executed_at,
            notes=model.notes,
        )

"""
Database Models (SQLAlchemy ORM)
Accounts and positions are mutable state; ledger records are insert-only
"""

from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, Enum as SQLEnum, Index,
    Integer, Numeric, String, Text, UniqueConstraint, event, inspect,
)

from portfolio_ledger.domain.errors import LedgerImmutableError
from portfolio_ledger.domain.models import LedgerStatus, OrderSide
from portfolio_ledger.infrastructure.db.database import Base
from portfolio_ledger.utils.time import now_naive


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class AccountModel(Base):
    """Wallet owner; version guards concurrent writers"""
    __tablename__ = "account"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, unique=True, index=True)

    wallet_balance = Column(Numeric(18, 2), nullable=False)
    opening_balance = Column(Numeric(18, 2), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, nullable=False, default=now_naive)
    updated_at = Column(DateTime, nullable=False, default=now_naive, onupdate=now_naive)

    __table_args__ = (
        CheckConstraint("wallet_balance >= 0", name="ck_account_wallet_non_negative"),
    )

    __mapper_args__ = {"version_id_col": version}


class PositionModel(Base):
    """Current holding of one product by one user"""
    __tablename__ = "position"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    product_id = Column(String(32), nullable=False)

    units = Column(Numeric(18, 4), nullable=False)
    average_cost = Column(Numeric(20, 8), nullable=False)
    invested_capital = Column(Numeric(24, 8), nullable=False)

    last_updated = Column(DateTime, nullable=False, default=now_naive)

    __table_args__ = (
        UniqueConstraint("user_id", "product_id", name="uq_position_user_product"),
        CheckConstraint("units > 0", name="ck_position_units_positive"),
    )


class LedgerRecordModel(Base):
    """Executed order - AUDIT RECORD, never edited once completed"""
    __tablename__ = "ledger_record"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False)
    product_id = Column(String(32), nullable=False)

    side = Column(
        SQLEnum(OrderSide, name="order_side", values_callable=_enum_values),
        nullable=False,
    )
    units = Column(Numeric(18, 4), nullable=False)
    unit_price = Column(Numeric(18, 4), nullable=False)
    fees = Column(Numeric(18, 2), nullable=False, default=0)
    total_amount = Column(Numeric(18, 2), nullable=False)
    realized_return = Column(Numeric(18, 2), nullable=False, default=0)
    balance_after = Column(Numeric(18, 2), nullable=False)

    status = Column(
        SQLEnum(LedgerStatus, name="ledger_status", values_callable=_enum_values),
        nullable=False,
        default=LedgerStatus.COMPLETED,
    )
    executed_at = Column(DateTime, nullable=False, default=now_naive)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("units > 0", name="ck_ledger_units_positive"),
        CheckConstraint("unit_price > 0", name="ck_ledger_price_positive"),
        Index("ix_ledger_user_executed", "user_id", "executed_at"),
        Index("ix_ledger_user_product", "user_id", "product_id", "id"),
    )


def _persisted_status(target: LedgerRecordModel):
    history = inspect(target).attrs.status.history
    if history.deleted:
        return history.deleted[0]
    return target.status


@event.listens_for(LedgerRecordModel, "before_update")
def _refuse_completed_update(mapper, connection, target):
    if _persisted_status(target) == LedgerStatus.COMPLETED:
        raise LedgerImmutableError(
            f"Ledger record {target.id} is completed; append an offsetting record instead"
        )


@event.listens_for(LedgerRecordModel, "before_delete")
def _refuse_completed_delete(mapper, connection, target):
    if _persisted_status(target) == LedgerStatus.COMPLETED:
        raise LedgerImmutableError(f"Ledger record {target.id} is completed and cannot be deleted")

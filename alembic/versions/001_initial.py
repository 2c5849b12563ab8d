# alembic/versions/001_initial.py

"""Initial schema: account, position, ledger_record

Revision ID: 001
Revises:
Create Date: 2026-10-16
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


ORDER_SIDE = sa.Enum('buy', 'sell', name='order_side')
LEDGER_STATUS = sa.Enum('pending', 'completed', 'failed', 'cancelled', name='ledger_status')


def upgrade():
    op.create_table('account',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('wallet_balance', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('opening_balance', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('wallet_balance >= 0', name='ck_account_wallet_non_negative'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id')
    )
    op.create_index('ix_account_user_id', 'account', ['user_id'])

    op.create_table('position',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('product_id', sa.String(length=32), nullable=False),
        sa.Column('units', sa.Numeric(precision=18, scale=4), nullable=False),
        sa.Column('average_cost', sa.Numeric(precision=20, scale=8), nullable=False),
        sa.Column('invested_capital', sa.Numeric(precision=24, scale=8), nullable=False),
        sa.Column('last_updated', sa.DateTime(), nullable=False),
        sa.CheckConstraint('units > 0', name='ck_position_units_positive'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'product_id', name='uq_position_user_product')
    )
    op.create_index('ix_position_user_id', 'position', ['user_id'])

    op.create_table('ledger_record',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('product_id', sa.String(length=32), nullable=False),
        sa.Column('side', ORDER_SIDE, nullable=False),
        sa.Column('units', sa.Numeric(precision=18, scale=4), nullable=False),
        sa.Column('unit_price', sa.Numeric(precision=18, scale=4), nullable=False),
        sa.Column('fees', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('realized_return', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('balance_after', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('status', LEDGER_STATUS, nullable=False),
        sa.Column('executed_at', sa.DateTime(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.CheckConstraint('units > 0', name='ck_ledger_units_positive'),
        sa.CheckConstraint('unit_price > 0', name='ck_ledger_price_positive'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_ledger_user_executed', 'ledger_record', ['user_id', 'executed_at'])
    op.create_index('ix_ledger_user_product', 'ledger_record', ['user_id', 'product_id', 'id'])


def downgrade():
    op.drop_index('ix_ledger_user_product', table_name='ledger_record')
    op.drop_index('ix_ledger_user_executed', table_name='ledger_record')
    op.drop_table('ledger_record')
    op.drop_index('ix_position_user_id', table_name='position')
    op.drop_table('position')
    op.drop_index('ix_account_user_id', table_name='account')
    op.drop_table('account')
    ORDER_SIDE.drop(op.get_bind(), checkfirst=True)
    LEDGER_STATUS.drop(op.get_bind(), checkfirst=True)

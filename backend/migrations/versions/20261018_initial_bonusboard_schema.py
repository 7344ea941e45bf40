"""Initial schema: staff directory, synced sales, sales goals, cashier goals

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18

This migration adds:
1. users and user_stores (staff directory, manager store assignments)
2. sales, sale_items, sale_receipts (ledger synced from Dapic)
3. sales_goals (individual/team goals per store)
4. cashier_goals (payment-method share targets)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. STAFF DIRECTORY
    # ==========================================================================
    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('store_id', sa.String(length=32), nullable=True),
        sa.Column('bonus_percentage_achieved', sa.Numeric(precision=6, scale=2), nullable=True),
        sa.Column('bonus_percentage_not_achieved', sa.Numeric(precision=6, scale=2), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_users_role'), ['role'], unique=False)
        batch_op.create_index(batch_op.f('ix_users_store_id'), ['store_id'], unique=False)

    op.create_table('user_stores',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.String(length=32), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'store_id', name='uq_user_stores_user_store'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('user_stores', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_user_stores_user_id'), ['user_id'], unique=False)

    # ==========================================================================
    # 2. SYNCED SALES
    # ==========================================================================
    op.create_table('sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_code', sa.String(length=64), nullable=False),
        sa.Column('sale_date', sa.Date(), nullable=False),
        sa.Column('total_value', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('seller_name', sa.String(length=255), nullable=False),
        sa.Column('client_name', sa.String(length=255), nullable=True),
        sa.Column('store_id', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('payment_method', sa.String(length=128), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'sale_code', name='uq_sales_store_code'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sales', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_sales_sale_date'), ['sale_date'], unique=False)
        batch_op.create_index('ix_sales_store_date', ['store_id', 'sale_date'], unique=False)

    op.create_table('sale_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('product_code', sa.String(length=64), nullable=True),
        sa.Column('product_description', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Numeric(precision=12, scale=3), nullable=False),
        sa.Column('unit_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('total_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sale_items', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_sale_items_sale_id'), ['sale_id'], unique=False)

    op.create_table('sale_receipts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=64), nullable=False),
        sa.Column('gross_value', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('net_value', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sale_receipts', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_sale_receipts_sale_id'), ['sale_id'], unique=False)

    # ==========================================================================
    # 3. SALES GOALS
    # ==========================================================================
    op.create_table('sales_goals',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.String(length=32), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('period', sa.String(length=16), nullable=False),
        sa.Column('seller_id', sa.Integer(), nullable=True),
        sa.Column('week_start', sa.Date(), nullable=False),
        sa.Column('week_end', sa.Date(), nullable=False),
        sa.Column('target_value', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_by_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['seller_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['created_by_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sales_goals', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_sales_goals_seller_id'), ['seller_id'], unique=False)
        batch_op.create_index('ix_sales_goals_slot', ['store_id', 'type', 'period', 'is_active'], unique=False)

    # ==========================================================================
    # 4. CASHIER GOALS
    # ==========================================================================
    op.create_table('cashier_goals',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('cashier_id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.String(length=32), nullable=False),
        sa.Column('period_type', sa.String(length=16), nullable=False),
        sa.Column('week_start', sa.Date(), nullable=False),
        sa.Column('week_end', sa.Date(), nullable=False),
        sa.Column('payment_methods', sa.JSON(), nullable=False),
        sa.Column('target_percentage', sa.Numeric(precision=6, scale=2), nullable=False),
        sa.Column('bonus_percentage_achieved', sa.Numeric(precision=6, scale=2), nullable=False),
        sa.Column('bonus_percentage_not_achieved', sa.Numeric(precision=6, scale=2), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_by_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['cashier_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['created_by_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('cashier_goals', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_cashier_goals_cashier_id'), ['cashier_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_cashier_goals_store_id'), ['store_id'], unique=False)


def downgrade():
    op.drop_table('cashier_goals')
    op.drop_table('sales_goals')
    op.drop_table('sale_receipts')
    op.drop_table('sale_items')
    op.drop_table('sales')
    op.drop_table('user_stores')
    op.drop_table('users')

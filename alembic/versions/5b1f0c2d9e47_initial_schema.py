"""initial schema

Revision ID: 5b1f0c2d9e47
Revises:
Create Date: 2026-10-18 09:14:03.112874

Users, customers, quotes with their parts and line items, saved price
calculations and calculation templates.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5b1f0c2d9e47'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

QUOTE_STATUS = sa.Enum(
    'RFQ', 'DRAFT', 'SENT', 'ACCEPTED', 'REJECTED', 'DROPPED', 'EXPIRED',
    name='quotestatus',
)


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('password_hash', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )
    op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)

    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('company', sa.String(), nullable=True),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_customers_id'), 'customers', ['id'], unique=False)

    op.create_table(
        'quotes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('quote_number', sa.String(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('status', QUOTE_STATUS, nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('expiration_days', sa.Integer(), nullable=True),
        sa.Column('valid_until', sa.DateTime(), nullable=True),
        sa.Column('sent_at', sa.DateTime(), nullable=True),
        sa.Column('accepted_at', sa.DateTime(), nullable=True),
        sa.Column('expired_at', sa.DateTime(), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('subtotal', sa.Float(), nullable=True),
        sa.Column('total', sa.Float(), nullable=True),
        sa.Column('created_by_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.ForeignKeyConstraint(['created_by_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('quote_number'),
    )
    op.create_index(op.f('ix_quotes_id'), 'quotes', ['id'], unique=False)

    op.create_table(
        'quote_parts',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('quote_id', sa.Integer(), nullable=False),
        sa.Column('part_number', sa.String(), nullable=False),
        sa.Column('part_name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('material', sa.String(), nullable=True),
        sa.Column('finish', sa.String(), nullable=True),
        sa.Column('tolerance', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['quote_id'], ['quotes.id']),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'quote_line_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('quote_id', sa.Integer(), nullable=False),
        sa.Column('quote_part_id', sa.String(length=36), nullable=True),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Float(), nullable=False),
        sa.Column('total_price', sa.Float(), nullable=False),
        sa.Column('lead_time_days', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['quote_id'], ['quotes.id']),
        sa.ForeignKeyConstraint(['quote_part_id'], ['quote_parts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index(op.f('ix_quote_line_items_id'), 'quote_line_items', ['id'], unique=False)

    op.create_table(
        'quote_price_calculations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('quote_id', sa.Integer(), nullable=False),
        sa.Column('quote_part_id', sa.String(length=36), nullable=True),
        sa.Column('quote_line_item_id', sa.Integer(), nullable=True),
        sa.Column('toolpath_grand_total', sa.Float(), nullable=False),
        sa.Column('lead_time_option', sa.String(), nullable=False),
        sa.Column('lead_time_multiplier', sa.Float(), nullable=False),
        sa.Column('small_thread_count', sa.Integer(), nullable=False),
        sa.Column('small_thread_rate', sa.Float(), nullable=False),
        sa.Column('medium_thread_count', sa.Integer(), nullable=False),
        sa.Column('medium_thread_rate', sa.Float(), nullable=False),
        sa.Column('large_thread_count', sa.Integer(), nullable=False),
        sa.Column('large_thread_rate', sa.Float(), nullable=False),
        sa.Column('complexity_multiplier', sa.Float(), nullable=False),
        sa.Column('tolerance_multiplier', sa.Float(), nullable=False),
        sa.Column('tooling_enabled', sa.Boolean(), nullable=False),
        sa.Column('tooling_cost', sa.Float(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('total_thread_cost', sa.Float(), nullable=False),
        sa.Column('tooling_markup', sa.Float(), nullable=True),
        sa.Column('base_price', sa.Float(), nullable=False),
        sa.Column('adjusted_price', sa.Float(), nullable=False),
        sa.Column('final_price', sa.Float(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('calculated_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['quote_id'], ['quotes.id']),
        sa.ForeignKeyConstraint(['quote_part_id'], ['quote_parts.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['quote_line_item_id'], ['quote_line_items.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['calculated_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_quote_price_calculations_id'), 'quote_price_calculations', ['id'], unique=False)
    op.create_index(op.f('ix_quote_price_calculations_quote_id'), 'quote_price_calculations', ['quote_id'], unique=False)

    op.create_table(
        'quote_price_calculation_templates',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('lead_time_option', sa.String(), nullable=True),
        sa.Column('small_thread_count', sa.Integer(), nullable=True),
        sa.Column('medium_thread_count', sa.Integer(), nullable=True),
        sa.Column('large_thread_count', sa.Integer(), nullable=True),
        sa.Column('complexity_multiplier', sa.Float(), nullable=True),
        sa.Column('tolerance_multiplier', sa.Float(), nullable=True),
        sa.Column('is_global', sa.Boolean(), nullable=False),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['created_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_quote_price_calculation_templates_id'), 'quote_price_calculation_templates', ['id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_quote_price_calculation_templates_id'), table_name='quote_price_calculation_templates')
    op.drop_table('quote_price_calculation_templates')
    op.drop_index(op.f('ix_quote_price_calculations_quote_id'), table_name='quote_price_calculations')
    op.drop_index(op.f('ix_quote_price_calculations_id'), table_name='quote_price_calculations')
    op.drop_table('quote_price_calculations')
    op.drop_index(op.f('ix_quote_line_items_id'), table_name='quote_line_items')
    op.drop_table('quote_line_items')
    op.drop_table('quote_parts')
    op.drop_index(op.f('ix_quotes_id'), table_name='quotes')
    op.drop_table('quotes')
    op.drop_index(op.f('ix_customers_id'), table_name='customers')
    op.drop_table('customers')
    op.drop_index(op.f('ix_users_id'), table_name='users')
    op.drop_table('users')
    QUOTE_STATUS.drop(op.get_bind(), checkfirst=True)

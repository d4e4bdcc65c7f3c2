"""Create categories, products, product_history and bulk_operations tables.

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the catalog tables and their indexes."""
    # Categories table
    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('parent_id', sa.Integer(), sa.ForeignKey('categories.id'), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('created_by', sa.String(100), nullable=True),
    )
    op.create_index('ix_categories_parent_status', 'categories', ['parent_id', 'status'])
    # Active siblings never share a name; roots are grouped under parent 0
    op.create_index(
        'ux_categories_active_sibling_name',
        'categories',
        [sa.text('lower(name)'), sa.text('coalesce(parent_id, 0)')],
        unique=True,
        sqlite_where=sa.text("status = 'active'"),
        postgresql_where=sa.text("status = 'active'"),
    )

    # Products table
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Float(), nullable=False, server_default='0'),
        sa.Column('category_id', sa.Integer(), sa.ForeignKey('categories.id'), nullable=False),
        sa.Column('sku', sa.String(50), nullable=True),
        sa.Column('stock_quantity', sa.Integer(), nullable=False, server_default='-1'),
        sa.Column('image_url', sa.String(1000), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('created_by', sa.String(100), nullable=True),
    )
    op.create_index(
        'ix_products_category_status_order',
        'products',
        ['category_id', 'status', 'sort_order'],
    )
    # SKU lookups only ever target non-null SKUs
    op.create_index(
        'ix_products_sku',
        'products',
        ['sku'],
        sqlite_where=sa.text('sku IS NOT NULL'),
        postgresql_where=sa.text('sku IS NOT NULL'),
    )
    op.create_index(
        'ux_products_live_sku',
        'products',
        ['sku'],
        unique=True,
        sqlite_where=sa.text("sku IS NOT NULL AND status != 'archived'"),
        postgresql_where=sa.text("sku IS NOT NULL AND status != 'archived'"),
    )

    # History table
    op.create_table(
        'product_history',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('entity_type', sa.String(20), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(20), nullable=False),
        sa.Column('old_data', sa.Text(), nullable=True),
        sa.Column('new_data', sa.Text(), nullable=True),
        sa.Column('changed_by', sa.String(100), nullable=False),
        sa.Column('changed_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('batch_id', sa.String(64), nullable=True),
        sa.Column('reverted', sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index('ix_product_history_entity', 'product_history', ['entity_type', 'entity_id'])
    op.create_index('ix_product_history_batch', 'product_history', ['batch_id'])

    # Bulk operations table
    op.create_table(
        'bulk_operations',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('batch_id', sa.String(64), nullable=False, unique=True),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending_preview'),
        sa.Column('total_items', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('success_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('error_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('preview_data', sa.Text(), nullable=True),
        sa.Column('errors', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(100), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('committed_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_bulk_operations_status', 'bulk_operations', ['status'])


def downgrade() -> None:
    """Drop the catalog tables."""
    op.drop_index('ix_bulk_operations_status', table_name='bulk_operations')
    op.drop_table('bulk_operations')
    op.drop_index('ix_product_history_batch', table_name='product_history')
    op.drop_index('ix_product_history_entity', table_name='product_history')
    op.drop_table('product_history')
    op.drop_index('ux_products_live_sku', table_name='products')
    op.drop_index('ix_products_sku', table_name='products')
    op.drop_index('ix_products_category_status_order', table_name='products')
    op.drop_table('products')
    op.drop_index('ux_categories_active_sibling_name', table_name='categories')
    op.drop_index('ix_categories_parent_status', table_name='categories')
    op.drop_table('categories')

"""initial_schema

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-16 09:00:00.000000

Create the reconciliation schema:
- imported_files: ledger of export files, deduplicated by hash, name and transmission id
- staging_products / staging_stock: per-file snapshot of the export
- remote_products: local mirror of the storefront catalog
- link_issues: reconciliation findings, unique on (product_id, reason, code)
- kv_store: sweep watermark and other cursors
- remote_tasks: write-back queue (schema only)
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a1b2c3d4e5f6'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

IMPORT_STATUS = sa.Enum('PENDING', 'DONE', 'ERROR', name='importstatus')
REMOTE_TASK_STATUS = sa.Enum('PENDING', 'DONE', 'ERROR', name='remotetaskstatus')
LINK_ISSUE_REASON = sa.Enum(
    'missing_ean_src',
    'missing_in_shop_by_ean',
    'duplicate_ean_shop',
    'missing_in_magazine_by_ean',
    name='link_issue_reason',
)


def upgrade() -> None:
    """Create all tables."""

    # === imported_files ===
    op.create_table(
        'imported_files',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('filename', sa.String(512), nullable=False, unique=True),
        sa.Column('captured_at', sa.DateTime(), nullable=True),
        sa.Column('transmission_id', sa.String(128), nullable=True, unique=True),
        sa.Column('sha256', sa.String(64), nullable=False, unique=True),
        sa.Column('size_bytes', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('status', IMPORT_STATUS, nullable=False, server_default='PENDING'),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('received_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_imported_files_status', 'imported_files', ['status'])

    # === staging_products ===
    op.create_table(
        'staging_products',
        sa.Column('import_id', sa.Integer(), primary_key=True),
        sa.Column('product_id', sa.BigInteger(), primary_key=True),
        sa.Column('code', sa.String(128), nullable=False, server_default=''),
        sa.Column('name', sa.String(512), nullable=False, server_default=''),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('vat_id', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('category_id', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('group_id', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('unit_id', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('price_retail', sa.Float(), nullable=False, server_default='0'),
        sa.Column('price_wholesale', sa.Float(), nullable=False, server_default='0'),
        sa.Column('price_night', sa.Float(), nullable=False, server_default='0'),
        sa.Column('price_extra', sa.Float(), nullable=False, server_default='0'),
        sa.Column('price_retail_before_promo', sa.Float(), nullable=False, server_default='0'),
        sa.Column('lowest_price_30d', sa.Float(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('marked_for_deletion', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('last_update', sa.String(64), nullable=False, server_default=''),
        sa.Column('image_folder', sa.String(512), nullable=False, server_default=''),
        sa.Column('image_file', sa.String(512), nullable=False, server_default=''),
    )
    op.create_index('ix_staging_products_code', 'staging_products', ['code'])

    # === staging_stock ===
    op.create_table(
        'staging_stock',
        sa.Column('import_id', sa.Integer(), primary_key=True),
        sa.Column('product_id', sa.BigInteger(), primary_key=True),
        sa.Column('warehouse_id', sa.BigInteger(), primary_key=True),
        sa.Column('quantity', sa.Float(), nullable=False, server_default='0'),
        sa.Column('reserved', sa.Float(), nullable=False, server_default='0'),
    )

    # === remote_products ===
    op.create_table(
        'remote_products',
        sa.Column('remote_id', sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column('local_product_id', sa.BigInteger(), nullable=True),
        sa.Column('sku', sa.String(128), nullable=False, server_default=''),
        sa.Column('ean', sa.String(64), nullable=False, server_default=''),
        sa.Column('name', sa.String(512), nullable=False, server_default=''),
        sa.Column('price_regular', sa.Float(), nullable=False, server_default='0'),
        sa.Column('price_sale', sa.Float(), nullable=False, server_default='0'),
        sa.Column('price_wholesale', sa.Float(), nullable=False, server_default='0'),
        sa.Column('stock_quantity', sa.Float(), nullable=False, server_default='0'),
        sa.Column('stock_managed', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(32), nullable=False, server_default=''),
        sa.Column('product_type', sa.String(32), nullable=False, server_default=''),
        sa.Column('date_modified', sa.String(64), nullable=False, server_default=''),
        sa.Column('date_modified_at', sa.DateTime(), nullable=True),
        sa.Column('synced_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_remote_products_local_product_id', 'remote_products', ['local_product_id'])
    op.create_index('ix_remote_products_sku', 'remote_products', ['sku'])
    op.create_index('ix_remote_products_ean', 'remote_products', ['ean'])

    # === link_issues ===
    op.create_table(
        'link_issues',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('product_id', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('reason', LINK_ISSUE_REASON, nullable=False),
        sa.Column('code', sa.String(64), nullable=False, server_default=''),
        sa.Column('import_id', sa.Integer(), nullable=True),
        sa.Column('raw_code', sa.String(128), nullable=False, server_default=''),
        sa.Column('remote_ids', sa.Text(), nullable=False, server_default='[]'),
        sa.Column('details', sa.Text(), nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.UniqueConstraint('product_id', 'reason', 'code', name='uq_link_issue'),
    )
    op.create_index('ix_link_issues_reason', 'link_issues', ['reason'])
    op.create_index('ix_link_issues_import_id', 'link_issues', ['import_id'])

    # === kv_store ===
    op.create_table(
        'kv_store',
        sa.Column('key', sa.String(64), primary_key=True),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )

    # === remote_tasks (write-back queue, schema only) ===
    op.create_table(
        'remote_tasks',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('import_id', sa.Integer(), nullable=True),
        sa.Column('kind', sa.String(64), nullable=False),
        sa.Column('payload_json', sa.Text(), nullable=False, server_default='{}'),
        sa.Column('depends_on', sa.Integer(), nullable=True),
        sa.Column('status', REMOTE_TASK_STATUS, nullable=False, server_default='PENDING'),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_remote_tasks_status', 'remote_tasks', ['status'])
    op.create_index('ix_remote_tasks_import_id', 'remote_tasks', ['import_id'])
    op.create_index('ix_remote_tasks_kind', 'remote_tasks', ['kind'])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table('remote_tasks')
    op.drop_table('kv_store')
    op.drop_table('link_issues')
    op.drop_table('remote_products')
    op.drop_table('staging_stock')
    op.drop_table('staging_products')
    op.drop_table('imported_files')

"""Initial production ledger schema

Planning records (products, orders, stages, stage inputs), production
reports with their batch consumption rows, finished-goods stock and scrap
records. Stages, reports and stock rows carry a `version` column used for
optimistic locking.

Revision ID: 001_initial_ledger
Revises:
Create Date: 2026-03-02
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_initial_ledger'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('sku', sa.String(50), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('unit', sa.String(20), nullable=True, server_default='pcs'),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_products_sku', 'products', ['sku'], unique=True)

    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_number', sa.String(50), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Numeric(18, 4), nullable=False),
        sa.Column('deadline', sa.Date(), nullable=True),
        sa.Column('status', sa.String(50), nullable=False, server_default='new'),
        sa.Column('customer_name', sa.String(200), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], name='fk_orders_product'),
    )
    op.create_index('ix_orders_order_number', 'orders', ['order_number'], unique=True)
    op.create_index('ix_orders_product_id', 'orders', ['product_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])

    op.create_table(
        'stages',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('kind', sa.String(20), nullable=False, server_default='production'),
        sa.Column('status', sa.String(20), nullable=False, server_default='todo'),
        sa.Column('is_final_stage', sa.Boolean(), nullable=False, server_default=sa.false()),

        # Counters
        sa.Column('planned_quantity', sa.Numeric(18, 4), nullable=False, server_default='0'),
        sa.Column('completed_quantity', sa.Numeric(18, 4), nullable=False, server_default='0'),
        sa.Column('pending_quantity', sa.Numeric(18, 4), nullable=False, server_default='0'),
        sa.Column('scrap_quantity', sa.Numeric(18, 4), nullable=False, server_default='0'),
        sa.Column('adjusted_quantity', sa.Numeric(18, 4), nullable=False, server_default='0'),

        sa.Column('deadline', sa.Date(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], name='fk_stages_order', ondelete='CASCADE'),
    )
    op.create_index('ix_stages_order_id', 'stages', ['order_id'])
    op.create_index('ix_stages_status', 'stages', ['status'])

    op.create_table(
        'stage_inputs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('stage_id', sa.Integer(), nullable=False),
        sa.Column('source_stage_name', sa.String(200), nullable=False),
        sa.Column('ratio', sa.Numeric(18, 4), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['stage_id'], ['stages.id'], name='fk_stage_inputs_stage', ondelete='CASCADE'),
        sa.CheckConstraint('ratio > 0', name='ck_stage_inputs_ratio_positive'),
    )
    op.create_index('ix_stage_inputs_stage_id', 'stage_inputs', ['stage_id'])

    op.create_table(
        'production_reports',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('stage_id', sa.Integer(), nullable=True),
        sa.Column('worker_id', sa.String(100), nullable=False),
        sa.Column('report_date', sa.Date(), nullable=False),

        sa.Column('quantity', sa.Numeric(18, 4), nullable=False),
        sa.Column('scrap_quantity', sa.Numeric(18, 4), nullable=False, server_default='0'),
        sa.Column('used_quantity', sa.Numeric(18, 4), nullable=False, server_default='0'),
        sa.Column('supply_shortfall', sa.Numeric(18, 4), nullable=False, server_default='0'),
        sa.Column('notes', sa.Text(), nullable=True),

        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('kind', sa.String(30), nullable=False, server_default='production'),
        sa.Column('batch_code', sa.String(100), nullable=True),

        # Snapshots
        sa.Column('order_id', sa.Integer(), nullable=True),
        sa.Column('order_number', sa.String(50), nullable=True),
        sa.Column('stage_name', sa.String(200), nullable=True),
        sa.Column('task_title', sa.String(255), nullable=True),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('product_name', sa.String(255), nullable=True),

        sa.Column('decided_by', sa.String(100), nullable=True),
        sa.Column('decided_at', sa.DateTime(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['stage_id'], ['stages.id'], name='fk_production_reports_stage',
                                ondelete='SET NULL'),
    )
    op.create_index('ix_production_reports_stage_id', 'production_reports', ['stage_id'])
    op.create_index('ix_production_reports_worker_id', 'production_reports', ['worker_id'])
    op.create_index('ix_production_reports_report_date', 'production_reports', ['report_date'])
    op.create_index('ix_production_reports_status', 'production_reports', ['status'])
    op.create_index('ix_production_reports_batch_code', 'production_reports', ['batch_code'])
    op.create_index('ix_production_reports_order_id', 'production_reports', ['order_id'])
    op.create_index('ix_production_reports_stage_name', 'production_reports', ['stage_name'])
    op.create_index('ix_production_reports_created_at', 'production_reports', ['created_at'])

    op.create_table(
        'report_consumptions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('report_id', sa.Integer(), nullable=False),
        # Not a foreign key: a vanished upstream batch is detected at approval
        sa.Column('source_report_id', sa.Integer(), nullable=False),
        sa.Column('source_stage_name', sa.String(200), nullable=True),
        sa.Column('sequence', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('quantity', sa.Numeric(18, 4), nullable=False),
        sa.Column('quantity_debited', sa.Numeric(18, 4), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['report_id'], ['production_reports.id'],
                                name='fk_report_consumptions_report', ondelete='CASCADE'),
    )
    op.create_index('ix_report_consumptions_report_id', 'report_consumptions', ['report_id'])
    op.create_index('ix_report_consumptions_source_report_id', 'report_consumptions', ['source_report_id'])

    op.create_table(
        'finished_goods_stock',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Numeric(18, 4), nullable=False, server_default='0'),
        sa.Column('min_quantity', sa.Numeric(18, 4), nullable=False, server_default='0'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], name='fk_finished_goods_stock_product'),
    )
    op.create_index('ix_finished_goods_stock_product_id', 'finished_goods_stock', ['product_id'], unique=True)

    op.create_table(
        'scrap_records',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('product_name', sa.String(255), nullable=True),
        sa.Column('quantity', sa.Numeric(18, 4), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('stage_name', sa.String(200), nullable=True),
        sa.Column('worker_id', sa.String(100), nullable=True),
        sa.Column('report_id', sa.Integer(), nullable=True),
        sa.Column('source', sa.String(20), nullable=False, server_default='approval'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], name='fk_scrap_records_product'),
        sa.ForeignKeyConstraint(['report_id'], ['production_reports.id'],
                                name='fk_scrap_records_report', ondelete='SET NULL'),
    )
    op.create_index('ix_scrap_records_product_id', 'scrap_records', ['product_id'])
    op.create_index('ix_scrap_records_report_id', 'scrap_records', ['report_id'])
    op.create_index('ix_scrap_records_created_at', 'scrap_records', ['created_at'])


def downgrade() -> None:
    op.drop_table('scrap_records')
    op.drop_table('finished_goods_stock')
    op.drop_table('report_consumptions')
    op.drop_table('production_reports')
    op.drop_table('stage_inputs')
    op.drop_table('stages')
    op.drop_table('orders')
    op.drop_table('products')

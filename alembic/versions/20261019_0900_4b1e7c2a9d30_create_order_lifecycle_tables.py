"""create_order_lifecycle_tables

Revision ID: 4b1e7c2a9d30
Revises:
Create Date: 2026-10-19 09:00:00.000000+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4b1e7c2a9d30'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Catalog lookups
    for table in ('areas', 'methods', 'sample_types'):
        op.create_table(
            table,
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('code', sa.String(length=20), nullable=False),
            sa.Column('name', sa.String(length=100), nullable=False),
            sa.Column('is_active', sa.Boolean(), nullable=True, default=True),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('code')
        )

    op.create_table(
        'analyses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=20), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('area_id', sa.Integer(), nullable=True),
        sa.Column('method_id', sa.Integer(), nullable=True),
        sa.Column('sample_type_id', sa.Integer(), nullable=True),
        sa.Column('base_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True, default=True),
        sa.ForeignKeyConstraint(['area_id'], ['areas.id'], ),
        sa.ForeignKeyConstraint(['method_id'], ['methods.id'], ),
        sa.ForeignKeyConstraint(['sample_type_id'], ['sample_types.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_analyses_code', 'analyses', ['code'], unique=True)
    op.create_index('ix_analyses_area_id', 'analyses', ['area_id'], unique=False)

    op.create_table(
        'components',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=20), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('unit', sa.String(length=50), nullable=True),
        sa.Column('reference_text', sa.Text(), nullable=True),
        sa.Column('reference_min', sa.Float(), nullable=True),
        sa.Column('reference_max', sa.Float(), nullable=True),
        sa.Column('alert_min', sa.Float(), nullable=True),
        sa.Column('alert_max', sa.Float(), nullable=True),
        sa.Column('area_id', sa.Integer(), nullable=True),
        sa.Column('method_id', sa.Integer(), nullable=True),
        sa.Column('position', sa.Integer(), nullable=True, default=0),
        sa.Column('is_active', sa.Boolean(), nullable=True, default=True),
        sa.ForeignKeyConstraint(['area_id'], ['areas.id'], ),
        sa.ForeignKeyConstraint(['method_id'], ['methods.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_components_code', 'components', ['code'], unique=True)

    op.create_table(
        'analysis_components',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('analysis_id', sa.Integer(), nullable=False),
        sa.Column('component_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=True, default=0),
        sa.ForeignKeyConstraint(['analysis_id'], ['analyses.id'], ),
        sa.ForeignKeyConstraint(['component_id'], ['components.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('analysis_id', 'component_id', name='uq_analysis_component')
    )
    op.create_index('idx_analysis_component', 'analysis_components', ['analysis_id', 'component_id'], unique=False)

    # Orders and results
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('attention_number', sa.Integer(), nullable=False),
        sa.Column('state', sa.String(length=20), nullable=False),
        sa.Column('patient_ref', sa.Integer(), nullable=False),
        sa.Column('site_ref', sa.Integer(), nullable=False),
        sa.Column('client_ref', sa.Integer(), nullable=True),
        sa.Column('agreement_ref', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('registered_at', sa.DateTime(), nullable=False),
        sa.Column('registered_by', sa.String(length=100), nullable=True),
        sa.Column('sample_received_at', sa.DateTime(), nullable=True),
        sa.Column('sample_received_by', sa.String(length=100), nullable=True),
        sa.Column('results_at', sa.DateTime(), nullable=True),
        sa.Column('results_by', sa.String(length=100), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('approved_by', sa.String(length=100), nullable=True),
        sa.Column('printed_at', sa.DateTime(), nullable=True),
        sa.Column('printed_by', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_orders_attention_number', 'orders', ['attention_number'], unique=True)
    op.create_index('ix_orders_patient_ref', 'orders', ['patient_ref'], unique=False)
    op.create_index('idx_order_state', 'orders', ['state'], unique=False)
    op.create_index('idx_order_state_approved', 'orders', ['state', 'approved_at'], unique=False)

    op.create_table(
        'order_analyses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('analysis_id', sa.Integer(), nullable=False),
        sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.ForeignKeyConstraint(['analysis_id'], ['analyses.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_order_analysis', 'order_analyses', ['order_id', 'analysis_id'], unique=False)

    op.create_table(
        'order_analysis_components',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_analysis_id', sa.Integer(), nullable=False),
        sa.Column('component_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=True, default=0),
        sa.ForeignKeyConstraint(['order_analysis_id'], ['order_analyses.id'], ),
        sa.ForeignKeyConstraint(['component_id'], ['components.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_analysis_id', 'component_id', name='uq_order_analysis_component')
    )

    op.create_table(
        'component_results',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_analysis_id', sa.Integer(), nullable=False),
        sa.Column('component_id', sa.Integer(), nullable=False),
        sa.Column('value', sa.String(length=500), nullable=False),
        sa.Column('observations', sa.Text(), nullable=True),
        sa.Column('unit', sa.String(length=50), nullable=True),
        sa.Column('reference_text', sa.Text(), nullable=True),
        sa.Column('alert_min', sa.Float(), nullable=True),
        sa.Column('alert_max', sa.Float(), nullable=True),
        sa.Column('method_name', sa.String(length=100), nullable=True),
        sa.Column('entered_by', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
        sa.ForeignKeyConstraint(['order_analysis_id'], ['order_analyses.id'], ),
        sa.ForeignKeyConstraint(['component_id'], ['components.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_analysis_id', 'component_id', name='uq_component_result')
    )

    # Audit trail
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('timestamp', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
        sa.Column('user_id', sa.String(length=100), nullable=False),
        sa.Column('user_email', sa.String(length=255), nullable=True),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('resource_type', sa.String(length=50), nullable=False),
        sa.Column('resource_id', sa.String(length=100), nullable=True),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('success', sa.Boolean(), nullable=False),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_audit_timestamp', 'audit_logs', ['timestamp'], unique=False)
    op.create_index('idx_audit_user_id', 'audit_logs', ['user_id'], unique=False)
    op.create_index('idx_audit_resource', 'audit_logs', ['resource_type', 'resource_id'], unique=False)
    op.create_index('idx_audit_action', 'audit_logs', ['action'], unique=False)


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('component_results')
    op.drop_table('order_analysis_components')
    op.drop_table('order_analyses')
    op.drop_table('orders')
    op.drop_table('analysis_components')
    op.drop_table('components')
    op.drop_table('analyses')
    op.drop_table('sample_types')
    op.drop_table('methods')
    op.drop_table('areas')

"""add per-job repair log

Revision ID: 0002_repair_log
Revises: 0001_initial
Create Date: 2026-10-18
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0002_repair_log'
down_revision = '0001_initial'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('repair_log_entries',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('job_id', sa.Integer(), sa.ForeignKey('jobs.id', ondelete='CASCADE'), nullable=False),
        sa.Column('technician', sa.String(length=128), nullable=False),
        sa.Column('technician_role', sa.String(length=16), nullable=False, server_default='internal'),
        sa.Column('action', sa.String(length=255), nullable=False),
        sa.Column('notes', sa.Text()),
        sa.Column('duration_minutes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cost_cents', sa.Integer()),
        sa.Column('reassigned_from', sa.String(length=128)),
        sa.Column('created_by', sa.Integer()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_repair_log_entries_job_id', 'repair_log_entries', ['job_id'])


def downgrade():
    op.drop_index('ix_repair_log_entries_job_id', table_name='repair_log_entries')
    op.drop_table('repair_log_entries')

"""initial repairdesk schema

Revision ID: 0001_initial
Revises: 
Create Date: 2026-10-18
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(*names):
    return [sa.Column(n, sa.DateTime(timezone=True), server_default=sa.func.now()) for n in names]


def upgrade():
    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('email', sa.String(length=128), nullable=False, unique=True),
        sa.Column('phone', sa.String(length=32)),
        sa.Column('company', sa.String(length=128)),
        sa.Column('specialties', sa.JSON()),
        sa.Column('role', sa.String(length=32), nullable=False, server_default='technician'),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        *_timestamps('created_at', 'updated_at'),
    )
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('actor_user_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('entity', sa.String(length=64)),
        sa.Column('entity_id', sa.String(length=64)),
        sa.Column('perms_snapshot', sa.JSON()),
        sa.Column('meta', sa.JSON()),
        *_timestamps('created_at'),
    )
    op.create_index('ix_audit_logs_actor_user_id', 'audit_logs', ['actor_user_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])

    op.create_table('customers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('email', sa.String(length=128)),
        sa.Column('phone', sa.String(length=32)),
        sa.Column('location', sa.String(length=128)),
        sa.Column('created_by', sa.Integer(), nullable=False),
        *_timestamps('created_at', 'updated_at'),
    )
    op.create_index('ix_customers_name', 'customers', ['name'])
    op.create_index('ix_customers_email', 'customers', ['email'])

    op.create_table('jobs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('reference', sa.String(length=32), unique=True),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id', ondelete='SET NULL')),
        sa.Column('customer_name', sa.String(length=128), nullable=False),
        sa.Column('customer_email', sa.String(length=128)),
        sa.Column('customer_phone', sa.String(length=32)),
        sa.Column('device', sa.String(length=128), nullable=False),
        sa.Column('serial_number', sa.String(length=64)),
        sa.Column('issue', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='received'),
        sa.Column('priority', sa.String(length=16), nullable=False, server_default='medium'),
        sa.Column('due_date', sa.Date()),
        sa.Column('assigned_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('assigned_to', sa.String(length=128)),
        sa.Column('external_cost_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('has_notification', sa.Boolean(), server_default=sa.text('0')),
        sa.Column('notes', sa.Text()),
        sa.Column('created_by', sa.Integer(), nullable=False),
        *_timestamps('created_at', 'updated_at'),
    )
    for col in ('reference', 'customer_id', 'customer_name', 'status', 'priority', 'assigned_user_id'):
        op.create_index(f'ix_jobs_{col}', 'jobs', [col])

    op.create_table('inventory_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('sku', sa.String(length=64), nullable=False, unique=True),
        sa.Column('name', sa.String(length=150), nullable=False),
        sa.Column('category', sa.String(length=80), nullable=False, server_default=''),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('supplier', sa.String(length=128)),
        sa.Column('last_ordered', sa.Date()),
        sa.Column('created_by', sa.Integer(), nullable=False),
        *_timestamps('created_at', 'updated_at'),
    )
    for col in ('sku', 'name', 'category'):
        op.create_index(f'ix_inventory_items_{col}', 'inventory_items', [col])

    op.create_table('inventory_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('action', sa.String(length=16), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('item_name', sa.String(length=150), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('user', sa.String(length=128)),
        sa.Column('notes', sa.Text(), nullable=False, server_default=''),
        sa.Column('job_id', sa.Integer()),
        sa.Column('customer_name', sa.String(length=128)),
        *_timestamps('created_at'),
    )
    for col in ('action', 'item_id', 'job_id', 'created_at'):
        op.create_index(f'ix_inventory_logs_{col}', 'inventory_logs', [col])

    op.create_table('job_parts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('job_id', sa.Integer(), sa.ForeignKey('jobs.id', ondelete='CASCADE'), nullable=False),
        sa.Column('item_id', sa.Integer(), sa.ForeignKey('inventory_items.id', ondelete='CASCADE'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps('updated_at'),
        sa.UniqueConstraint('job_id', 'item_id', name='uq_job_part'),
    )
    op.create_index('ix_job_parts_job_id', 'job_parts', ['job_id'])
    op.create_index('ix_job_parts_item_id', 'job_parts', ['item_id'])

    op.create_table('part_usages',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('part_name', sa.String(length=150), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('job_id', sa.Integer(), nullable=False),
        sa.Column('customer_name', sa.String(length=128), nullable=False, server_default=''),
        sa.Column('date_used', sa.Date(), nullable=False),
        sa.Column('technician_id', sa.Integer()),
        sa.Column('technician_name', sa.String(length=128)),
        *_timestamps('created_at'),
    )
    for col in ('item_id', 'job_id', 'technician_id'):
        op.create_index(f'ix_part_usages_{col}', 'part_usages', [col])

    op.create_table('invoices',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('invoice_number', sa.String(length=32), nullable=False, unique=True),
        sa.Column('job_id', sa.Integer(), sa.ForeignKey('jobs.id', ondelete='SET NULL')),
        sa.Column('sender', sa.JSON()),
        sa.Column('recipient', sa.JSON()),
        sa.Column('recipient_name', sa.String(length=128), nullable=False, server_default=''),
        sa.Column('recipient_email', sa.String(length=128)),
        sa.Column('amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='draft'),
        sa.Column('issue_date', sa.Date(), nullable=False),
        sa.Column('due_date', sa.Date()),
        sa.Column('created_by', sa.Integer(), nullable=False),
        *_timestamps('updated_at'),
    )
    for col in ('invoice_number', 'job_id', 'recipient_name', 'status'):
        op.create_index(f'ix_invoices_{col}', 'invoices', [col])

    op.create_table('invoice_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('invoice_id', sa.Integer(), sa.ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('rate_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('amount_cents', sa.Integer(), nullable=False, server_default='0'),
    )
    op.create_index('ix_invoice_items_invoice_id', 'invoice_items', ['invoice_id'])

    op.create_table('contacts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('email', sa.String(length=128)),
        sa.Column('phone', sa.String(length=32)),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id', ondelete='SET NULL')),
        *_timestamps('updated_at'),
    )
    op.create_index('ix_contacts_name', 'contacts', ['name'])

    op.create_table('messages',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('contact_id', sa.Integer(), sa.ForeignKey('contacts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('sender', sa.String(length=32), nullable=False),
        sa.Column('recipient', sa.String(length=32), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('subject', sa.String(length=255)),
        sa.Column('attachments', sa.JSON()),
        sa.Column('is_email', sa.Boolean(), server_default=sa.text('0')),
        sa.Column('read', sa.Boolean(), server_default=sa.text('0')),
        *_timestamps('timestamp'),
    )
    op.create_index('ix_messages_contact_id', 'messages', ['contact_id'])
    op.create_index('ix_messages_timestamp', 'messages', ['timestamp'])

    op.create_table('kv_entries',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('namespace', sa.String(length=64), nullable=False),
        sa.Column('key', sa.String(length=128), nullable=False),
        sa.Column('value', sa.Text(), nullable=False),
        *_timestamps('updated_at'),
        sa.UniqueConstraint('namespace', 'key', name='uq_kv_namespace_key'),
    )
    op.create_index('ix_kv_entries_namespace', 'kv_entries', ['namespace'])

    op.create_table('notifications',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('recipient', sa.String(length=128), nullable=False),
        sa.Column('subject', sa.String(length=255), nullable=False),
        sa.Column('body', sa.Text(), nullable=False, server_default=''),
        sa.Column('job_id', sa.Integer()),
        sa.Column('invoice_id', sa.Integer()),
        sa.Column('attachments', sa.JSON()),
        *_timestamps('created_at'),
    )
    for col in ('recipient', 'job_id', 'invoice_id'):
        op.create_index(f'ix_notifications_{col}', 'notifications', [col])


def downgrade():
    for table in (
        'notifications', 'kv_entries', 'messages', 'contacts', 'invoice_items', 'invoices',
        'part_usages', 'job_parts', 'inventory_logs', 'inventory_items', 'jobs', 'customers',
        'audit_logs', 'users',
    ):
        op.drop_table(table)

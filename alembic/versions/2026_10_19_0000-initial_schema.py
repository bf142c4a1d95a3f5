"""initial_schema

Revision ID: initial_schema_2026
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'initial_schema_2026'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _base_columns() -> list:
    return [
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('users',
        sa.Column('email', sa.String(), nullable=False, comment='Login email, also the default linked Gmail account'),
        sa.Column('name', sa.String(), nullable=True, comment='Optional display name'),
        *_base_columns(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
    op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)

    op.create_table('imported_transactions',
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('message_id', sa.String(length=100), nullable=False, comment='Gmail message ID'),
        sa.Column('thread_id', sa.String(length=100), nullable=True),
        sa.Column('merchant_name', sa.String(length=200), nullable=True, comment='Normalized merchant/counterparty name'),
        sa.Column('amount_minor', sa.Integer(), nullable=False, comment='Positive amount in minor units'),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('transaction_date', sa.Date(), nullable=False),
        sa.Column('payment_mode', sa.String(length=20), nullable=False, comment='UPI, Card, BankTransfer or Other'),
        sa.Column('direction', sa.String(length=10), nullable=False, comment='debit or credit'),
        sa.Column('category', sa.String(length=50), nullable=False),
        sa.Column('confidence_score', sa.Float(), nullable=False),
        sa.Column('needs_review', sa.Boolean(), nullable=False),
        sa.Column('review_reason', sa.String(length=200), nullable=True),
        sa.Column('is_duplicate', sa.Boolean(), nullable=False),
        sa.Column('is_processed', sa.Boolean(), nullable=False, comment='True once approved, rejected or auto-posted'),
        sa.Column('reference_id', sa.String(length=100), nullable=True, comment='UPI ref / RRN / bank reference'),
        sa.Column('account_mask', sa.String(length=20), nullable=True),
        sa.Column('dedupe_hash', sa.String(length=64), nullable=False),
        sa.Column('source_platform', sa.String(length=100), nullable=False),
        sa.Column('email_subject', sa.String(length=500), nullable=True),
        sa.Column('raw_extracted_data', sa.JSON(), nullable=True),
        sa.Column('ledger_entry_id', sa.Integer(), nullable=True, comment='Expense or Income ID once posted'),
        *_base_columns(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'message_id', name='uq_imported_transactions_user_message'),
    )
    op.create_index(op.f('ix_imported_transactions_id'), 'imported_transactions', ['id'], unique=False)
    op.create_index(op.f('ix_imported_transactions_user_id'), 'imported_transactions', ['user_id'], unique=False)
    op.create_index(op.f('ix_imported_transactions_reference_id'), 'imported_transactions', ['reference_id'], unique=False)
    op.create_index(op.f('ix_imported_transactions_dedupe_hash'), 'imported_transactions', ['dedupe_hash'], unique=False)
    op.create_index('idx_imported_transactions_user_date', 'imported_transactions', ['user_id', 'transaction_date'], unique=False)
    op.create_index('idx_imported_transactions_review', 'imported_transactions', ['user_id', 'needs_review', 'is_processed'], unique=False)

    op.create_table('expenses',
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('amount_minor', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('entry_date', sa.Date(), nullable=False),
        sa.Column('vendor', sa.String(), nullable=True),
        sa.Column('note', sa.String(), nullable=True),
        sa.Column('category', sa.String(length=50), nullable=False),
        sa.Column('payment_mode', sa.String(length=20), nullable=False),
        sa.Column('source_transaction_id', sa.Integer(), nullable=False),
        *_base_columns(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['source_transaction_id'], ['imported_transactions.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('source_transaction_id'),
    )
    op.create_index(op.f('ix_expenses_id'), 'expenses', ['id'], unique=False)
    op.create_index(op.f('ix_expenses_user_id'), 'expenses', ['user_id'], unique=False)
    op.create_index('idx_expenses_user_date', 'expenses', ['user_id', 'entry_date'], unique=False)
    op.create_index('idx_expenses_vendor', 'expenses', ['vendor'], unique=False)

    op.create_table('incomes',
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('amount_minor', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('entry_date', sa.Date(), nullable=False),
        sa.Column('source', sa.String(), nullable=True, comment='Payer or counterparty'),
        sa.Column('note', sa.String(), nullable=True),
        sa.Column('payment_mode', sa.String(length=20), nullable=False),
        sa.Column('source_transaction_id', sa.Integer(), nullable=False),
        *_base_columns(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['source_transaction_id'], ['imported_transactions.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('source_transaction_id'),
    )
    op.create_index(op.f('ix_incomes_id'), 'incomes', ['id'], unique=False)
    op.create_index(op.f('ix_incomes_user_id'), 'incomes', ['user_id'], unique=False)
    op.create_index('idx_incomes_user_date', 'incomes', ['user_id', 'entry_date'], unique=False)

    op.create_table('sync_settings',
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('is_enabled', sa.Boolean(), nullable=False),
        sa.Column('auto_sync_enabled', sa.Boolean(), nullable=False),
        sa.Column('linked_account', sa.String(length=255), nullable=True, comment='Connected mailbox address'),
        sa.Column('last_sync_at', sa.DateTime(timezone=True), nullable=True, comment='Last successful run'),
        sa.Column('last_auto_sync_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sync_status', sa.String(length=20), nullable=False),
        sa.Column('total_synced_count', sa.Integer(), nullable=False),
        sa.Column('scan_inbox', sa.Boolean(), nullable=False),
        sa.Column('scan_promotions', sa.Boolean(), nullable=False),
        sa.Column('scan_updates', sa.Boolean(), nullable=False),
        sa.Column('scan_social', sa.Boolean(), nullable=False),
        sa.Column('scan_spam', sa.Boolean(), nullable=False),
        sa.Column('scan_trash', sa.Boolean(), nullable=False),
        sa.Column('sync_frequency_minutes', sa.Integer(), nullable=False),
        sa.Column('scan_days', sa.Integer(), nullable=False),
        sa.Column('scan_mode', sa.String(length=10), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        *_base_columns(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id'),
    )
    op.create_index(op.f('ix_sync_settings_id'), 'sync_settings', ['id'], unique=False)

    op.create_table('sync_history',
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('sync_type', sa.String(length=10), nullable=False, comment='manual or auto'),
        sa.Column('status', sa.String(length=20), nullable=False, comment='completed, partial or failed'),
        sa.Column('emails_scanned', sa.Integer(), nullable=False),
        sa.Column('transactions_found', sa.Integer(), nullable=False),
        sa.Column('duplicates_detected', sa.Integer(), nullable=False),
        sa.Column('imported_count', sa.Integer(), nullable=False),
        sa.Column('queued_for_review', sa.Integer(), nullable=False),
        sa.Column('sync_duration_ms', sa.Integer(), nullable=False),
        sa.Column('error_message', sa.Text(), nullable=True),
        *_base_columns(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_sync_history_id'), 'sync_history', ['id'], unique=False)
    op.create_index(op.f('ix_sync_history_user_id'), 'sync_history', ['user_id'], unique=False)
    op.create_index('idx_sync_history_user_created', 'sync_history', ['user_id', 'created_at'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('sync_history')
    op.drop_table('sync_settings')
    op.drop_table('incomes')
    op.drop_table('expenses')
    op.drop_table('imported_transactions')
    op.drop_table('users')

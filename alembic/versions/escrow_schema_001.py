"""Create the creator marketplace escrow schema

This migration creates:
1. users
2. contracts and contract_audit_logs
3. brand_payment_methods, transactions and job_payments
4. creator_balances
5. bank_accounts and withdrawals
6. ledger_entries
7. reviews
8. notifications

Revision ID: escrow_schema_001
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = 'escrow_schema_001'
down_revision = None
branch_labels = None
depends_on = None


MONEY = sa.Numeric(12, 2)

user_type = sa.Enum('brand', 'creator', 'admin', name='usertype')
contract_status = sa.Enum('pending', 'active', 'completed', 'cancelled', 'disputed', name='contractstatusdb')
workflow_status = sa.Enum('active', 'waiting_review', 'payment_available', 'payment_withdrawn', name='workflowstatusdb')
job_payment_status = sa.Enum('pending', 'paid', 'refunded', name='jobpaymentstatusdb')
transaction_status = sa.Enum('paid', 'processing', 'refunded', 'failed', name='transactionstatusdb')
ledger_entry_type = sa.Enum('charge', 'release', 'withdraw', 'withdraw_reversal', 'refund', name='ledgerentrytypedb')
withdrawal_status = sa.Enum('pending', 'processing', 'completed', 'failed', 'cancelled', name='withdrawalstatusdb')
notification_type = sa.Enum(
    'contract_started', 'contract_completed', 'contract_cancelled', 'review_required',
    'new_review', 'payment_available', 'payment_refunded', 'dispute_opened',
    'dispute_resolved', 'withdrawal_completed', 'withdrawal_rejected', 'system',
    name='notificationtypedb',
)


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
    ]


def upgrade():
    # 1. Users
    op.create_table('users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255)),
        sa.Column('user_type', user_type, server_default='brand'),
        sa.Column('stripe_customer_id', sa.String(255), unique=True),
        sa.Column('stripe_payment_method_id', sa.String(255)),
        *_timestamps(),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # 2. Contracts
    op.create_table('contracts',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('brand_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('creator_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('title', sa.String(255)),
        sa.Column('description', sa.Text),
        sa.Column('budget', MONEY, nullable=False),
        sa.Column('platform_fee', MONEY),
        sa.Column('creator_amount', MONEY),
        sa.Column('status', contract_status, nullable=False, server_default='pending'),
        sa.Column('workflow_status', workflow_status, nullable=True),
        sa.Column('cancellation_reason', sa.Text),
        sa.Column('started_at', sa.DateTime),
        sa.Column('completed_at', sa.DateTime),
        sa.Column('cancelled_at', sa.DateTime),
        *_timestamps(),
    )
    op.create_index('ix_contracts_brand_id', 'contracts', ['brand_id'])
    op.create_index('ix_contracts_creator_id', 'contracts', ['creator_id'])

    op.create_table('contract_audit_logs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('contract_id', sa.String(36), sa.ForeignKey('contracts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('details', sa.JSON),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index('ix_contract_audit_logs_contract_id', 'contract_audit_logs', ['contract_id'])

    # 3. Payments
    op.create_table('brand_payment_methods',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('gateway_payment_method_id', sa.String(255), nullable=False),
        sa.Column('card_brand', sa.String(30)),
        sa.Column('card_last4', sa.String(4)),
        sa.Column('is_default', sa.Boolean, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index('ix_brand_payment_methods_user_id', 'brand_payment_methods', ['user_id'])

    op.create_table('transactions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('contract_id', sa.String(36), sa.ForeignKey('contracts.id'), nullable=True),
        sa.Column('gateway_payment_intent_id', sa.String(255), unique=True),
        sa.Column('gateway_charge_id', sa.String(255)),
        sa.Column('status', transaction_status, server_default='paid'),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('currency', sa.String(3), server_default='brl'),
        sa.Column('payment_method', sa.String(30), server_default='stripe'),
        sa.Column('payment_data', sa.JSON),
        sa.Column('paid_at', sa.DateTime),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index('ix_transactions_contract_id', 'transactions', ['contract_id'])

    op.create_table('job_payments',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('contract_id', sa.String(36), sa.ForeignKey('contracts.id'), unique=True, nullable=False),
        sa.Column('brand_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('creator_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('transaction_id', sa.String(36), sa.ForeignKey('transactions.id'), nullable=True),
        sa.Column('total_amount', MONEY, nullable=False),
        sa.Column('platform_fee', MONEY, nullable=False),
        sa.Column('creator_amount', MONEY, nullable=False),
        sa.Column('payment_method', sa.String(30), server_default='stripe_escrow'),
        sa.Column('gateway_payment_intent_id', sa.String(255)),
        sa.Column('status', job_payment_status, nullable=False, server_default='pending'),
        sa.Column('paid_at', sa.DateTime),
        sa.Column('released_at', sa.DateTime),
        sa.Column('refunded_at', sa.DateTime),
        sa.Column('refund_reason', sa.Text),
        *_timestamps(),
    )

    # 4. Creator balances
    op.create_table('creator_balances',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('creator_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), unique=True, nullable=False),
        sa.Column('available_balance', MONEY, nullable=False, server_default='0'),
        sa.Column('pending_balance', MONEY, nullable=False, server_default='0'),
        sa.Column('total_earned', MONEY, nullable=False, server_default='0'),
        sa.Column('total_withdrawn', MONEY, nullable=False, server_default='0'),
        *_timestamps(),
    )

    # 5. Withdrawals
    op.create_table('bank_accounts',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), unique=True, nullable=False),
        sa.Column('bank_code', sa.String(10)),
        sa.Column('agencia', sa.String(10)),
        sa.Column('agencia_dv', sa.String(2)),
        sa.Column('conta', sa.String(20)),
        sa.Column('conta_dv', sa.String(2)),
        sa.Column('cpf', sa.String(14)),
        sa.Column('name', sa.String(255)),
        *_timestamps(),
    )

    op.create_table('withdrawals',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('creator_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('withdrawal_method', sa.String(50), nullable=False, server_default='bank_transfer'),
        sa.Column('withdrawal_details', sa.JSON),
        sa.Column('status', withdrawal_status, nullable=False, server_default='pending'),
        sa.Column('transaction_id', sa.String(255)),
        sa.Column('failure_reason', sa.Text),
        sa.Column('processed_at', sa.DateTime),
        *_timestamps(),
    )
    op.create_index('ix_withdrawals_creator_id', 'withdrawals', ['creator_id'])

    # 6. Ledger
    op.create_table('ledger_entries',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('creator_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('entry_type', ledger_entry_type, nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('pending_delta', MONEY, nullable=False, server_default='0'),
        sa.Column('available_delta', MONEY, nullable=False, server_default='0'),
        sa.Column('withdrawn_delta', MONEY, nullable=False, server_default='0'),
        sa.Column('earned_delta', MONEY, nullable=False, server_default='0'),
        sa.Column('contract_id', sa.String(36), sa.ForeignKey('contracts.id'), nullable=True),
        sa.Column('job_payment_id', sa.String(36), sa.ForeignKey('job_payments.id'), nullable=True),
        sa.Column('withdrawal_id', sa.String(36), sa.ForeignKey('withdrawals.id'), nullable=True),
        sa.Column('description', sa.Text),
        sa.Column('created_by', sa.String(36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index('ix_ledger_entries_creator_id', 'ledger_entries', ['creator_id'])
    op.create_index('ix_ledger_entries_contract_id', 'ledger_entries', ['contract_id'])

    # 7. Reviews
    op.create_table('reviews',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('contract_id', sa.String(36), sa.ForeignKey('contracts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('reviewer_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('reviewed_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('rating', sa.Integer, nullable=False),
        sa.Column('comment', sa.Text),
        sa.Column('rating_categories', sa.JSON),
        sa.Column('is_public', sa.Boolean, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.UniqueConstraint('contract_id', 'reviewer_id', name='uq_review_contract_reviewer'),
    )

    # 8. Notifications
    op.create_table('notifications',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', notification_type, nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('message', sa.Text),
        sa.Column('action_url', sa.String(500)),
        sa.Column('data', sa.JSON),
        sa.Column('is_read', sa.Boolean, server_default=sa.false()),
        sa.Column('read_at', sa.DateTime),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
    )


def downgrade():
    for table in (
        'notifications', 'reviews', 'ledger_entries', 'withdrawals', 'bank_accounts',
        'creator_balances', 'job_payments', 'transactions', 'brand_payment_methods',
        'contract_audit_logs', 'contracts', 'users',
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum in (
        notification_type, withdrawal_status, ledger_entry_type, transaction_status,
        job_payment_status, workflow_status, contract_status, user_type,
    ):
        enum.drop(bind, checkfirst=True)

# Marketplace Database Models
# Contracts, escrow payments, the creator balance ledger, reviews and payouts.
# Import these in addition to the base models in database/models.py

from sqlalchemy import (
    Column, String, Integer, DateTime, ForeignKey, Text, JSON, Enum, Boolean,
    Numeric, UniqueConstraint,
)
from sqlalchemy.orm import relationship, validates
from sqlalchemy.sql import func
import enum

# Use the same Base from existing models
from database.models import Base, generate_uuid


MONEY = Numeric(12, 2)


def _enum(enum_cls, name):
    return Enum(enum_cls, values_callable=lambda x: [e.value for e in x], name=name)


# ============================================================================
# ENUMS
# ============================================================================

class ContractStatusDB(str, enum.Enum):
    PENDING = "pending"        # Created, waiting for the brand to fund it
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DISPUTED = "disputed"


class WorkflowStatusDB(str, enum.Enum):
    ACTIVE = "active"
    WAITING_REVIEW = "waiting_review"
    PAYMENT_AVAILABLE = "payment_available"
    PAYMENT_WITHDRAWN = "payment_withdrawn"


class JobPaymentStatusDB(str, enum.Enum):
    PENDING = "pending"    # Held in escrow
    PAID = "paid"          # Released to the creator
    REFUNDED = "refunded"


class TransactionStatusDB(str, enum.Enum):
    PAID = "paid"
    PROCESSING = "processing"
    REFUNDED = "refunded"
    FAILED = "failed"


class LedgerEntryTypeDB(str, enum.Enum):
    CHARGE = "charge"
    RELEASE = "release"
    WITHDRAW = "withdraw"
    WITHDRAW_REVERSAL = "withdraw_reversal"
    REFUND = "refund"


class WithdrawalStatusDB(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class DisputeResolution(str, enum.Enum):
    COMPLETE = "complete"
    CANCEL = "cancel"
    REFUND = "refund"


class DisputeWinner(str, enum.Enum):
    BRAND = "brand"
    CREATOR = "creator"
    PLATFORM = "platform"


class NotificationTypeDB(str, enum.Enum):
    CONTRACT_STARTED = "contract_started"
    CONTRACT_COMPLETED = "contract_completed"
    CONTRACT_CANCELLED = "contract_cancelled"
    REVIEW_REQUIRED = "review_required"
    NEW_REVIEW = "new_review"
    PAYMENT_AVAILABLE = "payment_available"
    PAYMENT_REFUNDED = "payment_refunded"
    DISPUTE_OPENED = "dispute_opened"
    DISPUTE_RESOLVED = "dispute_resolved"
    WITHDRAWAL_COMPLETED = "withdrawal_completed"
    WITHDRAWAL_REJECTED = "withdrawal_rejected"
    SYSTEM = "system"


# ============================================================================
# CONTRACT
# ============================================================================

class Contract(Base):
    """Agreement between a brand and a creator, funded through escrow."""
    __tablename__ = "contracts"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    brand_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    creator_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    title = Column(String(255))
    description = Column(Text)

    budget = Column(MONEY, nullable=False)
    platform_fee = Column(MONEY)
    creator_amount = Column(MONEY)

    status = Column(_enum(ContractStatusDB, "contractstatusdb"), default=ContractStatusDB.PENDING, nullable=False)
    workflow_status = Column(_enum(WorkflowStatusDB, "workflowstatusdb"), nullable=True)

    cancellation_reason = Column(Text)

    # Timeline
    started_at = Column(DateTime)
    completed_at = Column(DateTime)
    cancelled_at = Column(DateTime)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    brand = relationship("User", foreign_keys=[brand_id], backref="brand_contracts")
    creator = relationship("User", foreign_keys=[creator_id], backref="creator_contracts")
    payment = relationship("JobPayment", back_populates="contract", uselist=False)
    reviews = relationship("Review", back_populates="contract", cascade="all, delete-orphan")
    audit_logs = relationship("ContractAuditLog", back_populates="contract", cascade="all, delete-orphan")

    @validates("budget")
    def _guard_budget(self, key, value):
        # Budget is frozen once the contract has been funded
        if self.budget is not None and self.status not in (None, ContractStatusDB.PENDING):
            if value != self.budget:
                raise ValueError("Contract budget cannot change after activation")
        return value

    def is_party(self, user_id: str) -> bool:
        return user_id in (self.brand_id, self.creator_id)


class ContractAuditLog(Base):
    """Append-only trail of contract transitions and admin overrides."""
    __tablename__ = "contract_audit_logs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    contract_id = Column(String(36), ForeignKey("contracts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    action = Column(String(50), nullable=False)
    details = Column(JSON)
    created_at = Column(DateTime, server_default=func.now())

    contract = relationship("Contract", back_populates="audit_logs")


# ============================================================================
# PAYMENTS
# ============================================================================

class BrandPaymentMethod(Base):
    """Cards saved by brands on the payment gateway."""
    __tablename__ = "brand_payment_methods"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    gateway_payment_method_id = Column(String(255), nullable=False)
    card_brand = Column(String(30))
    card_last4 = Column(String(4))
    is_default = Column(Boolean, default=False)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="payment_methods")


class Transaction(Base):
    """Gateway charge record; one per JobPayment."""
    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    contract_id = Column(String(36), ForeignKey("contracts.id"), nullable=True, index=True)
    gateway_payment_intent_id = Column(String(255), unique=True)
    gateway_charge_id = Column(String(255))
    status = Column(_enum(TransactionStatusDB, "transactionstatusdb"), default=TransactionStatusDB.PAID)
    amount = Column(MONEY, nullable=False)
    currency = Column(String(3), default="brl")
    payment_method = Column(String(30), default="stripe")
    payment_data = Column(JSON)
    paid_at = Column(DateTime)
    created_at = Column(DateTime, server_default=func.now())


class JobPayment(Base):
    """Escrowed payment for a contract, split into platform fee and creator amount."""
    __tablename__ = "job_payments"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    contract_id = Column(String(36), ForeignKey("contracts.id"), unique=True, nullable=False)
    brand_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    creator_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    transaction_id = Column(String(36), ForeignKey("transactions.id"), nullable=True)

    total_amount = Column(MONEY, nullable=False)
    platform_fee = Column(MONEY, nullable=False)
    creator_amount = Column(MONEY, nullable=False)

    payment_method = Column(String(30), default="stripe_escrow")
    gateway_payment_intent_id = Column(String(255))
    status = Column(_enum(JobPaymentStatusDB, "jobpaymentstatusdb"), default=JobPaymentStatusDB.PENDING, nullable=False)

    paid_at = Column(DateTime)
    released_at = Column(DateTime)
    refunded_at = Column(DateTime)
    refund_reason = Column(Text)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    contract = relationship("Contract", back_populates="payment")
    transaction = relationship("Transaction")


# ============================================================================
# CREATOR BALANCE LEDGER
# ============================================================================

class CreatorBalance(Base):
    """Per-creator balance projection, maintained only by the ledger writer."""
    __tablename__ = "creator_balances"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    creator_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)

    available_balance = Column(MONEY, default=0, nullable=False)
    pending_balance = Column(MONEY, default=0, nullable=False)
    total_earned = Column(MONEY, default=0, nullable=False)
    total_withdrawn = Column(MONEY, default=0, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    creator = relationship("User", backref="creator_balance")


class LedgerEntry(Base):
    """Signed movement between balance buckets. Rows are never updated."""
    __tablename__ = "ledger_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    creator_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    entry_type = Column(_enum(LedgerEntryTypeDB, "ledgerentrytypedb"), nullable=False)
    amount = Column(MONEY, nullable=False)

    pending_delta = Column(MONEY, default=0, nullable=False)
    available_delta = Column(MONEY, default=0, nullable=False)
    withdrawn_delta = Column(MONEY, default=0, nullable=False)
    earned_delta = Column(MONEY, default=0, nullable=False)

    contract_id = Column(String(36), ForeignKey("contracts.id"), nullable=True, index=True)
    job_payment_id = Column(String(36), ForeignKey("job_payments.id"), nullable=True)
    withdrawal_id = Column(String(36), ForeignKey("withdrawals.id"), nullable=True)

    description = Column(Text)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


# ============================================================================
# REVIEW
# ============================================================================

class Review(Base):
    """Review left by one contract party about the other."""
    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint("contract_id", "reviewer_id", name="uq_review_contract_reviewer"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    contract_id = Column(String(36), ForeignKey("contracts.id", ondelete="CASCADE"), nullable=False)
    reviewer_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    reviewed_id = Column(String(36), ForeignKey("users.id"), nullable=False)

    rating = Column(Integer, nullable=False)  # 1-5
    comment = Column(Text)
    rating_categories = Column(JSON)  # communication, quality, timeliness, professionalism
    is_public = Column(Boolean, default=True)

    created_at = Column(DateTime, server_default=func.now())

    # Relationships
    contract = relationship("Contract", back_populates="reviews")
    reviewer = relationship("User", foreign_keys=[reviewer_id], backref="given_reviews")
    reviewed = relationship("User", foreign_keys=[reviewed_id], backref="received_reviews")


# ============================================================================
# WITHDRAWALS
# ============================================================================

class BankAccount(Base):
    """Creator's current bank account for payouts."""
    __tablename__ = "bank_accounts"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)

    bank_code = Column(String(10))
    agencia = Column(String(10))
    agencia_dv = Column(String(2))
    conta = Column(String(20))
    conta_dv = Column(String(2))
    cpf = Column(String(14))
    name = Column(String(255))

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="bank_account")


class Withdrawal(Base):
    """Creator request to move available balance out of the platform."""
    __tablename__ = "withdrawals"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    creator_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    amount = Column(MONEY, nullable=False)
    withdrawal_method = Column(String(50), nullable=False, default="bank_transfer")
    withdrawal_details = Column(JSON)  # Bank details captured at request time

    status = Column(_enum(WithdrawalStatusDB, "withdrawalstatusdb"), default=WithdrawalStatusDB.PENDING, nullable=False)
    transaction_id = Column(String(255))
    failure_reason = Column(Text)
    processed_at = Column(DateTime)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    creator = relationship("User", backref="withdrawals")


# ============================================================================
# NOTIFICATION
# ============================================================================

class Notification(Base):
    """User notifications."""
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    type = Column(_enum(NotificationTypeDB, "notificationtypedb"), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text)
    action_url = Column(String(500))
    data = Column(JSON)  # Additional context (contract_id, amount, etc.)

    is_read = Column(Boolean, default=False)
    read_at = Column(DateTime)

    created_at = Column(DateTime, server_default=func.now())

    # Relationships
    user = relationship("User", backref="notifications")

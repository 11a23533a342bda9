# Pydantic Schemas for the Creator Marketplace
# Request and response bodies for the escrow workflow API

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime, date
from decimal import Decimal

from database.marketplace_models import (
    ContractStatusDB, WorkflowStatusDB, JobPaymentStatusDB,
    LedgerEntryTypeDB, WithdrawalStatusDB, DisputeResolution, DisputeWinner,
)


# ============================================================================
# PAYMENT METHOD SCHEMAS
# ============================================================================

class PaymentMethodCreate(BaseModel):
    """Card tokenized on the client, identified by its gateway id."""
    payment_method_id: str = Field(..., min_length=3, max_length=255)
    make_default: bool = True


class PaymentMethodResponse(BaseModel):
    id: str
    gateway_payment_method_id: str
    card_brand: Optional[str] = None
    card_last4: Optional[str] = None
    is_default: bool = False
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ============================================================================
# CONTRACT SCHEMAS
# ============================================================================

class ContractPayRequest(BaseModel):
    """Pay with a saved card; falls back to the brand's default card."""
    payment_method_id: Optional[str] = None


class ContractCancelRequest(BaseModel):
    reason: str = Field(..., min_length=3, max_length=1000)


class ContractDisputeRequest(BaseModel):
    reason: str = Field(..., min_length=10, max_length=2000)


class JobPaymentResponse(BaseModel):
    id: str
    contract_id: str
    total_amount: Decimal
    platform_fee: Decimal
    creator_amount: Decimal
    payment_method: Optional[str] = None
    status: JobPaymentStatusDB
    paid_at: Optional[datetime] = None
    released_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ContractResponse(BaseModel):
    id: str
    brand_id: str
    creator_id: str
    title: Optional[str] = None
    budget: Decimal
    platform_fee: Optional[Decimal] = None
    creator_amount: Optional[Decimal] = None
    status: ContractStatusDB
    workflow_status: Optional[WorkflowStatusDB] = None
    cancellation_reason: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    # Included when fetching a single contract
    payment: Optional[JobPaymentResponse] = None
    brand_reviewed: Optional[bool] = None
    creator_reviewed: Optional[bool] = None
    has_both_reviews: Optional[bool] = None

    class Config:
        from_attributes = True


class AuditLogResponse(BaseModel):
    id: str
    contract_id: str
    user_id: Optional[str] = None
    action: str
    details: Optional[dict] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ============================================================================
# REVIEW SCHEMAS
# ============================================================================

class RatingCategories(BaseModel):
    communication: Optional[int] = Field(None, ge=1, le=5)
    quality: Optional[int] = Field(None, ge=1, le=5)
    timeliness: Optional[int] = Field(None, ge=1, le=5)
    professionalism: Optional[int] = Field(None, ge=1, le=5)


class ReviewCreate(BaseModel):
    """Schema for creating a review."""
    contract_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=1000)
    rating_categories: Optional[RatingCategories] = None
    is_public: bool = True

    @field_validator("comment")
    @classmethod
    def strip_comment(cls, v):
        if v is not None:
            v = v.strip()
        return v or None


class ReviewResponse(BaseModel):
    """Schema for review response."""
    id: str
    contract_id: str
    reviewer_id: str
    reviewed_id: str
    rating: int
    comment: Optional[str] = None
    rating_categories: Optional[dict] = None
    is_public: bool = True
    created_at: Optional[datetime] = None

    # Included when fetching
    reviewer_name: Optional[str] = None

    class Config:
        from_attributes = True


class UserReviewsResponse(BaseModel):
    reviews: List[ReviewResponse]
    average_rating: Optional[float] = None
    pagination: dict


# ============================================================================
# BALANCE SCHEMAS
# ============================================================================

class BalanceResponse(BaseModel):
    creator_id: str
    available_balance: Decimal
    pending_balance: Decimal
    total_earned: Decimal
    total_withdrawn: Decimal

    class Config:
        from_attributes = True


class LedgerEntryResponse(BaseModel):
    id: int
    entry_type: LedgerEntryTypeDB
    amount: Decimal
    pending_delta: Decimal
    available_delta: Decimal
    withdrawn_delta: Decimal
    earned_delta: Decimal
    contract_id: Optional[str] = None
    withdrawal_id: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WithdrawalCreate(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    withdrawal_method: str = Field("bank_transfer", max_length=50)
    withdrawal_details: Optional[dict] = None


class WithdrawalResponse(BaseModel):
    id: str
    creator_id: str
    amount: Decimal
    withdrawal_method: str
    withdrawal_details: Optional[dict] = None
    status: WithdrawalStatusDB
    transaction_id: Optional[str] = None
    failure_reason: Optional[str] = None
    processed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ============================================================================
# ADMIN SCHEMAS
# ============================================================================

class DisputeResolveRequest(BaseModel):
    """Schema for resolving a dispute (admin only)."""
    resolution: DisputeResolution
    winner: DisputeWinner
    reason: str = Field(..., min_length=10, max_length=2000)


class WithdrawalApproveRequest(BaseModel):
    transaction_id: str = Field(..., min_length=1, max_length=255)


class WithdrawalRejectRequest(BaseModel):
    reason: str = Field(..., min_length=3, max_length=1000)


class PayoutReportFilters(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[WithdrawalStatusDB] = None
    withdrawal_method: Optional[str] = None

# Schemas module for the Creator Marketplace
# Organizes all Pydantic schemas in a modular structure

from schemas.marketplace import (
    # Payment method schemas
    PaymentMethodCreate,
    PaymentMethodResponse,

    # Contract schemas
    ContractPayRequest,
    ContractCancelRequest,
    ContractDisputeRequest,
    JobPaymentResponse,
    ContractResponse,
    AuditLogResponse,

    # Review schemas
    RatingCategories,
    ReviewCreate,
    ReviewResponse,
    UserReviewsResponse,

    # Balance schemas
    BalanceResponse,
    LedgerEntryResponse,
    WithdrawalCreate,
    WithdrawalResponse,

    # Admin schemas
    DisputeResolveRequest,
    WithdrawalApproveRequest,
    WithdrawalRejectRequest,
    PayoutReportFilters,
)

# Services Module for the Creator Marketplace
# Contains the escrow workflow business logic

from services.notification_service import NotificationService
from services.audit_service import ContractAuditService
from services.ledger_service import LedgerService
from services.payment_service import ContractPaymentService, calculate_split
from services.contract_service import ContractService
from services.review_service import ReviewService
from services.dispute_service import DisputeService
from services.withdrawal_service import WithdrawalService
from services.payout_verification_service import PayoutVerificationService

__all__ = [
    'NotificationService',
    'ContractAuditService',
    'LedgerService',
    'ContractPaymentService',
    'calculate_split',
    'ContractService',
    'ReviewService',
    'DisputeService',
    'WithdrawalService',
    'PayoutVerificationService',
]

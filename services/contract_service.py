# Contract Service
# Lifecycle operations on funded contracts: complete, cancel, dispute and payout progress

from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import List, Optional
import logging

from core.exceptions import BusinessRuleError, NotFoundError, PermissionDeniedError
from core.stripe_service import StripeService
from database.models import User, UserType
from database.marketplace_models import (
    Contract, ContractStatusDB, WorkflowStatusDB, JobPayment,
    Withdrawal, WithdrawalStatusDB,
)
from services.audit_service import ContractAuditService
from services.contract_states import apply_transition, can_transition
from services.ledger_service import to_money
from services.notification_service import NotificationService
from services.payment_service import ContractPaymentService

logger = logging.getLogger(__name__)


class ContractService:
    def __init__(self, db: Session, gateway: Optional[StripeService] = None):
        self.db = db
        self.gateway = gateway
        self.audit = ContractAuditService(db)
        self.notifications = NotificationService(db)

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def get_contract(self, contract_id: str, lock: bool = False) -> Contract:
        query = self.db.query(Contract).filter(Contract.id == contract_id)
        if lock:
            query = query.with_for_update().populate_existing()
        contract = query.first()
        if not contract:
            raise NotFoundError("Contract not found")
        return contract

    def get_contract_for_party(self, contract_id: str, user: User, lock: bool = False) -> Contract:
        """Load a contract the user takes part in; admins may load any."""
        contract = self.get_contract(contract_id, lock=lock)
        if not user.is_admin and not contract.is_party(user.id):
            raise PermissionDeniedError("You are not a party to this contract")
        return contract

    def review_flags(self, contract: Contract) -> dict:
        reviewer_ids = {r.reviewer_id for r in contract.reviews}
        return {
            "brand_reviewed": contract.brand_id in reviewer_ids,
            "creator_reviewed": contract.creator_id in reviewer_ids,
            "has_both_reviews": {contract.brand_id, contract.creator_id} <= reviewer_ids,
        }

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    def complete(self, contract_id: str, user: User) -> Contract:
        """Brand (or admin) accepts the work; the contract waits for both reviews."""
        contract = self.get_contract_for_party(contract_id, user, lock=True)
        if not user.is_admin and user.id != contract.brand_id:
            raise PermissionDeniedError("Only the brand can mark this contract as complete")

        apply_transition(contract, "complete")
        self.stamp_split(contract)

        self.audit.log(contract, "completed", {"workflow_status": contract.workflow_status.value}, user_id=user.id)
        self.notifications.notify_contract_completed(contract)
        self.db.commit()
        self.db.refresh(contract)
        return contract

    def cancel(self, contract_id: str, user: User, reason: str) -> Contract:
        """Cancel an active contract and refund the brand's escrowed payment."""
        contract = self.get_contract_for_party(contract_id, user, lock=True)
        if not user.is_admin and user.id != contract.brand_id:
            raise PermissionDeniedError("Only the brand can cancel this contract")
        if not can_transition(contract, "cancel"):
            raise BusinessRuleError(f"Cannot cancel a contract that is {contract.status.value}")

        self.refund_payment(contract, reason, user)
        apply_transition(contract, "cancel")
        contract.cancellation_reason = reason

        self.audit.log(contract, "cancelled", {"reason": reason}, user_id=user.id)
        self.notifications.notify_contract_cancelled(contract, reason)
        self.db.commit()
        self.db.refresh(contract)
        return contract

    def dispute(self, contract_id: str, user: User, reason: str) -> Contract:
        """Either party freezes the contract until an admin resolves it."""
        contract = self.get_contract_for_party(contract_id, user, lock=True)
        if not contract.is_party(user.id):
            raise PermissionDeniedError("Only contract parties can open a dispute")

        previous = {"status": contract.status.value, "workflow_status": contract.workflow_status.value if contract.workflow_status else None}
        apply_transition(contract, "dispute")

        self.audit.log(contract, "disputed", {"reason": reason, "previous": previous}, user_id=user.id)
        admin_ids = [uid for (uid,) in self.db.query(User.id).filter(User.user_type == UserType.ADMIN).all()]
        self.notifications.notify_dispute_opened(contract, admin_ids, raised_by=user.id, reason=reason)
        self.db.commit()
        self.db.refresh(contract)
        return contract

    def mark_payment_available(self, contract: Contract, user_id: Optional[str] = None) -> Contract:
        """Review Gate hook: flush only, the review transaction commits."""
        apply_transition(contract, "release_payment")
        self.audit.log(contract, "payment_available", {}, user_id=user_id)
        return contract

    def mark_payments_withdrawn(self, creator_id: str, user_id: Optional[str] = None) -> List[Contract]:
        """
        Advance the creator's payment_available contracts to payment_withdrawn,
        oldest completion first, for as long as completed withdrawals cover them.
        """
        withdrawn_total = to_money(
            self.db.query(func.coalesce(func.sum(Withdrawal.amount), 0))
            .filter(Withdrawal.creator_id == creator_id, Withdrawal.status == WithdrawalStatusDB.COMPLETED)
            .scalar()
        )
        already_covered = to_money(
            self.db.query(func.coalesce(func.sum(Contract.creator_amount), 0))
            .filter(
                Contract.creator_id == creator_id,
                Contract.status == ContractStatusDB.COMPLETED,
                Contract.workflow_status == WorkflowStatusDB.PAYMENT_WITHDRAWN,
            )
            .scalar()
        )
        remaining = withdrawn_total - already_covered

        candidates = (
            self.db.query(Contract)
            .filter(
                Contract.creator_id == creator_id,
                Contract.status == ContractStatusDB.COMPLETED,
                Contract.workflow_status == WorkflowStatusDB.PAYMENT_AVAILABLE,
            )
            .order_by(Contract.completed_at.asc(), Contract.created_at.asc())
            .all()
        )

        advanced = []
        for contract in candidates:
            amount = to_money(contract.creator_amount)
            if amount > remaining:
                break
            apply_transition(contract, "mark_withdrawn")
            self.audit.log(contract, "payment_withdrawn", {"creator_amount": str(amount)}, user_id=user_id)
            remaining -= amount
            advanced.append(contract)

        if advanced:
            logger.info(f"Marked {len(advanced)} contract(s) payment_withdrawn for creator {creator_id}")
        return advanced

    # =========================================================================
    # HELPERS
    # =========================================================================

    def stamp_split(self, contract: Contract) -> None:
        payment = contract.payment
        if payment is None:
            raise BusinessRuleError("Contract has no payment on record")
        contract.platform_fee = payment.platform_fee
        contract.creator_amount = payment.creator_amount

    def refund_payment(self, contract: Contract, reason: str, actor: User) -> Optional[JobPayment]:
        if self.gateway is None:
            raise RuntimeError("Refunds need a payment gateway")
        return ContractPaymentService(self.db, self.gateway).refund_contract_payment(contract, reason, actor)

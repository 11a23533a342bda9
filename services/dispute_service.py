# Dispute Resolution Service
# Admin overrides for disputed contracts, routed through the ledger and audit trail

from sqlalchemy.orm import Session
from typing import List, Tuple
import logging

from core.exceptions import BusinessRuleError
from core.stripe_service import StripeService
from database.models import User
from database.marketplace_models import Contract, ContractStatusDB, DisputeResolution, DisputeWinner
from services.contract_service import ContractService
from services.contract_states import apply_transition

logger = logging.getLogger(__name__)


# (resolution, winner) -> outcome; "*" matches any winner
OUTCOMES = {
    (DisputeResolution.COMPLETE, "*"): "complete",
    (DisputeResolution.CANCEL, "*"): "cancel",
    (DisputeResolution.REFUND, DisputeWinner.CREATOR): "cancel",
    (DisputeResolution.REFUND, DisputeWinner.BRAND): "complete",
    (DisputeResolution.REFUND, DisputeWinner.PLATFORM): "cancel",
}


def outcome_for(resolution: DisputeResolution, winner: DisputeWinner) -> str:
    return OUTCOMES.get((resolution, winner)) or OUTCOMES[(resolution, "*")]


class DisputeService:
    def __init__(self, db: Session, gateway: StripeService):
        self.db = db
        self.gateway = gateway
        self.contracts = ContractService(db, gateway)

    def list_disputed_contracts(self, page: int = 1, limit: int = 20) -> Tuple[List[Contract], int]:
        query = (
            self.db.query(Contract)
            .filter(Contract.status == ContractStatusDB.DISPUTED)
            .order_by(Contract.updated_at.desc())
        )
        total = query.count()
        return query.offset((page - 1) * limit).limit(limit).all(), total

    def resolve(self, contract_id: str, resolution: DisputeResolution, winner: DisputeWinner, reason: str, admin: User) -> Contract:
        """
        Apply an admin decision to a disputed contract.

        "complete" sends the contract back to waiting_review; "cancel" cancels
        it and refunds the brand with a compensating ledger entry.
        """
        resolution = DisputeResolution(resolution)
        winner = DisputeWinner(winner)

        contract = self.contracts.get_contract(contract_id, lock=True)
        if contract.status != ContractStatusDB.DISPUTED:
            raise BusinessRuleError("Only disputed contracts can be resolved")

        outcome = outcome_for(resolution, winner)
        previous = {
            "status": contract.status.value,
            "workflow_status": contract.workflow_status.value if contract.workflow_status else None,
        }

        try:
            refunded = None
            if outcome == "complete":
                apply_transition(contract, "resolve_complete")
                self.contracts.stamp_split(contract)
            else:
                refunded = self.contracts.refund_payment(contract, f"Dispute resolved: {reason}", admin)
                apply_transition(contract, "resolve_cancel")
                contract.cancellation_reason = reason

            self.contracts.audit.log(contract, "dispute_resolved", {
                "resolution": resolution.value,
                "winner": winner.value,
                "reason": reason,
                "outcome": outcome,
                "previous": previous,
                "refunded_amount": str(refunded.total_amount) if refunded else None,
            }, user_id=admin.id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Admin {admin.id} resolved dispute on contract {contract.id}: "
            f"{resolution.value} in favor of {winner.value} -> {contract.status.value}"
        )

        # Notifications are best effort once the resolution is committed
        try:
            self.contracts.notifications.notify_dispute_resolved(contract, resolution.value, winner.value, reason)
            if refunded:
                self.contracts.notifications.notify_payment_refunded(contract, refunded.total_amount)
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.error(f"Failed to notify parties about dispute resolution on contract {contract.id}", exc_info=True)

        self.db.refresh(contract)
        return contract

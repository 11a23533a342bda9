# Notification Service for the Creator Marketplace
# Records notifications for contract and payment workflow events

from sqlalchemy.orm import Session
from typing import Optional, List
from decimal import Decimal
import logging

from database.marketplace_models import Notification, NotificationTypeDB

logger = logging.getLogger(__name__)


def _money(amount) -> str:
    return f"R$ {Decimal(amount):,.2f}"


class NotificationService:
    """
    Service for creating user notifications.
    Notifications are flushed with the caller's transaction, never committed here.
    """

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        user_id: str,
        type: NotificationTypeDB,
        title: str,
        message: str,
        action_url: Optional[str] = None,
        data: Optional[dict] = None,
    ) -> Notification:
        """
        Create a new notification for a user.

        Args:
            user_id: The user to notify
            type: Notification type
            title: Short notification title
            message: Full notification message
            action_url: Optional URL for the notification action
            data: Optional additional data as JSON

        Returns:
            The created Notification object
        """
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            action_url=action_url,
            data=data or {},
        )
        self.db.add(notification)
        self.db.flush()  # Get the ID without committing
        return notification

    def create_batch(
        self,
        user_ids: List[str],
        type: NotificationTypeDB,
        title: str,
        message: str,
        action_url: Optional[str] = None,
        data: Optional[dict] = None,
    ) -> List[Notification]:
        """Create the same notification for multiple users."""
        return [
            self.create(
                user_id=user_id,
                type=type,
                title=title,
                message=message,
                action_url=action_url,
                data=data,
            )
            for user_id in user_ids
        ]

    # =========================================================================
    # CONTRACT NOTIFICATION HELPERS
    # =========================================================================

    def notify_contract_started(self, contract):
        """Tell both parties that the contract is funded and running."""
        return self.create_batch(
            user_ids=[contract.brand_id, contract.creator_id],
            type=NotificationTypeDB.CONTRACT_STARTED,
            title="Contract started",
            message=f"Contract \"{contract.title or contract.id}\" is funded and active.",
            action_url=f"/contracts/{contract.id}",
            data={"contract_id": contract.id, "budget": str(contract.budget)},
        )

    def notify_contract_completed(self, contract):
        """Ask both parties for their reviews once work is complete."""
        self.create(
            user_id=contract.creator_id,
            type=NotificationTypeDB.CONTRACT_COMPLETED,
            title="Contract completed",
            message="The brand marked your work as complete. Leave a review to unlock your payment.",
            action_url=f"/contracts/{contract.id}",
            data={"contract_id": contract.id},
        )
        return self.create(
            user_id=contract.brand_id,
            type=NotificationTypeDB.REVIEW_REQUIRED,
            title="Review required",
            message="Please review the creator so the payment can be released.",
            action_url=f"/contracts/{contract.id}",
            data={"contract_id": contract.id},
        )

    def notify_contract_cancelled(self, contract, reason: Optional[str] = None):
        return self.create_batch(
            user_ids=[contract.brand_id, contract.creator_id],
            type=NotificationTypeDB.CONTRACT_CANCELLED,
            title="Contract cancelled",
            message=f"Contract \"{contract.title or contract.id}\" was cancelled." + (f" Reason: {reason}" if reason else ""),
            action_url=f"/contracts/{contract.id}",
            data={"contract_id": contract.id, "reason": reason},
        )

    def notify_new_review(self, review):
        return self.create(
            user_id=review.reviewed_id,
            type=NotificationTypeDB.NEW_REVIEW,
            title="New review",
            message=f"You received a {review.rating}-star review.",
            action_url=f"/contracts/{review.contract_id}",
            data={"contract_id": review.contract_id, "review_id": review.id, "rating": review.rating},
        )

    # =========================================================================
    # PAYMENT NOTIFICATION HELPERS
    # =========================================================================

    def notify_payment_available(self, contract, amount):
        return self.create(
            user_id=contract.creator_id,
            type=NotificationTypeDB.PAYMENT_AVAILABLE,
            title="Payment available",
            message=f"{_money(amount)} is now available for withdrawal.",
            action_url="/balance",
            data={"contract_id": contract.id, "amount": str(amount)},
        )

    def notify_payment_refunded(self, contract, amount):
        return self.create_batch(
            user_ids=[contract.brand_id, contract.creator_id],
            type=NotificationTypeDB.PAYMENT_REFUNDED,
            title="Payment refunded",
            message=f"The payment of {_money(amount)} for this contract was refunded to the brand.",
            action_url=f"/contracts/{contract.id}",
            data={"contract_id": contract.id, "amount": str(amount)},
        )

    def notify_withdrawal_status(self, withdrawal, completed: bool, reason: Optional[str] = None):
        if completed:
            return self.create(
                user_id=withdrawal.creator_id,
                type=NotificationTypeDB.WITHDRAWAL_COMPLETED,
                title="Withdrawal completed",
                message=f"Your withdrawal of {_money(withdrawal.amount)} was processed.",
                action_url="/balance",
                data={"withdrawal_id": withdrawal.id, "transaction_id": withdrawal.transaction_id},
            )
        return self.create(
            user_id=withdrawal.creator_id,
            type=NotificationTypeDB.WITHDRAWAL_REJECTED,
            title="Withdrawal rejected",
            message=f"Your withdrawal of {_money(withdrawal.amount)} was rejected and the amount returned to your balance.",
            action_url="/balance",
            data={"withdrawal_id": withdrawal.id, "reason": reason},
        )

    # =========================================================================
    # DISPUTE NOTIFICATION HELPERS
    # =========================================================================

    def notify_dispute_opened(self, contract, admin_ids: List[str], raised_by: str, reason: Optional[str]):
        other_party = contract.creator_id if raised_by == contract.brand_id else contract.brand_id
        return self.create_batch(
            user_ids=[other_party, *admin_ids],
            type=NotificationTypeDB.DISPUTE_OPENED,
            title="Dispute opened",
            message=f"A dispute was opened on contract \"{contract.title or contract.id}\".",
            action_url=f"/contracts/{contract.id}",
            data={"contract_id": contract.id, "raised_by": raised_by, "reason": reason},
        )

    def notify_dispute_resolved(self, contract, resolution: str, winner: str, reason: str):
        return self.create_batch(
            user_ids=[contract.brand_id, contract.creator_id],
            type=NotificationTypeDB.DISPUTE_RESOLVED,
            title="Dispute resolved",
            message=f"An administrator resolved the dispute ({resolution}, in favor of {winner}).",
            action_url=f"/contracts/{contract.id}",
            data={
                "contract_id": contract.id,
                "resolution": resolution,
                "winner": winner,
                "reason": reason,
            },
        )

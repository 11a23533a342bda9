# Review Service
# Mutual reviews on completed contracts; the second review releases escrow

from sqlalchemy.orm import Session
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from datetime import datetime
from typing import List, Optional, Tuple
import logging

from core.exceptions import BusinessRuleError, NotFoundError, PermissionDeniedError
from database.models import User
from database.marketplace_models import (
    Contract, ContractStatusDB, WorkflowStatusDB,
    JobPayment, JobPaymentStatusDB, Review,
)
from services.audit_service import ContractAuditService
from services.contract_service import ContractService
from services.ledger_service import LedgerService
from services.notification_service import NotificationService

logger = logging.getLogger(__name__)


def has_both_reviews(contract: Contract) -> bool:
    reviewer_ids = {review.reviewer_id for review in contract.reviews}
    return contract.brand_id in reviewer_ids and contract.creator_id in reviewer_ids


class ReviewService:
    """
    Review Gate.

    Funds move from pending to available if and only if both the brand and
    the creator have reviewed a completed contract that is waiting for review.
    """

    def __init__(self, db: Session):
        self.db = db
        self.contracts = ContractService(db)
        self.ledger = LedgerService(db)
        self.audit = ContractAuditService(db)
        self.notifications = NotificationService(db)

    has_both_reviews = staticmethod(has_both_reviews)

    def submit_review(
        self,
        contract_id: str,
        reviewer: User,
        rating: int,
        comment: Optional[str] = None,
        rating_categories: Optional[dict] = None,
        is_public: bool = True,
    ) -> Review:
        # Contract row lock serialises concurrent reviews for the same contract
        contract = self.contracts.get_contract(contract_id, lock=True)

        if contract.status != ContractStatusDB.COMPLETED:
            raise PermissionDeniedError("Contract must be completed before it can be reviewed")
        if not contract.is_party(reviewer.id):
            raise PermissionDeniedError("Only contract parties can leave a review")

        if any(r.reviewer_id == reviewer.id for r in contract.reviews):
            raise BusinessRuleError("You have already reviewed this contract")
        if has_both_reviews(contract):
            raise BusinessRuleError("This contract has already been reviewed by both parties")

        reviewed_id = contract.creator_id if reviewer.id == contract.brand_id else contract.brand_id

        try:
            review = Review(
                contract_id=contract.id,
                reviewer_id=reviewer.id,
                reviewed_id=reviewed_id,
                rating=rating,
                comment=comment,
                rating_categories=rating_categories,
                is_public=is_public,
            )
            contract.reviews.append(review)
            self.db.flush()

            self.audit.log(contract, "review_submitted", {"review_id": review.id, "rating": rating}, user_id=reviewer.id)
            self.notifications.notify_new_review(review)

            if has_both_reviews(contract) and contract.workflow_status == WorkflowStatusDB.WAITING_REVIEW:
                self._release_payment(contract, reviewer)

            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.warning(f"Duplicate review by {reviewer.id} on contract {contract_id}")
            raise BusinessRuleError("You have already reviewed this contract")
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(review)
        logger.info(f"Review {review.id} by {reviewer.id} on contract {contract_id} ({rating} stars)")
        return review

    def _release_payment(self, contract: Contract, actor: User) -> JobPayment:
        job_payment = self.db.query(JobPayment).filter(
            JobPayment.contract_id == contract.id,
            JobPayment.status == JobPaymentStatusDB.PENDING,
        ).first()
        if not job_payment:
            logger.error(f"Both reviews in for contract {contract.id} but no pending payment found")
            raise BusinessRuleError("No pending payment found for this contract")

        self.ledger.release(contract.creator_id, job_payment.creator_amount, contract, job_payment, created_by=actor.id)

        job_payment.status = JobPaymentStatusDB.PAID
        job_payment.released_at = datetime.utcnow()
        self.contracts.mark_payment_available(contract, user_id=actor.id)
        self.notifications.notify_payment_available(contract, job_payment.creator_amount)

        logger.info(f"Released {job_payment.creator_amount} to creator {contract.creator_id} for contract {contract.id}")
        return job_payment

    # =========================================================================
    # READS
    # =========================================================================

    def list_contract_reviews(self, contract_id: str, user: User) -> List[Review]:
        contract = self.contracts.get_contract_for_party(contract_id, user)
        return sorted(contract.reviews, key=lambda r: (r.created_at or datetime.min))

    def list_user_reviews(self, user_id: str, page: int = 1, limit: int = 20) -> Tuple[List[Review], int, Optional[float]]:
        """Public reviews received by a user, newest first, with their average rating."""
        if not self.db.query(User.id).filter(User.id == user_id).first():
            raise NotFoundError("User not found")

        query = self.db.query(Review).filter(Review.reviewed_id == user_id, Review.is_public.is_(True))
        total = query.count()
        reviews = query.order_by(Review.created_at.desc()).offset((page - 1) * limit).limit(limit).all()

        average = self.db.query(func.avg(Review.rating)).filter(
            Review.reviewed_id == user_id, Review.is_public.is_(True)
        ).scalar()
        return reviews, total, round(float(average), 2) if average is not None else None

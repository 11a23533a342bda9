"""
Tests for mutual reviews and the payment release they trigger
"""
from decimal import Decimal

import pytest

from core.exceptions import BusinessRuleError, NotFoundError, PermissionDeniedError
from database.marketplace_models import (
    ContractStatusDB, JobPaymentStatusDB, LedgerEntry, Notification, NotificationTypeDB, WorkflowStatusDB,
)
from services.contract_service import ContractService
from services.ledger_service import LedgerService
from services.review_service import ReviewService, has_both_reviews


class TestReviewGate:

    def test_first_review_does_not_release(self, db_session, completed_contract, brand, creator):
        ReviewService(db_session).submit_review(completed_contract.id, brand, rating=5)

        assert completed_contract.workflow_status == WorkflowStatusDB.WAITING_REVIEW
        assert completed_contract.payment.status == JobPaymentStatusDB.PENDING
        assert LedgerService(db_session).get_balance(creator.id).available_balance == Decimal("0.00")

    def test_second_review_releases_payment(self, db_session, completed_contract, brand, creator):
        service = ReviewService(db_session)
        service.submit_review(completed_contract.id, creator, rating=4)
        service.submit_review(completed_contract.id, brand, rating=5)

        assert completed_contract.status == ContractStatusDB.COMPLETED
        assert completed_contract.workflow_status == WorkflowStatusDB.PAYMENT_AVAILABLE
        assert completed_contract.payment.status == JobPaymentStatusDB.PAID
        assert completed_contract.payment.released_at is not None

        ledger = LedgerService(db_session)
        balance = ledger.get_balance(creator.id)
        assert balance.pending_balance == Decimal("0.00")
        assert balance.available_balance == Decimal("95.00")
        assert ledger.verify_invariant(creator.id)

    def test_creator_is_told_payment_is_available(self, db_session, completed_contract, brand, creator, release):
        release(completed_contract, brand, creator)

        notification = db_session.query(Notification).filter(
            Notification.user_id == creator.id,
            Notification.type == NotificationTypeDB.PAYMENT_AVAILABLE,
        ).one()
        assert "95.00" in notification.message

    def test_reviewed_party_is_the_other_side(self, db_session, completed_contract, brand, creator):
        review = ReviewService(db_session).submit_review(completed_contract.id, brand, rating=5, comment="Great")

        assert review.reviewer_id == brand.id
        assert review.reviewed_id == creator.id
        assert review.is_public is True

    def test_duplicate_review_is_rejected(self, db_session, completed_contract, brand):
        service = ReviewService(db_session)
        service.submit_review(completed_contract.id, brand, rating=5)

        with pytest.raises(BusinessRuleError, match="already reviewed"):
            service.submit_review(completed_contract.id, brand, rating=1)

    def test_third_review_after_release_is_rejected(self, db_session, completed_contract, brand, creator, release):
        release(completed_contract, brand, creator)

        with pytest.raises(BusinessRuleError):
            ReviewService(db_session).submit_review(completed_contract.id, creator, rating=3)

        releases = db_session.query(LedgerEntry).filter(LedgerEntry.contract_id == completed_contract.id).count()
        assert releases == 2

    def test_stranger_cannot_review(self, db_session, completed_contract, make_user):
        with pytest.raises(PermissionDeniedError):
            ReviewService(db_session).submit_review(completed_contract.id, make_user(), rating=5)

    def test_active_contract_cannot_be_reviewed(self, db_session, funded_contract, brand):
        with pytest.raises(PermissionDeniedError):
            ReviewService(db_session).submit_review(funded_contract.id, brand, rating=5)

    def test_unknown_contract(self, db_session, brand):
        with pytest.raises(NotFoundError):
            ReviewService(db_session).submit_review("missing", brand, rating=5)

    def test_missing_pending_payment_rolls_back_second_review(self, db_session, completed_contract, brand, creator):
        service = ReviewService(db_session)
        service.submit_review(completed_contract.id, brand, rating=5)

        completed_contract.payment.status = JobPaymentStatusDB.REFUNDED
        db_session.commit()

        with pytest.raises(BusinessRuleError, match="No pending payment"):
            service.submit_review(completed_contract.id, creator, rating=4)

        assert completed_contract.workflow_status == WorkflowStatusDB.WAITING_REVIEW
        assert len(completed_contract.reviews) == 1

    def test_review_flags(self, db_session, completed_contract, brand):
        contracts = ContractService(db_session)
        assert contracts.review_flags(completed_contract) == {
            "brand_reviewed": False, "creator_reviewed": False, "has_both_reviews": False,
        }

        ReviewService(db_session).submit_review(completed_contract.id, brand, rating=5)

        assert contracts.review_flags(completed_contract) == {
            "brand_reviewed": True, "creator_reviewed": False, "has_both_reviews": False,
        }
        assert not has_both_reviews(completed_contract)


class TestReviewListings:

    def test_contract_reviews_for_parties(self, db_session, completed_contract, brand, creator, release):
        release(completed_contract, brand, creator)

        reviews = ReviewService(db_session).list_contract_reviews(completed_contract.id, creator)
        assert {r.reviewer_id for r in reviews} == {brand.id, creator.id}

    def test_contract_reviews_hidden_from_strangers(self, db_session, completed_contract, make_user):
        with pytest.raises(PermissionDeniedError):
            ReviewService(db_session).list_contract_reviews(completed_contract.id, make_user())

    def test_user_reviews_average(self, db_session, make_contract, fund, brand, creator):
        contracts = ContractService(db_session)
        reviews = ReviewService(db_session)
        for rating in (5, 4):
            contract = make_contract(brand, creator)
            fund(contract, brand)
            contracts.complete(contract.id, brand)
            reviews.submit_review(contract.id, brand, rating=rating)

        listed, total, average = reviews.list_user_reviews(creator.id)
        assert total == 2
        assert average == 4.5
        assert all(r.reviewed_id == creator.id for r in listed)

    def test_private_reviews_are_not_listed(self, db_session, completed_contract, brand, creator):
        ReviewService(db_session).submit_review(completed_contract.id, brand, rating=2, is_public=False)

        listed, total, average = ReviewService(db_session).list_user_reviews(creator.id)
        assert (listed, total, average) == ([], 0, None)

    def test_unknown_user(self, db_session):
        with pytest.raises(NotFoundError):
            ReviewService(db_session).list_user_reviews("missing")

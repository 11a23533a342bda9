# Payout Verification Service
# Read-only reconciliation of withdrawals against creators' bank accounts

from sqlalchemy.orm import Session
from sqlalchemy import func
from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional, Dict, Any
import logging

from config.app_config import MAX_WITHDRAWAL_AMOUNT, PAYOUT_MAX_PROCESSING_HOURS
from core.exceptions import NotFoundError
from database.marketplace_models import (
    BankAccount, Withdrawal, WithdrawalStatusDB,
    Contract, ContractStatusDB, WorkflowStatusDB,
    JobPayment, JobPaymentStatusDB,
)
from services.ledger_service import to_money

logger = logging.getLogger(__name__)

COMPARED_BANK_FIELDS = ("bank_code", "agencia", "agencia_dv", "conta", "conta_dv", "cpf")
REPORTED_BANK_FIELDS = COMPARED_BANK_FIELDS + ("name",)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _status(value) -> Optional[str]:
    return value.value if hasattr(value, "value") else value


class PayoutVerificationService:
    """Checks completed payouts; never changes any record."""

    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # CHECKS
    # =========================================================================

    @staticmethod
    def withdrawal_bank_details(withdrawal: Withdrawal) -> Optional[Dict[str, Any]]:
        if not withdrawal.withdrawal_details:
            return None
        return {field: withdrawal.withdrawal_details.get(field) for field in REPORTED_BANK_FIELDS}

    @classmethod
    def bank_details_match(cls, withdrawal: Withdrawal, account: Optional[BankAccount]) -> bool:
        details = cls.withdrawal_bank_details(withdrawal)
        if account is None or details is None:
            return False
        return all(
            (details.get(field) or "") == (getattr(account, field) or "")
            for field in COMPARED_BANK_FIELDS
        )

    @staticmethod
    def amount_valid(withdrawal: Withdrawal) -> bool:
        amount = to_money(withdrawal.amount)
        return Decimal("0") < amount <= MAX_WITHDRAWAL_AMOUNT

    @staticmethod
    def transaction_id_valid(withdrawal: Withdrawal) -> bool:
        return bool(withdrawal.transaction_id and withdrawal.transaction_id.strip())

    @staticmethod
    def processing_time_reasonable(withdrawal: Withdrawal) -> bool:
        if not withdrawal.processed_at or not withdrawal.created_at:
            return True
        hours = (withdrawal.processed_at - withdrawal.created_at).total_seconds() / 3600
        return hours <= PAYOUT_MAX_PROCESSING_HOURS

    def overall_status(self, withdrawal: Withdrawal, account: Optional[BankAccount]) -> str:
        if withdrawal.status in (WithdrawalStatusDB.PENDING, WithdrawalStatusDB.PROCESSING):
            return "pending"
        if withdrawal.status in (WithdrawalStatusDB.FAILED, WithdrawalStatusDB.CANCELLED):
            return "failed"

        passed = (
            self.amount_valid(withdrawal)
            and self.bank_details_match(withdrawal, account)
            and self.transaction_id_valid(withdrawal)
            and self.processing_time_reasonable(withdrawal)
        )
        return "passed" if passed else "failed"

    def _current_account(self, creator_id: str) -> Optional[BankAccount]:
        return self.db.query(BankAccount).filter(BankAccount.user_id == creator_id).first()

    # =========================================================================
    # VERIFY ONE
    # =========================================================================

    def verify_withdrawal(self, withdrawal_id: str) -> Dict[str, Any]:
        withdrawal = self.db.query(Withdrawal).filter(Withdrawal.id == withdrawal_id).first()
        if not withdrawal:
            raise NotFoundError("Withdrawal not found")

        account = self._current_account(withdrawal.creator_id)
        details_match = self.bank_details_match(withdrawal, account)
        creator = withdrawal.creator

        result = {
            "withdrawal": {
                "id": withdrawal.id,
                "amount": to_money(withdrawal.amount),
                "withdrawal_method": withdrawal.withdrawal_method,
                "status": _status(withdrawal.status),
                "transaction_id": withdrawal.transaction_id,
                "processed_at": _iso(withdrawal.processed_at),
                "created_at": _iso(withdrawal.created_at),
                "withdrawal_details": withdrawal.withdrawal_details,
            },
            "creator": {
                "id": creator.id,
                "name": creator.name,
                "email": creator.email,
            } if creator else None,
            "bank_account_verification": {
                "withdrawal_bank_details": self.withdrawal_bank_details(withdrawal),
                "current_bank_account": {
                    field: getattr(account, field) for field in REPORTED_BANK_FIELDS
                } if account else None,
                "details_match": details_match,
            },
            "verification_summary": {
                "withdrawal_amount_correct": self.amount_valid(withdrawal),
                "bank_details_consistent": details_match,
                "transaction_id_valid": self.transaction_id_valid(withdrawal),
                "processing_time_reasonable": self.processing_time_reasonable(withdrawal),
                "overall_verification_status": self.overall_status(withdrawal, account),
            },
        }
        logger.info(
            f"Verified withdrawal {withdrawal.id}: "
            f"{result['verification_summary']['overall_verification_status']}"
        )
        return result

    # =========================================================================
    # REPORT
    # =========================================================================

    def generate_report(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[str] = None,
        withdrawal_method: Optional[str] = None,
        page: int = 1,
        limit: int = 50,
    ) -> Dict[str, Any]:
        query = self.db.query(Withdrawal)
        if start_date:
            query = query.filter(Withdrawal.created_at >= datetime.combine(start_date, time.min))
        if end_date:
            query = query.filter(Withdrawal.created_at <= datetime.combine(end_date, time.max))
        if status:
            query = query.filter(Withdrawal.status == WithdrawalStatusDB(status))
        if withdrawal_method:
            query = query.filter(Withdrawal.withdrawal_method == withdrawal_method)

        total = query.count()
        total_amount = to_money(query.with_entities(func.coalesce(func.sum(Withdrawal.amount), 0)).scalar())
        withdrawals = query.order_by(Withdrawal.created_at.desc()).offset((page - 1) * limit).limit(limit).all()

        summary = {
            "total_withdrawals": total,
            "total_amount": total_amount,
            "verification_passed": 0,
            "verification_failed": 0,
            "pending_verification": 0,
        }
        counters = {"passed": "verification_passed", "failed": "verification_failed", "pending": "pending_verification"}

        rows = []
        for withdrawal in withdrawals:
            account = self._current_account(withdrawal.creator_id)
            verification_status = self.overall_status(withdrawal, account)
            summary[counters[verification_status]] += 1
            creator = withdrawal.creator
            rows.append({
                "id": withdrawal.id,
                "amount": to_money(withdrawal.amount),
                "withdrawal_method": withdrawal.withdrawal_method,
                "status": _status(withdrawal.status),
                "transaction_id": withdrawal.transaction_id,
                "processed_at": _iso(withdrawal.processed_at),
                "creator": {"id": creator.id, "name": creator.name, "email": creator.email} if creator else None,
                "verification_status": verification_status,
                "bank_details_match": self.bank_details_match(withdrawal, account),
                "amount_verification": self.amount_valid(withdrawal),
            })

        return {
            "summary": summary,
            "withdrawals": rows,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": (total + limit - 1) // limit,
            },
        }

    # =========================================================================
    # METRICS
    # =========================================================================

    def get_metrics(self) -> Dict[str, Any]:
        def withdrawals(status: WithdrawalStatusDB):
            count, amount = self.db.query(
                func.count(Withdrawal.id), func.coalesce(func.sum(Withdrawal.amount), 0)
            ).filter(Withdrawal.status == status).one()
            return count, to_money(amount)

        def contracts(workflow: WorkflowStatusDB) -> int:
            return self.db.query(func.count(Contract.id)).filter(
                Contract.status == ContractStatusDB.COMPLETED,
                Contract.workflow_status == workflow,
            ).scalar()

        pending_count, pending_amount = withdrawals(WithdrawalStatusDB.PENDING)
        processing_count, processing_amount = withdrawals(WithdrawalStatusDB.PROCESSING)
        completed_count, completed_amount = withdrawals(WithdrawalStatusDB.COMPLETED)
        failed_count, _ = withdrawals(WithdrawalStatusDB.FAILED)

        fees, creator_payments = self.db.query(
            func.coalesce(func.sum(JobPayment.platform_fee), 0),
            func.coalesce(func.sum(JobPayment.creator_amount), 0),
        ).filter(JobPayment.status == JobPaymentStatusDB.PAID).one()

        return {
            "total_pending_withdrawals": pending_count,
            "total_processing_withdrawals": processing_count,
            "total_completed_withdrawals": completed_count,
            "total_failed_withdrawals": failed_count,
            "total_pending_amount": pending_amount,
            "total_processing_amount": processing_amount,
            "total_completed_amount": completed_amount,
            "contracts_waiting_review": contracts(WorkflowStatusDB.WAITING_REVIEW),
            "contracts_payment_available": contracts(WorkflowStatusDB.PAYMENT_AVAILABLE),
            "contracts_payment_withdrawn": contracts(WorkflowStatusDB.PAYMENT_WITHDRAWN),
            "total_platform_fees": to_money(fees),
            "total_creator_payments": to_money(creator_payments),
        }

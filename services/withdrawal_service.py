# Withdrawal Service
# Creators move available balance out; admins approve or reject the payout

from sqlalchemy.orm import Session
from datetime import datetime
from typing import List, Optional, Tuple
import logging

from config.app_config import MIN_WITHDRAWAL_AMOUNT, MAX_WITHDRAWAL_AMOUNT
from core.exceptions import BusinessRuleError, NotFoundError
from database.models import User
from database.marketplace_models import BankAccount, Withdrawal, WithdrawalStatusDB
from services.contract_service import ContractService
from services.ledger_service import LedgerService, to_money
from services.notification_service import NotificationService

logger = logging.getLogger(__name__)

BANK_FIELDS = ("bank_code", "agencia", "agencia_dv", "conta", "conta_dv", "cpf", "name")


def bank_snapshot(account: Optional[BankAccount]) -> Optional[dict]:
    """Copy of the bank details as they were when the withdrawal was requested."""
    if account is None:
        return None
    return {field: getattr(account, field) for field in BANK_FIELDS}


class WithdrawalService:
    def __init__(self, db: Session):
        self.db = db
        self.ledger = LedgerService(db)
        self.contracts = ContractService(db)
        self.notifications = NotificationService(db)

    def get_withdrawal(self, withdrawal_id: str, lock: bool = False) -> Withdrawal:
        query = self.db.query(Withdrawal).filter(Withdrawal.id == withdrawal_id)
        if lock:
            query = query.with_for_update()
        withdrawal = query.first()
        if not withdrawal:
            raise NotFoundError("Withdrawal not found")
        return withdrawal

    def request_withdrawal(
        self,
        creator: User,
        amount,
        method: str = "bank_transfer",
        details: Optional[dict] = None,
    ) -> Withdrawal:
        """
        Reserve `amount` from the creator's available balance for payout.

        The ledger moves the money to withdrawn immediately; a rejected
        withdrawal is reversed by `reject_withdrawal`.
        """
        amount = to_money(amount)
        if amount < MIN_WITHDRAWAL_AMOUNT:
            raise BusinessRuleError(f"Minimum withdrawal is {MIN_WITHDRAWAL_AMOUNT}")
        if amount > MAX_WITHDRAWAL_AMOUNT:
            raise BusinessRuleError(f"Maximum withdrawal is {MAX_WITHDRAWAL_AMOUNT}")

        if details is None and method == "bank_transfer":
            details = bank_snapshot(creator.bank_account)
            if details is None:
                raise BusinessRuleError("Add a bank account before requesting a withdrawal")

        try:
            withdrawal = Withdrawal(
                creator_id=creator.id,
                amount=amount,
                withdrawal_method=method,
                withdrawal_details=details,
                status=WithdrawalStatusDB.PENDING,
            )
            self.db.add(withdrawal)
            self.db.flush()

            self.ledger.withdraw(creator.id, amount, withdrawal, created_by=creator.id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(withdrawal)
        logger.info(f"Withdrawal {withdrawal.id} requested by creator {creator.id}: {amount} via {method}")
        return withdrawal

    def approve_withdrawal(self, withdrawal_id: str, admin: User, transaction_id: str) -> Withdrawal:
        """Mark a pending withdrawal as paid out. Approving a completed one is a no-op."""
        withdrawal = self.get_withdrawal(withdrawal_id, lock=True)

        if withdrawal.status == WithdrawalStatusDB.COMPLETED:
            logger.info(f"Withdrawal {withdrawal.id} already completed, nothing to do")
            return withdrawal
        if withdrawal.status not in (WithdrawalStatusDB.PENDING, WithdrawalStatusDB.PROCESSING):
            raise BusinessRuleError(f"Cannot approve a withdrawal that is {withdrawal.status.value}")
        if not transaction_id or not transaction_id.strip():
            raise BusinessRuleError("A payout transaction id is required")

        try:
            withdrawal.status = WithdrawalStatusDB.COMPLETED
            withdrawal.transaction_id = transaction_id.strip()
            withdrawal.processed_at = datetime.utcnow()
            self.db.flush()

            self.contracts.mark_payments_withdrawn(withdrawal.creator_id, user_id=admin.id)
            self.notifications.notify_withdrawal_status(withdrawal, completed=True)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(withdrawal)
        logger.info(f"Admin {admin.id} approved withdrawal {withdrawal.id} (transaction {withdrawal.transaction_id})")
        return withdrawal

    def reject_withdrawal(self, withdrawal_id: str, admin: User, reason: str) -> Withdrawal:
        """Cancel a pending withdrawal and give the amount back to the creator."""
        withdrawal = self.get_withdrawal(withdrawal_id, lock=True)
        if withdrawal.status not in (WithdrawalStatusDB.PENDING, WithdrawalStatusDB.PROCESSING):
            raise BusinessRuleError(f"Cannot reject a withdrawal that is {withdrawal.status.value}")

        try:
            self.ledger.reverse_withdrawal(withdrawal.creator_id, withdrawal.amount, withdrawal, created_by=admin.id)
            withdrawal.status = WithdrawalStatusDB.CANCELLED
            withdrawal.failure_reason = reason
            withdrawal.processed_at = datetime.utcnow()
            self.notifications.notify_withdrawal_status(withdrawal, completed=False, reason=reason)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(withdrawal)
        logger.info(f"Admin {admin.id} rejected withdrawal {withdrawal.id}: {reason}")
        return withdrawal

    def list_withdrawals(self, creator: User, page: int = 1, limit: int = 20) -> Tuple[List[Withdrawal], int]:
        query = self.db.query(Withdrawal).filter(Withdrawal.creator_id == creator.id).order_by(Withdrawal.created_at.desc())
        total = query.count()
        return query.offset((page - 1) * limit).limit(limit).all(), total

    def list_pending(self, page: int = 1, limit: int = 20) -> Tuple[List[Withdrawal], int]:
        query = (
            self.db.query(Withdrawal)
            .filter(Withdrawal.status.in_([WithdrawalStatusDB.PENDING, WithdrawalStatusDB.PROCESSING]))
            .order_by(Withdrawal.created_at.asc())
        )
        total = query.count()
        return query.offset((page - 1) * limit).limit(limit).all(), total

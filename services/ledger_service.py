# Creator Balance Ledger
# Every balance movement is an append-only LedgerEntry; CreatorBalance is the
# projection of those entries, written only from here under a row lock.

from sqlalchemy.orm import Session
from sqlalchemy import func
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Dict, Tuple, List
import logging

from core.exceptions import LedgerError
from database.marketplace_models import (
    CreatorBalance, LedgerEntry, LedgerEntryTypeDB,
    Contract, JobPayment, Withdrawal,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

BUCKETS = ("pending", "available", "withdrawn", "earned")


def to_money(value) -> Decimal:
    """Normalize any numeric value to a two-place Decimal."""
    return Decimal(str(value if value is not None else 0)).quantize(CENT, rounding=ROUND_HALF_UP)


class LedgerService:
    """
    Writer and reader for creator balances.

    All mutating methods add exactly one LedgerEntry and update the locked
    CreatorBalance row in the caller's transaction. Nothing is committed here.
    """

    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # BALANCE PROJECTION
    # =========================================================================

    def get_balance(self, creator_id: str) -> Optional[CreatorBalance]:
        return self.db.query(CreatorBalance).filter(CreatorBalance.creator_id == creator_id).first()

    def get_or_create_balance(self, creator_id: str, lock: bool = True) -> CreatorBalance:
        """Return the creator's balance row, locked FOR UPDATE when `lock` is set."""
        query = self.db.query(CreatorBalance).filter(CreatorBalance.creator_id == creator_id)
        if lock:
            query = query.with_for_update()
        balance = query.first()

        if not balance:
            balance = CreatorBalance(
                creator_id=creator_id,
                available_balance=ZERO,
                pending_balance=ZERO,
                total_earned=ZERO,
                total_withdrawn=ZERO,
            )
            self.db.add(balance)
            self.db.flush()
            logger.info(f"Created balance for creator {creator_id}")

        return balance

    # =========================================================================
    # MOVEMENTS
    # =========================================================================

    def record_charge(self, creator_id: str, amount, contract: Contract, job_payment: JobPayment,
                      created_by: Optional[str] = None) -> LedgerEntry:
        """Escrowed money for a funded contract: pending and earned both grow."""
        amount = self._positive(amount)
        return self._post(
            creator_id,
            LedgerEntryTypeDB.CHARGE,
            amount,
            {"pending": amount, "earned": amount},
            contract_id=contract.id,
            job_payment_id=job_payment.id,
            description=f"Escrow for contract {contract.id}",
            created_by=created_by,
        )

    def release(self, creator_id: str, amount, contract: Contract, job_payment: JobPayment,
                created_by: Optional[str] = None) -> LedgerEntry:
        """Move escrowed money to the creator's withdrawable balance."""
        amount = self._positive(amount)
        return self._post(
            creator_id,
            LedgerEntryTypeDB.RELEASE,
            amount,
            {"pending": -amount, "available": amount},
            contract_id=contract.id,
            job_payment_id=job_payment.id,
            description=f"Payment released for contract {contract.id}",
            created_by=created_by,
        )

    def withdraw(self, creator_id: str, amount, withdrawal: Withdrawal,
                 created_by: Optional[str] = None) -> LedgerEntry:
        amount = self._positive(amount)
        return self._post(
            creator_id,
            LedgerEntryTypeDB.WITHDRAW,
            amount,
            {"available": -amount, "withdrawn": amount},
            withdrawal_id=withdrawal.id,
            description=f"Withdrawal {withdrawal.id}",
            created_by=created_by,
        )

    def reverse_withdrawal(self, creator_id: str, amount, withdrawal: Withdrawal,
                           created_by: Optional[str] = None) -> LedgerEntry:
        """Return the amount of a rejected withdrawal to the available balance."""
        amount = self._positive(amount)
        return self._post(
            creator_id,
            LedgerEntryTypeDB.WITHDRAW_REVERSAL,
            amount,
            {"withdrawn": -amount, "available": amount},
            withdrawal_id=withdrawal.id,
            description=f"Reversal of withdrawal {withdrawal.id}",
            created_by=created_by,
        )

    def refund(self, creator_id: str, amount, contract: Contract, job_payment: JobPayment,
               from_bucket: str = "pending", created_by: Optional[str] = None,
               description: Optional[str] = None) -> LedgerEntry:
        """
        Compensating entry for money returned to the brand.

        Removes the amount from `from_bucket` ("pending" or "available") and
        from total earned.
        """
        if from_bucket not in ("pending", "available"):
            raise ValueError(f"Cannot refund from bucket '{from_bucket}'")
        amount = self._positive(amount)
        return self._post(
            creator_id,
            LedgerEntryTypeDB.REFUND,
            amount,
            {from_bucket: -amount, "earned": -amount},
            contract_id=contract.id,
            job_payment_id=job_payment.id,
            description=description or f"Refund for contract {contract.id}",
            created_by=created_by,
        )

    # =========================================================================
    # READS AND CHECKS
    # =========================================================================

    def compute_totals(self, creator_id: str) -> Dict[str, Decimal]:
        """Aggregate the creator's entries into bucket totals."""
        row = self.db.query(
            func.coalesce(func.sum(LedgerEntry.pending_delta), 0),
            func.coalesce(func.sum(LedgerEntry.available_delta), 0),
            func.coalesce(func.sum(LedgerEntry.withdrawn_delta), 0),
            func.coalesce(func.sum(LedgerEntry.earned_delta), 0),
        ).filter(LedgerEntry.creator_id == creator_id).one()
        return {bucket: to_money(value) for bucket, value in zip(BUCKETS, row)}

    def verify_invariant(self, creator_id: str) -> bool:
        """True when the projection matches the entries and the buckets add up."""
        totals = self.compute_totals(creator_id)
        balance = self.get_balance(creator_id)
        projection = self._snapshot(balance) if balance else {bucket: ZERO for bucket in BUCKETS}

        consistent = (
            projection == totals
            and projection["available"] + projection["pending"] + projection["withdrawn"] == projection["earned"]
        )
        if not consistent:
            logger.error(f"Ledger invariant broken for creator {creator_id}: projection={projection} entries={totals}")
        return consistent

    def history(self, creator_id: str, page: int = 1, limit: int = 20) -> Tuple[List[LedgerEntry], int]:
        query = (
            self.db.query(LedgerEntry)
            .filter(LedgerEntry.creator_id == creator_id)
            .order_by(LedgerEntry.id.desc())
        )
        total = query.count()
        entries = query.offset((page - 1) * limit).limit(limit).all()
        return entries, total

    # =========================================================================
    # INTERNALS
    # =========================================================================

    @staticmethod
    def _positive(amount) -> Decimal:
        amount = to_money(amount)
        if amount <= ZERO:
            raise LedgerError("Amount must be greater than zero")
        return amount

    @staticmethod
    def _snapshot(balance: CreatorBalance) -> Dict[str, Decimal]:
        return {
            "pending": to_money(balance.pending_balance),
            "available": to_money(balance.available_balance),
            "withdrawn": to_money(balance.total_withdrawn),
            "earned": to_money(balance.total_earned),
        }

    def _post(self, creator_id: str, entry_type: LedgerEntryTypeDB, amount: Decimal,
              deltas: Dict[str, Decimal], **fields) -> LedgerEntry:
        deltas = {bucket: deltas.get(bucket, ZERO) for bucket in BUCKETS}
        if deltas["pending"] + deltas["available"] + deltas["withdrawn"] != deltas["earned"]:
            raise LedgerError(f"Unbalanced {entry_type.value} entry")

        balance = self.get_or_create_balance(creator_id)
        current = self._snapshot(balance)
        updated = {bucket: current[bucket] + deltas[bucket] for bucket in BUCKETS}

        for bucket, value in updated.items():
            if value < ZERO:
                logger.warning(
                    f"Ledger {entry_type.value} of {amount} blocked for creator {creator_id}: "
                    f"{bucket} would be {value}"
                )
                raise LedgerError(f"Insufficient {bucket} balance")

        entry = LedgerEntry(
            creator_id=creator_id,
            entry_type=entry_type,
            amount=amount,
            pending_delta=deltas["pending"],
            available_delta=deltas["available"],
            withdrawn_delta=deltas["withdrawn"],
            earned_delta=deltas["earned"],
            **fields,
        )
        self.db.add(entry)

        balance.pending_balance = updated["pending"]
        balance.available_balance = updated["available"]
        balance.total_withdrawn = updated["withdrawn"]
        balance.total_earned = updated["earned"]
        self.db.flush()

        logger.info(
            f"Ledger {entry_type.value}: creator={creator_id} amount={amount} "
            f"pending={updated['pending']} available={updated['available']} "
            f"withdrawn={updated['withdrawn']} earned={updated['earned']}"
        )
        return entry

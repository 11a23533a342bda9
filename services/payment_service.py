# Contract Payment Service
# Funds contracts through the card gateway and keeps escrow records in step

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from decimal import Decimal, ROUND_HALF_UP
from datetime import datetime
from typing import Optional, Tuple
import logging

from config.app_config import PLATFORM_FEE_PERCENT, PLATFORM_CURRENCY
from core.exceptions import BusinessRuleError, PaymentGatewayError, PermissionDeniedError
from core.stripe_service import StripeService
from database.models import User
from database.marketplace_models import (
    Contract, ContractStatusDB,
    JobPayment, JobPaymentStatusDB,
    Transaction, TransactionStatusDB,
    BrandPaymentMethod,
)
from services.contract_states import apply_transition
from services.ledger_service import LedgerService, to_money
from services.audit_service import ContractAuditService
from services.notification_service import NotificationService

logger = logging.getLogger(__name__)


def calculate_split(total, fee_percent: Optional[Decimal] = None) -> Tuple[Decimal, Decimal]:
    """
    Split a contract total into (platform_fee, creator_amount).

    The fee is rounded half-up to cents and the creator gets the remainder,
    so the two parts always add back to the total.
    """
    total = to_money(total)
    percent = Decimal(str(PLATFORM_FEE_PERCENT if fee_percent is None else fee_percent))
    fee = (total * percent / Decimal(100)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return fee, total - fee


class ContractPaymentService:
    """Charges brands for contracts and refunds escrowed payments."""

    def __init__(self, db: Session, gateway: StripeService):
        self.db = db
        self.gateway = gateway
        self.ledger = LedgerService(db)
        self.audit = ContractAuditService(db)
        self.notifications = NotificationService(db)

    calculate_split = staticmethod(calculate_split)

    # =========================================================================
    # CUSTOMERS AND CARDS
    # =========================================================================

    def ensure_customer(self, brand: User) -> str:
        """Return the brand's gateway customer id, creating the customer on first use."""
        if brand.stripe_customer_id:
            return brand.stripe_customer_id

        customer = self.gateway.create_customer(email=brand.email, name=brand.name, user_id=brand.id)
        brand.stripe_customer_id = customer["id"]
        self.db.commit()
        logger.info(f"Created gateway customer {customer['id']} for user {brand.id}")
        return brand.stripe_customer_id

    def save_payment_method(self, brand: User, payment_method_id: str, make_default: bool = True) -> BrandPaymentMethod:
        """Attach a tokenized card to the brand's customer and store it."""
        customer_id = self.ensure_customer(brand)
        payment_method = self.gateway.attach_payment_method(payment_method_id, customer_id)
        card = payment_method.get("card") or {}

        existing = self.db.query(BrandPaymentMethod).filter(
            BrandPaymentMethod.user_id == brand.id,
            BrandPaymentMethod.gateway_payment_method_id == payment_method_id,
        ).first()

        if make_default:
            self.db.query(BrandPaymentMethod).filter(
                BrandPaymentMethod.user_id == brand.id
            ).update({"is_default": False})
            brand.stripe_payment_method_id = payment_method_id

        record = existing or BrandPaymentMethod(user_id=brand.id, gateway_payment_method_id=payment_method_id)
        record.card_brand = card.get("brand")
        record.card_last4 = card.get("last4")
        record.is_default = make_default
        if not existing:
            self.db.add(record)

        self.db.commit()
        self.db.refresh(record)
        logger.info(f"Saved payment method {payment_method_id} for brand {brand.id}")
        return record

    def _resolve_payment_method(self, brand: User, payment_method_id: Optional[str]) -> str:
        if payment_method_id:
            return payment_method_id

        default = self.db.query(BrandPaymentMethod).filter(
            BrandPaymentMethod.user_id == brand.id,
            BrandPaymentMethod.is_default.is_(True),
        ).first()
        if default:
            return default.gateway_payment_method_id
        if brand.stripe_payment_method_id:
            return brand.stripe_payment_method_id
        raise BusinessRuleError("No payment method on file")

    # =========================================================================
    # CHARGE
    # =========================================================================

    def _check_payable(self, contract: Contract):
        existing = self.db.query(JobPayment).filter(JobPayment.contract_id == contract.id).first()
        if existing:
            raise BusinessRuleError("Payment already processed for this contract")
        if contract.status != ContractStatusDB.PENDING:
            raise BusinessRuleError(f"Contract cannot be paid while {contract.status.value}")
        if to_money(contract.budget) <= 0:
            raise BusinessRuleError("Contract budget must be greater than zero")

    def _lock_contract(self, contract_id: str) -> Contract:
        return self.db.query(Contract).filter(
            Contract.id == contract_id
        ).with_for_update().populate_existing().one()

    def _refund_unrecorded_charge(self, payment_intent_id: str, contract_id: str):
        """Give back a charge whose escrow records could not be written."""
        logger.error(
            f"Charge {payment_intent_id} succeeded but recording it for contract {contract_id} failed; refunding",
            exc_info=True,
        )
        try:
            self.gateway.create_refund(payment_intent_id)
        except PaymentGatewayError:
            logger.critical(
                f"Refund of unrecorded charge {payment_intent_id} for contract {contract_id} failed",
                exc_info=True,
            )

    def charge_contract(self, contract: Contract, brand: User, payment_method_id: Optional[str] = None) -> JobPayment:
        """
        Charge the brand for the contract budget and put it in escrow.

        The gateway is called before anything is written, so a failed charge
        leaves the contract pending with no payment records.
        """
        if contract.brand_id != brand.id:
            raise PermissionDeniedError("Only the contract's brand can pay for it")
        self._check_payable(contract)

        customer_id = self.ensure_customer(brand)
        card = self._resolve_payment_method(brand, payment_method_id)

        # Held until commit; a second pay for the same contract waits here
        contract = self._lock_contract(contract.id)
        self._check_payable(contract)

        contract_id = contract.id
        total = to_money(contract.budget)
        platform_fee, creator_amount = calculate_split(total)

        logger.info(f"Charging {total} for contract {contract.id} (brand={brand.id}, card={card})")
        intent = self.gateway.create_payment_intent(
            amount=total,
            customer_id=customer_id,
            payment_method_id=card,
            description=f"Contract {contract.title or contract.id}",
            metadata={
                "contract_id": contract.id,
                "brand_id": brand.id,
                "creator_id": contract.creator_id,
            },
        )

        if intent.get("status") != "succeeded":
            logger.warning(f"Payment intent {intent.get('id')} for contract {contract.id} ended as {intent.get('status')}")
            if intent.get("status") in ("requires_payment_method", "canceled"):
                raise PaymentGatewayError(PaymentGatewayError.CARD_DECLINED, "Card was declined")
            raise PaymentGatewayError(PaymentGatewayError.PAYMENT_INCOMPLETE, "Payment was not completed")

        try:
            now = datetime.utcnow()
            transaction = Transaction(
                user_id=brand.id,
                contract_id=contract.id,
                gateway_payment_intent_id=intent["id"],
                gateway_charge_id=intent.get("latest_charge"),
                status=TransactionStatusDB.PAID,
                amount=total,
                currency=intent.get("currency") or PLATFORM_CURRENCY,
                payment_method="stripe",
                payment_data={"payment_intent": intent["id"], "payment_method": card},
                paid_at=now,
            )
            self.db.add(transaction)
            self.db.flush()

            job_payment = JobPayment(
                contract_id=contract.id,
                brand_id=brand.id,
                creator_id=contract.creator_id,
                transaction_id=transaction.id,
                total_amount=total,
                platform_fee=platform_fee,
                creator_amount=creator_amount,
                payment_method="stripe_escrow",
                gateway_payment_intent_id=intent["id"],
                status=JobPaymentStatusDB.PENDING,
                paid_at=now,
            )
            self.db.add(job_payment)
            self.db.flush()

            self.ledger.record_charge(contract.creator_id, creator_amount, contract, job_payment, created_by=brand.id)

            apply_transition(contract, "activate")
            contract.platform_fee = platform_fee
            contract.creator_amount = creator_amount

            self.audit.log(contract, "payment_received", {
                "job_payment_id": job_payment.id,
                "payment_intent": intent["id"],
                "total": str(total),
                "platform_fee": str(platform_fee),
                "creator_amount": str(creator_amount),
            }, user_id=brand.id)
            self.notifications.notify_contract_started(contract)

            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            self._refund_unrecorded_charge(intent["id"], contract_id)
            raise BusinessRuleError("Payment already processed for this contract")
        except Exception:
            self.db.rollback()
            self._refund_unrecorded_charge(intent["id"], contract_id)
            raise

        self.db.refresh(job_payment)
        logger.info(
            f"Contract {contract.id} funded: total={total} fee={platform_fee} creator={creator_amount}"
        )
        return job_payment

    # =========================================================================
    # REFUND
    # =========================================================================

    def refund_contract_payment(self, contract: Contract, reason: str, actor: Optional[User] = None) -> Optional[JobPayment]:
        """
        Return an escrowed payment to the brand.

        Refunds at the gateway, writes the compensating ledger entry and marks
        the JobPayment refunded. Flushes only; the caller commits. Returns None
        when the contract was never funded.
        """
        job_payment = self.db.query(JobPayment).filter(JobPayment.contract_id == contract.id).first()
        if not job_payment:
            return None
        if job_payment.status == JobPaymentStatusDB.REFUNDED:
            raise BusinessRuleError("Payment already refunded")

        from_bucket = "available" if job_payment.status == JobPaymentStatusDB.PAID else "pending"
        actor_id = actor.id if actor else None

        # Ledger first: an overdrawn bucket must stop the refund before money moves
        self.ledger.refund(
            contract.creator_id,
            job_payment.creator_amount,
            contract,
            job_payment,
            from_bucket=from_bucket,
            created_by=actor_id,
            description=f"Refund for contract {contract.id}: {reason}",
        )

        if job_payment.gateway_payment_intent_id:
            refund = self.gateway.create_refund(job_payment.gateway_payment_intent_id)
            logger.info(f"Gateway refund {refund.get('id')} for intent {job_payment.gateway_payment_intent_id}")

        now = datetime.utcnow()
        job_payment.status = JobPaymentStatusDB.REFUNDED
        job_payment.refunded_at = now
        job_payment.refund_reason = reason
        if job_payment.transaction:
            job_payment.transaction.status = TransactionStatusDB.REFUNDED

        self.audit.log(contract, "payment_refunded", {
            "job_payment_id": job_payment.id,
            "amount": str(job_payment.total_amount),
            "creator_amount": str(job_payment.creator_amount),
            "from_bucket": from_bucket,
            "reason": reason,
        }, user_id=actor_id)
        self.db.flush()

        logger.info(f"Refunded payment {job_payment.id} for contract {contract.id} ({reason})")
        return job_payment

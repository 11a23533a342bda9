"""
Tests for contract funding, fee split and refunds
"""
from decimal import Decimal

import pytest

from core.exceptions import BusinessRuleError, PaymentGatewayError, PermissionDeniedError
from database.marketplace_models import (
    BrandPaymentMethod, Contract, ContractAuditLog, ContractStatusDB, JobPayment, JobPaymentStatusDB,
    Transaction, TransactionStatusDB, WorkflowStatusDB,
)
from services.ledger_service import LedgerService
from services.payment_service import ContractPaymentService, calculate_split


class TestFeeSplit:

    @pytest.mark.parametrize("total,fee,creator_amount", [
        ("100.00", "5.00", "95.00"),
        ("10.01", "0.50", "9.51"),
        ("0.10", "0.01", "0.09"),
        ("1234.56", "61.73", "1172.83"),
    ])
    def test_default_fee(self, total, fee, creator_amount):
        assert calculate_split(Decimal(total)) == (Decimal(fee), Decimal(creator_amount))

    def test_parts_add_up_to_total(self):
        for cents in range(1, 500, 7):
            total = Decimal(cents) / 100
            fee, creator_amount = calculate_split(total)
            assert fee + creator_amount == total

    def test_custom_fee_percent(self):
        assert calculate_split(Decimal("200.00"), fee_percent=Decimal("12.5")) == (Decimal("25.00"), Decimal("175.00"))


class TestChargeContract:

    def test_successful_charge_activates_contract(self, db_session, gateway, make_contract, brand, creator):
        contract = make_contract(brand, creator)

        payment = ContractPaymentService(db_session, gateway).charge_contract(contract, brand, "pm_card_visa")
        db_session.refresh(contract)

        assert payment.status == JobPaymentStatusDB.PENDING
        assert payment.total_amount == Decimal("100.00")
        assert payment.platform_fee == Decimal("5.00")
        assert payment.creator_amount == Decimal("95.00")
        assert contract.status == ContractStatusDB.ACTIVE
        assert contract.workflow_status == WorkflowStatusDB.ACTIVE
        assert contract.started_at is not None
        assert contract.creator_amount == Decimal("95.00")

        balance = LedgerService(db_session).get_balance(creator.id)
        assert balance.pending_balance == Decimal("95.00")
        assert balance.available_balance == Decimal("0.00")

    def test_charge_sends_amount_and_contract_metadata(self, db_session, gateway, make_contract, brand, creator):
        contract = make_contract(brand, creator, budget="250.00")
        ContractPaymentService(db_session, gateway).charge_contract(contract, brand, "pm_card_visa")

        intent = gateway.intents[0]
        assert intent["amount"] == Decimal("250.00")
        assert intent["metadata"]["contract_id"] == contract.id
        assert intent["payment_method"] == "pm_card_visa"
        assert brand.stripe_customer_id == gateway.customers[0]["id"]

    def test_transaction_is_recorded(self, db_session, funded_contract):
        transaction = db_session.query(Transaction).filter(Transaction.contract_id == funded_contract.id).one()

        assert transaction.status == TransactionStatusDB.PAID
        assert transaction.amount == Decimal("100.00")
        assert funded_contract.payment.transaction_id == transaction.id

    def test_charge_is_audited(self, db_session, funded_contract):
        actions = [log.action for log in db_session.query(ContractAuditLog).filter(
            ContractAuditLog.contract_id == funded_contract.id
        )]
        assert "payment_received" in actions

    def test_failed_charge_leaves_contract_pending(self, db_session, gateway, make_contract, brand, creator):
        contract = make_contract(brand, creator)
        gateway.fail_reason = PaymentGatewayError.INSUFFICIENT_FUNDS

        with pytest.raises(PaymentGatewayError) as exc:
            ContractPaymentService(db_session, gateway).charge_contract(contract, brand, "pm_card_visa")

        assert exc.value.reason == "insufficient_funds"
        db_session.refresh(contract)
        assert contract.status == ContractStatusDB.PENDING
        assert contract.workflow_status is None
        assert db_session.query(JobPayment).count() == 0
        assert db_session.query(Transaction).count() == 0
        assert LedgerService(db_session).get_balance(creator.id) is None

    @pytest.mark.parametrize("intent_status,reason", [
        ("requires_payment_method", PaymentGatewayError.CARD_DECLINED),
        ("requires_action", PaymentGatewayError.PAYMENT_INCOMPLETE),
    ])
    def test_unsuccessful_intent_is_rejected(self, db_session, gateway, make_contract, brand, creator,
                                             intent_status, reason):
        contract = make_contract(brand, creator)
        gateway.intent_status = intent_status

        with pytest.raises(PaymentGatewayError) as exc:
            ContractPaymentService(db_session, gateway).charge_contract(contract, brand, "pm_card_visa")

        assert exc.value.reason == reason
        assert db_session.query(JobPayment).count() == 0

    def test_second_payment_is_rejected(self, db_session, gateway, funded_contract, brand):
        with pytest.raises(BusinessRuleError, match="already processed"):
            ContractPaymentService(db_session, gateway).charge_contract(funded_contract, brand, "pm_card_visa")

        assert len(gateway.intents) == 1

    def test_only_the_brand_can_pay(self, db_session, gateway, make_contract, make_user, brand, creator):
        contract = make_contract(brand, creator)
        other_brand = make_user()

        with pytest.raises(PermissionDeniedError):
            ContractPaymentService(db_session, gateway).charge_contract(contract, other_brand, "pm_card_visa")

    def test_zero_budget_is_rejected(self, db_session, gateway, make_contract, brand, creator):
        contract = make_contract(brand, creator, budget="0.00")

        with pytest.raises(BusinessRuleError):
            ContractPaymentService(db_session, gateway).charge_contract(contract, brand, "pm_card_visa")
        assert gateway.intents == []

    def test_falls_back_to_default_card(self, db_session, gateway, make_contract, brand, creator):
        service = ContractPaymentService(db_session, gateway)
        service.save_payment_method(brand, "pm_saved_card")
        contract = make_contract(brand, creator)

        service.charge_contract(contract, brand)

        assert gateway.intents[0]["payment_method"] == "pm_saved_card"

    def test_no_card_on_file(self, db_session, gateway, make_contract, brand, creator):
        contract = make_contract(brand, creator)

        with pytest.raises(BusinessRuleError, match="No payment method"):
            ContractPaymentService(db_session, gateway).charge_contract(contract, brand)


class TestPaymentMethods:

    def test_save_marks_new_card_default(self, db_session, gateway, brand):
        service = ContractPaymentService(db_session, gateway)
        service.save_payment_method(brand, "pm_first")
        second = service.save_payment_method(brand, "pm_second")

        cards = db_session.query(BrandPaymentMethod).filter(BrandPaymentMethod.user_id == brand.id).all()
        assert len(cards) == 2
        assert [c.gateway_payment_method_id for c in cards if c.is_default] == ["pm_second"]
        assert second.card_last4 == "4242"
        assert brand.stripe_payment_method_id == "pm_second"

    def test_customer_created_once(self, db_session, gateway, brand):
        service = ContractPaymentService(db_session, gateway)
        first = service.ensure_customer(brand)
        second = service.ensure_customer(brand)

        assert first == second
        assert len(gateway.customers) == 1


class TestRefund:

    def test_refund_pending_payment(self, db_session, gateway, funded_contract, brand, creator):
        service = ContractPaymentService(db_session, gateway)
        payment = service.refund_contract_payment(funded_contract, "Brand changed plans", brand)
        db_session.commit()

        assert payment.status == JobPaymentStatusDB.REFUNDED
        assert payment.refunded_at is not None
        assert payment.transaction.status == TransactionStatusDB.REFUNDED
        assert gateway.refunds[0]["payment_intent"] == payment.gateway_payment_intent_id

        ledger = LedgerService(db_session)
        balance = ledger.get_balance(creator.id)
        assert balance.pending_balance == Decimal("0.00")
        assert balance.total_earned == Decimal("0.00")
        assert ledger.verify_invariant(creator.id)

    def test_refund_twice_is_rejected(self, db_session, gateway, funded_contract, brand):
        service = ContractPaymentService(db_session, gateway)
        service.refund_contract_payment(funded_contract, "first", brand)
        db_session.commit()

        with pytest.raises(BusinessRuleError, match="already refunded"):
            service.refund_contract_payment(funded_contract, "second", brand)

    def test_unfunded_contract_has_nothing_to_refund(self, db_session, gateway, make_contract, brand, creator):
        contract = make_contract(brand, creator)

        assert ContractPaymentService(db_session, gateway).refund_contract_payment(contract, "nothing", brand) is None
        assert gateway.refunds == []


class TestChargeRecovery:

    def test_contract_rechecked_after_lock(self, db_session, gateway, make_contract, brand, creator, monkeypatch):
        contract = make_contract(brand, creator)
        contract_id = contract.id
        create_customer = gateway.create_customer

        def funded_meanwhile(*args, **kwargs):
            db_session.query(Contract).filter(Contract.id == contract_id).update(
                {"status": ContractStatusDB.ACTIVE}, synchronize_session=False
            )
            return create_customer(*args, **kwargs)

        monkeypatch.setattr(gateway, "create_customer", funded_meanwhile)

        with pytest.raises(BusinessRuleError, match="cannot be paid"):
            ContractPaymentService(db_session, gateway).charge_contract(contract, brand, "pm_card_visa")

        assert gateway.intents == []

    def test_duplicate_escrow_record_refunds_charge(self, db_session, gateway, make_contract, brand, creator,
                                                    monkeypatch):
        contract = make_contract(brand, creator)
        contract_id, brand_id, creator_id = contract.id, brand.id, creator.id
        create_payment_intent = gateway.create_payment_intent

        def paid_twice(*args, **kwargs):
            intent = create_payment_intent(*args, **kwargs)
            db_session.add(JobPayment(
                contract_id=contract_id,
                brand_id=brand_id,
                creator_id=creator_id,
                total_amount=Decimal("100.00"),
                platform_fee=Decimal("5.00"),
                creator_amount=Decimal("95.00"),
            ))
            db_session.flush()
            return intent

        monkeypatch.setattr(gateway, "create_payment_intent", paid_twice)

        with pytest.raises(BusinessRuleError, match="already processed"):
            ContractPaymentService(db_session, gateway).charge_contract(contract, brand, "pm_card_visa")

        assert [r["payment_intent"] for r in gateway.refunds] == [gateway.intents[0]["id"]]
        assert db_session.query(JobPayment).count() == 0
        assert db_session.query(Transaction).count() == 0

    def test_recording_failure_refunds_charge(self, db_session, gateway, make_contract, brand, creator, monkeypatch):
        contract = make_contract(brand, creator)

        def broken_ledger(*args, **kwargs):
            raise RuntimeError("ledger unavailable")

        monkeypatch.setattr(LedgerService, "record_charge", broken_ledger)

        with pytest.raises(RuntimeError):
            ContractPaymentService(db_session, gateway).charge_contract(contract, brand, "pm_card_visa")

        assert len(gateway.refunds) == 1
        assert gateway.refunds[0]["payment_intent"] == gateway.intents[0]["id"]
        db_session.refresh(contract)
        assert contract.status == ContractStatusDB.PENDING
        assert db_session.query(JobPayment).count() == 0

"""
Pytest configuration and fixtures for the marketplace escrow tests
"""
import itertools
import os
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing the app
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-marketplace-tests"
os.environ["LOG_LEVEL"] = "WARNING"

from auth.dependencies import create_access_token
from core.exceptions import PaymentGatewayError
from core.stripe_service import get_stripe_service
from database.config import get_db
from database.models import Base, User, UserType
from database import marketplace_models  # noqa: F401
from database.marketplace_models import BankAccount, Contract, ContractStatusDB
from server import app
from services.contract_service import ContractService
from services.payment_service import ContractPaymentService
from services.review_service import ReviewService


class FakeStripeService:
    """In-memory stand-in for the gateway adapter."""

    def __init__(self):
        self._ids = itertools.count(1)
        self.fail_reason = None
        self.intent_status = "succeeded"
        self.customers = []
        self.intents = []
        self.refunds = []

    def _next(self, prefix):
        return f"{prefix}_test_{next(self._ids)}"

    def create_customer(self, email, name=None, user_id=None):
        customer = {"id": self._next("cus"), "email": email}
        self.customers.append(customer)
        return customer

    def attach_payment_method(self, payment_method_id, customer_id):
        return {"id": payment_method_id, "customer": customer_id, "card": {"brand": "visa", "last4": "4242"}}

    def create_payment_intent(self, amount, customer_id, payment_method_id, description="", metadata=None, confirm=True):
        if self.fail_reason:
            raise PaymentGatewayError(self.fail_reason)
        intent = {
            "id": self._next("pi"),
            "status": self.intent_status,
            "amount": amount,
            "currency": "brl",
            "customer": customer_id,
            "payment_method": payment_method_id,
            "latest_charge": self._next("ch"),
            "metadata": metadata or {},
        }
        self.intents.append(intent)
        return intent

    def retrieve_payment_intent(self, payment_intent_id):
        return next(i for i in self.intents if i["id"] == payment_intent_id)

    def create_refund(self, payment_intent_id, amount=None, reason="requested_by_customer"):
        refund = {"id": self._next("re"), "payment_intent": payment_intent_id, "amount": amount, "status": "succeeded"}
        self.refunds.append(refund)
        return refund


@pytest.fixture(scope="function")
def test_engine():
    """Fresh in-memory database per test"""
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(test_engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)
    session = TestingSessionLocal()

    def override_get_db():
        try:
            yield session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield session
    session.close()
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def gateway(db_session):
    fake = FakeStripeService()
    app.dependency_overrides[get_stripe_service] = lambda: fake
    return fake


@pytest.fixture(scope="function")
def client(db_session, gateway):
    return TestClient(app)


# ============================================================================
# FACTORIES
# ============================================================================

@pytest.fixture
def make_user(db_session: Session):
    counter = itertools.count(1)

    def _make(user_type: UserType = UserType.BRAND, name=None) -> User:
        n = next(counter)
        user = User(
            email=f"{user_type.value}{n}@example.com",
            password_hash="not-a-real-hash",
            name=name or f"{user_type.value.title()} {n}",
            user_type=user_type,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture
def brand(make_user):
    return make_user(UserType.BRAND)


@pytest.fixture
def creator(make_user):
    return make_user(UserType.CREATOR)


@pytest.fixture
def admin(make_user):
    return make_user(UserType.ADMIN)


@pytest.fixture
def make_contract(db_session: Session):
    def _make(brand: User, creator: User, budget="100.00", title="Launch campaign") -> Contract:
        contract = Contract(
            brand_id=brand.id,
            creator_id=creator.id,
            title=title,
            budget=Decimal(budget),
            status=ContractStatusDB.PENDING,
        )
        db_session.add(contract)
        db_session.commit()
        return contract

    return _make


@pytest.fixture
def bank_account(db_session: Session, creator):
    account = BankAccount(
        user_id=creator.id,
        bank_code="341",
        agencia="1234",
        agencia_dv="5",
        conta="987654",
        conta_dv="3",
        cpf="123.456.789-09",
        name=creator.name,
    )
    db_session.add(account)
    db_session.commit()
    return account


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.email)}"}

    return _headers


# ============================================================================
# WORKFLOW HELPERS
# ============================================================================

@pytest.fixture
def fund(db_session, gateway):
    def _fund(contract: Contract, brand: User):
        return ContractPaymentService(db_session, gateway).charge_contract(contract, brand, "pm_card_visa")

    return _fund


@pytest.fixture
def funded_contract(make_contract, fund, brand, creator):
    contract = make_contract(brand, creator)
    fund(contract, brand)
    return contract


@pytest.fixture
def completed_contract(db_session, funded_contract, brand):
    return ContractService(db_session).complete(funded_contract.id, brand)


@pytest.fixture
def release(db_session):
    """Submit both reviews so the payment is released."""
    def _release(contract: Contract, brand: User, creator: User):
        service = ReviewService(db_session)
        service.submit_review(contract.id, brand, rating=5, comment="Great work")
        return service.submit_review(contract.id, creator, rating=4, comment="Clear brief")

    return _release

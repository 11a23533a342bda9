"""
Tests for roles, permissions and token handling
"""
from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from auth.decorators import AuthError, _get_user_type
from auth.dependencies import create_access_token, decode_access_token
from auth.roles import Permission, UserType, get_permissions_for_role, has_any_permission, has_permission
from database.marketplace_models import CreatorBalance
from database.models import User
from services.ledger_service import LedgerService

API = "/api/v2"


class TestRoles:

    def test_admin_has_every_permission(self):
        assert get_permissions_for_role(UserType.ADMIN) == set(Permission)

    def test_only_creators_withdraw(self):
        assert has_permission(UserType.CREATOR, Permission.WITHDRAW_FUNDS)
        assert not has_permission(UserType.BRAND, Permission.WITHDRAW_FUNDS)

    def test_parties_share_review_and_dispute_rights(self):
        for user_type in (UserType.BRAND, UserType.CREATOR):
            assert has_permission(user_type, Permission.LEAVE_REVIEWS)
            assert has_permission(user_type, Permission.RAISE_DISPUTES)
            assert not has_any_permission(user_type, [Permission.RESOLVE_DISPUTES, Permission.MANAGE_PAYOUTS])


class TestTokens:

    def test_round_trip(self):
        token = create_access_token("creator@example.com")
        assert decode_access_token(token).email == "creator@example.com"

    def test_expired_token(self):
        token = create_access_token("creator@example.com", expires_delta=timedelta(minutes=-5))
        assert decode_access_token(token) is None

    def test_unknown_user(self, client, funded_contract):
        headers = {"Authorization": f"Bearer {create_access_token('ghost@example.com')}"}
        assert client.get(f"{API}/contracts/{funded_contract.id}", headers=headers).status_code == 401


class TestPermissionGates:

    def test_brand_cannot_request_withdrawal(self, client, auth_headers, brand):
        response = client.post(f"{API}/balance/withdrawals", json={"amount": "10.00"}, headers=auth_headers(brand))
        assert response.status_code == 403

    def test_creator_cannot_resolve_disputes(self, client, auth_headers, funded_contract, creator):
        response = client.post(
            f"{API}/admin/disputes/{funded_contract.id}/resolve",
            json={"resolution": "cancel", "winner": "creator", "reason": "I would like my money now"},
            headers=auth_headers(creator),
        )
        assert response.status_code == 403

    def test_account_without_type_is_refused(self, client, db_session, auth_headers, brand):
        db_session.query(User).filter(User.id == brand.id).update({"user_type": None})
        db_session.commit()

        assert client.get(f"{API}/payment-methods", headers=auth_headers(brand)).status_code == 403

    def test_unknown_type_never_defaults_to_brand(self):
        with pytest.raises(AuthError) as exc:
            _get_user_type(User(email="odd@example.com", user_type=None))
        assert exc.value.status_code == 403


class TestFirstBalanceRead:

    def test_row_created_concurrently(self, client, db_session, auth_headers, creator, monkeypatch):
        creator_id = creator.id

        def lost_race(self, creator_id_, lock=True):
            self.db.add(CreatorBalance(creator_id=creator_id))
            self.db.commit()
            raise IntegrityError("INSERT INTO creator_balances", {}, Exception("UNIQUE constraint failed"))

        monkeypatch.setattr(LedgerService, "get_or_create_balance", lost_race)

        response = client.get(f"{API}/balance", headers=auth_headers(creator))

        assert response.status_code == 200
        assert response.json()["creator_id"] == creator_id
        assert db_session.query(CreatorBalance).filter(CreatorBalance.creator_id == creator_id).count() == 1

"""Tests for the token issuer: access-token round trip and refresh."""

import time
from datetime import timedelta

import jwt
import pytest

from models import utcnow
from services.errors import Forbidden, InvalidToken
from services.store import CredentialStores
from services.tokens import TokenIssuer

SECRET = "Test-Secret-Key_for-Automation-Only-987654321!"


@pytest.fixture
def stores(storage):
    return CredentialStores(storage)


@pytest.fixture
def issuer(stores):
    return TokenIssuer(stores, secret=SECRET)


class TestAccessTokens:
    def test_round_trip_returns_original_claims(self, issuer):
        token = issuer.issue_access_token("user-1", "a@x.com", "ADMIN")
        claims = issuer.validate_access_token(token)

        assert claims["userId"] == "user-1"
        assert claims["email"] == "a@x.com"
        assert claims["role"] == "ADMIN"
        assert claims["expiresAt"] - claims["issuedAt"] == 24 * 3600

    def test_expired_token_is_invalid(self, stores):
        past = utcnow() - timedelta(hours=25)
        issuer = TokenIssuer(stores, secret=SECRET, clock=lambda: past)
        token = issuer.issue_access_token("user-1", "a@x.com", "USER")

        with pytest.raises(InvalidToken):
            issuer.validate_access_token(token)

    def test_wrong_signature_is_invalid(self, issuer, stores):
        other = TokenIssuer(stores, secret="another-secret-entirely-0123456789")
        token = other.issue_access_token("user-1", "a@x.com", "USER")

        with pytest.raises(InvalidToken):
            issuer.validate_access_token(token)

    @pytest.mark.parametrize("token", ["", "not-a-jwt", "a.b.c", None, 42])
    def test_malformed_token_is_invalid(self, issuer, token):
        with pytest.raises(InvalidToken):
            issuer.validate_access_token(token)

    def test_token_without_identity_claims_is_invalid(self, issuer):
        now = int(time.time())
        token = jwt.encode(
            {"iss": "auth-service", "sub": "u", "type": "access", "iat": now, "exp": now + 60},
            SECRET,
            algorithm="HS256",
        )
        with pytest.raises(InvalidToken):
            issuer.validate_access_token(token)

    def test_all_failures_share_one_error(self, issuer, stores):
        expired = TokenIssuer(stores, secret=SECRET, clock=lambda: utcnow() - timedelta(days=2))
        messages = set()
        for token in ("garbage", expired.issue_access_token("u", "e@x.com", "USER")):
            with pytest.raises(InvalidToken) as exc:
                issuer.validate_access_token(token)
            messages.add((exc.value.error_code, exc.value.message))
        assert len(messages) == 1


class TestRefresh:
    def _store_refresh(self, issuer, stores, user, expires_at=None):
        row = issuer.new_refresh_token(user.id)
        if expires_at is not None:
            row.expires_at = expires_at
        return stores.refresh_tokens.create(row)

    def test_new_rows_expire_in_the_future(self, issuer):
        now = utcnow()
        assert issuer.new_refresh_token("u").expires_at > now + timedelta(days=6)
        assert now < issuer.new_session("u").expires_at <= now + timedelta(hours=24, seconds=5)

    def test_refresh_reads_current_claims(self, issuer, stores, storage, make_user):
        user = make_user(email="a@x.com", role="USER")
        row = self._store_refresh(issuer, stores, user)

        user.role = "ADMIN"
        user.email = "new@x.com"
        storage.save()

        token, owner = issuer.refresh(row.token)
        claims = issuer.validate_access_token(token)
        assert owner.id == user.id
        assert claims["role"] == "ADMIN"
        assert claims["email"] == "new@x.com"

    def test_unknown_refresh_token_is_invalid(self, issuer):
        with pytest.raises(InvalidToken):
            issuer.refresh("0" * 64)

    def test_expired_refresh_token_is_invalid(self, issuer, stores, make_user):
        user = make_user()
        row = self._store_refresh(issuer, stores, user, expires_at=utcnow() - timedelta(seconds=1))

        with pytest.raises(InvalidToken):
            issuer.refresh(row.token)

    def test_inactive_owner_is_forbidden(self, issuer, stores, make_user):
        user = make_user(is_active=False)
        row = self._store_refresh(issuer, stores, user)

        with pytest.raises(Forbidden):
            issuer.refresh(row.token)

from datetime import timedelta

import pytest

from models import RefreshToken, Session, User, utcnow
from services.store import CredentialStores


@pytest.fixture
def stores(storage):
    return CredentialStores(storage)


def row(model, user, token, expires_in=timedelta(hours=1)):
    return model(token=token, user_id=user.id, expires_at=utcnow() + expires_in)


@pytest.mark.parametrize("model, attr", [(RefreshToken, "refresh_tokens"), (Session, "sessions")])
class TestTokenStore:
    def test_create_and_find(self, stores, make_user, model, attr):
        store = getattr(stores, attr)
        user = make_user()
        store.create(row(model, user, "a" * 64))

        found = store.find_by_token("a" * 64)
        assert found is not None and found.user_id == user.id
        assert store.find_by_token("b" * 64) is None
        assert store.find_by_token("") is None

    def test_delete_by_token_is_idempotent(self, stores, make_user, model, attr):
        store = getattr(stores, attr)
        user = make_user()
        store.create(row(model, user, "a" * 64))
        store.create(row(model, user, "b" * 64))

        assert store.delete_by_token("a" * 64) == 1
        assert store.delete_by_token("a" * 64) == 0
        assert store.count_for_user(user.id) == 1

    def test_delete_expired_uses_strict_before(self, stores, make_user, model, attr):
        store = getattr(stores, attr)
        user = make_user()
        store.create(row(model, user, "old", expires_in=-timedelta(seconds=1)))
        store.create(row(model, user, "new", expires_in=timedelta(hours=1)))

        assert store.delete_expired(utcnow()) == 1
        assert store.find_by_token("new") is not None
        assert store.count_live(utcnow()) == 1


def test_revoke_all_for_user_reports_both_counts(stores, make_user):
    user = make_user()
    other = make_user(email="other@example.com")
    for i in range(2):
        stores.refresh_tokens.create(row(RefreshToken, user, f"r{i}"))
    stores.sessions.create(row(Session, user, "s0"))
    stores.sessions.create(row(Session, other, "s1"))

    assert stores.revoke_all_for_user(user.id) == {"sessions": 1, "refreshTokens": 2}
    assert stores.revoke_all_for_user(user.id) == {"sessions": 0, "refreshTokens": 0}
    assert stores.sessions.count_for_user(other.id) == 1


def test_deleting_a_user_cascades_to_tokens(stores, storage, make_user):
    user = make_user()
    stores.refresh_tokens.create(row(RefreshToken, user, "r"))
    stores.sessions.create(row(Session, user, "s"))

    storage.get_session().query(User).filter(User.id == user.id).delete(synchronize_session=False)
    storage.save()

    assert storage.count(RefreshToken) == 0
    assert storage.count(Session) == 0

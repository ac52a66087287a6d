"""
Session/token store adapter.

RefreshToken and Session rows share one shape (token, user_id, expires_at),
so a single TokenStore is parameterised by the model class. Every method is
one statement plus its own commit; nothing here spans two operations.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Generic, Optional, Type, TypeVar

from sqlalchemy import func

from models import RefreshToken, Session
from models.db_storage import DBStorage

logger = logging.getLogger(__name__)

T = TypeVar("T", RefreshToken, Session)


class TokenStore(Generic[T]):

    def __init__(self, storage: DBStorage, model: Type[T]):
        self.storage = storage
        self.model = model

    def _query(self):
        return self.storage.get_session().query(self.model)

    def create(self, row: T, commit: bool = True) -> T:
        self.storage.new(row)
        if commit:
            self.storage.save()
        return row

    def find_by_token(self, value: str) -> Optional[T]:
        if not value:
            return None
        return self._query().filter(self.model.token == value).first()

    def delete_by_token(self, value: str) -> int:
        count = self._query().filter(self.model.token == value).delete(synchronize_session=False)
        self.storage.save()
        return count

    def delete_all_for_user(self, user_id: str) -> int:
        count = self._query().filter(self.model.user_id == user_id).delete(synchronize_session=False)
        self.storage.save()
        return count

    def delete_expired(self, before: datetime) -> int:
        count = self._query().filter(self.model.expires_at < before).delete(synchronize_session=False)
        self.storage.save()
        return count

    def count_for_user(self, user_id: str) -> int:
        return self._query().filter(self.model.user_id == user_id).count()

    def count_live(self, at: datetime) -> int:
        return (
            self.storage.get_session()
            .query(func.count(self.model.id))
            .filter(self.model.expires_at > at)
            .scalar()
        )


class CredentialStores:
    """Refresh-token and session stores, plus the paired per-user revocation."""

    def __init__(self, storage: DBStorage):
        self.storage = storage
        self.refresh_tokens: TokenStore[RefreshToken] = TokenStore(storage, RefreshToken)
        self.sessions: TokenStore[Session] = TokenStore(storage, Session)

    def revoke_all_for_user(self, user_id: str) -> dict:
        """
        Two independent bulk deletes. If the second fails the first is not
        rolled back; both are idempotent and converge on retry or on the
        next expiry sweep.
        """
        sessions = self.sessions.delete_all_for_user(user_id)
        tokens = self.refresh_tokens.delete_all_for_user(user_id)
        logger.info("revoked %d sessions and %d refresh tokens for user %s", sessions, tokens, user_id)
        return {"sessions": sessions, "refreshTokens": tokens}

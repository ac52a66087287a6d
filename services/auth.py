"""
Request-side auth operations: register, login, refresh, logout, logout-all,
me and change-password.

Flow for a credential check: verify the password, mint tokens, persist the
store rows, then publish the outbound notification. Errors are raised as
services.errors exceptions; the API layer renders them.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Iterable, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from models import DEFAULT_ROLE, User, utcnow
from models.db_storage import DBStorage
from services import events
from services.errors import Conflict, Forbidden, InvalidCredentials, NotFound, RequestValidationError
from services.events import EventPublisher
from services.store import CredentialStores
from services.tokens import TokenIssuer
from utils.security import DEFAULT_BCRYPT_ROUNDS, hash_password, verify_password

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(
        self,
        storage: DBStorage,
        stores: CredentialStores,
        issuer: TokenIssuer,
        publisher: EventPublisher,
        bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS,
        min_password_length: int = 6,
        registration_enabled: bool = True,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.storage = storage
        self.stores = stores
        self.issuer = issuer
        self.publisher = publisher
        self.bcrypt_rounds = bcrypt_rounds
        self.min_password_length = min_password_length
        self.registration_enabled = registration_enabled
        self.clock = clock

    def _check_password_policy(self, password: str, field: str = "password") -> None:
        if len(password) < self.min_password_length:
            raise RequestValidationError(
                "Invalid input",
                details={field: [f"Password must be at least {self.min_password_length} characters long."]},
            )

    def _get_user(self, user_id: str) -> User:
        user = self.storage.get(User, user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    def _tokens_for(self, user: User) -> dict:
        return {
            "access_token": self.issuer.issue_access_token(user.id, user.email, user.role),
            "token_type": "bearer",
            "expires_in": self.issuer.access_expires_in,
        }

    def register(self, email: str, username: str, password: str, role: str = DEFAULT_ROLE) -> dict:
        """
        Create a local user and its first refresh token.

        The upstream user.registered event is published before commit: if it
        cannot be delivered the insert is rolled back, so the local replica
        never holds a user the identity service has not heard of.
        """
        if not self.registration_enabled:
            raise Forbidden("Local registration is disabled")
        self._check_password_policy(password)

        session = self.storage.get_session()
        existing = session.query(User).filter(or_(User.email == email, User.username == username)).first()
        if existing:
            raise Conflict("User with this email or username already exists")

        now = self.clock()
        user = User(
            email=email,
            username=username,
            password_hash=hash_password(password, self.bcrypt_rounds),
            role=role,
            is_active=True,
            password_changed_at=now,
        )
        refresh_row = self.issuer.new_refresh_token(user.id)
        self.storage.new(user)
        self.storage.new(refresh_row)
        try:
            session.flush()
            self.publisher.publish(
                events.USER_REGISTERED,
                userId=user.id,
                email=user.email,
                username=user.username,
                role=user.role,
            )
            self.storage.save()
        except IntegrityError:
            self.storage.rollback()
            raise Conflict("User with this email or username already exists")
        except Exception:
            self.storage.rollback()
            raise

        logger.info("registered user %s", user.id)
        tokens = self._tokens_for(user)
        tokens["refresh_token"] = refresh_row.token
        return {"user": user, "tokens": tokens}

    def login(self, email_or_username: str, password: str) -> dict:
        session = self.storage.get_session()
        user = (
            session.query(User)
            .filter(
                or_(User.email == email_or_username.lower(), User.username == email_or_username),
                User.is_active.is_(True),
            )
            .first()
        )
        # same answer for unknown user, inactive user and wrong password
        if user is None or not verify_password(password, user.password_hash):
            logger.info("login rejected")
            raise InvalidCredentials()

        refresh_row = self.issuer.new_refresh_token(user.id)
        session_row = self.issuer.new_session(user.id)
        self.stores.refresh_tokens.create(refresh_row, commit=False)
        self.stores.sessions.create(session_row, commit=False)
        self.storage.save()

        self.publisher.publish(
            events.USER_LOGGED_IN,
            userId=user.id,
            email=user.email,
            sessionToken=session_row.token,
        )
        logger.info("user %s logged in", user.id)

        tokens = self._tokens_for(user)
        tokens["refresh_token"] = refresh_row.token
        tokens["session_token"] = session_row.token
        return {"user": user, "tokens": tokens}

    def refresh(self, refresh_token: str) -> dict:
        access_token, user = self.issuer.refresh(refresh_token)
        self.publisher.publish(events.TOKEN_REFRESHED, userId=user.id, email=user.email)
        return {
            "access_token": access_token,
            "token_type": "bearer",
            "expires_in": self.issuer.access_expires_in,
        }

    def logout(self, user_id: Optional[str], refresh_token: Optional[str] = None,
               session_token: Optional[str] = None) -> None:
        if refresh_token:
            self.stores.refresh_tokens.delete_by_token(refresh_token)
        if session_token:
            self.stores.sessions.delete_by_token(session_token)
        self.publisher.publish(
            events.USER_LOGGED_OUT,
            userId=user_id,
            sessionToken=session_token,
            refreshToken=bool(refresh_token),
        )

    def logout_all(self, user_id: str) -> None:
        self.stores.revoke_all_for_user(user_id)
        self.publisher.publish(events.USER_LOGGED_OUT_ALL, userId=user_id)

    def me(self, user_id: str) -> User:
        return self._get_user(user_id)

    def change_password(self, user_id: str, current_password: str, new_password: str) -> None:
        """Replace the credential with a fresh bcrypt hash and revoke every session and refresh token."""
        self._check_password_policy(new_password, field="new_password")
        user = self._get_user(user_id)
        if not user.is_active:
            raise Forbidden("User account is inactive")
        if not verify_password(current_password, user.password_hash):
            raise InvalidCredentials("Current password is incorrect")

        now = self.clock()
        user.password_hash = hash_password(new_password, self.bcrypt_rounds)
        user.password_changed_at = now
        user.updated_at = now
        self.storage.new(user)
        self.storage.save()

        self.stores.revoke_all_for_user(user.id)
        self.publisher.publish(events.USER_PASSWORD_CHANGED, userId=user.id, email=user.email)
        logger.info("password changed for user %s", user.id)

    def require_active(self, user_id: str) -> User:
        """Load the caller; a deactivated account is refused even with a valid token."""
        user = self._get_user(user_id)
        if not user.is_active:
            raise Forbidden("User account is inactive")
        return user

    def require_role(self, user_id: str, roles: Iterable[str]) -> User:
        """Current role and active flag are read from the store, not from token claims."""
        user = self.storage.get(User, user_id)
        if user is None or not user.is_active or user.role not in set(roles):
            raise Forbidden("Insufficient permissions")
        return user

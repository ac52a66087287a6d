"""
Token issuer.

Access tokens are stateless JWTs carrying {userId, email, role}; once issued
they stay valid until they expire. Refresh tokens and sessions are opaque
random values backed by a store row, so they can be revoked at any time.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Tuple

import jwt

from models import RefreshToken, Session, User, utcnow
from services.errors import Forbidden, InvalidToken
from services.store import CredentialStores
from utils.security import generate_opaque_token

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
CLAIM_KEYS = ("userId", "email", "role")


def _epoch(moment: datetime) -> int:
    return int(moment.replace(tzinfo=timezone.utc).timestamp())


class TokenIssuer:
    def __init__(
        self,
        stores: CredentialStores,
        secret: str,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(hours=24),
        refresh_ttl: timedelta = timedelta(days=7),
        session_ttl: timedelta = timedelta(hours=24),
        issuer: str = "auth-service",
        clock: Callable[[], datetime] = utcnow,
    ):
        self.stores = stores
        self.secret = secret
        self.algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.session_ttl = session_ttl
        self.issuer = issuer
        self.clock = clock

    @property
    def access_expires_in(self) -> int:
        return int(self.access_ttl.total_seconds())

    def issue_access_token(self, user_id: str, email: str, role: str) -> str:
        issued_at = self.clock()
        payload = {
            "iss": self.issuer,
            "sub": str(user_id),
            "userId": str(user_id),
            "email": email,
            "role": role,
            "type": ACCESS_TOKEN_TYPE,
            "iat": _epoch(issued_at),
            "exp": _epoch(issued_at + self.access_ttl),
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def validate_access_token(self, token: Any) -> Dict[str, Any]:
        """
        Return {userId, email, role, issuedAt, expiresAt} for a valid token.
        Any failure (bad signature, expired, malformed, wrong type) is the same InvalidToken.
        """
        if not isinstance(token, str) or not token:
            raise InvalidToken()
        try:
            decoded = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.PyJWTError as exc:
            logger.debug("rejected access token: %s", exc.__class__.__name__)
            raise InvalidToken() from None

        if decoded.get("type") != ACCESS_TOKEN_TYPE or not all(decoded.get(k) for k in CLAIM_KEYS):
            raise InvalidToken()
        return {
            "userId": decoded["userId"],
            "email": decoded["email"],
            "role": decoded["role"],
            "issuedAt": decoded["iat"],
            "expiresAt": decoded["exp"],
        }

    def new_refresh_token(self, user_id: str) -> RefreshToken:
        """Build (not persist) a refresh-token row expiring refresh_ttl from now."""
        return RefreshToken(
            token=generate_opaque_token(),
            user_id=user_id,
            expires_at=self.clock() + self.refresh_ttl,
        )

    def new_session(self, user_id: str) -> Session:
        """Build (not persist) a session row expiring session_ttl from now."""
        return Session(
            token=generate_opaque_token(),
            user_id=user_id,
            expires_at=self.clock() + self.session_ttl,
        )

    def refresh(self, value: str) -> Tuple[str, User]:
        """
        Mint a new access token from a stored refresh token.

        Claims are re-read from the owning user now, so role and email
        changes show up without a full login.
        """
        row = self.stores.refresh_tokens.find_by_token(value)
        if row is None or row.expires_at <= self.clock():
            raise InvalidToken("Invalid or expired refresh token")
        user = row.user
        if user is None:
            raise InvalidToken("Invalid or expired refresh token")
        if not user.is_active:
            raise Forbidden("User account is inactive")
        return self.issue_access_token(user.id, user.email, user.role), user

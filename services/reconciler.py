"""
Identity reconciler.

Applies user lifecycle events from the users service to the local replica.
Delivery is at-least-once and unordered, so every handler is a state
transition keyed by a natural identifier that converges when replayed:

- user.created      insert-if-absent by email (or upstream id)
- user.profileUpdated  touch updated_at only; profile fields live upstream
- user.deactivated  active=False, then revoke sessions and refresh tokens
- user.reactivated  active=True; revoked tokens stay revoked

Failure policy: a malformed or inconsistent event is logged and dropped,
since redelivery cannot fix it. A store failure is re-raised (so the
transport redelivers) when retry_on_store_failure is set, else dropped.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from marshmallow import ValidationError
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models import User, utcnow
from models.db_storage import DBStorage
from models.schemas.events import UserCreatedSchema, UserRefSchema
from services import events
from services.errors import EventProcessingError
from services.events import Transport
from services.store import CredentialStores
from utils.security import CredentialKind, classify_credential

logger = logging.getLogger(__name__)

user_created_schema = UserCreatedSchema()
user_ref_schema = UserRefSchema()


def parse_event_time(value: Any) -> Optional[datetime]:
    """Epoch milliseconds or an ISO-8601 string, as naive UTC. None when absent or unreadable."""
    if value is None or value == "":
        return None
    try:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc).replace(tzinfo=None)
        if isinstance(value, str):
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
            if parsed.tzinfo is not None:
                parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
            return parsed
    except (ValueError, OverflowError, OSError):
        pass
    logger.warning("ignoring unreadable event timestamp %r", value)
    return None


class IdentityReconciler:
    def __init__(
        self,
        storage: DBStorage,
        stores: CredentialStores,
        retry_on_store_failure: bool = True,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.storage = storage
        self.stores = stores
        self.retry_on_store_failure = retry_on_store_failure
        self.clock = clock
        self._handlers: Dict[str, Callable[[Dict[str, Any]], Any]] = {
            events.USER_CREATED: self.apply_user_created,
            events.USER_PROFILE_UPDATED: self.apply_profile_updated,
            events.USER_DEACTIVATED: self.apply_deactivated,
            events.USER_REACTIVATED: self.apply_reactivated,
        }

    def subscribe(self, transport: Transport) -> None:
        """Register one consumer per inbound topic."""
        for topic in self._handlers:
            transport.subscribe(topic, self._consumer(topic))
        logger.info("identity reconciler consuming %s", ", ".join(self._handlers))

    def _consumer(self, topic: str):
        def consume(payload: Dict[str, Any]) -> None:
            self.handle(topic, payload)
        return consume

    def handle(self, topic: str, payload: Dict[str, Any]) -> bool:
        """
        Apply one delivery. Returns True when applied, False when dropped.
        Raises only to ask the transport for redelivery.
        """
        handler = self._handlers.get(topic)
        if handler is None:
            logger.warning("dropping event on unhandled topic %s", topic)
            return False
        try:
            handler(payload if isinstance(payload, dict) else {})
            return True
        except EventProcessingError as exc:
            logger.warning("dropping %s event: %s", topic, exc.reason)
            return False
        except SQLAlchemyError:
            if self.retry_on_store_failure:
                logger.exception("store failure applying %s; requesting redelivery", topic)
                raise
            logger.exception("store failure applying %s; dropping", topic)
            return False
        finally:
            self.storage.close()

    def _load(self, schema, topic: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            return schema.load(payload)
        except ValidationError as err:
            raise EventProcessingError(topic, f"invalid payload {err.messages}")

    def _require_user(self, topic: str, user_id: str) -> User:
        user = self.storage.get(User, user_id)
        if user is None:
            raise EventProcessingError(topic, f"unknown user {user_id}")
        return user

    def apply_user_created(self, payload: Dict[str, Any]) -> User:
        topic = events.USER_CREATED
        data = self._load(user_created_schema, topic, payload)
        # stored as given; hashing it again would lock the user out
        credential = data["hashedPassword"] or data["password"]
        email = data["email"]
        user_id = data["userId"]

        session = self.storage.get_session()
        match = [User.email == email]
        if user_id:
            match.append(User.id == user_id)
        existing = session.query(User).filter(or_(*match)).first()
        if existing is not None:
            logger.info("user.created for %s already applied", existing.id)
            return existing

        username = data["username"] or email
        if session.query(User).filter(User.username == username).first() is not None:
            raise EventProcessingError(topic, f"username {username!r} belongs to another user")

        if classify_credential(credential) is CredentialKind.PLAIN_FALLBACK:
            # no recognised hash shape: this account only verifies by exact match
            logger.warning("user.created for %s carries an unrecognised credential encoding", email)

        now = self.clock()
        created_at = parse_event_time(data["createdAt"]) or now
        user = User(
            id=user_id,
            email=email,
            username=username,
            password_hash=credential,
            role=data["role"],
            is_active=data["isActive"],
            created_at=created_at,
            updated_at=now,
            password_changed_at=created_at,
        )
        self.storage.new(user)
        try:
            self.storage.save()
        except IntegrityError:
            # a concurrent delivery of the same event won the insert
            logger.info("user.created for %s raced a duplicate delivery", email)
            return session.query(User).filter(User.email == email).one()
        logger.info("created local user %s for %s", user.id, email)
        return user

    def apply_profile_updated(self, payload: Dict[str, Any]) -> User:
        topic = events.USER_PROFILE_UPDATED
        data = self._load(user_ref_schema, topic, payload)
        user = self._require_user(topic, data["userId"])
        user.updated_at = self.clock()
        self.storage.new(user)
        self.storage.save()
        logger.info("processed profile update for user %s", user.id)
        return user

    def apply_deactivated(self, payload: Dict[str, Any]) -> User:
        """
        Flag first, then the two bulk deletes. A crash in between leaves an
        inactive user with live rows; refresh already refuses inactive owners
        and the next delivery or sweep removes them.
        """
        topic = events.USER_DEACTIVATED
        data = self._load(user_ref_schema, topic, payload)
        user = self._require_user(topic, data["userId"])
        user.is_active = False
        self.storage.new(user)
        self.storage.save()
        self.stores.revoke_all_for_user(user.id)
        logger.info("processed deactivation for user %s", user.id)
        return user

    def apply_reactivated(self, payload: Dict[str, Any]) -> User:
        topic = events.USER_REACTIVATED
        data = self._load(user_ref_schema, topic, payload)
        user = self._require_user(topic, data["userId"])
        user.is_active = True
        self.storage.new(user)
        self.storage.save()
        logger.info("processed reactivation for user %s", user.id)
        return user

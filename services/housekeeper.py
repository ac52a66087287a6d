"""
Periodic maintenance, invoked by an external scheduler (see `flask housekeeping`).

Each operation is a bulk read or bulk delete and takes no locks, so any of
them may run concurrently with request traffic and with each other.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List

from sqlalchemy import func

from models import User, utcnow
from models.db_storage import DBStorage
from services import events
from services.events import EventPublisher
from services.store import CredentialStores

logger = logging.getLogger(__name__)


class Housekeeper:
    def __init__(
        self,
        storage: DBStorage,
        stores: CredentialStores,
        publisher: EventPublisher,
        password_max_age: timedelta = timedelta(days=90),
        clock: Callable[[], datetime] = utcnow,
    ):
        self.storage = storage
        self.stores = stores
        self.publisher = publisher
        self.password_max_age = password_max_age
        self.clock = clock

    def sweep_expired(self) -> Dict[str, int]:
        """Delete sessions and refresh tokens whose expires_at has passed; publish the counts."""
        now = self.clock()
        expired_sessions = self.stores.sessions.delete_expired(now)
        expired_tokens = self.stores.refresh_tokens.delete_expired(now)
        self.publisher.publish(
            events.SESSIONS_CLEANED_UP,
            expiredSessions=expired_sessions,
            expiredTokens=expired_tokens,
        )
        logger.info("cleaned up %d sessions and %d tokens", expired_sessions, expired_tokens)
        return {"expiredSessions": expired_sessions, "expiredTokens": expired_tokens}

    def statistics(self) -> Dict[str, int]:
        """Read-only snapshot of user, session and token counts."""
        now = self.clock()
        session = self.storage.get_session()
        total_users = session.query(func.count(User.id)).scalar()
        active_users = session.query(func.count(User.id)).filter(User.is_active.is_(True)).scalar()
        return {
            "totalUsers": total_users,
            "activeUsers": active_users,
            "activeSessions": self.stores.sessions.count_live(now),
            "activeTokens": self.stores.refresh_tokens.count_live(now),
            "inactiveUsers": total_users - active_users,
        }

    def generate_statistics(self) -> Dict[str, int]:
        stats = self.statistics()
        self.publisher.publish(events.STATISTICS_GENERATED, stats=stats)
        logger.info("auth statistics generated: %s", stats)
        return stats

    def check_password_expiry(self) -> List[str]:
        """Warn every active user whose credential is older than password_max_age."""
        now = self.clock()
        cutoff = now - self.password_max_age
        users = (
            self.storage.get_session()
            .query(User)
            .filter(User.is_active.is_(True), User.password_changed_at < cutoff)
            .all()
        )
        for user in users:
            self.publisher.publish(
                events.PASSWORD_EXPIRY_WARNING,
                userId=user.id,
                email=user.email,
                passwordAge=(now - user.password_changed_at).days,
            )
        logger.info("sent password expiry warnings to %d users", len(users))
        return [user.id for user in users]

    def sync_user_status(self) -> List[str]:
        """Re-announce every inactive user so downstream services converge."""
        users = self.storage.get_session().query(User).filter(User.is_active.is_(False)).all()
        for user in users:
            self.publisher.publish(
                events.USER_STATUS_SYNC,
                userId=user.id,
                email=user.email,
                isActive=user.is_active,
            )
        logger.info("synced status for %d inactive users", len(users))
        return [user.id for user in users]

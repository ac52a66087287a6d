"""
Event transport seam.

The broker itself is an external collaborator: anything that can publish a
JSON-able dict to a topic and deliver it at least once to subscribers. The
service only depends on the small Transport interface below.

InMemoryTransport is the default for development and tests. It delivers
synchronously and redelivers a message whose handler raised, which is enough
to exercise the idempotency and retry paths without a broker.
"""
from __future__ import annotations

import logging
import time
from collections import defaultdict
from typing import Any, Callable, Dict, List, Tuple

from services.errors import DependencyFailure, TransportError

logger = logging.getLogger(__name__)

# Inbound, published by the users service
USER_CREATED = "user.created"
USER_PROFILE_UPDATED = "user.profileUpdated"
USER_DEACTIVATED = "user.deactivated"
USER_REACTIVATED = "user.reactivated"

# Outbound
USER_REGISTERED = "user.registered"
USER_LOGGED_IN = "user.loggedIn"
TOKEN_REFRESHED = "token.refreshed"
USER_LOGGED_OUT = "user.loggedOut"
USER_LOGGED_OUT_ALL = "user.loggedOutAll"
USER_PASSWORD_CHANGED = "user.passwordChanged"
SESSIONS_CLEANED_UP = "auth.sessionsCleanedUp"
STATISTICS_GENERATED = "auth.statisticsGenerated"
PASSWORD_EXPIRY_WARNING = "auth.passwordExpiryWarning"
USER_STATUS_SYNC = "auth.userStatusSync"

Handler = Callable[[Dict[str, Any]], None]


class Transport:
    """At-least-once publish/subscribe channel."""

    def publish(self, topic: str, payload: Dict[str, Any]) -> None:
        raise NotImplementedError

    def subscribe(self, topic: str, handler: Handler) -> None:
        raise NotImplementedError

    def ping(self) -> None:
        """Raise TransportError when the channel is unusable."""


class InMemoryTransport(Transport):
    """Synchronous, process-local transport.

    A handler that raises counts as a nack: the message is delivered again,
    up to max_deliveries attempts in total, then logged and dropped.
    """

    def __init__(self, max_deliveries: int = 3):
        self.max_deliveries = max(1, max_deliveries)
        self.published: List[Tuple[str, Dict[str, Any]]] = []
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)

    def subscribe(self, topic: str, handler: Handler) -> None:
        self._handlers[topic].append(handler)

    def publish(self, topic: str, payload: Dict[str, Any]) -> None:
        self.published.append((topic, payload))
        for handler in list(self._handlers.get(topic, ())):
            self._deliver(topic, handler, payload)

    def _deliver(self, topic: str, handler: Handler, payload: Dict[str, Any]) -> None:
        for attempt in range(1, self.max_deliveries + 1):
            try:
                handler(dict(payload))
                return
            except Exception:
                logger.warning(
                    "handler for %s failed (attempt %d/%d)",
                    topic, attempt, self.max_deliveries, exc_info=True,
                )
        logger.error("dropping %s after %d failed deliveries", topic, self.max_deliveries)

    def messages(self, topic: str) -> List[Dict[str, Any]]:
        """Payloads published on a topic, oldest first."""
        return [payload for t, payload in self.published if t == topic]


def now_ms() -> int:
    return int(time.time() * 1000)


class EventPublisher:
    """Stamps outbound payloads and turns transport failures into DependencyFailure."""

    def __init__(self, transport: Transport):
        self.transport = transport

    def publish(self, topic: str, **fields: Any) -> Dict[str, Any]:
        payload = {"timestamp": now_ms(), **fields}
        try:
            self.transport.publish(topic, payload)
        except TransportError as exc:
            logger.exception("failed to publish %s", topic)
            raise DependencyFailure() from exc
        return payload

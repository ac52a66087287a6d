"""
Core of the auth service: credential checks, token lifecycle, identity
reconciliation and housekeeping. Nothing in this package imports Flask;
every component receives its store and transport at construction.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from models import utcnow
from models.db_storage import DBStorage
from services.auth import AuthService
from services.events import EventPublisher, Transport
from services.housekeeper import Housekeeper
from services.reconciler import IdentityReconciler
from services.store import CredentialStores
from services.tokens import TokenIssuer


@dataclass
class AuthComponents:
    storage: DBStorage
    transport: Transport
    stores: CredentialStores
    issuer: TokenIssuer
    auth: AuthService
    reconciler: IdentityReconciler
    housekeeper: Housekeeper


def build_components(storage: DBStorage, transport: Transport, config,
                     clock: Callable[[], datetime] = utcnow) -> AuthComponents:
    """Wire every component from a config mapping (Flask's app.config or a plain dict)."""
    stores = CredentialStores(storage)
    publisher = EventPublisher(transport)
    issuer = TokenIssuer(
        stores,
        secret=config["JWT_SECRET"],
        algorithm=config.get("JWT_ALGORITHM", "HS256"),
        access_ttl=config.get("ACCESS_TOKEN_EXPIRES", timedelta(hours=24)),
        refresh_ttl=config.get("REFRESH_TOKEN_EXPIRES", timedelta(days=7)),
        session_ttl=config.get("SESSION_EXPIRES", timedelta(hours=24)),
        issuer=config.get("JWT_ISSUER", "auth-service"),
        clock=clock,
    )
    auth = AuthService(
        storage,
        stores,
        issuer,
        publisher,
        bcrypt_rounds=config.get("BCRYPT_ROUNDS", 12),
        min_password_length=config.get("MIN_PASSWORD_LENGTH", 6),
        registration_enabled=config.get("LOCAL_REGISTRATION_ENABLED", True),
        clock=clock,
    )
    reconciler = IdentityReconciler(
        storage,
        stores,
        retry_on_store_failure=config.get("EVENT_RETRY_ON_STORE_FAILURE", True),
        clock=clock,
    )
    housekeeper = Housekeeper(
        storage,
        stores,
        publisher,
        password_max_age=timedelta(days=config.get("PASSWORD_MAX_AGE_DAYS", 90)),
        clock=clock,
    )
    return AuthComponents(
        storage=storage,
        transport=transport,
        stores=stores,
        issuer=issuer,
        auth=auth,
        reconciler=reconciler,
        housekeeper=housekeeper,
    )

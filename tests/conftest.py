import os
import sys
from datetime import timedelta
from pathlib import Path

os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-testing-only")

import pytest  # noqa: E402

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from api import create_app  # noqa: E402
from models import DBStorage, User, utcnow  # noqa: E402
from services import build_components  # noqa: E402
from services.events import InMemoryTransport  # noqa: E402
from utils.security import hash_password  # noqa: E402


@pytest.fixture
def settings():
    """Plain-dict config for building components without Flask."""
    return {
        "JWT_SECRET": "Test-Secret-Key_for-Automation-Only-987654321!",
        "JWT_ALGORITHM": "HS256",
        "ACCESS_TOKEN_EXPIRES": timedelta(hours=24),
        "REFRESH_TOKEN_EXPIRES": timedelta(days=7),
        "SESSION_EXPIRES": timedelta(hours=24),
        "BCRYPT_ROUNDS": 4,
        "MIN_PASSWORD_LENGTH": 6,
        "PASSWORD_MAX_AGE_DAYS": 90,
        "EVENT_RETRY_ON_STORE_FAILURE": True,
    }


@pytest.fixture
def storage():
    store = DBStorage("sqlite://")
    store.reload()
    yield store
    store.close()
    store.drop_all()


@pytest.fixture
def transport():
    return InMemoryTransport(max_deliveries=3)


@pytest.fixture
def parts(storage, transport, settings):
    components = build_components(storage, transport, settings)
    components.reconciler.subscribe(transport)
    return components


@pytest.fixture
def make_user(storage):
    """Insert a user directly, bypassing registration."""
    def _make(email="user@example.com", username=None, password="secret123",
              password_hash=None, role="USER", is_active=True, password_changed_at=None):
        user = User(
            email=email,
            username=username or email.split("@")[0],
            password_hash=password_hash or hash_password(password, rounds=4),
            role=role,
            is_active=is_active,
            password_changed_at=password_changed_at or utcnow(),
        )
        storage.new(user)
        storage.save()
        return user
    return _make


@pytest.fixture
def app(transport):
    app = create_app("testing", transport=transport)
    yield app
    app.extensions["auth"].storage.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def app_parts(app):
    return app.extensions["auth"]

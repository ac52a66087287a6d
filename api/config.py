"""
Environment-aware configuration.
Values come from the environment (a .env file is read if present).
Durations are textual: "24h", "7d", "30m", "45s" or a bare number of seconds.
"""
import os
import re
from dotenv import load_dotenv
from datetime import timedelta

load_dotenv()  # Read .env if present

DEFAULT_JWT_SECRET = "dev-secret-change-me"

_DURATION = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_UNITS = {"": "seconds", "s": "seconds", "m": "minutes", "h": "hours", "d": "days"}


def parse_duration(value: str) -> timedelta:
    """Parse "24h" style durations. Raises ValueError on anything else, zero included."""
    match = _DURATION.match(str(value).lower())
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    if int(amount) <= 0:
        raise ValueError(f"Duration must be positive: {value!r}")
    return timedelta(**{_UNITS[unit]: int(amount)})


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")  # Set a strong key in production
    DEBUG = False
    TESTING = False
    # CORS: in dev we usually allow '*', in prod supply a comma-separated list in env
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    APP_ENV = os.getenv("APP_ENV", "dev")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///auth-service.db")
    SQL_ECHO = _flag("SQL_ECHO", "false")

    # Access tokens (JWT)
    JWT_SECRET = os.getenv("JWT_SECRET", DEFAULT_JWT_SECRET)
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_ISSUER = os.getenv("JWT_ISSUER", "auth-service")
    JWT_EXPIRES_IN = os.getenv("JWT_EXPIRES_IN", "24h")
    ACCESS_TOKEN_EXPIRES = parse_duration(JWT_EXPIRES_IN)

    # Opaque, store-backed tokens
    REFRESH_TOKEN_EXPIRES = parse_duration(os.getenv("REFRESH_TOKEN_EXPIRES_IN", "7d"))
    SESSION_EXPIRES = parse_duration(os.getenv("SESSION_EXPIRES_IN", "24h"))

    # Credentials
    BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))
    MIN_PASSWORD_LENGTH = int(os.getenv("MIN_PASSWORD_LENGTH", "6"))
    PASSWORD_MAX_AGE_DAYS = int(os.getenv("PASSWORD_MAX_AGE_DAYS", "90"))
    LOCAL_REGISTRATION_ENABLED = _flag("LOCAL_REGISTRATION_ENABLED", "true")

    # Event consumption
    EVENT_RETRY_ON_STORE_FAILURE = _flag("EVENT_RETRY_ON_STORE_FAILURE", "true")
    EVENT_MAX_DELIVERIES = int(os.getenv("EVENT_MAX_DELIVERIES", "3"))

    SERVICE_VERSION = os.getenv("SERVICE_VERSION", "1.0.0")


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    # In dev, propagate exceptions so our error handler has full context
    PROPAGATE_EXCEPTIONS = True


class TestingConfig(BaseConfig):
    TESTING = True
    DATABASE_URL = "sqlite://"
    SQL_ECHO = False
    JWT_SECRET = "test-secret-key-for-testing-only"
    BCRYPT_ROUNDS = 4
    LOG_LEVEL = "DEBUG"


class ProductionConfig(BaseConfig):
    DEBUG = False


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/test/prod).
    """
    if name:
        name = name.lower()
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        if ProductionConfig.JWT_SECRET == DEFAULT_JWT_SECRET:
            raise RuntimeError("JWT_SECRET must be set in production")
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig

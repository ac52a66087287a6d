from models.base_model import Base, utcnow
from models.user import User, ROLES, DEFAULT_ROLE
from models.refresh_token import RefreshToken
from models.session import Session
from models.db_storage import DBStorage

__all__ = [
    "Base",
    "utcnow",
    "User",
    "ROLES",
    "DEFAULT_ROLE",
    "RefreshToken",
    "Session",
    "DBStorage",
]

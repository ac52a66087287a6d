from models.base_model import Base, BaseModel, utcnow
from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.orm import relationship

ROLES = ("USER", "ADMIN")
DEFAULT_ROLE = "USER"


class User(BaseModel, Base):
    """Local replica of an identity owned by the upstream users service."""

    __tablename__ = "users"
    email = Column(String(255), nullable=False, unique=True, index=True)
    username = Column(String(255), nullable=False, unique=True, index=True)
    # Encoded credential of unknown shape; see utils.security.classify_credential
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=DEFAULT_ROLE)
    is_active = Column(Boolean, nullable=False, default=True)
    password_changed_at = Column(DateTime, nullable=False, default=utcnow)

    refresh_tokens = relationship(
        "RefreshToken",
        back_populates="user",
        passive_deletes=True,
    )
    sessions = relationship(
        "Session",
        back_populates="user",
        passive_deletes=True,
    )

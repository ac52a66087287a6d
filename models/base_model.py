#!/usr/bin/env python3
"""
Shared SQLAlchemy base and mixins for the auth service.

- UUID primary key (String(36)) with defaults
- created_at / updated_at timestamps

Notes:
- All timestamps are naive UTC. SQLite drops tzinfo anyway, and comparing
  aware values against naive rows raises, so we never mix the two.
- Persistence goes through an injected DBStorage; models do not save themselves.
"""

from __future__ import annotations

from datetime import datetime, timezone
import uuid

from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import declarative_base

# Declarative base for all models
Base = declarative_base()


def utcnow() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _uuid_str() -> str:
    """Return a canonical UUIDv4 string (36 chars, with hyphens)."""
    return str(uuid.uuid4())


class BaseModel:
    """
    Base mixin for all persistent models: id, created_at, updated_at.

    Timestamps default on the Python side (utcnow) so a row built in memory
    already carries them before flush; reconciliation may pass created_at
    explicitly to mirror the upstream value.
    """

    id = Column(String(36), primary_key=True, default=_uuid_str, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __init__(self, *args, **kwargs):
        for key, value in kwargs.items():
            if key != "__class__":
                setattr(self, key, value)
        if getattr(self, "id", None) is None:
            self.id = _uuid_str()

    def __str__(self) -> str:
        return f"[{self.__class__.__name__}] ({self.id})"

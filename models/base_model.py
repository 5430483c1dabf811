#!/usr/bin/env python3
"""
Shared SQLAlchemy base and mixins for the Storefront API.

- UUID primary key (String(36)) with defaults
- created_at / updated_at timestamps
- save() that commits through the DBStorage singleton
- SoftDeleteMixin with deleted_at and a delete() that only marks the row

Notes:
- created_at also gets a Python-side default so rows inserted within the same
  second still order deterministically (search tie-break relies on it).
- SoftDelete: put the mixin FIRST in the model's inheritance list.
  Example:
    class Category(SoftDeleteMixin, BaseModel, Base): ...
"""

from __future__ import annotations

from datetime import datetime, timezone
import uuid

# Importing 'models' gives access to the global 'storage' instance (DBStorage)
# defined in models/__init__.py
import models

from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

# Declarative base for all models
Base = declarative_base()


def _uuid_str() -> str:
    """Return a canonical UUIDv4 string (36 chars, with hyphens)."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class BaseModel:
    """
    Base mixin for all persistent models.

    - id, created_at, updated_at
    - save() wired to DBStorage
    """

    id = Column(String(36), primary_key=True, default=_uuid_str, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )

    def __init__(self, *args, **kwargs):
        """
        Allow attribute initialization via kwargs without requiring a session here.
        If you pass created_at/updated_at explicitly (e.g., in tests), they will be set.
        """
        for key, value in kwargs.items():
            if key != "__class__":
                setattr(self, key, value)
        # Ensure an id exists if caller passed none
        if getattr(self, "id", None) is None:
            self.id = _uuid_str()

    def __str__(self) -> str:
        """Human-friendly representation including id and fields."""
        return f"[{self.__class__.__name__}] ({self.id}) {self.__dict__}"

    def save(self):
        """
        Update updated_at and persist the instance in its own commit.
        Multi-entity changes go through storage.transaction() instead.
        """
        self.updated_at = utcnow()
        models.storage.new(self)
        models.storage.save()


class SoftDeleteMixin:
    """
    Adds a deleted_at timestamp; delete() performs a soft delete.
    Place this mixin BEFORE BaseModel in the class base list.
    """

    deleted_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def mark_deleted(self):
        """Set deleted_at without committing; used inside a unit of work."""
        self.deleted_at = utcnow()

    def delete(self):
        """Soft delete by setting deleted_at; commits via DBStorage."""
        self.mark_deleted()
        models.storage.new(self)
        models.storage.save()

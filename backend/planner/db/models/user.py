"""User ORM model."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Column, DateTime, String, func
from sqlalchemy.dialects.postgresql import UUID

from planner.db.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    display_name = Column(String(length=120), nullable=True)
    timezone = Column(String(length=64), nullable=False, server_default="UTC")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

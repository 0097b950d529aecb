"""AI suggestion ORM model."""
from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, func, text as sa_text
from sqlalchemy.dialects.postgresql import UUID

from planner.db.base import Base
from planner.db.types import JSONContent


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Suggestion(Base):
    __tablename__ = "ai_suggestions"
    __table_args__ = (
        Index("ix_ai_suggestions_user_id", "user_id"),
        Index("ix_ai_suggestions_kind", "kind"),
        Index("ix_ai_suggestions_applied", "applied"),
        Index("ix_ai_suggestions_created_at", "created_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    # plan | briefing | reschedule
    kind = Column(String(length=20), nullable=False)
    content = Column(JSONContent, nullable=False)
    applied = Column(Boolean, nullable=False, default=False, server_default=sa_text("false"))
    archived = Column(Boolean, nullable=False, default=False, server_default=sa_text("false"))
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
    )

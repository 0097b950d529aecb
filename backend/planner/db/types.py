"""Database column type helpers."""
from __future__ import annotations

from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import JSON

# Suggestion content lives in JSONB on Postgres and plain JSON on SQLite (tests).
JSONContent = JSON().with_variant(JSONB(), "postgresql")

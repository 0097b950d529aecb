"""Database utilities and models."""

from planner.db.base import Base
from planner.db import models  # noqa: F401  (imported for side effects)

__all__ = ["Base"]

"""SQLAlchemy ORM models for Portfolio."""

from portfolio.models.base import Base
from portfolio.models.content_record import ContentRecord

__all__ = [
    "Base",
    "ContentRecord",
]

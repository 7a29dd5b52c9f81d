"""Content record model — metadata plus inline payload of a stored item."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, LargeBinary, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from portfolio.models.base import Base


class ContentRecord(Base):
    __tablename__ = "content_records"

    # Logical address, case-sensitive, never with a leading slash
    path: Mapped[str] = mapped_column(Text, primary_key=True)
    size_bytes: Mapped[int] = mapped_column(Integer, nullable=False)
    last_modified: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    placement: Mapped[str] = mapped_column(String(20), nullable=False)
    sha256: Mapped[str] = mapped_column(String(64), nullable=False)
    # Only populated for external placement; unique per stored version
    blob_key: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, unique=True)
    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Only populated for inline placement
    content: Mapped[Optional[bytes]] = mapped_column(LargeBinary, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<ContentRecord(path='{self.path}', placement='{self.placement}')>"

"""Value types of the content core."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from portfolio.services.classifier import Category


class Placement(str, Enum):
    INLINE = "inline"  # payload lives in the content record
    EXTERNAL = "external"  # payload lives in the large object store


def as_utc(value: datetime) -> datetime:
    """Normalize a timestamp to timezone-aware UTC (naive means UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class ContentItem:
    """Metadata of one stored item; the payload is resolved on demand."""

    path: str
    size: int
    last_modified: datetime
    mime_type: str
    category: Category
    placement: Placement
    sha256: str
    # Large object store key of this version; None while inline
    blob_key: str | None = None
    title: str | None = None

    @property
    def is_markdown(self) -> bool:
        return self.category == Category.MARKDOWN


@dataclass(frozen=True)
class EntryMetadata:
    """Name, size and source timestamp of an incoming or listed file."""

    name: str
    size: int
    modified: datetime

"""Content schemas — projections of stored items for listing and admin views."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from portfolio.services.classifier import Category
from portfolio.services.types import ContentItem, Placement


class ContentSummary(BaseModel):
    """Item metadata without payload."""
    path: str
    size: int
    last_modified: datetime
    mime_type: str
    category: Category
    placement: Placement
    sha256: str
    title: Optional[str] = None

    @classmethod
    def from_item(cls, item: ContentItem) -> "ContentSummary":
        return cls(
            path=item.path,
            size=item.size,
            last_modified=item.last_modified,
            mime_type=item.mime_type,
            category=item.category,
            placement=item.placement,
            sha256=item.sha256,
            title=item.title,
        )


class FileSummary(BaseModel):
    """A static or template file on disk."""
    path: str
    size: int
    last_modified: datetime
    category: Category


class UploadResult(BaseModel):
    path: str
    category: Category
    location: str


class RenameRequest(BaseModel):
    new_path: str


class DiskUsage(BaseModel):
    total_bytes: int
    used_bytes: int
    free_bytes: int
    percent: float


class ContentStats(BaseModel):
    """Storage usage across placements and filesystem roots."""
    total_items: int
    total_bytes: int
    inline_items: int
    external_items: int
    external_bytes_on_disk: int
    static_files: int
    template_files: int
    disk: DiskUsage


class ImportedEntry(BaseModel):
    raw_name: str
    path: str
    size: int
    category: Category
    title: Optional[str] = None


class ImportResult(BaseModel):
    archive: str
    entries: list[ImportedEntry]

"""Content record store — item metadata and inline payloads in SQLite."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import delete, func, select, text, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from portfolio.models.content_record import ContentRecord
from portfolio.services.classifier import Category
from portfolio.services.errors import BackendError, NotFoundError
from portfolio.services.types import ContentItem, Placement, as_utc

logger = logging.getLogger(__name__)

# Everything except the payload column
_META_COLUMNS = (
    ContentRecord.path,
    ContentRecord.size_bytes,
    ContentRecord.last_modified,
    ContentRecord.mime_type,
    ContentRecord.category,
    ContentRecord.placement,
    ContentRecord.sha256,
    ContentRecord.blob_key,
    ContentRecord.title,
)


def record_to_item(row: Any) -> ContentItem:
    """Build a ContentItem from a record row (ORM object or projected row)."""
    return ContentItem(
        path=row.path,
        size=row.size_bytes,
        last_modified=as_utc(row.last_modified),
        mime_type=row.mime_type,
        category=Category(row.category),
        placement=Placement(row.placement),
        sha256=row.sha256,
        blob_key=row.blob_key,
        title=row.title,
    )


def item_to_values(item: ContentItem, content: bytes | None) -> dict[str, Any]:
    """Column values for persisting ``item``; ``content`` only when inline."""
    return {
        "path": item.path,
        "size_bytes": item.size,
        "last_modified": as_utc(item.last_modified),
        "mime_type": item.mime_type,
        "category": item.category.value,
        "placement": item.placement.value,
        "sha256": item.sha256,
        "blob_key": item.blob_key if item.placement == Placement.EXTERNAL else None,
        "title": item.title,
        "content": content if item.placement == Placement.INLINE else None,
    }


async def _begin_immediate(session: AsyncSession) -> None:
    """Take SQLite's write lock before the first read of a read-modify-write.

    pysqlite only opens a transaction at the first DML statement, so without
    this the preceding SELECT runs outside it and another process could
    replace the row in between.
    """
    await session.execute(text("BEGIN IMMEDIATE"))


class ContentRecordStore:
    """Document-style store keyed by logical path."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def upsert(self, item: ContentItem, content: bytes | None = None) -> ContentItem | None:
        """Insert or fully replace the record at ``item.path``.

        Runs as one transaction and returns the record it replaced (or None),
        so the caller can release storage the old version referenced.
        """
        values = item_to_values(item, content)
        stmt = sqlite_insert(ContentRecord).values(**values)
        replace = {col: stmt.excluded[col] for col in values if col != "path"}
        replace["updated_at"] = func.now()
        stmt = stmt.on_conflict_do_update(index_elements=[ContentRecord.path], set_=replace)
        try:
            async with self._session_factory() as session, session.begin():
                await _begin_immediate(session)
                previous = await self._select_meta(session, item.path)
                await session.execute(stmt)
        except SQLAlchemyError as exc:
            raise BackendError(f"Failed to upsert record '{item.path}': {exc}") from exc
        logger.debug("%s record %s", "Replaced" if previous else "Inserted", item.path)
        return previous

    async def find(self, path: str) -> ContentItem:
        """Metadata for ``path`` without loading the payload."""
        try:
            async with self._session_factory() as session:
                item = await self._select_meta(session, path)
        except SQLAlchemyError as exc:
            raise BackendError(f"Failed to query record '{path}': {exc}") from exc
        if item is None:
            raise NotFoundError(path)
        return item

    async def find_with_payload(self, path: str) -> tuple[ContentItem, bytes | None]:
        """Metadata and inline payload read in one statement."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(*_META_COLUMNS, ContentRecord.content).where(ContentRecord.path == path)
                )
                row = result.one_or_none()
        except SQLAlchemyError as exc:
            raise BackendError(f"Failed to load record '{path}': {exc}") from exc
        if row is None:
            raise NotFoundError(path)
        return record_to_item(row), row.content

    async def find_all(self, category: Category | None = None) -> list[ContentItem]:
        """Every record's metadata, ordered by path; payloads are never loaded."""
        stmt = select(*_META_COLUMNS).order_by(ContentRecord.path)
        if category is not None:
            stmt = stmt.where(ContentRecord.category == category.value)
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                rows = result.all()
        except SQLAlchemyError as exc:
            raise BackendError(f"Failed to list records: {exc}") from exc
        return [record_to_item(row) for row in rows]

    async def delete(self, path: str) -> ContentItem | None:
        """Remove the record; returns what was removed, or None if absent."""
        try:
            async with self._session_factory() as session, session.begin():
                await _begin_immediate(session)
                previous = await self._select_meta(session, path)
                if previous is not None:
                    await session.execute(delete(ContentRecord).where(ContentRecord.path == path))
        except SQLAlchemyError as exc:
            raise BackendError(f"Failed to delete record '{path}': {exc}") from exc
        return previous

    async def rename(self, path: str, new_path: str) -> ContentItem | None:
        """Re-key a record, replacing any record at ``new_path``.

        Returns the record that previously lived at ``new_path``.
        """
        try:
            async with self._session_factory() as session, session.begin():
                await _begin_immediate(session)
                if await self._select_meta(session, path) is None:
                    raise NotFoundError(path)
                displaced = await self._select_meta(session, new_path)
                if displaced is not None:
                    await session.execute(delete(ContentRecord).where(ContentRecord.path == new_path))
                await session.execute(
                    update(ContentRecord)
                    .where(ContentRecord.path == path)
                    .values(path=new_path, updated_at=func.now())
                )
        except SQLAlchemyError as exc:
            raise BackendError(f"Failed to rename record '{path}': {exc}") from exc
        return displaced

    async def _select_meta(self, session: AsyncSession, path: str) -> ContentItem | None:
        result = await session.execute(select(*_META_COLUMNS).where(ContentRecord.path == path))
        row = result.one_or_none()
        return record_to_item(row) if row is not None else None

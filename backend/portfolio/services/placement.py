"""Placement engine — decides where a payload lives and mediates all access to it."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import posixpath
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterable, AsyncIterator
from weakref import WeakValueDictionary

from portfolio.schemas.content import ContentSummary
from portfolio.services import markdown
from portfolio.services.classifier import Category
from portfolio.services.errors import BackendError, InvalidInputError, NotFoundError, NotMarkdownError, RenderError
from portfolio.services.file_store import FileStore, new_blob_key
from portfolio.services.record_store import ContentRecordStore
from portfolio.services.types import ContentItem, Placement, as_utc
from portfolio.utils.hashing import hash_bytes
from portfolio.utils.mime import DEFAULT_MIME, mime_from_name
from portfolio.utils.paths import normalize_path
from portfolio.utils.streams import DEFAULT_CHUNK_SIZE, iter_bytes, read_all

logger = logging.getLogger(__name__)

INLINE_THRESHOLD = 15 << 20  # 15 MiB


class PlacementEngine:
    """Single logical API over inline (record store) and external (blob store) payloads.

    Items of at most ``threshold`` bytes are kept inline in their content
    record; larger items are streamed to the large object store under a
    per-version blob key recorded in the content record. Writers of the
    same path are serialized; different paths never wait on each other.
    """

    def __init__(
        self,
        records: ContentRecordStore,
        blobs: FileStore,
        threshold: int = INLINE_THRESHOLD,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self._records = records
        self._blobs = blobs
        self.threshold = threshold
        self._chunk_size = chunk_size
        self._locks: WeakValueDictionary[str, asyncio.Lock] = WeakValueDictionary()

    @property
    def blob_root(self) -> Path:
        return self._blobs.root

    def placement_for(self, size: int) -> Placement:
        return Placement.EXTERNAL if size > self.threshold else Placement.INLINE

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    # ── Write path ───────────────────────────────────────────────

    async def store(
        self,
        path: str,
        size: int,
        modified: datetime | None,
        mime_type: str | None,
        is_markdown: bool,
        chunks: AsyncIterable[bytes],
        title: str | None = None,
    ) -> ContentItem:
        """Store a payload at ``path``, replacing whatever was there.

        External payloads are written under a fresh blob key first; the record
        only points at it once the upsert commits, and the blob of the replaced
        version is released after that. A failed or cancelled upsert removes
        the new blob and leaves the previous version fully intact.
        """
        key = normalize_path(path)
        if size is None or size <= 0:
            raise InvalidInputError(f"size must be positive for '{key}', got {size}")

        placement = self.placement_for(size)
        # Whole seconds, as carried by HTTP dates and zip timestamps
        modified = (as_utc(modified) if modified else datetime.now(timezone.utc)).replace(microsecond=0)
        mime_type = mime_type or mime_from_name(key) or DEFAULT_MIME
        category = Category.MARKDOWN if is_markdown else Category.ASSET

        async with self._lock_for(key):
            blob_key = None
            if placement == Placement.EXTERNAL:
                blob_key = new_blob_key()
                logger.info("Storing %s externally as %s (%d bytes > %d)", key, blob_key, size, self.threshold)
                _, sha256 = await self._blobs.write(blob_key, chunks, modified, expected_size=size)
                payload = None
            else:
                logger.info("Storing %s inline (%d bytes)", key, size)
                payload = await self._buffer(key, chunks, size)
                if is_markdown:
                    try:
                        markdown.decode_markdown(payload)
                    except RenderError as exc:
                        raise InvalidInputError(f"Markdown item '{key}' is not UTF-8 text") from exc
                sha256 = hash_bytes(payload)

            item = ContentItem(
                path=key,
                size=size,
                last_modified=modified,
                mime_type=mime_type,
                category=category,
                placement=placement,
                sha256=sha256,
                blob_key=blob_key,
                title=title,
            )
            try:
                previous = await self._records.upsert(item, payload)
            except BaseException:
                if blob_key is not None:
                    await self._blobs.delete(blob_key)
                raise
            if previous is not None and previous.blob_key:
                await self._blobs.delete(previous.blob_key)
                logger.info("Released external payload %s of %s", previous.blob_key, key)
        return item

    async def _buffer(self, key: str, chunks: AsyncIterable[bytes], size: int) -> bytes:
        """Read an inline payload, refusing to hold more than the declared size."""
        buf = bytearray()
        async for chunk in chunks:
            buf.extend(chunk)
            if len(buf) > size:
                raise InvalidInputError(f"Payload for '{key}' exceeds declared size {size}")
        if len(buf) != size:
            raise InvalidInputError(
                f"Declared size {size} does not match payload of {len(buf)} bytes for '{key}'"
            )
        return bytes(buf)

    async def delete(self, path: str) -> None:
        """Remove ``path`` and any external payload; absent paths are a no-op."""
        key = normalize_path(path)
        async with self._lock_for(key):
            previous = await self._records.delete(key)
            if previous is None:
                logger.debug("Delete of missing %s ignored", key)
                return
            if previous.blob_key:
                await self._blobs.delete(previous.blob_key)
                logger.info("Released external payload %s of %s", previous.blob_key, key)
        logger.info("Deleted %s", key)

    async def rename(self, path: str, new_path: str) -> ContentItem:
        """Move an item to ``new_path``, replacing any item stored there.

        Only the record is re-keyed; an external payload keeps its blob key.
        """
        src = normalize_path(path)
        dst = normalize_path(new_path)
        if src == dst:
            return await self._records.find(src)

        first, second = sorted((src, dst))
        async with self._lock_for(first), self._lock_for(second):
            item = await self._records.find(src)
            displaced = await self._records.rename(src, dst)
            if displaced is not None and displaced.blob_key:
                await self._blobs.delete(displaced.blob_key)
        logger.info("Renamed %s -> %s", src, dst)
        return dataclasses.replace(item, path=dst)

    # ── Read path ────────────────────────────────────────────────

    async def resolve(self, path: str) -> ContentItem:
        """Look up ``path``; a miss on ``name.html`` falls back once to ``name.md``."""
        key = normalize_path(path)
        try:
            return await self._records.find(key)
        except NotFoundError:
            stem, ext = posixpath.splitext(key)
            if ext.lower() != ".html":
                raise
        try:
            item = await self._records.find(stem + ".md")
        except NotFoundError:
            raise NotFoundError(key) from None
        return dataclasses.replace(item, category=Category.MARKDOWN)

    async def open(self, path: str) -> tuple[AsyncIterator[bytes], ContentItem]:
        """Stream the payload stored at exactly ``path``.

        The returned item always describes the version being streamed. If a
        concurrent replace released the blob between the record lookup and
        opening it, the lookup is repeated once against the newer version.
        """
        key = normalize_path(path)
        item, payload = await self._records.find_with_payload(key)
        try:
            return await self._open_version(item, payload), item
        except NotFoundError:
            logger.debug("Blob %s of %s was replaced while opening; retrying", item.blob_key, key)
        item, payload = await self._records.find_with_payload(key)
        try:
            return await self._open_version(item, payload), item
        except NotFoundError as exc:
            raise BackendError(f"External payload {item.blob_key} of '{key}' is missing") from exc

    async def _open_version(self, item: ContentItem, payload: bytes | None) -> AsyncIterator[bytes]:
        if item.placement == Placement.INLINE:
            return iter_bytes(payload or b"", self._chunk_size)
        return await self._blobs.open(item.blob_key)

    async def render(self, path: str) -> tuple[str, datetime]:
        """Render a markdown item (or the ``.md`` behind an ``.html`` path) to HTML."""
        item = await self.resolve(path)
        if not item.is_markdown:
            raise NotMarkdownError(item.path)
        stream, item = await self.open(item.path)
        html = markdown.render(await read_all(stream))
        return html, item.last_modified

    # ── Listing ──────────────────────────────────────────────────

    async def list_all(self) -> list[ContentSummary]:
        return [ContentSummary.from_item(item) for item in await self._records.find_all()]

    async def list_pages(self) -> list[ContentSummary]:
        """Markdown items only, ordered by path; used for navigation menus."""
        items = await self._records.find_all(Category.MARKDOWN)
        return [ContentSummary.from_item(item) for item in items]

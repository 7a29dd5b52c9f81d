"""Content library — the core's public surface and the shared upload dispatch."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import AsyncIterator, BinaryIO

from portfolio.schemas.content import ContentStats, ContentSummary, DiskUsage, FileSummary, UploadResult
from portfolio.services.archive import ArchiveEntry, ArchiveTranscoder
from portfolio.services.classifier import STORED_CATEGORIES, Category, classify
from portfolio.services.errors import InvalidInputError
from portfolio.services.file_store import FileStore
from portfolio.services.placement import PlacementEngine
from portfolio.services.templates import TemplateRenderer
from portfolio.services.types import ContentItem, EntryMetadata, Placement
from portfolio.utils import mime
from portfolio.utils.paths import normalize_path
from portfolio.utils.storage import get_directory_size, get_disk_usage
from portfolio.utils.streams import DEFAULT_CHUNK_SIZE, PeekableStream, iter_file

logger = logging.getLogger(__name__)


class ContentLibrary:
    """Wires the placement engine, filesystem roots and archive transcoder together.

    Every incoming file, whether uploaded directly or unpacked from a bundle,
    goes through :meth:`upload`, which routes it by category.
    """

    def __init__(
        self,
        engine: PlacementEngine,
        static_root: FileStore,
        template_root: FileStore,
        templates: TemplateRenderer,
        sniff_window: int = 2048,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self.engine = engine
        self.static_root = static_root
        self.template_root = template_root
        self.templates = templates
        self._sniff_window = sniff_window
        self._chunk_size = chunk_size
        self._transcoder = ArchiveTranscoder(engine, static_root, template_root, templates)

    # ── Upload dispatch ──────────────────────────────────────────

    async def upload(
        self,
        meta: EntryMetadata,
        reader: BinaryIO,
        *,
        unpack_archives: bool = True,
        category: Category | None = None,
        title: str | None = None,
    ) -> UploadResult:
        """Route one incoming file to where its category belongs.

        Markdown and assets go to the placement engine, static files and
        templates to their filesystem roots. A bundle is unpacked when
        uploaded directly; a bundle found inside another is kept as an asset.
        ``category`` overrides the classification by name.
        """
        category = category or classify(meta.name)

        if category == Category.ARCHIVE:
            if unpack_archives:
                await self.import_archive(meta.name, reader, meta.size)
                return UploadResult(path=meta.name, category=category, location="/content")
            category = Category.ASSET

        key = normalize_path(meta.name)
        chunks = iter_file(reader, self._chunk_size)

        if category in STORED_CATEGORIES:
            stream = PeekableStream(chunks)
            if category == Category.MARKDOWN:
                mime_type = mime.mime_from_name(key) or mime.MARKDOWN_MIME
            else:
                mime_type = await mime.detect(key, stream, self._sniff_window)
            item = await self.engine.store(
                key, meta.size, meta.modified, mime_type, category == Category.MARKDOWN, stream, title=title,
            )
            return UploadResult(path=item.path, category=category, location=f"/content/{item.path}")

        root = self.static_root if category == Category.STATIC else self.template_root
        await root.write(key, chunks, meta.modified, expected_size=meta.size)
        logger.info("Wrote %s file %s", category.value, key)
        return UploadResult(path=key, category=category, location=f"/{category.value}/{key}")

    async def _upload_entry(
        self, meta: EntryMetadata, reader: BinaryIO, category: Category, title: str | None,
    ) -> UploadResult:
        return await self.upload(meta, reader, unpack_archives=False, category=category, title=title)

    # ── Placement engine surface ─────────────────────────────────

    async def store(
        self,
        path: str,
        size: int,
        modified: datetime | None,
        mime_type: str | None,
        is_markdown: bool,
        reader: BinaryIO,
    ) -> ContentItem:
        return await self.engine.store(
            path, size, modified, mime_type, is_markdown, iter_file(reader, self._chunk_size),
        )

    async def open(self, path: str) -> tuple[AsyncIterator[bytes], ContentItem]:
        return await self.engine.open(path)

    async def resolve(self, path: str) -> ContentItem:
        return await self.engine.resolve(path)

    async def render(self, path: str) -> tuple[str, datetime]:
        return await self.engine.render(path)

    async def delete(self, path: str) -> None:
        await self.engine.delete(path)

    async def rename(self, path: str, new_path: str) -> ContentItem:
        return await self.engine.rename(path, new_path)

    async def list_all(self) -> list[ContentSummary]:
        return await self.engine.list_all()

    async def list_pages(self) -> list[ContentSummary]:
        return await self.engine.list_pages()

    # ── Filesystem roots ─────────────────────────────────────────

    def _root_for(self, category: Category) -> FileStore:
        if category == Category.STATIC:
            return self.static_root
        if category == Category.TEMPLATE:
            return self.template_root
        raise InvalidInputError(f"{category.value} files are not kept on a filesystem root")

    async def list_files(self) -> list[FileSummary]:
        files = []
        for category in (Category.STATIC, Category.TEMPLATE):
            for meta in await self._root_for(category).list_entries():
                files.append(FileSummary(
                    path=meta.name, size=meta.size, last_modified=meta.modified, category=category,
                ))
        return files

    async def delete_file(self, category: Category, path: str) -> bool:
        return await self._root_for(category).delete(path)

    # ── Bundles ──────────────────────────────────────────────────

    async def import_archive(self, name: str, reader: BinaryIO, size: int) -> list[ArchiveEntry]:
        return await self._transcoder.unpack(name, reader, size, self._upload_entry)

    async def export_archive(self, writer: BinaryIO) -> list[str]:
        return await self._transcoder.pack(writer)

    # ── Admin ────────────────────────────────────────────────────

    async def stats(self) -> ContentStats:
        items = await self.engine.list_all()
        files = await self.list_files()
        external_bytes = await asyncio.to_thread(get_directory_size, self.engine.blob_root)
        disk = await asyncio.to_thread(get_disk_usage, self.engine.blob_root)
        return ContentStats(
            total_items=len(items),
            total_bytes=sum(i.size for i in items),
            inline_items=sum(1 for i in items if i.placement == Placement.INLINE),
            external_items=sum(1 for i in items if i.placement == Placement.EXTERNAL),
            external_bytes_on_disk=external_bytes,
            static_files=sum(1 for f in files if f.category == Category.STATIC),
            template_files=sum(1 for f in files if f.category == Category.TEMPLATE),
            disk=DiskUsage(**disk),
        )

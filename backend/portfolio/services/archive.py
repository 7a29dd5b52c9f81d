"""Archive transcoder — zip bundles to and from the live content set."""

from __future__ import annotations

import asyncio
import logging
import posixpath
import struct
import zipfile
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import AsyncIterable, Awaitable, BinaryIO, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from portfolio.services.classifier import Category, classify
from portfolio.services.errors import InvalidInputError
from portfolio.services.file_store import FileStore
from portfolio.services.placement import PlacementEngine
from portfolio.services.templates import TemplateRenderer, html_name, page_title
from portfolio.services.types import EntryMetadata, as_utc
from portfolio.utils.paths import normalize_path, reroot_entry
from portfolio.utils.streams import iter_bytes

logger = logging.getLogger(__name__)

# Bundle layout
ASSETS_PREFIX = "assets"
PAGES_PREFIX = "pages"
STATIC_PREFIX = "static"
TEMPLATES_PREFIX = "templates"
INDEX_NAME = "index.html"
MANIFEST_NAME = "config.json"

_LAYOUT_PREFIX = {
    Category.MARKDOWN: ASSETS_PREFIX,
    Category.ASSET: ASSETS_PREFIX,
    Category.ARCHIVE: ASSETS_PREFIX,
    Category.STATIC: STATIC_PREFIX,
    Category.TEMPLATE: TEMPLATES_PREFIX,
}

_ZIP_EPOCH = datetime(1980, 1, 1, tzinfo=timezone.utc)

# Info-ZIP extended timestamp extra field: flags byte, then a 32-bit unix mtime
_EXT_TIMESTAMP_ID = 0x5455
_EXT_TIMESTAMP_MTIME = 0x01

Dispatch = Callable[[EntryMetadata, BinaryIO, Category, Optional[str]], Awaitable[object]]


class ManifestEntry(BaseModel):
    """Per-file settings from a bundle's ``config.json``."""

    model_config = ConfigDict(populate_by_name=True)

    file: str
    title: Optional[str] = None
    url: Optional[str] = None
    category: Optional[Category] = Field(default=None, alias="type")

    @field_validator("category")
    @classmethod
    def _not_archive(cls, v: Optional[Category]) -> Optional[Category]:
        if v == Category.ARCHIVE:
            raise ValueError("a bundle entry cannot be re-typed as an archive")
        return v


_MANIFEST = TypeAdapter(list[ManifestEntry])


def parse_manifest(data: bytes) -> dict[str, ManifestEntry]:
    """Manifest entries keyed by their normalized ``file`` path."""
    try:
        entries = _MANIFEST.validate_json(data)
    except ValidationError as exc:
        raise InvalidInputError(f"Invalid {MANIFEST_NAME}: {exc}") from exc
    return {normalize_path(e.file): e for e in entries}


@dataclass(frozen=True)
class ArchiveEntry:
    """One file entry of a bundle being unpacked."""

    raw_name: str
    normalized_path: str
    size: int
    modified: datetime
    category: Category
    title: str | None = None


def strip_layout_prefix(path: str, category: Category) -> str:
    """Drop the bundle layout directory an exported entry was written under."""
    head, sep, rest = path.partition("/")
    if sep and rest and head == _LAYOUT_PREFIX[category]:
        return rest
    return path


def extended_mtime(extra: bytes) -> datetime | None:
    """Modification time from an extended timestamp extra field, if present."""
    pos = 0
    while pos + 4 <= len(extra):
        header_id, length = struct.unpack_from("<HH", extra, pos)
        body = extra[pos + 4:pos + 4 + length]
        if header_id == _EXT_TIMESTAMP_ID and len(body) >= 5 and body[0] & _EXT_TIMESTAMP_MTIME:
            (mtime,) = struct.unpack_from("<l", body, 1)
            return datetime.fromtimestamp(mtime, tz=timezone.utc)
        pos += 4 + length
    return None


def describe_entry(
    archive_name: str,
    info: zipfile.ZipInfo,
    manifest: dict[str, ManifestEntry] | None = None,
) -> ArchiveEntry:
    """Classify and normalize one zip member (raises TraversalRejectedError).

    A manifest entry for the member, matched by its path inside the bundle
    or its path after the layout prefix is stripped, may override the
    stored path, the category and the page title.
    """
    rerooted = reroot_entry(archive_name, info.filename)
    category = classify(posixpath.basename(info.filename))
    path = strip_layout_prefix(rerooted, category)
    title = None
    config = (manifest or {}).get(rerooted) or (manifest or {}).get(path)
    if config is not None:
        if config.url:
            path = normalize_path(config.url)
        if config.category is not None:
            category = config.category
        title = config.title

    modified = extended_mtime(info.extra)
    if modified is None:
        try:
            modified = datetime(*info.date_time, tzinfo=timezone.utc)
        except ValueError:
            # Some archivers write zeroed DOS timestamps
            modified = _ZIP_EPOCH
    return ArchiveEntry(
        raw_name=info.filename,
        normalized_path=path,
        size=info.file_size,
        modified=modified,
        category=category,
        title=title,
    )


def _zip_info(name: str, modified: datetime, size: int | None = None) -> zipfile.ZipInfo:
    modified = as_utc(modified)
    info = zipfile.ZipInfo(name, date_time=max(modified, _ZIP_EPOCH).timetuple()[:6])
    info.compress_type = zipfile.ZIP_DEFLATED
    # DOS times have two-second resolution; keep the exact second alongside
    mtime = int(modified.timestamp())
    if -(1 << 31) <= mtime < (1 << 31):
        info.extra = struct.pack("<HHBl", _EXT_TIMESTAMP_ID, 5, _EXT_TIMESTAMP_MTIME, mtime)
    if size is not None:
        info.file_size = size
    return info


class ArchiveTranscoder:
    """Unpacks uploaded bundles through a dispatch callable and packs exports."""

    def __init__(
        self,
        engine: PlacementEngine,
        static_root: FileStore,
        template_root: FileStore,
        templates: TemplateRenderer,
    ):
        self._engine = engine
        self._static = static_root
        self._templates_root = template_root
        self._templates = templates

    # ── Import ───────────────────────────────────────────────────

    async def unpack(
        self,
        archive_name: str,
        fileobj: BinaryIO,
        size: int,
        dispatch: Dispatch,
    ) -> list[ArchiveEntry]:
        """Feed every file entry of the bundle to ``dispatch`` in archive order.

        A ``config.json`` at the bundle root is read first and applied to the
        entries it names; it is not imported itself. The first failing entry
        aborts the import with its error; entries dispatched before it stay
        applied.
        """
        if size is None or size <= 0:
            raise InvalidInputError(f"Archive '{archive_name}' is empty")
        try:
            zf = zipfile.ZipFile(fileobj)
        except zipfile.BadZipFile as exc:
            raise InvalidInputError(f"'{archive_name}' is not a zip archive: {exc}") from exc

        imported: list[ArchiveEntry] = []
        with zf:
            members = [info for info in zf.infolist() if not info.is_dir()]
            manifest_info = self._find_manifest(archive_name, members)
            manifest = None
            if manifest_info is not None:
                manifest = parse_manifest(await asyncio.to_thread(zf.read, manifest_info))
                logger.info("Applying %s with %d entries from %s", MANIFEST_NAME, len(manifest), archive_name)

            for info in members:
                if info is manifest_info:
                    continue
                entry = describe_entry(archive_name, info, manifest)
                logger.debug("Archive entry %s -> %s (%s)", entry.raw_name, entry.normalized_path, entry.category.value)
                meta = EntryMetadata(name=entry.normalized_path, size=entry.size, modified=entry.modified)
                try:
                    with zf.open(info) as member:
                        await dispatch(meta, member, entry.category, entry.title)
                except zipfile.BadZipFile as exc:
                    raise InvalidInputError(f"Corrupt archive entry {entry.raw_name!r}: {exc}") from exc
                imported.append(entry)

        logger.info("Imported %d entries from %s", len(imported), archive_name)
        return imported

    @staticmethod
    def _find_manifest(archive_name: str, members: list[zipfile.ZipInfo]) -> zipfile.ZipInfo | None:
        for info in members:
            if posixpath.basename(info.filename) != MANIFEST_NAME:
                continue
            if reroot_entry(archive_name, info.filename) == MANIFEST_NAME:
                return info
        return None

    # ── Export ───────────────────────────────────────────────────

    async def pack(self, fileobj: BinaryIO) -> list[str]:
        """Write the whole content set, rendered pages and filesystem roots as a zip.

        The first ``index.html`` / ``index.md`` encountered becomes the bundle's
        root ``index.html``; without one, a fallback index is synthesized.
        Item titles are written to a root ``config.json`` so a re-import
        restores them.
        """
        written: list[str] = []
        titled: list[ManifestEntry] = []
        index_written = False

        with zipfile.ZipFile(fileobj, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for summary in await self._engine.list_all():
                stream, item = await self._engine.open(summary.path)
                name = f"{ASSETS_PREFIX}/{item.path}"
                await self._write_stream(zf, _zip_info(name, item.last_modified, item.size), stream)
                written.append(name)
                if item.title:
                    titled.append(ManifestEntry(file=name, title=item.title))

                if not item.is_markdown:
                    continue
                body, modified = await self._engine.render(item.path)
                html = self._templates.render_page(item.title or page_title(item.path), body, modified)
                if not index_written and posixpath.basename(item.path).lower() == "index.md":
                    name = INDEX_NAME
                    index_written = True
                else:
                    name = f"{PAGES_PREFIX}/{html_name(item.path)}"
                await self._write_bytes(zf, _zip_info(name, modified), html.encode("utf-8"))
                written.append(name)

            for root, prefix in ((self._static, STATIC_PREFIX), (self._templates_root, TEMPLATES_PREFIX)):
                for meta in await root.list_entries():
                    if (
                        root is self._static
                        and not index_written
                        and posixpath.basename(meta.name) == INDEX_NAME
                    ):
                        name = INDEX_NAME
                        index_written = True
                    else:
                        name = f"{prefix}/{meta.name}"
                    stream = await root.open(meta.name)
                    await self._write_stream(zf, _zip_info(name, meta.modified, meta.size), stream)
                    written.append(name)

            if titled:
                data = _MANIFEST.dump_json(titled, by_alias=True, exclude_none=True)
                await self._write_bytes(zf, _zip_info(MANIFEST_NAME, datetime.now(timezone.utc)), data)
                written.append(MANIFEST_NAME)

            if not index_written:
                pages = await self._engine.list_pages()
                html = self._templates.render_index(pages, prefix=f"{PAGES_PREFIX}/")
                await self._write_bytes(zf, _zip_info(INDEX_NAME, datetime.now(timezone.utc)), html.encode("utf-8"))
                written.append(INDEX_NAME)
                logger.info("No index page found; synthesized fallback index")

        logger.info("Exported %d entries", len(written))
        return written

    async def _write_stream(self, zf: zipfile.ZipFile, info: zipfile.ZipInfo, stream: AsyncIterable[bytes]) -> None:
        with zf.open(info, mode="w") as dst:
            async for chunk in stream:
                await asyncio.to_thread(dst.write, chunk)

    async def _write_bytes(self, zf: zipfile.ZipFile, info: zipfile.ZipInfo, data: bytes) -> None:
        info.file_size = len(data)
        await self._write_stream(zf, info, iter_bytes(data))

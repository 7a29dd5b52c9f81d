"""Content services — singleton registry."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from portfolio.config import settings

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from portfolio.services.library import ContentLibrary

logger = logging.getLogger(__name__)

_content_library: ContentLibrary | None = None


def build_library(session_factory: async_sessionmaker[AsyncSession]) -> ContentLibrary:
    """Wire stores, placement engine and renderer from the current settings."""
    from portfolio.services.file_store import FileStore
    from portfolio.services.library import ContentLibrary
    from portfolio.services.placement import PlacementEngine
    from portfolio.services.record_store import ContentRecordStore
    from portfolio.services.templates import TemplateRenderer

    chunk = settings.stream_chunk_bytes
    engine = PlacementEngine(
        records=ContentRecordStore(session_factory),
        blobs=FileStore(settings.blob_dir, chunk),
        threshold=settings.inline_threshold_bytes,
        chunk_size=chunk,
    )
    return ContentLibrary(
        engine=engine,
        static_root=FileStore(settings.static_dir, chunk),
        template_root=FileStore(settings.template_dir, chunk),
        templates=TemplateRenderer(settings.template_dir),
        sniff_window=settings.sniff_window_bytes,
        chunk_size=chunk,
    )


async def init_services(session_factory: async_sessionmaker[AsyncSession]) -> None:
    """Create and wire up all service singletons."""
    global _content_library
    _content_library = build_library(session_factory)
    logger.info(
        "Content library ready (inline threshold %d bytes, blobs in %s)",
        settings.inline_threshold_bytes,
        settings.blob_dir,
    )


async def shutdown_services() -> None:
    global _content_library
    _content_library = None


def get_content_library() -> ContentLibrary:
    if _content_library is None:
        raise RuntimeError("Services not initialized — call init_services() first")
    return _content_library

"""Content routes — read, upload, delete and rename stored items."""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Header, Response, UploadFile, status
from fastapi.responses import HTMLResponse, StreamingResponse

from portfolio.api.deps import get_current_admin, get_library
from portfolio.api.errors import content_errors
from portfolio.schemas.content import ContentSummary, RenameRequest, UploadResult
from portfolio.services.library import ContentLibrary
from portfolio.services.templates import page_title
from portfolio.services.types import ContentItem, EntryMetadata

logger = logging.getLogger(__name__)
router = APIRouter()


def _cache_headers(item: ContentItem) -> dict[str, str]:
    return {
        "ETag": f'"{item.sha256}"',
        "Last-Modified": format_datetime(item.last_modified, usegmt=True),
    }


def upload_size(upload: UploadFile) -> int:
    """Size of a spooled upload, measuring the file when the client sent none."""
    if upload.size is not None:
        return upload.size
    f = upload.file
    f.seek(0, os.SEEK_END)
    size = f.tell()
    f.seek(0)
    return size


@router.get("", response_model=list[ContentSummary])
async def list_content(
    _admin: str = Depends(get_current_admin),
    library: ContentLibrary = Depends(get_library),
):
    """Every stored item, ordered by path."""
    with content_errors():
        return await library.list_all()


@router.get("/pages", response_model=list[ContentSummary])
async def list_pages(library: ContentLibrary = Depends(get_library)):
    """Markdown pages only — the navigation menu."""
    with content_errors():
        return await library.list_pages()


@router.get("/{path:path}")
async def get_content(
    path: str,
    raw: bool = False,
    if_none_match: Optional[str] = Header(default=None),
    library: ContentLibrary = Depends(get_library),
):
    """Serve an item.

    Markdown items (including ``name.html`` resolved to ``name.md``) are
    rendered into the page shell unless ``raw`` is set; everything else is
    streamed byte-for-byte.
    """
    with content_errors():
        item = await library.resolve(path)
        headers = _cache_headers(item)
        if if_none_match and if_none_match.strip() == headers["ETag"]:
            return Response(status_code=status.HTTP_304_NOT_MODIFIED, headers=headers)

        if item.is_markdown and not raw:
            body, modified = await library.render(path)
            page = library.templates.render_page(item.title or page_title(item.path), body, modified)
            return HTMLResponse(page, headers=headers)

        stream, item = await library.open(item.path)

    headers["Content-Length"] = str(item.size)
    return StreamingResponse(stream, media_type=item.mime_type, headers=headers)


@router.put("/{path:path}", response_model=UploadResult, status_code=status.HTTP_201_CREATED)
async def upload_content(
    path: str,
    file: UploadFile = File(...),
    modified: Optional[datetime] = Form(default=None),
    _admin: str = Depends(get_current_admin),
    library: ContentLibrary = Depends(get_library),
):
    """Upload one file to ``path``; a ``.zip`` is unpacked as a bundle."""
    meta = EntryMetadata(
        name=path,
        size=upload_size(file),
        modified=modified or datetime.now(timezone.utc),
    )
    try:
        with content_errors():
            return await library.upload(meta, file.file)
    finally:
        await file.close()


@router.delete("/{path:path}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_content(
    path: str,
    _admin: str = Depends(get_current_admin),
    library: ContentLibrary = Depends(get_library),
):
    """Remove an item; deleting a missing path succeeds."""
    with content_errors():
        await library.delete(path)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{path:path}/rename", response_model=ContentSummary)
async def rename_content(
    path: str,
    body: RenameRequest,
    _admin: str = Depends(get_current_admin),
    library: ContentLibrary = Depends(get_library),
):
    with content_errors():
        item = await library.rename(path, body.new_path)
    return ContentSummary.from_item(item)

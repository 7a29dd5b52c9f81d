"""Admin routes — bundle import/export, filesystem roots and storage stats."""

from __future__ import annotations

import logging
import os
import tempfile

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile, status
from fastapi.responses import FileResponse
from starlette.background import BackgroundTask

from portfolio.api.deps import get_current_admin, get_library
from portfolio.api.errors import content_errors
from portfolio.api.routes.content import upload_size
from portfolio.schemas.content import ContentStats, FileSummary, ImportedEntry, ImportResult
from portfolio.services.classifier import Category, classify
from portfolio.services.library import ContentLibrary

logger = logging.getLogger(__name__)
router = APIRouter(dependencies=[Depends(get_current_admin)])

EXPORT_FILENAME = "portfolio-export.zip"


@router.post("/import", response_model=ImportResult)
async def import_archive(
    file: UploadFile = File(...),
    library: ContentLibrary = Depends(get_library),
):
    """Unpack a zip bundle into the live content set.

    Entries are applied in archive order; the first failing entry aborts the
    import and earlier entries stay applied.
    """
    name = file.filename or "upload.zip"
    if classify(name) != Category.ARCHIVE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Expected a .zip bundle, got '{name}'",
        )
    try:
        with content_errors():
            entries = await library.import_archive(name, file.file, upload_size(file))
    finally:
        await file.close()
    return ImportResult(
        archive=name,
        entries=[
            ImportedEntry(
                raw_name=e.raw_name, path=e.normalized_path, size=e.size, category=e.category, title=e.title,
            )
            for e in entries
        ],
    )


@router.get("/export")
async def export_archive(library: ContentLibrary = Depends(get_library)):
    """Download the whole site as a zip bundle."""
    fd, tmp_path = tempfile.mkstemp(prefix="portfolio-export-", suffix=".zip")
    try:
        with os.fdopen(fd, "w+b") as f, content_errors():
            await library.export_archive(f)
    except BaseException:
        os.unlink(tmp_path)
        raise
    return FileResponse(
        tmp_path,
        media_type="application/zip",
        filename=EXPORT_FILENAME,
        background=BackgroundTask(os.unlink, tmp_path),
    )


@router.get("/files", response_model=list[FileSummary])
async def list_files(library: ContentLibrary = Depends(get_library)):
    """Files in the static and template roots."""
    with content_errors():
        return await library.list_files()


@router.delete("/files/{category}/{path:path}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_file(
    category: Category,
    path: str,
    library: ContentLibrary = Depends(get_library),
):
    with content_errors():
        removed = await library.delete_file(category, path)
    if not removed:
        logger.debug("Delete of missing %s file %s ignored", category.value, path)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/stats", response_model=ContentStats)
async def stats(library: ContentLibrary = Depends(get_library)):
    with content_errors():
        return await library.stats()

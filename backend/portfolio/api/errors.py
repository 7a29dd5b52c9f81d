"""Translate content core errors into HTTP responses."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from fastapi import HTTPException, status

from portfolio.services.errors import (
    BackendError,
    ContentError,
    InvalidInputError,
    NotFoundError,
    NotMarkdownError,
    TraversalRejectedError,
)

logger = logging.getLogger(__name__)

_STATUS = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidInputError, status.HTTP_400_BAD_REQUEST),
    (TraversalRejectedError, status.HTTP_400_BAD_REQUEST),
    (NotMarkdownError, status.HTTP_409_CONFLICT),
)


def to_http(exc: ContentError) -> HTTPException:
    for kind, code in _STATUS:
        if isinstance(exc, kind):
            return HTTPException(status_code=code, detail=str(exc))
    if isinstance(exc, BackendError):
        logger.error("Storage backend failure: %s", exc)
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Storage backend failure",
        )
    logger.exception("Unhandled content error", exc_info=exc)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@contextmanager
def content_errors() -> Iterator[None]:
    """Re-raise any ContentError from the block as the matching HTTPException."""
    try:
        yield
    except ContentError as exc:
        raise to_http(exc) from exc

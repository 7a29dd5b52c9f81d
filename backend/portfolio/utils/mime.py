"""Mime type detection — by extension first, content sniffing second."""

from __future__ import annotations

import mimetypes
import posixpath

from portfolio.utils.streams import PeekableStream

DEFAULT_MIME = "application/octet-stream"
MARKDOWN_MIME = "text/markdown"

# Types the platform registry is known to miss or get wrong
_OVERRIDES = {
    ".md": MARKDOWN_MIME,
    ".tmpl": "text/plain",
    ".j2": "text/plain",
    ".jinja": "text/plain",
    ".js": "text/javascript",
    ".svg": "image/svg+xml",
    ".ico": "image/vnd.microsoft.icon",
}


def mime_from_name(name: str) -> str | None:
    """Mime type implied by the file extension, or None if unknown."""
    _, ext = posixpath.splitext(name.lower())
    if ext in _OVERRIDES:
        return _OVERRIDES[ext]
    mime, _ = mimetypes.guess_type(name, strict=False)
    return mime


def sniff(prefix: bytes) -> str:
    """Detect a mime type from the leading bytes of a payload.

    ``magic`` is imported on first use: importing it loads the libmagic
    shared library, and without it the server still starts and serves every
    name whose extension is known. Only extension-less uploads need it.
    """
    if not prefix:
        return DEFAULT_MIME
    import magic

    return magic.from_buffer(prefix, mime=True) or DEFAULT_MIME


async def detect(name: str, stream: PeekableStream, window: int) -> str:
    """Resolve the mime type for an upload, sniffing only when the name is silent."""
    mime = mime_from_name(name)
    if mime:
        return mime
    return sniff(await stream.peek(window))

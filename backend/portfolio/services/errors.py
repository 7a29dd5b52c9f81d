"""Error kinds surfaced by the content core."""

from __future__ import annotations


class ContentError(Exception):
    """Base class for every error raised by the content core."""


class InvalidInputError(ContentError):
    """Missing or malformed path / size before a store operation."""


class NotFoundError(ContentError):
    """No record (or backing object) exists for the requested path."""

    def __init__(self, path: str):
        super().__init__(f"No content stored at '{path}'")
        self.path = path


class NotMarkdownError(ContentError):
    """Render requested for an item that is not markdown."""

    def __init__(self, path: str):
        super().__init__(f"'{path}' is not a markdown item")
        self.path = path


class TraversalRejectedError(ContentError):
    """An archive entry path could not be made into a safe relative path."""

    def __init__(self, name: str):
        super().__init__(f"Unsafe archive entry path: {name!r}")
        self.name = name


class BackendError(ContentError):
    """Wraps a failure of the record store, blob store or filesystem."""


class RenderError(ContentError, ValueError):
    """Markdown payload is not decodable text."""

"""Type classifier — maps a file name to its content category."""

from __future__ import annotations

import posixpath
from enum import Enum


class Category(str, Enum):
    ARCHIVE = "archive"  # bundle container, unpacked on upload
    MARKDOWN = "markdown"  # rendered to HTML on read
    STATIC = "static"  # served byte-for-byte from the static root
    TEMPLATE = "template"  # page composition fragment, kept in the template root
    ASSET = "asset"  # opaque binary, the default


EXTENSION_CATEGORIES: dict[str, Category] = {
    ".zip": Category.ARCHIVE,
    ".md": Category.MARKDOWN,
    ".html": Category.STATIC,
    ".css": Category.STATIC,
    ".js": Category.STATIC,
    ".ico": Category.STATIC,
    ".svg": Category.STATIC,
    ".tmpl": Category.TEMPLATE,
    ".j2": Category.TEMPLATE,
    ".jinja": Category.TEMPLATE,
}

# Categories whose payload goes through the placement engine
STORED_CATEGORIES = frozenset({Category.MARKDOWN, Category.ASSET})


def classify(name: str) -> Category:
    """Return the category for ``name``; never raises."""
    base = posixpath.basename((name or "").replace("\\", "/"))
    _, ext = posixpath.splitext(base)
    return EXTENSION_CATEGORIES.get(ext.lower(), Category.ASSET)

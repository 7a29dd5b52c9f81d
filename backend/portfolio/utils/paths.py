"""Logical path normalization and traversal defenses."""

from __future__ import annotations

import logging
import posixpath
import re
from pathlib import Path

from portfolio.services.errors import InvalidInputError, TraversalRejectedError

logger = logging.getLogger(__name__)

_DRIVE_RE = re.compile(r"^[A-Za-z]:")


def normalize_path(path: str) -> str:
    """Canonical storage key for a caller-supplied logical path.

    Slash-separated, relative, case preserved. Empty paths and any ``.`` or
    ``..`` segment are rejected.
    """
    if not path or "\x00" in path:
        raise InvalidInputError("path must be a non-empty string")
    parts = [p for p in path.replace("\\", "/").split("/") if p]
    if not parts:
        raise InvalidInputError("path must be a non-empty string")
    if any(p in (".", "..") for p in parts):
        raise InvalidInputError(f"path must not contain relative segments: {path!r}")
    return "/".join(parts)


def archive_root(archive_name: str) -> str:
    """Virtual root directory for an archive: its base name minus extension."""
    base = posixpath.basename((archive_name or "").replace("\\", "/"))
    stem, _ = posixpath.splitext(base)
    return stem or "archive"


def reroot_entry(archive_name: str, entry_name: str) -> str:
    """Map an archive entry name to a logical path under the archive's root.

    Entry names are taken relative to the directory holding the archive, so
    ``site/about.md`` inside ``site.zip`` becomes ``about.md``. A result that
    escapes upward is re-rooted one level at a time until it no longer starts
    with ``..``; ``../../etc/passwd`` inside ``evil.zip`` becomes
    ``etc/passwd`` (that is, ``evil/etc/passwd`` in archive terms).
    """
    if not entry_name or "\x00" in entry_name:
        raise TraversalRejectedError(entry_name)
    name = entry_name.replace("\\", "/")
    name = _DRIVE_RE.sub("", name).lstrip("/")
    if not name:
        raise TraversalRejectedError(entry_name)

    root = archive_root(archive_name)
    parts = posixpath.normpath(name).split("/")
    escaped = 0
    while parts and parts[0] == "..":
        parts.pop(0)
        escaped += 1
    if escaped == 0 and len(parts) > 1 and parts[0] == root:
        parts.pop(0)
    else:
        # Relative to the root this entry sits one level further up
        escaped += 1
    # Anything still relative after re-rooting is not a usable key
    if not parts or any(p in ("", ".", "..") for p in parts):
        raise TraversalRejectedError(entry_name)
    if escaped > 1:
        logger.warning("Re-rooted archive entry %r under %s/", entry_name, root)
    return "/".join(parts)


def safe_join(base_dir: Path, key: str) -> Path:
    """Join a storage key onto ``base_dir``, refusing to leave it."""
    base_dir = base_dir.resolve()
    resolved = (base_dir / normalize_path(key)).resolve()
    if resolved == base_dir or base_dir not in resolved.parents:
        raise InvalidInputError(f"Path traversal attempt: {key!r}")
    return resolved

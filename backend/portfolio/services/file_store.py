"""Local filesystem store — large object payloads and the static/template roots."""

from __future__ import annotations

import asyncio
import logging
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterable, AsyncIterator

import aiofiles
import aiofiles.os

from portfolio.services.errors import BackendError, InvalidInputError, NotFoundError
from portfolio.services.types import EntryMetadata, as_utc
from portfolio.utils.hashing import StreamDigest
from portfolio.utils.paths import safe_join
from portfolio.utils.streams import DEFAULT_CHUNK_SIZE

logger = logging.getLogger(__name__)

_PARTIAL_SUFFIX = ".part"


def new_blob_key() -> str:
    """A fresh flat key for one stored version of an external payload."""
    return uuid.uuid4().hex


class FileStore:
    """Keyed byte storage under a single root directory.

    Keys are slash-separated relative paths. Writes stream into a temporary
    sibling file that atomically replaces the target, so readers only ever
    see a complete previous or complete new payload.
    """

    def __init__(self, root: str | Path, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.root = Path(root)
        self._chunk_size = chunk_size

    def path_for(self, key: str) -> Path:
        return safe_join(self.root, key)

    async def write(
        self,
        key: str,
        chunks: AsyncIterable[bytes],
        modified: datetime | None = None,
        expected_size: int | None = None,
    ) -> tuple[int, str]:
        """Stream ``chunks`` to ``key``; returns (bytes written, sha256).

        With ``expected_size`` set, a payload of any other length is discarded
        (an overlong one as soon as it passes the limit) and the previous
        content at ``key`` is left untouched.
        """
        target = self.path_for(key)
        partial = target.with_name(f".{target.name}.{uuid.uuid4().hex}{_PARTIAL_SUFFIX}")
        digest = StreamDigest()
        try:
            await aiofiles.os.makedirs(target.parent, exist_ok=True)
            async with aiofiles.open(partial, "wb") as f:
                async for chunk in digest.wrap(chunks):
                    if expected_size is not None and digest.size > expected_size:
                        raise InvalidInputError(f"Payload for '{key}' exceeds declared size {expected_size}")
                    await f.write(chunk)
            if expected_size is not None and digest.size != expected_size:
                raise InvalidInputError(
                    f"Declared size {expected_size} does not match payload of {digest.size} bytes for '{key}'"
                )
            if modified is not None:
                ts = as_utc(modified).timestamp()
                await asyncio.to_thread(os.utime, partial, (ts, ts))
            await aiofiles.os.replace(partial, target)
        except OSError as exc:
            await self._discard(partial)
            raise BackendError(f"Failed to write '{key}' under {self.root}: {exc}") from exc
        except BaseException:
            await self._discard(partial)
            raise
        logger.debug("Wrote %d bytes to %s", digest.size, target)
        return digest.size, digest.hexdigest()

    async def open(self, key: str) -> AsyncIterator[bytes]:
        """Open ``key`` for streaming; raises NotFoundError before any byte is read."""
        path = self.path_for(key)
        try:
            f = await aiofiles.open(path, "rb")
        except FileNotFoundError as exc:
            raise NotFoundError(key) from exc
        except OSError as exc:
            raise BackendError(f"Failed to open '{key}': {exc}") from exc
        return self._stream(f, key)

    async def _stream(self, f, key: str) -> AsyncIterator[bytes]:
        try:
            while chunk := await f.read(self._chunk_size):
                yield chunk
        except OSError as exc:
            raise BackendError(f"Failed while reading '{key}': {exc}") from exc
        finally:
            await f.close()

    async def read(self, key: str) -> bytes:
        buf = bytearray()
        async for chunk in await self.open(key):
            buf.extend(chunk)
        return bytes(buf)

    async def exists(self, key: str) -> bool:
        return bool(await aiofiles.os.path.isfile(self.path_for(key)))

    async def delete(self, key: str) -> bool:
        """Remove ``key``; returns False when nothing was stored there."""
        path = self.path_for(key)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise BackendError(f"Failed to delete '{key}': {exc}") from exc
        await self._prune(path.parent)
        return True

    async def rename(self, key: str, new_key: str) -> None:
        src = self.path_for(key)
        dst = self.path_for(new_key)
        try:
            await aiofiles.os.makedirs(dst.parent, exist_ok=True)
            await aiofiles.os.replace(src, dst)
        except FileNotFoundError as exc:
            raise NotFoundError(key) from exc
        except OSError as exc:
            raise BackendError(f"Failed to move '{key}' to '{new_key}': {exc}") from exc
        await self._prune(src.parent)

    async def stat(self, key: str) -> EntryMetadata:
        try:
            st = await aiofiles.os.stat(self.path_for(key))
        except FileNotFoundError as exc:
            raise NotFoundError(key) from exc
        except OSError as exc:
            raise BackendError(f"Failed to stat '{key}': {exc}") from exc
        return EntryMetadata(
            name=key,
            size=st.st_size,
            modified=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
        )

    async def list_entries(self) -> list[EntryMetadata]:
        """All stored keys with size and modification time, sorted by key."""
        try:
            return await asyncio.to_thread(self._scan)
        except OSError as exc:
            raise BackendError(f"Failed to list {self.root}: {exc}") from exc

    def _scan(self) -> list[EntryMetadata]:
        if not self.root.is_dir():
            return []
        entries = []
        for p in self.root.rglob("*"):
            if not p.is_file() or p.name.endswith(_PARTIAL_SUFFIX):
                continue
            st = p.stat()
            entries.append(EntryMetadata(
                name=p.relative_to(self.root).as_posix(),
                size=st.st_size,
                modified=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
            ))
        entries.sort(key=lambda e: e.name)
        return entries

    async def _discard(self, path: Path) -> None:
        try:
            await aiofiles.os.remove(path)
        except OSError:
            pass

    async def _prune(self, directory: Path) -> None:
        """Remove now-empty parent directories up to (not including) the root."""
        root = self.root.resolve()
        while directory != root and root in directory.parents:
            try:
                await aiofiles.os.rmdir(directory)
            except OSError:
                return
            directory = directory.parent

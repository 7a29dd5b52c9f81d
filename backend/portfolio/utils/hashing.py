"""SHA-256 payload hashing utilities."""

import hashlib
from typing import AsyncIterable, AsyncIterator

CHUNK_SIZE = 64 * 1024  # 64 KB


def hash_bytes(data: bytes) -> str:
    """SHA-256 hex digest of an in-memory payload."""
    return hashlib.sha256(data).hexdigest()


class StreamDigest:
    """Counts and hashes chunks while they pass through to a consumer."""

    def __init__(self) -> None:
        self._sha256 = hashlib.sha256()
        self.size = 0

    async def wrap(self, chunks: AsyncIterable[bytes]) -> AsyncIterator[bytes]:
        async for chunk in chunks:
            self._sha256.update(chunk)
            self.size += len(chunk)
            yield chunk

    def hexdigest(self) -> str:
        return self._sha256.hexdigest()

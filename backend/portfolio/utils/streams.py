"""Async byte-stream helpers shared by the stores and the transcoder."""

from __future__ import annotations

import asyncio
from typing import AsyncIterable, AsyncIterator, BinaryIO

DEFAULT_CHUNK_SIZE = 64 * 1024


async def iter_bytes(data: bytes, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[bytes]:
    """Yield an in-memory payload in bounded chunks."""
    view = memoryview(data)
    for start in range(0, len(view), chunk_size):
        yield bytes(view[start:start + chunk_size])


async def iter_file(fileobj: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[bytes]:
    """Read a blocking binary file object off the event loop, chunk by chunk."""
    while chunk := await asyncio.to_thread(fileobj.read, chunk_size):
        yield chunk


async def read_all(chunks: AsyncIterable[bytes]) -> bytes:
    """Fully materialize a stream."""
    buf = bytearray()
    async for chunk in chunks:
        buf.extend(chunk)
    return bytes(buf)


class PeekableStream:
    """Async chunk stream whose first bytes can be inspected before delivery.

    ``peek(n)`` pulls chunks from the source until at least ``n`` bytes are
    buffered (or the source ends) and returns at most ``n`` of them. Iterating
    the stream afterwards replays everything buffered, then continues with the
    live remainder, so a consumer sees one continuous payload while only the
    sniff window was ever held in memory.
    """

    def __init__(self, source: AsyncIterable[bytes]):
        self._source = source.__aiter__()
        self._buffer: list[bytes] = []
        self._buffered = 0
        self._exhausted = False
        self._consumed = False

    async def peek(self, n: int) -> bytes:
        if self._consumed:
            raise RuntimeError("Cannot peek a stream that is already being consumed")
        while self._buffered < n and not self._exhausted:
            try:
                chunk = await self._source.__anext__()
            except StopAsyncIteration:
                self._exhausted = True
                break
            if chunk:
                self._buffer.append(chunk)
                self._buffered += len(chunk)
        return b"".join(self._buffer)[:n]

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._replay()

    async def _replay(self) -> AsyncIterator[bytes]:
        self._consumed = True
        while self._buffer:
            yield self._buffer.pop(0)
        if self._exhausted:
            return
        async for chunk in self._source:
            yield chunk

"""Tests for async stream helpers and the peekable stream."""

import io

import pytest

from portfolio.utils.mime import DEFAULT_MIME, detect, mime_from_name
from portfolio.utils.streams import PeekableStream, iter_bytes, iter_file, read_all


async def _chunks(*parts: bytes):
    for part in parts:
        yield part


@pytest.mark.asyncio
async def test_iter_bytes_respects_chunk_size():
    chunks = [c async for c in iter_bytes(b"abcdefghij", chunk_size=4)]
    assert chunks == [b"abcd", b"efgh", b"ij"]


@pytest.mark.asyncio
async def test_iter_file_reads_everything():
    data = bytes(range(256)) * 3
    assert await read_all(iter_file(io.BytesIO(data), chunk_size=100)) == data


class TestPeekableStream:
    @pytest.mark.asyncio
    async def test_peek_then_iterate_yields_whole_payload(self):
        stream = PeekableStream(_chunks(b"abc", b"def", b"ghi"))
        assert await stream.peek(4) == b"abcd"
        assert await read_all(stream) == b"abcdefghi"

    @pytest.mark.asyncio
    async def test_peek_pulls_only_what_it_needs(self):
        pulled = []

        async def source():
            for part in (b"12", b"34", b"56"):
                pulled.append(part)
                yield part

        stream = PeekableStream(source())
        await stream.peek(3)
        assert pulled == [b"12", b"34"]

    @pytest.mark.asyncio
    async def test_peek_beyond_end_returns_short_prefix(self):
        stream = PeekableStream(_chunks(b"xy"))
        assert await stream.peek(10) == b"xy"
        assert await read_all(stream) == b"xy"

    @pytest.mark.asyncio
    async def test_repeated_peeks_are_stable(self):
        stream = PeekableStream(_chunks(b"ab", b"cd"))
        assert await stream.peek(1) == b"a"
        assert await stream.peek(3) == b"abc"
        assert await read_all(stream) == b"abcd"

    @pytest.mark.asyncio
    async def test_peek_after_consumption_fails(self):
        stream = PeekableStream(_chunks(b"ab"))
        await read_all(stream)
        with pytest.raises(RuntimeError):
            await stream.peek(1)


class TestMime:
    def test_markdown_override(self):
        assert mime_from_name("notes/a.md") == "text/markdown"

    def test_known_extension(self):
        assert mime_from_name("photo.png") == "image/png"

    def test_unknown_extension(self):
        assert mime_from_name("blob.unknownext") is None

    @pytest.mark.asyncio
    async def test_detect_by_name_does_not_consume_stream(self):
        stream = PeekableStream(_chunks(b"\x89PNG"))
        assert await detect("photo.png", stream, 2048) == "image/png"
        assert await read_all(stream) == b"\x89PNG"

    @pytest.mark.asyncio
    async def test_detect_sniffs_when_name_is_silent(self, monkeypatch):
        seen = []

        def fake_sniff(prefix):
            seen.append(prefix)
            return "image/gif"

        monkeypatch.setattr("portfolio.utils.mime.sniff", fake_sniff)
        stream = PeekableStream(_chunks(b"GIF89a", b"rest"))
        assert await detect("noext", stream, 4) == "image/gif"
        assert seen == [b"GIF8"]
        assert await read_all(stream) == b"GIF89arest"

    def test_empty_prefix_is_octet_stream(self):
        from portfolio.utils.mime import sniff

        assert sniff(b"") == DEFAULT_MIME

    def test_sniff_png_signature(self):
        pytest.importorskip("magic", exc_type=ImportError)
        from portfolio.utils.mime import sniff

        header = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06\x00\x00\x00\x1f\x15\xc4\x89"
        assert sniff(header) == "image/png"

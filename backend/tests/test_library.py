"""Tests for the content library facade — dispatch, filesystem roots and stats."""

import io
from datetime import datetime, timezone

import pytest

from portfolio.services.classifier import Category
from portfolio.services.errors import InvalidInputError
from portfolio.services.types import EntryMetadata
from portfolio.utils.streams import read_all

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


async def _upload(library, name, data, size=None):
    meta = EntryMetadata(name=name, size=len(data) if size is None else size, modified=NOW)
    return await library.upload(meta, io.BytesIO(data))


@pytest.mark.asyncio
async def test_upload_locations(library):
    md = await _upload(library, "blog/post.md", b"# Post\n")
    css = await _upload(library, "css/site.css", b"a{}")
    tmpl = await _upload(library, "page.tmpl", b"{{ content }}")
    png = await _upload(library, "logo.png", b"\x89PNG")

    assert (md.category, md.location) == (Category.MARKDOWN, "/content/blog/post.md")
    assert (css.category, css.location) == (Category.STATIC, "/static/css/site.css")
    assert (tmpl.category, tmpl.location) == (Category.TEMPLATE, "/template/page.tmpl")
    assert (png.category, png.location) == (Category.ASSET, "/content/logo.png")


@pytest.mark.asyncio
async def test_static_upload_size_mismatch(library):
    with pytest.raises(InvalidInputError):
        await _upload(library, "site.css", b"abc", size=10)
    assert await library.list_files() == []


@pytest.mark.asyncio
async def test_list_and_delete_files(library):
    await _upload(library, "b.css", b"b{}")
    await _upload(library, "a.js", b"1;")
    await _upload(library, "page.tmpl", b"x")

    files = await library.list_files()
    assert [(f.category, f.path) for f in files] == [
        (Category.STATIC, "a.js"),
        (Category.STATIC, "b.css"),
        (Category.TEMPLATE, "page.tmpl"),
    ]
    assert files[0].last_modified == NOW

    assert await library.delete_file(Category.STATIC, "a.js") is True
    assert await library.delete_file(Category.STATIC, "a.js") is False
    with pytest.raises(InvalidInputError):
        await library.delete_file(Category.MARKDOWN, "a.md")


@pytest.mark.asyncio
async def test_uploaded_template_overrides_page_shell(library):
    await _upload(library, "page.tmpl", b"<article>{{ content }}</article>")
    html = library.templates.render_page("t", "<p>hi</p>")
    assert html == "<article><p>hi</p></article>"


@pytest.mark.asyncio
async def test_default_page_shell_escapes_title(library):
    html = library.templates.render_page("<b>x</b>", "<p>body</p>", NOW)
    assert "<title>&lt;b&gt;x&lt;/b&gt;</title>" in html
    assert "<p>body</p>" in html
    assert "2024-01-01" in html


@pytest.mark.asyncio
async def test_stats(library):
    await _upload(library, "small.txt", b"tiny")
    await _upload(library, "big.bin", b"B" * 100)
    await _upload(library, "site.css", b"a{}")

    stats = await library.stats()
    assert stats.total_items == 2
    assert stats.total_bytes == 104
    assert stats.inline_items == 1
    assert stats.external_items == 1
    assert stats.external_bytes_on_disk == 100
    assert stats.static_files == 1
    assert stats.template_files == 0
    assert stats.disk.total_bytes > 0


# Smallest valid GIF: one transparent pixel
GIF = (
    b"GIF89a\x01\x00\x01\x00\x80\x00\x00\xff\xff\xff\x00\x00\x00"
    b"!\xf9\x04\x01\x00\x00\x00\x00,\x00\x00\x00\x00\x01\x00\x01\x00\x00\x02\x02D\x01\x00;"
)


@pytest.mark.asyncio
async def test_extensionless_upload_is_sniffed(library):
    pytest.importorskip("magic", exc_type=ImportError)
    result = await _upload(library, "media/pixel", GIF)
    assert result.category == Category.ASSET

    item = await library.resolve("media/pixel")
    assert item.mime_type == "image/gif"
    stream, _ = await library.open("media/pixel")
    assert await read_all(stream) == GIF

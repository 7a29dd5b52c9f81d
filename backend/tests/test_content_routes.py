"""Tests for the content HTTP routes."""

import hashlib

import pytest
from httpx import AsyncClient


async def _put(client: AsyncClient, headers, path: str, data: bytes, **form):
    return await client.put(
        f"/api/content/{path}",
        files={"file": (path.rsplit("/", 1)[-1], data)},
        data=form,
        headers=headers,
    )


@pytest.mark.asyncio
async def test_upload_then_fetch_raw(client: AsyncClient, auth_headers):
    png = b"\x89PNG\r\n\x1a\n"
    resp = await _put(client, auth_headers, "img/logo.png", png)
    assert resp.status_code == 201
    assert resp.json() == {"path": "img/logo.png", "category": "asset", "location": "/content/img/logo.png"}

    resp = await client.get("/api/content/img/logo.png")
    assert resp.status_code == 200
    assert resp.content == png
    assert resp.headers["content-type"] == "image/png"
    assert resp.headers["etag"] == f'"{hashlib.sha256(png).hexdigest()}"'


@pytest.mark.asyncio
async def test_external_item_streams(client: AsyncClient, auth_headers, library):
    payload = bytes(range(256)) * 2
    await _put(client, auth_headers, "media/blob.bin", payload)
    assert (await library.resolve("media/blob.bin")).placement.value == "external"

    resp = await client.get("/api/content/media/blob.bin")
    assert resp.status_code == 200
    assert resp.content == payload
    assert resp.headers["content-length"] == str(len(payload))


@pytest.mark.asyncio
async def test_markdown_is_rendered_into_page_shell(client: AsyncClient, auth_headers):
    await _put(client, auth_headers, "notes/intro.md", b"# Intro\n\nHello.\n", modified="2024-02-03T10:00:00Z")

    for url in ("/api/content/notes/intro.md", "/api/content/notes/intro.html"):
        resp = await client.get(url)
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/html")
        assert "<h1>Intro</h1>" in resp.text
        assert "<title>intro</title>" in resp.text
        assert resp.headers["last-modified"] == "Sat, 03 Feb 2024 10:00:00 GMT"

    raw = await client.get("/api/content/notes/intro.md", params={"raw": "true"})
    assert raw.content == b"# Intro\n\nHello.\n"
    assert raw.headers["content-type"].startswith("text/markdown")


@pytest.mark.asyncio
async def test_conditional_get(client: AsyncClient, auth_headers):
    await _put(client, auth_headers, "a.txt", b"abc")
    etag = (await client.get("/api/content/a.txt")).headers["etag"]

    resp = await client.get("/api/content/a.txt", headers={"If-None-Match": etag})
    assert resp.status_code == 304


@pytest.mark.asyncio
async def test_missing_item_is_404(client: AsyncClient):
    resp = await client.get("/api/content/nope.html")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_empty_upload_is_400(client: AsyncClient, auth_headers):
    resp = await _put(client, auth_headers, "empty.txt", b"")
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_static_upload_goes_to_static_root(client: AsyncClient, auth_headers, library):
    resp = await _put(client, auth_headers, "css/site.css", b"body{}")
    assert resp.status_code == 201
    assert resp.json()["category"] == "static"
    assert await library.static_root.read("css/site.css") == b"body{}"

    resp = await client.get("/api/content/css/site.css")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_delete_is_idempotent(client: AsyncClient, auth_headers):
    await _put(client, auth_headers, "gone.txt", b"x")
    for _ in range(2):
        resp = await client.delete("/api/content/gone.txt", headers=auth_headers)
        assert resp.status_code == 204
    assert (await client.get("/api/content/gone.txt")).status_code == 404


@pytest.mark.asyncio
async def test_rename(client: AsyncClient, auth_headers):
    await _put(client, auth_headers, "draft.md", b"# Draft\n")
    resp = await client.post(
        "/api/content/draft.md/rename", json={"new_path": "posts/final.md"}, headers=auth_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["path"] == "posts/final.md"
    assert (await client.get("/api/content/posts/final.md")).status_code == 200

    resp = await client.post(
        "/api/content/draft.md/rename", json={"new_path": "x.md"}, headers=auth_headers,
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_listing_and_pages(client: AsyncClient, auth_headers):
    await _put(client, auth_headers, "b.md", b"# B\n")
    await _put(client, auth_headers, "a.png", b"\x89PNG")

    resp = await client.get("/api/content", headers=auth_headers)
    assert [i["path"] for i in resp.json()] == ["a.png", "b.md"]

    resp = await client.get("/api/content/pages")
    assert resp.status_code == 200
    assert [i["path"] for i in resp.json()] == ["b.md"]

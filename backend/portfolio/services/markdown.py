"""Markdown renderer — raw markdown bytes to a sanitized HTML fragment."""

from markdown_it import MarkdownIt

from portfolio.services.errors import RenderError

# Raw HTML in the source is escaped, never passed through
_md = MarkdownIt("commonmark", {"html": False}).enable(["table", "strikethrough"])


def decode_markdown(data: bytes) -> str:
    """Decode markdown source, tolerating a UTF-8 byte order mark."""
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise RenderError(f"Markdown payload is not UTF-8 text: {exc}") from exc


def render(data: bytes) -> str:
    """Render markdown to HTML.

    Deterministic and side-effect free. Malformed but decodable markdown
    renders best-effort; only undecodable bytes raise ``RenderError``.
    """
    return _md.render(decode_markdown(data))

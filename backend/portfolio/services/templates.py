"""Template collaborator — page shell and fallback index rendering with Jinja2."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from jinja2 import ChoiceLoader, DictLoader, Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup

from portfolio.schemas.content import ContentSummary

logger = logging.getLogger(__name__)

INDEX_TEMPLATE = "index.tmpl"
PAGE_TEMPLATE = "page.tmpl"

_DEFAULTS = {
    "base.tmpl": """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>{{ title }}</title>
</head>
<body>
{% block body %}{% endblock %}
<footer>&copy; {{ year }}</footer>
</body>
</html>
""",
    INDEX_TEMPLATE: """{% extends "base.tmpl" %}
{% block body %}
<h1>{{ title }}</h1>
<ul>
{% for page in pages %}  <li><a href="{{ page.href }}">{{ page.title }}</a></li>
{% endfor %}</ul>
{% endblock %}
""",
    PAGE_TEMPLATE: """{% extends "base.tmpl" %}
{% block body %}
<main>
{{ content }}
</main>
{% if last_modified %}<p class="modified">Last modified {{ last_modified.strftime("%Y-%m-%d") }}</p>{% endif %}
{% endblock %}
""",
}


class TemplateRenderer:
    """Renders with templates from the template root, falling back to built-ins."""

    def __init__(self, template_dir: str | Path):
        self._env = Environment(
            loader=ChoiceLoader([
                FileSystemLoader(str(template_dir)),
                DictLoader(_DEFAULTS),
            ]),
            autoescape=select_autoescape(
                enabled_extensions=("html", "tmpl", "j2", "jinja"),
                default_for_string=True,
            ),
            auto_reload=True,
        )

    def render_page(self, title: str, body_html: str, last_modified: datetime | None = None) -> str:
        """Wrap a rendered markdown fragment in the page shell."""
        template = self._env.get_template(PAGE_TEMPLATE)
        return template.render(
            title=title,
            content=Markup(body_html),
            last_modified=last_modified,
            year=datetime.now(timezone.utc).year,
        )

    def render_index(self, pages: list[ContentSummary], title: str = "Index", prefix: str = "") -> str:
        """Synthesize an index page linking every rendered page."""
        template = self._env.get_template(INDEX_TEMPLATE)
        links = [
            {"title": p.title or page_title(p.path), "href": f"{prefix}{html_name(p.path)}"}
            for p in pages
        ]
        logger.debug("Rendering fallback index with %d pages", len(links))
        return template.render(title=title, pages=links, year=datetime.now(timezone.utc).year)


def html_name(path: str) -> str:
    """``notes/intro.md`` -> ``notes/intro.html``."""
    stem = path[: -len(".md")] if path.lower().endswith(".md") else path
    return f"{stem}.html"


def page_title(path: str) -> str:
    """Human title for a page: its base name without extension."""
    name = path.rsplit("/", 1)[-1]
    return name[: -len(".md")] if name.lower().endswith(".md") else name

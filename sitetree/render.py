from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup

from .highlight import highlight_blocks
from .utils import iso_date, join_url

TEMPLATE_SUFFIX = ".html"


def template_name(name: str) -> str:
    return name if name.endswith(TEMPLATE_SUFFIX) else f"{name}{TEMPLATE_SUFFIX}"


def create_environment(templates_dir: Path, site_url: str = "", highlight_class: str = "highlight") -> Environment:
    """Template registry shared read-only by every write worker."""
    env = Environment(
        loader=FileSystemLoader(str(templates_dir)),
        autoescape=select_autoescape(["html"]),
        keep_trailing_newline=True,
    )

    def highlight_filter(value: str) -> Markup:
        return Markup(highlight_blocks(str(value), cssclass=highlight_class))

    def isodate_filter(value: Optional[dt.datetime]) -> str:
        return iso_date(value) if value is not None else ""

    def absolute_url_filter(value: str) -> str:
        return join_url(site_url, value) if site_url else value

    env.filters["highlight"] = highlight_filter
    env.filters["isodate"] = isodate_filter
    env.filters["absolute_url"] = absolute_url_filter
    return env


def render_document(env: Environment, node: object, template: str) -> str:
    return env.get_template(template_name(template)).render(page=node)


def write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")

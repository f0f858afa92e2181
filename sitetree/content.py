from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Optional
from zoneinfo import ZoneInfo

import yaml

FRONT_MATTER_START = b"---\n"
FRONT_MATTER_END = b"\n---\n\n"
CONTENT_SUFFIXES = (".html", ".md")
TIMESTAMP_FMT = "%Y-%m-%d %H:%M:%S"
DEFAULT_TIMEZONE = "Europe/Brussels"
DEFAULT_TEMPLATE = "page"


class FrontMatterError(ValueError):
    pass


class TimestampError(ValueError):
    pass


class FrontMatterLoader(yaml.SafeLoader):
    """Safe loader that leaves timestamps as plain strings."""


FrontMatterLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != "tag:yaml.org,2002:timestamp"]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


@dataclass
class Metadata:
    title: str = ""
    template: str = DEFAULT_TEMPLATE
    date: Optional[dt.datetime] = None


def is_content_file(name: str) -> bool:
    return name.endswith(CONTENT_SUFFIXES)


def output_name(name: str) -> str:
    stem = name.rsplit(".", 1)[0] if "." in name else name
    return f"{stem}.html"


def split_front_matter(data: bytes) -> tuple[bytes, bytes]:
    """Split raw document bytes into (front matter, body).

    A document without the leading ``---`` line is returned untouched as the
    body. The scan is byte-level: once the terminator is found, anything that
    looks like a delimiter further down belongs to the body.
    """
    if not data.startswith(FRONT_MATTER_START):
        return b"", data
    end = data.find(FRONT_MATTER_END)
    if end == -1:
        raise FrontMatterError("No end delimiter found for metadata")
    return data[len(FRONT_MATTER_START) : end], data[end + len(FRONT_MATTER_END) :]


def parse_timestamp(value: object, timezone: str = DEFAULT_TIMEZONE) -> dt.datetime:
    try:
        parsed = dt.datetime.strptime(str(value).strip(), TIMESTAMP_FMT)
    except ValueError as exc:
        raise TimestampError(f"Bad timestamp {value!r}, expected YYYY-MM-DD HH:MM:SS") from exc
    return parsed.replace(tzinfo=ZoneInfo(timezone))


def decode_metadata(
    block: bytes,
    default_template: str = DEFAULT_TEMPLATE,
    timezone: str = DEFAULT_TIMEZONE,
) -> Metadata:
    if not block.strip():
        return Metadata(template=default_template)
    try:
        data = yaml.load(block.decode("utf-8"), Loader=FrontMatterLoader)
    except (UnicodeDecodeError, yaml.YAMLError) as exc:
        raise FrontMatterError(f"Invalid front matter: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrontMatterError("Front matter must be a mapping")

    title = data.get("title")
    template = data.get("template")
    raw_date = data.get("date")
    date = None
    if raw_date is not None and str(raw_date).strip():
        date = parse_timestamp(raw_date, timezone)
    return Metadata(
        title="" if title is None else str(title),
        template=str(template) if template else default_template,
        date=date,
    )

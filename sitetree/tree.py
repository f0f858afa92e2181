"""In-memory mirror of the content directory.

Every filesystem entry becomes exactly one node variant. Documents are parsed
and rendered while crawling; directories keep their children in listing
order; everything else is an asset that the writer copies verbatim.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, ClassVar, Union

from markupsafe import Markup

from .content import (
    Metadata,
    decode_metadata,
    is_content_file,
    output_name,
    split_front_matter,
)
from .markdown_ext import render_markdown

if TYPE_CHECKING:
    from .pipeline import BuildContext

INDEX_FILE = "index.html"


@dataclass
class Directory:
    kind: ClassVar[str] = "directory"

    name: str
    source_path: Path
    children: list["ContentNode"] = field(default_factory=list)
    url: str = ""
    extra: Any = None


@dataclass
class Document:
    kind: ClassVar[str] = "content"

    name: str
    source_path: Path
    body: Markup = Markup("")
    metadata: Metadata = field(default_factory=Metadata)
    url: str = ""
    extra: Any = None

    @property
    def content(self) -> Markup:
        return self.body

    @property
    def title(self) -> str:
        return self.metadata.title


@dataclass
class Asset:
    kind: ClassVar[str] = "asset"

    name: str
    source_path: Path
    url: str = ""
    extra: Any = None


ContentNode = Union[Directory, Document, Asset]
Processor = Callable[[ContentNode], Any]


def walk(node: ContentNode) -> Iterator[ContentNode]:
    """Yield ``node`` and its descendants in pre-order."""
    yield node
    if isinstance(node, Directory):
        for child in node.children:
            yield from walk(child)


def crawl(root: Path, context: BuildContext) -> Directory:
    return read_dir(root, "", context)


def read_dir(path: Path, name: str, context: BuildContext) -> Directory:
    # Listing failures propagate; a partial subtree would be fabricated.
    entries = sorted(path.iterdir(), key=lambda p: p.name)
    node = Directory(name=name, source_path=path)
    for entry in entries:
        if is_content_file(entry.name):
            child = Document(name=output_name(entry.name), source_path=entry)
            parse_document(child, context)
        elif entry.is_dir():
            child = read_dir(entry, entry.name, context)
        else:
            child = Asset(name=entry.name, source_path=entry)
        node.children.append(child)
    return node


def parse_document(node: Document, context: BuildContext) -> None:
    context.log_file(node.source_path)
    try:
        data = node.source_path.read_bytes()
        front_matter, body = split_front_matter(data)
        node.metadata = decode_metadata(front_matter, context.default_template, context.timezone)
        text = body.decode("utf-8")
    except (OSError, ValueError) as exc:
        context.errors.record("parse", exc, node.source_path)
        return
    if node.source_path.name.endswith(".md"):
        text = render_markdown(text)
    node.body = Markup(text)


def output_url(node: ContentNode, root: Path) -> str:
    rel = node.source_path.relative_to(root)
    parts = list(rel.parts)
    if isinstance(node, Document):
        parts[-1] = node.name
    url = "/" + "/".join(parts)
    if isinstance(node, Directory):
        return url.rstrip("/") + "/"
    if url.endswith("/" + INDEX_FILE):
        return url[: -len(INDEX_FILE)]
    return url


def process_tree(node: ContentNode, root: Path, context: BuildContext) -> None:
    node.url = output_url(node, root)
    if context.processor is not None:
        try:
            node.extra = context.processor(node)
        except Exception as exc:
            context.errors.record("process", exc, node.source_path)
    # Child URLs do not depend on the parent, so a failing node's subtree is still visited.
    if isinstance(node, Directory):
        for child in node.children:
            process_tree(child, root, context)

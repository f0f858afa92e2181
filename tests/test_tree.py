"""Crawling the content directory and the processing pass."""

import tempfile
import unittest
from pathlib import Path
from unittest import mock

from sitetree.content import FrontMatterError, TimestampError
from sitetree.pipeline import BuildContext
from sitetree.tree import Asset, Directory, Document, crawl, output_url, process_tree, walk


def make_tree(root: Path, files: dict[str, bytes]) -> None:
    for rel, data in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)


class CrawlTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name) / "content"
        self.root.mkdir()
        self.context = BuildContext(content_dir=self.root, progress=False)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_classifies_entries_in_name_order(self) -> None:
        make_tree(
            self.root,
            {
                "b.md": b"# B\n",
                "a.html": b"<p>A</p>",
                "style.css": b"body {}",
                "blog/post.md": b"---\ntitle: Post\ntemplate: post\n---\n\nHello *there*\n",
                "blog/image.png": b"\x89PNG",
            },
        )
        tree = crawl(self.root, self.context)
        self.assertIsInstance(tree, Directory)
        self.assertEqual(tree.name, "")
        self.assertEqual([child.name for child in tree.children], ["a.html", "b.html", "blog", "style.css"])
        kinds = [child.kind for child in tree.children]
        self.assertEqual(kinds, ["content", "content", "directory", "asset"])

        blog = tree.children[2]
        self.assertEqual([child.name for child in blog.children], ["image.png", "post.html"])
        self.assertIsInstance(blog.children[0], Asset)
        post = blog.children[1]
        self.assertIsInstance(post, Document)
        self.assertEqual(post.metadata.title, "Post")
        self.assertEqual(post.metadata.template, "post")
        self.assertIn("<em>there</em>", post.body)
        self.assertIsNone(self.context.errors.first("parse"))

    def test_html_body_passes_through_unchanged(self) -> None:
        raw = "<p>Keep **this** as is</p>\n"
        make_tree(self.root, {"page.html": f"---\ntitle: Raw\n---\n\n{raw}".encode()})
        tree = crawl(self.root, self.context)
        self.assertEqual(str(tree.children[0].body), raw)

    def test_markdown_body_is_rendered(self) -> None:
        raw = "Some **bold** text\n"
        make_tree(self.root, {"page.md": raw.encode()})
        tree = crawl(self.root, self.context)
        self.assertNotEqual(str(tree.children[0].body), raw)

    def test_default_template_applies(self) -> None:
        context = BuildContext(content_dir=self.root, default_template="post", progress=False)
        make_tree(self.root, {"page.md": b"no metadata"})
        tree = crawl(self.root, context)
        self.assertEqual(tree.children[0].metadata.template, "post")

    def test_parse_errors_are_deferred(self) -> None:
        make_tree(
            self.root,
            {
                "a.md": b"---\ntitle: broken\n",
                "b.md": b"---\ndate: soon\n---\n\nbody\n",
                "c.md": b"fine\n",
            },
        )
        tree = crawl(self.root, self.context)
        self.assertEqual(len(tree.children), 3)
        failures = self.context.errors.failures("parse")
        self.assertEqual(len(failures), 2)
        self.assertIsInstance(self.context.errors.first("parse"), FrontMatterError)
        self.assertIsInstance(failures[1].error, TimestampError)
        self.assertIn("<p>fine</p>", tree.children[2].body)

    def test_listing_failure_is_fatal(self) -> None:
        make_tree(self.root, {"sub/page.md": b"x"})
        original = Path.iterdir

        def failing_iterdir(path):
            if path.name == "sub":
                raise PermissionError("denied")
            return original(path)

        with mock.patch.object(Path, "iterdir", failing_iterdir):
            with self.assertRaises(PermissionError):
                crawl(self.root, self.context)

    def test_walk_is_pre_order(self) -> None:
        make_tree(self.root, {"a/x.md": b"x", "b.css": b""})
        tree = crawl(self.root, self.context)
        self.assertEqual([node.name for node in walk(tree)], ["", "a", "x.html", "b.css"])


class ProcessTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name) / "content"
        make_tree(
            self.root,
            {
                "index.md": b"home",
                "blog/index.md": b"blog home",
                "blog/post.md": b"post",
                "img/logo.png": b"png",
            },
        )

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_output_urls(self) -> None:
        context = BuildContext(content_dir=self.root, progress=False)
        tree = crawl(self.root, context)
        process_tree(tree, self.root, context)
        urls = {node.source_path.relative_to(self.root).as_posix(): node.url for node in walk(tree)}
        self.assertEqual(
            urls,
            {
                ".": "/",
                "blog": "/blog/",
                "blog/index.md": "/blog/",
                "blog/post.md": "/blog/post.html",
                "img": "/img/",
                "img/logo.png": "/img/logo.png",
                "index.md": "/",
            },
        )

    def test_output_url_for_single_node(self) -> None:
        node = Document(name="post.html", source_path=self.root / "blog" / "post.md")
        self.assertEqual(output_url(node, self.root), "/blog/post.html")

    def test_processor_attaches_extra(self) -> None:
        context = BuildContext(content_dir=self.root, progress=False)
        context.set_processor(lambda node: node.url.upper())
        tree = crawl(self.root, context)
        process_tree(tree, self.root, context)
        self.assertEqual(tree.extra, "/")
        self.assertEqual(tree.children[0].extra, "/BLOG/")
        self.assertIsNone(context.errors.first("process"))

    def test_processor_failures_do_not_stop_traversal(self) -> None:
        seen = []

        def processor(node):
            seen.append(node.url)
            if node.url == "/blog/":
                raise RuntimeError(f"cannot process {node.name}")
            return len(seen)

        context = BuildContext(content_dir=self.root, progress=False)
        context.set_processor(processor)
        tree = crawl(self.root, context)
        process_tree(tree, self.root, context)

        self.assertIn("/blog/post.html", seen)
        self.assertIn("/img/logo.png", seen)
        failures = context.errors.failures("process")
        self.assertEqual(len(failures), 2)
        self.assertIsNone(tree.children[0].extra)

    def test_without_processor_extra_stays_empty(self) -> None:
        context = BuildContext(content_dir=self.root, progress=False)
        tree = crawl(self.root, context)
        process_tree(tree, self.root, context)
        self.assertTrue(all(node.extra is None for node in walk(tree)))


if __name__ == "__main__":
    unittest.main()

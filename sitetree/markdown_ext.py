from __future__ import annotations

import html
import re

import xml.etree.ElementTree as etree
import markdown
from markdown import util
from markdown.blockprocessors import CodeBlockProcessor, EmptyBlockProcessor
from markdown.extensions import Extension
from markdown.inlinepatterns import AsteriskProcessor, EmStrongItem, InlineProcessor, SimpleTagInlineProcessor
from markdown.preprocessors import Preprocessor
from markdown.treeprocessors import Treeprocessor

HIGHLIGHT_TAG = "highlight"

FENCED_BLOCK_RE = re.compile(
    r"(?P<fence>^(?:~{3,}|`{3,}))[ ]*\.?(?P<lang>[\w#.+-]*)[^\n]*\n"
    r"(?P<code>.*?)(?<=\n)"
    r"(?P=fence)[ ]*$",
    re.MULTILINE | re.DOTALL,
)
RE_BARE_URL = r"(?<![\w/\"'=(<])(?P<url>(?:https?|ftp)://[^\s<>\"]+)"
RE_STRIKE = r"(~{2})(.+?)~~"
RE_FRACTION = r"(?<![\w/])(?P<num>\d+)/(?P<den>\d+)(?![\w/])"
URL_TRAILING_PUNCT = ".,;:!?)]'"
FRACTIONS = {"1/2": "&frac12;", "1/4": "&frac14;", "3/4": "&frac34;"}

# Python-Markdown's asterisk patterns, anchored so emphasis never opens or closes inside a word.
EM_STRONG_RE = r"(?<!\w)(\*)\1{2}(.+?)\1(.*?)\1{2}(?!\w)"
STRONG_EM_RE = r"(?<!\w)(\*)\1{2}(.+?)\1{2}(.*?)\1(?!\w)"
STRONG_EM3_RE = r"(?<!\w)(\*)\1(?!\1)([^*]+?)\1(?!\1)(.+?)\1{3}(?!\w)"
STRONG_RE = r"(?<!\w)(\*{2})(.+?)\1(?!\w)"
EMPHASIS_RE = r"(?<!\w)(\*)([^\*]+)\1(?!\w)"
RE_ASTERISK = r"(?<!\w)\*"

MARKDOWN_EXTENSIONS = ["tables", "footnotes", "attr_list", "smarty"]
MARKDOWN_EXTENSION_CONFIGS = {
    "footnotes": {"BACKLINK_TEXT": "&#8617;"},
    "smarty": {"smart_dashes": True, "smart_quotes": True, "smart_ellipses": True},
}


def highlight_html(code: str, language: str) -> str:
    """Wrap a code block in a ``<highlight>`` tag.

    The code is HTML-escaped, so consumers of the tag must unescape it
    before handing it to a lexer (``highlight.highlight_blocks`` does).
    """
    code = code.rstrip()
    return (
        f'<{HIGHLIGHT_TAG} language="{html.escape(language)}">'
        f"{html.escape(code, quote=False)}</{HIGHLIGHT_TAG}>"
    )


class FencedHighlightPreprocessor(Preprocessor):
    def run(self, lines):
        text = "\n".join(lines)
        while True:
            m = FENCED_BLOCK_RE.search(text)
            if not m:
                break
            placeholder = self.md.htmlStash.store(highlight_html(m.group("code"), m.group("lang")))
            text = f"{text[:m.start()]}\n{placeholder}\n{text[m.end():]}"
        return text.split("\n")


class IndentedHighlightProcessor(CodeBlockProcessor):
    def run(self, parent, blocks):
        sibling = self.lastChild(parent)
        block, rest = self.detab(blocks.pop(0))
        code = util.code_escape(block.rstrip())
        if sibling is not None and sibling.tag == HIGHLIGHT_TAG:
            # Blank lines do not end an indented block.
            sibling.text = util.AtomicString(f"{sibling.text}\n{code}\n")
        else:
            el = etree.SubElement(parent, HIGHLIGHT_TAG)
            el.set("language", "")
            el.text = util.AtomicString(f"{code}\n")
        if rest:
            blocks.insert(0, rest)


class HighlightBlankLineProcessor(EmptyBlockProcessor):
    """Keeps every blank line that falls between two indented chunks."""

    def run(self, parent, blocks):
        sibling = self.lastChild(parent)
        if sibling is None or sibling.tag != HIGHLIGHT_TAG:
            return super().run(parent, blocks)
        block = blocks.pop(0)
        filler = "\n\n"
        if block:
            filler = "\n"
            rest = block[1:]
            if rest:
                blocks.insert(0, rest)
        sibling.text = util.AtomicString(f"{sibling.text}{filler}")


class HighlightTrimTreeprocessor(Treeprocessor):
    def run(self, root):
        for el in root.iter(HIGHLIGHT_TAG):
            el.text = util.AtomicString((el.text or "").rstrip())


class WordBoundAsteriskProcessor(AsteriskProcessor):
    PATTERNS = [
        EmStrongItem(re.compile(EM_STRONG_RE, re.DOTALL | re.UNICODE), "double", "strong,em"),
        EmStrongItem(re.compile(STRONG_EM_RE, re.DOTALL | re.UNICODE), "double", "em,strong"),
        EmStrongItem(re.compile(STRONG_EM3_RE, re.DOTALL | re.UNICODE), "double2", "strong,em"),
        EmStrongItem(re.compile(STRONG_RE, re.DOTALL | re.UNICODE), "single", "strong"),
        EmStrongItem(re.compile(EMPHASIS_RE, re.DOTALL | re.UNICODE), "single", "em"),
    ]


class BareUrlProcessor(InlineProcessor):
    def handleMatch(self, m, data):
        url = m.group("url").rstrip(URL_TRAILING_PUNCT)
        el = etree.Element("a")
        el.set("href", url)
        el.text = util.AtomicString(url)
        return el, m.start(0), m.start(0) + len(url)


class FractionProcessor(InlineProcessor):
    def handleMatch(self, m, data):
        num, den = m.group("num"), m.group("den")
        entity = FRACTIONS.get(f"{num}/{den}")
        if entity is None:
            entity = f"<sup>{num}</sup>&frasl;<sub>{den}</sub>"
        return self.md.htmlStash.store(entity), m.start(0), m.end(0)


class SiteMarkdownExtension(Extension):
    """Code blocks become ``<highlight>`` tags; no intraword emphasis; adds autolink, strikethrough and fractions."""

    def extendMarkdown(self, md):
        if HIGHLIGHT_TAG not in md.block_level_elements:
            md.block_level_elements.append(HIGHLIGHT_TAG)
        md.preprocessors.register(FencedHighlightPreprocessor(md), "fenced_highlight", 25)
        md.parser.blockprocessors.register(HighlightBlankLineProcessor(md.parser), "empty", 100)
        md.parser.blockprocessors.register(IndentedHighlightProcessor(md.parser), "code", 80)
        md.treeprocessors.register(HighlightTrimTreeprocessor(md), "highlight_trim", 25)
        md.inlinePatterns.register(WordBoundAsteriskProcessor(RE_ASTERISK, md), "em_strong", 60)
        md.inlinePatterns.register(BareUrlProcessor(RE_BARE_URL, md), "bare_url", 115)
        md.inlinePatterns.register(SimpleTagInlineProcessor(RE_STRIKE, "del"), "strikethrough", 65)
        md.inlinePatterns.register(FractionProcessor(RE_FRACTION, md), "fraction", 12)


def create_markdown() -> markdown.Markdown:
    return markdown.Markdown(
        extensions=[*MARKDOWN_EXTENSIONS, SiteMarkdownExtension()],
        extension_configs=MARKDOWN_EXTENSION_CONFIGS,
        output_format="xhtml",
    )


def render_markdown(body: str) -> str:
    md = create_markdown()
    return md.convert(body)

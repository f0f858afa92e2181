from __future__ import annotations

import html
import re

from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import TextLexer, get_lexer_by_name
from pygments.util import ClassNotFound

ATTRIBUTE_RE = re.compile(
    r"""(?:^|(?<=\s))(?P<key>[^\s=\"']+)="""
    r"""(?:"(?P<double>(?:\\.|[^"\\])*)"|'(?P<single>(?:\\.|[^'\\])*)')"""
    r"""(?=\s|$)""",
    re.DOTALL,
)
ESCAPED_QUOTE_RE = re.compile(r"""\\(["'])""")
HIGHLIGHT_BLOCK_RE = re.compile(
    r"<highlight(?P<attrs>(?:\s[^>]*)?)>(?P<code>.*?)</highlight>",
    re.DOTALL,
)


def parse_attributes(text: str) -> dict[str, str]:
    """Parse ``key="value" key2='value2'`` pairs.

    Backslash-escaped quotes inside values are unescaped. Anything that is
    not a complete pair is skipped, so malformed input yields whatever valid
    pairs were found, possibly none.
    """
    attrs = {}
    for match in ATTRIBUTE_RE.finditer(text or ""):
        value = match.group("double")
        if value is None:
            value = match.group("single")
        attrs[match.group("key")] = ESCAPED_QUOTE_RE.sub(r"\1", value)
    return attrs


def get_lexer(language: str):
    if not language:
        return TextLexer()
    try:
        return get_lexer_by_name(language)
    except ClassNotFound:
        return TextLexer()


def highlight_blocks(html_text: str, cssclass: str = "highlight") -> str:
    formatter = HtmlFormatter(cssclass=cssclass)

    def repl(match: re.Match) -> str:
        attrs = parse_attributes(match.group("attrs"))
        code = html.unescape(match.group("code"))
        lexer = get_lexer(attrs.get("language", ""))
        return highlight(code, lexer, formatter)

    return HIGHLIGHT_BLOCK_RE.sub(repl, html_text)

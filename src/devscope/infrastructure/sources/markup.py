"""
Markup helpers shared by the source clients.

Sources deliver bodies as HTML (Stack Overflow) or Markdown (GitHub,
Reddit). These helpers turn either into plain text and pull out code blocks.
"""

from __future__ import annotations

import html
import re

from devscope.domain.entities import CodeSnippet

DEFAULT_LANGUAGE = "plaintext"

_FENCED_BLOCK = re.compile(r"```(?:([\w+#.-]+)[ \t]*\n|\n?)(.*?)```", re.DOTALL)
_HTML_PRE_BLOCK = re.compile(
    r"<pre[^>]*>\s*<code([^>]*)>(.*?)</code>\s*</pre>",
    re.DOTALL | re.IGNORECASE,
)
_LANGUAGE_CLASS = re.compile(r"(?:lang|language)-([\w+#.-]+)", re.IGNORECASE)
_INDENTED_BLOCK = re.compile(r"(?:^|\n)((?: {4}.+(?:\n|$))+)")
_INLINE_CODE = re.compile(r"</?code[^>]*>", re.IGNORECASE)
_TAG = re.compile(r"<[^>]+>")
_EXCESS_BLANK_LINES = re.compile(r"\n\s*\n\s*\n")


def _html_block_to_fence(match: re.Match[str]) -> str:
    language = _LANGUAGE_CLASS.search(match.group(1) or "")
    tag = language.group(1) if language else ""
    return f"```{tag}\n{match.group(2)}\n```"


def strip_html(text: str) -> str:
    """
    Convert an HTML body to plain text.

    ``<pre><code>`` blocks become fenced blocks so that
    :func:`extract_code_blocks` still finds them afterwards.
    """
    if not text:
        return ""
    converted = _HTML_PRE_BLOCK.sub(_html_block_to_fence, text)
    converted = _INLINE_CODE.sub("`", converted)
    converted = _TAG.sub("", converted)
    converted = html.unescape(converted)
    return _EXCESS_BLANK_LINES.sub("\n\n", converted).strip()


def extract_code_blocks(text: str, *, min_length: int = 0) -> list[CodeSnippet]:
    """Fenced (and raw ``<pre><code>``) blocks in document order."""
    if not text:
        return []

    snippets: list[CodeSnippet] = []
    for match in _FENCED_BLOCK.finditer(_HTML_PRE_BLOCK.sub(_html_block_to_fence, text)):
        code = match.group(2).strip()
        if len(code) > min_length:
            snippets.append(CodeSnippet(language=match.group(1) or DEFAULT_LANGUAGE, code=code))
    return snippets


def extract_indented_blocks(text: str, *, min_length: int = 20) -> list[CodeSnippet]:
    """Markdown blocks indented by four spaces, skipping ones that hold URLs."""
    snippets: list[CodeSnippet] = []
    for match in _INDENTED_BLOCK.finditer(_FENCED_BLOCK.sub("", text or "")):
        code = re.sub(r"^ {4}", "", match.group(1), flags=re.MULTILINE).strip()
        if len(code) > min_length and "http" not in code:
            snippets.append(CodeSnippet(language=DEFAULT_LANGUAGE, code=code))
    return snippets

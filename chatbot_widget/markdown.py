"""Markdown-lite to HTML: bold, italics, links and line breaks only."""

import html
import re

_RULES: list[tuple[re.Pattern, str]] = [
    (re.compile(r"\*\*(.*?)\*\*"), r"<strong>\1</strong>"),
    (re.compile(r"__(.*?)__"), r"<strong>\1</strong>"),
    (re.compile(r"\*(.*?)\*"), r"<em>\1</em>"),
    (re.compile(r"_(.*?)_"), r"<em>\1</em>"),
    (
        re.compile(r"\[([^\]]+)\]\(([^)]+)\)"),
        r'<a href="\2" target="_blank" rel="noopener noreferrer">\1</a>',
    ),
]


def parse_markdown(text: str | None) -> str:
    if not text:
        return ""
    # Markup is only ever added after escaping; quotes too, for href values.
    out = html.escape(text, quote=True)
    for pattern, repl in _RULES:
        out = pattern.sub(repl, out)
    return out.replace("\n", "<br/>")

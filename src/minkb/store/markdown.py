"""Markdown helpers: title extraction and conversion to searchable prose.

Search should match what an article says, not its syntax, so the index stores
``strip_markdown(content)`` rather than the raw file text.
"""

from __future__ import annotations

import re

# ---------------------------------------------------------------------------
# Frontmatter and title
# ---------------------------------------------------------------------------

_FRONTMATTER_RE = re.compile(r"\A---\s*\n(.*?\n)---\s*\n", re.DOTALL)
_TITLE_RE = re.compile(r"^#[ \t]+(.+)$", re.MULTILINE)


def strip_frontmatter(content: str) -> str:
    """Return *content* without the leading YAML frontmatter block."""
    return _FRONTMATTER_RE.sub("", content)


def extract_title(content: str) -> str | None:
    """Return the text of the first level-1 ``# `` heading, if any."""
    match = _TITLE_RE.search(strip_frontmatter(content))
    if match is None:
        return None
    title = match.group(1).strip()
    return title or None


# ---------------------------------------------------------------------------
# Syntax stripping
# ---------------------------------------------------------------------------

# Applied in order, one line at a time (MULTILINE anchors).
_BLOCK_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"^[ \t]*(```|~~~).*$", re.MULTILINE), ""),
    (
        re.compile(r"^[ \t]*\|?[ \t]*:?-+:?[ \t]*(\|[ \t]*:?-+:?[ \t]*)+\|?[ \t]*$", re.MULTILINE),
        "",
    ),
    (re.compile(r"^[ \t]{0,3}([-*_][ \t]*){3,}$", re.MULTILINE), ""),
    (re.compile(r"^[ \t]{0,3}(=+|-+)[ \t]*$", re.MULTILINE), ""),
    (re.compile(r"^[ \t]*\[[^\]]+\]:[ \t]*\S+.*$", re.MULTILINE), ""),
    (re.compile(r"^[ \t]{0,3}#{1,6}[ \t]+(.*?)([ \t]+#+)?[ \t]*$", re.MULTILINE), r"\1"),
    (re.compile(r"^([ \t]*>[ \t]?)+", re.MULTILINE), ""),
    (re.compile(r"^[ \t]*([-*+]|\d+[.)])[ \t]+(\[[ xX]\][ \t]+)?", re.MULTILINE), ""),
)

_INLINE_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"<!--.*?-->", re.DOTALL), ""),
    (re.compile(r"<[^>\n]+>"), ""),
    (re.compile(r"!\[([^\]]*)\]\([^)]*\)"), r"\1"),
    (re.compile(r"!\[([^\]]*)\]\[[^\]]*\]"), r"\1"),
    (re.compile(r"\[([^\]]+)\]\([^)]*\)"), r"\1"),
    (re.compile(r"\[([^\]]+)\]\[[^\]]*\]"), r"\1"),
    (re.compile(r"`([^`\n]*)`"), r"\1"),
    (re.compile(r"\*\*(?=\S)(.+?)(?<=\S)\*\*"), r"\1"),
    (re.compile(r"(?<!\w)__(?=\S)(.+?)(?<=\S)__(?!\w)"), r"\1"),
    (re.compile(r"\*(?=\S)(.+?)(?<=\S)\*"), r"\1"),
    (re.compile(r"(?<!\w)_(?=\S)(.+?)(?<=\S)_(?!\w)"), r"\1"),
    (re.compile(r"~~(?=\S)(.+?)(?<=\S)~~"), r"\1"),
    (re.compile(r"[ \t]*\|[ \t]*"), " "),
)

_BLANK_RUN_RE = re.compile(r"\n{3,}")


def strip_markdown(content: str) -> str:
    """Reduce Markdown to plain prose.

    Frontmatter, fences, rules and reference definitions are dropped;
    headings, quotes, list items, links, images, emphasis and code spans
    keep their text.  Code inside fences is kept verbatim.
    """
    text = strip_frontmatter(content)
    for pattern, replacement in _BLOCK_PATTERNS:
        text = pattern.sub(replacement, text)
    for pattern, replacement in _INLINE_PATTERNS:
        text = pattern.sub(replacement, text)
    lines = [line.strip() for line in text.splitlines()]
    return _BLANK_RUN_RE.sub("\n\n", "\n".join(lines)).strip()

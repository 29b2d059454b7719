"""Article and result records exchanged between the core components."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass


@dataclass
class Article:
    """A Markdown article as handed to the index engine."""

    id: str
    file_path: str
    content: str
    title: str | None = None
    keywords: str | None = None


@dataclass(frozen=True)
class CreatedArticle:
    """Identity of a freshly created article."""

    id: str
    file_path: str


@dataclass(frozen=True)
class ArticleSummary:
    """Indexed metadata for one article (content omitted)."""

    id: str
    file_path: str
    title: str | None
    keywords: str | None


@dataclass(frozen=True)
class SearchHit:
    """A single search result; lower ``rank`` means a stronger match."""

    id: str
    file_path: str
    title: str | None
    keywords: str | None
    rank: float


@dataclass(frozen=True)
class IndexStats:
    """Counts and capability information for an index database."""

    article_count: int
    search_mode: str


def join_keywords(keywords: Iterable[str] | None) -> str | None:
    """Normalize a keyword list into the stored comma-joined form.

    Entries are trimmed and empties dropped; an empty result is ``None``.
    """
    if keywords is None:
        return None
    cleaned = [k.strip() for k in keywords if k and k.strip()]
    return ",".join(cleaned) if cleaned else None


def split_keywords(keywords: str | None) -> set[str]:
    """Return the lowercased keyword set of a stored keyword string."""
    if not keywords:
        return set()
    return {k.strip().lower() for k in keywords.split(",") if k.strip()}

"""Pydantic payloads carried in the ``data`` field of MCP tool envelopes."""

from __future__ import annotations

from pydantic import BaseModel, Field

# --- article models ---


class ArticleRef(BaseModel):
    """Identity of a created article."""

    id: str
    file_path: str = Field(serialization_alias="filePath")


class ArticleContent(BaseModel):
    """Full Markdown content of one article."""

    id: str
    content: str


class ArticleChange(BaseModel):
    """Acknowledgement of an update or delete."""

    id: str
    status: str


class ArticleInfo(BaseModel):
    """Indexed metadata for one article."""

    id: str
    file_path: str = Field(serialization_alias="filePath")
    title: str | None = None
    keywords: str | None = None


class ArticleMatch(ArticleInfo):
    """Search hit; lower ``rank`` is a stronger match."""

    rank: float = 0.0


# --- collection models ---


class SearchResults(BaseModel):
    query: str
    results: list[ArticleMatch]


class ArticlePage(BaseModel):
    page: int
    size: int
    articles: list[ArticleInfo]


class LinkedArticles(BaseModel):
    id: str
    articles: list[ArticleInfo]


class KnowledgeBaseStats(BaseModel):
    """Article count and search capability of the knowledge base."""

    name: str
    article_count: int = Field(serialization_alias="articleCount")
    search_mode: str = Field(serialization_alias="searchMode")

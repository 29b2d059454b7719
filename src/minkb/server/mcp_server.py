"""FastMCP server exposing one knowledge base as article tools and resources.

Every tool returns a JSON envelope ``{"type", "data", "meta"}``.  Knowledge
base failures become ``error.*`` envelopes so clients never see tracebacks.

Dependencies: coordinator, errors, server.models
Wired in: cli.py → _start()
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from datetime import UTC, datetime
from importlib import import_module
from typing import Any, cast

from pydantic import BaseModel

from minkb.coordinator import KnowledgeBase
from minkb.errors import (
    IndexInitError,
    IndexQueryError,
    IndexWriteError,
    KnowledgeBaseError,
    PartialUpdateError,
    StoreNotFoundError,
    StoreWriteError,
)
from minkb.server.models import (
    ArticleChange,
    ArticleContent,
    ArticleInfo,
    ArticleMatch,
    ArticlePage,
    ArticleRef,
    KnowledgeBaseStats,
    LinkedArticles,
    SearchResults,
)

_LOG = logging.getLogger(__name__)

SERVER_NAME = "min-kb"

# Checked in order; subclasses before their bases.
_ERROR_TYPES: tuple[tuple[type[KnowledgeBaseError], str], ...] = (
    (StoreNotFoundError, "error.not_found"),
    (StoreWriteError, "error.store_write"),
    (PartialUpdateError, "error.partial_update"),
    (IndexWriteError, "error.index_write"),
    (IndexQueryError, "error.index_query"),
    (IndexInitError, "error.index_init"),
)


def _utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


def json_envelope(
    envelope_type: str,
    data: dict[str, Any],
    *,
    tool: str,
    meta: dict[str, Any] | None = None,
) -> str:
    envelope_meta: dict[str, Any] = {"tool": tool, "timestamp": _utc_now_iso()}
    if meta:
        envelope_meta.update(meta)
    payload = {"type": envelope_type, "data": data, "meta": envelope_meta}
    return json.dumps(payload, ensure_ascii=True, allow_nan=False)


def result_envelope(envelope_type: str, model: BaseModel, *, tool: str) -> str:
    return json_envelope(envelope_type, model.model_dump(by_alias=True), tool=tool)


def error_envelope(tool: str, error: KnowledgeBaseError) -> str:
    """Map a knowledge base failure onto its ``error.*`` envelope."""
    envelope_type = "error.knowledge_base"
    for error_class, name in _ERROR_TYPES:
        if isinstance(error, error_class):
            envelope_type = name
            break
    data: dict[str, Any] = {"message": str(error)}
    if isinstance(error, PartialUpdateError):
        data["id"] = error.article_id
    _LOG.warning("Tool %s failed: %s", tool, error)
    return json_envelope(envelope_type, data, tool=tool)


def _register_tools(server: Any, kb: KnowledgeBase) -> None:
    async def create_article(
        content: str,
        title: str | None = None,
        keywords: list[str] | None = None,
    ) -> str:
        """Create a Markdown article and index it for search.

        The title defaults to the first ``# `` heading of the content.
        """
        tool = "createArticle"
        try:
            created = await kb.create(content, title, keywords)
        except KnowledgeBaseError as exc:
            return error_envelope(tool, exc)
        return result_envelope(
            "article.created", ArticleRef(id=created.id, file_path=created.file_path), tool=tool
        )

    async def get_article(id: str) -> str:  # noqa: A002
        """Return the full Markdown content of an article."""
        tool = "getArticle"
        try:
            content = await kb.read(id)
        except KnowledgeBaseError as exc:
            return error_envelope(tool, exc)
        return result_envelope("article.content", ArticleContent(id=id, content=content), tool=tool)

    async def update_article(
        id: str,  # noqa: A002
        content: str,
        title: str | None = None,
        keywords: list[str] | None = None,
    ) -> str:
        """Replace the content of an existing article and re-index it."""
        tool = "updateArticle"
        try:
            await kb.update(id, content, title, keywords)
        except KnowledgeBaseError as exc:
            return error_envelope(tool, exc)
        return result_envelope("article.updated", ArticleChange(id=id, status="updated"), tool=tool)

    async def delete_article(id: str) -> str:  # noqa: A002
        """Delete an article and remove it from the index."""
        tool = "deleteArticle"
        try:
            await kb.delete(id)
        except KnowledgeBaseError as exc:
            return error_envelope(tool, exc)
        return result_envelope("article.deleted", ArticleChange(id=id, status="deleted"), tool=tool)

    async def search_articles(query: str, limit: int = 10) -> str:
        """Search article text; results are ordered best match first."""
        tool = "searchArticles"
        try:
            hits = await kb.search(query, limit)
        except KnowledgeBaseError as exc:
            return error_envelope(tool, exc)
        results = SearchResults(
            query=query, results=[ArticleMatch.model_validate(asdict(hit)) for hit in hits]
        )
        return result_envelope("article.search", results, tool=tool)

    async def list_articles(page: int = 1, size: int = 10) -> str:
        """List articles in creation order, one 1-indexed page at a time."""
        tool = "listArticles"
        try:
            summaries = await kb.list(page, size)
        except KnowledgeBaseError as exc:
            return error_envelope(tool, exc)
        result = ArticlePage(
            page=page,
            size=size,
            articles=[ArticleInfo.model_validate(asdict(item)) for item in summaries],
        )
        return result_envelope("article.list", result, tool=tool)

    async def find_linked_articles(id: str, limit: int = 10) -> str:  # noqa: A002
        """Find articles that share at least one keyword with the given article."""
        tool = "findLinkedArticles"
        try:
            linked = await kb.related(id, limit)
        except KnowledgeBaseError as exc:
            return error_envelope(tool, exc)
        result = LinkedArticles(
            id=id, articles=[ArticleInfo.model_validate(asdict(item)) for item in linked]
        )
        return result_envelope("article.linked", result, tool=tool)

    async def get_article_stats() -> str:
        """Report the article count and search capability of this knowledge base."""
        tool = "getArticleStats"
        try:
            stats = await kb.stats()
        except KnowledgeBaseError as exc:
            return error_envelope(tool, exc)
        result = KnowledgeBaseStats(
            name=kb.name, article_count=stats.article_count, search_mode=stats.search_mode
        )
        return result_envelope("article.stats", result, tool=tool)

    server.tool(name="createArticle")(create_article)
    server.tool(name="getArticle")(get_article)
    server.tool(name="updateArticle")(update_article)
    server.tool(name="deleteArticle")(delete_article)
    server.tool(name="searchArticles")(search_articles)
    server.tool(name="listArticles")(list_articles)
    server.tool(name="findLinkedArticles")(find_linked_articles)
    server.tool(name="getArticleStats")(get_article_stats)


def _register_resources(server: Any, kb: KnowledgeBase) -> None:
    async def article_resource(article_id: str) -> str:
        """Markdown content of a single article."""
        try:
            return await kb.read(article_id)
        except StoreNotFoundError as exc:
            raise ValueError(f"Article not found: {article_id}") from exc

    server.resource("article://{article_id}", mime_type="text/markdown")(article_resource)


def _load_fastmcp_class() -> type[Any] | None:
    try:
        module = import_module("fastmcp")
    except ModuleNotFoundError:
        _LOG.warning("fastmcp is not installed. Run `pip install fastmcp` to serve MCP.")
        return None

    fastmcp_class = getattr(module, "FastMCP", None)
    if not isinstance(fastmcp_class, type):
        _LOG.error("fastmcp.FastMCP is unavailable.")
        return None
    return cast(type[Any], fastmcp_class)


def create_mcp_server(kb: KnowledgeBase, fastmcp_class: type[Any] | None = None) -> Any | None:
    """Create the MCP server for *kb* with all article tools registered."""
    server_class = fastmcp_class if fastmcp_class is not None else _load_fastmcp_class()
    if server_class is None:
        return None
    server = server_class(SERVER_NAME)
    _register_tools(server, kb)
    _register_resources(server, kb)
    return server

"""Keep article files and the index consistent across every mutation.

Files are written first and are authoritative; the index follows.  When the
index step fails after a file write the coordinator compensates:

* create: the new file is discarded (best effort) and the index error raised.
* update: the overwrite cannot be undone, so ``PartialUpdateError`` is raised.
* delete: the file is already gone and the index row lingers until the next
  successful delete or re-index of that id; the index error is raised.

Dependencies: config, errors, models, store.documents, store.index
Wired in: server/mcp_server.py → create_mcp_server(), cli.py → _start()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from minkb.config import KBConfig, ensure_directories
from minkb.errors import PartialUpdateError
from minkb.models import (
    Article,
    ArticleSummary,
    CreatedArticle,
    IndexStats,
    SearchHit,
    join_keywords,
)
from minkb.store.documents import DocumentStore
from minkb.store.index import IndexEngine, SearchMode

logger = logging.getLogger(__name__)


class KnowledgeBase:
    """Article CRUD, search and listing over one document store and index."""

    def __init__(self, store: DocumentStore, index: IndexEngine, *, name: str = "default") -> None:
        self.name = name
        self.store = store
        self.index = index

    @classmethod
    def from_config(cls, config: KBConfig) -> KnowledgeBase:
        """Build the store and index for *config*, creating its directories."""
        ensure_directories(config)
        return cls(
            DocumentStore(config.articles_dir),
            IndexEngine(config.db_path),
            name=config.name,
        )

    @property
    def search_mode(self) -> SearchMode:
        """Search capability of the underlying index."""
        return self.index.search_mode

    # -- mutations ------------------------------------------------------------

    async def create(
        self,
        content: str,
        title: str | None = None,
        keywords: Sequence[str] | None = None,
    ) -> CreatedArticle:
        """Store a new article and index it; nothing survives a failed index."""
        await self.index.ready()
        article_id, file_path = await asyncio.to_thread(self.store.create, content)
        article = Article(
            id=article_id,
            file_path=file_path,
            content=content,
            title=title,
            keywords=join_keywords(keywords),
        )
        try:
            await self.index.index_article(article)
        except Exception:
            removed = await asyncio.to_thread(self.store.discard, file_path)
            logger.error(
                "Indexing new article %s failed; file %s",
                article_id,
                "discarded" if removed else "left orphaned",
            )
            raise
        logger.info("Created article %s", article_id)
        return CreatedArticle(id=article_id, file_path=file_path)

    async def update(
        self,
        article_id: str,
        content: str,
        title: str | None = None,
        keywords: Sequence[str] | None = None,
    ) -> None:
        """Replace an article's content and re-index it."""
        await self.index.ready()
        path = self.store.path_for(article_id)
        await asyncio.to_thread(self.store.update, path, content)
        article = Article(
            id=article_id,
            file_path=str(path),
            content=content,
            title=title,
            keywords=join_keywords(keywords),
        )
        try:
            await self.index.index_article(article)
        except Exception as exc:
            logger.error("Re-indexing article %s failed after its file was overwritten", article_id)
            raise PartialUpdateError(
                article_id,
                f"Article {article_id} was written but could not be re-indexed: {exc}",
            ) from exc
        logger.info("Updated article %s", article_id)

    async def delete(self, article_id: str) -> None:
        """Remove an article file, then its index rows."""
        await self.index.ready()
        path = self.store.path_for(article_id)
        await asyncio.to_thread(self.store.delete, path)
        try:
            await self.index.deindex_article(article_id)
        except Exception:
            logger.error("Article %s file deleted but its index rows remain", article_id)
            raise
        logger.info("Deleted article %s", article_id)

    # -- reads ----------------------------------------------------------------

    async def read(self, article_id: str) -> str:
        """Return the stored Markdown of *article_id*."""
        path = self.store.path_for(article_id)
        return await asyncio.to_thread(self.store.read, path)

    async def search(self, query: str, limit: int = 10) -> list[SearchHit]:
        """Articles matching *query*, best match first."""
        return await self.index.search(query, limit)

    async def list(self, page: int = 1, size: int = 10) -> list[ArticleSummary]:
        """One 1-indexed page of articles in creation order."""
        return await self.index.list_articles(page, size)

    async def related(self, article_id: str, limit: int = 10) -> list[ArticleSummary]:
        """Articles sharing at least one keyword with *article_id*."""
        return await self.index.related(article_id, limit)

    async def stats(self) -> IndexStats:
        """Article count and search mode of the index."""
        return await self.index.stats()

    async def close(self) -> None:
        """Close the index; article files need no cleanup."""
        await self.index.close()

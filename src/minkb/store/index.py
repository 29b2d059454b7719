"""SQLite index over article metadata and content with optional FTS5 search.

Article files are the source of truth; this database is a queryable
projection of them.  It holds three structures:

* ``articles``: metadata keyed by article id.
* ``articles_content``: Markdown-stripped text, used by the substring
  fallback and to backfill the full-text table.
* ``articles_fts``: an FTS5 table, only when the SQLite build supports it.

Full-text capability is probed once when the engine initializes and fixed
for the engine's lifetime (see :class:`SearchMode`).  Every write runs in a
single transaction; full-text failures inside it are rolled back to a
savepoint and logged so the authoritative tables are never lost to an
optional feature.  Commits are durable on return (WAL + ``synchronous=FULL``).

Dependencies: db, errors, models, store.markdown
Wired in: coordinator.py → KnowledgeBase
"""

from __future__ import annotations

import asyncio
import logging
import re
import sqlite3
import threading
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import TypeVar

from minkb.db import open_db
from minkb.errors import IndexInitError, IndexQueryError, IndexWriteError
from minkb.models import Article, ArticleSummary, IndexStats, SearchHit, split_keywords
from minkb.store.markdown import extract_title, strip_markdown

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


class SearchMode(Enum):
    """Search capability of an index database."""

    FULLTEXT_STEMMED = "fulltext_stemmed"
    FULLTEXT_PLAIN = "fulltext_plain"
    SUBSTRING = "substring"


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_CREATE_ARTICLES_SQL = """
CREATE TABLE IF NOT EXISTS articles (
    id TEXT PRIMARY KEY,
    file_path TEXT NOT NULL,
    title TEXT,
    keywords TEXT
);
"""

_CREATE_CONTENT_SQL = """
CREATE TABLE IF NOT EXISTS articles_content (
    id TEXT PRIMARY KEY,
    content TEXT NOT NULL
);
"""

# Each probe must create a table named ``articles_fts`` with columns
# ``id UNINDEXED, content``; the first one that succeeds decides the mode.
DEFAULT_PROBES: tuple[tuple[SearchMode, str], ...] = (
    (
        SearchMode.FULLTEXT_STEMMED,
        "CREATE VIRTUAL TABLE IF NOT EXISTS articles_fts "
        "USING fts5(id UNINDEXED, content, tokenize='porter')",
    ),
    (
        SearchMode.FULLTEXT_PLAIN,
        "CREATE VIRTUAL TABLE IF NOT EXISTS articles_fts USING fts5(id UNINDEXED, content)",
    ),
)

# Largest value SQLite accepts as an INTEGER parameter.
_SQLITE_MAX_INT = 2**63 - 1

_UPSERT_ARTICLE_SQL = """
INSERT INTO articles (id, file_path, title, keywords)
VALUES (?, ?, ?, ?)
ON CONFLICT(id) DO UPDATE SET
    file_path = excluded.file_path,
    title = excluded.title,
    keywords = excluded.keywords
"""

_UPSERT_CONTENT_SQL = """
INSERT INTO articles_content (id, content)
VALUES (?, ?)
ON CONFLICT(id) DO UPDATE SET content = excluded.content
"""

_RANKED_SEARCH_SQL = """
SELECT a.id, a.file_path, a.title, a.keywords, bm25(articles_fts) AS score
FROM articles_fts
JOIN articles a ON articles_fts.id = a.id
WHERE articles_fts MATCH ?
ORDER BY score
LIMIT ?
"""

_UNRANKED_SEARCH_SQL = """
SELECT a.id, a.file_path, a.title, a.keywords, 0 AS score
FROM articles_fts
JOIN articles a ON articles_fts.id = a.id
WHERE articles_fts MATCH ?
LIMIT ?
"""

_SUBSTRING_SEARCH_SQL = """
SELECT a.id, a.file_path, a.title, a.keywords, 0 AS score
FROM articles_content c
JOIN articles a ON c.id = a.id
WHERE instr(c.content, ?) > 0
ORDER BY a.rowid
LIMIT ?
"""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def sanitize_fts_query(query: str) -> str:
    """Turn user input into a safe FTS5 query string.

    Punctuation is dropped and every remaining token becomes a quoted prefix
    term, so words like ``NOT`` or ``NEAR`` are matched literally instead of
    being read as operators.  Terms are combined with FTS5's implicit AND.
    """
    cleaned = re.sub(r"[^\w\s]", " ", query)
    return " ".join(f'"{token}"*' for token in cleaned.split())


@contextmanager
def _transaction(conn: sqlite3.Connection) -> Iterator[None]:
    """Run the body inside ``BEGIN IMMEDIATE``/``COMMIT``, rolling back on error."""
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield
        conn.execute("COMMIT")
    except BaseException:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise


@contextmanager
def _tolerated(conn: sqlite3.Connection, action: str, target: str) -> Iterator[None]:
    """Savepoint whose failure is rolled back and logged instead of raised."""
    conn.execute("SAVEPOINT fulltext")
    try:
        yield
    except sqlite3.Error:
        conn.execute("ROLLBACK TO fulltext")
        logger.warning(
            "Full-text %s failed for %s; keeping metadata and content",
            action,
            target,
            exc_info=True,
        )
    finally:
        conn.execute("RELEASE fulltext")


def _summary(row: sqlite3.Row) -> ArticleSummary:
    return ArticleSummary(
        id=str(row["id"]),
        file_path=str(row["file_path"]),
        title=row["title"],
        keywords=row["keywords"],
    )


def _hit(row: sqlite3.Row, *, ranked: bool) -> SearchHit:
    score = row["score"]
    return SearchHit(
        id=str(row["id"]),
        file_path=str(row["file_path"]),
        title=row["title"],
        keywords=row["keywords"],
        rank=float(score) if ranked and isinstance(score, int | float) else 0.0,
    )


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class IndexEngine:
    """Async facade over the index database.

    Nothing touches the database until :meth:`ready` is first awaited; every
    operation awaits it, and concurrent early callers share the same
    initialization task.  Database work runs in a worker thread, serialized by
    a lock so writes never interleave.
    """

    def __init__(
        self,
        db_path: Path,
        *,
        probes: Sequence[tuple[SearchMode, str]] = DEFAULT_PROBES,
    ) -> None:
        self.db_path = db_path
        self._probes = tuple(probes)
        self._conn: sqlite3.Connection | None = None
        self._mode = SearchMode.SUBSTRING
        self._ranked = False
        self._init_task: asyncio.Future[None] | None = None
        self._db_lock = threading.Lock()
        self._closed = False

    # -- lifecycle ----------------------------------------------------------

    async def ready(self) -> None:
        """Wait for the one-time initialization, starting it if needed."""
        if self._closed:
            raise RuntimeError("Index engine is closed")
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(asyncio.to_thread(self._initialize))
        await asyncio.shield(self._init_task)

    @property
    def search_mode(self) -> SearchMode:
        """Capability decided at initialization (``SUBSTRING`` before it)."""
        return self._mode

    @property
    def ranked(self) -> bool:
        """Whether full-text results are ordered by ``bm25``."""
        return self._ranked

    async def close(self) -> None:
        """Checkpoint and close the database.  Safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True
        task = self._init_task
        if task is not None and not task.done():
            await asyncio.wait([task])
        if task is not None and task.done() and not task.cancelled() and task.exception():
            logger.debug("Closing index %s after failed initialization", self.db_path)
        await asyncio.to_thread(self._close_sync)

    def _close_sync(self) -> None:
        with self._db_lock:
            conn, self._conn = self._conn, None
            if conn is None:
                return
            try:
                conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
            except sqlite3.Error:
                logger.warning("WAL checkpoint failed while closing %s", self.db_path, exc_info=True)
            finally:
                conn.close()
        logger.info("Closed index %s", self.db_path)

    def _initialize(self) -> None:
        try:
            conn = open_db(self.db_path)
        except (OSError, sqlite3.Error) as exc:
            raise IndexInitError(f"Failed to open index {self.db_path}: {exc}") from exc
        try:
            conn.execute(_CREATE_ARTICLES_SQL)
            conn.execute(_CREATE_CONTENT_SQL)
            mode = self._detect_search_mode(conn)
            ranked = mode is not SearchMode.SUBSTRING and self._probe_ranking(conn)
            if mode is not SearchMode.SUBSTRING:
                self._sync_fulltext(conn)
        except sqlite3.Error as exc:
            conn.close()
            raise IndexInitError(f"Failed to initialize index {self.db_path}: {exc}") from exc
        with self._db_lock:
            self._conn, self._mode, self._ranked = conn, mode, ranked
        logger.info(
            "Index %s ready (search mode: %s, ranked: %s)", self.db_path, mode.value, ranked
        )

    def _detect_search_mode(self, conn: sqlite3.Connection) -> SearchMode:
        """Reuse an existing full-text table if usable, otherwise run the probes."""
        row = conn.execute(
            "SELECT sql FROM sqlite_master WHERE name = 'articles_fts'"
        ).fetchone()
        if row is not None:
            try:
                conn.execute("SELECT count(*) FROM articles_fts").fetchone()
            except sqlite3.Error:
                logger.warning("Existing full-text table is unusable in this SQLite build")
                return SearchMode.SUBSTRING
            if "porter" in str(row["sql"]).lower():
                return SearchMode.FULLTEXT_STEMMED
            return SearchMode.FULLTEXT_PLAIN

        for mode, sql in self._probes:
            try:
                conn.execute(sql)
            except sqlite3.Error as exc:
                logger.debug("Full-text probe %s failed: %s", mode.value, exc)
                continue
            return mode
        return SearchMode.SUBSTRING

    @staticmethod
    def _probe_ranking(conn: sqlite3.Connection) -> bool:
        try:
            conn.execute(
                "SELECT bm25(articles_fts) FROM articles_fts WHERE articles_fts MATCH ? LIMIT 1",
                ('"probe"',),
            ).fetchall()
        except sqlite3.Error as exc:
            logger.info("bm25 ranking unavailable, search results will be unordered: %s", exc)
            return False
        return True

    @staticmethod
    def _sync_fulltext(conn: sqlite3.Connection) -> None:
        """Bring the full-text table in line with the content table."""
        with _transaction(conn), _tolerated(conn, "backfill", "existing articles"):
            removed = conn.execute(
                "DELETE FROM articles_fts WHERE id NOT IN (SELECT id FROM articles)"
            ).rowcount
            added = conn.execute(
                """
                INSERT INTO articles_fts (id, content)
                SELECT c.id, c.content FROM articles_content c
                WHERE c.id NOT IN (SELECT id FROM articles_fts)
                """
            ).rowcount
            if added or removed:
                logger.info("Full-text backfill: %d added, %d removed", added, removed)

    # -- plumbing -----------------------------------------------------------

    async def _run(self, func: Callable[[sqlite3.Connection], _T]) -> _T:
        await self.ready()
        return await asyncio.to_thread(self._locked, func)

    def _locked(self, func: Callable[[sqlite3.Connection], _T]) -> _T:
        with self._db_lock:
            if self._conn is None:
                raise RuntimeError("Index engine is closed")
            return func(self._conn)

    # -- writes -------------------------------------------------------------

    async def index_article(self, article: Article) -> None:
        """Upsert *article* into every index structure and commit."""

        def _write(conn: sqlite3.Connection) -> None:
            title = article.title or extract_title(article.content)
            text = strip_markdown(article.content)
            try:
                with _transaction(conn):
                    conn.execute(
                        _UPSERT_ARTICLE_SQL,
                        (article.id, article.file_path, title, article.keywords),
                    )
                    conn.execute(_UPSERT_CONTENT_SQL, (article.id, text))
                    if self._mode is not SearchMode.SUBSTRING:
                        with _tolerated(conn, "update", f"article {article.id}"):
                            conn.execute("DELETE FROM articles_fts WHERE id = ?", (article.id,))
                            conn.execute(
                                "INSERT INTO articles_fts (id, content) VALUES (?, ?)",
                                (article.id, text),
                            )
            except sqlite3.Error as exc:
                raise IndexWriteError(f"Failed to index article {article.id}: {exc}") from exc

        await self._run(_write)
        logger.debug("Indexed article %s", article.id)

    async def deindex_article(self, article_id: str) -> None:
        """Remove every index row for *article_id* in one transaction."""

        def _delete(conn: sqlite3.Connection) -> None:
            try:
                with _transaction(conn):
                    conn.execute("DELETE FROM articles WHERE id = ?", (article_id,))
                    conn.execute("DELETE FROM articles_content WHERE id = ?", (article_id,))
                    if self._mode is not SearchMode.SUBSTRING:
                        with _tolerated(conn, "delete", f"article {article_id}"):
                            conn.execute("DELETE FROM articles_fts WHERE id = ?", (article_id,))
            except sqlite3.Error as exc:
                raise IndexWriteError(f"Failed to deindex article {article_id}: {exc}") from exc

        await self._run(_delete)
        logger.debug("Deindexed article %s", article_id)

    # -- reads --------------------------------------------------------------

    async def search(self, query: str, limit: int = 10) -> list[SearchHit]:
        """Return up to *limit* articles matching *query*, best match first.

        Full-text modes rank by ``bm25`` (lower is better) when available;
        the substring fallback matches raw containment with ``rank == 0``.
        """
        await self.ready()
        if not query.strip() or limit < 1:
            return []
        limit = min(limit, _SQLITE_MAX_INT)

        mode, ranked = self._mode, self._ranked
        if mode is SearchMode.SUBSTRING:
            sql, param = _SUBSTRING_SEARCH_SQL, query
        else:
            param = sanitize_fts_query(query)
            if not param:
                return []
            sql = _RANKED_SEARCH_SQL if ranked else _UNRANKED_SEARCH_SQL

        def _query(conn: sqlite3.Connection) -> list[SearchHit]:
            try:
                rows = conn.execute(sql, (param, limit)).fetchall()
            except sqlite3.Error as exc:
                raise IndexQueryError(f"Failed to search articles: {exc}") from exc
            return [_hit(row, ranked=ranked) for row in rows]

        return await self._run(_query)

    async def list_articles(self, page: int = 1, size: int = 10) -> list[ArticleSummary]:
        """Return one 1-indexed page of article metadata in insertion order."""
        await self.ready()
        if page < 1 or size < 1:
            return []
        offset = (page - 1) * size
        if offset > _SQLITE_MAX_INT:
            return []
        size = min(size, _SQLITE_MAX_INT)

        def _query(conn: sqlite3.Connection) -> list[ArticleSummary]:
            try:
                rows = conn.execute(
                    """
                    SELECT id, file_path, title, keywords FROM articles
                    ORDER BY rowid
                    LIMIT ? OFFSET ?
                    """,
                    (size, offset),
                ).fetchall()
            except sqlite3.Error as exc:
                raise IndexQueryError(f"Failed to list articles: {exc}") from exc
            return [_summary(row) for row in rows]

        return await self._run(_query)

    async def get_article(self, article_id: str) -> ArticleSummary | None:
        """Return the metadata row for *article_id*, or ``None``."""

        def _query(conn: sqlite3.Connection) -> ArticleSummary | None:
            try:
                row = conn.execute(
                    "SELECT id, file_path, title, keywords FROM articles WHERE id = ?",
                    (article_id,),
                ).fetchone()
            except sqlite3.Error as exc:
                raise IndexQueryError(f"Failed to load article {article_id}: {exc}") from exc
            return _summary(row) if row is not None else None

        return await self._run(_query)

    async def related(self, article_id: str, limit: int = 10) -> list[ArticleSummary]:
        """Articles sharing at least one keyword with *article_id*.

        Ordered by number of shared keywords, then insertion order.
        """
        target = await self.get_article(article_id)
        if target is None or limit < 1:
            return []
        wanted = split_keywords(target.keywords)
        if not wanted:
            return []

        def _query(conn: sqlite3.Connection) -> list[ArticleSummary]:
            try:
                rows = conn.execute(
                    """
                    SELECT id, file_path, title, keywords FROM articles
                    WHERE keywords IS NOT NULL AND id != ?
                    ORDER BY rowid
                    """,
                    (article_id,),
                ).fetchall()
            except sqlite3.Error as exc:
                raise IndexQueryError(f"Failed to find related articles: {exc}") from exc
            scored = [
                (len(wanted & split_keywords(row["keywords"])), _summary(row)) for row in rows
            ]
            scored = [item for item in scored if item[0] > 0]
            scored.sort(key=lambda item: -item[0])
            return [summary for _, summary in scored[:limit]]

        return await self._run(_query)

    async def stats(self) -> IndexStats:
        """Article count and search capability of this index."""

        def _query(conn: sqlite3.Connection) -> IndexStats:
            try:
                row = conn.execute("SELECT COUNT(*) AS article_count FROM articles").fetchone()
            except sqlite3.Error as exc:
                raise IndexQueryError(f"Failed to count articles: {exc}") from exc
            count = int(row["article_count"]) if row is not None else 0
            return IndexStats(article_count=count, search_mode=self._mode.value)

        return await self._run(_query)

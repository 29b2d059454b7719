"""Shared test fixtures for min-kb."""

from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path

import pytest
import pytest_asyncio

from minkb.coordinator import KnowledgeBase
from minkb.store.documents import DocumentStore
from minkb.store.index import DEFAULT_PROBES, IndexEngine, SearchMode

_BROKEN_STEMMED_PROBE = (
    SearchMode.FULLTEXT_STEMMED,
    "CREATE VIRTUAL TABLE articles_fts "
    "USING fts5(id UNINDEXED, content, tokenize='no_such_tokenizer')",
)
_BROKEN_PLAIN_PROBE = (
    SearchMode.FULLTEXT_PLAIN,
    "CREATE VIRTUAL TABLE articles_fts USING no_such_module(id, content)",
)

# Probe sequences that force each capability state on any SQLite build with FTS5.
PROBES_BY_MODE: dict[SearchMode, tuple[tuple[SearchMode, str], ...]] = {
    SearchMode.FULLTEXT_STEMMED: DEFAULT_PROBES,
    SearchMode.FULLTEXT_PLAIN: (_BROKEN_STEMMED_PROBE, DEFAULT_PROBES[1]),
    SearchMode.SUBSTRING: (_BROKEN_STEMMED_PROBE, _BROKEN_PLAIN_PROBE),
}


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    """Index database location inside the test's temp directory."""
    return tmp_path / "kb" / "kb.sqlite"


@pytest.fixture()
def articles_dir(tmp_path: Path) -> Path:
    return tmp_path / "kb" / "articles"


@pytest_asyncio.fixture()
async def engine(db_path: Path) -> AsyncIterator[IndexEngine]:
    """Initialized index engine with default probes."""
    index = IndexEngine(db_path)
    await index.ready()
    yield index
    await index.close()


@pytest_asyncio.fixture(params=list(SearchMode), ids=lambda mode: mode.value)
async def mode_engine(request: pytest.FixtureRequest, db_path: Path) -> AsyncIterator[IndexEngine]:
    """Index engine forced into each search mode in turn."""
    index = IndexEngine(db_path, probes=PROBES_BY_MODE[request.param])
    await index.ready()
    assert index.search_mode is request.param
    yield index
    await index.close()


@pytest_asyncio.fixture()
async def kb(articles_dir: Path, db_path: Path) -> AsyncIterator[KnowledgeBase]:
    """Knowledge base over a temp directory, closed after the test."""
    knowledge_base = KnowledgeBase(DocumentStore(articles_dir), IndexEngine(db_path), name="test")
    yield knowledge_base
    await knowledge_base.close()

"""Article files and their SQLite index.

Public API: DEFAULT_PROBES, DocumentStore, IndexEngine, SearchMode,
    extract_title, sanitize_fts_query, strip_markdown
Internal: documents, index, markdown
"""

from minkb.store.documents import DocumentStore
from minkb.store.index import DEFAULT_PROBES, IndexEngine, SearchMode, sanitize_fts_query
from minkb.store.markdown import extract_title, strip_markdown

__all__ = [
    "DEFAULT_PROBES",
    "DocumentStore",
    "IndexEngine",
    "SearchMode",
    "extract_title",
    "sanitize_fts_query",
    "strip_markdown",
]

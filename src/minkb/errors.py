"""Error taxonomy shared by the document store, index engine and coordinator.

Dependencies: (none, leaf module)
Wired in: store/documents.py, store/index.py, coordinator.py, server/mcp_server.py
"""

from __future__ import annotations


class KnowledgeBaseError(RuntimeError):
    """Base class for every failure surfaced by the knowledge base core."""


class StoreNotFoundError(KnowledgeBaseError):
    """The article file does not exist or cannot be read."""


class StoreWriteError(KnowledgeBaseError):
    """Writing, replacing or removing an article file failed."""


class IndexWriteError(KnowledgeBaseError):
    """A metadata or content table write failed and was rolled back."""


class IndexQueryError(KnowledgeBaseError):
    """A read against the index failed for a reason other than "no matches"."""


class IndexInitError(KnowledgeBaseError):
    """Opening the index database or creating its schema failed."""


class PartialUpdateError(KnowledgeBaseError):
    """The article file was overwritten but re-indexing it failed.

    The previous content is not recoverable; file and index disagree until the
    article is updated again.
    """

    def __init__(self, article_id: str, message: str) -> None:
        super().__init__(message)
        self.article_id = article_id

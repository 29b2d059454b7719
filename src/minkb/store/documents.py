"""File-backed article storage: the source of truth for article content.

Storage layout::

    {articles_dir}/
    └── {id}.md

Every write goes to a hidden temp file in the same directory, is fsynced and
then moved into place with ``os.replace`` so readers never see a partial file.

Dependencies: errors
Wired in: coordinator.py → KnowledgeBase
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from uuid import uuid4

from minkb.errors import StoreNotFoundError, StoreWriteError

logger = logging.getLogger(__name__)

_ARTICLE_SUFFIX = ".md"
_SAFE_ID_RE = re.compile(r"\A[A-Za-z0-9][A-Za-z0-9_-]{0,127}\Z")
_FILE_MODE = 0o644


class DocumentStore:
    """Create, read, update and delete ``<id>.md`` files in one directory."""

    def __init__(self, articles_dir: Path) -> None:
        self.articles_dir = articles_dir

    def path_for(self, article_id: str) -> Path:
        """Return the deterministic file path for *article_id*.

        Ids that could escape the articles directory cannot name an existing
        article, so they are reported as not found.
        """
        if not _SAFE_ID_RE.match(article_id or ""):
            raise StoreNotFoundError(f"Invalid article id: {article_id!r}")
        return self.articles_dir / f"{article_id}{_ARTICLE_SUFFIX}"

    def create(self, content: str) -> tuple[str, str]:
        """Write *content* under a fresh id and return ``(id, file_path)``."""
        article_id = str(uuid4())
        path = self.path_for(article_id)
        try:
            self.articles_dir.mkdir(parents=True, exist_ok=True)
            _atomic_write(path, content)
        except (OSError, UnicodeEncodeError) as exc:
            raise StoreWriteError(f"Failed to create article {article_id}: {exc}") from exc
        logger.debug("Created article file %s", path)
        return article_id, str(path)

    def read(self, file_path: str | Path) -> str:
        """Return the exact content stored at *file_path*."""
        path = Path(file_path)
        try:
            with path.open(encoding="utf-8", newline="") as handle:
                return handle.read()
        except (OSError, UnicodeDecodeError) as exc:
            raise StoreNotFoundError(f"Failed to read article {path.name}: {exc}") from exc

    def update(self, file_path: str | Path, new_content: str) -> None:
        """Replace the content of an existing article file."""
        path = Path(file_path)
        if not path.is_file():
            raise StoreNotFoundError(f"Article file not found: {path.name}")
        try:
            _atomic_write(path, new_content)
        except (OSError, UnicodeEncodeError) as exc:
            raise StoreWriteError(f"Failed to update article {path.name}: {exc}") from exc

    def delete(self, file_path: str | Path) -> None:
        """Remove an article file."""
        path = Path(file_path)
        try:
            path.unlink()
        except FileNotFoundError as exc:
            raise StoreNotFoundError(f"Article file not found: {path.name}") from exc
        except OSError as exc:
            raise StoreWriteError(f"Failed to delete article {path.name}: {exc}") from exc

    def discard(self, file_path: str | Path) -> bool:
        """Best-effort removal used to compensate a failed create.

        A file that is already gone counts as removed.  Other failures are
        logged and reported as ``False`` so they never mask the error that
        triggered the compensation.
        """
        path = Path(file_path)
        try:
            path.unlink(missing_ok=True)
        except OSError:
            logger.warning("Could not remove orphaned article file %s", path, exc_info=True)
            return False
        return True


def _atomic_write(path: Path, content: str) -> None:
    """Write *content* to *path* through an fsynced temp file and ``os.replace``."""
    temp_path = path.with_name(f".{path.name}.{uuid4().hex}.tmp")
    fd = os.open(temp_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, _FILE_MODE)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, path)
    finally:
        if temp_path.exists():
            temp_path.unlink()

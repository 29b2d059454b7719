"""Knowledge base naming, path resolution and transport settings.

Each knowledge base gets an isolated directory under ``~/.min-kb-mcp/{name}/``
holding one SQLite index file and an ``articles/`` directory of ``<id>.md``
files.  ``resolve_kb_config`` returns a structured ``KBConfig`` that other
modules use instead of hard-coding paths.

Dependencies: (none, leaf module)
Wired in: cli.py → main(), coordinator.py → KnowledgeBase.from_config()
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, cast

_MIN_KB_HOME_DEFAULT = "~/.min-kb-mcp"
_DEFAULT_HOST = "127.0.0.1"
_DEFAULT_PORT = 3000
_UNSAFE_PATTERN = re.compile(r"[/\\]|\.\.")
_MAX_NAME_LENGTH = 64
_VALID_TRANSPORTS = frozenset({"stdio", "http"})

Transport = Literal["stdio", "http"]


@dataclass(frozen=True)
class KBConfig:
    """Resolved locations and server settings for a single knowledge base."""

    name: str

    root: Path
    """``~/.min-kb-mcp/{name}/``"""

    db_path: Path
    """``root/{name}.sqlite``"""

    articles_dir: Path
    """``root/articles/``"""

    transport: Transport = "stdio"
    host: str = _DEFAULT_HOST
    port: int = _DEFAULT_PORT


def validate_kb_name(name: str) -> str:
    """Validate a knowledge base name used as a directory and file stem.

    Rejects empty strings, names containing path traversal sequences
    (``..``, ``/``, ``\\``), and names longer than 64 characters.

    Returns the stripped *name* on success, raises ``ValueError`` otherwise.
    """
    stripped = name.strip() if name else ""
    if not stripped:
        raise ValueError("Knowledge base name is required")
    if _UNSAFE_PATTERN.search(stripped):
        raise ValueError(f"Knowledge base name contains unsafe path characters: {stripped!r}")
    if len(stripped) > _MAX_NAME_LENGTH:
        raise ValueError(
            f"Knowledge base name exceeds {_MAX_NAME_LENGTH} characters: {len(stripped)}"
        )
    return stripped


def _resolve_transport(transport: str | None) -> Transport:
    raw = (transport or os.getenv("MCP_TRANSPORT") or "stdio").strip().lower()
    if raw not in _VALID_TRANSPORTS:
        raise ValueError(f"Unknown transport {raw!r}; expected one of: stdio, http")
    return cast(Transport, raw)


def _resolve_port(port: int | None) -> int:
    if port is not None:
        resolved = port
    else:
        raw = os.getenv("MCP_PORT")
        if not raw:
            return _DEFAULT_PORT
        try:
            resolved = int(raw)
        except ValueError as exc:
            raise ValueError(f"MCP_PORT must be an integer, got {raw!r}") from exc
    if not 0 < resolved < 65536:
        raise ValueError(f"Port out of range: {resolved}")
    return resolved


def resolve_kb_config(
    name: str,
    *,
    transport: str | None = None,
    host: str | None = None,
    port: int | None = None,
) -> KBConfig:
    """Build the full ``KBConfig`` for knowledge base *name*.

    Priority for every setting: explicit argument > environment variable
    (``MIN_KB_HOME``, ``MCP_TRANSPORT``, ``MCP_HOST``, ``MCP_PORT``) > default.
    No directories are created; see :func:`ensure_directories`.
    """
    kb_name = validate_kb_name(name)
    home = Path(os.getenv("MIN_KB_HOME", _MIN_KB_HOME_DEFAULT)).expanduser()
    root = home / kb_name
    return KBConfig(
        name=kb_name,
        root=root,
        db_path=root / f"{kb_name}.sqlite",
        articles_dir=root / "articles",
        transport=_resolve_transport(transport),
        host=host or os.getenv("MCP_HOST", _DEFAULT_HOST),
        port=_resolve_port(port),
    )


def ensure_directories(config: KBConfig) -> None:
    """Create the knowledge base root and articles directories."""
    config.root.mkdir(parents=True, exist_ok=True)
    config.articles_dir.mkdir(parents=True, exist_ok=True)

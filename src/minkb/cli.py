"""Command-line entrypoint that serves one knowledge base over MCP."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from importlib.metadata import PackageNotFoundError, version

from dotenv import load_dotenv

from minkb.config import KBConfig, resolve_kb_config
from minkb.coordinator import KnowledgeBase
from minkb.errors import IndexInitError
from minkb.server.mcp_server import create_mcp_server

_LOG = logging.getLogger(__name__)

_DEFAULT_VERSION = "0.1.0"
_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def project_version() -> str:
    """Installed package version, falling back to 0.1.0 in a source checkout."""
    try:
        return version("min-kb-mcp")
    except PackageNotFoundError:
        return _DEFAULT_VERSION


def parse_cli_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        prog="min-kb-mcp", description="Markdown knowledge base served over MCP"
    )
    parser.add_argument("--version", action="version", version=project_version())
    commands = parser.add_subparsers(dest="command", required=True)

    start = commands.add_parser("start", help="Start the MCP server for a knowledge base")
    start.add_argument("--kb", required=True, help="Knowledge base name")
    start.add_argument(
        "--transport",
        choices=("stdio", "http"),
        default=None,
        help="MCP transport (default: $MCP_TRANSPORT or 'stdio')",
    )
    start.add_argument("--host", default=None, help="HTTP bind host (default: $MCP_HOST)")
    start.add_argument("--port", type=int, default=None, help="HTTP bind port (default: $MCP_PORT)")
    return parser.parse_args(argv)


def configure_logging() -> None:
    """Send logs to stderr; stdout carries the stdio transport."""
    level_name = os.getenv("MIN_KB_LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(level=level, format=_LOG_FORMAT, stream=sys.stderr)


def _start(config: KBConfig) -> None:
    try:
        kb = KnowledgeBase.from_config(config)
        asyncio.run(kb.index.ready())
    except (OSError, IndexInitError) as exc:
        raise SystemExit(f"Failed to prepare knowledge base '{config.name}': {exc}") from exc

    server = create_mcp_server(kb)
    if server is None:
        asyncio.run(kb.close())
        raise SystemExit("fastmcp is required to serve a knowledge base.")

    _LOG.info(
        "Serving knowledge base '%s' from %s over %s", config.name, config.root, config.transport
    )
    try:
        if config.transport == "http":
            server.run(transport="http", host=config.host, port=config.port)
        else:
            server.run(transport="stdio")
    finally:
        asyncio.run(kb.close())


def main(argv: list[str] | None = None) -> None:
    """Load environment, resolve the knowledge base and run its MCP server."""
    load_dotenv()
    configure_logging()
    args = parse_cli_args(argv)

    if args.command == "start":
        try:
            config = resolve_kb_config(
                args.kb, transport=args.transport, host=args.host, port=args.port
            )
        except ValueError as exc:
            raise SystemExit(f"Invalid configuration: {exc}") from exc
        _start(config)


if __name__ == "__main__":
    main()

"""Tests for knowledge base name validation and config resolution."""

from __future__ import annotations

from pathlib import Path

import pytest

from minkb.config import ensure_directories, resolve_kb_config, validate_kb_name


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in ("MCP_TRANSPORT", "MCP_HOST", "MCP_PORT"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("MIN_KB_HOME", str(tmp_path / "home"))


class TestValidateKbName:
    def test_accepts_and_strips(self) -> None:
        assert validate_kb_name("  notes ") == "notes"

    @pytest.mark.parametrize("name", ["", "   ", "../up", "a/b", "a\\b", "x" * 65])
    def test_rejects_unsafe_names(self, name: str) -> None:
        with pytest.raises(ValueError):
            validate_kb_name(name)

    def test_accepts_max_length(self) -> None:
        assert validate_kb_name("x" * 64) == "x" * 64


class TestResolveKbConfig:
    def test_defaults(self, tmp_path: Path) -> None:
        config = resolve_kb_config("notes")

        root = tmp_path / "home" / "notes"
        assert config.name == "notes"
        assert config.root == root
        assert config.db_path == root / "notes.sqlite"
        assert config.articles_dir == root / "articles"
        assert config.transport == "stdio"
        assert config.host == "127.0.0.1"
        assert config.port == 3000

    def test_home_defaults_to_user_directory(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("MIN_KB_HOME")
        config = resolve_kb_config("notes")
        assert config.root == Path("~/.min-kb-mcp").expanduser() / "notes"

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MCP_TRANSPORT", "HTTP")
        monkeypatch.setenv("MCP_HOST", "0.0.0.0")
        monkeypatch.setenv("MCP_PORT", "8080")

        config = resolve_kb_config("notes")

        assert (config.transport, config.host, config.port) == ("http", "0.0.0.0", 8080)

    def test_arguments_beat_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MCP_TRANSPORT", "http")
        monkeypatch.setenv("MCP_PORT", "8080")

        config = resolve_kb_config("notes", transport="stdio", host="localhost", port=9000)

        assert (config.transport, config.host, config.port) == ("stdio", "localhost", 9000)

    def test_invalid_transport(self) -> None:
        with pytest.raises(ValueError, match="transport"):
            resolve_kb_config("notes", transport="carrier-pigeon")

    @pytest.mark.parametrize("raw", ["abc", "0", "70000"])
    def test_invalid_port_from_environment(
        self, monkeypatch: pytest.MonkeyPatch, raw: str
    ) -> None:
        monkeypatch.setenv("MCP_PORT", raw)
        with pytest.raises(ValueError):
            resolve_kb_config("notes")

    def test_invalid_name(self) -> None:
        with pytest.raises(ValueError):
            resolve_kb_config("../escape")


def test_ensure_directories_creates_layout(tmp_path: Path) -> None:
    config = resolve_kb_config("notes")
    assert not config.root.exists()

    ensure_directories(config)
    ensure_directories(config)

    assert config.root.is_dir()
    assert config.articles_dir.is_dir()

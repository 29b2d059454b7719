"""Tests for the file-backed document store."""

from __future__ import annotations

from pathlib import Path

import pytest

from minkb.errors import StoreNotFoundError, StoreWriteError
from minkb.store.documents import DocumentStore


@pytest.fixture()
def store(articles_dir: Path) -> DocumentStore:
    return DocumentStore(articles_dir)


class TestPathFor:
    def test_path_is_id_plus_md(self, store: DocumentStore, articles_dir: Path) -> None:
        assert store.path_for("abc-123") == articles_dir / "abc-123.md"

    @pytest.mark.parametrize("bad_id", ["", "../escape", "a/b", "a\\b", ".hidden", "x" * 200])
    def test_unsafe_ids_not_found(self, store: DocumentStore, bad_id: str) -> None:
        with pytest.raises(StoreNotFoundError):
            store.path_for(bad_id)


class TestCreateAndRead:
    def test_round_trip_exact_bytes(self, store: DocumentStore) -> None:
        content = "# Title\r\nline with trailing space \n\nünïcödé ✓\n"
        article_id, file_path = store.create(content)

        assert Path(file_path).name == f"{article_id}.md"
        assert store.read(file_path) == content

    def test_ids_are_unique(self, store: DocumentStore) -> None:
        ids = {store.create("x")[0] for _ in range(20)}
        assert len(ids) == 20

    def test_creates_missing_directory(self, tmp_path: Path) -> None:
        store = DocumentStore(tmp_path / "deep" / "articles")
        _, file_path = store.create("body")
        assert Path(file_path).is_file()

    def test_no_temp_files_left(self, store: DocumentStore, articles_dir: Path) -> None:
        store.create("body")
        assert [path.suffix for path in articles_dir.iterdir()] == [".md"]

    def test_unwritable_location_raises(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        store = DocumentStore(blocker / "articles")
        with pytest.raises(StoreWriteError):
            store.create("body")

    def test_read_missing_raises(self, store: DocumentStore, articles_dir: Path) -> None:
        with pytest.raises(StoreNotFoundError):
            store.read(articles_dir / "missing.md")


class TestUpdate:
    def test_replaces_content(self, store: DocumentStore) -> None:
        _, file_path = store.create("old")
        store.update(file_path, "new")
        assert store.read(file_path) == "new"

    def test_missing_file_not_found(self, store: DocumentStore, articles_dir: Path) -> None:
        with pytest.raises(StoreNotFoundError):
            store.update(articles_dir / "missing.md", "new")
        assert not (articles_dir / "missing.md").exists()


class TestDelete:
    def test_removes_file(self, store: DocumentStore) -> None:
        _, file_path = store.create("body")
        store.delete(file_path)
        assert not Path(file_path).exists()

    def test_missing_file_not_found(self, store: DocumentStore, articles_dir: Path) -> None:
        with pytest.raises(StoreNotFoundError):
            store.delete(articles_dir / "missing.md")

    def test_discard_tolerates_missing(self, store: DocumentStore, articles_dir: Path) -> None:
        _, file_path = store.create("body")
        assert store.discard(file_path) is True
        assert store.discard(file_path) is True
        assert list(articles_dir.iterdir()) == []

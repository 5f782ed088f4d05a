# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for document stores."""

import pytest

from symbol_flow.storage import FileDocumentStore, InMemoryDocumentStore


class TestFileDocumentStore:
    """Tests for the on-disk store."""

    def test_read_missing_returns_empty(self, tmp_path):
        store = FileDocumentStore(memory_dir=tmp_path / "memory", project_root=tmp_path)
        assert store.read("FUNCTIONS.md") == ""
        assert not store.exists("FUNCTIONS.md")

    def test_write_creates_directory_and_replaces(self, tmp_path):
        memory_dir = tmp_path / "memory"
        store = FileDocumentStore(memory_dir=memory_dir, project_root=tmp_path)

        store.write("RULES.md", "first")
        store.write("RULES.md", "second")

        assert store.read("RULES.md") == "second"
        assert store.exists("RULES.md")
        # No temporary files left behind
        assert [p.name for p in memory_dir.iterdir()] == ["RULES.md"]

    def test_append(self, tmp_path):
        store = FileDocumentStore(memory_dir=tmp_path, project_root=tmp_path)

        store.append("ATTEMPTS.md", "a\n")
        store.append("ATTEMPTS.md", "b\n")

        assert store.read("ATTEMPTS.md") == "a\nb\n"

    @pytest.mark.parametrize("name", ["", "../escape.md", "sub/dir.md", "bad\x00name"])
    def test_rejects_invalid_names(self, tmp_path, name):
        store = FileDocumentStore(memory_dir=tmp_path, project_root=tmp_path)
        with pytest.raises(ValueError):
            store.write(name, "x")

    def test_read_source_relative_to_project_root(self, tmp_path):
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "a.js").write_text("function a() {}\n", encoding="utf-8")
        store = FileDocumentStore(memory_dir=tmp_path / "memory", project_root=tmp_path)

        assert store.read_source("src/a.js") == "function a() {}\n"

    def test_read_source_unreadable_returns_none(self, tmp_path):
        (tmp_path / "binary.js").write_bytes(b"\xff\xfe\x00invalid")
        store = FileDocumentStore(memory_dir=tmp_path / "memory", project_root=tmp_path)

        assert store.read_source("binary.js") is None
        assert store.read_source("missing.js") is None

    def test_read_source_size_limit(self, tmp_path):
        (tmp_path / "big.js").write_text("x" * 2048, encoding="utf-8")
        store = FileDocumentStore(
            memory_dir=tmp_path / "memory", project_root=tmp_path, max_file_size_kb=1
        )

        assert store.read_source("big.js") is None


class TestInMemoryDocumentStore:
    def test_documents_and_sources(self):
        store = InMemoryDocumentStore(sources={"a.js": "function a() {}"})

        store.write("FUNCTIONS.md", "content")

        assert store.read("FUNCTIONS.md") == "content"
        assert store.read("RULES.md") == ""
        assert store.read_source("a.js") == "function a() {}"
        assert store.read_source("b.js") is None
        assert store.write_count == 1

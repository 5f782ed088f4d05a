# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for index runs."""

import pytest

from symbol_flow.cache import DocumentCache
from symbol_flow.documents import (
    ARCHITECTURE_FILE,
    DISCOVERY_FILE,
    FLOW_GRAPH_FILE,
    FUNCTIONS_FILE,
    parse_discovery,
    parse_functions,
)
from symbol_flow.extractors import PatternExtractor
from symbol_flow.flow_graph import FlowGraphAssembler
from symbol_flow.indexer import IndexReport, Indexer
from symbol_flow.models import SymbolKind
from symbol_flow.source_scanner import SourceScanner


@pytest.fixture
def indexer_parts(sample_project, file_store):
    cache = DocumentCache(file_store)
    indexer = Indexer(
        store=file_store,
        cache=cache,
        scanner=SourceScanner(sample_project, memory_dir=".symbol_flow"),
        extractor=PatternExtractor(),
        assembler=FlowGraphAssembler(),
        workers=2,
    )
    return indexer, file_store, cache


class TestIndexerRun:
    """Tests for full and incremental runs."""

    def test_first_run_writes_documents(self, indexer_parts):
        indexer, store, cache = indexer_parts

        report = indexer.run()

        assert report.files_scanned == 3
        assert report.new_files == ["app/service.py", "src/math.js", "src/routes/auth.js"]
        assert report.index_written
        assert report.total_functions == report.functions_found
        assert report.directories_explored == ["app", "src", "src/routes"]

        functions = cache.get_functions()
        assert {e.name for e in functions} >= {"add", "doSomething", "loginHandler", "helper"}
        graph = cache.get_graph()
        assert not graph.is_empty()
        assert report.graph_nodes == len(graph.nodes)
        assert report.graph_edges == len(graph.edges)

        assert parse_discovery(store.read(DISCOVERY_FILE)) == {"app", "src", "src/routes"}
        assert "src/routes/" in store.read(ARCHITECTURE_FILE)

    def test_incremental_run_skips_indexed_files(self, indexer_parts):
        indexer, store, cache = indexer_parts
        indexer.run()
        functions_text = store.read(FUNCTIONS_FILE)
        graph_text = store.read(FLOW_GRAPH_FILE)

        report = indexer.run()

        assert report.files_scanned == 0
        assert report.new_files == []
        assert not report.index_written
        assert store.read(FUNCTIONS_FILE) == functions_text
        assert store.read(FLOW_GRAPH_FILE) == graph_text

    def test_incremental_run_adds_new_files_without_duplicates(self, indexer_parts, sample_project):
        indexer, store, cache = indexer_parts
        first = indexer.run()
        (sample_project / "src" / "extra.js").write_text(
            "function extra() {\n  return add(1, 2);\n}\n", encoding="utf-8"
        )

        report = indexer.run()

        assert report.new_files == ["src/extra.js"]
        assert report.total_functions == first.total_functions + 1
        entries = parse_functions(store.read(FUNCTIONS_FILE))
        keys = [(e.file, e.name) for e in entries]
        assert len(keys) == len(set(keys))

    def test_forced_run_replaces_entries(self, indexer_parts, sample_project):
        indexer, store, cache = indexer_parts
        first = indexer.run()
        (sample_project / "src" / "math.js").write_text("function only() {\n}\n", encoding="utf-8")

        stale = indexer.run()
        assert stale.files_scanned == 0

        report = indexer.run(force=True)

        assert report.forced
        names = {e.name for e in cache.get_functions() if e.file == "src/math.js"}
        assert names == {"only"}
        assert report.total_functions == first.total_functions - 1

    def test_forced_run_keeps_ids_stable(self, indexer_parts):
        indexer, store, cache = indexer_parts
        indexer.run()
        first = cache.get_graph()

        indexer.run(force=True)
        second = cache.get_graph()

        assert list(first.nodes) == list(second.nodes)
        assert [e.key() for e in first.edges] == [e.key() for e in second.edges]

    def test_forced_subpath_keeps_other_files(self, indexer_parts):
        indexer, store, cache = indexer_parts
        first = indexer.run()

        report = indexer.run(path="src", force=True)

        assert report.files_scanned == 2
        assert report.total_functions == first.total_functions
        assert any(e.file == "app/service.py" for e in cache.get_functions())

    def test_incremental_run_keeps_existing_nodes(self, indexer_parts, sample_project):
        indexer, store, cache = indexer_parts
        indexer.run()
        first = cache.get_graph()
        (sample_project / "src" / "extra.js").write_text(
            "function extra() {\n  return add(1, 2);\n}\n", encoding="utf-8"
        )

        report = indexer.run()

        second = cache.get_graph()
        assert report.index_written
        assert set(first.nodes) <= set(second.nodes)
        for node_id, node in first.nodes.items():
            assert second.nodes[node_id].kind == node.kind
        assert {e.key() for e in first.edges} <= {e.key() for e in second.edges}
        kinds = {(n.kind, n.name) for n in second.nodes.values() if n.file == "app/service.py"}
        assert (SymbolKind.CLASS, "UserService") in kinds
        assert (SymbolKind.METHOD, "UserService.find") in kinds
        assert (SymbolKind.FUNCTION, "find") not in kinds

    def test_forced_run_drops_deleted_files(self, indexer_parts, sample_project):
        indexer, store, cache = indexer_parts
        first = indexer.run()
        (sample_project / "src" / "math.js").unlink()

        report = indexer.run(force=True)

        assert report.total_functions == first.total_functions - 2
        assert all(e.file != "src/math.js" for e in cache.get_functions())
        assert all(n.file != "src/math.js" for n in cache.get_graph().nodes.values())

    def test_forced_subpath_drops_deleted_files_under_path_only(self, indexer_parts, sample_project):
        indexer, store, cache = indexer_parts
        indexer.run()
        first = cache.get_graph()
        (sample_project / "src" / "math.js").unlink()

        indexer.run(path="src", force=True)

        graph = cache.get_graph()
        assert all(n.file != "src/math.js" for n in graph.nodes.values())
        service_ids = {i for i, n in first.nodes.items() if n.file == "app/service.py"}
        assert service_ids <= set(graph.nodes)

    def test_unreadable_source_skipped(self, indexer_parts, sample_project):
        indexer, store, cache = indexer_parts
        (sample_project / "broken.js").write_bytes(b"\xff\xfe function x() {}")

        report = indexer.run()

        assert report.files_scanned == 3
        assert "broken.js" not in report.new_files

    def test_single_worker_gives_same_result(self, sample_project, file_store):
        cache = DocumentCache(file_store)
        indexer = Indexer(
            store=file_store,
            cache=cache,
            scanner=SourceScanner(sample_project, memory_dir=".symbol_flow"),
            extractor=PatternExtractor(),
            assembler=FlowGraphAssembler(),
            workers=1,
        )

        report = indexer.run()

        assert report.files_scanned == 3


class TestIndexReport:
    def test_summary_lists_new_files(self):
        report = IndexReport(
            files_scanned=12,
            functions_found=30,
            total_functions=30,
            new_files=[f"src/f{i}.js" for i in range(12)],
        )

        summary = report.summary()

        assert "Files scanned: 12" in summary
        assert "- src/f9.js" in summary
        assert "- src/f10.js" not in summary
        assert "... and 2 more" in summary

    def test_to_dict(self):
        data = IndexReport(files_scanned=1, new_files=["a.js"]).to_dict()
        assert data["files_scanned"] == 1
        assert data["new_files"] == ["a.js"]
        assert data["index_written"] is False

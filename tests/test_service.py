# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for SymbolFlowService."""

import pytest

from symbol_flow.cache import DocumentCache
from symbol_flow.documents import FUNCTIONS_FILE, DocumentKind
from symbol_flow.query_api import NOT_INDEXED_MESSAGE
from symbol_flow.service import OperationResult, SymbolFlowService
from symbol_flow.storage import FileDocumentStore, InMemoryDocumentStore


@pytest.fixture
def service(sample_project, default_config):
    service = SymbolFlowService(config=default_config, project_root=str(sample_project))
    yield service
    service.shutdown()


class TestOperationResult:
    """Tests for OperationResult."""

    def test_to_dict(self):
        result = OperationResult(success=True, message="done", data={"count": 1})
        assert result.to_dict() == {"success": True, "message": "done", "data": {"count": 1}}

    def test_failure(self):
        result = OperationResult.failure("Lookup failed", ValueError("bad kind"))

        data = result.to_dict()
        assert data["success"] is False
        assert data["error"] == "bad kind"
        assert data["data"] == {}


class TestServiceInitialization:
    def test_defaults(self, service, sample_project):
        assert service.project_root == sample_project
        assert isinstance(service.store, FileDocumentStore)
        assert service.memory_dir == sample_project / ".symbol_flow"

    def test_injected_dependencies(self, default_config, tmp_path):
        store = InMemoryDocumentStore()
        cache = DocumentCache(store)

        service = SymbolFlowService(default_config, project_root=str(tmp_path), store=store, cache=cache)

        assert service.store is store
        assert service.cache is cache

    def test_initialize_documents(self, service):
        created = service.initialize_documents()

        assert FUNCTIONS_FILE in created
        assert (service.memory_dir / FUNCTIONS_FILE).is_file()
        assert service.initialize_documents() == []


class TestServiceOperations:
    """Tests for the service operations end to end."""

    def test_queries_before_index(self, service):
        result = service.flow_subgraph(["f00000000"])

        assert result.success
        assert result.message == NOT_INDEXED_MESSAGE
        assert result.data["indexed"] is False

    def test_index_then_lookup(self, service):
        index_result = service.index()

        assert index_result.success
        assert "Files scanned: 3" in index_result.message
        assert index_result.data["files_scanned"] == 3

        lookup = service.symbol_lookup(name="add", kind="function")
        assert lookup.success
        assert [s["name"] for s in lookup.data["symbols"]] == ["add"]

    def test_add_calls_do_something_subgraph(self, service):
        service.index()
        add = service.symbol_lookup(name="add", file="src/math.js").data["symbols"][0]

        result = service.flow_subgraph([add["id"]], depth=1, direction="out")

        names = [n["name"] for n in result.data["nodes"]]
        assert names == ["add", "doSomething"]
        assert len(result.data["edges"]) == 1
        assert result.data["edges"][0]["type"] == "call"

    def test_entry_points(self, service):
        service.index()

        result = service.entry_points("login")

        assert result.success
        top = result.data["entry_points"][0]
        assert top["name"] == "loginHandler"
        # declared entry 10 + name contains 5 + signature contains 2
        assert top["score"] == 17

    def test_invalid_arguments_are_failures(self, service):
        service.index()

        assert not service.entry_points("x", kind="widget").success
        assert not service.flow_subgraph(["x"], direction="up").success
        assert not service.flow_subgraph(["x"], depth=-1).success

    def test_functions_search(self, service):
        service.index()

        result = service.functions(query="Handler")

        assert result.success
        assert [f["name"] for f in result.data["functions"]] == ["loginHandler"]

    def test_functions_duplicate_check(self, service):
        service.index()

        result = service.functions(check_duplicates=True, code="function add(x, y) {}")

        assert result.success
        assert result.data["count"] == 1
        assert result.message == "Found 1 potential duplicate(s)"

    def test_functions_duplicate_check_requires_code(self, service):
        result = service.functions(check_duplicates=True)

        assert not result.success
        assert result.error == "Missing required parameter: code"

    def test_lookup_limit_defaults_from_config(self, service):
        service.config._config["symbol_lookup_limit"] = 2
        service.index()

        assert service.symbol_lookup().data["count"] == 2

    def test_index_missing_path(self, service):
        result = service.index(path="nowhere")

        assert result.success
        assert result.data["files_scanned"] == 0


class TestServiceCache:
    def test_invalidate_all(self, service):
        service.index()
        service.symbol_lookup(name="add")

        result = service.invalidate_cache()

        assert result.success
        assert service.cache.cached_kinds() == []

    def test_invalidate_one_kind(self, service):
        service.index()
        service.symbol_lookup(name="add")

        result = service.invalidate_cache(DocumentKind.GRAPH)

        assert result.success
        assert DocumentKind.GRAPH not in service.cache.cached_kinds()

    def test_invalidate_unknown_kind(self, service):
        result = service.invalidate_cache("bogus")
        assert not result.success

    def test_cache_statistics(self, service):
        service.index()
        service.symbol_lookup(name="add")
        service.symbol_lookup(name="add")

        stats = service.get_cache_statistics()

        assert stats["hits"] >= 1


class TestServiceDocumentWatcher:
    def test_start_stop(self, service):
        service.start_document_watcher()
        assert service._document_watcher is not None
        assert service._document_watcher.is_running()

        service.stop_document_watcher()
        assert not service._document_watcher.is_running()

    def test_stop_without_start(self, service):
        service.stop_document_watcher()

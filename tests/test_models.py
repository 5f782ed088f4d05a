# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for core data models."""

from symbol_flow.models import (
    GRAPH_FORMAT_VERSION,
    CacheStatistics,
    ClassEntry,
    EdgeType,
    FlowEdge,
    FlowGraph,
    FunctionEntry,
    MethodEntry,
    SymbolKind,
    SymbolNode,
)


class TestFunctionEntry:
    """Tests for FunctionEntry."""

    def test_signature(self):
        entry = FunctionEntry(name="add", file="src/math.ts", params="a, b", return_type="number")
        assert entry.signature() == "add(a, b): number"

    def test_default_return_type(self):
        entry = FunctionEntry(name="run", file="main.py", params="")
        assert entry.return_type == "void"
        assert entry.dependencies == []

    def test_roundtrip_dict(self):
        entry = FunctionEntry(
            name="add",
            file="src/math.ts",
            params="a, b",
            return_type="number",
            line=3,
            dependencies=["helper"],
        )
        assert FunctionEntry.from_dict(entry.to_dict()) == entry

    def test_line_omitted_when_unknown(self):
        entry = FunctionEntry(name="add", file="a.js", params="")
        assert "line" not in entry.to_dict()


class TestClassEntry:
    """Tests for ClassEntry."""

    def test_signature_with_bases(self):
        entry = ClassEntry(
            name="Repo",
            file="repo.ts",
            extends="Base",
            implements=["Readable", "Writable"],
        )
        assert entry.signature() == "class Repo extends Base implements Readable, Writable"

    def test_to_dict_includes_methods(self):
        entry = ClassEntry(
            name="Repo",
            file="repo.ts",
            line=1,
            methods=[MethodEntry(name="get", params="id", line=2)],
        )
        data = entry.to_dict()
        assert data["methods"] == [{"name": "get", "params": "id", "return_type": "void", "line": 2}]
        assert "extends" not in data


class TestFlowGraph:
    """Tests for FlowGraph serialization."""

    def make_graph(self) -> FlowGraph:
        graph = FlowGraph(generated="2025-01-01T00:00:00+00:00")
        graph.nodes["fa"] = SymbolNode(id="fa", name="a", kind=SymbolKind.FUNCTION, file="a.js")
        graph.nodes["fb"] = SymbolNode(
            id="fb", name="b", kind=SymbolKind.FUNCTION, file="b.js", line=4, signature="b(): void"
        )
        graph.edges.append(FlowEdge(from_id="fa", to_id="fb", type=EdgeType.CALL))
        graph.entry_points.append("fa")
        return graph

    def test_empty(self):
        graph = FlowGraph.empty()
        assert graph.is_empty()
        assert graph.version == GRAPH_FORMAT_VERSION
        assert graph.edges == []

    def test_document_shape(self):
        data = self.make_graph().to_dict()

        assert set(data) == {"version", "generated", "nodes", "edges", "entryPoints"}
        assert data["edges"] == [{"from": "fa", "to": "fb", "type": "call"}]
        assert data["entryPoints"] == ["fa"]
        assert data["nodes"]["fb"]["signature"] == "b(): void"

    def test_roundtrip(self):
        graph = self.make_graph()
        restored = FlowGraph.from_dict(graph.to_dict())
        assert restored == graph

    def test_dangling_edges_dropped(self):
        data = self.make_graph().to_dict()
        data["edges"].append({"from": "fa", "to": "missing", "type": "call"})
        data["entryPoints"].append("missing")

        restored = FlowGraph.from_dict(data)

        assert len(restored.edges) == 1
        assert restored.entry_points == ["fa"]


class TestFlowEdge:
    def test_key_distinguishes_type(self):
        call = FlowEdge(from_id="c1", to_id="c2", type=EdgeType.CALL)
        extend = FlowEdge(from_id="c1", to_id="c2", type=EdgeType.EXTEND)
        assert call.key() != extend.key()


def test_cache_statistics_to_dict():
    stats = CacheStatistics(hits=3, misses=1)
    assert stats.to_dict() == {"hits": 3, "misses": 1, "reparses": 0, "invalidations": 0}

# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for the Query API."""

from typing import List, Optional, Tuple

import pytest

from symbol_flow.cache import DocumentCache
from symbol_flow.documents import FLOW_GRAPH_FILE, FUNCTIONS_FILE, format_functions, format_graph
from symbol_flow.models import EdgeType, FlowEdge, FlowGraph, FunctionEntry, SymbolKind, SymbolNode
from symbol_flow.query_api import NOT_INDEXED_MESSAGE, QueryAPI
from symbol_flow.storage import InMemoryDocumentStore


def make_graph(
    nodes: List[Tuple[str, str, str, str]],
    edges: List[Tuple[str, str]],
    entry_points: Optional[List[str]] = None,
    signatures: bool = False,
) -> FlowGraph:
    """Build a graph from (id, name, kind, file) tuples and call edges."""
    graph = FlowGraph(generated="2025-01-01T00:00:00+00:00")
    for node_id, name, kind, filepath in nodes:
        graph.nodes[node_id] = SymbolNode(
            id=node_id,
            name=name,
            kind=kind,
            file=filepath,
            signature=f"{name}()" if signatures else None,
        )
    for from_id, to_id in edges:
        graph.edges.append(FlowEdge(from_id=from_id, to_id=to_id, type=EdgeType.CALL))
    graph.entry_points = list(entry_points or [])
    return graph


def make_api(graph: FlowGraph, functions: Optional[List[FunctionEntry]] = None) -> QueryAPI:
    documents = {FLOW_GRAPH_FILE: format_graph(graph)}
    if functions is not None:
        documents[FUNCTIONS_FILE] = format_functions(functions)
    return QueryAPI(DocumentCache(InMemoryDocumentStore(documents=documents)))


def chain_graph(length: int) -> FlowGraph:
    """n0 -> n1 -> ... -> n(length-1)."""
    nodes = [(f"f{i}", f"fn{i}", SymbolKind.FUNCTION, "chain.js") for i in range(length)]
    edges = [(f"f{i}", f"f{i + 1}") for i in range(length - 1)]
    return make_graph(nodes, edges)


def star_graph(spokes: int) -> FlowGraph:
    """hub -> s0, s1, ... and s0 -> s0x."""
    nodes = [("hub", "hub", SymbolKind.FUNCTION, "star.js")]
    nodes += [(f"s{i}", f"spoke{i}", SymbolKind.FUNCTION, "star.js") for i in range(spokes)]
    nodes.append(("s0x", "leaf", SymbolKind.FUNCTION, "star.js"))
    edges = [("hub", f"s{i}") for i in range(spokes)] + [("s0", "s0x")]
    return make_graph(nodes, edges)


class TestNotIndexed:
    def test_queries_on_empty_graph(self, memory_cache):
        api = QueryAPI(memory_cache)

        lookup = api.lookup_symbols(name="x")
        entries = api.resolve_entry_points("x")
        subgraph = api.get_subgraph(["x"])

        for result in (lookup, entries, subgraph):
            assert result["indexed"] is False
            assert result["message"] == NOT_INDEXED_MESSAGE
        assert lookup["symbols"] == []
        assert subgraph["nodes"] == []


class TestLookupSymbols:
    """Tests for exact and filtered lookup."""

    def setup_method(self):
        graph = make_graph(
            [
                ("f1", "loadUser", SymbolKind.FUNCTION, "src/users.js"),
                ("f2", "saveUser", SymbolKind.FUNCTION, "src/users.js"),
                ("c1", "UserRepo", SymbolKind.CLASS, "src/repo.js"),
                ("m1", "UserRepo.find", SymbolKind.METHOD, "src/repo.js"),
            ],
            [],
        )
        functions = [
            FunctionEntry(name="loadUser", file="src/users.js", params="id", dependencies=["saveUser"]),
            FunctionEntry(name="find", file="src/repo.js", params="id", return_type="User"),
        ]
        self.api = make_api(graph, functions)

    def test_ids_exact_with_missing(self):
        result = self.api.lookup_symbols(ids=["f1", "nope", "c1"])

        assert [s["id"] for s in result["symbols"]] == ["f1", "c1"]
        assert result["missing"] == ["nope"]
        assert result["count"] == 2

    def test_name_filter_case_insensitive(self):
        result = self.api.lookup_symbols(name="USER")
        assert result["count"] == 4

    def test_filters_combine(self):
        result = self.api.lookup_symbols(name="user", file="repo", kind=SymbolKind.METHOD)
        assert [s["id"] for s in result["symbols"]] == ["m1"]

    def test_limit(self):
        assert self.api.lookup_symbols(limit=2)["count"] == 2
        assert self.api.lookup_symbols(limit=0)["count"] == 4

    def test_details_from_symbol_table(self):
        symbols = {s["id"]: s for s in self.api.lookup_symbols(ids=["f1", "m1", "c1", "f2"])["symbols"]}

        assert symbols["f1"]["details"] == {
            "params": "id",
            "return_type": "void",
            "dependencies": ["saveUser"],
        }
        assert symbols["m1"]["details"]["return_type"] == "User"
        assert "details" not in symbols["c1"]
        assert "details" not in symbols["f2"]


class TestResolveEntryPoints:
    """Tests for entry-point scoring."""

    def test_declared_entry_outranks_plain_match(self):
        # File paths avoid the query so only name and entry status score
        graph = make_graph(
            [
                ("u1", "authUtil", SymbolKind.FUNCTION, "src/lib.js"),
                ("h1", "AuthHandler", SymbolKind.FUNCTION, "src/server.js"),
            ],
            [],
            entry_points=["h1"],
        )

        result = make_api(graph).resolve_entry_points("auth")

        scores = [(e["name"], e["score"]) for e in result["entry_points"]]
        assert scores == [("AuthHandler", 15), ("authUtil", 5)]

    def test_exact_file_and_signature_scores(self):
        graph = make_graph(
            [
                ("f1", "login", SymbolKind.FUNCTION, "src/login.js"),
                ("f2", "other", SymbolKind.FUNCTION, "src/other.js"),
            ],
            [],
            signatures=True,
        )

        result = make_api(graph).resolve_entry_points("Login")

        # exact 10 + contains 5 + file 3 + signature 2
        assert [(e["id"], e["score"]) for e in result["entry_points"]] == [("f1", 20)]

    def test_ties_keep_node_order_and_limit(self):
        graph = make_graph(
            [(f"f{i}", f"task{i}", SymbolKind.FUNCTION, "jobs.js") for i in range(5)],
            [],
        )

        result = make_api(graph).resolve_entry_points("task", limit=3)

        assert [e["id"] for e in result["entry_points"]] == ["f0", "f1", "f2"]

    def test_kind_filter(self):
        graph = make_graph(
            [
                ("r1", "userRoute", SymbolKind.FUNCTION, "src/web.js"),
                ("h1", "userHandler", SymbolKind.FUNCTION, "src/web.js"),
                ("c1", "userCommand", SymbolKind.FUNCTION, "src/web.js"),
                ("x1", "runUser", SymbolKind.FUNCTION, "src/cli/run.js"),
            ],
            [],
        )
        api = make_api(graph)

        def ids(kind):
            return [e["id"] for e in api.resolve_entry_points("user", kind=kind)["entry_points"]]

        assert ids("route") == ["r1"]
        assert ids("handler") == ["h1"]
        assert ids("command") == ["c1", "x1"]
        assert ids("all") == ["r1", "h1", "c1", "x1"]

    def test_invalid_kind(self):
        api = make_api(chain_graph(2))
        with pytest.raises(ValueError):
            api.resolve_entry_points("x", kind="widget")


class TestGetSubgraph:
    """Tests for bounded traversal."""

    def test_depth_zero_returns_seed_only(self):
        result = make_api(star_graph(3)).get_subgraph(["hub"], depth=0)

        assert [n["id"] for n in result["nodes"]] == ["hub"]
        assert result["edges"] == []

    def test_depth_limits_hops(self):
        api = make_api(chain_graph(5))

        result = api.get_subgraph(["f0"], depth=2, direction="out")

        assert [n["id"] for n in result["nodes"]] == ["f0", "f1", "f2"]
        assert [(e["from"], e["to"]) for e in result["edges"]] == [("f0", "f1"), ("f1", "f2")]

    def test_direction_in(self):
        api = make_api(chain_graph(4))

        result = api.get_subgraph(["f3"], depth=5, direction="in")

        assert [n["id"] for n in result["nodes"]] == ["f3", "f2", "f1", "f0"]

    def test_direction_out_ignores_callers(self):
        result = make_api(chain_graph(3)).get_subgraph(["f1"], depth=3, direction="out")
        assert [n["id"] for n in result["nodes"]] == ["f1", "f2"]

    def test_both_directions(self):
        result = make_api(chain_graph(3)).get_subgraph(["f1"], depth=1)
        assert {n["id"] for n in result["nodes"]} == {"f0", "f1", "f2"}
        assert len(result["edges"]) == 2

    def test_node_cap(self):
        result = make_api(star_graph(10)).get_subgraph(["hub"], depth=3, max_nodes=4)

        node_ids = [n["id"] for n in result["nodes"]]
        assert node_ids == ["hub", "s0", "s1", "s2"]
        included = set(node_ids)
        for edge in result["edges"]:
            assert edge["from"] in included and edge["to"] in included

    def test_edge_cap(self):
        result = make_api(star_graph(10)).get_subgraph(["hub"], depth=1, max_edges=3)

        assert len(result["edges"]) == 3
        assert len(result["nodes"]) == 11

    def test_never_revisits(self):
        graph = make_graph(
            [
                ("a", "a", SymbolKind.FUNCTION, "x.js"),
                ("b", "b", SymbolKind.FUNCTION, "x.js"),
            ],
            [("a", "b"), ("b", "a")],
        )

        result = make_api(graph).get_subgraph(["a"], depth=10)

        assert [n["id"] for n in result["nodes"]] == ["a", "b"]
        assert len(result["edges"]) == 2

    def test_unknown_seed_ignored(self):
        result = make_api(chain_graph(2)).get_subgraph(["missing", "f0"], depth=0)
        assert [n["id"] for n in result["nodes"]] == ["f0"]

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"direction": "sideways"},
            {"depth": -1},
            {"max_nodes": 0},
            {"max_edges": 0},
        ],
    )
    def test_invalid_arguments(self, kwargs):
        api = make_api(chain_graph(2))
        with pytest.raises(ValueError):
            api.get_subgraph(["f0"], **kwargs)


class TestSearchFunctions:
    def setup_method(self):
        functions = [
            FunctionEntry(name="parseConfig", file="src/config.ts", params="text: string", return_type="Config"),
            FunctionEntry(name="loadUser", file="src/users.ts", params="id: number", return_type="User"),
            FunctionEntry(name="save", file="src/users.ts", params="user: User"),
        ]
        self.api = make_api(FlowGraph.empty(), functions)

    def test_regex_over_all_fields(self):
        result = self.api.search_functions(query="^load|config$")

        assert [f["name"] for f in result["functions"]] == ["parseConfig", "loadUser"]
        assert result["total"] == 3

    def test_matches_params_and_return_type(self):
        result = self.api.search_functions(query="user")
        assert [f["name"] for f in result["functions"]] == ["loadUser", "save"]

    def test_invalid_regex_falls_back_to_literal(self):
        result = self.api.search_functions(query="user: (")
        assert result["count"] == 0

        result = self.api.search_functions(query="(id")
        assert result["count"] == 0

    def test_file_filter(self):
        result = self.api.search_functions(file="users")
        assert result["count"] == 2

    def test_no_filters_returns_everything(self):
        assert self.api.search_functions()["count"] == 3


class TestCheckDuplicates:
    def test_duplicate_reported(self):
        api = make_api(FlowGraph.empty(), [FunctionEntry(name="foo", file="src/a.js", params="x")])

        result = api.check_duplicates("function foo(x) {}")

        assert result["count"] == 1
        duplicate = result["duplicates"][0]
        assert duplicate["candidate"]["name"] == "foo"
        assert duplicate["matches"][0]["file"] == "src/a.js"

# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Query API over the symbol table and flow graph.

All reads go through the DocumentCache, never the raw documents, and every
method returns JSON-compatible dicts.

API Methods:
- lookup_symbols(ids, name, file, kind, limit): Exact or filtered node lookup
- resolve_entry_points(query, kind, limit): Ranked entry-point candidates
- get_subgraph(ids, depth, direction, max_nodes, max_edges): Bounded BFS
- search_functions(query, file): Symbol-table search
- check_duplicates(code): Similar functions for a code snippet

An empty graph is not an error: graph queries then return
``{"indexed": False, "message": NOT_INDEXED_MESSAGE, ...}``.
"""

import logging
import re
from collections import deque
from typing import TYPE_CHECKING, Any, Deque, Dict, List, Optional, Set, Tuple

from symbol_flow.models import FlowEdge, FlowGraph, FunctionEntry, SymbolKind, SymbolNode
from symbol_flow.similarity import check_duplicates

if TYPE_CHECKING:
    from symbol_flow.cache import DocumentCache
    from symbol_flow.extractors.base import SymbolExtractor

logger = logging.getLogger(__name__)

NOT_INDEXED_MESSAGE = "Flow graph not found. Run index first to generate it."

DEFAULT_LOOKUP_LIMIT = 50
DEFAULT_ENTRY_POINT_LIMIT = 10
DEFAULT_DEPTH = 2
DEFAULT_MAX_NODES = 100
DEFAULT_MAX_EDGES = 200


class Direction:
    """Traversal directions for subgraph retrieval.

    Design: Using class constants (not Enum) for JSON-compatible strings.
    """

    IN = "in"  # callers
    OUT = "out"  # callees
    BOTH = "both"

    ALL = (IN, OUT, BOTH)


class EntryKind:
    """Kind filters for entry-point resolution."""

    ROUTE = "route"
    HANDLER = "handler"
    COMMAND = "command"
    ALL = "all"

    CHOICES = (ROUTE, HANDLER, COMMAND, ALL)


# Entry-point scores
SCORE_DECLARED_ENTRY = 10
SCORE_EXACT_NAME = 10
SCORE_NAME_CONTAINS = 5
SCORE_FILE_CONTAINS = 3
SCORE_SIGNATURE_CONTAINS = 2


def score_entry_point(node: SymbolNode, query: str, declared: bool) -> int:
    """Relevance of a node to a lower-cased query."""
    score = 0
    if declared:
        score += SCORE_DECLARED_ENTRY

    name = node.name.lower()
    if query in name:
        score += SCORE_NAME_CONTAINS
    if name == query:
        score += SCORE_EXACT_NAME
    if query in node.file.lower():
        score += SCORE_FILE_CONTAINS
    if node.signature and query in node.signature.lower():
        score += SCORE_SIGNATURE_CONTAINS
    return score


def matches_entry_kind(node: SymbolNode, kind: str) -> bool:
    name = node.name.lower()
    filepath = node.file.lower()
    if kind == EntryKind.ROUTE:
        return "route" in name or "route" in filepath
    if kind == EntryKind.HANDLER:
        return "handler" in name
    if kind == EntryKind.COMMAND:
        return "command" in name or "cli" in filepath
    return True


def compile_search_pattern(query: str) -> "re.Pattern[str]":
    """Compile a case-insensitive search pattern.

    An invalid regular expression is searched for literally instead.
    """
    try:
        return re.compile(query, re.IGNORECASE)
    except re.error as e:
        logger.debug(f"Invalid search pattern {query!r} ({e}), using literal match")
        return re.compile(re.escape(query), re.IGNORECASE)


class QueryAPI:
    """Read-only queries against the cached index documents.

    Usage:
        api = QueryAPI(cache)
        seeds = api.lookup_symbols(name="handler")["symbols"]
        subgraph = api.get_subgraph([s["id"] for s in seeds], depth=1)
    """

    def __init__(
        self,
        cache: "DocumentCache",
        extractor: Optional["SymbolExtractor"] = None,
    ) -> None:
        """Initialize the Query API.

        Args:
            cache: DocumentCache owned by the service.
            extractor: Extractor used for duplicate checks of code snippets.
        """
        self._cache = cache
        self._extractor = extractor

    def _graph(self) -> FlowGraph:
        graph: FlowGraph = self._cache.get_graph()
        return graph

    @staticmethod
    def _not_indexed(**fields: Any) -> Dict[str, Any]:
        result: Dict[str, Any] = {"indexed": False, "message": NOT_INDEXED_MESSAGE}
        result.update(fields)
        return result

    def lookup_symbols(
        self,
        ids: Optional[List[str]] = None,
        name: Optional[str] = None,
        file: Optional[str] = None,
        kind: Optional[str] = None,
        limit: int = DEFAULT_LOOKUP_LIMIT,
    ) -> Dict[str, Any]:
        """Look up nodes by id, or by filters.

        With ``ids``, each id is an exact lookup and unknown ids are reported
        in ``missing``. Otherwise every supplied filter must match: ``name``
        is a case-insensitive substring, ``file`` a case-sensitive
        substring, ``kind`` an exact kind. ``limit <= 0`` means unlimited.

        Function and method results carry ``details`` (params, return type,
        dependencies) from the symbol table when available.
        """
        graph = self._graph()
        if graph.is_empty():
            return self._not_indexed(symbols=[], count=0)

        results: List[SymbolNode] = []
        missing: List[str] = []
        if ids:
            for node_id in ids:
                node = graph.nodes.get(node_id)
                if node is None:
                    missing.append(node_id)
                else:
                    results.append(node)
        else:
            name_filter = name.lower() if name else None
            for node in graph.nodes.values():
                if limit > 0 and len(results) >= limit:
                    break
                if name_filter and name_filter not in node.name.lower():
                    continue
                if file and file not in node.file:
                    continue
                if kind and node.kind != kind:
                    continue
                results.append(node)

        details = self._function_details()
        symbols = []
        for node in results:
            symbol = node.to_dict()
            if node.kind in (SymbolKind.FUNCTION, SymbolKind.METHOD):
                bare_name = node.name.rsplit(".", 1)[-1]
                entry = details.get((bare_name, node.file))
                if entry is not None:
                    symbol["details"] = {
                        "params": entry.params,
                        "return_type": entry.return_type,
                        "dependencies": list(entry.dependencies),
                    }
            symbols.append(symbol)

        result: Dict[str, Any] = {"indexed": True, "symbols": symbols, "count": len(symbols)}
        if missing:
            result["missing"] = missing
        return result

    def _function_details(self) -> Dict[Tuple[str, str], FunctionEntry]:
        details: Dict[Tuple[str, str], FunctionEntry] = {}
        for entry in self._cache.get_functions():
            details.setdefault((entry.name, entry.file), entry)
        return details

    def resolve_entry_points(
        self,
        query: str,
        kind: str = EntryKind.ALL,
        limit: int = DEFAULT_ENTRY_POINT_LIMIT,
    ) -> Dict[str, Any]:
        """Rank nodes as entry points for a free-text query.

        Scores: +10 declared entry point, +10 exact name, +5 name contains,
        +3 file contains, +2 signature contains (all case-insensitive). The
        kind filter removes nodes before ranking; only positive scores are
        kept; ties keep discovery order.

        Raises:
            ValueError: If kind is not one of EntryKind.CHOICES.
        """
        if kind not in EntryKind.CHOICES:
            raise ValueError(f"Invalid entry-point kind: {kind} (expected one of {EntryKind.CHOICES})")

        graph = self._graph()
        if graph.is_empty():
            return self._not_indexed(query=query, entry_points=[])

        query_lower = query.lower()
        declared = set(graph.entry_points)
        scored: List[Tuple[int, SymbolNode]] = []
        for node in graph.nodes.values():
            if not matches_entry_kind(node, kind):
                continue
            score = score_entry_point(node, query_lower, node.id in declared)
            if score > 0:
                scored.append((score, node))

        # sorted() is stable, so equal scores keep node order
        ranked = sorted(scored, key=lambda item: -item[0])
        if limit > 0:
            ranked = ranked[:limit]

        entry_points = []
        for score, node in ranked:
            item = node.to_dict()
            item["score"] = score
            entry_points.append(item)

        return {"indexed": True, "query": query, "entry_points": entry_points}

    def get_subgraph(
        self,
        ids: List[str],
        depth: int = DEFAULT_DEPTH,
        direction: str = Direction.BOTH,
        max_nodes: int = DEFAULT_MAX_NODES,
        max_edges: int = DEFAULT_MAX_EDGES,
    ) -> Dict[str, Any]:
        """Bounded breadth-first subgraph around seed ids.

        FIFO expansion from the seeds (in the given order), no node visited
        twice. A node is added only while fewer than ``max_nodes`` are
        included; expansion stops once the cap is reached. An edge is added
        only when both endpoints are already included and fewer than
        ``max_edges`` edges are. ``depth=0`` returns the seeds alone.

        Raises:
            ValueError: If direction is unknown, depth is negative, or a cap
                is not positive.
        """
        if direction not in Direction.ALL:
            raise ValueError(f"Invalid direction: {direction} (expected one of {Direction.ALL})")
        if depth < 0:
            raise ValueError(f"Depth must be non-negative: {depth}")
        if max_nodes <= 0 or max_edges <= 0:
            raise ValueError("max_nodes and max_edges must be positive")

        graph = self._graph()
        if graph.is_empty():
            return self._not_indexed(nodes=[], edges=[])

        outgoing: Dict[str, List[FlowEdge]] = {}
        incoming: Dict[str, List[FlowEdge]] = {}
        for edge in graph.edges:
            outgoing.setdefault(edge.from_id, []).append(edge)
            incoming.setdefault(edge.to_id, []).append(edge)

        included: Dict[str, SymbolNode] = {}
        edges: List[FlowEdge] = []
        edge_keys: Set[Tuple[str, str, str]] = set()
        queue: Deque[Tuple[str, int]] = deque()

        for node_id in ids:
            if len(included) >= max_nodes:
                break
            node = graph.nodes.get(node_id)
            if node is not None and node_id not in included:
                included[node_id] = node
                queue.append((node_id, 0))

        while queue and len(included) < max_nodes:
            node_id, current_depth = queue.popleft()
            if current_depth >= depth:
                continue

            steps: List[Tuple[FlowEdge, str]] = []
            if direction in (Direction.OUT, Direction.BOTH):
                steps.extend((edge, edge.to_id) for edge in outgoing.get(node_id, []))
            if direction in (Direction.IN, Direction.BOTH):
                steps.extend((edge, edge.from_id) for edge in incoming.get(node_id, []))

            for edge, neighbor_id in steps:
                if neighbor_id not in included and len(included) < max_nodes:
                    included[neighbor_id] = graph.nodes[neighbor_id]
                    queue.append((neighbor_id, current_depth + 1))

                if (
                    neighbor_id in included
                    and len(edges) < max_edges
                    and edge.key() not in edge_keys
                ):
                    edge_keys.add(edge.key())
                    edges.append(edge)

        logger.debug(
            f"Subgraph from {len(ids)} seed(s): {len(included)} nodes, {len(edges)} edges"
        )
        return {
            "indexed": True,
            "nodes": [node.to_dict() for node in included.values()],
            "edges": [edge.to_dict() for edge in edges],
        }

    def search_functions(
        self, query: Optional[str] = None, file: Optional[str] = None
    ) -> Dict[str, Any]:
        """Search the symbol table.

        ``query`` is a case-insensitive regular expression matched against
        name, file, params and return type; an invalid expression is matched
        literally. ``file`` is a substring filter on the file path.
        """
        functions: List[FunctionEntry] = self._cache.get_functions()
        filtered = functions
        if file:
            filtered = [entry for entry in filtered if file in entry.file]
        if query:
            pattern = compile_search_pattern(query)
            filtered = [
                entry
                for entry in filtered
                if any(
                    pattern.search(text)
                    for text in (entry.name, entry.file, entry.params, entry.return_type)
                )
            ]

        return {
            "functions": [entry.to_dict() for entry in filtered],
            "count": len(filtered),
            "total": len(functions),
        }

    def check_duplicates(self, code: str) -> Dict[str, Any]:
        """Report indexed functions similar to those declared in ``code``."""
        pairs = check_duplicates(code, self._cache.get_functions(), self._extractor)
        return {
            "duplicates": [
                {
                    "candidate": candidate.to_dict(),
                    "matches": [match.to_dict() for match in matches],
                }
                for candidate, matches in pairs
            ],
            "count": len(pairs),
        }

# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Flow-graph assembly from per-file extraction results.

The assembler is a pure function of its inputs: it always builds a complete
new graph and never merges into a previous one.

Algorithm:
1. One ``function`` node per function entry that is not also a method of
   an extracted class. Functions in entry files with entry-like names are
   entry points.
2. One ``class`` node per class, one ``method`` node per method (named
   ``Class.method``), a ``contains`` edge class -> method, an ``extend`` edge
   to an indexed superclass and an ``implement`` edge to each indexed
   interface.
3. One ``call`` edge per call-map pair whose caller and callee both
   resolve. Unresolved pairs are dropped.

Call resolution for a callee named ``n`` called from caller ``c`` in file
``F``, first hit wins:
1. ``Class.n`` where ``Class`` is the caller's own class
2. a node named exactly ``n``
3. a method node whose name ends with ``.n``
Within each step a node in ``F`` is preferred over nodes in other files.
"""

import logging
import os
import re
from dataclasses import replace
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from symbol_flow.identity import DEFAULT_ID_LENGTH, make_symbol_id, qualified_name
from symbol_flow.models import (
    DEFAULT_RETURN_TYPE,
    ClassEntry,
    EdgeType,
    FlowEdge,
    FlowGraph,
    FunctionEntry,
    MethodEntry,
    SymbolKind,
    SymbolNode,
)

logger = logging.getLogger(__name__)

# Base names (without extension) of files that conventionally hold entry points
ENTRY_FILE_NAMES = frozenset(
    {
        "index",
        "main",
        "__main__",
        "app",
        "server",
        "cli",
        "routes",
        "router",
        "handler",
        "handlers",
        "commands",
    }
)

# Directories whose files are all treated as entry files
ENTRY_DIRECTORIES = frozenset({"routes", "handlers", "api", "commands"})

ENTRY_NAME_PATTERN = re.compile(r"^(?:main|start)$|handler|route", re.IGNORECASE)


def is_entry_file(filepath: str) -> bool:
    """True if the path follows an entry-file naming convention."""
    normalized = filepath.replace("\\", "/")
    parts = [part for part in normalized.split("/") if part]
    if not parts:
        return False

    stem = os.path.splitext(parts[-1])[0].lower()
    if stem in ENTRY_FILE_NAMES:
        return True
    return any(part.lower() in ENTRY_DIRECTORIES for part in parts[:-1])


def is_entry_name(name: str) -> bool:
    """True for ``main``/``start`` and names containing handler or route."""
    return bool(ENTRY_NAME_PATTERN.search(name))


CallMaps = Mapping[str, Mapping[str, List[str]]]


class FlowGraphAssembler:
    """Builds a FlowGraph from functions, classes and per-file call maps."""

    def __init__(self, id_length: int = DEFAULT_ID_LENGTH):
        self.id_length = id_length

    def assemble(
        self,
        functions: Iterable[FunctionEntry],
        classes: Iterable[ClassEntry],
        call_maps: Optional[CallMaps] = None,
    ) -> FlowGraph:
        """Assemble a complete graph.

        Args:
            functions: Function entries from every indexed file.
            classes: Class entries from the files extracted in this run.
            call_maps: ``{file: {caller: [callee, ...]}}`` for the files
                extracted in this run. Files with function entries but no
                call map fall back to the entries' dependency lists.

        Returns:
            A new FlowGraph stamped with the current time.
        """
        functions = list(functions)
        classes = list(classes)
        call_maps = dict(call_maps or {})

        graph = FlowGraph.empty()
        graph.generated = FlowGraph.timestamp()
        edge_keys: Set[Tuple[str, str, str]] = set()

        method_locations = {
            (cls.file, method.name, method.line)
            for cls in classes
            for method in cls.methods
        }

        self._add_function_nodes(graph, functions, method_locations)
        self._add_class_nodes(graph, classes, edge_keys)

        for filepath, entries in self._group_by_file(functions).items():
            if filepath not in call_maps:
                call_maps[filepath] = {
                    entry.name: list(entry.dependencies)
                    for entry in entries
                    if entry.dependencies
                }

        self._add_call_edges(graph, call_maps, edge_keys)

        logger.info(
            f"Assembled flow graph: {len(graph.nodes)} nodes, {len(graph.edges)} edges, "
            f"{len(graph.entry_points)} entry points"
        )
        return graph

    def _node_id(self, kind: str, name: str, filepath: str) -> str:
        return make_symbol_id(kind, name, filepath, self.id_length)

    def _add_node(self, graph: FlowGraph, node: SymbolNode) -> bool:
        if node.id in graph.nodes:
            return False
        graph.nodes[node.id] = node
        return True

    def _add_edge(
        self,
        graph: FlowGraph,
        edge_keys: Set[Tuple[str, str, str]],
        from_id: str,
        to_id: str,
        edge_type: str,
    ) -> None:
        edge = FlowEdge(from_id=from_id, to_id=to_id, type=edge_type)
        if edge.key() in edge_keys:
            return
        edge_keys.add(edge.key())
        graph.edges.append(edge)

    def _add_function_nodes(
        self,
        graph: FlowGraph,
        functions: List[FunctionEntry],
        method_locations: Set[Tuple[str, str, Optional[int]]],
    ) -> None:
        for entry in functions:
            if entry.line is not None and (entry.file, entry.name, entry.line) in method_locations:
                continue

            node = SymbolNode(
                id=self._node_id(SymbolKind.FUNCTION, entry.name, entry.file),
                name=entry.name,
                kind=SymbolKind.FUNCTION,
                file=entry.file,
                line=entry.line,
                signature=entry.signature(),
            )
            if not self._add_node(graph, node):
                continue

            if is_entry_file(entry.file) and is_entry_name(entry.name):
                graph.entry_points.append(node.id)

    def _add_class_nodes(
        self,
        graph: FlowGraph,
        classes: List[ClassEntry],
        edge_keys: Set[Tuple[str, str, str]],
    ) -> None:
        class_ids: Dict[str, List[Tuple[str, str]]] = {}

        for cls in classes:
            class_id = self._node_id(SymbolKind.CLASS, cls.name, cls.file)
            self._add_node(
                graph,
                SymbolNode(
                    id=class_id,
                    name=cls.name,
                    kind=SymbolKind.CLASS,
                    file=cls.file,
                    line=cls.line,
                    signature=cls.signature(),
                ),
            )
            class_ids.setdefault(cls.name, []).append((cls.file, class_id))

            for method in cls.methods:
                name = qualified_name(method.name, cls.name)
                method_id = self._node_id(SymbolKind.METHOD, name, cls.file)
                self._add_node(
                    graph,
                    SymbolNode(
                        id=method_id,
                        name=name,
                        kind=SymbolKind.METHOD,
                        file=cls.file,
                        line=method.line,
                        signature=f"{name}({method.params}): {method.return_type}",
                    ),
                )
                self._add_edge(graph, edge_keys, class_id, method_id, EdgeType.CONTAINS)

        # Inheritance edges need every class node in place first
        for cls in classes:
            class_id = self._node_id(SymbolKind.CLASS, cls.name, cls.file)
            if cls.extends:
                target = self._prefer_file(class_ids.get(cls.extends, []), cls.file)
                if target is not None and target != class_id:
                    self._add_edge(graph, edge_keys, class_id, target, EdgeType.EXTEND)
            for interface in cls.implements:
                target = self._prefer_file(class_ids.get(interface, []), cls.file)
                if target is not None and target != class_id:
                    self._add_edge(graph, edge_keys, class_id, target, EdgeType.IMPLEMENT)

    def _add_call_edges(
        self,
        graph: FlowGraph,
        call_maps: Dict[str, Mapping[str, List[str]]],
        edge_keys: Set[Tuple[str, str, str]],
    ) -> None:
        by_name: Dict[str, List[Tuple[str, str]]] = {}
        by_suffix: Dict[str, List[Tuple[str, str]]] = {}
        for node in graph.nodes.values():
            if node.kind == SymbolKind.CLASS:
                continue
            by_name.setdefault(node.name, []).append((node.file, node.id))
            if node.kind == SymbolKind.METHOD and "." in node.name:
                bare = node.name.rsplit(".", 1)[1]
                by_suffix.setdefault(bare, []).append((node.file, node.id))

        dropped = 0
        for filepath in sorted(call_maps):
            for caller, callees in call_maps[filepath].items():
                caller_id = self._prefer_file(by_name.get(caller, []), filepath)
                if caller_id is None:
                    dropped += len(callees)
                    continue

                caller_class = caller.rsplit(".", 1)[0] if "." in caller else None
                for callee in callees:
                    callee_id = self._resolve_callee(
                        callee, caller_class, filepath, by_name, by_suffix
                    )
                    if callee_id is None:
                        dropped += 1
                        continue
                    self._add_edge(graph, edge_keys, caller_id, callee_id, EdgeType.CALL)

        if dropped:
            logger.debug(f"Dropped {dropped} unresolved call(s)")

    def _resolve_callee(
        self,
        callee: str,
        caller_class: Optional[str],
        filepath: str,
        by_name: Dict[str, List[Tuple[str, str]]],
        by_suffix: Dict[str, List[Tuple[str, str]]],
    ) -> Optional[str]:
        if caller_class and "." not in callee:
            own = self._prefer_file(by_name.get(qualified_name(callee, caller_class), []), filepath)
            if own is not None:
                return own

        exact = self._prefer_file(by_name.get(callee, []), filepath)
        if exact is not None:
            return exact

        return self._prefer_file(by_suffix.get(callee, []), filepath)

    @staticmethod
    def _prefer_file(candidates: List[Tuple[str, str]], filepath: str) -> Optional[str]:
        """Pick the first candidate in ``filepath``, else the first overall."""
        if not candidates:
            return None
        for candidate_file, node_id in candidates:
            if candidate_file == filepath:
                return node_id
        return candidates[0][1]

    @staticmethod
    def _group_by_file(functions: List[FunctionEntry]) -> Dict[str, List[FunctionEntry]]:
        grouped: Dict[str, List[FunctionEntry]] = {}
        for entry in functions:
            grouped.setdefault(entry.file, []).append(entry)
        return grouped


# Carry-over of files that a run does not re-extract

_CLASS_SIGNATURE = re.compile(r"^class\s+(\S+)(?:\s+extends\s+(\S+))?(?:\s+implements\s+(.+))?$")


def _method_from_node(node: SymbolNode) -> MethodEntry:
    params, return_type = "", DEFAULT_RETURN_TYPE
    prefix = f"{node.name}("
    signature = node.signature or ""
    if signature.startswith(prefix) and "): " in signature:
        params, return_type = signature[len(prefix):].rsplit("): ", 1)
    return MethodEntry(
        name=node.name.rsplit(".", 1)[-1],
        params=params,
        return_type=return_type,
        line=node.line,
    )


def classes_from_graph(graph: FlowGraph, files: Set[str]) -> List[ClassEntry]:
    """Rebuild the class records of ``files`` from a previously assembled graph.

    Methods come from ``contains`` edges and keep their lines; the superclass
    and interfaces come from the class node's signature, so they survive
    even when the target class is not indexed.
    """
    methods_by_class: Dict[str, List[MethodEntry]] = {}
    for edge in graph.edges:
        if edge.type != EdgeType.CONTAINS:
            continue
        node = graph.nodes.get(edge.to_id)
        if node is None or node.kind != SymbolKind.METHOD or node.file not in files:
            continue
        methods_by_class.setdefault(edge.from_id, []).append(_method_from_node(node))

    classes: List[ClassEntry] = []
    for node in graph.nodes.values():
        if node.kind != SymbolKind.CLASS or node.file not in files:
            continue
        extends: Optional[str] = None
        implements: List[str] = []
        match = _CLASS_SIGNATURE.match(node.signature or "")
        if match:
            extends = match.group(2)
            if match.group(3):
                implements = [name.strip() for name in match.group(3).split(",") if name.strip()]
        classes.append(
            ClassEntry(
                name=node.name,
                file=node.file,
                line=node.line,
                extends=extends,
                implements=implements,
                methods=methods_by_class.get(node.id, []),
            )
        )
    return classes


def call_maps_from_graph(graph: FlowGraph, files: Set[str]) -> Dict[str, Dict[str, List[str]]]:
    """``{file: {caller: [callee, ...]}}`` for the call edges leaving ``files``."""
    call_maps: Dict[str, Dict[str, List[str]]] = {}
    for edge in graph.edges:
        if edge.type != EdgeType.CALL:
            continue
        caller = graph.nodes.get(edge.from_id)
        callee = graph.nodes.get(edge.to_id)
        if caller is None or callee is None or caller.file not in files:
            continue
        callees = call_maps.setdefault(caller.file, {}).setdefault(caller.name, [])
        if callee.name not in callees:
            callees.append(callee.name)
    return call_maps


def restore_entry_lines(
    functions: Iterable[FunctionEntry], graph: FlowGraph, files: Set[str]
) -> List[FunctionEntry]:
    """Give entries of ``files`` parsed from the symbol table their graph lines back.

    The symbol table does not record lines, but the assembler tells methods
    apart from functions by (file, name, line). Lines of function and method
    nodes are handed out per (file, bare name) in source order.
    """
    lines: Dict[Tuple[str, str], List[int]] = {}
    for node in graph.nodes.values():
        if node.kind == SymbolKind.CLASS or node.file not in files or node.line is None:
            continue
        bare = node.name.rsplit(".", 1)[-1]
        lines.setdefault((node.file, bare), []).append(node.line)
    for queue in lines.values():
        queue.sort()

    restored: List[FunctionEntry] = []
    for entry in functions:
        queue = lines.get((entry.file, entry.name))
        if entry.line is None and entry.file in files and queue:
            entry = replace(entry, line=queue.pop(0))
        restored.append(entry)
    return restored

# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Core data models for the symbol flow index.

This module defines the data structures shared by every layer:
- FunctionEntry / MethodEntry / ClassEntry: Raw extraction records
- SymbolKind / EdgeType: String constants for node kinds and edge types
- SymbolNode / FlowEdge / FlowGraph: The assembled flow graph
- RuleEntry / AttemptEntry: Rows of the rules and blocked-attempts documents
- CacheEntry / CacheStatistics: Parsed-document cache bookkeeping

All models use JSON-compatible primitives for serialization. The graph
document keeps the camelCase field names of its on-disk format
(``entryPoints``, ``from``/``to``).
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

GRAPH_FORMAT_VERSION = "1.0"
DEFAULT_RETURN_TYPE = "void"

T = TypeVar("T")


class SymbolKind:
    """Kinds of graph nodes.

    Design: Using class constants (not Enum) for JSON-compatible strings.
    """

    FUNCTION = "function"
    METHOD = "method"
    CLASS = "class"

    ALL = (FUNCTION, METHOD, CLASS)


class EdgeType:
    """Types of directed edges between graph nodes.

    Design: Using class constants (not Enum) for JSON-compatible strings.
    """

    CALL = "call"  # caller -> callee
    IMPORT = "import"  # reserved, not produced by pattern extraction
    EXTEND = "extend"  # class -> superclass
    IMPLEMENT = "implement"  # class -> interface
    CONTAINS = "contains"  # class -> method

    ALL = (CALL, IMPORT, EXTEND, IMPLEMENT, CONTAINS)


@dataclass(frozen=True)
class FunctionEntry:
    """A function (or method) found by the symbol extractor.

    Params and return type are opaque text spans copied from the source line;
    they are not normalized.
    """

    name: str
    file: str
    params: str
    return_type: str = DEFAULT_RETURN_TYPE
    line: Optional[int] = None
    dependencies: List[str] = field(default_factory=list)

    def signature(self) -> str:
        """Human-readable signature, e.g. ``add(a, b): number``."""
        return f"{self.name}({self.params}): {self.return_type}"

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        result: Dict[str, Any] = {
            "name": self.name,
            "file": self.file,
            "params": self.params,
            "return_type": self.return_type,
            "dependencies": list(self.dependencies),
        }
        if self.line is not None:
            result["line"] = self.line
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FunctionEntry":
        """Deserialize from JSON-compatible dict."""
        return cls(
            name=data["name"],
            file=data["file"],
            params=data.get("params", ""),
            return_type=data.get("return_type", DEFAULT_RETURN_TYPE),
            line=data.get("line"),
            dependencies=list(data.get("dependencies", [])),
        )


@dataclass(frozen=True)
class MethodEntry:
    """A method header found inside a class body."""

    name: str
    params: str
    return_type: str = DEFAULT_RETURN_TYPE
    line: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        result: Dict[str, Any] = {
            "name": self.name,
            "params": self.params,
            "return_type": self.return_type,
        }
        if self.line is not None:
            result["line"] = self.line
        return result


@dataclass(frozen=True)
class ClassEntry:
    """A class (or type) declaration with its ordered methods."""

    name: str
    file: str
    line: Optional[int] = None
    extends: Optional[str] = None
    implements: List[str] = field(default_factory=list)
    methods: List[MethodEntry] = field(default_factory=list)

    def signature(self) -> str:
        """Human-readable class header, e.g. ``class A extends B implements C``."""
        text = f"class {self.name}"
        if self.extends:
            text += f" extends {self.extends}"
        if self.implements:
            text += f" implements {', '.join(self.implements)}"
        return text

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        result: Dict[str, Any] = {
            "name": self.name,
            "file": self.file,
            "implements": list(self.implements),
            "methods": [method.to_dict() for method in self.methods],
        }
        if self.line is not None:
            result["line"] = self.line
        if self.extends is not None:
            result["extends"] = self.extends
        return result


@dataclass
class SymbolNode:
    """A node of the flow graph.

    For methods, ``name`` is the qualified ``ClassName.methodName``.
    """

    id: str
    name: str
    kind: str  # SymbolKind value
    file: str
    line: Optional[int] = None
    signature: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        result: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "kind": self.kind,
            "file": self.file,
        }
        if self.line is not None:
            result["line"] = self.line
        if self.signature is not None:
            result["signature"] = self.signature
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SymbolNode":
        """Deserialize from JSON-compatible dict.

        Raises:
            KeyError: If required fields are missing from data dict.
        """
        return cls(
            id=data["id"],
            name=data["name"],
            kind=data["kind"],
            file=data["file"],
            line=data.get("line"),
            signature=data.get("signature"),
        )


@dataclass(frozen=True)
class FlowEdge:
    """A directed, typed edge between two node ids."""

    from_id: str
    to_id: str
    type: str  # EdgeType value

    def key(self) -> tuple:
        """Identity of the edge within one build pass."""
        return (self.from_id, self.to_id, self.type)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the graph document's ``{from, to, type}`` shape."""
        return {"from": self.from_id, "to": self.to_id, "type": self.type}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FlowEdge":
        """Deserialize from JSON-compatible dict.

        Raises:
            KeyError: If required fields are missing from data dict.
        """
        return cls(from_id=data["from"], to_id=data["to"], type=data["type"])


@dataclass
class FlowGraph:
    """The assembled call/reference graph.

    ``nodes`` keeps insertion (discovery) order, which is also the order used
    for tie-breaking in entry-point ranking.
    """

    version: str = GRAPH_FORMAT_VERSION
    generated: str = ""
    nodes: Dict[str, SymbolNode] = field(default_factory=dict)
    edges: List[FlowEdge] = field(default_factory=list)
    entry_points: List[str] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "FlowGraph":
        """Default structure used for missing or malformed graph documents."""
        return cls(version=GRAPH_FORMAT_VERSION, generated="")

    @staticmethod
    def timestamp() -> str:
        """Current UTC time in the graph document's ISO-8601 form."""
        return datetime.now(timezone.utc).isoformat()

    def is_empty(self) -> bool:
        """True when nothing has been indexed yet."""
        return not self.nodes

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the graph document structure."""
        return {
            "version": self.version,
            "generated": self.generated,
            "nodes": {node_id: node.to_dict() for node_id, node in self.nodes.items()},
            "edges": [edge.to_dict() for edge in self.edges],
            "entryPoints": list(self.entry_points),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FlowGraph":
        """Deserialize from the graph document structure.

        Edges and entry points that reference unknown node ids are dropped so
        the node map and edge list stay mutually consistent.

        Raises:
            KeyError: If a node or edge is missing required fields.
            TypeError: If a section has the wrong shape.
        """
        nodes: Dict[str, SymbolNode] = {}
        for node_id, node_data in (data.get("nodes") or {}).items():
            node = SymbolNode.from_dict(node_data)
            nodes[node_id] = node

        edges: List[FlowEdge] = []
        for edge_data in data.get("edges") or []:
            edge = FlowEdge.from_dict(edge_data)
            if edge.from_id in nodes and edge.to_id in nodes:
                edges.append(edge)
            else:
                logger.debug(f"Dropping dangling edge {edge.from_id} -> {edge.to_id}")

        entry_points = [
            node_id for node_id in (data.get("entryPoints") or []) if node_id in nodes
        ]

        return cls(
            version=str(data.get("version", GRAPH_FORMAT_VERSION)),
            generated=str(data.get("generated", "")),
            nodes=nodes,
            edges=edges,
            entry_points=entry_points,
        )


@dataclass(frozen=True)
class RuleEntry:
    """A row of the rules document (enforcement itself lives elsewhere)."""

    id: str
    description: str
    pattern: str = ""
    files: str = "*"
    action: str = "WARN"  # BLOCK or WARN
    enabled: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "id": self.id,
            "description": self.description,
            "pattern": self.pattern,
            "files": self.files,
            "action": self.action,
            "enabled": self.enabled,
        }


@dataclass(frozen=True)
class AttemptEntry:
    """A row of the blocked-attempts document."""

    timestamp: str
    command: str
    error: str = ""
    dont_retry: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "timestamp": self.timestamp,
            "command": self.command,
            "error": self.error,
            "dont_retry": self.dont_retry,
        }


@dataclass
class CacheEntry(Generic[T]):
    """Parsed view of one derived document.

    Valid only while the document's content hash equals ``content_hash``.
    """

    value: T
    content_hash: str
    parsed_at: float = field(default_factory=time.time)


@dataclass
class CacheStatistics:
    """Performance counters for the document cache."""

    hits: int = 0
    misses: int = 0  # no entry for the kind (first read or after invalidation)
    reparses: int = 0  # entry existed but the content hash changed
    invalidations: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "reparses": self.reparses,
            "invalidations": self.invalidations,
        }

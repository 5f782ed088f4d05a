# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""SymbolFlowService - Business logic layer for the MCP server.

Key Responsibilities:
- Own the index components (store, cache, extractor, assembler, indexer,
  query API, optional document watcher) and wire them together
- Expose each operation as a method returning an OperationResult
- Apply configured defaults to omitted query parameters
- Convert expected failures into unsuccessful results
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from symbol_flow.cache import DocumentCache
from symbol_flow.config import Config
from symbol_flow.documents import DocumentKind, init_documents
from symbol_flow.extractors.base import SymbolExtractor
from symbol_flow.extractors.pattern_extractor import PatternExtractor
from symbol_flow.file_watcher import DocumentWatcher
from symbol_flow.flow_graph import FlowGraphAssembler
from symbol_flow.indexer import Indexer
from symbol_flow.query_api import NOT_INDEXED_MESSAGE, EntryKind, QueryAPI
from symbol_flow.source_scanner import SourceScanner
from symbol_flow.storage import DocumentStore, FileDocumentStore

logger = logging.getLogger(__name__)


class OperationResult:
    """Outcome of one service operation."""

    def __init__(
        self,
        success: bool,
        message: str,
        data: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ):
        """Initialize operation result.

        Args:
            success: False only when the operation failed.
            message: Short human-readable summary.
            data: JSON-compatible payload.
            error: Error description when success is False.
        """
        self.success = success
        self.message = message
        self.data = data if data is not None else {}
        self.error = error

    @classmethod
    def failure(cls, message: str, error: Exception) -> "OperationResult":
        return cls(success=False, message=message, error=str(error))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for MCP response."""
        result: Dict[str, Any] = {
            "success": self.success,
            "message": self.message,
            "data": self.data,
        }
        if self.error is not None:
            result["error"] = self.error
        return result


class SymbolFlowService:
    """Business logic coordinator for the symbol flow index.

    Owned Components:
    - DocumentStore: Memory-directory documents and source files
    - DocumentCache: Parsed views of the documents (one per service)
    - SymbolExtractor: Per-file symbol, class and call extraction
    - FlowGraphAssembler: Graph construction
    - Indexer: Index runs
    - QueryAPI: Read operations
    - DocumentWatcher: Optional external-edit invalidation
    """

    def __init__(
        self,
        config: Config,
        project_root: Optional[str] = None,
        store: Optional[DocumentStore] = None,
        cache: Optional[DocumentCache] = None,
        extractor: Optional[SymbolExtractor] = None,
        scanner: Optional[SourceScanner] = None,
    ):
        """Initialize the service with its dependencies.

        Args:
            config: Configuration.
            project_root: Root of the indexed project (default: cwd).
            store: Document store. Defaults to a FileDocumentStore on the
                configured memory directory.
            cache: Document cache. Defaults to a new cache over ``store``.
            extractor: Symbol extractor (default: PatternExtractor).
            scanner: Source scanner (default: configured SourceScanner).
        """
        self.config = config
        self._project_root = Path(project_root) if project_root else Path.cwd()
        self.memory_dir = self._project_root / config.memory_dir

        self.store = store or FileDocumentStore(
            memory_dir=self.memory_dir,
            project_root=self._project_root,
            max_file_size_kb=config.max_file_size_kb,
        )
        self.cache = cache or DocumentCache(self.store)
        self._extractor = extractor or PatternExtractor()
        self._scanner = scanner or SourceScanner(
            project_root=self._project_root,
            extensions=config.code_extensions,
            ignore_patterns=config.ignore_patterns,
            memory_dir=config.memory_dir,
        )
        self._assembler = FlowGraphAssembler(id_length=config.symbol_id_length)
        self._indexer = Indexer(
            store=self.store,
            cache=self.cache,
            scanner=self._scanner,
            extractor=self._extractor,
            assembler=self._assembler,
            workers=config.index_workers,
        )
        self.query_api = QueryAPI(self.cache, extractor=self._extractor)
        self._document_watcher: Optional[DocumentWatcher] = None

        logger.info(f"SymbolFlowService initialized for {self._project_root}")

    @property
    def project_root(self) -> Path:
        return self._project_root

    def initialize_documents(self) -> List[str]:
        """Create missing memory documents from their templates."""
        return init_documents(self.store)

    def start_document_watcher(self) -> None:
        """Invalidate cached documents on external edits to the memory directory."""
        if self._document_watcher is None:
            self._document_watcher = DocumentWatcher(self.memory_dir)
            self._document_watcher.register_invalidation_callback(self.cache.invalidate)
        if not self._document_watcher.is_running():
            self._document_watcher.start()

    def stop_document_watcher(self) -> None:
        if self._document_watcher is not None:
            self._document_watcher.stop()

    # Operations

    def index(self, path: Optional[str] = None, force: bool = False) -> OperationResult:
        """Run an index build over ``path`` (default: the whole project)."""
        try:
            report = self._indexer.run(path=path, force=force)
        except (OSError, ValueError) as e:
            logger.error(f"Indexing failed: {e}")
            return OperationResult.failure("Indexing failed", e)
        return OperationResult(success=True, message=report.summary(), data=report.to_dict())

    def symbol_lookup(
        self,
        ids: Optional[List[str]] = None,
        name: Optional[str] = None,
        file: Optional[str] = None,
        kind: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> OperationResult:
        """Look up symbols by id list or by name/file/kind filters."""
        if limit is None:
            limit = self.config.symbol_lookup_limit
        try:
            data = self.query_api.lookup_symbols(
                ids=ids, name=name, file=file, kind=kind, limit=limit
            )
        except ValueError as e:
            return OperationResult.failure("Symbol lookup failed", e)
        return self._query_result(data, f"{data['count']} symbol(s) found")

    def entry_points(
        self,
        query: str,
        kind: str = EntryKind.ALL,
        limit: Optional[int] = None,
    ) -> OperationResult:
        """Rank entry-point candidates for a free-text query."""
        if limit is None:
            limit = self.config.entry_point_limit
        try:
            data = self.query_api.resolve_entry_points(query, kind=kind, limit=limit)
        except ValueError as e:
            return OperationResult.failure("Entry-point resolution failed", e)
        return self._query_result(
            data, f"{len(data['entry_points'])} entry point(s) for {query!r}"
        )

    def flow_subgraph(
        self,
        ids: List[str],
        depth: Optional[int] = None,
        direction: str = "both",
        max_nodes: Optional[int] = None,
        max_edges: Optional[int] = None,
    ) -> OperationResult:
        """Bounded call subgraph around seed ids."""
        try:
            data = self.query_api.get_subgraph(
                ids,
                depth=self.config.subgraph_default_depth if depth is None else depth,
                direction=direction,
                max_nodes=self.config.subgraph_max_nodes if max_nodes is None else max_nodes,
                max_edges=self.config.subgraph_max_edges if max_edges is None else max_edges,
            )
        except ValueError as e:
            return OperationResult.failure("Flow retrieval failed", e)
        return self._query_result(
            data, f"Flow subgraph: {len(data['nodes'])} nodes, {len(data['edges'])} edges"
        )

    def functions(
        self,
        query: Optional[str] = None,
        file: Optional[str] = None,
        check_duplicates: bool = False,
        code: Optional[str] = None,
    ) -> OperationResult:
        """Search the symbol table, or check a code snippet for duplicates."""
        if check_duplicates:
            if not code:
                return OperationResult.failure(
                    "Duplicate check failed", ValueError("Missing required parameter: code")
                )
            data = self.query_api.check_duplicates(code)
            if data["count"] == 0:
                message = "No duplicates found"
            else:
                message = f"Found {data['count']} potential duplicate(s)"
            return OperationResult(success=True, message=message, data=data)

        data = self.query_api.search_functions(query=query, file=file)
        return OperationResult(
            success=True,
            message=f"{data['count']} of {data['total']} function(s) match",
            data=data,
        )

    def invalidate_cache(self, kind: Optional[str] = None) -> OperationResult:
        """Invalidate one cached document kind, or all of them."""
        if kind is None:
            self.cache.clear()
            return OperationResult(success=True, message="All cached documents invalidated")
        if kind not in DocumentKind.ALL:
            return OperationResult.failure(
                "Cache invalidation failed",
                ValueError(f"Unknown document kind: {kind} (expected one of {DocumentKind.ALL})"),
            )
        self.cache.invalidate(kind)
        return OperationResult(success=True, message=f"Invalidated cached {kind} document")

    def get_cache_statistics(self) -> Dict[str, Any]:
        return self.cache.get_statistics().to_dict()

    @staticmethod
    def _query_result(data: Dict[str, Any], message: str) -> OperationResult:
        if not data.get("indexed", True):
            return OperationResult(success=True, message=NOT_INDEXED_MESSAGE, data=data)
        return OperationResult(success=True, message=message, data=data)

    def shutdown(self) -> None:
        """Stop the document watcher and drop cached documents."""
        logger.info("SymbolFlowService shutting down...")
        self.stop_document_watcher()
        self.cache.clear()
        logger.info("SymbolFlowService shutdown complete")

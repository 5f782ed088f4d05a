# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Index runs: scan, extract, assemble and persist.

An index run turns the current source tree into the two flat index
documents (symbol table and flow graph) and refreshes the discovery log and
architecture overview.

Incremental policy:
- Non-forced: files already present in the symbol table are skipped
  entirely. Edits to an indexed file stay invisible until a forced run.
  The index documents are rewritten only when new files contributed
  functions.
- Forced: every scanned file is re-extracted; its previous entries are
  discarded before the fresh ones are appended. Previously indexed files
  under the scanned path that the scan no longer finds are dropped.
  Entries of files outside the scanned path are kept.

The graph is always assembled in full. Files extracted in this run
contribute their fresh classes and call maps; every other indexed file
carries its class records, method lines and call edges over from the
previous graph, so its node ids survive the rebuild.
"""

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from symbol_flow.cache import DocumentCache
from symbol_flow.documents import (
    ARCHITECTURE_FILE,
    DISCOVERY_FILE,
    FLOW_GRAPH_FILE,
    FUNCTIONS_FILE,
    add_discovered,
    format_architecture,
    format_functions,
    format_graph,
)
from symbol_flow.extractors.base import FileExtraction, SymbolExtractor
from symbol_flow.flow_graph import (
    FlowGraphAssembler,
    call_maps_from_graph,
    classes_from_graph,
    restore_entry_lines,
)
from symbol_flow.models import ClassEntry, FlowGraph, FunctionEntry
from symbol_flow.source_scanner import SourceScanner
from symbol_flow.storage import DocumentStore

logger = logging.getLogger(__name__)

DEFAULT_INDEX_WORKERS = 4

# Newly indexed files listed in a report summary before eliding the rest
_SUMMARY_FILE_LIMIT = 10


@dataclass
class IndexReport:
    """Outcome of one index run."""

    files_scanned: int = 0
    functions_found: int = 0
    directories_explored: List[str] = field(default_factory=list)
    total_functions: int = 0
    new_files: List[str] = field(default_factory=list)
    elapsed_seconds: float = 0.0
    forced: bool = False
    index_written: bool = False
    graph_nodes: int = 0
    graph_edges: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "files_scanned": self.files_scanned,
            "functions_found": self.functions_found,
            "directories_explored": list(self.directories_explored),
            "total_functions": self.total_functions,
            "new_files": list(self.new_files),
            "elapsed_seconds": self.elapsed_seconds,
            "forced": self.forced,
            "index_written": self.index_written,
            "graph_nodes": self.graph_nodes,
            "graph_edges": self.graph_edges,
        }

    def summary(self) -> str:
        """Human-readable multi-line summary."""
        lines = [
            f"Indexing complete ({self.elapsed_seconds:.2f}s)",
            "",
            f"- Files scanned: {self.files_scanned}",
            f"- Functions indexed: {self.functions_found}",
            f"- Directories explored: {len(self.directories_explored)}",
            f"- Total functions in index: {self.total_functions}",
        ]
        if self.index_written:
            lines.append(f"- Flow graph: {self.graph_nodes} nodes, {self.graph_edges} edges")

        if self.new_files:
            lines.append("")
            lines.append("Newly indexed files:")
            for filepath in self.new_files[:_SUMMARY_FILE_LIMIT]:
                lines.append(f"- {filepath}")
            if len(self.new_files) > _SUMMARY_FILE_LIMIT:
                lines.append(f"- ... and {len(self.new_files) - _SUMMARY_FILE_LIMIT} more")

        return "\n".join(lines)


class Indexer:
    """Runs index builds against a document store.

    Usage:
        indexer = Indexer(store, cache, scanner, extractor, assembler)
        report = indexer.run(force=True)
    """

    def __init__(
        self,
        store: DocumentStore,
        cache: DocumentCache,
        scanner: SourceScanner,
        extractor: SymbolExtractor,
        assembler: FlowGraphAssembler,
        workers: int = DEFAULT_INDEX_WORKERS,
    ):
        self._store = store
        self._cache = cache
        self._scanner = scanner
        self._extractor = extractor
        self._assembler = assembler
        self._workers = max(1, workers)

    def run(self, path: Optional[str] = None, force: bool = False) -> IndexReport:
        """Run one index build.

        Args:
            path: Directory or file to scan, relative to the project root.
                Defaults to the whole project.
            force: Re-extract files that are already indexed.

        Returns:
            IndexReport describing the run.

        Raises:
            OSError: If a document cannot be written.
        """
        start_time = time.monotonic()
        report = IndexReport(forced=force)

        previous = self._cache.get_functions()
        previous_graph = self._cache.get_graph()
        indexed_files = {entry.file for entry in previous}
        known_files = indexed_files | {node.file for node in previous_graph.nodes.values()}

        files = self._scanner.scan(path)
        to_extract = [f for f in files if force or f not in indexed_files]
        logger.info(
            f"Index run ({'forced' if force else 'incremental'}): {len(files)} file(s) found, "
            f"{len(to_extract)} to extract"
        )

        extractions = self._extract_all(to_extract)

        discarded = set(to_extract)
        if force:
            scanned = set(files)
            removed = {
                f for f in known_files if f not in scanned and self._scanner.in_scope(f, path)
            }
            if removed:
                logger.info(f"Dropping {len(removed)} file(s) no longer found under the scan path")
            discarded |= removed

        carried_files = known_files - discarded
        kept = restore_entry_lines(
            [entry for entry in previous if entry.file not in discarded],
            previous_graph,
            carried_files,
        )
        classes: List[ClassEntry] = classes_from_graph(previous_graph, carried_files)
        call_maps = self._carried_call_maps(kept, previous_graph, carried_files)
        new_functions: List[FunctionEntry] = []
        directories = set()

        for filepath, extraction in zip(to_extract, extractions):
            if extraction is None:
                continue
            report.files_scanned += 1
            directories.add(os.path.dirname(filepath) or ".")

            classes.extend(extraction.classes)
            call_maps[filepath] = extraction.calls
            if extraction.functions:
                new_functions.extend(extraction.functions)
                report.new_files.append(filepath)

        all_functions = kept + new_functions
        report.functions_found = len(new_functions)
        report.total_functions = len(all_functions)
        report.directories_explored = sorted(directories)

        if report.new_files or force:
            self._store.write(FUNCTIONS_FILE, format_functions(all_functions))
            self._cache.invalidate_symbols()

            graph = self._assembler.assemble(all_functions, classes, call_maps)
            self._store.write(FLOW_GRAPH_FILE, format_graph(graph))
            self._cache.invalidate_graph()

            report.index_written = True
            report.graph_nodes = len(graph.nodes)
            report.graph_edges = len(graph.edges)

        self._update_discovery(report.directories_explored)
        self._store.write(ARCHITECTURE_FILE, format_architecture(files))

        report.elapsed_seconds = time.monotonic() - start_time
        logger.info(
            f"Indexed {report.files_scanned} file(s) in {report.elapsed_seconds:.2f}s: "
            f"{report.functions_found} new function(s), {report.total_functions} total"
        )
        return report

    @staticmethod
    def _carried_call_maps(
        kept: List[FunctionEntry], graph: FlowGraph, files: Set[str]
    ) -> Dict[str, Dict[str, List[str]]]:
        """Call maps of files not extracted in this run.

        Stored dependency lists are merged with the call edges of the
        previous graph, which also hold the calls made from methods.
        """
        call_maps: Dict[str, Dict[str, List[str]]] = {}
        for entry in kept:
            if entry.file in files and entry.dependencies:
                callees = call_maps.setdefault(entry.file, {}).setdefault(entry.name, [])
                callees.extend(dep for dep in entry.dependencies if dep not in callees)
        for filepath, calls in call_maps_from_graph(graph, files).items():
            for caller, names in calls.items():
                callees = call_maps.setdefault(filepath, {}).setdefault(caller, [])
                callees.extend(name for name in names if name not in callees)
        return call_maps

    def _extract_all(self, files: List[str]) -> List[Optional[FileExtraction]]:
        """Extract every file; results are in input order."""
        if self._workers == 1 or len(files) < 2:
            return [self._extract_one(filepath) for filepath in files]

        with ThreadPoolExecutor(max_workers=self._workers) as executor:
            return list(executor.map(self._extract_one, files))

    def _extract_one(self, filepath: str) -> Optional[FileExtraction]:
        text = self._store.read_source(filepath)
        if text is None:
            return None
        return self._extractor.extract_file(text, filepath)

    def _update_discovery(self, directories: List[str]) -> None:
        content = self._store.read(DISCOVERY_FILE)
        updated = add_discovered(content, directories)
        if updated != content:
            self._store.write(DISCOVERY_FILE, updated)
            self._cache.invalidate_discovery()

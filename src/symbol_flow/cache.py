# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Content-hash cache of parsed derived documents.

Every read hashes the document's current text and reuses the previously
parsed value only when the hash is unchanged, so a cached view never
outlives the text it was parsed from. Writers additionally call the
matching ``invalidate_*`` method after each write, which drops the entry
outright.

Key Features:
- One entry per document kind (symbols, rules, attempts, discovery,
  config, graph)
- Identical object returned on repeated reads of unchanged text
- Thread-safe; the document watcher may invalidate from its own thread
- Statistics tracking for cache performance

Thread Safety:
- Single _cache_lock protects: _entries, _stats
- Parsing happens under the lock, so one kind is never parsed twice at once
"""

import hashlib
import logging
from threading import Lock
from typing import Any, Callable, Dict, List, Set

from symbol_flow.documents import (
    DOCUMENT_FILES,
    DocumentKind,
    parse_attempts,
    parse_discovery,
    parse_functions,
    parse_graph,
    parse_project_settings,
    parse_rules,
)
from symbol_flow.models import (
    AttemptEntry,
    CacheEntry,
    CacheStatistics,
    FlowGraph,
    FunctionEntry,
    RuleEntry,
)
from symbol_flow.storage import DocumentStore

logger = logging.getLogger(__name__)

PARSERS: Dict[str, Callable[[str], Any]] = {
    DocumentKind.SYMBOLS: parse_functions,
    DocumentKind.RULES: parse_rules,
    DocumentKind.ATTEMPTS: parse_attempts,
    DocumentKind.DISCOVERY: parse_discovery,
    DocumentKind.CONFIG: parse_project_settings,
    DocumentKind.GRAPH: parse_graph,
}


def content_hash(content: str) -> str:
    """md5 hex digest of document text."""
    return hashlib.md5(content.encode("utf-8")).hexdigest()


class DocumentCache:
    """Parsed-document cache keyed by document kind.

    One instance is owned by the service and handed to every component that
    reads documents; there is no module-level cache.

    Usage:
        cache = DocumentCache(store)
        functions = cache.get_functions()
        store.write("FUNCTIONS.md", new_text)
        cache.invalidate_symbols()
    """

    def __init__(self, store: DocumentStore) -> None:
        self._store = store
        self._entries: Dict[str, CacheEntry[Any]] = {}
        self._stats = CacheStatistics()
        self._cache_lock = Lock()

    def get(self, kind: str) -> Any:
        """Return the parsed value of a document kind.

        Raises:
            ValueError: If kind is not a known document kind.
        """
        if kind not in PARSERS:
            raise ValueError(f"Unknown document kind: {kind}")

        with self._cache_lock:
            content = self._store.read(DOCUMENT_FILES[kind])
            digest = content_hash(content)

            entry = self._entries.get(kind)
            if entry is not None and entry.content_hash == digest:
                self._stats.hits += 1
                return entry.value

            # A parser error propagates and leaves the previous entry in place
            value = PARSERS[kind](content)
            self._entries[kind] = CacheEntry(value=value, content_hash=digest)

            if entry is None:
                self._stats.misses += 1
                logger.debug(f"Cache miss: {kind}")
            else:
                self._stats.reparses += 1
                logger.debug(f"Cache reparse: {kind} (content changed)")

            return value

    def get_functions(self) -> List[FunctionEntry]:
        return self.get(DocumentKind.SYMBOLS)

    def get_rules(self) -> List[RuleEntry]:
        return self.get(DocumentKind.RULES)

    def get_attempts(self) -> List[AttemptEntry]:
        return self.get(DocumentKind.ATTEMPTS)

    def get_discovery(self) -> Set[str]:
        return self.get(DocumentKind.DISCOVERY)

    def get_project_settings(self) -> Dict[str, Any]:
        return self.get(DocumentKind.CONFIG)

    def get_graph(self) -> FlowGraph:
        return self.get(DocumentKind.GRAPH)

    def invalidate(self, kind: str) -> None:
        """Drop the cached entry of one kind.

        Raises:
            ValueError: If kind is not a known document kind.
        """
        if kind not in PARSERS:
            raise ValueError(f"Unknown document kind: {kind}")

        with self._cache_lock:
            if self._entries.pop(kind, None) is not None:
                logger.debug(f"Invalidated cache entry: {kind}")
            self._stats.invalidations += 1

    def invalidate_symbols(self) -> None:
        self.invalidate(DocumentKind.SYMBOLS)

    def invalidate_rules(self) -> None:
        self.invalidate(DocumentKind.RULES)

    def invalidate_attempts(self) -> None:
        self.invalidate(DocumentKind.ATTEMPTS)

    def invalidate_discovery(self) -> None:
        self.invalidate(DocumentKind.DISCOVERY)

    def invalidate_config(self) -> None:
        self.invalidate(DocumentKind.CONFIG)

    def invalidate_graph(self) -> None:
        self.invalidate(DocumentKind.GRAPH)

    def clear(self) -> None:
        """Drop every entry."""
        with self._cache_lock:
            self._entries.clear()
            logger.debug("Cache cleared")

    def cached_kinds(self) -> List[str]:
        with self._cache_lock:
            return sorted(self._entries)

    def get_statistics(self) -> CacheStatistics:
        """Get cache performance statistics (a copy)."""
        with self._cache_lock:
            return CacheStatistics(
                hits=self._stats.hits,
                misses=self._stats.misses,
                reparses=self._stats.reparses,
                invalidations=self._stats.invalidations,
            )

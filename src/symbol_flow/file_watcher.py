# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Memory-directory watcher for cache invalidation.

The index process invalidates the document cache itself after each of its
own writes. Other writers (an editor, a rules tool, a second process) do
not, so this watcher observes the memory directory with watchdog and
reports the affected document kind to registered callbacks.

Atomic writes surface as a move of a temporary file onto the document, so
moves are reported for both the source and the destination name.

Thread Safety:
- Callbacks are invoked synchronously from the watchdog observer thread
- DocumentCache.invalidate is thread-safe and is the intended callback
"""

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

from watchdog.events import FileMovedEvent, FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from symbol_flow.documents import DOCUMENT_FILES

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver

logger = logging.getLogger(__name__)

# Callback signature: (document_kind: str) -> None
InvalidationCallback = Callable[[str], None]


class DocumentWatcher:
    """Watches the memory directory and maps file events to document kinds.

    Usage:
        watcher = DocumentWatcher(memory_dir)
        watcher.register_invalidation_callback(cache.invalidate)
        watcher.start()
        ...
        watcher.stop()
    """

    def __init__(self, memory_dir: Path):
        self.memory_dir = Path(memory_dir).resolve()
        self._kinds_by_name: Dict[str, str] = {name: kind for kind, name in DOCUMENT_FILES.items()}
        self._invalidation_callbacks: List[InvalidationCallback] = []
        self._observer: Optional["BaseObserver"] = None
        self._event_handler = _DocumentEventHandler(self)

        logger.info(f"DocumentWatcher initialized for {self.memory_dir}")

    def kind_for_path(self, file_path: str) -> Optional[str]:
        """Document kind of a path, or None for files that are not documents."""
        path = Path(file_path)
        try:
            if path.resolve().parent != self.memory_dir:
                return None
        except OSError:
            return None
        return self._kinds_by_name.get(path.name)

    def register_invalidation_callback(self, callback: InvalidationCallback) -> None:
        """Register a callback invoked with the kind of each changed document."""
        if callback not in self._invalidation_callbacks:
            self._invalidation_callbacks.append(callback)
            logger.debug(f"Registered invalidation callback: {callback}")

    def unregister_invalidation_callback(self, callback: InvalidationCallback) -> None:
        if callback in self._invalidation_callbacks:
            self._invalidation_callbacks.remove(callback)
            logger.debug(f"Unregistered invalidation callback: {callback}")

    def notify(self, file_path: str) -> Optional[str]:
        """Notify callbacks if ``file_path`` is a known document.

        Returns:
            The document kind notified, or None.
        """
        kind = self.kind_for_path(file_path)
        if kind is None:
            return None

        for callback in self._invalidation_callbacks:
            try:
                callback(kind)
            except Exception as e:
                # One failing callback must not starve the others
                logger.error(f"Invalidation callback failed for {kind}: {e}")

        logger.debug(f"Document changed: {file_path} ({kind})")
        return kind

    def start(self) -> None:
        """Start watching the memory directory.

        Raises:
            RuntimeError: If watcher is already running
        """
        if self._observer is not None and self._observer.is_alive():
            raise RuntimeError("DocumentWatcher is already running")

        self.memory_dir.mkdir(parents=True, exist_ok=True)
        self._observer = Observer()
        self._observer.schedule(  # type: ignore  # watchdog types vary by version
            self._event_handler, str(self.memory_dir), recursive=False
        )
        self._observer.start()  # type: ignore  # watchdog types vary by version

        logger.info(f"DocumentWatcher started, monitoring {self.memory_dir}")

    def stop(self) -> None:
        """Stop watching; blocks until the observer thread ends (with timeout)."""
        if self._observer is not None and self._observer.is_alive():
            self._observer.stop()  # type: ignore  # watchdog types vary by version
            self._observer.join(timeout=5.0)
            logger.info("DocumentWatcher stopped")

    def is_running(self) -> bool:
        return self._observer is not None and self._observer.is_alive()


class _DocumentEventHandler(FileSystemEventHandler):
    """Internal watchdog handler; delegates to DocumentWatcher.notify."""

    def __init__(self, watcher: DocumentWatcher):
        super().__init__()
        self.watcher = watcher

    def _handle_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self.watcher.notify(str(event.src_path))

    def on_created(self, event: FileSystemEvent) -> None:
        self._handle_event(event)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._handle_event(event)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._handle_event(event)

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory or not isinstance(event, FileMovedEvent):
            return
        self.watcher.notify(str(event.src_path))
        self.watcher.notify(str(event.dest_path))

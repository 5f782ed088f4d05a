# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""I/O layer for derived documents and source files.

Components:
- DocumentStore: Abstract interface for document and source access
- FileDocumentStore: On-disk implementation with atomic document writes
- InMemoryDocumentStore: Dictionary-backed implementation for tests

Business logic never touches the filesystem directly, so the indexer, the
cache and the query layer run unchanged against either implementation.
"""

import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_SIZE_KB = 1024


def _validate_name(name: str) -> None:
    """Reject document names that could escape the memory directory.

    Raises:
        ValueError: If the name is empty, contains control characters or
            path separators.
    """
    if not name:
        raise ValueError("Document name cannot be empty")
    if any(ord(c) < 32 for c in name):
        raise ValueError(f"Document name contains invalid control characters: {repr(name)}")
    if "/" in name or "\\" in name or name in (".", ".."):
        raise ValueError(f"Document name must be a plain file name: {name}")


class DocumentStore(ABC):
    """Abstract access to the memory directory and the source tree.

    Document operations address documents by file name (``FUNCTIONS.md``).
    Source operations address files by the path recorded in the symbol
    table, relative to the project root.
    """

    @abstractmethod
    def read(self, name: str) -> str:
        """Read a document.

        Returns:
            Document text. Empty string if the document does not exist.
        """
        pass

    @abstractmethod
    def write(self, name: str, content: str) -> None:
        """Replace a document's content in full.

        Raises:
            OSError: If the document cannot be written.
        """
        pass

    @abstractmethod
    def exists(self, name: str) -> bool:
        pass

    def append(self, name: str, content: str) -> None:
        """Append text to a document, creating it if missing."""
        self.write(name, self.read(name) + content)

    @abstractmethod
    def read_source(self, filepath: str) -> Optional[str]:
        """Read a source file as text.

        Returns:
            Decoded contents, or None when the file is missing, unreadable,
            not valid UTF-8 or over the size limit.
        """
        pass


class FileDocumentStore(DocumentStore):
    """Documents on disk under ``memory_dir``; sources under ``project_root``.

    Writes go to a temporary file in the same directory followed by
    ``os.replace``, so readers see either the old or the new document,
    never a partial one.
    """

    def __init__(
        self,
        memory_dir: Path,
        project_root: Optional[Path] = None,
        max_file_size_kb: int = DEFAULT_MAX_FILE_SIZE_KB,
    ):
        self.memory_dir = Path(memory_dir)
        self.project_root = Path(project_root) if project_root is not None else Path.cwd()
        self.max_file_size_kb = max_file_size_kb

    def path_for(self, name: str) -> Path:
        """Absolute path of a document."""
        _validate_name(name)
        return self.memory_dir / name

    def read(self, name: str) -> str:
        path = self.path_for(name)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ""

    def write(self, name: str, content: str) -> None:
        path = self.path_for(name)
        self.memory_dir.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(prefix=f".{name}.", suffix=".tmp", dir=self.memory_dir)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        logger.debug(f"Wrote document {path} ({len(content)} chars)")

    def exists(self, name: str) -> bool:
        return self.path_for(name).is_file()

    def read_source(self, filepath: str) -> Optional[str]:
        path = Path(filepath)
        if not path.is_absolute():
            path = self.project_root / path

        try:
            size = path.stat().st_size
            if size > self.max_file_size_kb * 1024:
                logger.debug(f"Skipping {filepath}: {size} bytes exceeds size limit")
                return None
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"Skipping unreadable source {filepath}: {e}")
            return None


class InMemoryDocumentStore(DocumentStore):
    """Dictionary-backed store. NOT thread-safe."""

    def __init__(
        self,
        documents: Optional[Dict[str, str]] = None,
        sources: Optional[Dict[str, str]] = None,
    ) -> None:
        self.documents: Dict[str, str] = dict(documents or {})
        self.sources: Dict[str, str] = dict(sources or {})
        self.write_count = 0

    def read(self, name: str) -> str:
        _validate_name(name)
        return self.documents.get(name, "")

    def write(self, name: str, content: str) -> None:
        _validate_name(name)
        self.documents[name] = content
        self.write_count += 1

    def exists(self, name: str) -> bool:
        _validate_name(name)
        return name in self.documents

    def read_source(self, filepath: str) -> Optional[str]:
        return self.sources.get(filepath)

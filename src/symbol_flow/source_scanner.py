# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Source file discovery for index runs.

Walks the project tree and yields the files an index run should read:
- configured code extensions only
- dependency, build and VCS directories pruned
- .gitignore, user ignore patterns and sensitive files skipped
- the memory directory itself skipped

Paths are returned relative to the project root with forward slashes, in
sorted order, so a run over an unchanged tree always sees the same list.
"""

import fnmatch
import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional, Set

logger = logging.getLogger(__name__)

DEFAULT_CODE_EXTENSIONS = [".ts", ".tsx", ".js", ".jsx", ".py", ".php", ".go", ".rs", ".java"]


class SourceScanner:
    """Recursive, ignore-aware source file lister.

    Usage:
        scanner = SourceScanner(project_root, extensions=[".py"])
        for relpath in scanner.scan():
            ...
    """

    # Directory names never descended into
    IGNORED_DIRECTORIES = {
        ".git",
        ".hg",
        ".svn",
        "node_modules",
        "bower_components",
        "vendor",
        "dist",
        "build",
        "out",
        "coverage",
        ".next",
        "__pycache__",
        ".venv",
        "venv",
        "env",
        ".tox",
        ".pytest_cache",
        ".mypy_cache",
        ".ruff_cache",
        ".eggs",
        ".idea",
        ".vscode",
    }

    # Glob patterns for directories never descended into
    IGNORED_DIRECTORY_PATTERNS = {"*.egg-info"}

    # Files that must never be read, whatever their extension
    SENSITIVE_PATTERNS = {
        ".env",
        ".env.*",
        "credentials.json",
        "*.key",
        "*.pem",
        "*_secret",
        "*_key",
        "id_rsa",
        "id_ed25519",
        "secrets.yaml",
        "secrets.yml",
        ".npmrc",
        ".pypirc",
    }

    def __init__(
        self,
        project_root: Path,
        extensions: Optional[Iterable[str]] = None,
        ignore_patterns: Optional[Iterable[str]] = None,
        memory_dir: Optional[str] = None,
    ):
        """Initialize the scanner.

        Args:
            project_root: Directory paths are reported relative to.
            extensions: File suffixes to include, with leading dot.
            ignore_patterns: Extra glob patterns matched against the relative
                path and the file name.
            memory_dir: Memory directory name to skip, relative to the root.
        """
        self.project_root = Path(project_root).resolve()
        self.extensions: Set[str] = {
            ext.lower() for ext in (extensions if extensions is not None else DEFAULT_CODE_EXTENSIONS)
        }
        self.user_ignore_patterns: Set[str] = set(ignore_patterns or [])
        self.memory_dir = memory_dir.strip("/") if memory_dir else None
        self._gitignore_patterns = self._load_gitignore()

    def _load_gitignore(self) -> Set[str]:
        """Read ``.gitignore`` at the project root; comments and negations skipped."""
        gitignore = self.project_root / ".gitignore"
        patterns: Set[str] = set()
        if not gitignore.is_file():
            return patterns

        try:
            for line in gitignore.read_text(encoding="utf-8").splitlines():
                line = line.strip()
                if not line or line.startswith("#") or line.startswith("!"):
                    continue
                if len(line) > 1000:
                    logger.warning(".gitignore pattern too long (>1000 chars), skipping")
                    continue
                patterns.add(line.rstrip("/").lstrip("/"))
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read .gitignore: {e}")

        logger.debug(f"Loaded {len(patterns)} .gitignore patterns")
        return patterns

    def _matches_any(self, relpath: str, name: str, patterns: Iterable[str]) -> bool:
        return any(
            fnmatch.fnmatch(relpath, pattern) or fnmatch.fnmatch(name, pattern)
            for pattern in patterns
        )

    def should_skip_directory(self, relpath: str) -> bool:
        """True if a directory (relative path) is pruned from the walk."""
        name = relpath.rsplit("/", 1)[-1]
        if name in self.IGNORED_DIRECTORIES:
            return True
        if self._matches_any(relpath, name, self.IGNORED_DIRECTORY_PATTERNS):
            return True
        if self.memory_dir and relpath == self.memory_dir:
            return True
        return self._matches_any(
            relpath, name, self._gitignore_patterns | self.user_ignore_patterns
        )

    def should_ignore(self, relpath: str) -> bool:
        """True if a file (relative path) is excluded from indexing."""
        name = relpath.rsplit("/", 1)[-1]
        if self._matches_any(relpath, name, self.SENSITIVE_PATTERNS):
            logger.debug(f"Ignoring sensitive file: {name}")
            return True
        return self._matches_any(
            relpath, name, self._gitignore_patterns | self.user_ignore_patterns
        )

    def is_source_file(self, relpath: str) -> bool:
        return os.path.splitext(relpath)[1].lower() in self.extensions

    def scan(self, path: Optional[str] = None) -> List[str]:
        """List indexable files under ``path`` (default: the project root).

        Args:
            path: Sub-directory or single file, absolute or relative to the
                project root.

        Returns:
            Sorted relative paths with forward slashes. Empty if the path does
            not exist.
        """
        start = Path(path) if path else self.project_root
        if not start.is_absolute():
            start = self.project_root / start
        start = start.resolve()

        if start.is_file():
            relpath = self._relative(start)
            if self.is_source_file(relpath) and not self.should_ignore(relpath):
                return [relpath]
            return []
        if not start.is_dir():
            logger.warning(f"Scan path does not exist: {start}")
            return []

        found: List[str] = []
        for dirpath, dirnames, filenames in os.walk(start):
            current = Path(dirpath)
            dirnames[:] = [
                d for d in dirnames if not self.should_skip_directory(self._relative(current / d))
            ]
            for filename in filenames:
                relpath = self._relative(current / filename)
                if self.is_source_file(relpath) and not self.should_ignore(relpath):
                    found.append(relpath)

        found.sort()
        logger.debug(f"Scanned {start}: {len(found)} source file(s)")
        return found

    def in_scope(self, relpath: str, path: Optional[str] = None) -> bool:
        """True if ``relpath`` lies under the scan root ``path`` (default: everything)."""
        if not path:
            return True
        start = Path(path)
        if not start.is_absolute():
            start = self.project_root / start
        scope = self._relative(start.resolve())
        if scope in ("", "."):
            return True
        return relpath == scope or relpath.startswith(scope + "/")

    def _relative(self, path: Path) -> str:
        try:
            return path.relative_to(self.project_root).as_posix()
        except ValueError:
            return path.as_posix()

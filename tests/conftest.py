# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Shared fixtures for the symbol flow tests."""

from pathlib import Path
from typing import Dict

import pytest

from symbol_flow.cache import DocumentCache
from symbol_flow.config import Config
from symbol_flow.storage import FileDocumentStore, InMemoryDocumentStore

MATH_JS = """function doSomething(x) {
  return x * 2;
}

function add(a, b) { return doSomething(a); }
"""

AUTH_ROUTES_JS = """function loginHandler(req, res) {
  return validateUser(req);
}

function validateUser(req) {
  return true;
}
"""

SERVICE_PY = """class UserService(BaseService):
    def __init__(self, repo):
        self.repo = repo

    def find(self, user_id):
        return self.load(user_id)

    def load(self, user_id):
        return self.repo.get(user_id)


class BaseService:
    def close(self):
        pass


def helper():
    return UserService(None)
"""

SAMPLE_SOURCES: Dict[str, str] = {
    "src/math.js": MATH_JS,
    "src/routes/auth.js": AUTH_ROUTES_JS,
    "app/service.py": SERVICE_PY,
}


def write_sources(root: Path, sources: Dict[str, str]) -> None:
    for relpath, text in sources.items():
        path = root / relpath
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")


@pytest.fixture
def sample_project(tmp_path: Path) -> Path:
    """A small mixed JS/Python project on disk."""
    project = tmp_path / "project"
    project.mkdir()
    write_sources(project, SAMPLE_SOURCES)
    return project


@pytest.fixture
def default_config(tmp_path: Path) -> Config:
    """Configuration with every default (no config file present)."""
    return Config(config_path=tmp_path / "missing.yml")


@pytest.fixture
def memory_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def memory_cache(memory_store: InMemoryDocumentStore) -> DocumentCache:
    return DocumentCache(memory_store)


@pytest.fixture
def file_store(sample_project: Path) -> FileDocumentStore:
    return FileDocumentStore(
        memory_dir=sample_project / ".symbol_flow",
        project_root=sample_project,
    )


@pytest.fixture
def sample_sources() -> Dict[str, str]:
    """Source text of the sample project, keyed by relative path."""
    return dict(SAMPLE_SOURCES)

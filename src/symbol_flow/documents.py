# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Codecs for the derived documents kept in the memory directory.

Every document is plain text so it can be read (and hand-edited) outside the
tool. This module only converts between text and models; reading and
writing goes through ``symbol_flow.storage``.

Documents:
- FUNCTIONS.md: symbol table, ``F:name(params):returnType [L1:dep1,dep2]``
- FLOW_GRAPH.json: flow graph (version, generated, nodes, edges, entryPoints)
- RULES.md: ``### [ID] description`` blocks
- ATTEMPTS.md: ``### [timestamp] command`` blocks
- DISCOVERY.md: ``- [x] path`` lines
- ARCHITECTURE.md: directory overview, regenerated by each index run
- config.json: project settings
"""

import json
import logging
import os
import re
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Set

from symbol_flow.models import AttemptEntry, FlowGraph, FunctionEntry, RuleEntry

if TYPE_CHECKING:
    from symbol_flow.storage import DocumentStore

logger = logging.getLogger(__name__)


class DocumentKind:
    """Kinds of cached documents.

    Design: Using class constants (not Enum) for JSON-compatible strings.
    """

    SYMBOLS = "symbols"
    RULES = "rules"
    ATTEMPTS = "attempts"
    DISCOVERY = "discovery"
    CONFIG = "config"
    GRAPH = "graph"

    ALL = (SYMBOLS, RULES, ATTEMPTS, DISCOVERY, CONFIG, GRAPH)


FUNCTIONS_FILE = "FUNCTIONS.md"
FLOW_GRAPH_FILE = "FLOW_GRAPH.json"
RULES_FILE = "RULES.md"
ATTEMPTS_FILE = "ATTEMPTS.md"
DISCOVERY_FILE = "DISCOVERY.md"
ARCHITECTURE_FILE = "ARCHITECTURE.md"
PROJECT_SETTINGS_FILE = "config.json"

DOCUMENT_FILES: Dict[str, str] = {
    DocumentKind.SYMBOLS: FUNCTIONS_FILE,
    DocumentKind.RULES: RULES_FILE,
    DocumentKind.ATTEMPTS: ATTEMPTS_FILE,
    DocumentKind.DISCOVERY: DISCOVERY_FILE,
    DocumentKind.CONFIG: PROJECT_SETTINGS_FILE,
    DocumentKind.GRAPH: FLOW_GRAPH_FILE,
}

FUNCTIONS_HEADER = "# Functions Index\n\nAuto-generated function signatures with dependencies.\n\n"
DISCOVERY_HEADER = "# Discovery Log\n\n## Explored Areas\n\n"

DOCUMENT_TEMPLATES: Dict[str, str] = {
    FUNCTIONS_FILE: FUNCTIONS_HEADER,
    RULES_FILE: (
        "# Project Rules\n\n## System Rules\n\n"
        "- [SYS001] Max 500 lines per file\n- [SYS002] No duplicate functions\n\n"
        "## User Rules\n\n"
    ),
    ARCHITECTURE_FILE: "# Project Architecture\n\n## Structure\n\n## Patterns\n\n",
    DISCOVERY_FILE: DISCOVERY_HEADER,
    ATTEMPTS_FILE: "# Attempted Actions\n\n## Blocked Patterns\n\n",
}

DEFAULT_PROJECT_SETTINGS: Dict[str, Any] = {
    "lineLimit": 500,
    "strictMode": True,
    "autoIndex": True,
    "autoMemoryUpdate": True,
    "testFramework": "auto",
    "maxLoopIterations": 10,
}

_FUNCTION_LINE = re.compile(r"^F:(\w+)\(([^)]*)\):(\S+)(?:\s+\[L1:([^\]]*)\])?")
_BLOCK_SPLIT = re.compile(r"###\s+\[")
_RULE_HEADER = re.compile(r"^(\w+)\]\s+(.+)")
_ATTEMPT_HEADER = re.compile(r"^([^\]]+)\]\s+(.+)")
_DISCOVERY_LINE = re.compile(r"^-\s+\[x\]\s+(.+)", re.IGNORECASE)


# Symbol table


def format_function_entry(entry: FunctionEntry) -> str:
    """Render one ``F:`` line."""
    deps = f" [L1:{','.join(entry.dependencies)}]" if entry.dependencies else ""
    return f"F:{entry.name}({entry.params}):{entry.return_type}{deps}"


def format_functions(entries: Iterable[FunctionEntry]) -> str:
    """Render the symbol table with files sorted and entries in input order."""
    by_file: Dict[str, List[FunctionEntry]] = {}
    for entry in entries:
        by_file.setdefault(entry.file, []).append(entry)

    parts = [FUNCTIONS_HEADER]
    for filepath in sorted(by_file):
        parts.append(f"## {filepath}\n")
        for entry in by_file[filepath]:
            parts.append(format_function_entry(entry) + "\n")
        parts.append("\n")
    return "".join(parts)


def parse_functions(content: str) -> List[FunctionEntry]:
    """Parse the symbol table. Lines outside a ``## path`` section are ignored."""
    entries: List[FunctionEntry] = []
    current_file = ""

    for line in content.split("\n"):
        if line.startswith("## "):
            current_file = line[3:].strip()
            continue

        match = _FUNCTION_LINE.match(line)
        if match and current_file:
            deps_text = match.group(4)
            dependencies = [dep.strip() for dep in deps_text.split(",")] if deps_text else []
            entries.append(
                FunctionEntry(
                    name=match.group(1),
                    file=current_file,
                    params=match.group(2),
                    return_type=match.group(3),
                    dependencies=[dep for dep in dependencies if dep],
                )
            )

    return entries


# Flow graph


def format_graph(graph: FlowGraph) -> str:
    return json.dumps(graph.to_dict(), indent=2)


def parse_graph(content: str) -> FlowGraph:
    """Parse the graph document.

    Missing, empty or malformed content yields ``FlowGraph.empty()``.
    """
    if not content.strip():
        return FlowGraph.empty()

    try:
        data = json.loads(content)
        if not isinstance(data, dict):
            raise TypeError(f"expected a JSON object, got {type(data).__name__}")
        return FlowGraph.from_dict(data)
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        logger.warning(f"Malformed flow graph document, using empty graph: {e}")
        return FlowGraph.empty()


# Rules and attempts


def format_rule_entry(entry: RuleEntry) -> str:
    return (
        f"### [{entry.id}] {entry.description}\n"
        f"- Pattern: `{entry.pattern}`\n"
        f"- Files: `{entry.files}`\n"
        f"- Action: {entry.action}\n"
        f"- Enabled: {'true' if entry.enabled else 'false'}\n"
    )


def parse_rules(content: str) -> List[RuleEntry]:
    entries: List[RuleEntry] = []
    for block in _BLOCK_SPLIT.split(content):
        if not block.strip():
            continue
        header = _RULE_HEADER.match(block)
        if not header:
            continue

        pattern = re.search(r"Pattern:\s*`([^`]+)`", block)
        files = re.search(r"Files:\s*`([^`]+)`", block)
        action = re.search(r"Action:\s*(BLOCK|WARN)", block, re.IGNORECASE)
        enabled = re.search(r"Enabled:\s*(true|false)", block, re.IGNORECASE)

        entries.append(
            RuleEntry(
                id=header.group(1),
                description=header.group(2).split("\n")[0].strip(),
                pattern=pattern.group(1) if pattern else "",
                files=files.group(1) if files else "*",
                action=action.group(1).upper() if action else "WARN",
                enabled=enabled.group(1).lower() == "true" if enabled else True,
            )
        )
    return entries


def format_attempt_entry(entry: AttemptEntry) -> str:
    return (
        f"### [{entry.timestamp}] {entry.command}\n"
        f"Error: {entry.error}\n"
        f"DONT_RETRY: {'true' if entry.dont_retry else 'false'}\n"
    )


def parse_attempts(content: str) -> List[AttemptEntry]:
    entries: List[AttemptEntry] = []
    for block in _BLOCK_SPLIT.split(content):
        if not block.strip():
            continue
        header = _ATTEMPT_HEADER.match(block)
        if not header:
            continue

        error = re.search(r"Error:[ \t]*(.*)", block)
        dont_retry = re.search(r"DONT_RETRY:\s*(true|false)", block, re.IGNORECASE)

        entries.append(
            AttemptEntry(
                timestamp=header.group(1),
                command=header.group(2).split("\n")[0].strip(),
                error=error.group(1).strip() if error else "",
                dont_retry=bool(dont_retry and dont_retry.group(1).lower() == "true"),
            )
        )
    return entries


# Discovery log


def parse_discovery(content: str) -> Set[str]:
    explored: Set[str] = set()
    for line in content.split("\n"):
        match = _DISCOVERY_LINE.match(line)
        if match:
            explored.add(match.group(1).strip())
    return explored


def add_discovered(content: str, directories: Iterable[str]) -> str:
    """Append ``- [x] dir`` markers for directories not yet listed."""
    if not content:
        content = DISCOVERY_HEADER

    for directory in directories:
        marker = f"- [x] {directory}"
        if marker not in content.split("\n"):
            content = content.rstrip() + f"\n{marker}\n"
    return content


# Architecture overview

# First matching hint wins; checked against the directory path
_DIRECTORY_TYPES = [
    (("component", "ui"), "UI components"),
    (("api", "route"), "API routes"),
    (("service",), "Services"),
    (("util", "helper"), "Utilities"),
    (("hook",), "React hooks"),
    (("test", "spec"), "Tests"),
    (("model", "entity"), "Models"),
]


def classify_directory(directory: str) -> str:
    """Guess the role of a directory from its path."""
    for hints, label in _DIRECTORY_TYPES:
        if any(hint in directory for hint in hints):
            return label
    return "Source"


def format_architecture(files: Iterable[str]) -> str:
    """Render the directory overview for a list of source file paths."""
    counts: Dict[str, int] = {}
    for filepath in files:
        directory = os.path.dirname(filepath) or "."
        counts[directory] = counts.get(directory, 0) + 1

    parts = ["# Project Architecture\n\n", "## Structure\n\n"]
    for directory in sorted(counts):
        parts.append(f"- {directory}/ [{classify_directory(directory)}] - {counts[directory]} files\n")
    parts.append("\n## Patterns\n\n")
    parts.append("(Add project-specific patterns here)\n")
    return "".join(parts)


# Project settings


def parse_project_settings(content: str) -> Dict[str, Any]:
    """Parse config.json merged over the defaults.

    Empty or malformed content yields a copy of the defaults.
    """
    if not content.strip():
        return dict(DEFAULT_PROJECT_SETTINGS)

    try:
        data = json.loads(content)
    except ValueError as e:
        logger.warning(f"Malformed project settings, using defaults: {e}")
        return dict(DEFAULT_PROJECT_SETTINGS)

    if not isinstance(data, dict):
        logger.warning("Project settings must be a JSON object, using defaults")
        return dict(DEFAULT_PROJECT_SETTINGS)

    settings = dict(DEFAULT_PROJECT_SETTINGS)
    settings.update(data)
    return settings


def init_documents(store: "DocumentStore") -> List[str]:
    """Create every missing document from its template.

    Existing documents are left untouched.

    Returns:
        Names of the documents created.
    """
    created: List[str] = []
    for name, template in DOCUMENT_TEMPLATES.items():
        if not store.exists(name):
            store.write(name, template)
            created.append(name)

    if not store.exists(PROJECT_SETTINGS_FILE):
        store.write(PROJECT_SETTINGS_FILE, json.dumps(DEFAULT_PROJECT_SETTINGS, indent=2))
        created.append(PROJECT_SETTINGS_FILE)

    if not store.exists(FLOW_GRAPH_FILE):
        graph = FlowGraph.empty()
        graph.generated = FlowGraph.timestamp()
        store.write(FLOW_GRAPH_FILE, format_graph(graph))
        created.append(FLOW_GRAPH_FILE)

    if created:
        logger.info(f"Initialized documents: {', '.join(created)}")
    return created

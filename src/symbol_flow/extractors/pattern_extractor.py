# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Regex-based symbol extractor.

Recognizes declarations line by line with the ordered rules in
``symbol_flow.extractors.patterns``. This is deliberately approximate: it
builds no syntax tree and does not understand strings or comments, so a
brace inside a string literal can shift a class body's end line. Results are
good enough for lookup and navigation across many languages at once.
"""

import logging
from typing import Dict, List, Optional, Tuple

from symbol_flow.extractors.base import SymbolExtractor
from symbol_flow.extractors.call_graph import CallGraphBuilder
from symbol_flow.extractors.patterns import (
    BRACE_CLASS_PATTERN,
    BRACE_METHOD_RULES,
    FUNCTION_RULES,
    INDENT_METHOD_RULES,
    PYTHON_CLASS_PATTERN,
    PatternRule,
    is_declaration_name,
)
from symbol_flow.models import DEFAULT_RETURN_TYPE, ClassEntry, FunctionEntry, MethodEntry

logger = logging.getLogger(__name__)


def _indent_of(line: str) -> int:
    return len(line) - len(line.lstrip())


def _match_header(
    line: str, rules: List[PatternRule]
) -> Optional[Tuple[str, str, str]]:
    """Apply rules in order; return (name, params, return_type) of the first match.

    A first match whose name is a control-flow keyword ends the search with
    no result, the line is a statement and not a declaration.
    """
    for rule in rules:
        match = rule.regex.search(line)
        if not match:
            continue
        name = match.group(1)
        if not is_declaration_name(name):
            return None
        params = (match.group(2) or "").strip()
        return_type = (match.group(3) or "").strip() or DEFAULT_RETURN_TYPE
        return name, params, return_type
    return None


def _split_names(text: Optional[str]) -> List[str]:
    if not text:
        return []
    return [item.strip() for item in text.split(",") if item.strip()]


class PatternExtractor(SymbolExtractor):
    """Heuristic extractor for JS/TS, Python, PHP and similar languages."""

    def __init__(self, call_graph_builder: Optional[CallGraphBuilder] = None):
        self._call_graph_builder = call_graph_builder or CallGraphBuilder()

    def extract_functions(self, text: str, filepath: str) -> List[FunctionEntry]:
        entries: List[FunctionEntry] = []
        for index, line in enumerate(text.split("\n")):
            header = _match_header(line, FUNCTION_RULES)
            if header is None:
                continue
            name, params, return_type = header
            entries.append(
                FunctionEntry(
                    name=name,
                    file=filepath,
                    params=params,
                    return_type=return_type,
                    line=index + 1,
                )
            )
        return entries

    def extract_classes(self, text: str, filepath: str) -> List[ClassEntry]:
        """Extract classes with their ordered methods.

        Indentation-delimited headers (``class Name(Base):``) are tried first
        and their body ends at the first non-blank line indented no deeper
        than the header. Any other line opening with a ``class Name`` header
        (after optional modifiers) is brace-delimited:
        the body ends where the running ``{``/``}`` depth first returns to
        zero, and scanning resumes after that line.
        """
        lines = text.split("\n")
        entries: List[ClassEntry] = []

        index = 0
        while index < len(lines):
            line = lines[index]

            python_match = PYTHON_CLASS_PATTERN.match(line)
            if python_match:
                entries.append(self._indented_class(lines, index, python_match, filepath))
                index += 1
                continue

            brace_match = BRACE_CLASS_PATTERN.search(line)
            if brace_match:
                entry, end_index = self._braced_class(lines, index, brace_match, filepath)
                entries.append(entry)
                index = end_index + 1
                continue

            index += 1

        return entries

    def extract_calls(
        self,
        text: str,
        functions: List[FunctionEntry],
        classes: List[ClassEntry],
    ) -> Dict[str, List[str]]:
        return self._call_graph_builder.build(text, functions, classes)

    def _indented_class(self, lines: List[str], index: int, match, filepath: str) -> ClassEntry:
        class_indent = len(match.group(1))
        bases = [base for base in _split_names(match.group(3)) if "=" not in base]

        body: List[Tuple[int, str]] = []
        for body_index in range(index + 1, len(lines)):
            body_line = lines[body_index]
            if not body_line.strip():
                continue
            if _indent_of(body_line) <= class_indent:
                break
            body.append((body_index, body_line))

        # Only the first indentation level holds methods; deeper defs are
        # nested functions or methods of nested classes.
        methods: List[MethodEntry] = []
        if body:
            method_indent = _indent_of(body[0][1])
            for body_index, body_line in body:
                if _indent_of(body_line) != method_indent:
                    continue
                method = self._method_at(body_line, body_index, INDENT_METHOD_RULES)
                if method is not None:
                    methods.append(method)

        return ClassEntry(
            name=match.group(2),
            file=filepath,
            line=index + 1,
            extends=bases[0] if bases else None,
            implements=bases[1:],
            methods=methods,
        )

    def _braced_class(
        self, lines: List[str], index: int, match, filepath: str
    ) -> Tuple[ClassEntry, int]:
        end_index = self._find_brace_end(lines, index)

        methods: List[MethodEntry] = []
        for body_index in range(index + 1, end_index + 1):
            method = self._method_at(lines[body_index], body_index, BRACE_METHOD_RULES)
            if method is not None:
                methods.append(method)

        entry = ClassEntry(
            name=match.group(1),
            file=filepath,
            line=index + 1,
            extends=match.group(2),
            implements=_split_names(match.group(3)),
            methods=methods,
        )
        return entry, end_index

    @staticmethod
    def _find_brace_end(lines: List[str], start: int) -> int:
        """Return the index of the line where brace depth returns to zero.

        Every brace counts, including ones inside strings and comments. A
        header that never opens a brace has an empty body. A body that never
        closes extends to the end of the file.
        """
        depth = 0
        started = False
        for line_index in range(start, len(lines)):
            for char in lines[line_index]:
                if char == "{":
                    depth += 1
                    started = True
                elif char == "}":
                    depth -= 1
            if started and depth <= 0:
                return line_index
        if not started:
            return start
        logger.debug(f"Class body opened at line {start + 1} never closes")
        return len(lines) - 1

    @staticmethod
    def _method_at(
        line: str, index: int, rules: List[PatternRule]
    ) -> Optional[MethodEntry]:
        header = _match_header(line, rules)
        if header is None:
            return None
        name, params, return_type = header
        return MethodEntry(name=name, params=params, return_type=return_type, line=index + 1)


# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Per-file call map builder.

Walks a file's lines while tracking the enclosing caller, and records calls
to symbols the same file's extraction already knows about. Callers are
function names, or ``Class.method`` for methods. Cross-file resolution
happens later in the flow-graph assembler; this module only reports names.
"""

import logging
from typing import Dict, List, Optional, Set, Tuple

from symbol_flow.extractors.patterns import (
    BRACE_METHOD_RULES,
    CALL_CONTEXT_ARROW_PATTERN,
    CALL_CONTEXT_DEF_PATTERN,
    CALL_CONTEXT_FUNCTION_PATTERN,
    CALL_PATTERNS,
    INDENT_METHOD_RULES,
)
from symbol_flow.identity import qualified_name
from symbol_flow.models import ClassEntry, FunctionEntry

logger = logging.getLogger(__name__)


class CallGraphBuilder:
    """Builds ``caller -> [callee, ...]`` maps from source text.

    Context rules, applied per line in this order:
    1. A line holding a method header of an extracted class starts the
       ``Class.method`` context.
    2. A line holding an extracted class header clears the context.
    3. A JS ``function name(``, an arrow ``const name = (`` or a top-level
       Python ``def name(`` starts the ``name`` context.
    4. Any other non-blank line starting in column zero ends the context
       (closing brace, module-level statement, decorator).

    Header lines are scanned for calls only after the header itself, so a
    one-line body like ``function add(a, b) { return doSomething(a); }`` still
    yields ``add -> doSomething``.
    """

    def build(
        self,
        text: str,
        functions: List[FunctionEntry],
        classes: List[ClassEntry],
    ) -> Dict[str, List[str]]:
        """Build the call map for one file.

        Args:
            text: Decoded file contents.
            functions: Function entries extracted from the same text.
            classes: Class entries extracted from the same text.

        Returns:
            Ordered map of caller name to de-duplicated callee names. Every
            caller context seen gets a key, even if it calls nothing known.
        """
        known = self._known_names(functions, classes)
        method_lines: Dict[int, str] = {}
        for cls in classes:
            for method in cls.methods:
                if method.line is not None:
                    method_lines[method.line] = qualified_name(method.name, cls.name)
        class_lines: Set[int] = {cls.line for cls in classes if cls.line is not None}

        calls: Dict[str, List[str]] = {}
        current: Optional[str] = None

        for index, line in enumerate(text.split("\n")):
            line_number = index + 1

            if line_number in method_lines:
                current = method_lines[line_number]
                calls.setdefault(current, [])
                self._record_calls(self._after_method_header(line), current, known, calls)
                continue

            if line_number in class_lines:
                current = None
                continue

            header = self._function_header(line)
            if header is not None:
                name, rest = header
                if name is not None:
                    current = name
                    calls.setdefault(current, [])
                if current is not None:
                    self._record_calls(rest, current, known, calls)
                continue

            if line.strip() and not line[0].isspace():
                current = None
                continue

            if current is not None:
                self._record_calls(line, current, known, calls)

        logger.debug(f"Call map has {len(calls)} callers")
        return calls

    @staticmethod
    def _known_names(functions: List[FunctionEntry], classes: List[ClassEntry]) -> Set[str]:
        known = {entry.name for entry in functions}
        for cls in classes:
            for method in cls.methods:
                known.add(method.name)
                known.add(qualified_name(method.name, cls.name))
        return known

    @staticmethod
    def _function_header(line: str) -> Optional[Tuple[Optional[str], str]]:
        """Match a caller-context header.

        Returns:
            ``(name, rest_of_line)`` for a header that opens a context,
            ``(None, rest_of_line)`` for a nested ``def`` that keeps the
            enclosing context, or None when the line is not a header.
        """
        for pattern in (CALL_CONTEXT_FUNCTION_PATTERN, CALL_CONTEXT_ARROW_PATTERN):
            match = pattern.search(line)
            if match:
                return match.group(1), line[match.end() :]

        match = CALL_CONTEXT_DEF_PATTERN.match(line)
        if match:
            rest = line[match.end() :]
            if match.group(1):
                return None, rest
            return match.group(2), rest

        return None

    @staticmethod
    def _after_method_header(line: str) -> str:
        for rule in BRACE_METHOD_RULES + INDENT_METHOD_RULES:
            match = rule.regex.search(line)
            if match:
                return line[match.end() :]
        return ""

    @staticmethod
    def _record_calls(
        text: str, caller: str, known: Set[str], calls: Dict[str, List[str]]
    ) -> None:
        if not text:
            return
        callees = calls.setdefault(caller, [])
        for pattern in CALL_PATTERNS:
            for match in pattern.finditer(text):
                callee = match.group(1)
                if callee in known and callee not in callees:
                    callees.append(callee)

# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Ordered pattern rules for heuristic symbol extraction.

Each rule recognizes one declaration shape of a source-language family. The
extractor tries the rules of a list in order and accepts the FIRST match for
a line, so the order below is part of the extraction behavior.

Capture groups are shared by every function/method rule:
    1: name, 2: raw parameter text, 3: raw return type (optional)
"""

import re
from dataclasses import dataclass
from typing import FrozenSet, List, Pattern


@dataclass(frozen=True)
class PatternRule:
    """A named declaration pattern for one language family."""

    name: str
    family: str
    regex: Pattern[str]


# Names that look like ``name(...) {`` but are control flow, not declarations
CONTROL_KEYWORDS: FrozenSet[str] = frozenset(
    {
        "if",
        "for",
        "foreach",
        "while",
        "switch",
        "catch",
        "with",
        "return",
        "elif",
        "else",
        "do",
        "try",
        "function",
        "new",
        "typeof",
        "await",
        "yield",
        "sizeof",
    }
)

FUNCTION_RULES: List[PatternRule] = [
    PatternRule(
        name="js_function",
        family="javascript",
        regex=re.compile(
            r"(?:export\s+)?(?:async\s+)?function\s+(\w+)\s*\(([^)]*)\)(?:\s*:\s*(\S+))?"
        ),
    ),
    PatternRule(
        name="js_arrow_function",
        family="javascript",
        regex=re.compile(
            r"(?:export\s+)?const\s+(\w+)\s*=\s*(?:async\s+)?\(([^)]*)\)(?:\s*:\s*(\S+))?\s*=>"
        ),
    ),
    PatternRule(
        name="brace_method",
        family="javascript",
        regex=re.compile(r"^\s*(?:async\s+)?(\w+)\s*\(([^)]*)\)(?:\s*:\s*(\S+))?\s*\{"),
    ),
    PatternRule(
        name="python_def",
        family="python",
        regex=re.compile(r"def\s+(\w+)\s*\(([^)]*)\)(?:\s*->\s*(\S+))?:"),
    ),
    PatternRule(
        name="php_function",
        family="php",
        regex=re.compile(
            r"(?:public|private|protected)?\s*function\s+(\w+)\s*\(([^)]*)\)(?:\s*:\s*(\S+))?"
        ),
    ),
]

# Method headers inside a brace-delimited class body (JS/TS/Java/PHP)
BRACE_METHOD_RULES: List[PatternRule] = [
    PatternRule(
        name="brace_class_method",
        family="javascript",
        regex=re.compile(
            r"^\s*(?:(?:public|private|protected)\s+)?(?:static\s+)?(?:async\s+)?"
            r"(?:function\s+)?(\w+)\s*\(([^)]*)\)(?:\s*:\s*([^\s{]+))?\s*\{"
        ),
    ),
]

# Method headers inside an indentation-delimited class body (Python)
INDENT_METHOD_RULES: List[PatternRule] = [
    PatternRule(
        name="python_method",
        family="python",
        regex=re.compile(r"^\s*(?:async\s+)?def\s+(\w+)\s*\(([^)]*)\)(?:\s*->\s*(\S+))?:"),
    ),
]

# Class headers. The indentation form is tried first because it is the more
# specific shape (trailing colon); everything else uses brace scanning.
# Brace headers must start the line, after optional modifiers.
PYTHON_CLASS_PATTERN = re.compile(r"^(\s*)class\s+(\w+)(?:\(([^)]*)\))?\s*:")
BRACE_CLASS_PATTERN = re.compile(
    r"^\s*(?:(?:export|default|declare|abstract|final|public|private|protected|internal|"
    r"sealed|static)\s+)*class\s+(\w+)(?:\s+extends\s+(\w+))?(?:\s+implements\s+([^{]+))?"
)

# Headers that open a new caller context in the call-graph walk
CALL_CONTEXT_FUNCTION_PATTERN = re.compile(r"(?:export\s+)?(?:async\s+)?function\s+(\w+)\s*\(")
CALL_CONTEXT_ARROW_PATTERN = re.compile(
    r"(?:export\s+)?const\s+(\w+)\s*=\s*(?:async\s+)?\([^)]*\)(?:\s*:\s*\S+)?\s*=>"
)
CALL_CONTEXT_DEF_PATTERN = re.compile(r"^(\s*)(?:async\s+)?def\s+(\w+)\s*\(")

# Call shapes: bare ``name(``, dotted ``obj.name(``, and ``this.name(``
CALL_PATTERNS: List[Pattern[str]] = [
    re.compile(r"\b(\w+)\s*\("),
    re.compile(r"\.(\w+)\s*\("),
    re.compile(r"this\.(\w+)\s*\("),
]


def is_declaration_name(name: str) -> bool:
    """Return True unless the captured name is a control-flow keyword."""
    return name not in CONTROL_KEYWORDS

# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Base interface for symbol extractors.

An extractor turns the text of one source file into lightweight symbol
records: functions, classes with their methods, and a per-file call map.
The flow-graph assembler and the query engine only consume these records,
so a more precise extractor (for example an AST-based one for a single
language) can replace the pattern extractor without touching them.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Dict, List

from symbol_flow.models import ClassEntry, FunctionEntry


@dataclass
class FileExtraction:
    """Everything extracted from one source file.

    ``functions`` already carry their callee names in ``dependencies``.
    ``calls`` maps a caller name (function or ``Class.method``) to the ordered,
    de-duplicated names it calls.
    """

    filepath: str
    functions: List[FunctionEntry] = field(default_factory=list)
    classes: List[ClassEntry] = field(default_factory=list)
    calls: Dict[str, List[str]] = field(default_factory=dict)

    def is_empty(self) -> bool:
        """True when the file contributed no symbols."""
        return not self.functions and not self.classes


class SymbolExtractor(ABC):
    """Abstract base class for symbol extractors.

    Extractors are stateless. They MUST NOT raise for unusual source text;
    a line that matches nothing simply contributes nothing.
    """

    @abstractmethod
    def extract_functions(self, text: str, filepath: str) -> List[FunctionEntry]:
        """Extract function and method headers from file text.

        Args:
            text: Decoded file contents.
            filepath: Path recorded on each entry.

        Returns:
            Entries in source order. Empty list if nothing matched.
        """
        pass

    @abstractmethod
    def extract_classes(self, text: str, filepath: str) -> List[ClassEntry]:
        """Extract class declarations with their methods."""
        pass

    @abstractmethod
    def extract_calls(
        self,
        text: str,
        functions: List[FunctionEntry],
        classes: List[ClassEntry],
    ) -> Dict[str, List[str]]:
        """Build the caller -> callees map for one file."""
        pass

    def extract_file(self, text: str, filepath: str) -> FileExtraction:
        """Run all extraction passes over one file.

        Dependency lists are attached by building new FunctionEntry values;
        the entries returned by extract_functions are never mutated.
        """
        functions = self.extract_functions(text, filepath)
        classes = self.extract_classes(text, filepath)
        calls = self.extract_calls(text, functions, classes)

        with_deps = [
            replace(entry, dependencies=list(calls.get(entry.name, [])))
            for entry in functions
        ]
        return FileExtraction(filepath=filepath, functions=with_deps, classes=classes, calls=calls)

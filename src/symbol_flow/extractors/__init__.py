# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Symbol extraction from source text.

Components:
- SymbolExtractor: Abstract base class for extractors
- FileExtraction: Per-file result (functions, classes, call map)
- PatternExtractor: Regex-based extractor for many languages at once
- CallGraphBuilder: Per-file caller -> callees map builder
"""

from symbol_flow.extractors.base import FileExtraction, SymbolExtractor
from symbol_flow.extractors.call_graph import CallGraphBuilder
from symbol_flow.extractors.pattern_extractor import PatternExtractor

__all__ = [
    "SymbolExtractor",
    "FileExtraction",
    "PatternExtractor",
    "CallGraphBuilder",
]

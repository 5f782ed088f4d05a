# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Duplicate-function detection against the symbol table."""

import logging
import re
from typing import List, Optional, Tuple

from symbol_flow.extractors.base import SymbolExtractor
from symbol_flow.models import FunctionEntry

logger = logging.getLogger(__name__)

SNIPPET_FILE = "(input)"

_WHITESPACE = re.compile(r"\s")


def normalize_params(params: str) -> str:
    """Parameter text with all whitespace removed, lower-cased."""
    return _WHITESPACE.sub("", params).lower()


def is_similar(candidate: FunctionEntry, other: FunctionEntry) -> bool:
    """Two entries are similar when their names are equal, or when their
    normalized params are equal and their return types are equal."""
    if candidate.name == other.name:
        return True
    return (
        normalize_params(candidate.params) == normalize_params(other.params)
        and candidate.return_type == other.return_type
    )


def find_similar_functions(
    candidate: FunctionEntry, existing: List[FunctionEntry]
) -> List[FunctionEntry]:
    """Return the entries of ``existing`` similar to ``candidate``, in order.

    Matching ignores files, so a same-named function in the same file
    counts as well.
    """
    return [entry for entry in existing if is_similar(candidate, entry)]


def check_duplicates(
    code: str,
    existing: List[FunctionEntry],
    extractor: Optional[SymbolExtractor] = None,
) -> List[Tuple[FunctionEntry, List[FunctionEntry]]]:
    """Check every function declared in a code snippet against the index.

    Args:
        code: Source snippet, any supported language.
        existing: Current symbol table.
        extractor: Extractor to use; defaults to the pattern extractor.

    Returns:
        ``(candidate, matches)`` pairs for candidates with at least one match.
    """
    if extractor is None:
        from symbol_flow.extractors.pattern_extractor import PatternExtractor

        extractor = PatternExtractor()

    candidates = extractor.extract_functions(code, SNIPPET_FILE)
    results: List[Tuple[FunctionEntry, List[FunctionEntry]]] = []
    for candidate in candidates:
        matches = find_similar_functions(candidate, existing)
        if matches:
            results.append((candidate, matches))

    logger.debug(
        f"Duplicate check: {len(candidates)} candidate(s), {len(results)} with matches"
    )
    return results

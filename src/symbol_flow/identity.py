# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Stable, content-addressed symbol identifiers.

An id is a pure function of (kind, qualified name, file):

    id = kind[0] + md5(f"{kind}:{qualified_name}:{file}").hexdigest()[:length]

so re-scanning unchanged source always yields the same ids, across process
restarts. Two symbols with the same triple intentionally share an id.

The default length of 8 hex characters (32 bits) matches existing graph
documents. At tens of thousands of symbols the birthday bound makes a
collision plausible; callers that need stronger uniqueness can raise the
length up to the full 32-character digest.
"""

import hashlib
from typing import Optional

DEFAULT_ID_LENGTH = 8
MAX_ID_LENGTH = 32  # full md5 hex digest


def qualified_name(name: str, class_name: Optional[str] = None) -> str:
    """Return ``Class.method`` for methods, the bare name otherwise."""
    if class_name:
        return f"{class_name}.{name}"
    return name


def make_symbol_id(
    kind: str,
    name: str,
    filepath: str,
    length: int = DEFAULT_ID_LENGTH,
) -> str:
    """Derive the node id for a symbol.

    Args:
        kind: SymbolKind value ("function", "method", "class").
        name: Qualified name (``Class.method`` for methods).
        filepath: File path as recorded in the symbol table.
        length: Number of hex digest characters to keep.

    Returns:
        Id such as ``f1a2b3c4d``.

    Raises:
        ValueError: If kind is empty or length is out of range.
    """
    if not kind:
        raise ValueError("Symbol kind cannot be empty")
    if not 1 <= length <= MAX_ID_LENGTH:
        raise ValueError(f"Id length must be between 1 and {MAX_ID_LENGTH}: {length}")

    digest = hashlib.md5(f"{kind}:{name}:{filepath}".encode("utf-8")).hexdigest()
    return kind[0] + digest[:length]

# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Symbol Flow Index MCP Server."""

from .cache import DocumentCache
from .config import Config, ConfigurationError
from .extractors import CallGraphBuilder, FileExtraction, PatternExtractor, SymbolExtractor
from .flow_graph import FlowGraphAssembler
from .identity import make_symbol_id
from .indexer import Indexer, IndexReport
from .models import ClassEntry, FlowEdge, FlowGraph, FunctionEntry, MethodEntry, SymbolNode
from .query_api import QueryAPI
from .service import OperationResult, SymbolFlowService
from .storage import DocumentStore, FileDocumentStore, InMemoryDocumentStore

__version__ = "0.1.0"

__all__ = [
    "DocumentStore",
    "FileDocumentStore",
    "InMemoryDocumentStore",
    "DocumentCache",
    "Config",
    "ConfigurationError",
    "SymbolExtractor",
    "PatternExtractor",
    "CallGraphBuilder",
    "FileExtraction",
    "FlowGraphAssembler",
    "make_symbol_id",
    "Indexer",
    "IndexReport",
    "FunctionEntry",
    "MethodEntry",
    "ClassEntry",
    "SymbolNode",
    "FlowEdge",
    "FlowGraph",
    "QueryAPI",
    "SymbolFlowService",
    "OperationResult",
]

# Conditional import for MCP server (requires Python 3.10+ and mcp package)
try:
    from .mcp_server import SymbolFlowMCPServer

    __all__.append("SymbolFlowMCPServer")
except ImportError:
    # MCP package not available
    pass

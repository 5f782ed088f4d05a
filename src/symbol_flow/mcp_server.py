# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""MCP Server Protocol Layer for the Symbol Flow Index.

This module only translates MCP tool invocations into SymbolFlowService
calls and service results into tool responses. Indexing, caching and query
logic live in the service and the components it owns.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import Context, FastMCP
from mcp.server.session import ServerSession

from symbol_flow.config import CONFIG_FILENAME, Config
from symbol_flow.logging_setup import setup_logging
from symbol_flow.query_api import Direction, EntryKind
from symbol_flow.service import SymbolFlowService

logger = logging.getLogger(__name__)

SERVER_NAME = "symbol-flow-index"


class SymbolFlowMCPServer:
    """MCP Protocol Layer for the Symbol Flow Index.

    Responsibilities:
    - Initialize the FastMCP server and register tools
    - Translate tool requests to service calls
    - Return service results as tool responses
    - Start and stop the optional document watcher with the server
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        service: Optional[SymbolFlowService] = None,
        project_root: Optional[Path] = None,
    ):
        """Initialize MCP server.

        Args:
            config: Configuration object. If None, loads from the project root.
            service: Service layer instance. If None, creates default service.
            project_root: Project to index. If None, uses the current directory.
        """
        self.project_root = Path(project_root) if project_root else Path.cwd()
        if config is None:
            config = Config(self.project_root / CONFIG_FILENAME)
        self.config = config

        if service is None:
            service = SymbolFlowService(config=config, project_root=str(self.project_root))
        self.service = service

        self.mcp = FastMCP(name=SERVER_NAME)
        self._register_tools()

        logger.info("SymbolFlowMCPServer initialized")

    def _register_tools(self) -> None:
        """Register MCP tools with the server.

        Registers:
        - index: Build or update the symbol table and flow graph
        - symbol_lookup: Look up symbols by id or filters
        - entry_points: Rank entry points for a query
        - flow_subgraph: Bounded call subgraph around seed symbols
        - functions: Search functions or check a snippet for duplicates
        - invalidate_cache: Drop cached documents
        """

        @self.mcp.tool()
        async def index(
            ctx: Context[ServerSession, None],
            path: Optional[str] = None,
            force: bool = False,
        ) -> Dict[str, Any]:
            """Index source files into the symbol table and flow graph.

            Files already in the symbol table are skipped unless force is set.

            Args:
                path: Directory or file to index, relative to the project root
                    (default: whole project)
                force: Re-extract every scanned file and rebuild the graph
                ctx: MCP context for logging and progress

            Returns:
                Dictionary with success, message and the index report in data
            """
            await ctx.info(f"Indexing {path or 'project'} (force={force})")
            try:
                result = self.service.index(path=path, force=force)
            except Exception as e:
                await ctx.error(f"Error indexing {path or 'project'}: {e}")
                raise
            if not result.success:
                await ctx.error(f"Indexing failed: {result.error}")
            return result.to_dict()

        @self.mcp.tool()
        async def symbol_lookup(
            ctx: Context[ServerSession, None],
            ids: Optional[List[str]] = None,
            name: Optional[str] = None,
            file: Optional[str] = None,
            kind: Optional[str] = None,
            limit: Optional[int] = None,
        ) -> Dict[str, Any]:
            """Look up symbols by exact id, or by name/file/kind filters.

            Args:
                ids: Symbol ids to fetch exactly (filters are ignored when given)
                name: Case-insensitive name substring
                file: File path substring
                kind: One of function, class, method
                limit: Maximum results; 0 means unlimited
                ctx: MCP context for logging and progress

            Returns:
                Dictionary with success, message and matching symbols in data
            """
            await ctx.info("Looking up symbols")
            try:
                result = self.service.symbol_lookup(
                    ids=ids, name=name, file=file, kind=kind, limit=limit
                )
            except Exception as e:
                await ctx.error(f"Error looking up symbols: {e}")
                raise
            return result.to_dict()

        @self.mcp.tool()
        async def entry_points(
            query: str,
            ctx: Context[ServerSession, None],
            kind: str = EntryKind.ALL,
            limit: Optional[int] = None,
        ) -> Dict[str, Any]:
            """Rank likely entry points (routes, handlers, commands) for a query.

            Args:
                query: Free-text query, e.g. a feature or route name
                kind: One of route, handler, command, all
                limit: Maximum number of candidates
                ctx: MCP context for logging and progress

            Returns:
                Dictionary with success, message and scored entry points in data
            """
            await ctx.info(f"Resolving entry points for: {query}")
            try:
                result = self.service.entry_points(query, kind=kind, limit=limit)
            except Exception as e:
                await ctx.error(f"Error resolving entry points for {query}: {e}")
                raise
            return result.to_dict()

        @self.mcp.tool()
        async def flow_subgraph(
            ids: List[str],
            ctx: Context[ServerSession, None],
            depth: Optional[int] = None,
            direction: str = Direction.BOTH,
            max_nodes: Optional[int] = None,
            max_edges: Optional[int] = None,
        ) -> Dict[str, Any]:
            """Return the call subgraph within depth hops of the seed symbols.

            Args:
                ids: Seed symbol ids
                depth: Maximum hops from a seed
                direction: in (callers), out (callees) or both
                max_nodes: Node cap for the result
                max_edges: Edge cap for the result
                ctx: MCP context for logging and progress

            Returns:
                Dictionary with success, message and nodes/edges in data
            """
            await ctx.info(f"Retrieving flow subgraph for {len(ids)} seed(s)")
            try:
                result = self.service.flow_subgraph(
                    ids,
                    depth=depth,
                    direction=direction,
                    max_nodes=max_nodes,
                    max_edges=max_edges,
                )
            except Exception as e:
                await ctx.error(f"Error retrieving flow subgraph: {e}")
                raise
            return result.to_dict()

        @self.mcp.tool()
        async def functions(
            ctx: Context[ServerSession, None],
            query: Optional[str] = None,
            file: Optional[str] = None,
            check_duplicates: bool = False,
            code: Optional[str] = None,
        ) -> Dict[str, Any]:
            """Search indexed functions, or check a code snippet for duplicates.

            Args:
                query: Case-insensitive regular expression over name, file,
                    params and return type
                file: File path substring
                check_duplicates: Check code for similar existing functions
                code: Snippet to check (required with check_duplicates)
                ctx: MCP context for logging and progress

            Returns:
                Dictionary with success, message and functions or duplicates in data
            """
            await ctx.info("Checking duplicates" if check_duplicates else "Searching functions")
            try:
                result = self.service.functions(
                    query=query, file=file, check_duplicates=check_duplicates, code=code
                )
            except Exception as e:
                await ctx.error(f"Error searching functions: {e}")
                raise
            return result.to_dict()

        @self.mcp.tool()
        async def invalidate_cache(
            ctx: Context[ServerSession, None],
            kind: Optional[str] = None,
        ) -> Dict[str, Any]:
            """Drop cached documents so the next read reparses them.

            Args:
                kind: Document kind (symbols, rules, attempts, discovery,
                    config, graph); all kinds when omitted
                ctx: MCP context for logging and progress

            Returns:
                Dictionary with success and message
            """
            await ctx.info(f"Invalidating cache: {kind or 'all'}")
            result = self.service.invalidate_cache(kind)
            return result.to_dict()

        logger.info(
            "MCP tools registered: index, symbol_lookup, entry_points, "
            "flow_subgraph, functions, invalidate_cache"
        )

    def run(self, transport: str = "stdio") -> None:
        """Run the MCP server.

        Args:
            transport: Transport type to use. Options:
                - "stdio": Standard input/output (default)
                - "streamable-http": HTTP transport
                - "sse": Server-sent events transport
        """
        if self.config.watch_memory_dir:
            self.service.start_document_watcher()
        logger.info(f"Starting MCP server with {transport} transport")
        try:
            self.mcp.run(transport=transport)  # type: ignore[arg-type]
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        """Shutdown the MCP server and cleanup resources."""
        logger.info("Shutting down MCP server")
        self.service.shutdown()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        description="Symbol Flow Index MCP Server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--project-root",
        type=Path,
        default=None,
        help="Project to index. Default: current directory",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help=f"Configuration file. Default: <project-root>/{CONFIG_FILENAME}",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Directory for structured JSON log files. Default: console logging only",
    )
    parser.add_argument(
        "--transport",
        type=str,
        choices=["stdio", "streamable-http", "sse"],
        default="stdio",
        help="Transport type for MCP server. Default: stdio",
    )
    return parser.parse_args(argv)


def main() -> None:
    """Main entry point for MCP server."""
    args = parse_args()

    if args.log_dir is not None:
        setup_logging(log_dir=args.log_dir)
    else:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            stream=sys.stderr,
        )

    project_root = args.project_root or Path.cwd()
    config = Config(args.config) if args.config else Config(project_root / CONFIG_FILENAME)

    server = SymbolFlowMCPServer(config=config, project_root=project_root)
    logger.info(f"Starting MCP server for project_root={server.project_root}")
    server.run(transport=args.transport)


if __name__ == "__main__":
    main()

# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""MCP server exposing the dependency graph of one project root.

This module is a protocol layer only. Graph building, caching and queue
ordering are delegated to DependencyGraphService and QueryAPI.
"""

import logging
import os
from typing import Any, Dict, List, Optional, Sequence

from mcp.server.fastmcp import Context, FastMCP
from mcp.server.session import ServerSession

from typedep_graph.config import Config
from typedep_graph.graph import DependencyGraph
from typedep_graph.manifest_resolver import ManifestResolver
from typedep_graph.models import normalize_path
from typedep_graph.query_api import QueryAPI
from typedep_graph.service import DependencyGraphService

logger = logging.getLogger(__name__)

TRANSPORTS = ("stdio", "streamable-http", "sse")


class DependencyGraphMCPServer:
    """MCP protocol layer for the type dependency graph.

    Responsibilities:
    - Initialize the MCP server and register tools
    - Translate tool invocations into service and query calls
    - Format results as JSON-compatible tool responses

    The graph is loaded (or built) on first use and reused afterwards.
    """

    def __init__(
        self,
        project_root: str,
        unit_paths: Sequence[str],
        config: Optional[Config] = None,
        service: Optional[DependencyGraphService] = None,
    ):
        """Initialize MCP server.

        Args:
            project_root: Project root directory served by this instance.
            unit_paths: Compilation unit manifests to analyze on rebuild.
            config: Configuration object. If None, loads from default location.
            service: Service layer instance. If None, creates one backed by
                ManifestResolver.
        """
        if config is None:
            config = Config()
        self.config = config
        self.project_root = normalize_path(project_root)
        self.unit_paths: List[str] = list(unit_paths)

        if service is None:
            service = DependencyGraphService(config, ManifestResolver())
        self.service = service

        self._graph: Optional[DependencyGraph] = None

        self.mcp = FastMCP(name="typedep-graph")
        self._register_tools()

        logger.info(f"DependencyGraphMCPServer initialized for {self.project_root}")

    def get_graph(self) -> DependencyGraph:
        """Return the graph, loading or building it on first call."""
        if self._graph is None:
            self._graph = self.service.load_or_build(self.project_root, self.unit_paths)
        return self._graph

    def get_query_api(self) -> QueryAPI:
        return QueryAPI(self.get_graph())

    def _register_tools(self) -> None:
        """Register MCP tools with the server.

        Registers:
        - get_file_dependencies: upstream/downstream files of one file
        - get_analysis_queue: files ordered by upstream dependency count
        - get_dependency_graph: the complete graph
        """

        @self.mcp.tool()
        async def get_file_dependencies(
            file_path: str,
            ctx: Context[ServerSession, None],
        ) -> Dict[str, Any]:
            """Get the files a source file depends on and the files depending on it.

            Args:
                file_path: Absolute path, or path relative to the project root
                ctx: MCP context for logging

            Returns:
                Dictionary with:
                - file: Canonical path of the file
                - upstream: Files this file depends on (sorted)
                - downstream: Files that depend on this file (sorted)
            """
            await ctx.info(f"Getting dependencies of {file_path}")
            return self.file_dependencies(file_path)

        @self.mcp.tool()
        async def get_analysis_queue(
            ctx: Context[ServerSession, None],
        ) -> Dict[str, Any]:
            """Get all project files ordered for analysis.

            Files with fewer upstream dependencies come first; ties are ordered
            by path.

            Returns:
                Dictionary with:
                - queue: List of {file, upstream, downstream, position}
                - total: Number of queued files
            """
            await ctx.info("Building analysis queue")
            try:
                return self.analysis_queue()
            except Exception as e:
                await ctx.error(f"Error building analysis queue: {e}")
                raise

        @self.mcp.tool()
        async def get_dependency_graph(
            ctx: Context[ServerSession, None],
        ) -> Dict[str, Any]:
            """Export the complete file dependency graph of the project.

            Returns:
                Dictionary with:
                - upstream / downstream: file -> sorted list of files
                - total_files, total_edges: counts
                - project_root: Root the graph belongs to
                - summary: Isolated and most depended-upon files
            """
            await ctx.info("Exporting dependency graph")
            try:
                response = self.dependency_graph()
            except Exception as e:
                await ctx.error(f"Error exporting dependency graph: {e}")
                raise
            await ctx.info(
                f"Graph exported: {response['total_files']} files, "
                f"{response['total_edges']} edges"
            )
            return response

        logger.info(
            "MCP tools registered: get_file_dependencies, get_analysis_queue, "
            "get_dependency_graph"
        )

    def _resolve_file(self, file_path: str) -> str:
        if not file_path:
            raise ValueError("file_path must not be empty")
        if not os.path.isabs(file_path):
            file_path = os.path.join(self.project_root, file_path)
        return normalize_path(file_path)

    def file_dependencies(self, file_path: str) -> Dict[str, Any]:
        return self.get_query_api().get_file_context(self._resolve_file(file_path)).to_dict()

    def analysis_queue(self) -> Dict[str, Any]:
        queue = self.get_query_api().build_analysis_queue()
        return {"queue": [entry.to_dict() for entry in queue], "total": len(queue)}

    def dependency_graph(self) -> Dict[str, Any]:
        response = self.get_graph().to_dict(self.project_root)
        response["summary"] = self.get_query_api().get_graph_summary()
        return response

    def run(self, transport: str = "stdio") -> None:
        """Run the MCP server.

        Args:
            transport: One of "stdio", "streamable-http" or "sse".
        """
        if transport not in TRANSPORTS:
            raise ValueError(f"Unknown transport {transport!r}, expected one of {TRANSPORTS}")
        logger.info(f"Starting MCP server with {transport} transport")
        self.mcp.run(transport=transport)  # type: ignore[arg-type]

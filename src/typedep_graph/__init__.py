# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""File-level type dependency graphs for statically typed codebases."""

from .config import Config
from .graph import DependencyGraph, merge_graphs
from .graph_builder import DependencyGraphBuilder, ReferenceVisitor
from .manifest_resolver import ManifestError, ManifestResolver
from .models import FileWithDependencies, ReferenceKind, TypeKind, TypeSymbol
from .query_api import FileContext, QueryAPI, QueuedFile
from .resolver import CompilationUnit, SymbolResolver, TypeDeclaration
from .service import AnalysisCancelledError, DependencyGraphService, GraphUnavailableError
from .storage import (
    GraphStore,
    InMemoryGraphStore,
    JsonFileGraphStore,
    deserialize_graph,
    serialize_graph,
)

__version__ = "0.1.0"

__all__ = [
    "Config",
    "DependencyGraph",
    "merge_graphs",
    "DependencyGraphBuilder",
    "ReferenceVisitor",
    "ManifestError",
    "ManifestResolver",
    "FileWithDependencies",
    "ReferenceKind",
    "TypeKind",
    "TypeSymbol",
    "FileContext",
    "QueryAPI",
    "QueuedFile",
    "CompilationUnit",
    "SymbolResolver",
    "TypeDeclaration",
    "AnalysisCancelledError",
    "DependencyGraphService",
    "GraphUnavailableError",
    "GraphStore",
    "InMemoryGraphStore",
    "JsonFileGraphStore",
    "deserialize_graph",
    "serialize_graph",
]

# Conditional import for MCP server (requires Python 3.10+ and mcp package)
try:
    from .mcp_server import DependencyGraphMCPServer

    __all__.append("DependencyGraphMCPServer")
except ImportError:
    # MCP package not available
    pass

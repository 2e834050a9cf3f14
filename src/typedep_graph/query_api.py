# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Query API for consumers of the dependency graph.

Consumers use the graph to:
- attach upstream/downstream context to a per-file analysis request
- order a processing queue so files with fewer prerequisites come first

All methods return JSON-compatible values or simple dataclasses with
to_dict().
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from typedep_graph.graph import DependencyGraph
from typedep_graph.models import normalize_path


@dataclass
class FileContext:
    """Upstream and downstream files of one file, sorted by path."""

    file: str
    upstream: List[str]
    downstream: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file": self.file,
            "upstream": list(self.upstream),
            "downstream": list(self.downstream),
        }


@dataclass
class QueuedFile(FileContext):
    """A file waiting for analysis, with its dependency context."""

    position: int = 0

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["position"] = self.position
        return result


class QueryAPI:
    """Read-only queries over a DependencyGraph.

    Usage:
        api = QueryAPI(graph)
        context = api.get_file_context("/repo/Models/Order.cs")
        queue = api.build_analysis_queue()
    """

    def __init__(self, graph: DependencyGraph) -> None:
        if not isinstance(graph, DependencyGraph):
            raise TypeError(f"graph must be a DependencyGraph, got {type(graph)}")
        self.graph = graph

    def get_file_context(self, file_path: str) -> FileContext:
        """Get upstream/downstream files of a file.

        Unknown files get empty lists.
        """
        file = normalize_path(file_path)
        return FileContext(
            file=file,
            upstream=sorted(self.graph.get_upstream(file)),
            downstream=sorted(self.graph.get_downstream(file)),
        )

    def build_analysis_queue(self, files: Optional[Iterable[str]] = None) -> List[QueuedFile]:
        """Order files by ascending upstream-dependency count, then by path.

        Args:
            files: Files to queue. If None, every file in the graph is queued.

        Returns:
            Queue entries with their upstream/downstream context.
        """
        if files is None:
            candidates = self.graph.files()
        else:
            candidates = {normalize_path(f) for f in files}

        contexts = [self.get_file_context(file) for file in candidates]
        contexts.sort(key=lambda c: (len(c.upstream), c.file))
        return [
            QueuedFile(
                file=context.file,
                upstream=context.upstream,
                downstream=context.downstream,
                position=position,
            )
            for position, context in enumerate(contexts, start=1)
        ]

    def _get_most_connected_files(self, limit: int = 10) -> List[Dict[str, Any]]:
        counts = [(file, len(dependents)) for file, dependents in self.graph.downstream.items()]
        counts.sort(key=lambda item: (-item[1], item[0]))
        return [
            {"file": file, "dependent_count": count} for file, count in counts[:limit] if count
        ]

    def get_graph_summary(self) -> Dict[str, Any]:
        """Counts and most depended-upon files."""
        files = self.graph.files()
        isolated = [
            f for f in files if not self.graph.get_upstream(f) and not self.graph.get_downstream(f)
        ]
        return {
            "total_files": len(files),
            "total_edges": self.graph.edge_count(),
            "isolated_files": len(isolated),
            "most_connected_files": self._get_most_connected_files(),
        }

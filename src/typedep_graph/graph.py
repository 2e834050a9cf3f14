# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Bidirectional file dependency graph and its aggregation operations.

DependencyGraph holds two maps keyed by canonical absolute file path:
- upstream[a]: files that a depends on
- downstream[b]: files that depend on b

Invariants (checked by validate()):
- downstream is the exact transpose of upstream
- no file is its own dependency
- every file referenced anywhere has an entry in both maps

Graphs are immutable once built. merge() and filter() return new graphs.
"""

import logging
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Set, Tuple

from typedep_graph.models import FileWithDependencies, is_within_root, normalize_path

logger = logging.getLogger(__name__)

DependencyMap = Dict[str, FrozenSet[str]]


def _copy_map(dependencies: Mapping[str, Iterable[str]], name: str) -> Dict[str, Set[str]]:
    if dependencies is None:
        raise TypeError(f"{name} must not be None")
    result: Dict[str, Set[str]] = {}
    for key, values in dependencies.items():
        if values is None:
            raise TypeError(f"{name}[{key!r}] must not be None")
        canonical_key = normalize_path(key)
        result.setdefault(canonical_key, set()).update(normalize_path(v) for v in values)
    return result


def _freeze(dependencies: Dict[str, Set[str]]) -> DependencyMap:
    return {key: frozenset(values) for key, values in dependencies.items()}


def _transpose(upstream: Mapping[str, Iterable[str]]) -> Dict[str, Set[str]]:
    """Build the downstream map for an upstream map.

    Every key and value of upstream gets an entry, possibly empty.
    """
    downstream: Dict[str, Set[str]] = {}
    for dependent, dependencies in upstream.items():
        downstream.setdefault(dependent, set())
        for dependency in dependencies:
            downstream.setdefault(dependency, set()).add(dependent)
    return downstream


class DependencyGraph:
    """File-level upstream/downstream adjacency graph.

    Usage:
        graph = DependencyGraph.from_direct_dependencies(results)
        merged = graph.merge(other_graph).filter(project_root)
        merged.get_upstream("/project/src/Order.cs")
    """

    def __init__(
        self,
        upstream: Mapping[str, Iterable[str]],
        downstream: Mapping[str, Iterable[str]],
    ) -> None:
        """Create a graph from two maps.

        Paths are canonicalized. The maps are copied; callers keep ownership
        of the arguments.

        Raises:
            TypeError: If either map (or any value set) is None.
        """
        self._upstream: DependencyMap = _freeze(_copy_map(upstream, "upstream"))
        self._downstream: DependencyMap = _freeze(_copy_map(downstream, "downstream"))

    @classmethod
    def empty(cls) -> "DependencyGraph":
        return cls({}, {})

    @classmethod
    def from_direct_dependencies(
        cls, results: Iterable[FileWithDependencies]
    ) -> "DependencyGraph":
        """Aggregate direct dependency results into a full graph.

        Dependency sets of declarations sharing a file are unioned. Downstream
        is computed as the transpose of upstream. Self-edges are dropped.

        Args:
            results: Builder output, possibly from several compilation units.

        Returns:
            New DependencyGraph.

        Raises:
            TypeError: If results or any entry is None.
        """
        if results is None:
            raise TypeError("results must not be None")

        upstream: Dict[str, Set[str]] = {}
        for result in results:
            if result is None:
                raise TypeError("results must not contain None")
            dependent = normalize_path(result.file)
            dependencies = upstream.setdefault(dependent, set())
            for dependency in result.dependencies:
                canonical = normalize_path(dependency)
                if canonical == dependent:
                    continue
                dependencies.add(canonical)
                upstream.setdefault(canonical, set())

        return cls(upstream, _transpose(upstream))

    @property
    def upstream(self) -> DependencyMap:
        """Map of file -> files it depends on. Do not mutate."""
        return self._upstream

    @property
    def downstream(self) -> DependencyMap:
        """Map of file -> files that depend on it. Do not mutate."""
        return self._downstream

    def get_upstream(self, file_path: str) -> FrozenSet[str]:
        """Files the given file depends on (empty if unknown)."""
        return self._upstream.get(normalize_path(file_path), frozenset())

    def get_downstream(self, file_path: str) -> FrozenSet[str]:
        """Files depending on the given file (empty if unknown)."""
        return self._downstream.get(normalize_path(file_path), frozenset())

    def files(self) -> Set[str]:
        """All files present in either map."""
        return set(self._upstream) | set(self._downstream)

    def edge_count(self) -> int:
        return sum(len(values) for values in self._upstream.values())

    def merge(self, other: "DependencyGraph") -> "DependencyGraph":
        """Key-wise set union of both maps.

        Commutative and idempotent. Used when one project root holds several
        independently analyzed compilation units.

        Raises:
            TypeError: If other is not a DependencyGraph.
        """
        if not isinstance(other, DependencyGraph):
            raise TypeError(f"Can only merge DependencyGraph, got {type(other)}")

        upstream: Dict[str, Set[str]] = {k: set(v) for k, v in self._upstream.items()}
        downstream: Dict[str, Set[str]] = {k: set(v) for k, v in self._downstream.items()}
        for key, values in other._upstream.items():
            upstream.setdefault(key, set()).update(values)
        for key, values in other._downstream.items():
            downstream.setdefault(key, set()).update(values)
        return DependencyGraph(upstream, downstream)

    def filter(self, root: str) -> "DependencyGraph":
        """Drop every key and edge target outside a project root.

        Args:
            root: Project root directory.

        Returns:
            New DependencyGraph restricted to files under root.

        Raises:
            TypeError: If root is None.
        """
        if root is None:
            raise TypeError("root must not be None")

        def restrict(dependencies: DependencyMap) -> Dict[str, Set[str]]:
            return {
                key: {value for value in values if is_within_root(value, root)}
                for key, values in dependencies.items()
                if is_within_root(key, root)
            }

        upstream = restrict(self._upstream)
        downstream = restrict(self._downstream)
        dropped = len(self._upstream) - len(upstream)
        if dropped:
            logger.debug(f"Filtered {dropped} files outside project root {root}")
        return DependencyGraph(upstream, downstream)

    def validate(self) -> Tuple[bool, List[str]]:
        """Check the graph invariants.

        Returns:
            Tuple of (is_valid, list of error messages).
        """
        errors: List[str] = []

        for key, values in self._upstream.items():
            if key in values:
                errors.append(f"Self-dependency in upstream: {key}")
            for value in values:
                if key not in self._downstream.get(value, frozenset()):
                    errors.append(f"Upstream edge {key} -> {value} missing from downstream")

        for key, values in self._downstream.items():
            if key in values:
                errors.append(f"Self-dependency in downstream: {key}")
            for value in values:
                if key not in self._upstream.get(value, frozenset()):
                    errors.append(f"Downstream edge {key} <- {value} missing from upstream")

        upstream_keys = set(self._upstream)
        downstream_keys = set(self._downstream)
        for missing in sorted(upstream_keys - downstream_keys):
            errors.append(f"File missing from downstream map: {missing}")
        for missing in sorted(downstream_keys - upstream_keys):
            errors.append(f"File missing from upstream map: {missing}")

        return len(errors) == 0, errors

    def to_dict(self, project_root: Optional[str] = None) -> Dict[str, Any]:
        """Export to a JSON-compatible dict with sorted absolute paths.

        For the persisted, root-relative form use storage.serialize_graph().
        """
        result: Dict[str, Any] = {
            "upstream": {k: sorted(self._upstream[k]) for k in sorted(self._upstream)},
            "downstream": {k: sorted(self._downstream[k]) for k in sorted(self._downstream)},
            "total_files": len(self.files()),
            "total_edges": self.edge_count(),
        }
        if project_root is not None:
            result["project_root"] = project_root
        return result

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DependencyGraph):
            return NotImplemented
        return self._upstream == other._upstream and self._downstream == other._downstream

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"DependencyGraph(files={len(self.files())}, edges={self.edge_count()})"


def merge_graphs(graphs: Iterable[DependencyGraph]) -> DependencyGraph:
    """Merge any number of graphs sequentially.

    Returns:
        Merged graph (empty graph for no input).
    """
    if graphs is None:
        raise TypeError("graphs must not be None")
    merged = DependencyGraph.empty()
    for graph in graphs:
        merged = merged.merge(graph)
    return merged

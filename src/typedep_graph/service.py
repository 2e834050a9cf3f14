# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Service layer: build, cache and reload the dependency graph of a project.

Responsibilities:
- Run the graph builder over compilation units in parallel worker threads
- Aggregate per-unit results single-threaded and merge them
- Restrict the graph to the project root
- Reuse the persisted graph when it is still valid, rebuild it otherwise

The finished DependencyGraph is immutable; the service never mutates it.
"""

import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

from typedep_graph.config import Config
from typedep_graph.graph import DependencyGraph, merge_graphs
from typedep_graph.graph_builder import DependencyGraphBuilder
from typedep_graph.models import FileWithDependencies, normalize_path
from typedep_graph.resolver import CompilationUnit, SymbolResolver
from typedep_graph.storage import GraphStore, InMemoryGraphStore, JsonFileGraphStore

logger = logging.getLogger(__name__)


class AnalysisCancelledError(Exception):
    """Raised when cancel() was requested before analysis could finish."""

    pass


class GraphUnavailableError(Exception):
    """Raised when no usable cached graph exists and no units were given to build one."""

    pass


class DependencyGraphService:
    """Builds and caches the type dependency graph for a project root.

    Usage:
        service = DependencyGraphService(Config(), ManifestResolver())
        graph = service.load_or_build("/repo", ["/repo/app.unit.yml"])
    """

    def __init__(self, config: Optional[Config], resolver: SymbolResolver):
        """Initialize the service.

        Args:
            config: Configuration. If None, loads from the default location.
            resolver: Symbol resolver used to open and walk compilation units.

        Raises:
            TypeError: If resolver is not a SymbolResolver.
        """
        if not isinstance(resolver, SymbolResolver):
            raise TypeError(f"resolver must be a SymbolResolver instance, got {type(resolver)}")
        self.config = config or Config()
        self.resolver = resolver
        self.builder = DependencyGraphBuilder(
            resolver, markup_extensions=self.config.markup_extensions
        )
        self._cancel_event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation. Honoured before the next unit starts."""
        self._cancel_event.set()

    def reset_cancellation(self) -> None:
        self._cancel_event.clear()

    def _check_cancelled(self) -> None:
        if self._cancel_event.is_set():
            raise AnalysisCancelledError("Dependency analysis was cancelled")

    def _max_workers(self, unit_count: int) -> int:
        workers = self.config.max_workers or os.cpu_count() or 1
        return max(1, min(workers, unit_count))

    @staticmethod
    def _validate_root(project_root: str) -> str:
        if project_root is None:
            raise TypeError("project_root must not be None")
        root = normalize_path(project_root)
        if not os.path.isdir(root):
            raise ValueError(f"Project root does not exist: {project_root}")
        return root

    def _analyze_unit(
        self, unit: CompilationUnit, abort_event: threading.Event
    ) -> Optional[List[FileWithDependencies]]:
        self._check_cancelled()
        if abort_event.is_set():
            logger.debug(f"Skipping unit {unit.name}: another unit failed")
            return None
        start = time.time()
        results = self.builder.build_direct_dependencies(unit)
        elapsed_ms = (time.time() - start) * 1000
        logger.debug(
            f"Unit {unit.name} analyzed in {elapsed_ms:.1f}ms",
            extra={
                "extra_fields": {
                    "unit": unit.name,
                    "declarations": len(results),
                    "elapsed_ms": round(elapsed_ms, 1),
                }
            },
        )
        return results

    def build_graph(
        self, project_root: str, units: Sequence[CompilationUnit]
    ) -> DependencyGraph:
        """Build the dependency graph for already opened compilation units.

        Units are analyzed in parallel (one worker per unit). Aggregation and
        merging run on the calling thread after all workers finish.

        Args:
            project_root: Project root directory; edges outside it are dropped.
            units: Opened compilation units sharing this root.

        Returns:
            DependencyGraph restricted to project_root.

        Raises:
            TypeError: If project_root or units is None.
            ValueError: If project_root does not exist.
            AnalysisCancelledError: If cancel() was called before completion.
        """
        root = self._validate_root(project_root)
        if units is None:
            raise TypeError("units must not be None")
        units = list(units)
        if any(unit is None for unit in units):
            raise TypeError("units must not contain None")

        self._check_cancelled()
        if not units:
            return DependencyGraph.empty()

        per_unit_results: List[List[FileWithDependencies]] = []
        results_lock = threading.Lock()
        # Scoped to this build; cancel() stays reserved for callers
        abort_event = threading.Event()

        def run(unit: CompilationUnit) -> None:
            try:
                results = self._analyze_unit(unit, abort_event)
            except BaseException:
                abort_event.set()
                raise
            if results is None:
                return
            with results_lock:
                per_unit_results.append(results)

        with ThreadPoolExecutor(
            max_workers=self._max_workers(len(units)), thread_name_prefix="typedep-unit"
        ) as executor:
            futures = [executor.submit(run, unit) for unit in units]
            for future in futures:
                future.result()

        graphs = [DependencyGraph.from_direct_dependencies(r) for r in per_unit_results]
        graph = merge_graphs(graphs).filter(root)
        logger.info(
            f"Built dependency graph for {root}: {len(units)} units, "
            f"{len(graph.files())} files, {graph.edge_count()} edges"
        )
        return graph

    def analyze_units(self, project_root: str, unit_paths: Sequence[str]) -> DependencyGraph:
        """Open compilation units through the resolver and build their graph.

        Raises:
            TypeError: If unit_paths is None.
            AnalysisCancelledError: If cancel() was called between units.
        """
        root = self._validate_root(project_root)
        if unit_paths is None:
            raise TypeError("unit_paths must not be None")

        units: List[CompilationUnit] = []
        for unit_path in unit_paths:
            self._check_cancelled()
            logger.info(f"Opening compilation unit {unit_path}")
            units.append(self.resolver.open_compilation_unit(unit_path))
        return self.build_graph(root, units)

    def create_store(self, project_root: str) -> GraphStore:
        """Create the graph store for a project root according to config."""
        if self.config.enable_graph_cache:
            return JsonFileGraphStore(project_root, self.config)
        return InMemoryGraphStore(project_root)

    def load_or_build(
        self,
        project_root: str,
        unit_paths: Sequence[str],
        force_rebuild: bool = False,
    ) -> DependencyGraph:
        """Return the cached graph if still valid, otherwise rebuild and persist it.

        Args:
            project_root: Project root directory.
            unit_paths: Compilation units to analyze on rebuild.
            force_rebuild: Ignore any cached graph.

        Returns:
            DependencyGraph for the project root.

        Raises:
            TypeError: If unit_paths is None.
            GraphUnavailableError: If no usable cached graph exists and
                unit_paths is empty. Nothing is persisted in that case.
        """
        root = self._validate_root(project_root)
        if unit_paths is None:
            raise TypeError("unit_paths must not be None")
        store = self.create_store(root)

        if not force_rebuild:
            cached = store.load()
            if cached is not None:
                logger.info(f"Using cached dependency graph for {root}")
                return cached

        if not unit_paths:
            raise GraphUnavailableError(
                f"No cached dependency graph for {root}; run 'typedep-graph build' first "
                f"or pass compilation units"
            )

        graph = self.analyze_units(root, unit_paths)
        store.save(graph)
        return graph

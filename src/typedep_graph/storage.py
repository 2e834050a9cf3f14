# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Persistence of the dependency graph.

Components:
- serialize_graph / deserialize_graph: versioned, root-relative JSON form
- GraphStore: abstract interface for storage backends
- JsonFileGraphStore: one JSON artifact per project root
- InMemoryGraphStore: no persistence (cache disabled, tests)

Persisted format:
    {"formatVersion": 1,
     "upstream":   {"relative/path.ext": ["other/path.ext", ...], ...},
     "downstream": {"relative/path.ext": ["other/path.ext", ...], ...}}

Paths use "/" regardless of host OS. Keys and lists are sorted so equal
graphs produce identical artifacts.

Reload fails closed: an unknown version, a malformed document, a path that
does not exist or escapes the root, or broken transposition invalidates the
whole graph. Callers then rebuild from scratch.
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Set

from typedep_graph.config import Config
from typedep_graph.graph import DependencyGraph, DependencyMap
from typedep_graph.models import is_within_root, normalize_path, to_relative_path

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1
METADATA_SUBDIR = "metadata"


def _serialize_map(dependencies: DependencyMap, root: str) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    relative = {to_relative_path(key, root): values for key, values in dependencies.items()}
    for key in sorted(relative):
        result[key] = sorted({to_relative_path(value, root) for value in relative[key]})
    return result


def serialize_graph(graph: DependencyGraph, root: str) -> str:
    """Serialize a graph to its persisted JSON text.

    Args:
        graph: Graph whose files all lie under root (see DependencyGraph.filter).
        root: Project root directory.

    Returns:
        JSON text.

    Raises:
        TypeError: If graph or root is None.
        ValueError: If the graph references a file outside root.
    """
    if graph is None:
        raise TypeError("graph must not be None")
    if root is None:
        raise TypeError("root must not be None")

    container = {
        "formatVersion": FORMAT_VERSION,
        "upstream": _serialize_map(graph.upstream, root),
        "downstream": _serialize_map(graph.downstream, root),
    }
    return json.dumps(container, ensure_ascii=False)


def _resolve_relative(relative_path: Any, root: str) -> Optional[str]:
    """Resolve a persisted path against root; None unless it is an existing file under root."""
    if not isinstance(relative_path, str) or not relative_path:
        return None
    if os.path.isabs(relative_path) or relative_path.startswith("/"):
        return None
    absolute = normalize_path(os.path.join(root, *relative_path.split("/")))
    if not is_within_root(absolute, root):
        return None
    if not os.path.isfile(absolute):
        return None
    return absolute


def _deserialize_map(data: Any, root: str, name: str) -> Optional[Dict[str, Set[str]]]:
    if not isinstance(data, dict):
        logger.info(f"Cached graph has no valid '{name}' map")
        return None

    result: Dict[str, Set[str]] = {}
    for relative_key, relative_values in data.items():
        key = _resolve_relative(relative_key, root)
        if key is None:
            logger.info(f"Cached graph references missing file '{relative_key}'")
            return None
        if not isinstance(relative_values, list):
            logger.info(f"Cached graph entry '{relative_key}' is not a list")
            return None

        values: Set[str] = set()
        for relative_value in relative_values:
            value = _resolve_relative(relative_value, root)
            if value is None:
                logger.info(f"Cached graph references missing file '{relative_value}'")
                return None
            values.add(value)
        result[key] = values
    return result


def deserialize_graph(text: str, root: str) -> Optional[DependencyGraph]:
    """Restore a graph from its persisted JSON text.

    Args:
        text: JSON text produced by serialize_graph().
        root: Project root directory the paths are relative to.

    Returns:
        DependencyGraph, or None if the text is not a usable graph for root.
        No partial graph is ever returned.

    Raises:
        TypeError: If text or root is None.
    """
    if text is None:
        raise TypeError("text must not be None")
    if root is None:
        raise TypeError("root must not be None")

    if not os.path.isdir(root):
        logger.info(f"Project root {root} does not exist, cached graph unusable")
        return None
    root = normalize_path(root)

    try:
        container = json.loads(text)
    except json.JSONDecodeError as e:
        logger.info(f"Cached graph is not valid JSON: {e}")
        return None

    if not isinstance(container, dict):
        logger.info("Cached graph is not a JSON object")
        return None

    version = container.get("formatVersion")
    if isinstance(version, bool) or version != FORMAT_VERSION:
        logger.info(f"Unsupported cached graph format version: {version!r}")
        return None

    upstream = _deserialize_map(container.get("upstream"), root, "upstream")
    if upstream is None:
        return None
    downstream = _deserialize_map(container.get("downstream"), root, "downstream")
    if downstream is None:
        return None

    graph = DependencyGraph(upstream, downstream)
    is_valid, errors = graph.validate()
    if not is_valid:
        logger.info(f"Cached graph is inconsistent ({len(errors)} errors): {errors[0]}")
        return None
    return graph


class GraphStore(ABC):
    """Abstract storage interface for the dependency graph of one project root.

    Enables swapping the storage backend without changing the service.
    """

    def __init__(self, project_root: str) -> None:
        if project_root is None:
            raise TypeError("project_root must not be None")
        self.project_root = normalize_path(project_root)

    @abstractmethod
    def save(self, graph: DependencyGraph) -> None:
        """Persist a graph, replacing any previous one.

        Raises:
            OSError: If the storage operation fails.
        """
        pass

    @abstractmethod
    def load(self) -> Optional[DependencyGraph]:
        """Load the persisted graph.

        Returns:
            DependencyGraph, or None if nothing usable is stored.

        Raises:
            OSError: If the storage exists but cannot be read.
        """
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove the persisted graph."""
        pass


class JsonFileGraphStore(GraphStore):
    """Stores the graph as JSON at <root>/<cache_dir>/metadata/<graph_file>.

    Writes go to a temporary file in the same directory that is then renamed
    over the artifact, so readers never observe a partial file.
    """

    def __init__(self, project_root: str, config: Optional[Config] = None) -> None:
        super().__init__(project_root)
        config = config or Config()
        self.graph_path = (
            Path(self.project_root)
            / config.cache_dir_name
            / METADATA_SUBDIR
            / config.graph_file_name
        )

    def save(self, graph: DependencyGraph) -> None:
        text = serialize_graph(graph, self.project_root)
        self.graph_path.parent.mkdir(parents=True, exist_ok=True)

        fd, temp_path = tempfile.mkstemp(
            dir=str(self.graph_path.parent), prefix=".graph-", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(temp_path, self.graph_path)
        except BaseException:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

        logger.info(
            f"Saved dependency graph ({len(graph.files())} files, "
            f"{graph.edge_count()} edges) to {self.graph_path}"
        )

    def load(self) -> Optional[DependencyGraph]:
        if not self.graph_path.is_file():
            logger.debug(f"No cached dependency graph at {self.graph_path}")
            return None

        text = self.graph_path.read_text(encoding="utf-8")
        graph = deserialize_graph(text, self.project_root)
        if graph is None:
            logger.info(f"Cached dependency graph at {self.graph_path} is stale, rebuilding")
        return graph

    def clear(self) -> None:
        if self.graph_path.exists():
            self.graph_path.unlink()


class InMemoryGraphStore(GraphStore):
    """Keeps the graph in memory for the lifetime of the process.

    The serialized text is kept rather than the graph object, so loading
    revalidates against the filesystem exactly like the file store.
    """

    def __init__(self, project_root: str) -> None:
        super().__init__(project_root)
        self._text: Optional[str] = None

    def save(self, graph: DependencyGraph) -> None:
        self._text = serialize_graph(graph, self.project_root)

    def load(self) -> Optional[DependencyGraph]:
        if self._text is None:
            return None
        return deserialize_graph(self._text, self.project_root)

    def clear(self) -> None:
        self._text = None

# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""End-to-end tests: manifests -> resolver -> builder -> service -> store."""

import json
from pathlib import Path

import pytest

from typedep_graph.config import Config
from typedep_graph.manifest_resolver import ManifestResolver
from typedep_graph.query_api import QueryAPI
from typedep_graph.service import DependencyGraphService
from typedep_graph.storage import JsonFileGraphStore, deserialize_graph, serialize_graph

pytestmark = pytest.mark.integration


@pytest.fixture
def service(tmp_path):
    config = Config(config_path=tmp_path / "no-config.yml")
    return DependencyGraphService(config, ManifestResolver())


def test_solution_graph(service, sample_solution):
    files = sample_solution["files"]

    graph = service.analyze_units(sample_solution["root"], sample_solution["units"])

    assert graph.get_upstream(files["order"]) == {
        files["base"],
        files["entity"],
        files["customer"],
    }
    assert graph.get_upstream(files["customer"]) == {files["order"]}
    assert graph.get_upstream(files["repo"]) == {files["entity"], files["order"]}
    assert graph.get_upstream(files["controller"]) == {
        files["repo"],
        files["order"],
        files["invoice"],
    }
    assert graph.get_upstream(files["view"]) == {files["order"]}
    assert graph.get_downstream(files["order"]) == {
        files["customer"],
        files["repo"],
        files["controller"],
        files["view"],
    }
    assert graph.files() == set(files.values())
    assert graph.validate() == (True, [])


def test_generated_files_never_appear(service, sample_solution):
    graph = service.analyze_units(sample_solution["root"], sample_solution["units"])

    assert not any(".g.cs" in path or "Legacy" in path for path in graph.files())


def test_analysis_queue(service, sample_solution):
    files = sample_solution["files"]
    graph = service.analyze_units(sample_solution["root"], sample_solution["units"])

    queue = QueryAPI(graph).build_analysis_queue()

    assert [entry.file for entry in queue] == [
        files["base"],
        files["entity"],
        files["invoice"],
        files["customer"],
        files["view"],
        files["repo"],
        files["order"],
        files["controller"],
    ]


def test_persisted_artifact_round_trip(service, sample_solution):
    root = sample_solution["root"]

    graph = service.load_or_build(root, sample_solution["units"])

    artifact = Path(root) / ".typedep_graph" / "metadata" / "graph.json"
    data = json.loads(artifact.read_text())
    assert data["formatVersion"] == 1
    assert data["upstream"]["Web/Views/Orders.cshtml"] == ["Domain/Order.cs"]
    assert artifact.read_text() == serialize_graph(graph, root)
    assert deserialize_graph(artifact.read_text(), root) == graph
    assert JsonFileGraphStore(root, service.config).load() == graph


def test_deleted_source_invalidates_cache(service, sample_solution):
    root = sample_solution["root"]
    files = sample_solution["files"]
    service.load_or_build(root, sample_solution["units"])

    Path(files["invoice"]).unlink()
    store = JsonFileGraphStore(root, service.config)
    assert store.load() is None

    rebuilt = service.load_or_build(root, sample_solution["units"])

    assert files["invoice"] not in rebuilt.files()
    assert rebuilt.get_upstream(files["controller"]) == {files["repo"], files["order"]}
    assert store.load() == rebuilt


def test_units_analyzed_separately_merge_to_same_graph(service, sample_solution):
    root = sample_solution["root"]
    domain_unit, web_unit = sample_solution["units"]

    together = service.analyze_units(root, [domain_unit, web_unit])
    separately = service.analyze_units(root, [domain_unit]).merge(
        service.analyze_units(root, [web_unit])
    )

    assert together == separately

# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for the query API."""

import pytest

from typedep_graph.graph import DependencyGraph
from typedep_graph.models import FileWithDependencies, normalize_path
from typedep_graph.query_api import FileContext, QueryAPI, QueuedFile


@pytest.fixture
def files(tmp_path):
    return {name: normalize_path(str(tmp_path / name)) for name in ("a.cs", "b.cs", "c.cs", "d.cs")}


@pytest.fixture
def api(files):
    # a -> b, c ; b -> c ; d isolated
    graph = DependencyGraph.from_direct_dependencies(
        [
            FileWithDependencies(files["a.cs"], {files["c.cs"], files["b.cs"]}),
            FileWithDependencies(files["b.cs"], {files["c.cs"]}),
            FileWithDependencies(files["d.cs"], set()),
        ]
    )
    return QueryAPI(graph)


class TestFileContext:
    def test_sorted_context(self, api, files):
        context = api.get_file_context(files["a.cs"])

        assert context == FileContext(
            file=files["a.cs"], upstream=[files["b.cs"], files["c.cs"]], downstream=[]
        )
        assert api.get_file_context(files["c.cs"]).downstream == [files["a.cs"], files["b.cs"]]

    def test_unknown_file(self, api, tmp_path):
        context = api.get_file_context(str(tmp_path / "unknown.cs"))
        assert context.upstream == []
        assert context.downstream == []

    def test_to_dict(self, api, files):
        data = api.get_file_context(files["b.cs"]).to_dict()
        assert data == {
            "file": files["b.cs"],
            "upstream": [files["c.cs"]],
            "downstream": [files["a.cs"]],
        }

    def test_requires_graph(self):
        with pytest.raises(TypeError):
            QueryAPI({})


class TestAnalysisQueue:
    def test_ordered_by_upstream_count_then_path(self, api, files):
        queue = api.build_analysis_queue()

        assert [entry.file for entry in queue] == [
            files["c.cs"],
            files["d.cs"],
            files["b.cs"],
            files["a.cs"],
        ]
        assert [entry.position for entry in queue] == [1, 2, 3, 4]
        assert all(isinstance(entry, QueuedFile) for entry in queue)

    def test_subset(self, api, files):
        queue = api.build_analysis_queue([files["a.cs"], files["b.cs"]])

        assert [entry.file for entry in queue] == [files["b.cs"], files["a.cs"]]
        assert queue[1].upstream == [files["b.cs"], files["c.cs"]]

    def test_entry_to_dict(self, api, files):
        entry = api.build_analysis_queue([files["d.cs"]])[0]
        assert entry.to_dict() == {
            "file": files["d.cs"],
            "upstream": [],
            "downstream": [],
            "position": 1,
        }

    def test_empty_graph(self):
        assert QueryAPI(DependencyGraph.empty()).build_analysis_queue() == []


def test_graph_summary(api, files):
    summary = api.get_graph_summary()

    assert summary["total_files"] == 4
    assert summary["total_edges"] == 3
    assert summary["isolated_files"] == 1
    assert summary["most_connected_files"][0] == {"file": files["c.cs"], "dependent_count": 2}
    assert [item["file"] for item in summary["most_connected_files"]] == [
        files["c.cs"],
        files["b.cs"],
    ]

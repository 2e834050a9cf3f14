# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for symbol models and path helpers."""

import os

import pytest

from typedep_graph.models import (
    FileWithDependencies,
    MethodSymbol,
    Symbol,
    TypeKind,
    TypeSymbol,
    host_folds_case,
    is_within_root,
    normalize_path,
    to_relative_path,
)


class TestPathHelpers:
    def test_normalize_path_is_absolute(self, tmp_path):
        relative = os.path.relpath(str(tmp_path / "a.cs"))
        assert normalize_path(relative) == normalize_path(str(tmp_path / "a.cs"))
        assert os.path.isabs(normalize_path(relative))

    def test_normalize_path_collapses_dots(self, tmp_path):
        assert normalize_path(str(tmp_path / "x" / ".." / "a.cs")) == normalize_path(
            str(tmp_path / "a.cs")
        )

    def test_normalize_path_rejects_none_and_empty(self):
        with pytest.raises(TypeError):
            normalize_path(None)
        with pytest.raises(ValueError):
            normalize_path("")

    def test_normalize_path_folds_case_on_case_insensitive_hosts(self, tmp_path, monkeypatch):
        monkeypatch.setattr("typedep_graph.models.host_folds_case", lambda: True)

        assert normalize_path(str(tmp_path / "Models" / "Order.cs")) == normalize_path(
            str(tmp_path / "models" / "ORDER.cs")
        )
        assert is_within_root(str(tmp_path / "SRC" / "a.cs"), str(tmp_path / "src"))

    @pytest.mark.skipif(os.path.normcase("A") == "a", reason="host always folds case")
    def test_normalize_path_keeps_case_on_case_sensitive_hosts(self, tmp_path, monkeypatch):
        monkeypatch.setattr("typedep_graph.models.host_folds_case", lambda: False)

        assert normalize_path(str(tmp_path / "Order.cs")) != normalize_path(
            str(tmp_path / "order.cs")
        )

    def test_host_folds_case_matches_filesystem(self, tmp_path):
        (tmp_path / "case_check_dir").mkdir()

        assert host_folds_case() is host_folds_case()
        if os.path.normcase("A") != "a":
            assert host_folds_case() == (tmp_path / "CASE_CHECK_DIR").is_dir()

    def test_is_within_root(self, tmp_path):
        root = str(tmp_path / "project")
        assert is_within_root(str(tmp_path / "project" / "src" / "a.cs"), root)
        assert not is_within_root(str(tmp_path / "other" / "a.cs"), root)
        assert not is_within_root(str(tmp_path / "project-old" / "a.cs"), root)
        assert not is_within_root(root, root)

    def test_to_relative_path_uses_forward_slashes(self, tmp_path):
        root = str(tmp_path)
        assert to_relative_path(str(tmp_path / "src" / "models" / "a.cs"), root) == (
            "src/models/a.cs"
        )

    def test_to_relative_path_outside_root(self, tmp_path):
        with pytest.raises(ValueError, match="does not belong"):
            to_relative_path(str(tmp_path.parent / "elsewhere.cs"), str(tmp_path))


class TestSymbols:
    def test_symbol_without_location_is_external(self):
        assert Symbol("System.String").is_external
        assert not Symbol("App.Order", declaring_file="/p/Order.cs").is_external
        assert Symbol("Lib.Type", declaring_file="/p/Lib.cs", external=True).is_external

    def test_symbol_id_required(self):
        with pytest.raises(ValueError):
            TypeSymbol("")

    def test_unknown_type_kind(self):
        with pytest.raises(ValueError):
            TypeSymbol("X", kind="struct")

    def test_constructed_types_are_external(self):
        for kind in (TypeKind.ARRAY, TypeKind.POINTER, TypeKind.TUPLE, TypeKind.FUNCTION_POINTER):
            symbol = TypeSymbol("X", declaring_file="/p/X.cs", kind=kind)
            assert symbol.is_constructed
            assert symbol.is_external

    def test_type_parameter_is_external(self):
        assert TypeSymbol("T", declaring_file="/p/X.cs", kind=TypeKind.TYPE_PARAMETER).is_external

    def test_closed_generic_follows_definition(self):
        definition = TypeSymbol("App.Repo", declaring_file="/p/Repo.cs")
        closed = TypeSymbol("App.Repo<App.Order>")
        closed.original_definition = definition

        assert not closed.is_external
        assert closed.definition is definition

        library = TypeSymbol("List", external=True)
        closed_library = TypeSymbol("List<App.Order>")
        closed_library.original_definition = library
        assert closed_library.is_external

    def test_definition_of_plain_type_is_itself(self):
        symbol = TypeSymbol("App.Order", declaring_file="/p/Order.cs")
        assert symbol.definition is symbol

    def test_method_defaults(self):
        method = MethodSymbol("App.Order.Ship")
        assert method.parameters == []
        assert method.type_parameters == []
        assert method.body is None
        assert method.name == "App.Order.Ship"


class TestFileWithDependencies:
    def test_rejects_none(self):
        with pytest.raises(TypeError):
            FileWithDependencies(file=None, dependencies=set())
        with pytest.raises(TypeError):
            FileWithDependencies(file="/p/a.cs", dependencies=None)

    def test_type_name_optional(self):
        result = FileWithDependencies(file="/p/a.cs", dependencies={"/p/b.cs"})
        assert result.type_name is None

# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Shared fixtures for unit tests.

Provides an in-process SymbolResolver whose symbols are built directly in
Python, plus helpers to lay out source files on disk.
"""

import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from typedep_graph.models import TypeSymbol, normalize_path
from typedep_graph.resolver import CompilationUnit, SymbolResolver, TypeDeclaration


class FakeResolver(SymbolResolver):
    """Resolver serving hand-built symbols.

    Declarations are registered per file; each declaration handle is the
    TypeSymbol itself (or None for an unresolvable declaration).
    """

    def __init__(self) -> None:
        self.declarations: Dict[str, List[TypeDeclaration]] = {}
        self.markers: Dict[str, List[str]] = {}
        self.markup_files: List[str] = []
        self.opened: List[str] = []

    def declare(self, file: str, symbol: Optional[TypeSymbol], name: str = "") -> None:
        declaration = TypeDeclaration(
            file=file,
            name=name or (symbol.name if symbol else "Unresolved"),
            handle=symbol,
        )
        self.declarations.setdefault(file, []).append(declaration)

    def open_compilation_unit(self, path: str) -> CompilationUnit:
        self.opened.append(path)
        return CompilationUnit(path=path, name=Path(path).name)

    def list_source_files(self, unit: CompilationUnit) -> List[str]:
        return list(self.declarations)

    def get_type_declarations(self, unit: CompilationUnit, file: str) -> List[TypeDeclaration]:
        return list(self.declarations.get(file, []))

    def get_declared_symbol(
        self, unit: CompilationUnit, declaration: TypeDeclaration
    ) -> Optional[TypeSymbol]:
        return declaration.handle

    def get_original_file_markers(self, unit: CompilationUnit, file: str) -> List[str]:
        return list(self.markers.get(file, []))

    def list_markup_files(self, unit: CompilationUnit) -> List[str]:
        return list(self.markup_files)


@pytest.fixture
def resolver() -> FakeResolver:
    return FakeResolver()


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Empty project root directory."""
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def make_files(project: Path) -> Callable[..., Dict[str, str]]:
    """Factory creating source files under the project root.

    Returns:
        Function taking relative names and returning name -> canonical path.
    """

    def create(*names: str) -> Dict[str, str]:
        paths = {}
        for name in names:
            path = project / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(f"// {name}\n")
            paths[name] = normalize_path(str(path))
        return paths

    return create


@pytest.fixture
def unit(project: Path) -> CompilationUnit:
    return CompilationUnit(path=str(project / "App.csproj"), name="App.csproj")


@pytest.fixture
def restore_root_logger():
    """Put back the root logger's handlers and level after a test reconfigures logging."""
    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level
    yield root_logger
    for handler in list(root_logger.handlers):
        if handler not in handlers:
            root_logger.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root_logger.handlers:
            root_logger.addHandler(handler)
    root_logger.setLevel(level)

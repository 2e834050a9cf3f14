# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Interface to the semantic symbol resolver.

The resolver is a compiler frontend that has fully type-checked one
compilation unit (one project). The graph builder only consumes it through
this interface, so any frontend can be plugged in by implementing
SymbolResolver and handing out symbols from `typedep_graph.models`.

Components:
- CompilationUnit: handle for one opened, type-checked unit
- TypeDeclaration: handle for one type declaration syntax in a source file
- SymbolResolver: abstract resolver interface
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Optional

from typedep_graph.models import TypeSymbol


@dataclass(eq=False)
class CompilationUnit:
    """An opened compilation unit.

    Attributes:
        path: Path of the unit's project/solution/manifest file.
        name: Display name of the unit.
        handle: Resolver-private state (compilation object, parsed manifest, ...).
    """

    path: str
    name: str
    handle: Any = field(default=None, repr=False)


@dataclass(eq=False)
class TypeDeclaration:
    """A type declaration found in a source file.

    Attributes:
        file: Path of the file the declaration syntax lives in, as reported by
            the resolver. May point at a generated file that does not exist.
        name: Declared type name.
        handle: Resolver-private handle used by get_declared_symbol().
    """

    file: str
    name: str
    handle: Any = field(default=None, repr=False)


class SymbolResolver(ABC):
    """Abstract semantic symbol resolver.

    Design:
    - Implementations own all compiler-specific work (loading, binding)
    - The graph builder never parses source text itself
    - Methods may be called from worker threads, one unit per thread
    """

    @abstractmethod
    def open_compilation_unit(self, path: str) -> CompilationUnit:
        """Open and type-check a compilation unit.

        Args:
            path: Path to the unit's project file.

        Returns:
            Opened compilation unit.

        Raises:
            FileNotFoundError: If the unit file does not exist.
        """
        pass

    @abstractmethod
    def list_source_files(self, unit: CompilationUnit) -> List[str]:
        """List the source files of a unit (as the resolver reports them)."""
        pass

    @abstractmethod
    def get_type_declarations(self, unit: CompilationUnit, file: str) -> List[TypeDeclaration]:
        """List every type declaration in a file, nested declarations included."""
        pass

    @abstractmethod
    def get_declared_symbol(
        self, unit: CompilationUnit, declaration: TypeDeclaration
    ) -> Optional[TypeSymbol]:
        """Resolve the symbol declared by a type declaration.

        Returns:
            TypeSymbol, or None if the declaration cannot be bound.
        """
        pass

    def get_original_file_markers(self, unit: CompilationUnit, file: str) -> List[str]:
        """Return "original file" markers from a generated file's leading metadata.

        Generated sources (e.g. compiled markup views) record the markup file
        they came from. Default: no markers.
        """
        return []

    def list_markup_files(self, unit: CompilationUnit) -> List[str]:
        """Return the markup-backed source files known to the unit.

        Default: none.
        """
        return []

# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Graph builder: direct type dependencies per compilation unit.

This module walks the symbols of one compilation unit and produces, for every
type declaration, the set of other source files it structurally depends on.

Flow: SymbolResolver -> DependencyGraphBuilder -> List[FileWithDependencies]

For each declared type, references are collected from:
- Base type and all implemented interfaces
- Generic parameter constraints and type arguments (unwrapped through arrays,
  tuples, pointers and function-pointer signatures)
- Members: fields, properties (+ indexer parameters), events, methods,
  nested types
- Method bodies: explicit types, object creations, casts, patterns, local
  functions, lambdas
- Attributes on the type and on its members

Cycle safety: one visited set per root type traversal, shared by every
recursive step under that root (nested types included).

Generated sources: a declaring file that does not exist on disk is mapped back
to its markup source through the unit's "original file" markers. Unmatched
files are dropped, never guessed.
"""

import logging
import os
from abc import ABC, abstractmethod
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from typedep_graph.models import (
    AttributeSymbol,
    BodyReference,
    EventSymbol,
    FieldSymbol,
    FileWithDependencies,
    Member,
    MethodBody,
    MethodSymbol,
    PropertySymbol,
    ReferenceKind,
    TypeKind,
    TypeSymbol,
    normalize_path,
)
from typedep_graph.resolver import CompilationUnit, SymbolResolver, TypeDeclaration

logger = logging.getLogger(__name__)

DEFAULT_MARKUP_EXTENSIONS: Tuple[str, ...] = (".razor", ".cshtml")


class ReferenceVisitor(ABC):
    """Dispatches method-body references by ReferenceKind.

    Each kind maps to exactly one handler. Adding a kind to ReferenceKind
    without a handler here is a programming error caught at dispatch time.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, Callable[[BodyReference], None]] = {
            ReferenceKind.TYPE_REFERENCE: self.visit_type_reference,
            ReferenceKind.OBJECT_CREATION: self.visit_object_creation,
            ReferenceKind.CAST: self.visit_cast,
            ReferenceKind.PATTERN: self.visit_pattern,
            ReferenceKind.LOCAL_FUNCTION: self.visit_local_function,
            ReferenceKind.LAMBDA: self.visit_lambda,
        }

    def visit(self, reference: BodyReference) -> None:
        """Dispatch one body reference to its handler.

        Raises:
            ValueError: If the reference kind has no handler.
        """
        handler = self._handlers.get(reference.kind)
        if handler is None:
            raise ValueError(f"No handler for reference kind: {reference.kind}")
        handler(reference)

    def visit_body(self, body: MethodBody) -> None:
        for reference in body.references:
            self.visit(reference)

    @abstractmethod
    def visit_type_reference(self, reference: BodyReference) -> None:
        pass

    @abstractmethod
    def visit_object_creation(self, reference: BodyReference) -> None:
        pass

    @abstractmethod
    def visit_cast(self, reference: BodyReference) -> None:
        pass

    @abstractmethod
    def visit_pattern(self, reference: BodyReference) -> None:
        pass

    @abstractmethod
    def visit_local_function(self, reference: BodyReference) -> None:
        pass

    @abstractmethod
    def visit_lambda(self, reference: BodyReference) -> None:
        pass


class _TypeTraversal(ReferenceVisitor):
    """Collects declaring files reachable from one root type.

    Visited keys are (role, symbol_id) pairs so that a type first seen as a
    plain reference is still descended into when it turns up as a nested type.

    Not thread-safe: one instance per root type declaration.
    """

    def __init__(self) -> None:
        super().__init__()
        self.visited: Set[Tuple[str, str]] = set()
        # Declaring files as reported by the resolver (not yet verified on disk)
        self.dependencies: Set[str] = set()

    def _mark(self, role: str, symbol_id: str) -> bool:
        """Mark a symbol as visited. Returns False if it already was."""
        key = (role, symbol_id)
        if key in self.visited:
            return False
        self.visited.add(key)
        return True

    def add_dependency(self, type_symbol: Optional[TypeSymbol]) -> None:
        """Record the declaring file of a non-external type."""
        if type_symbol is None or type_symbol.is_external:
            return
        declaring_file = type_symbol.definition.declaring_file
        if declaring_file:
            self.dependencies.add(declaring_file)

    def analyze_root_type(self, type_symbol: TypeSymbol) -> None:
        if not self._mark("root", type_symbol.symbol_id):
            return

        self.analyze_type_reference(type_symbol.base_type)

        # Edge goes to each interface itself
        for interface_type in type_symbol.interfaces:
            self.analyze_type_reference(interface_type)

        for type_parameter in type_symbol.type_parameters:
            for constraint_type in type_parameter.constraint_types:
                self.analyze_type_reference(constraint_type)

        for type_argument in type_symbol.type_arguments:
            self.analyze_type_reference(type_argument)

        for member in type_symbol.members:
            self.analyze_member(member)

        self.analyze_attributes(type_symbol.attributes)

    def analyze_member(self, member: Optional[Member]) -> None:
        if member is None:
            return

        if isinstance(member, TypeSymbol):
            # Nested type: same visited set, attributes handled as root
            self.analyze_root_type(member)
            return

        if not self._mark("member", member.symbol_id):
            return

        if isinstance(member, (FieldSymbol, EventSymbol)):
            self.analyze_type_reference(member.type)
        elif isinstance(member, PropertySymbol):
            self.analyze_type_reference(member.type)
            for parameter in member.parameters:
                self.analyze_type_reference(parameter.type)
        elif isinstance(member, MethodSymbol):
            self.analyze_method(member)
        else:
            logger.debug(f"Ignoring unsupported member {member!r}")

        self.analyze_attributes(member.attributes)

    def analyze_method(self, method: Optional[MethodSymbol]) -> None:
        if method is None or not self._mark("method", method.symbol_id):
            return

        self.analyze_type_reference(method.return_type)

        for parameter in method.parameters:
            self.analyze_type_reference(parameter.type)
            self.analyze_type_reference(parameter.default_value_type)

        for type_parameter in method.type_parameters:
            for constraint_type in type_parameter.constraint_types:
                self.analyze_type_reference(constraint_type)

        if method.body is not None:
            self.visit_body(method.body)

    def analyze_attributes(self, attributes: Iterable[AttributeSymbol]) -> None:
        for attribute in attributes:
            self.analyze_type_reference(attribute.attribute_class)

    def analyze_type_reference(self, type_symbol: Optional[TypeSymbol]) -> None:
        """Record a type and unwrap the types it is built from."""
        if type_symbol is None or not self._mark("type", type_symbol.symbol_id):
            return

        # Constraints belong to the declaring generic, not to each use of T
        if type_symbol.kind == TypeKind.TYPE_PARAMETER:
            return

        self.add_dependency(type_symbol)

        # Type arguments count even when the generic definition is external
        for type_argument in type_symbol.type_arguments:
            self.analyze_type_reference(type_argument)

        self.analyze_type_reference(type_symbol.element_type)

        for element in type_symbol.tuple_elements:
            self.analyze_type_reference(element)

        signature = type_symbol.signature
        if signature is not None:
            self.analyze_type_reference(signature.return_type)
            for parameter in signature.parameters:
                self.analyze_type_reference(parameter.type)

    def visit_type_reference(self, reference: BodyReference) -> None:
        self.analyze_type_reference(reference.type)

    def visit_object_creation(self, reference: BodyReference) -> None:
        self.analyze_type_reference(reference.type)

    def visit_cast(self, reference: BodyReference) -> None:
        self.analyze_type_reference(reference.type)

    def visit_pattern(self, reference: BodyReference) -> None:
        self.analyze_type_reference(reference.type)

    def visit_local_function(self, reference: BodyReference) -> None:
        self.analyze_method(reference.method)
        self.analyze_type_reference(reference.type)

    def visit_lambda(self, reference: BodyReference) -> None:
        self.analyze_method(reference.method)


class _UnitContext:
    """Per-unit lookup state: known markup files and resolved path cache."""

    def __init__(self, unit: CompilationUnit, markup_files: Set[str]) -> None:
        self.unit = unit
        self.markup_files = markup_files
        self.resolved_paths: Dict[str, Optional[str]] = {}


class DependencyGraphBuilder:
    """Builds per-declaration direct dependencies for compilation units.

    The builder holds no per-unit state between calls, so one instance can
    serve several worker threads as long as the resolver can.

    Usage:
        builder = DependencyGraphBuilder(resolver)
        results = builder.build_direct_dependencies(unit)
        graph = DependencyGraph.from_direct_dependencies(results)
    """

    def __init__(
        self,
        resolver: SymbolResolver,
        markup_extensions: Iterable[str] = DEFAULT_MARKUP_EXTENSIONS,
        markup_files: Optional[Iterable[str]] = None,
    ) -> None:
        """Initialize the builder.

        Args:
            resolver: Symbol resolver supplying declarations and symbols.
            markup_extensions: File extensions of markup sources that
                generated files may be mapped back to.
            markup_files: Known markup-backed source files. If None, each
                unit's own markup files (from the resolver) are used.

        Raises:
            TypeError: If resolver is not a SymbolResolver.
        """
        if not isinstance(resolver, SymbolResolver):
            raise TypeError(f"resolver must be a SymbolResolver instance, got {type(resolver)}")
        self.resolver = resolver
        self.markup_extensions = tuple(ext.lower() for ext in markup_extensions)
        self._markup_files = (
            {normalize_path(path) for path in markup_files} if markup_files is not None else None
        )

    def build_direct_dependencies(self, unit: CompilationUnit) -> List[FileWithDependencies]:
        """Analyze every type declaration of a compilation unit.

        Args:
            unit: Opened compilation unit.

        Returns:
            One FileWithDependencies per successfully analyzed declaration.
            Several entries may share a file.

        Raises:
            TypeError: If unit is None.
        """
        if unit is None:
            raise TypeError("unit must not be None")

        context = _UnitContext(unit, self._collect_markup_files(unit))
        results: List[FileWithDependencies] = []
        skipped = 0

        for source_file in self.resolver.list_source_files(unit):
            if not source_file:
                continue
            for declaration in self.resolver.get_type_declarations(unit, source_file):
                result = self.analyze_declaration(context, declaration)
                if result is None:
                    skipped += 1
                else:
                    results.append(result)

        logger.info(
            f"Analyzed compilation unit {unit.name}: {len(results)} declarations, "
            f"{skipped} skipped"
        )
        return results

    def analyze_declaration(
        self, context: _UnitContext, declaration: TypeDeclaration
    ) -> Optional[FileWithDependencies]:
        """Analyze one type declaration.

        Returns:
            FileWithDependencies, or None if the declaration is skipped
            (unresolvable symbol, or unrecoverable generated file).
        """
        type_symbol = self.resolver.get_declared_symbol(context.unit, declaration)
        if type_symbol is None:
            logger.debug(f"Skipping unresolvable type declaration {declaration.name}")
            return None

        source_file = self._resolve_source_path(context, declaration.file)
        if source_file is None:
            # Generated file without a known markup source: defined exclusion
            return None

        traversal = _TypeTraversal()
        traversal.analyze_root_type(type_symbol)

        dependencies: Set[str] = set()
        for reported_path in traversal.dependencies:
            dependency = self._resolve_source_path(context, reported_path)
            if dependency is not None and dependency != source_file:
                dependencies.add(dependency)

        return FileWithDependencies(
            file=source_file,
            dependencies=dependencies,
            type_name=type_symbol.name,
        )

    def _collect_markup_files(self, unit: CompilationUnit) -> Set[str]:
        if self._markup_files is not None:
            return set(self._markup_files)

        markup_files: Set[str] = set()
        for path in self.resolver.list_markup_files(unit):
            if not path or not self._has_markup_extension(path):
                continue
            canonical = normalize_path(path)
            if os.path.isfile(canonical):
                markup_files.add(canonical)
        return markup_files

    def _has_markup_extension(self, path: str) -> bool:
        return path.lower().endswith(self.markup_extensions)

    def _resolve_source_path(self, context: _UnitContext, reported_path: str) -> Optional[str]:
        """Map a resolver-reported path to an existing source file.

        Returns:
            Canonical path of the file on disk (or of its markup source for
            generated files), None if neither can be verified.
        """
        if reported_path in context.resolved_paths:
            return context.resolved_paths[reported_path]

        canonical = normalize_path(reported_path)
        resolved: Optional[str]
        if os.path.isfile(canonical):
            resolved = canonical
        else:
            resolved = self._recover_markup_source(context, reported_path)
            if resolved is None:
                logger.debug(f"Dropping declarations from missing file {reported_path}")

        context.resolved_paths[reported_path] = resolved
        return resolved

    def _recover_markup_source(self, context: _UnitContext, generated_path: str) -> Optional[str]:
        unit_dir = os.path.dirname(normalize_path(context.unit.path))
        for marker in self.resolver.get_original_file_markers(context.unit, generated_path):
            if not marker or not self._has_markup_extension(marker):
                continue
            if not os.path.isabs(marker):
                marker = os.path.join(unit_dir, marker)
            candidate = normalize_path(marker)
            if not os.path.isfile(candidate):
                continue
            if candidate in context.markup_files:
                logger.debug(f"Mapped generated file {generated_path} to {candidate}")
                return candidate
        return None

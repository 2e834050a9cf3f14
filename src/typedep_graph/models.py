# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Core data models for the type dependency graph.

This module defines the symbol object model handed to the graph builder by a
symbol resolver, plus the small value types produced by the builder:

- TypeKind / MemberKind / ReferenceKind: string constants for tagged variants
- TypeSymbol: a type (named, array, pointer, function pointer, tuple, type parameter)
- FieldSymbol, PropertySymbol, EventSymbol, MethodSymbol: type members
- ParameterSymbol, AttributeSymbol: member parts
- MethodBody / BodyReference: type occurrences inside a method body
- FileWithDependencies: direct dependencies of one type declaration

Path helpers (normalize_path, is_within_root, to_relative_path) define file
identity for the whole package.

Symbols form a possibly cyclic object graph, so they compare by identity and
expose `symbol_id` as the stable key for visited sets.
"""

import functools
import logging
import os
import tempfile
from dataclasses import dataclass, field
from typing import List, Optional, Set, Union

logger = logging.getLogger(__name__)


class TypeKind:
    """Kinds of type symbols.

    Design: Using class constants (not Enum) for JSON-compatible strings.
    """

    NAMED = "named"  # class, struct, interface, enum, delegate
    ARRAY = "array"  # Order[]
    POINTER = "pointer"  # Order*
    FUNCTION_POINTER = "function_pointer"  # delegate*<Order, Customer>
    TUPLE = "tuple"  # (Order, Customer)
    TYPE_PARAMETER = "type_parameter"  # T

    ALL = (NAMED, ARRAY, POINTER, FUNCTION_POINTER, TUPLE, TYPE_PARAMETER)


class MemberKind:
    """Kinds of type members."""

    FIELD = "field"
    PROPERTY = "property"
    METHOD = "method"
    EVENT = "event"
    NESTED_TYPE = "nested_type"

    ALL = (FIELD, PROPERTY, METHOD, EVENT, NESTED_TYPE)


class ReferenceKind:
    """Kinds of type occurrences inside a method body.

    Closed set: every kind has exactly one handler in ReferenceVisitor.
    """

    TYPE_REFERENCE = "type_reference"  # explicit type syntax: Order x = ...
    OBJECT_CREATION = "object_creation"  # new Order()
    CAST = "cast"  # (Order)x
    PATTERN = "pattern"  # x is Order o, switch { Order => ... }
    LOCAL_FUNCTION = "local_function"  # Order Local() { ... }
    LAMBDA = "lambda"  # x => new Order(), delegate { ... }

    ALL = (TYPE_REFERENCE, OBJECT_CREATION, CAST, PATTERN, LOCAL_FUNCTION, LAMBDA)


@functools.lru_cache(maxsize=None)
def host_folds_case() -> bool:
    """Detect whether the host filesystem treats file names case-insensitively.

    Creates a lowercase temporary directory and checks whether its uppercase
    spelling resolves to the same entry. The answer is computed once per process
    from the temporary directory's volume.

    Returns:
        True if two spellings differing only in case name the same file.
    """
    if os.path.normcase("A") == "a":
        return True
    try:
        case_check_dir = tempfile.mkdtemp(prefix="typedep_case_")
    except OSError as e:
        logger.warning(f"Cannot detect filesystem case sensitivity, assuming sensitive: {e}")
        return False
    try:
        parent, name = os.path.split(case_check_dir)
        return os.path.isdir(os.path.join(parent, name.upper()))
    finally:
        os.rmdir(case_check_dir)


def normalize_path(path: Union[str, "os.PathLike[str]"]) -> str:
    """Return the canonical form of a file path.

    Canonical paths are absolute and normalized. On case-insensitive hosts
    the case is folded so that two spellings of one file compare equal.

    Args:
        path: File path (absolute or relative to the working directory).

    Returns:
        Canonical absolute path string.

    Raises:
        TypeError: If path is None.
        ValueError: If path is empty.
    """
    if path is None:
        raise TypeError("path must not be None")
    path_str = os.fspath(path)
    if not path_str:
        raise ValueError("path must not be empty")
    canonical = os.path.normcase(os.path.abspath(path_str))
    if host_folds_case():
        canonical = canonical.lower()
    return canonical


def is_within_root(path: str, root: str) -> bool:
    """Check whether a file path lies strictly inside a root directory.

    Args:
        path: File path to check.
        root: Project root directory.

    Returns:
        True if path is below root, False otherwise (including path == root).
    """
    canonical_path = normalize_path(path)
    canonical_root = normalize_path(root).rstrip(os.sep)
    return canonical_path.startswith(canonical_root + os.sep)


def to_relative_path(path: str, root: str) -> str:
    """Convert an absolute path to a root-relative, forward-slash path.

    Args:
        path: File path inside root.
        root: Project root directory.

    Returns:
        Relative path using "/" separators regardless of host OS.

    Raises:
        ValueError: If path is not inside root.
    """
    if not is_within_root(path, root):
        raise ValueError(f"File '{path}' does not belong to project root '{root}'")
    relative = os.path.relpath(normalize_path(path), normalize_path(root))
    return relative.replace(os.sep, "/").replace("\\", "/")


class Symbol:
    """Base class for resolver-issued symbols.

    Attributes:
        symbol_id: Stable identity of the symbol, unique within a compilation unit.
        name: Display name.
        declaring_file: First source location of the declaration, None if the
            symbol has no source location.
        external: True if the resolver reports the symbol as coming from a
            pre-built dependency.
    """

    def __init__(
        self,
        symbol_id: str,
        name: Optional[str] = None,
        declaring_file: Optional[str] = None,
        external: bool = False,
    ) -> None:
        if not symbol_id:
            raise ValueError("symbol_id cannot be empty")
        self.symbol_id = symbol_id
        self.name = name or symbol_id
        self.declaring_file = declaring_file
        self.external = external

    @property
    def is_external(self) -> bool:
        """Whether the symbol is declared outside the analyzed source set."""
        return self.external or self.declaring_file is None

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.symbol_id!r})"


class AttributeSymbol:
    """An attribute application; only the attribute class matters."""

    def __init__(self, attribute_class: Optional["TypeSymbol"]) -> None:
        self.attribute_class = attribute_class

    def __repr__(self) -> str:
        return f"AttributeSymbol({self.attribute_class!r})"


class TypeSymbol(Symbol):
    """A type as seen by the resolver.

    Named types carry base type, interfaces, generic parameters/arguments,
    members and attributes. Constructed types (arrays, pointers, function
    pointers, tuples) carry only the parts that make them up. Type parameters
    carry their constraint types.
    """

    def __init__(
        self,
        symbol_id: str,
        name: Optional[str] = None,
        declaring_file: Optional[str] = None,
        external: bool = False,
        kind: str = TypeKind.NAMED,
    ) -> None:
        super().__init__(symbol_id, name=name, declaring_file=declaring_file, external=external)
        if kind not in TypeKind.ALL:
            raise ValueError(f"Unknown type kind: {kind}")
        self.kind = kind
        self.base_type: Optional["TypeSymbol"] = None
        self.interfaces: List["TypeSymbol"] = []
        self.type_parameters: List["TypeSymbol"] = []
        self.constraint_types: List["TypeSymbol"] = []
        self.type_arguments: List["TypeSymbol"] = []
        # Generic definition for a closed generic (Repo<Order> -> Repo<T>)
        self.original_definition: Optional["TypeSymbol"] = None
        # Array element or pointer target
        self.element_type: Optional["TypeSymbol"] = None
        self.tuple_elements: List["TypeSymbol"] = []
        # Function pointer signature
        self.signature: Optional["MethodSymbol"] = None
        self.members: List["Member"] = []
        self.attributes: List[AttributeSymbol] = []

    @property
    def is_constructed(self) -> bool:
        """Arrays, pointers, function pointers and tuples have no declaration."""
        return self.kind in (
            TypeKind.ARRAY,
            TypeKind.POINTER,
            TypeKind.FUNCTION_POINTER,
            TypeKind.TUPLE,
        )

    @property
    def is_external(self) -> bool:
        if self.is_constructed or self.kind == TypeKind.TYPE_PARAMETER:
            return True
        if self.original_definition is not None and self.original_definition is not self:
            return self.original_definition.is_external
        return super().is_external

    @property
    def definition(self) -> "TypeSymbol":
        """The generic definition for closed generics, otherwise self."""
        return self.original_definition or self


class ParameterSymbol:
    """A method, indexer or function-pointer parameter."""

    def __init__(
        self,
        type: Optional[TypeSymbol],
        name: Optional[str] = None,
        default_value_type: Optional[TypeSymbol] = None,
    ) -> None:
        self.type = type
        self.name = name
        # Explicit default that is itself a type (e.g. typeof(Order))
        self.default_value_type = default_value_type


@dataclass(eq=False)
class BodyReference:
    """One type occurrence inside a method body.

    `type` is set for TYPE_REFERENCE, OBJECT_CREATION, CAST and PATTERN;
    `method` is set for LOCAL_FUNCTION and LAMBDA. A local function may carry
    both (its declared return type syntax).
    """

    kind: str
    type: Optional[TypeSymbol] = None
    method: Optional["MethodSymbol"] = None

    def __post_init__(self) -> None:
        if self.kind not in ReferenceKind.ALL:
            raise ValueError(f"Unknown reference kind: {self.kind}")


@dataclass(eq=False)
class MethodBody:
    """Type occurrences found by walking a method's declaring syntax."""

    references: List[BodyReference] = field(default_factory=list)


class MemberSymbol(Symbol):
    """Base class for non-type members."""

    member_kind = ""

    def __init__(
        self,
        symbol_id: str,
        name: Optional[str] = None,
        declaring_file: Optional[str] = None,
        attributes: Optional[List[AttributeSymbol]] = None,
    ) -> None:
        super().__init__(symbol_id, name=name, declaring_file=declaring_file)
        self.attributes: List[AttributeSymbol] = list(attributes or [])


class FieldSymbol(MemberSymbol):
    member_kind = MemberKind.FIELD

    def __init__(
        self,
        symbol_id: str,
        type: Optional[TypeSymbol],
        name: Optional[str] = None,
        declaring_file: Optional[str] = None,
        attributes: Optional[List[AttributeSymbol]] = None,
    ) -> None:
        super().__init__(symbol_id, name, declaring_file, attributes)
        self.type = type


class PropertySymbol(MemberSymbol):
    """A property; indexers carry parameters."""

    member_kind = MemberKind.PROPERTY

    def __init__(
        self,
        symbol_id: str,
        type: Optional[TypeSymbol],
        parameters: Optional[List[ParameterSymbol]] = None,
        name: Optional[str] = None,
        declaring_file: Optional[str] = None,
        attributes: Optional[List[AttributeSymbol]] = None,
    ) -> None:
        super().__init__(symbol_id, name, declaring_file, attributes)
        self.type = type
        self.parameters: List[ParameterSymbol] = list(parameters or [])


class EventSymbol(MemberSymbol):
    member_kind = MemberKind.EVENT

    def __init__(
        self,
        symbol_id: str,
        type: Optional[TypeSymbol],
        name: Optional[str] = None,
        declaring_file: Optional[str] = None,
        attributes: Optional[List[AttributeSymbol]] = None,
    ) -> None:
        super().__init__(symbol_id, name, declaring_file, attributes)
        self.type = type


class MethodSymbol(MemberSymbol):
    """A method, constructor, accessor, local function or lambda.

    `body` is None when the method has no declaring syntax (abstract,
    extern, or loaded from metadata).
    """

    member_kind = MemberKind.METHOD

    def __init__(
        self,
        symbol_id: str,
        return_type: Optional[TypeSymbol] = None,
        parameters: Optional[List[ParameterSymbol]] = None,
        type_parameters: Optional[List[TypeSymbol]] = None,
        body: Optional[MethodBody] = None,
        name: Optional[str] = None,
        declaring_file: Optional[str] = None,
        attributes: Optional[List[AttributeSymbol]] = None,
    ) -> None:
        super().__init__(symbol_id, name, declaring_file, attributes)
        self.return_type = return_type
        self.parameters: List[ParameterSymbol] = list(parameters or [])
        self.type_parameters: List[TypeSymbol] = list(type_parameters or [])
        self.body = body


# Nested types are members too
Member = Union[FieldSymbol, PropertySymbol, EventSymbol, MethodSymbol, TypeSymbol]


@dataclass
class FileWithDependencies:
    """Direct dependencies discovered for one type declaration.

    Attributes:
        file: Canonical path of the file declaring the type.
        dependencies: Canonical paths of files the declaration depends on.
            Never contains `file` itself.
        type_name: Name of the analyzed type (for logging and debugging).
    """

    file: str
    dependencies: Set[str]
    type_name: Optional[str] = None

    def __post_init__(self) -> None:
        if self.file is None:
            raise TypeError("file must not be None")
        if self.dependencies is None:
            raise TypeError("dependencies must not be None")

# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Symbol resolver backed by compilation-unit manifests.

A manifest is a YAML (or JSON) symbol dump of one type-checked compilation
unit, exported by an external compiler frontend. It lets the graph engine run
without linking a compiler into the process.

Manifest layout:

    files: [Models/Order.cs, ...]           # optional, defaults to type files
    markup_files: [Views/Index.cshtml]       # markup-backed sources
    original_file_markers:                   # generated file -> markup markers
      obj/Views_Index.g.cs: [Views/Index.cshtml]
    declarations:                            # optional, defaults to types by file
      Models/Order.cs: [App.Order]
    types:
      - id: App.Order
        file: Models/Order.cs                # omit (or external: true) for library types
        base: App.EntityBase
        interfaces: [App.IEntity]
        type_parameters: [{id: App.Order.T, constraints: [App.IEntity]}]
        members:
          - {kind: field, name: Customer, type: App.Customer}
          - kind: method
            name: Ship
            return_type: App.Shipment
            parameters: [{type: App.Address}]
            body:
              - {kind: object_creation, type: App.Shipment}
              - {kind: lambda, method: {return_type: App.Invoice}}
          - {kind: nested_type, type: App.Order.Line}
        attributes: [App.AuditedAttribute]

Type references are symbol ids, or mappings for constructed types:
    {kind: array, element: App.Order}
    {kind: pointer, element: App.Order}
    {kind: tuple, elements: [App.Order, App.Customer]}
    {kind: function_pointer, return_type: App.Order, parameters: [App.Customer]}
    {definition: App.Repo, arguments: [App.Order]}      # closed generic

Unknown ids resolve to external (library) types. Relative paths are resolved
against the manifest's directory.
"""

import json
import logging
import os
from typing import Any, Dict, List, Optional

import yaml

from typedep_graph.models import (
    AttributeSymbol,
    BodyReference,
    EventSymbol,
    FieldSymbol,
    Member,
    MemberKind,
    MethodBody,
    MethodSymbol,
    ParameterSymbol,
    PropertySymbol,
    ReferenceKind,
    TypeKind,
    TypeSymbol,
    normalize_path,
)
from typedep_graph.resolver import CompilationUnit, SymbolResolver, TypeDeclaration

logger = logging.getLogger(__name__)


class ManifestError(Exception):
    """Raised when a compilation-unit manifest is malformed."""

    pass


class _ManifestUnit:
    """Parsed manifest: symbol table plus file-level indexes."""

    def __init__(self, manifest_path: str, data: Dict[str, Any]) -> None:
        self.manifest_path = manifest_path
        self.base_dir = os.path.dirname(manifest_path)
        self.types: Dict[str, TypeSymbol] = {}
        self.source_files: List[str] = []
        self.markup_files: List[str] = []
        self.markers: Dict[str, List[str]] = {}
        self.declarations: Dict[str, List[str]] = {}
        self._anonymous_count = 0
        self._load(data)

    def path(self, value: Any) -> str:
        if not isinstance(value, str) or not value:
            raise ManifestError(f"{self.manifest_path}: expected a file path, got {value!r}")
        if not os.path.isabs(value):
            value = os.path.join(self.base_dir, *value.split("/"))
        return normalize_path(value)

    def _next_id(self, prefix: str) -> str:
        self._anonymous_count += 1
        return f"{prefix}#{self._anonymous_count}"

    def _load(self, data: Dict[str, Any]) -> None:
        type_entries = data.get("types") or []
        if not isinstance(type_entries, list):
            raise ManifestError(f"{self.manifest_path}: 'types' must be a list")

        # Pass 1: create every declared type so references can point forward
        for entry in type_entries:
            if not isinstance(entry, dict) or not entry.get("id"):
                raise ManifestError(f"{self.manifest_path}: type entry without id: {entry!r}")
            type_id = entry["id"]
            if type_id in self.types:
                raise ManifestError(f"{self.manifest_path}: duplicate type id {type_id}")
            declaring_file = self.path(entry["file"]) if entry.get("file") else None
            self.types[type_id] = TypeSymbol(
                type_id,
                name=entry.get("name"),
                declaring_file=declaring_file,
                external=bool(entry.get("external", False)),
            )
            for parameter in entry.get("type_parameters") or []:
                self._declare_type_parameter(parameter)

        # Pass 2: link structure
        for entry in type_entries:
            self._link_type(self.types[entry["id"]], entry)

        for file_path, type_ids in (data.get("declarations") or {}).items():
            if not isinstance(type_ids, list):
                raise ManifestError(
                    f"{self.manifest_path}: declarations of {file_path} must be a list"
                )
            self.declarations[self.path(file_path)] = [str(type_id) for type_id in type_ids]
        if not self.declarations:
            for entry in type_entries:
                symbol = self.types[entry["id"]]
                if symbol.declaring_file and not symbol.external:
                    self.declarations.setdefault(symbol.declaring_file, []).append(symbol.symbol_id)

        files = data.get("files")
        if files is None:
            self.source_files = list(self.declarations)
        else:
            self.source_files = [self.path(f) for f in files]

        self.markup_files = [self.path(f) for f in data.get("markup_files") or []]
        for generated, markers in (data.get("original_file_markers") or {}).items():
            if not isinstance(markers, list):
                markers = [markers]
            self.markers[self.path(generated)] = [str(marker) for marker in markers]

    def _declare_type_parameter(self, entry: Any) -> TypeSymbol:
        if isinstance(entry, str):
            entry = {"id": entry}
        if not isinstance(entry, dict) or not entry.get("id"):
            raise ManifestError(f"{self.manifest_path}: type parameter without id: {entry!r}")
        type_id = entry["id"]
        if type_id in self.types:
            raise ManifestError(f"{self.manifest_path}: duplicate type id {type_id}")
        parameter = TypeSymbol(type_id, name=entry.get("name"), kind=TypeKind.TYPE_PARAMETER)
        self.types[type_id] = parameter
        return parameter

    def _link_type_parameter(self, entry: Any) -> TypeSymbol:
        if isinstance(entry, str):
            return self.types[entry]
        parameter = self.types[entry["id"]]
        parameter.constraint_types = [self.type_ref(c) for c in entry.get("constraints") or []]
        return parameter

    def _link_type(self, symbol: TypeSymbol, entry: Dict[str, Any]) -> None:
        symbol.base_type = self.type_ref(entry.get("base"))
        symbol.interfaces = [self.type_ref(ref) for ref in entry.get("interfaces") or []]
        symbol.type_parameters = [
            self._link_type_parameter(p) for p in entry.get("type_parameters") or []
        ]
        symbol.type_arguments = [self.type_ref(ref) for ref in entry.get("type_arguments") or []]
        symbol.attributes = self.attributes(entry.get("attributes"))
        symbol.members = [
            self.member(member, symbol.symbol_id, index)
            for index, member in enumerate(entry.get("members") or [])
        ]

    def type_ref(self, ref: Any) -> Optional[TypeSymbol]:
        """Resolve a type reference (id or constructed-type mapping)."""
        if ref is None:
            return None
        if isinstance(ref, str):
            symbol = self.types.get(ref)
            if symbol is None:
                # Not in the dump: a library type
                symbol = TypeSymbol(ref, external=True)
                self.types[ref] = symbol
            return symbol
        if not isinstance(ref, dict):
            raise ManifestError(f"{self.manifest_path}: invalid type reference {ref!r}")

        if "definition" in ref:
            definition = self.type_ref(ref["definition"])
            if definition is None:
                raise ManifestError(f"{self.manifest_path}: generic without definition: {ref!r}")
            arguments = [self.type_ref(a) for a in ref.get("arguments") or []]
            type_id = f"{definition.symbol_id}<{','.join(a.symbol_id for a in arguments)}>"
            return self._constructed(
                type_id,
                TypeKind.NAMED,
                original_definition=definition,
                type_arguments=arguments,
            )

        kind = ref.get("kind")
        if kind in (TypeKind.ARRAY, TypeKind.POINTER):
            element = self.type_ref(ref.get("element"))
            if element is None:
                raise ManifestError(f"{self.manifest_path}: {kind} without element: {ref!r}")
            suffix = "[]" if kind == TypeKind.ARRAY else "*"
            return self._constructed(element.symbol_id + suffix, kind, element_type=element)
        if kind == TypeKind.TUPLE:
            elements = [self.type_ref(e) for e in ref.get("elements") or []]
            type_id = f"({','.join(e.symbol_id for e in elements)})"
            return self._constructed(type_id, kind, tuple_elements=elements)
        if kind == TypeKind.FUNCTION_POINTER:
            return_type = self.type_ref(ref.get("return_type"))
            parameters = [self.type_ref(p) for p in ref.get("parameters") or []]
            ids = [p.symbol_id for p in parameters]
            ids.append(return_type.symbol_id if return_type else "void")
            signature = MethodSymbol(
                self._next_id("signature"),
                return_type=return_type,
                parameters=[ParameterSymbol(p) for p in parameters],
            )
            return self._constructed(f"delegate*<{','.join(ids)}>", kind, signature=signature)

        raise ManifestError(f"{self.manifest_path}: unknown type reference {ref!r}")

    def _constructed(self, type_id: str, kind: str, **parts: Any) -> TypeSymbol:
        existing = self.types.get(type_id)
        if existing is not None:
            return existing
        symbol = TypeSymbol(type_id, kind=kind)
        for attribute, value in parts.items():
            setattr(symbol, attribute, value)
        self.types[type_id] = symbol
        return symbol

    def attributes(self, refs: Any) -> List[AttributeSymbol]:
        return [AttributeSymbol(self.type_ref(ref)) for ref in refs or []]

    def parameters(self, entries: Any) -> List[ParameterSymbol]:
        result = []
        for entry in entries or []:
            if not isinstance(entry, dict):
                entry = {"type": entry}
            result.append(
                ParameterSymbol(
                    self.type_ref(entry.get("type")),
                    name=entry.get("name"),
                    default_value_type=self.type_ref(entry.get("default")),
                )
            )
        return result

    def member(self, entry: Any, owner_id: str, index: int) -> Member:
        if not isinstance(entry, dict):
            raise ManifestError(f"{self.manifest_path}: invalid member of {owner_id}: {entry!r}")
        kind = entry.get("kind")
        member_id = entry.get("id") or f"{owner_id}.{entry.get('name') or index}"
        attributes = self.attributes(entry.get("attributes"))

        if kind == MemberKind.FIELD:
            return FieldSymbol(
                member_id,
                self.type_ref(entry.get("type")),
                name=entry.get("name"),
                attributes=attributes,
            )
        if kind == MemberKind.PROPERTY:
            return PropertySymbol(
                member_id,
                self.type_ref(entry.get("type")),
                parameters=self.parameters(entry.get("parameters")),
                name=entry.get("name"),
                attributes=attributes,
            )
        if kind == MemberKind.EVENT:
            return EventSymbol(
                member_id,
                self.type_ref(entry.get("type")),
                name=entry.get("name"),
                attributes=attributes,
            )
        if kind == MemberKind.METHOD:
            return self.method(entry, member_id)
        if kind == MemberKind.NESTED_TYPE:
            nested = self.type_ref(entry.get("type"))
            if nested is None:
                raise ManifestError(f"{self.manifest_path}: nested type of {owner_id} without type")
            return nested

        raise ManifestError(f"{self.manifest_path}: unknown member kind {kind!r} in {owner_id}")

    def method(self, entry: Dict[str, Any], method_id: str) -> MethodSymbol:
        type_parameters = []
        for parameter in entry.get("type_parameters") or []:
            parameter_id = parameter if isinstance(parameter, str) else parameter.get("id")
            if parameter_id not in self.types:
                self._declare_type_parameter(parameter)
            type_parameters.append(self._link_type_parameter(parameter))

        body = None
        if "body" in entry:
            references = entry["body"] or []
            body = MethodBody(
                [self.body_reference(ref, method_id, i) for i, ref in enumerate(references)]
            )

        return MethodSymbol(
            method_id,
            return_type=self.type_ref(entry.get("return_type")),
            parameters=self.parameters(entry.get("parameters")),
            type_parameters=type_parameters,
            body=body,
            name=entry.get("name"),
            attributes=self.attributes(entry.get("attributes")),
        )

    def body_reference(self, entry: Any, method_id: str, index: int) -> BodyReference:
        if not isinstance(entry, dict) or entry.get("kind") not in ReferenceKind.ALL:
            raise ManifestError(
                f"{self.manifest_path}: invalid body reference in {method_id}: {entry!r}"
            )
        kind = entry["kind"]
        method = None
        if kind in (ReferenceKind.LOCAL_FUNCTION, ReferenceKind.LAMBDA):
            method_entry = entry.get("method") or {}
            if not isinstance(method_entry, dict):
                raise ManifestError(f"{self.manifest_path}: invalid {kind} in {method_id}")
            nested_id = method_entry.get("id") or f"{method_id}#{kind}{index}"
            method = self.method(method_entry, nested_id)
        return BodyReference(kind=kind, type=self.type_ref(entry.get("type")), method=method)


class ManifestResolver(SymbolResolver):
    """SymbolResolver reading YAML/JSON compilation-unit manifests.

    Thread Safety:
    - Each opened unit owns its parsed state; units can be analyzed in
      parallel once opened.
    """

    def open_compilation_unit(self, path: str) -> CompilationUnit:
        manifest_path = normalize_path(path)
        if not os.path.isfile(manifest_path):
            raise FileNotFoundError(f"Compilation unit manifest not found: {path}")

        with open(manifest_path, encoding="utf-8") as f:
            try:
                if manifest_path.endswith(".json"):
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
            except (json.JSONDecodeError, yaml.YAMLError) as e:
                raise ManifestError(f"Cannot parse manifest {path}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ManifestError(f"Manifest {path} must contain a mapping, got {type(data)}")

        parsed = _ManifestUnit(manifest_path, data)
        name = str(data.get("name") or os.path.basename(manifest_path))
        logger.debug(f"Opened manifest {manifest_path}: {len(parsed.types)} symbols")
        return CompilationUnit(path=manifest_path, name=name, handle=parsed)

    @staticmethod
    def _parsed(unit: CompilationUnit) -> _ManifestUnit:
        if not isinstance(unit.handle, _ManifestUnit):
            raise TypeError(f"Compilation unit {unit.name} was not opened by ManifestResolver")
        return unit.handle

    def list_source_files(self, unit: CompilationUnit) -> List[str]:
        return list(self._parsed(unit).source_files)

    def get_type_declarations(self, unit: CompilationUnit, file: str) -> List[TypeDeclaration]:
        parsed = self._parsed(unit)
        type_ids = parsed.declarations.get(normalize_path(file), [])
        return [TypeDeclaration(file=file, name=type_id, handle=type_id) for type_id in type_ids]

    def get_declared_symbol(
        self, unit: CompilationUnit, declaration: TypeDeclaration
    ) -> Optional[TypeSymbol]:
        symbol = self._parsed(unit).types.get(declaration.handle)
        if symbol is None or symbol.kind != TypeKind.NAMED or symbol.external:
            return None
        return symbol

    def get_original_file_markers(self, unit: CompilationUnit, file: str) -> List[str]:
        return list(self._parsed(unit).markers.get(normalize_path(file), []))

    def list_markup_files(self, unit: CompilationUnit) -> List[str]:
        return list(self._parsed(unit).markup_files)

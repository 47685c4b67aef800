"""
Node metadata: the serializable description of the engine's type hierarchy.

The metadata document lists every type the generator may look at, with its
base type, constructors and declared members. It is produced once from the
engine assembly and read here with PyYAML (JSON documents load the same way).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Union

import yaml

from type_names import TypeIndex, TypeNameError, TypeRef, parse_type_ref

# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------

PUBLIC = "public"

MEMBER_KINDS = {"method", "property", "field", "event", "constructor", "nested_type"}


class MetadataError(ValueError):
    """The metadata document has a shape the generator does not support."""


@dataclass
class GenericParameter:
    name: str
    constraints: list[TypeRef] = field(default_factory=list)
    reference_type: bool = False
    not_nullable_value_type: bool = False
    default_constructor: bool = False


@dataclass
class Parameter:
    name: str
    type: TypeRef


@dataclass
class MethodRecord:
    name: str
    return_type: TypeRef
    parameters: list[Parameter] = field(default_factory=list)
    generic_parameters: list[GenericParameter] = field(default_factory=list)
    visibility: str = PUBLIC
    is_static: bool = False
    is_special_name: bool = False
    documentation: str | None = None
    declared_by: str | None = None


@dataclass
class PropertyRecord:
    name: str
    type: TypeRef
    getter: str | None = None  # accessor visibility, None when absent
    setter: str | None = None
    is_static: bool = False
    documentation: str | None = None
    declared_by: str | None = None

    @property
    def is_gettable(self) -> bool:
        return self.getter == PUBLIC

    @property
    def is_settable(self) -> bool:
        return self.setter == PUBLIC


@dataclass
class OtherMemberRecord:
    """Fields, events, constructors and nested types: listed, never generated."""

    kind: str
    name: str
    declared_by: str | None = None


MemberRecord = Union[MethodRecord, PropertyRecord]


@dataclass
class ConstructorRecord:
    visibility: str = PUBLIC
    parameters: list[Parameter] = field(default_factory=list)


@dataclass
class TypeRecord:
    name: str
    namespace: str | None = None
    base: TypeRef | None = None
    is_abstract: bool = False
    constructors: list[ConstructorRecord] = field(default_factory=list)
    documentation: str | None = None
    members: list[MethodRecord | PropertyRecord | OtherMemberRecord] = field(
        default_factory=list
    )
    declaring_type: TypeRef | None = None

    @property
    def ref(self) -> TypeRef:
        if self.declaring_type is not None:
            return TypeRef(name=self.name, declaring_type=self.declaring_type)
        return TypeRef(name=self.name, namespace=self.namespace)

    @property
    def full_name(self) -> str:
        return self.ref.full_name

    @property
    def has_public_parameterless_constructor(self) -> bool:
        return any(
            c.visibility == PUBLIC and not c.parameters for c in self.constructors
        )

    @property
    def can_be_instantiated(self) -> bool:
        return not self.is_abstract and self.has_public_parameterless_constructor


@dataclass
class MetadataUniverse:
    root: TypeRef
    types: dict[str, TypeRecord] = field(default_factory=dict)  # keyed by full name
    index: TypeIndex = field(default_factory=TypeIndex)

    def lookup(self, ref: TypeRef | None) -> TypeRecord | None:
        if ref is None:
            return None
        return self.types.get(ref.full_name)

    def is_subclass_of(self, record: TypeRecord, ancestor: TypeRef) -> bool:
        """True when ``ancestor`` appears (strictly) in ``record``'s base chain."""
        seen = {record.full_name}
        base = record.base
        while base is not None:
            if base.full_name == ancestor.full_name:
                return True
            if base.full_name in seen:
                raise MetadataError(f"Cyclic base chain through {base.full_name}")
            seen.add(base.full_name)
            parent = self.lookup(base)
            base = parent.base if parent is not None else None
        return False

    def is_node_type(self, ref: TypeRef | None) -> bool:
        record = self.lookup(ref)
        return record is not None and self.is_subclass_of(record, self.root)


# ---------------------------------------------------------------------------
# Metadata walker
# ---------------------------------------------------------------------------


def find_node_types(universe: MetadataUniverse) -> list[TypeRecord]:
    """Every type that (indirectly) extends the root node type."""
    return [
        universe.types[name]
        for name in sorted(universe.types)
        if universe.is_subclass_of(universe.types[name], universe.root)
    ]


# ---------------------------------------------------------------------------
# Member extractor
# ---------------------------------------------------------------------------

MEMBER_ORDERS = ("alphabetical", "declaration")


def extract_members(record: TypeRecord, order: str = "alphabetical") -> list[MemberRecord]:
    """Public instance members declared directly on ``record``.

    Inherited members are left to the base type's interface and adapter.
    """
    if order not in MEMBER_ORDERS:
        raise ValueError(f"Unknown member order: {order}")

    selected: list[MemberRecord] = []
    for member in record.members:
        if member.declared_by not in (None, record.full_name):
            continue
        if isinstance(member, MethodRecord):
            if member.visibility != PUBLIC or member.is_static:
                continue
            if member.is_special_name:
                continue
            selected.append(member)
        elif isinstance(member, PropertyRecord):
            if member.is_static:
                continue
            # Accessor artifacts surfaced next to the real property
            if member.name.startswith(("set_", "get_")):
                continue
            if not member.is_gettable:
                continue
            selected.append(member)

    if order == "alphabetical":
        selected.sort(key=lambda m: m.name)
    return selected


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------


def load_metadata_yaml(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    # Strip a leading "### NodeMetadata" style header line
    if text.startswith("###"):
        text = text[text.index("\n") + 1 :]
    return yaml.safe_load(text) or {}


def _type_ref(
    text: Any,
    index: TypeIndex,
    where: str,
    generic_parameters: frozenset[str] = frozenset(),
) -> TypeRef:
    if not isinstance(text, str) or not text.strip():
        raise MetadataError(f"{where}: expected a type name, got {text!r}")
    try:
        return parse_type_ref(text, index, generic_parameters)
    except TypeNameError as e:
        raise MetadataError(f"{where}: {e}") from e


def _parameters(data: Any, index: TypeIndex, where: str, generic: frozenset[str]) -> list[Parameter]:
    return [
        Parameter(
            name=str(p.get("name", "")),
            type=_type_ref(p.get("type"), index, f"{where} parameter {i}", generic),
        )
        for i, p in enumerate(data or [])
    ]


def _generic_parameters(data: Any, index: TypeIndex, where: str) -> list[GenericParameter]:
    items = data or []
    names = frozenset(
        g if isinstance(g, str) else str(g.get("name", "")) for g in items
    )
    result: list[GenericParameter] = []
    for g in items:
        if isinstance(g, str):
            result.append(GenericParameter(name=g))
            continue
        result.append(
            GenericParameter(
                name=str(g.get("name", "")),
                constraints=[
                    _type_ref(c, index, f"{where} constraint", names)
                    for c in g.get("constraints", [])
                ],
                reference_type=bool(g.get("class", False)),
                not_nullable_value_type=bool(g.get("struct", False)),
                default_constructor=bool(g.get("new", False)),
            )
        )
    return result


def _parse_member(
    data: dict[str, Any], index: TypeIndex, owner: str
) -> MethodRecord | PropertyRecord | OtherMemberRecord:
    kind = data.get("kind", "")
    name = str(data.get("name", ""))
    where = f"{owner}.{name}"
    declared_by = data.get("declared_by")

    if kind == "method":
        generic = _generic_parameters(data.get("generic_parameters"), index, where)
        generic_names = frozenset(g.name for g in generic)
        return MethodRecord(
            name=name,
            return_type=_type_ref(data.get("returns", "void"), index, where, generic_names),
            parameters=_parameters(data.get("parameters"), index, where, generic_names),
            generic_parameters=generic,
            visibility=data.get("visibility", PUBLIC),
            is_static=bool(data.get("static", False)),
            is_special_name=bool(data.get("special_name", False)),
            documentation=data.get("documentation"),
            declared_by=declared_by,
        )
    if kind == "property":
        return PropertyRecord(
            name=name,
            type=_type_ref(data.get("type"), index, where),
            getter=data.get("getter"),
            setter=data.get("setter"),
            is_static=bool(data.get("static", False)),
            documentation=data.get("documentation"),
            declared_by=declared_by,
        )
    if kind in MEMBER_KINDS:
        return OtherMemberRecord(kind=kind, name=name, declared_by=declared_by)
    raise MetadataError(f"{where}: unsupported member kind {kind!r}")


def _parse_type(data: dict[str, Any], index: TypeIndex) -> TypeRecord:
    name = data.get("name")
    if not name:
        raise MetadataError(f"Type entry without a name: {data!r}")
    namespace = data.get("namespace")
    declaring = data.get("declaring_type")
    record = TypeRecord(
        name=str(name),
        namespace=namespace,
        base=_type_ref(data["base"], index, str(name)) if data.get("base") else None,
        is_abstract=bool(data.get("abstract", False)),
        constructors=[
            ConstructorRecord(
                visibility=c.get("visibility", PUBLIC),
                parameters=_parameters(c.get("parameters"), index, f"{name} constructor", frozenset()),
            )
            for c in data.get("constructors", [])
        ],
        documentation=data.get("documentation"),
        declaring_type=_type_ref(declaring, index, str(name)) if declaring else None,
    )
    owner = record.full_name
    record.members = [_parse_member(m, index, owner) for m in data.get("members", [])]
    return record


def build_universe(data: dict[str, Any], default_root: str = "Godot.Node") -> MetadataUniverse:
    """Build a ``MetadataUniverse`` from a loaded metadata document.

    The document's own ``root`` entry wins over ``default_root``.
    """
    items = data.get("types", [])
    index = TypeIndex()

    # Register declared types first so dotted references resolve against them
    for item in items:
        namespace = item.get("namespace")
        if namespace and not item.get("declaring_type"):
            index.add(TypeRef(name=str(item.get("name", "")), namespace=namespace))

    root = _type_ref(data.get("root") or default_root, index, "root")
    universe = MetadataUniverse(root=root, index=index)
    for item in items:
        record = _parse_type(item, index)
        if record.full_name in universe.types:
            raise MetadataError(f"Duplicate type {record.full_name}")
        universe.types[record.full_name] = record
    return universe


def load_universe(path: Path, default_root: str = "Godot.Node") -> MetadataUniverse:
    return build_universe(load_metadata_yaml(path), default_root)

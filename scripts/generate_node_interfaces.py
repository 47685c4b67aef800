#!/usr/bin/env python3
"""
Generate C# capability interfaces and adapters for every engine node type.

Usage:
    python3 scripts/generate_node_interfaces.py [--metadata PATH] [--docs PATH]

Input:
    metadata/godot-nodes.yml   – node type metadata (types, bases, members)
    metadata/GodotSharp.xml    – optional XML documentation for those types

Output:
    generated/interfaces/I<Type>.cs      – interface with the type's own API
    generated/adapters/<Type>Adapter.cs  – adapter delegating to a wrapped node
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Union

import yaml

from node_metadata import (
    MEMBER_ORDERS,
    GenericParameter,
    MemberRecord,
    MetadataUniverse,
    MethodRecord,
    PropertyRecord,
    TypeRecord,
    extract_members,
    find_node_types,
    load_universe,
)
from type_names import Resolution, TypeNameResolver, sanitize_identifier
from xml_docs import attach_documentation, doc_comment, load_xml_documentation

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

REPO_ROOT = Path(__file__).resolve().parent.parent
METADATA_PATH = REPO_ROOT / "metadata" / "godot-nodes.yml"
DOCS_PATH = REPO_ROOT / "metadata" / "GodotSharp.xml"
INTERFACES_DIR = REPO_ROOT / "generated" / "interfaces"
ADAPTERS_DIR = REPO_ROOT / "generated" / "adapters"

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass
class GeneratorConfig:
    root_type: str = "Godot.Node"
    root_namespace: str = "Godot"
    output_namespace: str = "GodotNodeInterfaces"
    default_usings: list[str] = field(default_factory=lambda: ["Godot"])
    # Engine type names that clash with System types of the same name
    ambiguous_types: list[str] = field(default_factory=lambda: ["Range", "Environment"])
    ambiguous_prefix: str = "Godot"
    collection_namespace: str = "Godot.Collections"
    interfaces_dir: Path = INTERFACES_DIR
    adapters_dir: Path = ADAPTERS_DIR
    member_order: str = "alphabetical"  # or "declaration"
    emit_adapters: bool = True

    def resolver(self) -> TypeNameResolver:
        return TypeNameResolver(
            ambiguous_types=set(self.ambiguous_types),
            ambiguous_prefix=self.ambiguous_prefix,
            collection_namespace=self.collection_namespace,
        )


_PATH_KEYS = {"interfaces_dir", "adapters_dir"}


def load_config(path: Path) -> GeneratorConfig:
    """Read overrides for ``GeneratorConfig`` from a YAML file.

    Relative output directories are taken relative to the config file.
    """
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    known = {f.name for f in fields(GeneratorConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown config keys in {path}: {', '.join(unknown)}")
    for key in _PATH_KEYS & set(data):
        data[key] = (path.parent / data[key]).resolve()
    config = GeneratorConfig(**data)
    if config.member_order not in MEMBER_ORDERS:
        raise ValueError(f"member_order must be one of {MEMBER_ORDERS}, got {config.member_order!r}")
    return config


# ---------------------------------------------------------------------------
# Declarations (what gets generated, independent of formatting)
# ---------------------------------------------------------------------------


@dataclass
class ConstraintClause:
    parameter: str
    constraints: list[str]


@dataclass
class MethodDeclaration:
    name: str
    return_type: str
    parameters: list[tuple[str, str]]  # (type, name)
    type_parameters: list[str] = field(default_factory=list)
    constraints: list[ConstraintClause] = field(default_factory=list)
    documentation: str | None = None
    namespaces: frozenset[str] = frozenset()

    @property
    def generic_name(self) -> str:
        if not self.type_parameters:
            return self.name
        return f"{self.name}<{', '.join(self.type_parameters)}>"


@dataclass
class PropertyDeclaration:
    name: str
    type: str
    settable: bool
    documentation: str | None = None
    namespaces: frozenset[str] = frozenset()


MemberDeclaration = Union[MethodDeclaration, PropertyDeclaration]


@dataclass
class VerificationDeclaration:
    class_name: str
    wrapped_type: str
    interface_name: str


@dataclass
class InterfaceDeclaration:
    name: str
    base_interface: str | None
    usings: list[str]
    members: list[MemberDeclaration]
    documentation: str | None = None
    verification: VerificationDeclaration | None = None


@dataclass
class AdapterDeclaration:
    name: str
    interface_name: str
    wrapped_type: str
    base_adapter: str | None
    usings: list[str]
    members: list[MemberDeclaration]
    is_abstract: bool = False
    documentation: str | None = None


# ---------------------------------------------------------------------------
# Signature synthesis
# ---------------------------------------------------------------------------

# Flag constraints are collected across all of a method's type parameters and
# attached to this name, which only matches single-parameter generic methods.
CANONICAL_TYPE_PARAMETER = "T"


def constraint_clauses(
    generic_parameters: list[GenericParameter], resolver: TypeNameResolver
) -> tuple[list[ConstraintClause], frozenset[str]]:
    has_class = any(g.reference_type for g in generic_parameters)
    has_struct = any(g.not_nullable_value_type for g in generic_parameters)
    has_new = any(g.default_constructor for g in generic_parameters)

    clauses: list[ConstraintClause] = []
    if has_new:
        clauses.append(ConstraintClause(CANONICAL_TYPE_PARAMETER, ["new()"]))
    if has_struct:
        clauses.append(ConstraintClause(CANONICAL_TYPE_PARAMETER, ["struct"]))
    if has_class:
        clauses.append(ConstraintClause(CANONICAL_TYPE_PARAMETER, ["class"]))

    namespaces: set[str] = set()
    for g in generic_parameters:
        if not g.constraints:
            continue
        resolved = [resolver.resolve(c) for c in g.constraints]
        for r in resolved:
            namespaces |= r.namespaces
        clauses.append(ConstraintClause(g.name, [r.name for r in resolved]))
    return clauses, frozenset(namespaces)


def synthesize_method(method: MethodRecord, resolver: TypeNameResolver) -> MethodDeclaration:
    returns = resolver.resolve(method.return_type)
    namespaces = set(returns.namespaces)

    parameters: list[tuple[str, str]] = []
    for p in method.parameters:
        resolved = resolver.resolve(p.type)
        namespaces |= resolved.namespaces
        parameters.append((resolved.name, sanitize_identifier(p.name)))

    clauses, constraint_namespaces = constraint_clauses(method.generic_parameters, resolver)
    return MethodDeclaration(
        name=sanitize_identifier(method.name),
        return_type=returns.name,
        parameters=parameters,
        type_parameters=[g.name for g in method.generic_parameters],
        constraints=clauses,
        documentation=method.documentation,
        namespaces=frozenset(namespaces) | constraint_namespaces,
    )


def synthesize_property(prop: PropertyRecord, resolver: TypeNameResolver) -> PropertyDeclaration:
    resolved = resolver.resolve(prop.type)
    return PropertyDeclaration(
        name=sanitize_identifier(prop.name),
        type=resolved.name,
        settable=prop.is_settable,
        documentation=prop.documentation,
        namespaces=resolved.namespaces,
    )


def synthesize_member(member: MemberRecord, resolver: TypeNameResolver) -> MemberDeclaration:
    if isinstance(member, MethodRecord):
        return synthesize_method(member, resolver)
    return synthesize_property(member, resolver)


# ---------------------------------------------------------------------------
# Building declarations for one type
# ---------------------------------------------------------------------------


def interface_name(record: TypeRecord) -> str:
    return f"I{record.name}"


def adapter_name(record: TypeRecord) -> str:
    return f"{record.name}Adapter"


def _usings(config: GeneratorConfig, resolutions: list[frozenset[str]]) -> list[str]:
    touched: set[str] = set().union(*resolutions) if resolutions else set()
    usings = list(dict.fromkeys(config.default_usings))
    usings += sorted(touched - set(usings))
    return [u for u in usings if u != config.output_namespace]


def build_declarations(
    record: TypeRecord,
    universe: MetadataUniverse,
    config: GeneratorConfig,
) -> tuple[InterfaceDeclaration, AdapterDeclaration]:
    resolver = config.resolver()
    members = [
        synthesize_member(m, resolver)
        for m in extract_members(record, config.member_order)
    ]
    wrapped: Resolution = resolver.resolve(record.ref)
    usings = _usings(config, [wrapped.namespaces] + [m.namespaces for m in members])

    base = universe.lookup(record.base)
    extends_eligible_base = base is not None and universe.is_node_type(record.base)

    verification = None
    if record.can_be_instantiated:
        verification = VerificationDeclaration(
            class_name=f"{record.name}Node",
            wrapped_type=wrapped.name,
            interface_name=interface_name(record),
        )

    interface = InterfaceDeclaration(
        name=interface_name(record),
        base_interface=interface_name(base) if extends_eligible_base else None,
        usings=usings,
        members=members,
        documentation=record.documentation,
        verification=verification,
    )
    adapter = AdapterDeclaration(
        name=adapter_name(record),
        interface_name=interface_name(record),
        wrapped_type=wrapped.name,
        base_adapter=adapter_name(base) if extends_eligible_base else None,
        usings=usings,
        members=members,
        is_abstract=record.is_abstract,
        documentation=record.documentation,
    )
    return interface, adapter


# ---------------------------------------------------------------------------
# Printer
# ---------------------------------------------------------------------------

VERIFICATION_COMMENT = (
    "// Apply interface to a node implementation to make sure the\n"
    "// generated interface is correct.\n"
)


class CSharpPrinter:
    """Render declarations as C# source text."""

    def __init__(self, output_namespace: str, root_namespace: str, member_depth: int = 1):
        self.output_namespace = output_namespace
        self.root_namespace = root_namespace
        self.member_depth = member_depth

    @property
    def indent(self) -> str:
        return "  " * self.member_depth

    def _header(self, usings: list[str]) -> str:
        out = f"namespace {self.output_namespace};\n\n"
        for u in usings:
            out += f"using {u};\n"
        return out

    def _doc(self, documentation: str | None, depth: int) -> str:
        doc = doc_comment(documentation, depth, self.root_namespace)
        return doc + "\n" if doc else ""

    def method_signature(self, m: MethodDeclaration) -> str:
        params = ", ".join(f"{t} {n}" for t, n in m.parameters)
        where = "".join(
            f" where {c.parameter} : {', '.join(c.constraints)}" for c in m.constraints
        )
        return f"{m.return_type} {m.generic_name}({params}){where}"

    def interface_member(self, m: MemberDeclaration) -> str:
        out = self._doc(m.documentation, self.member_depth)
        if isinstance(m, MethodDeclaration):
            return out + f"{self.indent}{self.method_signature(m)};\n"
        accessors = "get; set;" if m.settable else "get;"
        return out + f"{self.indent}{m.type} {m.name} {{ {accessors} }}\n"

    def adapter_member(self, m: MemberDeclaration) -> str:
        out = self._doc(m.documentation, self.member_depth)
        if isinstance(m, MethodDeclaration):
            args = ", ".join(n for _, n in m.parameters)
            return out + (
                f"{self.indent}public {self.method_signature(m)} => "
                f"_node.{m.generic_name}({args});\n"
            )
        body = f"get => _node.{m.name};"
        if m.settable:
            body += f" set => _node.{m.name} = value;"
        return out + f"{self.indent}public {m.type} {m.name} {{ {body} }}\n"

    def print_interface(self, decl: InterfaceDeclaration) -> str:
        out = self._header(decl.usings) + "\n"
        if decl.verification is not None:
            v = decl.verification
            out += VERIFICATION_COMMENT
            out += f"internal partial class {v.class_name} : {v.wrapped_type}, {v.interface_name} {{ }}\n\n"
        out += self._doc(decl.documentation, 0)
        parent = f" : {decl.base_interface}" if decl.base_interface else ""
        out += f"public interface {decl.name}{parent} {{\n"
        out += "".join(self.interface_member(m) for m in decl.members)
        out += "}\n"
        return out

    def print_adapter(self, decl: AdapterDeclaration) -> str:
        out = self._header(decl.usings) + "\n"
        out += self._doc(decl.documentation, 0)
        modifier = "public abstract class" if decl.is_abstract else "public class"
        parents = f"{decl.base_adapter}, {decl.interface_name}" if decl.base_adapter else decl.interface_name
        base_call = " : base(node)" if decl.base_adapter else ""
        out += f"{modifier} {decl.name} : {parents} {{\n"
        out += f"{self.indent}private readonly {decl.wrapped_type} _node;\n\n"
        out += (
            f"{self.indent}public {decl.name}({decl.wrapped_type} node){base_call} "
            "{ _node = node; }\n"
        )
        if decl.members:
            out += "\n" + "".join(self.adapter_member(m) for m in decl.members)
        out += "}\n"
        return out


# ---------------------------------------------------------------------------
# Emission
# ---------------------------------------------------------------------------


@dataclass
class GeneratedArtifactPair:
    interface_path: Path
    interface_text: str
    adapter_path: Path | None = None
    adapter_text: str | None = None


class DirectorySink:
    """Writes generated files to disk, creating directories as needed."""

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run

    def write(self, path: Path, text: str) -> None:
        if self.dry_run:
            print(f"  Would write {path} ({len(text)} bytes)")
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        print(f"  Wrote {path} ({len(text)} bytes)")


def generate_artifacts(
    record: TypeRecord,
    universe: MetadataUniverse,
    config: GeneratorConfig,
    docs: dict[str, str] | None = None,
) -> GeneratedArtifactPair:
    if docs:
        attach_documentation(record, docs)
    interface, adapter = build_declarations(record, universe, config)
    printer = CSharpPrinter(config.output_namespace, config.root_namespace)

    pair = GeneratedArtifactPair(
        interface_path=Path(config.interfaces_dir) / f"{interface.name}.cs",
        interface_text=printer.print_interface(interface),
    )
    if config.emit_adapters:
        pair.adapter_path = Path(config.adapters_dir) / f"{adapter.name}.cs"
        pair.adapter_text = printer.print_adapter(adapter)
    return pair


def write_artifacts(pair: GeneratedArtifactPair, sink) -> None:
    sink.write(pair.interface_path, pair.interface_text)
    if pair.adapter_path is not None and pair.adapter_text is not None:
        sink.write(pair.adapter_path, pair.adapter_text)


def generate_all(
    universe: MetadataUniverse,
    config: GeneratorConfig,
    sink,
    docs: dict[str, str] | None = None,
    node_types: list[TypeRecord] | None = None,
) -> list[GeneratedArtifactPair]:
    if node_types is None:
        node_types = find_node_types(universe)
    pairs: list[GeneratedArtifactPair] = []
    for record in node_types:
        pair = generate_artifacts(record, universe, config, docs)
        write_artifacts(pair, sink)
        pairs.append(pair)
    return pairs


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Generate C# interfaces and adapters for engine node types"
    )
    parser.add_argument("--metadata", type=Path, default=METADATA_PATH,
                        help=f"Node metadata YAML/JSON (default: {METADATA_PATH})")
    parser.add_argument("--docs", type=Path, default=None,
                        help=f"XML documentation file (default: {DOCS_PATH} if present)")
    parser.add_argument("--config", type=Path, default=None,
                        help="YAML file overriding generator settings")
    parser.add_argument("--interfaces-dir", type=Path, default=None,
                        help="Output directory for interfaces")
    parser.add_argument("--adapters-dir", type=Path, default=None,
                        help="Output directory for adapters")
    parser.add_argument("--member-order", choices=MEMBER_ORDERS, default=None,
                        help="Member ordering inside generated files")
    parser.add_argument("--no-adapters", action="store_true",
                        help="Only generate interfaces")
    parser.add_argument("--dry-run", action="store_true",
                        help="Show what would be generated without writing files")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    config = load_config(args.config) if args.config else GeneratorConfig()
    if args.interfaces_dir:
        config.interfaces_dir = args.interfaces_dir
    if args.adapters_dir:
        config.adapters_dir = args.adapters_dir
    if args.member_order:
        config.member_order = args.member_order
    if args.no_adapters:
        config.emit_adapters = False

    if not args.metadata.exists():
        print(f"ERROR: {args.metadata} not found. Export the node metadata first.", file=sys.stderr)
        return 1

    print(f"Loading node metadata from {args.metadata} ...")
    universe = load_universe(args.metadata, config.root_type)
    print(f"  Loaded {len(universe.types)} types")

    docs: dict[str, str] = {}
    docs_path = args.docs or DOCS_PATH
    if docs_path.exists():
        docs = load_xml_documentation(docs_path)
        print(f"  Loaded {len(docs)} documentation entries")
    elif args.docs:
        print(f"ERROR: {args.docs} not found.", file=sys.stderr)
        return 1
    else:
        print(f"  WARNING: {DOCS_PATH} not found, generating without documentation")

    node_types = find_node_types(universe)
    print(f"  Found {len(node_types)} types extending {universe.root.full_name}")

    sink = DirectorySink(dry_run=args.dry_run)
    generate_all(universe, config, sink, docs, node_types)

    if args.dry_run:
        print("\n[DRY RUN] No files were actually written.")
    else:
        print("\nDone!")
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""
XML documentation: loading .NET doc files and turning entries into ``///``
comments for generated C# files.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from pathlib import Path

from node_metadata import MethodRecord, PropertyRecord, TypeRecord
from type_names import TypeRef

# ---------------------------------------------------------------------------
# Doc file loading
# ---------------------------------------------------------------------------


def load_xml_documentation(path: Path) -> dict[str, str]:
    """Read a compiler-generated documentation file.

    Returns {doc_id: inner_xml}, e.g. {"T:Godot.Node": "<summary>...</summary>"}.
    """
    root = ET.parse(path).getroot()
    docs: dict[str, str] = {}
    for member in root.iter("member"):
        doc_id = member.get("name")
        if not doc_id:
            continue
        inner = (member.text or "") + "".join(
            ET.tostring(child, encoding="unicode") for child in member
        )
        docs[doc_id] = inner
    return docs


# ---------------------------------------------------------------------------
# Documentation IDs
# ---------------------------------------------------------------------------


def _id_type_name(ref: TypeRef, method_generics: dict[str, int]) -> str:
    if ref.is_generic_parameter:
        if ref.name in method_generics:
            return f"``{method_generics[ref.name]}"
        return ref.name
    if ref.element_type is not None:
        return _id_type_name(ref.element_type, method_generics) + "[]"
    if ref.declaring_type is not None:
        name = f"{_id_type_name(ref.declaring_type, method_generics)}.{ref.name}"
    else:
        name = ref.full_name
    if ref.arguments:
        args = ",".join(_id_type_name(a, method_generics) for a in ref.arguments)
        name += "{" + args + "}"
    return name


def type_doc_id(record: TypeRecord) -> str:
    return f"T:{record.full_name}"


def property_doc_id(record: TypeRecord, prop: PropertyRecord) -> str:
    return f"P:{record.full_name}.{prop.name}"


def method_doc_id(record: TypeRecord, method: MethodRecord) -> str:
    generics = {g.name: i for i, g in enumerate(method.generic_parameters)}
    doc_id = f"M:{record.full_name}.{method.name}"
    if generics:
        doc_id += f"``{len(generics)}"
    if method.parameters:
        doc_id += "(" + ",".join(_id_type_name(p.type, generics) for p in method.parameters) + ")"
    return doc_id


def attach_documentation(record: TypeRecord, docs: dict[str, str]) -> None:
    """Fill in documentation missing from the metadata from a doc file."""
    if record.documentation is None:
        record.documentation = docs.get(type_doc_id(record))
    for member in record.members:
        if isinstance(member, MethodRecord) and member.documentation is None:
            member.documentation = docs.get(method_doc_id(record, member))
        elif isinstance(member, PropertyRecord) and member.documentation is None:
            member.documentation = docs.get(property_doc_id(record, member))


# ---------------------------------------------------------------------------
# Doc comment rendering
# ---------------------------------------------------------------------------


def cref_prefix_regex(root_namespace: str) -> re.Pattern[str]:
    # attr="T:Godot.Node3D" -> attr="Node3D"
    return re.compile(r'(\w+=")[A-Z]:' + re.escape(root_namespace) + r"\.")


def doc_comment(xml_doc: str | None, depth: int, root_namespace: str = "Godot") -> str:
    """Render documentation XML as ``///`` lines indented by ``depth`` levels."""
    if not xml_doc:
        return ""
    cref = cref_prefix_regex(root_namespace)
    indent = "  " * depth
    lines = (line.strip() for line in xml_doc.split("\n"))
    return "\n".join(
        f"{indent}/// {cref.sub(_keep_attribute, line)}" for line in lines if line
    )


def _keep_attribute(m: re.Match) -> str:  # type: ignore[type-arg]
    return m.group(1)

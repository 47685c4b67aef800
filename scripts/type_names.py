"""
Type references and C# type-name resolution for the node interface generator.

A ``TypeRef`` is the plain-data stand-in for a runtime type: it is parsed from
the metadata document (``Godot.Collections.Array`1<Godot.Node>``,
``Godot.Node+ProcessModeEnum``, ``int?``) and resolved back into the spelling
used inside generated C# files, together with the namespaces that spelling
needs imported.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Type references
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TypeRef:
    name: str
    namespace: str | None = None
    declaring_type: TypeRef | None = None
    arguments: tuple[TypeRef, ...] = ()
    element_type: TypeRef | None = None  # set for arrays
    is_generic_parameter: bool = False

    @property
    def is_array(self) -> bool:
        return self.element_type is not None

    @property
    def is_nullable(self) -> bool:
        return (
            self.name == "Nullable"
            and self.namespace == "System"
            and len(self.arguments) == 1
        )

    @property
    def full_name(self) -> str:
        """Dotted name without generic arguments (``Godot.Node.ProcessModeEnum``)."""
        if self.declaring_type is not None:
            return f"{self.declaring_type.full_name}.{self.name}"
        if self.namespace:
            return f"{self.namespace}.{self.name}"
        return self.name


def array_of(element: TypeRef) -> TypeRef:
    return TypeRef(name="", element_type=element)


def nullable_of(inner: TypeRef) -> TypeRef:
    return TypeRef(name="Nullable", namespace="System", arguments=(inner,))


def generic_parameter(name: str) -> TypeRef:
    return TypeRef(name=name, is_generic_parameter=True)


# ---------------------------------------------------------------------------
# Built-in aliases (the C# keyword spellings of System types)
# ---------------------------------------------------------------------------

TYPE_ALIASES: dict[str, str] = {
    "System.Boolean": "bool",
    "System.Byte": "byte",
    "System.SByte": "sbyte",
    "System.Char": "char",
    "System.Decimal": "decimal",
    "System.Double": "double",
    "System.Single": "float",
    "System.Int16": "short",
    "System.UInt16": "ushort",
    "System.Int32": "int",
    "System.UInt32": "uint",
    "System.Int64": "long",
    "System.UInt64": "ulong",
    "System.Object": "object",
    "System.String": "string",
    "System.Void": "void",
}

_ALIAS_TARGETS: dict[str, str] = {alias: full for full, alias in TYPE_ALIASES.items()}


# ---------------------------------------------------------------------------
# Identifier sanitizer
# ---------------------------------------------------------------------------

CSHARP_KEYWORDS = frozenset({
    "abstract", "as", "base", "bool", "break", "byte", "case", "catch",
    "char", "checked", "class", "const", "continue", "decimal", "default",
    "delegate", "do", "double", "else", "enum", "event", "explicit",
    "extern", "false", "finally", "fixed", "float", "for", "foreach", "goto",
    "if", "implicit", "in", "int", "interface", "internal", "is", "lock",
    "long", "namespace", "new", "null", "object", "operator", "out",
    "override", "params", "private", "protected", "public", "readonly",
    "ref", "return", "sbyte", "sealed", "short", "sizeof", "stackalloc",
    "static", "string", "struct", "switch", "this", "throw", "true", "try",
    "typeof", "uint", "ulong", "unchecked", "unsafe", "ushort", "using",
    "virtual", "void", "volatile", "while",
    # preprocessor-only keywords Roslyn also reports as keywords
    "__arglist", "__makeref", "__reftype", "__refvalue",
})

CSHARP_CONTEXTUAL_KEYWORDS = frozenset({
    "add", "alias", "allows", "and", "args", "ascending", "async", "await",
    "by", "descending", "dynamic", "equals", "extension", "file", "from",
    "get", "global", "group", "init", "into", "join", "let", "managed",
    "nameof", "nint", "not", "notnull", "nuint", "on", "or", "orderby",
    "partial", "record", "remove", "required", "scoped", "select", "set",
    "unmanaged", "value", "var", "when", "where", "with", "yield",
    # attribute targets
    "assembly", "field", "method", "module", "param", "property", "type",
    "typevar",
})

_IDENTIFIER_RE = re.compile(r"^[^\W\d]\w*$")


def is_valid_identifier(name: str) -> bool:
    return (
        bool(_IDENTIFIER_RE.match(name))
        and name not in CSHARP_KEYWORDS
        and name not in CSHARP_CONTEXTUAL_KEYWORDS
    )


def sanitize_identifier(name: str) -> str:
    """Escape ``name`` with ``@`` unless it is a plain, non-reserved identifier."""
    return name if is_valid_identifier(name) else f"@{name}"


# ---------------------------------------------------------------------------
# Type index (disambiguates namespaces from declaring types while parsing)
# ---------------------------------------------------------------------------


@dataclass
class TypeIndex:
    # top-level type name -> namespaces declaring a type with that name
    top_level: dict[str, set[str]] = field(default_factory=dict)

    def declares(self, namespace: str, name: str) -> bool:
        return namespace in self.top_level.get(name, ())

    def add(self, ref: TypeRef) -> None:
        if ref.element_type is not None:
            self.add(ref.element_type)
        for arg in ref.arguments:
            self.add(arg)
        if ref.is_generic_parameter or not ref.name:
            return
        if ref.declaring_type is not None:
            self.add(ref.declaring_type)
            return
        if ref.namespace:
            self.top_level.setdefault(ref.name, set()).add(ref.namespace)

    def namespace_of(self, top_level_name: str) -> str | None:
        candidates = self.top_level.get(top_level_name)
        if not candidates:
            return None
        return sorted(candidates)[0]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

_TOKEN_RE = re.compile(r"\s*(?:(@?[^\W\d]\w*(?:`\d+)?)|(\[\s*\])|([.+<>,?]))")


class TypeNameError(ValueError):
    """Raised for a type name the parser cannot read."""


def _tokenize(text: str) -> list[str]:
    tokens: list[str] = []
    pos = 0
    text = text.rstrip()
    while pos < len(text):
        m = _TOKEN_RE.match(text, pos)
        if not m:
            raise TypeNameError(f"Unexpected character in type name {text!r} at {pos}")
        tokens.append(m.group(1) or ("[]" if m.group(2) else m.group(3)))
        pos = m.end()
    return tokens


class _Parser:
    def __init__(
        self,
        text: str,
        index: TypeIndex | None,
        generic_parameters: frozenset[str],
    ) -> None:
        self.text = text
        self.tokens = _tokenize(text)
        self.pos = 0
        self.index = index
        self.generic_parameters = generic_parameters

    def peek(self) -> str | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def take(self, expected: str | None = None) -> str:
        tok = self.peek()
        if tok is None or (expected is not None and tok != expected):
            want = expected or "a token"
            raise TypeNameError(f"Expected {want} in type name {self.text!r}")
        self.pos += 1
        return tok

    def parse(self) -> TypeRef:
        ref = self.parse_type()
        if self.peek() is not None:
            raise TypeNameError(f"Trailing input in type name {self.text!r}")
        return ref

    def parse_type(self) -> TypeRef:
        # segments: (name, args, nested) where nested marks a '+' separator
        segments: list[tuple[str, tuple[TypeRef, ...], bool]] = []
        nested = False
        while True:
            tok = self.take()
            if not re.match(r"^@?[^\W\d]", tok):
                raise TypeNameError(f"Expected a name in type name {self.text!r}")
            name = tok.lstrip("@").split("`")[0]
            args: tuple[TypeRef, ...] = ()
            if self.peek() == "<":
                self.take("<")
                parsed = [self.parse_type()]
                while self.peek() == ",":
                    self.take(",")
                    parsed.append(self.parse_type())
                self.take(">")
                args = tuple(parsed)
            segments.append((name, args, nested))
            if self.peek() == ".":
                self.take(".")
                nested = False
            elif self.peek() == "+":
                self.take("+")
                nested = True
            else:
                break

        ref = self.build(segments)
        while self.peek() in ("?", "[]"):
            ref = nullable_of(ref) if self.take() == "?" else array_of(ref)
        return ref

    def build(self, segments: list[tuple[str, tuple[TypeRef, ...], bool]]) -> TypeRef:
        first_nested = next(
            (i for i, (_, _, nested) in enumerate(segments) if nested), None
        )
        if len(segments) == 1:
            name, args, _ = segments[0]
            if not args and name in self.generic_parameters:
                return generic_parameter(name)
            if not args and name in _ALIAS_TARGETS:
                namespace, _, simple = _ALIAS_TARGETS[name].rpartition(".")
                return TypeRef(name=simple, namespace=namespace)

        if first_nested is not None:
            # CLR notation: Namespace.Outer+Inner
            split = first_nested - 1
        else:
            split = self.namespace_split(segments)

        namespace = ".".join(name for name, _, _ in segments[:split]) or None
        if namespace is None and self.index is not None:
            namespace = self.index.namespace_of(segments[0][0])
        name, args, _ = segments[split]
        ref = TypeRef(name=name, namespace=namespace, arguments=args)
        for name, args, _ in segments[split + 1:]:
            ref = TypeRef(name=name, declaring_type=ref, arguments=args)
        if self.index is not None:
            self.index.add(ref)
        return ref

    def namespace_split(self, segments: list[tuple[str, tuple[TypeRef, ...], bool]]) -> int:
        """Number of leading segments forming the namespace."""
        if len(segments) == 1:
            return 0
        if self.index is not None:
            # Longest prefix that is known to declare the following segment
            for k in range(len(segments) - 1, 0, -1):
                if any(args for _, args, _ in segments[:k]):
                    continue
                prefix = ".".join(name for name, _, _ in segments[:k])
                if self.index.declares(prefix, segments[k][0]):
                    return k
            # Printed output drops imported namespaces: "Outer.Inner"
            if self.index.namespace_of(segments[0][0]) is not None:
                return 0
        # Fall back to the CLR full-name convention
        return len(segments) - 1


def parse_type_ref(
    text: str,
    index: TypeIndex | None = None,
    generic_parameters: frozenset[str] | set[str] = frozenset(),
) -> TypeRef:
    """Parse a type name from metadata or from generated output.

    Dots separate namespace segments and nested types; the ``index`` decides
    where the namespace ends. ``+`` always starts a nested type. Names listed
    in ``generic_parameters`` become open generic parameters.
    """
    return _Parser(text, index, frozenset(generic_parameters)).parse()


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Resolution:
    name: str
    namespaces: frozenset[str] = frozenset()


class TypeNameResolver:
    """Render ``TypeRef``s the way generated files spell them.

    ``ambiguous_types`` are simple names that clash between the engine and the
    base class library; they are always written as ``<ambiguous_prefix>.Name``.
    Types from ``collection_namespace`` are written fully qualified so they do
    not collide with ``System.Collections.Generic``.
    """

    def __init__(
        self,
        ambiguous_types: frozenset[str] | set[str] = frozenset({"Range", "Environment"}),
        ambiguous_prefix: str = "Godot",
        collection_namespace: str = "Godot.Collections",
    ) -> None:
        self.ambiguous_types = frozenset(ambiguous_types)
        self.ambiguous_prefix = ambiguous_prefix
        self.collection_namespace = collection_namespace

    def resolve(self, ref: TypeRef) -> Resolution:
        if ref.is_generic_parameter:
            return Resolution(ref.name)

        body = self._name_or_alias(ref)
        namespaces = set(body.namespaces)
        if ref.namespace:
            namespaces.add(ref.namespace)

        if ref.name in self.ambiguous_types and not ref.arguments:
            name = f"{self.ambiguous_prefix}.{body.name}"
        elif ref.declaring_type is not None:
            declaring = self.resolve(ref.declaring_type)
            namespaces |= declaring.namespaces
            name = f"{declaring.name}.{body.name}"
        elif ref.namespace == self.collection_namespace:
            name = f"{self.collection_namespace}.{body.name}"
        else:
            name = body.name
        return Resolution(name, frozenset(namespaces))

    def _name_or_alias(self, ref: TypeRef) -> Resolution:
        if ref.is_nullable:
            inner = self.resolve(ref.arguments[0])
            return Resolution(f"{inner.name}?", inner.namespaces)

        if ref.element_type is not None:
            element = self.resolve(ref.element_type)
            return Resolution(f"{element.name}[]", element.namespaces)

        if ref.arguments:
            args = [self.resolve(a) for a in ref.arguments]
            namespaces = frozenset().union(*(a.namespaces for a in args))
            return Resolution(
                f"{ref.name}<{','.join(a.name for a in args)}>", namespaces
            )

        alias = TYPE_ALIASES.get(ref.full_name)
        if alias is not None:
            return Resolution(alias)
        return Resolution(ref.name)

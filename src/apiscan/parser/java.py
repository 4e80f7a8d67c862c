"""Java source parser built on tree-sitter.

Turns a ``.java`` file into a small read-only model (types, fields,
methods, annotations, Javadoc) that the scanner and the DTO resolver
work from. No symbol resolution happens here: type references stay as
the text written in the source.
"""

import logging
import re
from pathlib import Path

import tree_sitter_java as tsjava
from pydantic import BaseModel
from tree_sitter import Language, Node, Parser

logger = logging.getLogger(__name__)

JAVA_LANGUAGE = Language(tsjava.language())

TYPE_DECLARATIONS = {
    "class_declaration": "class",
    "interface_declaration": "interface",
    "enum_declaration": "enum",
    "record_declaration": "record",
}
_ANNOTATION_NODES = ("annotation", "marker_annotation")
_WHITESPACE = re.compile(r"\s+")


class JavaSyntaxError(Exception):
    """Raised when a Java file cannot be read or parsed cleanly."""


class Annotation(BaseModel):
    """An annotation usage. Values are raw expression texts."""

    name: str  # simple name, e.g. GetMapping
    members: dict[str, str | list[str]] = {}  # single-member form stored under "value"

    def get(self, key: str) -> str | list[str] | None:
        return self.members.get(key)


class JavaField(BaseModel):
    name: str
    type: str
    modifiers: list[str] = []
    annotations: list[Annotation] = []
    doc: str = ""
    initializer: str | None = None


class JavaParameter(BaseModel):
    name: str
    type: str
    annotations: list[Annotation] = []


class JavaMethod(BaseModel):
    name: str
    return_type: str
    parameters: list[JavaParameter] = []
    annotations: list[Annotation] = []
    modifiers: list[str] = []
    doc: str = ""

    @property
    def is_override(self) -> bool:
        return any(a.name == "Override" for a in self.annotations)


class JavaType(BaseModel):
    """A class, interface, enum or record declaration."""

    name: str
    kind: str  # class / interface / enum / record
    modifiers: list[str] = []
    annotations: list[Annotation] = []
    superclass: str | None = None
    interfaces: list[str] = []
    fields: list[JavaField] = []
    methods: list[JavaMethod] = []
    enum_constants: list[str] = []
    record_components: list[JavaField] = []
    doc: str = ""

    def annotation(self, name: str) -> Annotation | None:
        return next((a for a in self.annotations if a.name == name), None)

    def has_annotation(self, *names: str) -> bool:
        return any(a.name in names for a in self.annotations)


class CompilationUnit(BaseModel):
    """The parse of one source file, with nested types flattened."""

    path: str
    package: str = ""
    imports: list[str] = []
    types: list[JavaType] = []

    def find_type(self, name: str) -> JavaType | None:
        return next((t for t in self.types if t.name == name), None)


def parse_java_file(path: Path) -> CompilationUnit:
    """Parse a Java file from disk."""
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise JavaSyntaxError(f"cannot read {path}: {e}") from e
    return parse_java_source(text, str(path))


def parse_java_source(text: str, path: str = "<string>") -> CompilationUnit:
    """Parse Java source text into a CompilationUnit.

    Raises JavaSyntaxError if tree-sitter reports any error node.
    """
    source = text.encode("utf-8")
    tree = Parser(JAVA_LANGUAGE).parse(source)
    root = tree.root_node
    if root.has_error:
        line = _first_error_line(root)
        raise JavaSyntaxError(f"syntax error near line {line}")

    reader = _Reader(source)
    unit = CompilationUnit(path=path)
    for child in root.named_children:
        if child.type == "package_declaration":
            name = next((c for c in child.named_children if c.type in ("scoped_identifier", "identifier")), None)
            if name is not None:
                unit.package = reader.text(name)
        elif child.type == "import_declaration":
            unit.imports.append(reader.text(child).removeprefix("import").rstrip(";").strip())
        elif child.type in TYPE_DECLARATIONS:
            unit.types.extend(reader.read_type(child))
    logger.debug("Parsed %s: %d type(s)", path, len(unit.types))
    return unit


def simple_name(type_text: str) -> str:
    """Strip generics, array brackets and package qualification: java.util.List<X>[] -> List."""
    base = type_text.split("<", 1)[0].replace("[]", "").replace("...", "").strip()
    return base.rsplit(".", 1)[-1]


def type_arguments(type_text: str) -> list[str]:
    """Top-level generic arguments: Map<String,List<X>> -> ['String', 'List<X>']."""
    start = type_text.find("<")
    end = type_text.rfind(">")
    if start < 0 or end < start:
        return []
    args, depth, current = [], 0, []
    for ch in type_text[start + 1:end]:
        if ch == "<":
            depth += 1
        elif ch == ">":
            depth -= 1
        elif ch == "," and depth == 0:
            args.append("".join(current).strip())
            current = []
            continue
        current.append(ch)
    args.append("".join(current).strip())
    return [a for a in args if a]


def _first_error_line(node: Node) -> int:
    if node.type == "ERROR" or node.is_missing:
        return node.start_point[0] + 1
    for child in node.children:
        if child.has_error or child.is_missing:
            return _first_error_line(child)
    return node.start_point[0] + 1


class _Reader:
    """Walks tree-sitter nodes of one file and builds the models."""

    def __init__(self, source: bytes):
        self.source = source

    def text(self, node: Node) -> str:
        return self.source[node.start_byte:node.end_byte].decode("utf-8")

    def type_text(self, node: Node) -> str:
        if node.type == "annotated_type":
            node = node.named_children[-1]
        return _WHITESPACE.sub("", self.text(node))

    def read_type(self, node: Node) -> list[JavaType]:
        """Read a type declaration plus every type nested in its body."""
        modifiers, annotations = self.read_modifiers(node)
        jtype = JavaType(
            name=self.text(node.child_by_field_name("name")),
            kind=TYPE_DECLARATIONS[node.type],
            modifiers=modifiers,
            annotations=annotations,
            doc=self.javadoc(node),
        )

        superclass = node.child_by_field_name("superclass")
        if superclass is not None and superclass.named_children:
            jtype.superclass = simple_name(self.type_text(superclass.named_children[-1]))

        for child in node.named_children:
            if child.type in ("super_interfaces", "extends_interfaces"):
                for type_list in child.named_children:
                    jtype.interfaces.extend(simple_name(self.type_text(t)) for t in type_list.named_children)

        if node.type == "record_declaration":
            params = node.child_by_field_name("parameters")
            for param in params.named_children if params is not None else []:
                if param.type == "formal_parameter":
                    p = self.read_parameter(param)
                    jtype.record_components.append(JavaField(name=p.name, type=p.type, annotations=p.annotations))

        nested = []
        body = node.child_by_field_name("body")
        if body is not None:
            nested = self.read_body(body, jtype)
        return [jtype, *nested]

    def read_body(self, body: Node, jtype: JavaType) -> list[JavaType]:
        nested = []
        for member in body.named_children:
            kind = member.type
            if kind == "enum_constant":
                jtype.enum_constants.append(self.text(member.child_by_field_name("name")))
            elif kind == "enum_body_declarations":
                nested.extend(self.read_body(member, jtype))
            elif kind in ("field_declaration", "constant_declaration"):
                jtype.fields.extend(self.read_fields(member))
            elif kind == "method_declaration":
                jtype.methods.append(self.read_method(member))
            elif kind in TYPE_DECLARATIONS:
                nested.extend(self.read_type(member))
        return nested

    def read_fields(self, node: Node) -> list[JavaField]:
        modifiers, annotations = self.read_modifiers(node)
        type_text = self.type_text(node.child_by_field_name("type"))
        doc = self.javadoc(node)
        fields = []
        for declarator in node.children_by_field_name("declarator"):
            value = declarator.child_by_field_name("value")
            dims = declarator.child_by_field_name("dimensions")
            fields.append(JavaField(
                name=self.text(declarator.child_by_field_name("name")),
                type=type_text + (self.type_text(dims) if dims is not None else ""),
                modifiers=modifiers,
                annotations=annotations,
                doc=doc,
                initializer=self.text(value) if value is not None else None,
            ))
        return fields

    def read_method(self, node: Node) -> JavaMethod:
        modifiers, annotations = self.read_modifiers(node)
        params = node.child_by_field_name("parameters")
        parameters = [
            self.read_parameter(p)
            for p in (params.named_children if params is not None else [])
            if p.type in ("formal_parameter", "spread_parameter")
        ]
        return JavaMethod(
            name=self.text(node.child_by_field_name("name")),
            return_type=self.type_text(node.child_by_field_name("type")),
            parameters=parameters,
            annotations=annotations,
            modifiers=modifiers,
            doc=self.javadoc(node),
        )

    def read_parameter(self, node: Node) -> JavaParameter:
        _, annotations = self.read_modifiers(node)
        if node.type == "spread_parameter":
            type_node = next(c for c in node.named_children if c.type not in ("modifiers", "variable_declarator"))
            declarator = next(c for c in node.named_children if c.type == "variable_declarator")
            return JavaParameter(
                name=self.text(declarator.child_by_field_name("name")),
                type=self.type_text(type_node) + "[]",
                annotations=annotations,
            )
        dims = node.child_by_field_name("dimensions")
        return JavaParameter(
            name=self.text(node.child_by_field_name("name")),
            type=self.type_text(node.child_by_field_name("type")) + (self.type_text(dims) if dims is not None else ""),
            annotations=annotations,
        )

    def read_modifiers(self, node: Node) -> tuple[list[str], list[Annotation]]:
        modifiers, annotations = [], []
        mods = next((c for c in node.children if c.type == "modifiers"), None)
        if mods is None:
            return modifiers, annotations
        for child in mods.children:
            if child.type in _ANNOTATION_NODES:
                annotations.append(self.read_annotation(child))
            elif not child.is_named:
                modifiers.append(child.type)
        return modifiers, annotations

    def read_annotation(self, node: Node) -> Annotation:
        name = simple_name(self.text(node.child_by_field_name("name")))
        members: dict[str, str | list[str]] = {}
        args = node.child_by_field_name("arguments")
        if args is not None:
            for arg in args.named_children:
                if arg.type == "element_value_pair":
                    key = self.text(arg.child_by_field_name("key"))
                    members[key] = self.element_value(arg.child_by_field_name("value"))
                elif arg.type not in ("line_comment", "block_comment"):
                    members["value"] = self.element_value(arg)
        return Annotation(name=name, members=members)

    def element_value(self, node: Node) -> str | list[str]:
        if node.type == "element_value_array_initializer":
            return [
                self.text(c) for c in node.named_children
                if c.type not in ("line_comment", "block_comment")
            ]
        return self.text(node)

    def javadoc(self, node: Node) -> str:
        """Return the cleaned Javadoc block directly preceding a declaration."""
        prev = node.prev_named_sibling
        if prev is None or prev.type != "block_comment":
            return ""
        raw = self.text(prev)
        if not raw.startswith("/**"):
            return ""
        lines = []
        for line in raw[3:-2].splitlines():
            line = line.strip().lstrip("*").strip()
            if line.startswith("@"):
                break
            if line:
                lines.append(line)
        return " ".join(lines)

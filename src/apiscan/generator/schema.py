"""DTO schema resolution.

Given a Java type name, find its source file somewhere in a (possibly
multi-module) project, and describe its fields as a structural schema.
Schemas live in a cache keyed by sanitized name; a schema never embeds
another DTO, it points at it by name. That keeps cyclic type graphs
finite: the closure is expanded round by round in
``get_all_resolved_schemas``.
"""

import logging
from pathlib import Path

from pydantic import BaseModel

from apiscan.parser import annotations as ann
from apiscan.parser.java import JavaField, JavaSyntaxError, JavaType, parse_java_file, simple_name, type_arguments

from .naming import sanitize_schema_name

logger = logging.getLogger(__name__)

REF_PREFIX = "#/components/schemas/"

# Per-module source trees, generated code first.
SEARCH_PATHS = (
    "target/generated-sources/openapi/src/main/java",
    "build/generated-sources/openapi/src/main/java",
    "src/main/java",
    "target/generated-sources/annotations",
    "build/generated/sources/annotationProcessor/java/main",
)
BUILD_FILES = ("pom.xml", "build.gradle", "build.gradle.kts", "settings.gradle", "settings.gradle.kts")
MODULE_NAME_HINTS = ("model", "api", "dto", "entity", "service", "core")

# Highest priority first: API/DTO layer, generated, domain, then JPA entities.
PACKAGE_PRIORITIES = (
    "sm-shop-model",
    "shop.model",
    "api.model",
    "rest.model",
    "dto",
    "dtos",
    "generated",
    "openapi",
    "notification.domain",
    "account.domain",
    "statistics.domain",
    ".domain",
    "sm-core-model",
    "core.model",
    "entity",
    "entities",
    "persistence",
)

PRIMITIVE_TYPES: dict[str, tuple[str, str | None]] = {
    "String": ("string", None),
    "CharSequence": ("string", None),
    "char": ("string", None),
    "Character": ("string", None),
    "int": ("integer", "int32"),
    "Integer": ("integer", "int32"),
    "short": ("integer", "int32"),
    "Short": ("integer", "int32"),
    "byte": ("integer", "int32"),
    "Byte": ("integer", "int32"),
    "long": ("integer", "int64"),
    "Long": ("integer", "int64"),
    "BigInteger": ("integer", None),
    "float": ("number", "float"),
    "Float": ("number", "float"),
    "double": ("number", "double"),
    "Double": ("number", "double"),
    "BigDecimal": ("number", None),
    "boolean": ("boolean", None),
    "Boolean": ("boolean", None),
    "UUID": ("string", "uuid"),
    "URI": ("string", "uri"),
    "URL": ("string", "uri"),
    "Date": ("string", "date-time"),
    "LocalDate": ("string", "date-time"),
    "LocalDateTime": ("string", "date-time"),
    "Instant": ("string", "date-time"),
    "OffsetDateTime": ("string", "date-time"),
    "ZonedDateTime": ("string", "date-time"),
}
COLLECTION_TYPES = {"List", "Set", "Collection", "Iterable", "ArrayList", "LinkedList", "HashSet", "LinkedHashSet", "TreeSet"}
MAP_TYPES = {"Map", "HashMap", "LinkedHashMap", "TreeMap"}
DTO_CLASS_SUFFIXES = ("Dto", "DTO", "Response", "Request", "Entity", "Model")

IGNORE_ANNOTATIONS = {"ApiIgnore", "JsonIgnore", "Hidden"}
REQUIRED_ANNOTATIONS = {"NotNull", "NotEmpty", "NotBlank"}
GETTER_ANNOTATIONS = {"Data", "Getter", "Value"}
MAX_INHERITANCE_DEPTH = 10


class ResolvedSchema(BaseModel):
    """One node of the schema graph. DTO edges are always references."""

    kind: str  # primitive / object / array / reference
    type: str | None = None
    format: str | None = None
    description: str | None = None
    properties: dict[str, "ResolvedSchema"] = {}
    required: list[str] = []
    items: "ResolvedSchema | None" = None
    additional_properties: "ResolvedSchema | None" = None
    ref: str | None = None  # sanitized component name
    enum: list[str] = []

    @classmethod
    def primitive(cls, type_: str, format_: str | None = None) -> "ResolvedSchema":
        return cls(kind="primitive", type=type_, format=format_)

    @classmethod
    def reference(cls, name: str) -> "ResolvedSchema":
        return cls(kind="reference", ref=sanitize_schema_name(name))

    @classmethod
    def array_of(cls, items: "ResolvedSchema") -> "ResolvedSchema":
        return cls(kind="array", type="array", items=items)

    @classmethod
    def generic_object(cls, description: str | None = None) -> "ResolvedSchema":
        return cls(kind="object", type="object", description=description)

    def references(self) -> set[str]:
        """Names of every component this schema points at, at any nesting level."""
        found = set()
        if self.ref:
            found.add(self.ref)
        for child in [*self.properties.values(), self.items, self.additional_properties]:
            if child is not None:
                found |= child.references()
        return found

    def to_openapi(self) -> dict:
        if self.kind == "reference":
            return {"$ref": REF_PREFIX + self.ref}
        doc: dict = {}
        if self.type:
            doc["type"] = self.type
        if self.format:
            doc["format"] = self.format
        if self.description:
            doc["description"] = self.description
        if self.enum:
            doc["enum"] = list(self.enum)
        if self.properties:
            doc["properties"] = {name: prop.to_openapi() for name, prop in self.properties.items()}
        if self.required:
            doc["required"] = list(self.required)
        if self.items is not None:
            doc["items"] = self.items.to_openapi()
        if self.additional_properties is not None:
            doc["additionalProperties"] = self.additional_properties.to_openapi()
        return doc


def placeholder_schema(name: str) -> ResolvedSchema:
    """Stand-in for a DTO whose source is missing or unparsable."""
    return ResolvedSchema(
        kind="object",
        type="object",
        description=f"DTO class '{name}' - Schema not available (generated source may be missing)",
        properties={
            "_schemaPlaceholder": ResolvedSchema(
                kind="primitive",
                type="string",
                description=(
                    "This DTO schema is not available. "
                    f"The class '{name}' may be generated code that needs to be built first."
                ),
            ),
        },
    )


def is_placeholder(schema: ResolvedSchema) -> bool:
    return "_schemaPlaceholder" in schema.properties


def prioritize_matches(matches: list[Path], base: Path | None = None) -> Path:
    """Pick the DTO-layer occurrence among several files declaring the same type.

    Package tokens are matched against each path relative to ``base`` so
    that directory names above the project never count.
    """
    for token in PACKAGE_PRIORITIES:
        for match in matches:
            if token in _relative_posix(match, base):
                logger.info("Selected %s (package '%s') over %d other match(es)", match, token, len(matches) - 1)
                return match
    logger.debug("No priority package among %s, using first match", matches)
    return matches[0]


def _relative_posix(path: Path, base: Path | None) -> str:
    if base is not None and path.is_relative_to(base):
        return path.relative_to(base).as_posix()
    return path.as_posix()


class DtoSchemaResolver:
    """Resolves Java type names to schemas for one scan.

    Holds the schema cache, the in-flight set guarding reentrant
    resolution, and memoized source lookups. Create one per scan.
    """

    def __init__(self, project_root: Path):
        self.project_root = Path(project_root)
        self._schemas: dict[str, ResolvedSchema] = {}
        self._resolving: set[str] = set()
        self._dto_classes: dict[str, bool] = {}
        self._sources: dict[str, Path | None] = {}
        self._index: dict[Path, dict[str, list[Path]]] = {}
        self._types: dict[tuple[Path, str], JavaType | None] = {}

    @property
    def cached_schema_count(self) -> int:
        return len(self._schemas)

    @property
    def schemas(self) -> dict[str, ResolvedSchema]:
        return dict(self._schemas)

    def clear_cache(self) -> None:
        self._schemas.clear()

    def resolve_schema(self, type_name: str) -> ResolvedSchema:
        """Return the schema for a type, resolving and caching it on first use.

        Never raises: a type that cannot be found or parsed gets a
        placeholder schema, cached like any other result.
        """
        bare = simple_name(type_name or "")
        if not bare:
            return placeholder_schema("Unknown")
        key = sanitize_schema_name(bare)
        cached = self._schemas.get(key)
        if cached is not None:
            return cached
        if key in self._resolving:
            # Reentrant call for a type still being resolved; not cached so
            # the outer call can install the full schema.
            logger.debug("Circular reference to '%s', using placeholder", key)
            return placeholder_schema(key)

        self._resolving.add(key)
        try:
            schema = None
            source = self.find_source(bare)
            if source is not None:
                jtype = self._load_type(source, bare)
                if jtype is not None:
                    schema = self._type_schema(jtype, source)
            if schema is None:
                logger.debug("Could not find or parse DTO class '%s', using placeholder", bare)
                schema = placeholder_schema(key)
            self._schemas[key] = schema
            return schema
        finally:
            self._resolving.discard(key)

    def get_all_resolved_schemas(self, max_depth: int = 7) -> dict[str, ResolvedSchema]:
        """Cached schemas plus everything they reference, up to max_depth rounds."""
        result = dict(self._schemas)
        processed: set[str] = set()
        for depth in range(max_depth):
            pending = set()
            for schema in result.values():
                pending |= schema.references()
            pending -= processed
            if not pending:
                break
            for name in sorted(pending):
                if name not in result:
                    logger.debug("Resolving referenced schema at depth %d: %s", depth, name)
                    result[name] = self.resolve_schema(name)
                processed.add(name)
        logger.debug("Resolved %d total schemas with max depth %d", len(result), max_depth)
        return result

    def is_dto_class(self, name: str) -> bool:
        """Whether a field type should become a reference to its own schema."""
        if name in self._dto_classes:
            return self._dto_classes[name]
        if sanitize_schema_name(name) in self._schemas or name.endswith(DTO_CLASS_SUFFIXES):
            found = True
        else:
            found = self.find_source(name) is not None
        self._dto_classes[name] = found
        return found

    def field_schema(self, type_text: str) -> ResolvedSchema:
        """Map a declared field type to a schema; DTOs become references."""
        if type_text == "byte[]":
            return ResolvedSchema.primitive("string", "byte")
        if type_text.endswith("[]"):
            return ResolvedSchema.array_of(self.field_schema(type_text[:-2]))

        name = simple_name(type_text)
        args = type_arguments(type_text)
        if name in PRIMITIVE_TYPES:
            return ResolvedSchema.primitive(*PRIMITIVE_TYPES[name])
        if name in COLLECTION_TYPES:
            return ResolvedSchema.array_of(self.field_schema(args[0] if args else "Object"))
        if name in MAP_TYPES:
            schema = ResolvedSchema.generic_object()
            schema.additional_properties = self.field_schema(args[1] if len(args) > 1 else "Object")
            return schema
        if name == "Optional" and args:
            return self.field_schema(args[0])
        if name and name not in ("Object", "?") and self.is_dto_class(name):
            return ResolvedSchema.reference(name)
        return ResolvedSchema.generic_object(f"Object of type: {type_text}")

    def find_source(self, name: str) -> Path | None:
        """Locate ``<name>.java`` in this module, its sub-modules or sibling modules."""
        if name in self._sources:
            return self._sources[name]

        matches = []
        for module in self._candidate_modules():
            found = self._find_in_module(module, name)
            if found is not None and found not in matches:
                matches.append(found)

        if not matches:
            source = None
        elif len(matches) > 1:
            logger.info("Found %d matches for '%s', applying prioritization", len(matches), name)
            source = prioritize_matches(matches, self.project_root.parent)
        else:
            source = matches[0]
        self._sources[name] = source
        return source

    def _candidate_modules(self) -> list[Path]:
        root = self.project_root
        modules = [root]
        modules.extend(_module_dirs(root))
        parent = root.parent
        if parent != root:
            modules.extend(d for d in _module_dirs(parent) if d != root)
        return modules

    def _find_in_module(self, module: Path, name: str) -> Path | None:
        for search_path in SEARCH_PATHS:
            base = module / search_path
            if not base.is_dir():
                continue
            found = self._source_index(base).get(name)
            if found:
                return found[0] if len(found) == 1 else prioritize_matches(found, base)
        return None

    def _source_index(self, base: Path) -> dict[str, list[Path]]:
        if base not in self._index:
            index: dict[str, list[Path]] = {}
            for path in sorted(base.rglob("*.java")):
                index.setdefault(path.stem, []).append(path)
            self._index[base] = index
        return self._index[base]

    def _load_type(self, source: Path, name: str) -> JavaType | None:
        key = (source, name)
        if key not in self._types:
            try:
                unit = parse_java_file(source)
            except JavaSyntaxError as e:
                logger.debug("Error parsing DTO file %s: %s", source, e)
                self._types[key] = None
            else:
                self._types[key] = unit.find_type(name)
        return self._types[key]

    def _type_schema(self, jtype: JavaType, source: Path) -> ResolvedSchema:
        description = _class_description(jtype, source)
        if jtype.kind == "enum":
            return ResolvedSchema(kind="primitive", type="string", description=description, enum=jtype.enum_constants)

        schema = ResolvedSchema(kind="object", type="object", description=description)
        self._collect_inherited(jtype, schema, {jtype.name})
        self._collect_fields(jtype, schema)
        logger.debug("Parsed %d properties for class '%s'", len(schema.properties), jtype.name)
        return schema

    def _collect_inherited(self, jtype: JavaType, schema: ResolvedSchema, visited: set[str]) -> None:
        """Merge superclass fields, farthest ancestor first."""
        parent_name = jtype.superclass
        if not parent_name or parent_name in visited or len(visited) > MAX_INHERITANCE_DEPTH:
            return
        visited.add(parent_name)
        source = self.find_source(parent_name)
        parent = self._load_type(source, parent_name) if source is not None else None
        if parent is None:
            logger.debug("Could not find parent class file for: %s", parent_name)
            return
        self._collect_inherited(parent, schema, visited)
        self._collect_fields(parent, schema)

    def _collect_fields(self, jtype: JavaType, schema: ResolvedSchema) -> None:
        fields = jtype.record_components if jtype.kind == "record" else [
            f for f in jtype.fields if _should_include(f, jtype)
        ]
        for field in fields:
            prop = self.field_schema(field.type)
            if prop.kind != "reference" and not prop.description:
                prop.description = _field_description(field)
            schema.properties[field.name] = prop
            if any(a.name in REQUIRED_ANNOTATIONS for a in field.annotations) and field.name not in schema.required:
                schema.required.append(field.name)


def _module_dirs(parent: Path) -> list[Path]:
    if not parent.is_dir():
        return []
    return [d for d in sorted(parent.iterdir()) if d.is_dir() and not d.name.startswith(".") and _looks_like_module(d)]


def _looks_like_module(directory: Path) -> bool:
    if any((directory / name).exists() for name in BUILD_FILES):
        return True
    if (directory / "src" / "main" / "java").is_dir():
        return True
    return any(hint in directory.name for hint in MODULE_NAME_HINTS)


def _should_include(field: JavaField, owner: JavaType) -> bool:
    if any(a.name in IGNORE_ANNOTATIONS for a in field.annotations):
        return False
    if "static" in field.modifiers or field.name == "serialVersionUID":
        return False
    if field.name.startswith("DEFAULT_") or "COLLATOR" in field.name:
        return False
    if "public" in field.modifiers:
        return True
    if owner.has_annotation(*GETTER_ANNOTATIONS) or any(a.name == "Getter" for a in field.annotations):
        return True
    capitalized = field.name[:1].upper() + field.name[1:]
    accessors = {f"get{capitalized}", f"is{capitalized}"}
    return any(m.name in accessors for m in owner.methods)


def _schema_description(annotations: list[ann.Annotation]) -> str | None:
    for annotation in annotations:
        if annotation.name in ("Schema", "ApiModel"):
            value = ann.first_value(annotation, "description")
        elif annotation.name == "ApiModelProperty":
            value = ann.first_value(annotation, "value", "notes")
        else:
            continue
        if value:
            return value
    return None


def _class_description(jtype: JavaType, source: Path) -> str:
    described = _schema_description(jtype.annotations)
    if described:
        return described
    if jtype.doc:
        return jtype.doc
    if "generated-sources" in source.as_posix() or "target/generated" in source.as_posix():
        return f"Generated DTO class: {jtype.name}"
    return f"DTO class: {jtype.name}"


def _field_description(field: JavaField) -> str | None:
    return _schema_description(field.annotations) or field.doc or None

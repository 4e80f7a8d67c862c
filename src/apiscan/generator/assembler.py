"""Turns type names attached to operations into schemas and components.

Primitives are inlined. Every DTO is installed once under its sanitized
name in the components map and referenced by name everywhere else.
"""

import logging

from apiscan.parser.java import simple_name, type_arguments

from .naming import sanitize_schema_name
from .schema import COLLECTION_TYPES, MAP_TYPES, PRIMITIVE_TYPES, DtoSchemaResolver, ResolvedSchema

logger = logging.getLogger(__name__)


class SchemaGraphAssembler:
    """Collects the components map for one document build."""

    def __init__(self, resolver: DtoSchemaResolver, max_depth: int = 7):
        self.resolver = resolver
        self.max_depth = max_depth
        self.components: dict[str, ResolvedSchema] = {}

    def schema_for(self, type_name: str | None) -> ResolvedSchema:
        """Schema for a parameter, body or response type."""
        type_name = (type_name or "").strip()
        if not type_name:
            return ResolvedSchema.generic_object("Unknown type")
        if type_name == "byte[]":
            return ResolvedSchema.primitive("string", "binary")
        if type_name.endswith("[]"):
            return ResolvedSchema.array_of(self.schema_for(type_name[:-2]))
        if type_name.endswith("..."):
            return ResolvedSchema.array_of(self.schema_for(type_name[:-3]))

        name = simple_name(type_name)
        args = type_arguments(type_name)
        if name in PRIMITIVE_TYPES:
            return ResolvedSchema.primitive(*PRIMITIVE_TYPES[name])
        if name in COLLECTION_TYPES:
            return ResolvedSchema.array_of(self.schema_for(args[0] if args else "Object"))
        if name in MAP_TYPES:
            schema = ResolvedSchema.generic_object()
            schema.additional_properties = self.schema_for(args[1] if len(args) > 1 else "Object")
            return schema
        if name in ("Object", "?", "JsonNode", "ObjectNode"):
            return ResolvedSchema.generic_object(f"Object of type: {type_name}")
        if args and self.resolver.find_source(name) is None:
            # Unknown generic container (Page<Owner>, EntityModel<Owner>): describe the payload.
            return self.schema_for(args[0])
        return self.reference(name)

    def reference(self, type_name: str) -> ResolvedSchema:
        """Install a DTO in the components map and point at it."""
        key = sanitize_schema_name(type_name)
        if key not in self.components:
            self.components[key] = self.resolver.resolve_schema(type_name)
        return ResolvedSchema.reference(key)

    def finalize(self) -> dict[str, ResolvedSchema]:
        """Add the transitive reference closure and return the components map."""
        closure = self.resolver.get_all_resolved_schemas(self.max_depth)
        for name, schema in closure.items():
            key = sanitize_schema_name(name)
            if key != name:
                logger.debug("Schema name sanitized: '%s' -> '%s'", name, key)
            # Distinct raw names may collide here; the later one wins.
            self.components[key] = schema
        logger.debug("Components map holds %d schemas", len(self.components))
        return self.components

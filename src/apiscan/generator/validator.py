"""Structural checks for generated OpenAPI documents.

Only well-formedness is checked: references resolve, path templates
match their parameters, ids are unique. No semantic validation.
"""

import json

import yaml

from apiscan.parser.paths import template_variables

from .naming import SCHEMA_NAME
from .schema import REF_PREFIX

HTTP_VERBS = ("get", "post", "put", "delete", "patch", "head", "options", "trace")


def load_text(text: str, fmt: str = "yaml"):
    if fmt == "json":
        return json.loads(text)
    return yaml.safe_load(text)


def validate_text(text: str, fmt: str = "yaml") -> dict[str, str]:
    """Check serialized document text parses.

    Returns dict of {location: error_message}; empty when it parses.
    """
    try:
        doc = load_text(text, fmt)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        return {"document": f"{type(e).__name__}: {e}"}
    if not isinstance(doc, dict):
        return {"document": "top level is not a mapping"}
    return {}


def validate_refs(document: dict) -> dict[str, str]:
    """Every $ref must point at an existing components.schemas entry."""
    schemas = document.get("components", {}).get("schemas", {})
    errors = {}
    for location, ref in _walk_refs(document, "#"):
        if not ref.startswith(REF_PREFIX):
            errors[location] = f"Unsupported reference: {ref}"
        elif ref[len(REF_PREFIX):] not in schemas:
            errors[location] = f"Dangling reference: {ref}"
    return errors


def validate_paths(document: dict) -> dict[str, str]:
    """Every template variable has exactly one path parameter, and vice versa."""
    errors = {}
    for path, item in document.get("paths", {}).items():
        variables = template_variables(path)
        for verb, operation in item.items():
            if verb not in HTTP_VERBS:
                continue
            location = f"{verb.upper()} {path}"
            names = [p.get("name") for p in operation.get("parameters", []) if p.get("in") == "path"]
            for name in variables:
                count = names.count(name)
                if count != 1:
                    errors[f"{location} {{{name}}}"] = f"Expected 1 path parameter named '{name}', found {count}"
            for name in names:
                if name not in variables:
                    errors[f"{location} {name}"] = f"Path parameter '{name}' not in path template"
    return errors


def validate_operation_ids(document: dict) -> dict[str, str]:
    errors = {}
    seen: dict[str, str] = {}
    for path, item in document.get("paths", {}).items():
        for verb, operation in item.items():
            if verb not in HTTP_VERBS:
                continue
            operation_id = operation.get("operationId")
            location = f"{verb.upper()} {path}"
            if not operation_id:
                errors[location] = "Missing operationId"
            elif operation_id in seen:
                errors[location] = f"Duplicate operationId '{operation_id}' (also on {seen[operation_id]})"
            else:
                seen[operation_id] = location
    return errors


def validate_schema_names(document: dict) -> dict[str, str]:
    schemas = document.get("components", {}).get("schemas", {})
    return {
        f"components.schemas.{name}": "Invalid component name"
        for name in schemas
        if not SCHEMA_NAME.match(name)
    }


def validate_document(document: dict) -> dict[str, str]:
    """Run all structural validations.

    Returns dict of {location: error_message} for every defect found.
    """
    errors = {}
    for key in ("openapi", "info", "paths"):
        if key not in document:
            errors[key] = "Missing required field"
    errors.update(validate_refs(document))
    errors.update(validate_paths(document))
    errors.update(validate_operation_ids(document))
    errors.update(validate_schema_names(document))
    return errors


def _walk_refs(node, location: str):
    if isinstance(node, dict):
        for key, value in node.items():
            if key == "$ref" and isinstance(value, str):
                yield location, value
            else:
                yield from _walk_refs(value, f"{location}/{key}")
    elif isinstance(node, list):
        for index, value in enumerate(node):
            yield from _walk_refs(value, f"{location}/{index}")

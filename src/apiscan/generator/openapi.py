"""OpenAPI 3.0.3 document builder.

Renders a ScanResult into a plain dict document and serializes it to
YAML or JSON. Schemas go through one resolver and one assembler per
build, so every DTO is defined once under components and referenced
by name.
"""

import json
import logging
import time
from pathlib import Path
from typing import Callable

import yaml
from pydantic import BaseModel

from apiscan.config import ScanConfig
from apiscan.parser.base import ApiOperation, Parameter, ScanResult
from apiscan.parser.paths import OperationIdRegistry, normalize_path, template_variables
from apiscan.parser.spring import is_file_type

from .assembler import SchemaGraphAssembler
from .schema import DtoSchemaResolver, ResolvedSchema

logger = logging.getLogger(__name__)

OPENAPI_VERSION = "3.0.3"
NO_BODY_METHODS = ("GET", "DELETE", "HEAD", "OPTIONS")
ERROR_SCHEMA_TYPE = "ProblemDetail"


class BuildResult(BaseModel):
    document: dict
    warnings: list[str] = []
    truncated: bool = False
    operations_written: int = 0


class OpenApiBuilder:
    """Builds one OpenAPI document per call to ``build``."""

    def __init__(self, config: ScanConfig | None = None, clock: Callable[[], float] = time.monotonic):
        self.config = config or ScanConfig()
        self.clock = clock

    def build(self, result: ScanResult) -> BuildResult:
        started = self.clock()
        resolver = DtoSchemaResolver(Path(result.project_path))
        assembler = SchemaGraphAssembler(resolver, self.config.max_schema_depth)
        operation_ids = OperationIdRegistry()
        used_tags: set[str] = set()
        paths: dict[str, dict] = {}
        build = BuildResult(document={})

        for operation in result.operations:
            # Only cancellation point: checked between operations.
            if self.clock() - started > self.config.time_budget_seconds:
                message = (
                    f"OpenAPI generation exceeded {self.config.time_budget_seconds:g}s, stopped after "
                    f"{build.operations_written} of {len(result.operations)} operations"
                )
                logger.warning(message)
                build.warnings.append(message)
                build.truncated = True
                break
            path = normalize_path(operation.path)
            rendered = _OperationRenderer(operation, path, assembler, resolver).render(operation_ids, used_tags)
            paths.setdefault(path, {})[operation.http_method.lower()] = rendered
            build.operations_written += 1

        document = {
            "openapi": OPENAPI_VERSION,
            "info": {
                "title": self.config.title,
                "description": f"Auto-generated API documentation for {result.framework} application",
                "version": self.config.api_version,
            },
            "servers": [{"url": self.config.server_url, "description": "Local development server"}],
            "paths": paths,
        }
        components = assembler.finalize()
        if components:
            document["components"] = {
                "schemas": {name: components[name].to_openapi() for name in sorted(components)},
            }
        if used_tags:
            document["tags"] = [{"name": tag, "description": f"{tag} operations"} for tag in sorted(used_tags)]

        build.document = document
        logger.info(
            "Built OpenAPI document: %d operations, %d schemas in %.0f ms",
            build.operations_written, len(components), (self.clock() - started) * 1000,
        )
        return build


class _OperationRenderer:
    def __init__(self, operation: ApiOperation, path: str, assembler: SchemaGraphAssembler,
                 resolver: DtoSchemaResolver):
        self.operation = operation
        self.path = path
        self.assembler = assembler
        self.resolver = resolver
        self.verb = operation.http_method.upper()
        self.resource = extract_resource(path)

    def render(self, operation_ids: OperationIdRegistry, used_tags: set[str]) -> dict:
        op = self.operation
        doc: dict = {
            "operationId": operation_ids.allocate(op.operation_id or "operation", self.verb, self.path),
            "summary": op.summary or generate_summary(self.verb, self.path),
            "description": op.description or generate_description(self.verb, self.path),
        }
        tags = op.tags or [default_tag(op.controller_class)]
        doc["tags"] = tags
        used_tags.update(tags)

        parameters = self._parameters()
        if parameters:
            doc["parameters"] = parameters

        body = self._request_body()
        if body is not None:
            doc["requestBody"] = body

        doc["responses"] = self._responses()
        if op.deprecated:
            doc["deprecated"] = True
        if op.inferred:
            doc["x-apiscan-inferred"] = True
        return doc

    def _parameters(self) -> list[dict]:
        rendered = []
        declared = set()
        for param in self.operation.parameters:
            if param.location == "formData":
                continue
            rendered.append(self._parameter(param))
            if param.location == "path":
                declared.add(param.name)
        for name in template_variables(self.path):
            if name not in declared:
                rendered.append({"name": name, "in": "path", "required": True, "schema": {"type": "string"}})
        return rendered

    def _parameter(self, param: Parameter) -> dict:
        is_path = param.location == "path"
        doc = {"name": param.name, "in": param.location, "required": True if is_path else param.required}
        if param.description:
            doc["description"] = param.description
        elif is_path:
            doc["description"] = f"The ID of the {self.resource}."
        schema = self.assembler.schema_for(param.type).to_openapi()
        if schema.get("type") == "integer" and (is_path or "id" in param.name.lower()):
            schema["minimum"] = 0
        doc["schema"] = schema
        return doc

    def _request_body(self) -> dict | None:
        if self.verb in NO_BODY_METHODS:
            return None
        files = [p for p in self.operation.parameters if p.location == "formData"]
        if files:
            return self._multipart_body(files)
        body = self.operation.request_body
        if body is None:
            return None
        doc: dict = {}
        if body.description:
            doc["description"] = body.description
        doc["required"] = body.required
        doc["content"] = self._content(body.content, self.operation.consumes)
        return doc

    def _multipart_body(self, files: list[Parameter]) -> dict:
        properties, required, encoding = {}, [], {}
        for param in files:
            if param.type.endswith("[]") or param.type.startswith(("List<", "Set<", "Collection<")):
                properties[param.name] = {"type": "array", "items": {"type": "string", "format": "binary"}}
            elif is_file_type(param.type):
                properties[param.name] = {"type": "string", "format": "binary"}
            else:
                properties[param.name] = self.assembler.schema_for(param.type).to_openapi()
            if param.required:
                required.append(param.name)
            encoding[param.name] = {"contentType": "application/octet-stream"}
        schema: dict = {"type": "object", "properties": properties}
        if required:
            schema["required"] = required
        return {
            "description": "Multipart form data",
            "required": bool(required),
            "content": {"multipart/form-data": {"schema": schema, "encoding": encoding}},
        }

    def _content(self, content: dict, media_types: list[str]) -> dict:
        rendered = {}
        for media_type, media in content.items():
            schema = self.assembler.schema_for(media.schema_type).to_openapi()
            for name in media_types or [media_type]:
                rendered[name] = {"schema": schema}
        return rendered

    def _responses(self) -> dict:
        op = self.operation
        responses: dict[str, dict] = {}
        if not op.responses:
            self._default_success(responses)
        for code, response in op.responses.items():
            doc = {"description": response.description or "Successful operation"}
            if response.content:
                doc["content"] = self._content(response.content, op.produces)
            responses[code] = doc

        if self.verb in ("GET", "PUT", "PATCH") and "304" not in responses:
            not_modified = {"description": "Not modified."}
            if "content" in responses.get("200", {}):
                not_modified["content"] = responses["200"]["content"]
            responses["304"] = not_modified
        if "400" not in responses:
            responses["400"] = self._error_response("Bad request.")
        if "{" in self.path and "404" not in responses:
            responses["404"] = self._error_response(f"{self.resource} not found.")
        if "500" not in responses:
            responses["500"] = self._error_response("Server error.")
        return responses

    def _default_success(self, responses: dict) -> None:
        if self.verb == "POST":
            responses["201"] = {"description": f"{self.resource} created successfully."}
        elif self.verb == "DELETE":
            responses["200"] = {"description": f"{self.resource} deleted successfully."}
        elif self.verb == "GET":
            if "{" in self.path:
                responses["200"] = {"description": f"{self.resource} details found and returned."}
            else:
                responses["200"] = {"description": f"List of {self.resource}s returned successfully."}
        elif self.verb in ("PUT", "PATCH"):
            responses["200"] = {"description": f"{self.resource} updated successfully."}
        else:
            responses["200"] = {"description": "Successful response"}

    def _error_response(self, description: str) -> dict:
        if self.resolver.find_source(ERROR_SCHEMA_TYPE) is not None:
            schema = self.assembler.reference(ERROR_SCHEMA_TYPE)
        else:
            schema = ResolvedSchema(
                kind="object",
                type="object",
                description="Error response",
                properties={
                    "title": ResolvedSchema(kind="primitive", type="string", description="Error title"),
                    "detail": ResolvedSchema(kind="primitive", type="string", description="Error detail"),
                    "status": ResolvedSchema(kind="primitive", type="integer", description="HTTP status code"),
                },
            )
        return {"description": description, "content": {"application/json": {"schema": schema.to_openapi()}}}


def extract_resource(path: str) -> str:
    """Singular resource name from the last literal path segment: /api/owners/{id} -> owner."""
    for segment in reversed(path.split("/")):
        if segment and "{" not in segment and segment != "api":
            resource = segment.lower()
            if resource.endswith("ies"):
                return resource[:-3] + "y"
            if resource.endswith("s") and not resource.endswith("ss"):
                return resource[:-1]
            return resource
    return "resource"


def generate_summary(verb: str, path: str) -> str:
    resource = extract_resource(path)
    if verb == "GET":
        return f"Get a {resource} by ID" if "{" in path else f"List {resource}s"
    return {
        "POST": f"Create a {resource}",
        "PUT": f"Update a {resource} by ID",
        "DELETE": f"Delete a {resource} by ID",
        "PATCH": f"Partially update a {resource} by ID",
    }.get(verb, f"Operation on {resource}")


def generate_description(verb: str, path: str) -> str:
    resource = extract_resource(path)
    if verb == "GET":
        return f"Returns the {resource} or a 404 error." if "{" in path else f"Returns an array of {resource}s."
    return {
        "POST": f"Creates a {resource}.",
        "PUT": f"Updates the {resource} or returns a 404 error.",
        "DELETE": f"Deletes the {resource} or returns a 404 error.",
        "PATCH": f"Partially updates the {resource} or returns a 404 error.",
    }.get(verb, f"Performs an operation on {resource}.")


def default_tag(controller_class: str) -> str:
    tag = controller_class.replace("Controller", "").replace("Rest", "")
    return tag or controller_class


class _NoAliasDumper(yaml.SafeDumper):
    """Writes shared sub-documents out in full instead of as YAML aliases."""

    def ignore_aliases(self, data):
        return True


def render(document: dict, fmt: str = "yaml") -> str:
    """Serialize a document as YAML or JSON text."""
    if fmt == "json":
        return json.dumps(document, indent=2, ensure_ascii=False) + "\n"
    return yaml.dump(document, Dumper=_NoAliasDumper, sort_keys=False, allow_unicode=True, default_flow_style=False)

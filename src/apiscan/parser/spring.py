"""Spring MVC endpoint extraction.

Walks every Java source of a project twice. The first pass collects
interfaces that carry routing annotations (controllers often implement
an interface generated from an OpenAPI contract) and string constants
used inside annotations. The second pass turns controllers and annotated
interfaces into ApiOperation records.
"""

import logging
import re
import time
from pathlib import Path

from . import annotations as ann
from .base import BODY_METHODS, ApiOperation, Body, MediaType, Parameter, Response, ScanResult
from .inference import infer_http_method, infer_path
from .java import (
    CompilationUnit,
    JavaMethod,
    JavaParameter,
    JavaSyntaxError,
    JavaType,
    parse_java_file,
    simple_name,
    type_arguments,
)
from .paths import OperationIdRegistry, combine_paths, reconcile_path_parameters

logger = logging.getLogger(__name__)

MAPPING_ANNOTATIONS = {
    "GetMapping": "GET",
    "PostMapping": "POST",
    "PutMapping": "PUT",
    "DeleteMapping": "DELETE",
    "PatchMapping": "PATCH",
    "RequestMapping": None,  # verb comes from the method member
}
CONTROLLER_ANNOTATIONS = ("RestController", "Controller")

SIMPLE_TYPES = {
    "String", "int", "Integer", "long", "Long", "boolean", "Boolean",
    "double", "Double", "float", "Float",
}
DTO_SUFFIXES = ("Dto", "DTO", "Request", "Response", "Model", "Form", "Input", "Output", "Payload")

# Injected by the framework, never part of the HTTP contract.
PLATFORM_TYPES = {
    "Principal", "Authentication", "HttpServletRequest", "HttpServletResponse",
    "HttpSession", "Locale", "Model", "ModelMap", "BindingResult", "Errors",
    "WebRequest", "NativeWebRequest", "ServerWebExchange", "ServerHttpRequest",
    "ServerHttpResponse", "Pageable", "Sort", "UriComponentsBuilder",
    "RedirectAttributes", "SessionStatus", "InputStream", "OutputStream",
    "Reader", "Writer", "TimeZone", "ZoneId", "HttpMethod",
}
FILE_TYPES = ("MultipartFile", "Part", "FilePart")
BINDING_ANNOTATIONS = {"PathVariable", "RequestParam", "RequestHeader", "RequestPart", "RequestBody"}
# Bound from somewhere other than path, query, header or body.
UNMODELED_ANNOTATIONS = {
    "ModelAttribute", "CookieValue", "RequestAttribute", "SessionAttribute",
    "MatrixVariable", "AuthenticationPrincipal", "CurrentSecurityContext", "Value",
}

RESPONSE_WRAPPERS = {
    "ResponseEntity", "HttpEntity", "Optional", "Mono", "CompletableFuture",
    "CompletionStage", "Callable", "DeferredResult", "ListenableFuture",
}
NO_CONTENT_TYPES = ("void", "Void", "java.lang.Void")

# org.springframework.http.MediaType constants, with or without the _VALUE suffix.
MEDIA_TYPE_CONSTANTS = {
    "ALL": "*/*",
    "APPLICATION_JSON": "application/json",
    "APPLICATION_JSON_UTF8": "application/json",
    "APPLICATION_XML": "application/xml",
    "APPLICATION_ATOM_XML": "application/atom+xml",
    "APPLICATION_CBOR": "application/cbor",
    "APPLICATION_FORM_URLENCODED": "application/x-www-form-urlencoded",
    "APPLICATION_GRAPHQL": "application/graphql+json",
    "APPLICATION_NDJSON": "application/x-ndjson",
    "APPLICATION_OCTET_STREAM": "application/octet-stream",
    "APPLICATION_PDF": "application/pdf",
    "APPLICATION_PROBLEM_JSON": "application/problem+json",
    "APPLICATION_PROBLEM_XML": "application/problem+xml",
    "APPLICATION_STREAM_JSON": "application/stream+json",
    "APPLICATION_XHTML_XML": "application/xhtml+xml",
    "IMAGE_GIF": "image/gif",
    "IMAGE_JPEG": "image/jpeg",
    "IMAGE_PNG": "image/png",
    "MULTIPART_FORM_DATA": "multipart/form-data",
    "MULTIPART_MIXED": "multipart/mixed",
    "TEXT_EVENT_STREAM": "text/event-stream",
    "TEXT_HTML": "text/html",
    "TEXT_MARKDOWN": "text/markdown",
    "TEXT_PLAIN": "text/plain",
    "TEXT_XML": "text/xml",
}

_REQUEST_METHOD = re.compile(r"\b(GET|POST|PUT|DELETE|PATCH|HEAD|OPTIONS)\b")
_OBJECT_METHODS = ("toString", "equals", "hashCode", "clone", "finalize")
_SKIPPED_DIRS = {"target", "build", "node_modules", "out", "bin"}


def find_source_roots(project_root: Path) -> list[Path]:
    """``src/main/java`` of the project and of each direct child module."""
    roots = []
    own = project_root / "src" / "main" / "java"
    if own.is_dir():
        roots.append(own)
    for child in sorted(project_root.iterdir()) if project_root.is_dir() else []:
        if not child.is_dir() or child.name.startswith(".") or child.name in _SKIPPED_DIRS:
            continue
        module_src = child / "src" / "main" / "java"
        if module_src.is_dir():
            roots.append(module_src)
    return roots


def find_java_files(project_root: Path) -> list[Path]:
    roots = find_source_roots(project_root)
    if not roots:
        logger.warning("Source directory not found under %s", project_root)
    files = []
    for root in roots:
        files.extend(sorted(p for p in root.rglob("*.java") if p.is_file()))
    return files


def is_simple_type(type_text: str) -> bool:
    return simple_name(type_text) in SIMPLE_TYPES and "<" not in type_text


def is_platform_type(type_text: str) -> bool:
    return simple_name(type_text) in PLATFORM_TYPES


def is_file_type(type_text: str) -> bool:
    return simple_name(type_text) in FILE_TYPES


def is_dto_type(type_text: str) -> bool:
    """Whether an unannotated parameter looks like a request payload."""
    if is_platform_type(type_text) or is_file_type(type_text):
        return False
    name = simple_name(type_text)
    if name.endswith(DTO_SUFFIXES):
        return True
    return not is_simple_type(type_text) and not type_text.startswith("java.")


def unwrap_response_type(type_text: str) -> str | None:
    """Effective payload type of a handler return type, None for no content."""
    current = type_text
    while simple_name(current) in RESPONSE_WRAPPERS:
        args = type_arguments(current)
        if not args:
            return "Object"
        current = args[0]
    if current.startswith("?"):
        current = current.removeprefix("?").strip().removeprefix("extends").strip() or "Object"
    if current in NO_CONTENT_TYPES:
        return None
    return current


class _ScanContext:
    """Mutable state of one scan; never shared between scans."""

    def __init__(self, project_root: Path):
        self.project_root = project_root
        self.result = ScanResult(project_path=str(project_root))
        self.interfaces: dict[str, JavaType] = {}
        self.constants = ann.ConstantTable()
        self.operation_ids = OperationIdRegistry()


class SpringScanner:
    """Extracts HTTP operations from Spring MVC controllers."""

    framework = "Spring"

    def scan(self, project_root: Path) -> ScanResult:
        """Scan a project and return every operation found."""
        logger.info("Starting Spring scan for project: %s", project_root)
        started = time.monotonic()
        ctx = _ScanContext(project_root)
        ctx.result.framework = self.framework

        files = find_java_files(project_root)
        ctx.result.files_scanned = len(files)

        units: list[CompilationUnit] = []
        for java_file in files:
            try:
                unit = parse_java_file(java_file)
            except JavaSyntaxError as e:
                logger.error("Error scanning file %s: %s", java_file, e)
                ctx.result.errors.append(f"Error scanning {java_file}: {e}")
                continue
            units.append(unit)
            ctx.constants.collect(unit)
            for jtype in unit.types:
                if jtype.kind == "interface" and _has_routed_methods(jtype):
                    ctx.interfaces[jtype.name] = jtype
                    logger.debug("Collected API interface: %s", jtype.name)

        for unit in units:
            for jtype in unit.types:
                if jtype.kind == "interface":
                    self._scan_interface(jtype, ctx)
                elif jtype.kind == "class" and jtype.has_annotation(*CONTROLLER_ANNOTATIONS):
                    self._scan_controller(jtype, unit, ctx)

        ctx.result.scan_duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "Spring scan completed. Found %d endpoints in %d ms",
            len(ctx.result.operations), ctx.result.scan_duration_ms,
        )
        return ctx.result

    def _scan_interface(self, jtype: JavaType, ctx: _ScanContext) -> None:
        base_url = self._base_url(jtype, ctx)
        tags = self._class_tags(jtype, ctx)
        for method in jtype.methods:
            ctx.result.operations.extend(self._operations_for(method, base_url, jtype.name, tags, ctx))

    def _scan_controller(self, jtype: JavaType, unit: CompilationUnit, ctx: _ScanContext) -> None:
        base_url = self._base_url(jtype, ctx)
        tags = self._class_tags(jtype, ctx)
        covered: set[tuple[str, int]] = set()

        for method in jtype.methods:
            operations = self._operations_for(method, base_url, jtype.name, tags, ctx)
            if operations:
                covered.add((method.name, len(method.parameters)))
            ctx.result.operations.extend(operations)

        inferred_done = False
        for interface_name in jtype.interfaces:
            interface = ctx.interfaces.get(interface_name) or unit.find_type(interface_name)
            if interface is not None and interface.kind == "interface":
                self._scan_implemented_interface(jtype, interface, base_url, tags, covered, ctx)
            elif not inferred_done:
                logger.debug(
                    "Could not find interface definition for %s, inferring from @Override methods of %s",
                    interface_name, jtype.name,
                )
                self._infer_operations(jtype, base_url, tags, covered, ctx)
                inferred_done = True

    def _scan_implemented_interface(self, controller: JavaType, interface: JavaType, base_url: str,
                                    tags: list[str], covered: set[tuple[str, int]], ctx: _ScanContext) -> None:
        # The controller's own base path wins over the interface's.
        effective_base = base_url or self._base_url(interface, ctx)
        effective_tags = tags or self._class_tags(interface, ctx)
        implemented = {(m.name, len(m.parameters)) for m in controller.methods}
        for method in interface.methods:
            key = (method.name, len(method.parameters))
            if key not in implemented or key in covered:
                continue
            operations = self._operations_for(method, effective_base, controller.name, effective_tags, ctx)
            if operations:
                covered.add(key)
            ctx.result.operations.extend(operations)
        logger.debug("Scanned interface %s for controller %s", interface.name, controller.name)

    def _infer_operations(self, controller: JavaType, base_url: str, tags: list[str],
                          covered: set[tuple[str, int]], ctx: _ScanContext) -> None:
        for method in controller.methods:
            key = (method.name, len(method.parameters))
            if not method.is_override or key in covered or method.name in _OBJECT_METHODS:
                continue
            http_method = infer_http_method(method.name)
            path = combine_paths(base_url, infer_path(method))
            operation = self._build_operation(method, controller.name, http_method, path, tags, None, ctx)
            operation.inferred = True
            covered.add(key)
            ctx.result.operations.append(operation)
            logger.debug("Inferred endpoint: %s %s from method %s", http_method, path, method.name)

    def _operations_for(self, method: JavaMethod, base_url: str, class_name: str,
                        tags: list[str], ctx: _ScanContext) -> list[ApiOperation]:
        """One operation per verb and path alias of a routing-annotated method."""
        mapping = _mapping_annotation(method)
        if mapping is None:
            return []
        verb = MAPPING_ANNOTATIONS[mapping.name]
        verbs = [verb] if verb else _request_mapping_verbs(mapping)
        paths = [p for p in ann.values(mapping, "value", "path", constants=ctx.constants) if p] or [""]
        return [
            self._build_operation(method, class_name, http_method, combine_paths(base_url, path), tags, mapping, ctx)
            for http_method in verbs
            for path in paths
        ]

    def _build_operation(self, method: JavaMethod, class_name: str, http_method: str, path: str,
                         tags: list[str], mapping: ann.Annotation | None, ctx: _ScanContext) -> ApiOperation:
        parameters = []
        for param in method.parameters:
            parameter = self._classify_parameter(param, ctx)
            if parameter is not None:
                parameters.append(parameter)

        operation = ApiOperation(
            controller_class=class_name,
            method_name=method.name,
            http_method=http_method,
            path=path,
            operation_id=ctx.operation_ids.allocate(f"{class_name}_{method.name}", http_method, path),
            parameters=reconcile_path_parameters(path, parameters),
            request_body=_request_body(method, http_method),
            responses=_responses(method),
            tags=list(tags),
            deprecated=any(a.name == "Deprecated" for a in method.annotations),
            description=method.doc,
        )
        if mapping is not None:
            operation.consumes = _media_types(mapping, "consumes", ctx)
            operation.produces = _media_types(mapping, "produces", ctx)
        self._apply_documentation(operation, method, ctx)
        return operation

    def _classify_parameter(self, param: JavaParameter, ctx: _ScanContext) -> Parameter | None:
        by_name = {a.name: a for a in param.annotations}
        parameter = Parameter(name=param.name, location="query", type=param.type)

        if "PathVariable" in by_name:
            parameter.location = "path"
            parameter.required = True
            parameter.name = self._bound_name(by_name["PathVariable"], param, ctx)
            return parameter

        for binding in ("RequestParam", "RequestPart"):
            if binding in by_name:
                annotation = by_name[binding]
                parameter.name = self._bound_name(annotation, param, ctx)
                if binding == "RequestPart" or is_file_type(param.type):
                    parameter.location = "formData"
                parameter.required = not ann.is_false(annotation, "required") and annotation.get("defaultValue") is None
                return parameter

        if "RequestHeader" in by_name:
            annotation = by_name["RequestHeader"]
            parameter.location = "header"
            parameter.name = self._bound_name(annotation, param, ctx)
            parameter.required = not ann.is_false(annotation, "required") and annotation.get("defaultValue") is None
            return parameter

        if "RequestBody" in by_name or UNMODELED_ANNOTATIONS & by_name.keys() or is_platform_type(param.type):
            return None

        if is_file_type(param.type):
            parameter.location = "formData"
            return parameter

        if is_simple_type(param.type):
            return parameter

        # DTO-shaped or unknown: a body candidate, never a parameter.
        return None

    @staticmethod
    def _bound_name(annotation: ann.Annotation, param: JavaParameter, ctx: _ScanContext) -> str:
        return ann.first_value(annotation, "value", "name", constants=ctx.constants) or param.name

    def _base_url(self, jtype: JavaType, ctx: _ScanContext) -> str:
        mapping = jtype.annotation("RequestMapping")
        if mapping is None:
            return ""
        return ann.first_value(mapping, "value", "path", constants=ctx.constants) or ""

    def _class_tags(self, jtype: JavaType, ctx: _ScanContext) -> list[str]:
        tag = jtype.annotation("Tag")
        if tag is not None:
            return ann.values(tag, "name", constants=ctx.constants)
        api = jtype.annotation("Api")
        if api is not None:
            return ann.values(api, "tags", constants=ctx.constants)
        return []

    def _apply_documentation(self, operation: ApiOperation, method: JavaMethod, ctx: _ScanContext) -> None:
        """Fill summary/description/tags from OpenAPI or Swagger 2 annotations."""
        for annotation in method.annotations:
            if annotation.name == "Operation":
                operation.summary = ann.first_value(annotation, "summary", constants=ctx.constants) or operation.summary
                operation.description = (
                    ann.first_value(annotation, "description", constants=ctx.constants) or operation.description
                )
                operation.tags = ann.values(annotation, "tags", constants=ctx.constants) or operation.tags
                operation.deprecated = operation.deprecated or ann.raw_text(annotation, "deprecated") == "true"
            elif annotation.name == "ApiOperation":
                operation.summary = ann.first_value(annotation, "value", constants=ctx.constants) or operation.summary
                operation.description = ann.first_value(annotation, "notes", constants=ctx.constants) or operation.description
                operation.tags = ann.values(annotation, "tags", constants=ctx.constants) or operation.tags


def _has_routed_methods(jtype: JavaType) -> bool:
    return any(_mapping_annotation(m) is not None for m in jtype.methods)


def _mapping_annotation(method: JavaMethod) -> ann.Annotation | None:
    return next((a for a in method.annotations if a.name in MAPPING_ANNOTATIONS), None)


def _request_mapping_verbs(mapping: ann.Annotation) -> list[str]:
    verbs = list(dict.fromkeys(_REQUEST_METHOD.findall(ann.raw_text(mapping, "method"))))
    return verbs or ["GET"]


def _media_types(mapping: ann.Annotation, member: str, ctx: _ScanContext) -> list[str]:
    """Media types named by a mapping member, with MediaType constants expanded."""
    found = []
    for value in ann.values(mapping, member, constants=ctx.constants):
        value = MEDIA_TYPE_CONSTANTS.get(value.rsplit(".", 1)[-1].removesuffix("_VALUE"), value)
        if "/" in value:
            found.append(value)
        else:
            logger.debug("Ignoring unresolved %s value '%s'", member, value)
    return found


def _request_body(method: JavaMethod, http_method: str) -> Body | None:
    """First @RequestBody parameter, or the first DTO-shaped one on a mutating verb."""
    mutating = http_method in BODY_METHODS
    for param in method.parameters:
        names = {a.name for a in param.annotations}
        explicit = "RequestBody" in names
        bound = names & (BINDING_ANNOTATIONS | UNMODELED_ANNOTATIONS)
        if explicit or (mutating and not bound and is_dto_type(param.type)):
            body_annotation = next((a for a in param.annotations if a.name == "RequestBody"), None)
            required = body_annotation is None or not ann.is_false(body_annotation, "required")
            return Body(required=required, content={"application/json": MediaType(schema_type=param.type)})
    return None


def _responses(method: JavaMethod) -> dict[str, Response]:
    response = Response(description="Successful response")
    if method.return_type != "void":
        payload = unwrap_response_type(method.return_type)
        if payload is not None:
            response.content["application/json"] = MediaType(schema_type=payload)
    return {"200": response}

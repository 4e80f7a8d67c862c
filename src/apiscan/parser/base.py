"""Unified data models for extracted HTTP operations.

The Spring scanner converts controller source into these models;
the OpenAPI builder turns them into a document.
"""

from pydantic import BaseModel

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS")
BODY_METHODS = ("POST", "PUT", "PATCH")


class Parameter(BaseModel):
    """A single operation parameter bound from the request."""

    name: str
    location: str  # path / query / header / formData
    type: str = "String"  # raw Java type text
    required: bool = False
    description: str = ""


class MediaType(BaseModel):
    schema_type: str  # raw Java type text, resolved by the assembler


class Body(BaseModel):
    """Request payload of an operation."""

    description: str = ""
    required: bool = True
    content: dict[str, MediaType] = {}  # {media type: MediaType}


class Response(BaseModel):
    description: str
    content: dict[str, MediaType] = {}


class ApiOperation(BaseModel):
    """One HTTP method + path bound to a handler method."""

    controller_class: str
    method_name: str
    http_method: str  # GET / POST / PUT / DELETE / PATCH / HEAD / OPTIONS
    path: str  # /api/owners/{ownerId}
    operation_id: str
    parameters: list[Parameter] = []
    request_body: Body | None = None
    responses: dict[str, Response] = {}  # {status code: Response}
    tags: list[str] = []
    summary: str = ""
    description: str = ""
    deprecated: bool = False
    consumes: list[str] = []
    produces: list[str] = []
    inferred: bool = False  # guessed from the method name, not from annotations

    def path_parameters(self) -> list[Parameter]:
        return [p for p in self.parameters if p.location == "path"]


class ScanResult(BaseModel):
    """Everything a single project scan produced."""

    project_path: str
    framework: str = "Spring"
    operations: list[ApiOperation] = []
    errors: list[str] = []
    warnings: list[str] = []
    files_scanned: int = 0
    scan_duration_ms: int = 0

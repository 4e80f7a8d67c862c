"""Best-effort HTTP verb and path guessing from handler method names.

Used only when a controller implements an interface whose routing
annotations cannot be found anywhere in the scanned sources. Results
are approximate; operations built from them are flagged ``inferred``.
"""

import re

from .java import JavaMethod

VERB_PREFIXES = [
    (("get", "list", "find", "retrieve"), "GET"),
    (("post", "create", "add", "save"), "POST"),
    (("put", "update", "modify"), "PUT"),
    (("delete", "remove"), "DELETE"),
    (("patch",), "PATCH"),
]

# Lower-cased method name -> path, for common REST sample domains.
KNOWN_PATHS = {
    "listowners": "/owners",
    "getowner": "/owners/{ownerId}",
    "addowner": "/owners",
    "updateowner": "/owners/{ownerId}",
    "deleteowner": "/owners/{ownerId}",
    "addpettoowner": "/owners/{ownerId}/pets",
    "updateownerspet": "/owners/{ownerId}/pets/{petId}",
    "getownerspet": "/owners/{ownerId}/pets/{petId}",
    "addvisittoowner": "/owners/{ownerId}/pets/{petId}/visits",
    "listpets": "/pets",
    "getpet": "/pets/{petId}",
    "addpet": "/pets",
    "updatepet": "/pets/{petId}",
    "deletepet": "/pets/{petId}",
    "listvisits": "/visits",
    "getvisit": "/visits/{visitId}",
    "addvisit": "/visits",
    "updatevisit": "/visits/{visitId}",
    "deletevisit": "/visits/{visitId}",
    "listvets": "/vets",
    "getvet": "/vets/{vetId}",
    "listspecialties": "/specialties",
    "getspecialty": "/specialties/{specialtyId}",
    "addspecialty": "/specialties",
    "updatespecialty": "/specialties/{specialtyId}",
    "deletespecialty": "/specialties/{specialtyId}",
    "listpettypes": "/pettypes",
    "getpettype": "/pettypes/{petTypeId}",
    "addpettype": "/pettypes",
    "updatepettype": "/pettypes/{petTypeId}",
    "deletepettype": "/pettypes/{petTypeId}",
    "listusers": "/users",
    "getuser": "/users/{userId}",
    "adduser": "/users",
    "updateuser": "/users/{userId}",
    "deleteuser": "/users/{userId}",
    "listorders": "/orders",
    "getorder": "/orders/{orderId}",
    "addorder": "/orders",
    "updateorder": "/orders/{orderId}",
    "deleteorder": "/orders/{orderId}",
    "addorderitem": "/orders/{orderId}/order-items",
    "getorderitems": "/orders/{orderId}/order-items",
    "listcompanies": "/companies",
    "getcompany": "/companies/{companyId}",
    "adddepartmenttocompany": "/companies/{companyId}/departments",
    "getcompanydepartments": "/companies/{companyId}/departments",
    "addemployeetodepartment": "/companies/{companyId}/departments/{departmentId}/employees",
    "getdepartmentemployees": "/companies/{companyId}/departments/{departmentId}/employees",
    "addprojecttoemployee": "/companies/{companyId}/departments/{departmentId}/employees/{employeeId}/projects",
    "listtags": "/tags",
    "gettag": "/tags/{tagId}",
}

_VERB_PREFIX = re.compile(r"^(get|list|add|create|update|modify|delete|remove|save|find|retrieve)")
_CAMEL_BOUNDARY = re.compile(r"([a-z])([A-Z])")


def infer_http_method(method_name: str) -> str:
    lower = method_name.lower()
    for prefixes, verb in VERB_PREFIXES:
        if lower.startswith(prefixes):
            return verb
    return "GET"


def infer_path(method: JavaMethod) -> str:
    """Guess a path: known sample names first, then kebab-cased entity name."""
    known = KNOWN_PATHS.get(method.name.lower())
    if known:
        return known

    entity = _VERB_PREFIX.sub("", method.name, count=1) or method.name
    path = "/" + _CAMEL_BOUNDARY.sub(r"\1-\2", entity).lower()
    if any(p.type in ("Integer", "int") for p in method.parameters):
        path += "/{id}"
    return path

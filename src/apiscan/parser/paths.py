"""URL path helpers and scan-wide operation id allocation."""

import re

from .base import Parameter

TEMPLATE_VARIABLE = re.compile(r"\{([^}]+)\}")
_NON_ID_CHARS = re.compile(r"[^A-Za-z0-9]+")


def clean_path(path: str) -> str:
    return path.strip().strip('"').strip()


def combine_paths(base: str, path: str) -> str:
    """Join a class-level base path and a method path with a single slash."""
    base, path = clean_path(base), clean_path(path)
    if not base:
        return path or "/"
    if not path:
        return base
    return base.rstrip("/") + "/" + path.lstrip("/")


def normalize_path(path: str) -> str:
    """Leading slash, and ``{id:\\d+}`` regex suffixes dropped from variables."""
    path = clean_path(path)
    if not path:
        return "/"
    path = TEMPLATE_VARIABLE.sub(lambda m: "{" + m.group(1).split(":", 1)[0].strip() + "}", path)
    return path if path.startswith("/") else "/" + path


def template_variables(path: str) -> list[str]:
    """Names of ``{x}`` variables in order, regex suffixes (``{id:\\d+}``) removed."""
    names = []
    for raw in TEMPLATE_VARIABLE.findall(path):
        name = raw.split(":", 1)[0].strip()
        if name and name not in names:
            names.append(name)
    return names


def reconcile_path_parameters(path: str, parameters: list[Parameter]) -> list[Parameter]:
    """Make the parameter list agree with the path template.

    Every template variable ends up with exactly one required path
    parameter: a same-named parameter is folded into it, missing ones are
    synthesized as ``String``, and path parameters naming no variable are
    dropped.
    """
    variables = template_variables(path)
    result: list[Parameter] = []
    bound: set[str] = set()
    for param in parameters:
        if param.name in variables:
            if param.name in bound:
                continue
            bound.add(param.name)
            result.append(param.model_copy(update={"location": "path", "required": True}))
        elif param.location != "path":
            result.append(param)
    for name in variables:
        if name not in bound:
            result.append(Parameter(name=name, location="path", type="String", required=True))
    return result


def path_suffix(path: str) -> str:
    """Identifier-safe rendering of a path: /api/owners/{id} -> api_owners_id."""
    return _NON_ID_CHARS.sub("_", path).strip("_")


class OperationIdRegistry:
    """Hands out operation ids unique for one scan."""

    def __init__(self):
        self._used: set[str] = set()

    def __contains__(self, operation_id: str) -> bool:
        return operation_id in self._used

    def allocate(self, base: str, http_method: str, path: str) -> str:
        """Try base, base_<verb>, base_<path>, then base_<n>."""
        candidates = [base, f"{base}_{http_method.lower()}"]
        suffix = path_suffix(path)
        if suffix:
            candidates.append(f"{base}_{suffix}")
        for candidate in candidates:
            if candidate not in self._used:
                self._used.add(candidate)
                return candidate
        counter = 1
        while f"{base}_{counter}" in self._used:
            counter += 1
        unique = f"{base}_{counter}"
        self._used.add(unique)
        return unique

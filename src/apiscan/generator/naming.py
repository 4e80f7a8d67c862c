"""Mapping from Java type names to component schema keys."""

import re

SCHEMA_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9._-]*$")
_INVALID_CHARS = re.compile(r"[^A-Za-z0-9._-]")
_UNDERSCORE_RUN = re.compile(r"_{2,}")


def sanitize_schema_name(name: str) -> str:
    """Turn any type name into a valid, stable component key.

    Generic arguments are dropped (``Page<Owner>`` -> ``Page``), arrays get
    an ``Array`` suffix, and the result always matches SCHEMA_NAME.
    Applying it twice gives the same result as applying it once.
    """
    name = (name or "").strip()
    if not name:
        return "UnknownSchema"
    if name == "?":
        return "UnknownType"
    if name == "byte[]":
        return "ByteArray"
    if name.endswith("[]"):
        return sanitize_schema_name(name[:-2]) + "Array"
    if "<" in name:
        return sanitize_schema_name(name.split("<", 1)[0])

    cleaned = _INVALID_CHARS.sub("_", name)
    if not re.match(r"[A-Za-z_]", cleaned):
        cleaned = "Schema_" + cleaned
    cleaned = _UNDERSCORE_RUN.sub("_", cleaned).rstrip("_")
    return cleaned or "UnknownSchema"

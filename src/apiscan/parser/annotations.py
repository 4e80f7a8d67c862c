"""Helpers for reading Spring annotation values.

Annotation members arrive as raw Java expression text. These helpers
turn them into plain strings, following ``static final String``
constants and ``+`` concatenation where they can.
"""

import re

from .java import Annotation, CompilationUnit

_STRING_LITERAL = re.compile(r'^"((?:[^"\\]|\\.)*)"$')
_IDENTIFIER = re.compile(r"^[A-Za-z_$][\w$]*(\.[A-Za-z_$][\w$]*)*$")


class ConstantTable:
    """String constants declared anywhere in the scanned project.

    Keys are both the bare field name and ``Owner.NAME``.
    """

    def __init__(self):
        self._values: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._values)

    def collect(self, unit: CompilationUnit) -> None:
        """Record every ``static final String`` with a literal initializer."""
        for jtype in unit.types:
            implicit = jtype.kind == "interface"
            for field in jtype.fields:
                if field.type != "String" or field.initializer is None:
                    continue
                if not implicit and not {"static", "final"} <= set(field.modifiers):
                    continue
                value = self.evaluate(field.initializer)
                if value is None:
                    continue
                self._values[f"{jtype.name}.{field.name}"] = value
                self._values.setdefault(field.name, value)

    def lookup(self, name: str) -> str | None:
        if name in self._values:
            return self._values[name]
        # Fully-qualified reference: com.example.Constants.ACCEPT
        parts = name.split(".")
        if len(parts) > 2:
            return self._values.get(".".join(parts[-2:]))
        return None

    def evaluate(self, expression: str) -> str | None:
        """Evaluate a string expression, or None if any part is unknown."""
        pieces = []
        for part in _split_concatenation(expression):
            literal = _STRING_LITERAL.match(part)
            if literal:
                pieces.append(_unescape(literal.group(1)))
            elif _IDENTIFIER.match(part):
                value = self.lookup(part)
                if value is None:
                    return None
                pieces.append(value)
            else:
                return None
        return "".join(pieces)


def resolve_string(expression: str, constants: ConstantTable | None = None) -> str | None:
    """Resolve a single annotation value to its string, or None."""
    table = constants if constants is not None else ConstantTable()
    return table.evaluate(expression.strip())


def values(annotation: Annotation, *keys: str, constants: ConstantTable | None = None) -> list[str]:
    """All string values under the first present key (single value or array)."""
    for key in keys:
        raw = annotation.get(key)
        if raw is None:
            continue
        items = raw if isinstance(raw, list) else [raw]
        result = []
        for item in items:
            value = resolve_string(item, constants)
            result.append(value if value is not None else clean_literal(item))
        return result
    return []


def first_value(annotation: Annotation, *keys: str, constants: ConstantTable | None = None) -> str | None:
    found = values(annotation, *keys, constants=constants)
    return found[0] if found else None


def raw_text(annotation: Annotation, key: str) -> str:
    """Member text flattened to one string, for keyword sniffing."""
    raw = annotation.get(key)
    if raw is None:
        return ""
    return ",".join(raw) if isinstance(raw, list) else raw


def is_false(annotation: Annotation, key: str) -> bool:
    return raw_text(annotation, key).strip() == "false"


def clean_literal(text: str) -> str:
    """Drop surrounding quotes and whitespace."""
    return text.strip().strip('"').strip()


def _split_concatenation(expression: str) -> list[str]:
    parts, current, in_string, escaped = [], [], False, False
    for ch in expression:
        if in_string:
            current.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
            current.append(ch)
        elif ch == "+":
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
    parts.append("".join(current).strip())
    return [p.strip("()").strip() for p in parts]


def _unescape(text: str) -> str:
    return text.replace('\\"', '"').replace("\\\\", "\\")

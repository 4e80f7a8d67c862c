"""Plain-text scan summary printed by the CLI."""

from collections import Counter

from apiscan.parser.base import ScanResult

RULE = "-" * 50
PATH_WIDTH = 40


def render_summary(result: ScanResult) -> str:
    """Return a human-readable summary of a scan."""
    operations = result.operations
    lines = [
        "Scan Summary",
        RULE,
        f"Project: {result.project_path}",
        f"Framework: {result.framework}",
        f"Files scanned: {result.files_scanned}",
        f"Scan duration: {result.scan_duration_ms} ms",
        f"Total endpoints found: {len(operations)}",
    ]

    by_method = Counter(op.http_method.upper() for op in operations)
    if by_method:
        lines += ["", "Endpoints by HTTP method:"]
        lines += [f"  {method:<8}: {count}" for method, count in sorted(by_method.items())]

    by_controller = Counter(op.controller_class for op in operations)
    if by_controller:
        lines += ["", "Endpoints by controller:"]
        lines += [f"  {name:<30}: {count} endpoints" for name, count in sorted(by_controller.items())]

    deprecated = [op for op in operations if op.deprecated]
    if deprecated:
        lines += ["", f"Deprecated endpoints: {len(deprecated)}"]
        lines += [f"  {op.http_method} {op.path}" for op in deprecated]

    inferred = [op for op in operations if op.inferred]
    if inferred:
        lines += ["", f"Inferred endpoints (guessed from method names): {len(inferred)}"]
        lines += [f"  {op.http_method} {op.path}  {op.controller_class}.{op.method_name}" for op in inferred]

    if result.errors:
        lines += ["", "Errors encountered:"] + [f"  {e}" for e in result.errors]
    if result.warnings:
        lines += ["", "Warnings:"] + [f"  {w}" for w in result.warnings]

    if operations:
        lines += ["", "API endpoints:", RULE]
        for op in sorted(operations, key=lambda o: (o.path, o.http_method)):
            flag = " [DEPRECATED]" if op.deprecated else ""
            lines.append(
                f"{op.http_method:<7} {_truncate(op.path, PATH_WIDTH):<{PATH_WIDTH}} "
                f"{op.controller_class}.{op.method_name}{flag}"
            )
            if op.parameters:
                params = ", ".join(f"{p.name} ({p.location})" for p in op.parameters)
                lines.append(f"        Parameters: {params}")
    return "\n".join(lines) + "\n"


def _truncate(text: str, width: int) -> str:
    return text if len(text) <= width else text[:width - 3] + "..."

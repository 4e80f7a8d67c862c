"""CLI entry point for apiscan."""

import logging
import time
from pathlib import Path

import click

from apiscan.config import ScanConfig
from apiscan.generator.openapi import OpenApiBuilder, render
from apiscan.generator.report import render_summary
from apiscan.generator.validator import load_text, validate_document, validate_text
from apiscan.parser.base import ScanResult
from apiscan.parser.detect import (
    FrameworkNotDetectedError,
    find_microservices,
    is_independent_microservices,
    require_framework,
)
from apiscan.parser.spring import SpringScanner

SCANNERS = {"Spring": SpringScanner}


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _scan_project(path: Path, forced_framework: str | None) -> ScanResult:
    framework = require_framework(path, forced_framework)
    return SCANNERS[framework]().scan(path)


def _combine_results(path: Path, results: dict[str, ScanResult], duration_ms: int) -> ScanResult:
    """Merge per-service scans into one result rooted at the parent directory."""
    combined = ScanResult(project_path=str(path), framework="Spring Microservices", scan_duration_ms=duration_ms)
    for service, result in results.items():
        combined.operations.extend(result.operations)
        combined.files_scanned += result.files_scanned
        combined.errors.extend(f"[{service}] {e}" for e in result.errors)
        combined.warnings.extend(f"[{service}] {w}" for w in result.warnings)
    return combined


def _write(output: Path, text: str) -> None:
    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(text, encoding="utf-8")
    except OSError as e:
        raise click.ClickException(f"Cannot write {output}: {e}") from e


def _generate(result: ScanResult, config: ScanConfig, output: Path, validate: bool) -> str:
    build = OpenApiBuilder(config).build(result)
    result.warnings.extend(build.warnings)
    text = render(build.document, config.output_format)
    _write(output, text)
    click.echo(f"OpenAPI specification saved: {output.resolve()}")
    if validate:
        errors = validate_document(build.document)
        for location, message in errors.items():
            click.echo(f"  WARNING {location}: {message}", err=True)
        if errors:
            click.echo(f"Structural validation found {len(errors)} issue(s).", err=True)
    return text


@click.group()
def main():
    """apiscan: recover an OpenAPI contract from Spring MVC source code."""
    pass


@main.command()
@click.argument("project_path", default=".", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("-o", "--output", default=None, type=click.Path(path_type=Path), help="Output file (or directory with --microservices-output separate).")
@click.option("-f", "--format", "fmt", default=None, type=click.Choice(["yaml", "json"]), help="Output format.")
@click.option("--framework", default=None, help="Force a framework instead of auto-detecting it.")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging and print the generated document.")
@click.option("--summary/--no-summary", default=True, help="Print a scan summary report.")
@click.option("--microservices-output", default="combined", type=click.Choice(["combined", "separate"]), help="Output mode for independent microservices.")
@click.option("--max-depth", default=None, type=int, help="Rounds of nested schema resolution.")
@click.option("--time-budget", default=None, type=float, help="Seconds allowed for document generation.")
@click.option("--validate/--no-validate", default=True, help="Check the generated document structurally.")
def scan(project_path: Path, output: Path | None, fmt: str | None, framework: str | None, verbose: bool,
         summary: bool, microservices_output: str, max_depth: int | None, time_budget: float | None,
         validate: bool):
    """Scan a Java project and write its OpenAPI specification."""
    _configure_logging(verbose)
    config = ScanConfig.from_env(output_format=fmt, max_schema_depth=max_depth, time_budget_seconds=time_budget)
    path = project_path.resolve()
    click.echo(f"Analyzing project: {path.name}")
    click.echo(f"Location: {path}")

    if is_independent_microservices(path):
        click.echo("Detected microservices architecture")
        _scan_microservices(path, output, config, framework, verbose, summary, microservices_output, validate)
        return

    try:
        result = _scan_project(path, framework)
    except FrameworkNotDetectedError as e:
        raise click.ClickException(f"{e}. Supported frameworks: Spring MVC, Spring Boot") from e
    click.echo(f"Framework detected: {result.framework}")
    click.echo(f"Found {len(result.operations)} API endpoints in {result.scan_duration_ms} ms")

    target = output or Path.cwd() / f"{path.name}-openapi.{config.output_format}"
    text = _generate(result, config, target, validate)
    if verbose:
        click.echo(text)
    if summary:
        click.echo(render_summary(result))


def _scan_microservices(path: Path, output: Path | None, config: ScanConfig, framework: str | None,
                        verbose: bool, summary: bool, mode: str, validate: bool) -> None:
    services = find_microservices(path)
    click.echo(f"Found {len(services)} microservices")
    started = time.monotonic()
    results: dict[str, ScanResult] = {}
    for service in services:
        try:
            result = _scan_project(service, framework)
        except FrameworkNotDetectedError:
            click.echo(f"WARNING: No framework detected for {service.name}, skipping")
            continue
        results[service.name] = result
        click.echo(f"Found {len(result.operations)} endpoints in {service.name} ({result.scan_duration_ms}ms)")
    if not results:
        raise click.ClickException("No microservices could be scanned")
    duration_ms = int((time.monotonic() - started) * 1000)

    if mode == "separate":
        out_dir = output or Path.cwd()
        for name, result in results.items():
            text = _generate(result, config, out_dir / f"{name}-openapi.{config.output_format}", validate)
            if verbose:
                click.echo(text)
            if summary:
                click.echo(render_summary(result))
        return

    combined = _combine_results(path, results, duration_ms)
    target = output or Path.cwd() / f"{path.name}-openapi.{config.output_format}"
    text = _generate(combined, config, target, validate)
    click.echo(f"Total endpoints across all microservices: {len(combined.operations)}")
    if verbose:
        click.echo(text)
    if summary:
        click.echo(render_summary(combined))


@main.command()
@click.argument("document_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def check(document_path: Path):
    """Structurally validate an existing OpenAPI YAML/JSON document."""
    text = document_path.read_text(encoding="utf-8")
    fmt = "json" if document_path.suffix == ".json" else "yaml"
    errors = validate_text(text, fmt)
    if not errors:
        errors = validate_document(load_text(text, fmt))
    for location, message in errors.items():
        click.echo(f"{location}: {message}")
    if errors:
        raise click.ClickException(f"{len(errors)} structural issue(s) in {document_path}")
    click.echo(f"{document_path}: OK")

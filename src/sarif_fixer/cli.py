"""
sarif-fixer CLI - review and fix MISRA violations reported in SARIF logs.

Commands:
    sarif-fixer analyze <sarif>             List resolved violations grouped by file
    sarif-fixer show <sarif> <index>        Rule details and source context
    sarif-fixer locate <sarif> <file> <ln>  Violations covering a source line
    sarif-fixer fix <sarif> <index>         Generate (and optionally apply) an AI fix
    sarif-fixer configure                   Persist completion service settings
    sarif-fixer rules                       List the rule catalog
"""

import asyncio
import logging
from pathlib import Path
from typing import NoReturn

import typer
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from . import __version__
from .analysis import RuleCatalog
from .errors import CompletionError, ConfigurationMissing, SarifFixerError
from .harness import AnalysisSession
from .llm import ConfigStore, parse_config
from .models import ResolvedViolation
from .pipeline import DEFAULT_MARKER, FixPipeline
from .source import fence_language_for

app = typer.Typer(help="Review SARIF rule violations and apply AI-generated fixes")
console = Console()

logger = logging.getLogger(__name__)

WorkspaceOption = typer.Option(None, "--workspace", "-w", help="Root for relative artifact paths (default: cwd)")
CatalogOption = typer.Option(None, "--catalog", help="Rule catalog JSON (default: bundled MISRA C:2012)")
MarkerOption = typer.Option(DEFAULT_MARKER, "--marker", help="Rule family marker used to filter results")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Review SARIF rule violations and apply AI-generated fixes."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _fail(message: str) -> NoReturn:
    console.print(f"[bold red]Error:[/bold red] {message}")
    raise typer.Exit(1)


def _build_pipeline(
    workspace: Path | None,
    catalog: Path | None,
    marker: str,
    **client_options,
) -> FixPipeline:
    try:
        rules = RuleCatalog(catalog) if catalog else RuleCatalog.default()
    except SarifFixerError as e:
        _fail(str(e))
    root = (workspace or Path.cwd()).resolve()
    return FixPipeline(
        rules,
        workspace_roots=[root],
        marker=marker,
        config_store=ConfigStore(),
        client_options=client_options,
    )


def _analyze(pipeline: FixPipeline, sarif: Path) -> AnalysisSession:
    try:
        return asyncio.run(pipeline.analyze(sarif))
    except SarifFixerError as e:
        _fail(str(e))


def _location_text(violation: ResolvedViolation) -> str:
    primary = violation.record.primary_location
    if primary is None:
        return "unknown"
    return f"{primary.uri}:{primary.start_line}:{primary.start_column}"


# =============================================================================
# ANALYZE
# =============================================================================


@app.command()
def analyze(
    sarif: Path = typer.Argument(..., help="SARIF log to analyze"),
    workspace: Path = WorkspaceOption,
    catalog: Path = CatalogOption,
    marker: str = MarkerOption,
):
    """List catalog-resolved violations, grouped by file."""
    pipeline = _build_pipeline(workspace, catalog, marker)
    session = _analyze(pipeline, sarif)

    if not session.violations:
        console.print(f"[yellow]No {marker} violations found in {sarif}.[/yellow]")
        return

    console.print(
        f"\n[bold blue]Found {len(session)} {marker} violation(s)[/bold blue] "
        f"({session.total_records} result(s) in log)\n"
    )
    for uri, entries in session.by_file().items():
        table = Table(title=uri, title_justify="left")
        table.add_column("#", style="bold")
        table.add_column("Rule")
        table.add_column("Level")
        table.add_column("Line")
        table.add_column("Title")
        for index, violation in entries:
            primary = violation.record.primary_location
            table.add_row(
                str(index),
                violation.rule.rule_id,
                violation.record.level,
                f"{primary.start_line}:{primary.start_column}" if primary else "?",
                violation.rule.title,
            )
        console.print(table)


# =============================================================================
# SHOW / LOCATE
# =============================================================================


@app.command()
def show(
    sarif: Path = typer.Argument(..., help="SARIF log to analyze"),
    index: int = typer.Argument(..., help="Violation number from 'analyze'"),
    workspace: Path = WorkspaceOption,
    catalog: Path = CatalogOption,
    marker: str = MarkerOption,
):
    """Show rule details and the source context of one violation."""
    pipeline = _build_pipeline(workspace, catalog, marker)
    session = _analyze(pipeline, sarif)
    try:
        violation = session.get(index)
    except SarifFixerError as e:
        _fail(str(e))

    rule = violation.rule
    details = (
        f"[bold]Rule:[/bold] {rule.rule_id} - {rule.title}\n"
        f"[bold]Reported as:[/bold] {violation.record.rule_id} ({violation.record.level})\n"
        f"[bold]Category / Severity:[/bold] {rule.category} / {rule.severity}\n"
        f"[bold]Message:[/bold] {violation.record.message}\n"
        f"[bold]Location:[/bold] "
        + ", ".join(f"{loc.uri}:{loc.start_line}:{loc.start_column}" for loc in violation.record.locations)
        + f"\n\n{rule.description}\n\n[bold]Remediation:[/bold] {rule.remediation}"
    )
    console.print(Panel(details, title=f"Violation #{index}"))

    snippet = asyncio.run(pipeline.context_for(violation))
    primary = violation.record.primary_location
    language = fence_language_for(primary.uri) if primary else "c"
    start = max(1, primary.start_line - 2) if primary else 1
    console.print(Syntax(snippet, language, line_numbers=True, start_line=start))
    if rule.example:
        console.print(Panel(Syntax(rule.example, language), title="Compliant example"))


@app.command()
def locate(
    sarif: Path = typer.Argument(..., help="SARIF log to analyze"),
    file: str = typer.Argument(..., help="Source file (relative to the workspace or absolute)"),
    line: int = typer.Argument(..., help="1-based line number"),
    workspace: Path = WorkspaceOption,
    catalog: Path = CatalogOption,
    marker: str = MarkerOption,
):
    """List violations whose reported range covers FILE:LINE."""
    pipeline = _build_pipeline(workspace, catalog, marker)
    session = _analyze(pipeline, sarif)
    matches = session.find_at(file, line)
    if not matches:
        console.print(f"[yellow]No violations at {file}:{line}.[/yellow]")
        return
    for index, violation in matches:
        console.print(
            f"[bold]#{index}[/bold] {violation.rule.rule_id} {violation.rule.title} "
            f"({_location_text(violation)})"
        )


# =============================================================================
# FIX
# =============================================================================


@app.command()
def fix(
    sarif: Path = typer.Argument(..., help="SARIF log to analyze"),
    index: int = typer.Argument(..., help="Violation number from 'analyze'"),
    apply: bool = typer.Option(False, "--apply", help="Apply the fix after review"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Apply without asking for confirmation"),
    pacing: float = typer.Option(2.0, help="Seconds to wait before each request"),
    backoff_base: float = typer.Option(60.0, help="Base seconds for 429 backoff without Retry-After"),
    workspace: Path = WorkspaceOption,
    catalog: Path = CatalogOption,
    marker: str = MarkerOption,
):
    """Generate an AI fix for one violation, then optionally apply it."""
    pipeline = _build_pipeline(
        workspace, catalog, marker, pacing_delay=pacing, backoff_base=backoff_base
    )
    session = _analyze(pipeline, sarif)
    try:
        violation = session.get(index)
    except SarifFixerError as e:
        _fail(str(e))

    primary = violation.record.primary_location
    language = fence_language_for(primary.uri) if primary else "c"

    try:
        with console.status(f"Generating fix for {violation.rule.rule_id}..."):
            suggestion = asyncio.run(pipeline.generate_fix(violation))
    except ConfigurationMissing as e:
        _fail(str(e))
    except CompletionError as e:
        _fail(str(e))

    console.print(Panel(Syntax(suggestion.original_code, language), title="Original"))
    console.print(Panel(Syntax(suggestion.fixed_code, language), title="Suggested fix"))
    console.print(Panel(suggestion.explanation, title="Explanation"))

    if not apply:
        return
    if not suggestion.is_usable:
        _fail("The completion service did not return a usable fix; nothing applied.")
    if not yes and not typer.confirm(f"Apply this fix to {_location_text(violation)}?"):
        console.print("[yellow]Fix not applied.[/yellow]")
        return

    try:
        applied = asyncio.run(pipeline.apply(violation, suggestion))
    except SarifFixerError as e:
        _fail(str(e))
    console.print(
        f"[bold green]AI fix applied![/bold green] Original code commented out in "
        f"{applied.path} (lines {applied.start_line}-{applied.new_end_line})."
    )


# =============================================================================
# CONFIGURE / RULES / VERSION
# =============================================================================


@app.command()
def configure(
    provider: str = typer.Option("direct", help="direct | deployment"),
    api_key: str = typer.Option(None, help="API key (prompted if omitted)"),
    endpoint: str = typer.Option(None, help="Chat completions URL (direct) or resource endpoint (deployment)"),
    model: str = typer.Option(None, help="Model name (direct only)"),
    deployment: str = typer.Option(None, help="Deployment name (deployment only)"),
    api_version: str = typer.Option(None, help="API version (deployment only)"),
    clear: bool = typer.Option(False, "--clear", help="Remove the persisted configuration"),
):
    """Persist completion service settings. Environment variables still take precedence."""
    store = ConfigStore()
    if clear:
        removed = store.clear()
        console.print("[green]Configuration removed.[/green]" if removed else "Nothing to remove.")
        return

    if provider not in ("direct", "deployment"):
        _fail("provider must be one of: direct, deployment")

    key = api_key or typer.prompt("Enter your API key", hide_input=True)
    data = {"kind": provider, "api_key": key}
    options = {"endpoint": endpoint, "model": model, "deployment": deployment, "api_version": api_version}
    data.update({k: v for k, v in options.items() if v})

    try:
        config = parse_config(data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        _fail(f"{'.'.join(str(p) for p in first['loc'])}: {first['msg']}")

    store.save(config)
    console.print(f"[bold green]Completion service configured[/bold green] ({config.describe()})")
    console.print(f"Saved to {store.path}")


@app.command()
def rules(catalog: Path = CatalogOption):
    """List the rules in the catalog."""
    try:
        rule_catalog = RuleCatalog(catalog) if catalog else RuleCatalog.default()
    except SarifFixerError as e:
        _fail(str(e))

    table = Table(title=f"Rule catalog ({len(rule_catalog)} rules)")
    table.add_column("Rule", style="bold")
    table.add_column("Category")
    table.add_column("Severity")
    table.add_column("Title")
    for rule in rule_catalog.rules():
        table.add_row(rule.rule_id, rule.category, rule.severity, rule.title)
    console.print(table)


@app.command()
def version():
    """Show sarif-fixer version."""
    console.print(f"sarif-fixer v{__version__}")


if __name__ == "__main__":
    app()

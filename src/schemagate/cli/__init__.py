"""schemagate CLI - JSON Schema evolution checks from the command line."""

import json
import logging
from pathlib import Path
from typing import Annotated, Any

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from schemagate import __version__
from schemagate.config import settings
from schemagate.errors import ErrorCode, SchemaEvolutionError
from schemagate.models.analysis import EvolutionAdvice, EvolutionAnalysis
from schemagate.models.enums import AdviceSeverity, CompatibilityMode
from schemagate.services.analyzer import analyze, coerce_mode
from schemagate.services.history import analyze_history
from schemagate.services.risk import (
    assess_migration_complexity,
    assess_risk,
    check_best_practices,
    check_semantic_versioning,
    estimate_migration_effort,
    suggest_version_bump,
)

app = typer.Typer(
    name="schemagate",
    help="Compatibility analysis for evolving JSON Schemas",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)

# Exit codes: 1 = incompatible change, 2 = unusable input
EXIT_INCOMPATIBLE = 1
EXIT_ERROR = 2

_IMPACT_STYLES = {
    "CRITICAL": "bold red",
    "HIGH": "red",
    "MEDIUM": "yellow",
    "LOW": "dim",
}

ModeOption = Annotated[
    str | None,
    typer.Option("--mode", "-m", help="Compatibility mode: BACKWARD, FORWARD, FULL or NONE"),
]
JsonOption = Annotated[bool, typer.Option("--json", help="Print machine-readable JSON")]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
) -> None:
    """Compatibility analysis for evolving JSON Schemas."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )


def fail(message: str) -> typer.Exit:
    err_console.print(f"[red]Error:[/red] {escape(message)}")
    return typer.Exit(EXIT_ERROR)


def load_schema_file(path: Path) -> Any:
    """Load a JSON or YAML schema document from disk."""
    if not path.exists():
        raise fail(f"Schema file not found: {path}")

    size = path.stat().st_size
    if size > settings.max_schema_size_bytes:
        raise fail(
            f"{ErrorCode.SCHEMA_TOO_LARGE}: {path} is {size} bytes "
            f"(limit {settings.max_schema_size_bytes})"
        )

    try:
        text = path.read_text(encoding="utf-8")
    except (UnicodeDecodeError, OSError) as e:
        raise fail(f"Could not read {path}: {e}") from None

    try:
        if path.suffix.lower() in (".yaml", ".yml"):
            return yaml.safe_load(text)
        return json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise fail(f"Could not parse {path}: {e}") from None


def resolve_mode(mode: str | None) -> CompatibilityMode:
    try:
        return coerce_mode(mode)
    except SchemaEvolutionError as e:
        raise fail(e.message) from None


def print_json(payload: Any) -> None:
    console.print_json(json.dumps(payload), indent=settings.json_indent)


def advice_for(analysis: EvolutionAnalysis) -> list[EvolutionAdvice]:
    return check_best_practices(analysis) + check_semantic_versioning(analysis)


def render_analysis(analysis: EvolutionAnalysis) -> None:
    """Render an analysis as rich tables."""
    if analysis.is_compatible:
        console.print(f"[green]Compatible[/green] under {analysis.mode}")
    else:
        count = len(analysis.breaking_changes)
        console.print(f"[red]Incompatible[/red] under {analysis.mode}: {count} breaking")

    if not analysis.changes:
        console.print("[dim]No changes detected[/dim]")
        return

    table = Table(title="Changes")
    table.add_column("Type", style="bold")
    table.add_column("Field")
    table.add_column("Impact")
    table.add_column("Breaking")
    table.add_column("Description")
    for change in analysis.changes:
        style = _IMPACT_STYLES[change.impact]
        table.add_row(
            str(change.type),
            escape(change.field),
            f"[{style}]{change.impact}[/{style}]",
            "[red]yes[/red]" if change.breaking else "[green]no[/green]",
            escape(change.description),
        )
    console.print(table)

    if analysis.migration_path:
        console.print("\n[bold]Migration path:[/bold]")
        for i, step in enumerate(analysis.migration_path, 1):
            console.print(f"  {i}. [bold]{escape(step.action)}[/bold] ({escape(step.field)})")
            console.print(f"     {escape(step.description)}")
            if step.code:
                for line in step.code.splitlines():
                    console.print(f"     [dim]{escape(line)}[/dim]")

    risk = assess_risk(analysis)
    console.print(f"\n[bold]Overall risk:[/bold] {risk.overall_risk}")
    console.print(f"[bold]Suggested version bump:[/bold] {suggest_version_bump(analysis)}")

    estimate = estimate_migration_effort(analysis)
    console.print(
        f"[bold]Migration complexity:[/bold] {assess_migration_complexity(analysis)} "
        f"(~{estimate.estimated_time_hours}h, confidence {estimate.confidence:.0%})"
    )
    for blocker in estimate.blockers:
        console.print(f"  [red]blocker[/red] {escape(blocker)}")
    for item in advice_for(analysis):
        style = "yellow" if item.severity is AdviceSeverity.WARNING else "dim"
        console.print(f"  [{style}]{item.severity}[/{style}] {escape(item.path)}: {escape(item.message)}")


@app.command("analyze")
def analyze_command(
    old_file: Annotated[Path, typer.Argument(help="Current schema (JSON or YAML)")],
    new_file: Annotated[Path, typer.Argument(help="Proposed schema (JSON or YAML)")],
    mode: ModeOption = None,
    as_json: JsonOption = False,
) -> None:
    """Report every change between two schema versions."""
    compat_mode = resolve_mode(mode)
    old_schema = load_schema_file(old_file)
    new_schema = load_schema_file(new_file)

    try:
        analysis = analyze(old_schema, new_schema, compat_mode)
    except SchemaEvolutionError as e:
        raise fail(f"{e.code}: {e.message}") from None

    if as_json:
        payload = analysis.to_dict()
        payload["risk"] = assess_risk(analysis).to_dict()
        payload["suggestedBump"] = str(suggest_version_bump(analysis))
        payload["complexity"] = str(assess_migration_complexity(analysis))
        payload["estimate"] = estimate_migration_effort(analysis).to_dict()
        payload["advice"] = [a.to_dict() for a in advice_for(analysis)]
        print_json(payload)
        return
    render_analysis(analysis)


@app.command("check")
def check_command(
    old_file: Annotated[Path, typer.Argument(help="Current schema (JSON or YAML)")],
    new_file: Annotated[Path, typer.Argument(help="Proposed schema (JSON or YAML)")],
    mode: ModeOption = None,
) -> None:
    """Exit non-zero when the new schema breaks the compatibility mode."""
    compat_mode = resolve_mode(mode)
    old_schema = load_schema_file(old_file)
    new_schema = load_schema_file(new_file)

    try:
        analysis = analyze(old_schema, new_schema, compat_mode)
    except SchemaEvolutionError as e:
        raise fail(f"{e.code}: {e.message}") from None

    if analysis.is_compatible:
        console.print(f"[green]Compatible[/green] under {compat_mode}")
        return

    console.print(f"[red]Incompatible[/red] under {compat_mode}")
    for change in analysis.breaking_changes:
        console.print(f"  - {change.type}: {escape(change.description)}")
    raise typer.Exit(EXIT_INCOMPATIBLE)


@app.command("history")
def history_command(
    files: Annotated[list[Path], typer.Argument(help="Schema versions, oldest first")],
    mode: ModeOption = None,
    transitive: Annotated[
        bool, typer.Option("--transitive", "-t", help="Check the latest version against all earlier ones")
    ] = False,
    as_json: JsonOption = False,
) -> None:
    """Check compatibility across a sequence of schema versions."""
    if len(files) < 2:
        raise fail("At least two schema versions are required")
    compat_mode = resolve_mode(mode)
    versions = [(path.name, load_schema_file(path)) for path in files]

    entries = analyze_history(versions, compat_mode, transitive=transitive)

    if as_json:
        print_json([entry.to_dict() for entry in entries])
    else:
        table = Table(title=f"Version history ({compat_mode}{', transitive' if transitive else ''})")
        table.add_column("From")
        table.add_column("To")
        table.add_column("Compatible")
        table.add_column("Changes")
        table.add_column("Breaking")
        for entry in entries:
            if entry.analysis is None:
                table.add_row(
                    escape(entry.from_version),
                    escape(entry.to_version),
                    "[red]error[/red]",
                    "-",
                    escape(entry.error or ""),
                )
                continue
            table.add_row(
                escape(entry.from_version),
                escape(entry.to_version),
                "[green]yes[/green]" if entry.is_compatible else "[red]no[/red]",
                str(len(entry.analysis.changes)),
                str(len(entry.analysis.breaking_changes)),
            )
        console.print(table)

    if not all(entry.is_compatible for entry in entries):
        raise typer.Exit(EXIT_INCOMPATIBLE)


@app.command("version")
def version() -> None:
    """Show schemagate version."""
    console.print(f"schemagate {__version__}")


if __name__ == "__main__":
    app()

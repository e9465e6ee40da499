"""CLI entry point for featureslice."""

import json
import logging
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from featureslice.core.config import MigrationScope, load_scope
from featureslice.core.engine import Analysis, Migration
from featureslice.core.exceptions import ConfigError
from featureslice.core.models import SHARED, MigrationReport, RunStatus, Violation

app = typer.Typer(
    name="featureslice",
    help="Migrate a flat front-end codebase into a feature-sliced layout.",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)

_OWNER_STYLES = {SHARED: "magenta"}


def setup_logging(verbose: bool, quiet: bool = False) -> None:
    """Route library logging through rich. Quiet mode keeps JSON output clean."""
    level = logging.DEBUG if verbose else logging.INFO
    if quiet and not verbose:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def get_scope(config: Path) -> MigrationScope:
    """Load the scope, turning config problems into a clean exit."""
    try:
        return load_scope(config)
    except ConfigError as e:
        console.print(f"[red]Config error:[/red] {escape(str(e))}")
        raise typer.Exit(code=2) from e


def print_violations(violations: list[Violation], title: str, style: str) -> None:
    if not violations:
        return
    console.print(f"\n[{style}]{title} ({len(violations)}):[/]")
    for v in violations:
        console.print(f"  [{style}]{v.code}[/] {escape(v.message)}")


def plan_table(analysis: Analysis) -> Table:
    table = Table(title="Classification")
    table.add_column("Source", style="cyan")
    table.add_column("Owner")
    table.add_column("Kind", style="dim")
    table.add_column("Destination", style="green")
    for move in sorted(analysis.plan, key=lambda m: m.source):
        style = _OWNER_STYLES.get(move.owner, "yellow")
        table.add_row(move.source, f"[{style}]{move.owner}[/]", move.kind.value, move.destination)
    return table


def analysis_to_dict(analysis: Analysis) -> dict[str, Any]:
    """JSON form of a plan-only run."""
    errors = [Violation.from_error(e) for e in analysis.errors]
    return {
        "files": [
            {
                "source": m.source,
                "destination": m.destination,
                "classification": m.owner,
                "kind": m.kind.value,
            }
            for m in sorted(analysis.plan, key=lambda m: m.source)
        ],
        "unreached": list(analysis.classification.unreached),
        "cycles": [list(c) for c in analysis.classification.cycles],
        "warnings": [v.to_dict() for v in errors if not v.fatal],
        "violations": [v.to_dict() for v in errors if v.fatal],
    }


@app.command()
def migrate(
    config: Annotated[Path, typer.Argument(help="Migration config (TOML)")],
    dest: Annotated[Path, typer.Argument(help="Destination directory")],
    dry_run: Annotated[
        bool, typer.Option("--dry-run", "-n", help="Validate everything, write nothing")
    ] = False,
    report_path: Annotated[
        Path | None, typer.Option("--report", "-r", help="Write the JSON report here")
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
) -> None:
    """Migrate the configured source tree into DEST."""
    setup_logging(verbose)
    migration = Migration(get_scope(config))

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Indexing", total=None)

        def on_progress(file: str, current: int, total: int) -> None:
            progress.update(task, total=total, completed=current, description=f"[cyan]{file}[/]")

        def on_stage(name: str) -> None:
            progress.update(task, description=f"[bold]{name}[/]")

        try:
            report = migration.run(
                dest, dry_run=dry_run, on_progress=on_progress, on_stage=on_stage
            )
        except ConfigError as e:
            console.print(f"[red]Config error:[/red] {escape(str(e))}")
            raise typer.Exit(code=2) from e

    if report_path is not None:
        report_path.write_text(
            json.dumps(report.to_dict(), indent=2, sort_keys=True) + "\n", encoding="utf-8"
        )

    print_summary(report, dest)
    if report.status == RunStatus.FAILED:
        raise typer.Exit(code=1)


def print_summary(report: MigrationReport, dest: Path) -> None:
    by_owner = report.files_by_owner()
    for owner, files in by_owner.items():
        style = _OWNER_STYLES.get(owner, "yellow")
        console.print(f"  [{style}]{owner}[/]: {len(files)} files")
    if report.unreached:
        console.print(f"  [dim]Unreached: {len(report.unreached)}[/]")
    console.print(
        f"  Persistence calls: {len(report.substituted)} substituted, "
        f"{len(report.flagged)} flagged"
    )

    print_violations(report.warnings, "Warnings", "yellow")
    print_violations(report.fatal, "Violations", "red")

    if report.status == RunStatus.SUCCESS:
        where = "(dry run, nothing written)" if report.dry_run else f"-> {dest}"
        console.print(f"\n[green]SUCCESS[/green] {where}")
    else:
        console.print("\n[red]FAILED[/red] destination left unchanged")


@app.command()
def plan(
    config: Annotated[Path, typer.Argument(help="Migration config (TOML)")],
    output_json: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
) -> None:
    """Show how every file would be classified and where it would go."""
    setup_logging(verbose, quiet=output_json)
    analysis = Migration(get_scope(config)).analyze()

    if output_json:
        print(json.dumps(analysis_to_dict(analysis), indent=2))
        return

    console.print(plan_table(analysis))
    if analysis.classification.unreached:
        console.print("\n[dim]Unreached:[/]")
        for path in analysis.classification.unreached:
            console.print(f"  [dim]{path}[/]")
    for cycle in analysis.classification.cycles:
        console.print(f"[yellow]Cycle:[/] {' <-> '.join(cycle)}")
    errors = [Violation.from_error(e) for e in analysis.errors]
    print_violations([v for v in errors if v.fatal], "Violations", "red")


@app.command()
def explain(
    config: Annotated[Path, typer.Argument(help="Migration config (TOML)")],
    file: Annotated[str, typer.Argument(help="Source path relative to the source root")],
    output_json: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Explain why a file is owned by a feature, SHARED, or unreached."""
    setup_logging(False, quiet=output_json)
    migration = Migration(get_scope(config))
    try:
        result = migration.explain(file)
    except ConfigError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=2) from e

    if output_json:
        print(json.dumps(result, indent=2))
        return

    owner = result["classification"]
    style = _OWNER_STYLES.get(owner, "yellow")
    console.print(f"\n[bold cyan]{result['file']}[/] -> [{style}]{owner}[/]")
    if result["retained"]:
        console.print("  [dim]retained as shared infrastructure[/]")
    if not result["reaching"]:
        console.print("  [dim]No feature entry point reaches this file[/]")
    for feature, chain in result["chains"].items():
        console.print(f"  [green]{feature}[/]:")
        for i, path in enumerate(chain):
            branch = "└─" if i == len(chain) - 1 else "├─"
            console.print(f"    {branch} {path}")
    for name, users in result["used_by"].items():
        if users:
            console.print(f"  [dim]{escape(name)} used by {escape(', '.join(users))}[/]")


if __name__ == "__main__":
    app()

"""
docsync Command Line Interface.

Entry point for running synchronization and managing modules.
"""

import asyncio
import sys

import click
import yaml
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from docsync.config import ConfigurationError, DocsyncConfig, load_config, load_config_from_env
from docsync.generator.base import ProviderError
from docsync.modules.graph import DataIntegrityError
from docsync.orchestrator import (
    SyncError,
    SyncOrchestrator,
    SyncReport,
    SyncState,
    build_orchestrator,
)
from docsync.storage.filestore import FilesystemError
from docsync.utils.logging import configure_logging
from docsync.version import __version__

console = Console()


def run_async(coro):
    """Run an async coroutine in a new event loop."""
    return asyncio.run(coro)


def _load_config(ctx: click.Context) -> DocsyncConfig:
    """Load configuration and set up logging, exiting on errors."""
    config_path = ctx.obj.get("config_path")
    try:
        cfg = load_config(config_path) if config_path else load_config_from_env()
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)
    configure_logging(cfg.logging, verbose=ctx.obj.get("verbose", False))
    return cfg


def _orchestrator(ctx: click.Context) -> SyncOrchestrator:
    return build_orchestrator(_load_config(ctx))


def _print_phase(state: SyncState) -> None:
    if state.units_total and state.units_done == 0:
        console.print(f"[cyan]→ {state.phase.value} ({state.units_total} units)...[/cyan]")


@click.group()
@click.version_option(version=__version__, prog_name="docsync")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True),
    help="Path to configuration file",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, config_path: str | None) -> None:
    """docsync: Incremental documentation synchronization.

    Keeps tiered documentation and module narratives in step with a git
    source tree.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = config_path


@main.command()
@click.option("--since", type=str, default=None, help="Revision to sync from (defaults to last sync)")
@click.option("--dry-run", is_flag=True, help="Show the change set without writing anything")
@click.pass_context
def sync(ctx: click.Context, since: str | None, dry_run: bool) -> None:
    """Synchronize documentation with the current HEAD."""
    orchestrator = _orchestrator(ctx)
    orchestrator.on_progress(_print_phase)

    async def _run() -> SyncReport:
        try:
            return await orchestrator.run(from_revision=since, dry_run=dry_run)
        finally:
            await orchestrator.close()

    try:
        report = run_async(_run())
    except SyncError as e:
        console.print(f"[red]Sync error:[/red] {e}")
        sys.exit(1)

    _display_report(report)
    if not report.succeeded:
        sys.exit(1)


@main.command()
@click.option("--path", "roots", multiple=True, help="Only scan this directory (repeatable)")
@click.option("--dry-run", is_flag=True, help="List files needing documentation without writing")
@click.pass_context
def generate(ctx: click.Context, roots: tuple[str, ...], dry_run: bool) -> None:
    """Document every source file at HEAD that has no current documentation."""
    orchestrator = _orchestrator(ctx)
    orchestrator.on_progress(_print_phase)

    async def _run() -> SyncReport:
        try:
            return await orchestrator.generate_all(roots=list(roots) or None, dry_run=dry_run)
        finally:
            await orchestrator.close()

    try:
        report = run_async(_run())
    except (SyncError, ValueError) as e:
        console.print(f"[red]Generation error:[/red] {e}")
        sys.exit(1)

    _display_report(report, done_title="Generation Complete")
    if dry_run:
        for path in report.change_set.new:
            console.print(f"  [dim]missing[/dim] {path}")
    if not report.succeeded:
        sys.exit(1)


def _display_report(report: SyncReport, done_title: str = "Sync Complete") -> None:
    """Print a sync report."""
    console.print()
    title = "Dry Run" if report.dry_run else done_title
    color = "green" if report.succeeded else "yellow"
    console.print(Panel(f"[bold {color}]{title}[/bold {color}]"))
    console.print(f"Range: {(report.from_revision or '')[:8]}..{(report.to_revision or '')[:8]}")

    if report.change_set is not None:
        _display_changes(report.change_set.summary())
    if report.dry_run:
        return

    table = Table(title="Units", show_header=True)
    table.add_column("Kind", style="cyan")
    table.add_column("Succeeded", justify="right", style="green")
    table.add_column("Skipped", justify="right")
    table.add_column("Requeued", justify="right", style="yellow")
    table.add_column("Failed", justify="right", style="red")
    for label, counts in (("Files", report.files), ("Modules", report.modules)):
        table.add_row(
            label,
            str(counts.succeeded),
            str(counts.skipped),
            str(counts.requeued),
            str(counts.failed),
        )
    console.print(table)

    if report.assignment is not None:
        console.print(
            f"Assignment: {report.assignment.files_assigned} file(s) assigned, "
            f"{len(report.assignment.created)} module(s) created, "
            f"{report.assignment.low_confidence} low confidence"
        )
    for result in report.failures + report.pending:
        console.print(f"[red]✗[/red] {result.kind.value} {result.key}: {result.error}")
    if report.baseline_advanced:
        console.print(f"[green]Baseline advanced to {(report.to_revision or '')[:8]}[/green]")
    else:
        console.print("[yellow]Baseline not advanced[/yellow]")


def _display_changes(summary: dict) -> None:
    table = Table(title="Changes", show_header=False, box=None)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    for change_type, count in summary["by_type"].items():
        table.add_row(change_type.capitalize(), str(count))
    for directory, count in summary["by_directory"].items():
        table.add_row(f"  {directory}", str(count))
    table.add_row("Affected modules", ", ".join(summary["affected_modules"]) or "-")
    console.print(table)


@main.command()
@click.option("--since", type=str, default=None, help="Revision to compare from (defaults to last sync)")
@click.pass_context
def changes(ctx: click.Context, since: str | None) -> None:
    """Show files changed since the last sync."""
    orchestrator = _orchestrator(ctx)
    try:
        change_set = run_async(orchestrator.detect(since))
    except SyncError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    _display_changes(change_set.summary())
    for label, paths in (
        ("new", change_set.new),
        ("changed", change_set.changed),
        ("deleted", change_set.deleted),
    ):
        for path in paths:
            console.print(f"  [dim]{label:>8}[/dim] {path}")


@main.command()
@click.option("--module", "slug", type=str, default=None, help="Show a single module")
@click.pass_context
def status(ctx: click.Context, slug: str | None) -> None:
    """Show module statistics."""
    graph = _orchestrator(ctx).graph

    if slug:
        module = graph.load(slug)
        if module is None:
            console.print(f"[red]Error:[/red] Module not found: {slug}")
            sys.exit(1)
        console.print(Panel(f"[bold blue]{module.module_name}[/bold blue] ({module.module_slug})"))
        console.print(module.module_summary or "[dim]No summary[/dim]")
        console.print()
        for path in module.documented_paths:
            console.print(f"  [green]✓[/green] {path}")
        for path in module.undocumented_files:
            console.print(f"  [yellow]○[/yellow] {path}")
        return

    modules = graph.all_modules()
    if not modules:
        console.print("[yellow]No modules defined.[/yellow]")
        return

    table = Table(title="Modules", show_header=True)
    table.add_column("Slug", style="cyan")
    table.add_column("Name")
    table.add_column("Total", justify="right")
    table.add_column("Documented", justify="right", style="green")
    table.add_column("Undocumented", justify="right", style="yellow")
    for module in modules:
        stats = module.statistics
        table.add_row(
            module.module_slug,
            module.module_name,
            str(stats.total_files),
            str(stats.documented_files),
            str(stats.undocumented_files),
        )
    console.print(table)


@main.command("create-module")
@click.argument("slug")
@click.argument("name")
@click.argument("files", nargs=-1)
@click.option("--description", "-d", default="", help="Module description")
@click.pass_context
def create_module(ctx: click.Context, slug: str, name: str, files: tuple[str, ...], description: str) -> None:
    """Create a module from a list of files."""
    orchestrator = _orchestrator(ctx)

    async def _create() -> None:
        await orchestrator.graph.create(slug, name, description, list(files))
        await orchestrator.assigner.analyze()

    try:
        run_async(_create())
    except DataIntegrityError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    console.print(f"[green]Created module {slug} with {len(files)} file(s)[/green]")


@main.command()
@click.option("--threshold", type=float, default=None, help="Confidence threshold (defaults to config)")
@click.option("--apply", "apply_", is_flag=True, help="Apply recommendations above the threshold")
@click.pass_context
def assign(ctx: click.Context, threshold: float | None, apply_: bool) -> None:
    """Recommend modules for unassigned files."""
    orchestrator = _orchestrator(ctx)
    assigner = orchestrator.assigner

    async def _assign():
        try:
            if apply_:
                return await assigner.auto_assign(threshold)
            return await assigner.recommend(threshold)
        finally:
            await orchestrator.close()

    try:
        outcome = run_async(_assign())
    except ProviderError as e:
        console.print(f"[red]Generator error:[/red] {e}")
        sys.exit(1)
    except (DataIntegrityError, RuntimeError) as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    if apply_:
        console.print(
            f"[green]Assigned {outcome.files_assigned} file(s), "
            f"created {len(outcome.created)} module(s)[/green]"
        )
        if outcome.low_confidence:
            console.print(f"[yellow]{outcome.low_confidence} low-confidence recommendation(s) recorded[/yellow]")
        for error in outcome.errors:
            console.print(f"[red]✗[/red] {error}")
        return

    table = Table(title="Recommendations", show_header=True)
    table.add_column("Action", style="cyan")
    table.add_column("Module")
    table.add_column("Files", justify="right")
    table.add_column("Confidence", justify="right")
    for label, recs in (
        ("assign", outcome.assign_to_existing),
        ("create", outcome.create_new_modules),
        ("low confidence", outcome.low_confidence),
    ):
        for rec in recs:
            table.add_row(label, rec.module or rec.module_slug or "-", str(len(rec.files)), f"{rec.confidence:.2f}")
    console.print(table)
    for error in outcome.errors:
        console.print(f"[red]✗[/red] {error['error']}")


@main.command("sync-assignments")
@click.option("--exclude", "excluded", multiple=True, help="Never document this path (repeatable)")
@click.option("--include", "included", multiple=True, help="Lift an earlier exclusion (repeatable)")
@click.pass_context
def sync_assignments(ctx: click.Context, excluded: tuple[str, ...], included: tuple[str, ...]) -> None:
    """Rebuild the assignment index from module records.

    Exclusions are applied first, so the rebuilt index already reflects them.
    """
    assigner = _orchestrator(ctx).assigner

    async def _sync():
        if excluded:
            await assigner.add_do_not_document(list(excluded))
        if included:
            await assigner.remove_do_not_document(list(included))
        return await assigner.analyze()

    try:
        record = run_async(_sync())
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    for path in excluded:
        console.print(f"[dim]excluded[/dim] {path}")
    for path in included:
        console.print(f"[dim]included[/dim] {path}")

    table = Table(title="Assignment Index", show_header=False, box=None)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Assigned", str(sum(len(v) for v in record.assigned.values())))
    table.add_row("Unassigned", str(len(record.unassigned)))
    table.add_row("Do not document", str(len(record.do_not_document)))
    table.add_row("Potential modules", str(len(record.potential_modules)))
    table.add_row("Conflicts", str(len(record.conflicts)))
    console.print(table)


@main.command()
@click.option("--output", "-o", default=None, help="Index path relative to the project root")
@click.pass_context
def index(ctx: click.Context, output: str | None) -> None:
    """Write the markdown index of all modules."""
    graph = _orchestrator(ctx).graph
    try:
        written = graph.write_index(output)
    except (FilesystemError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    if written is None:
        console.print("[yellow]No modules defined.[/yellow]")
        sys.exit(1)
    console.print(f"[green]Module index written to {written}[/green]")


@main.command()
@click.pass_context
def config(ctx: click.Context) -> None:
    """Display the effective configuration."""
    cfg = _load_config(ctx)
    console.print(Panel("[bold blue]docsync Configuration[/bold blue]", title="Configuration"))
    console.print(yaml.safe_dump(cfg.to_yaml_dict(), sort_keys=False), markup=False, highlight=False)


if __name__ == "__main__":
    main()

"""ctxsync CLI entry point."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

from ctxsync import __version__
from ctxsync.config import (
    CONFIG_FILENAME,
    DEFAULT_EDITOR,
    is_project_initialized,
    load_config,
    write_default_config,
)

if TYPE_CHECKING:
    from rich.console import Console

    from ctxsync.doc_sync.engine import ReconcileResult
    from ctxsync.doc_sync.validation import ValidationIssue, ValidationReport

_PROJECT_OPTION = click.option(
    "--project",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Project root (default: current directory).",
)


@click.group()
@click.version_option(version=__version__, prog_name="ctxsync")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
@click.pass_context
def main(ctx: click.Context, *, verbose: bool, quiet: bool) -> None:
    """ctxsync - context document registry and drift validator."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet

    level = logging.WARNING
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _require_initialized(project_root: Path) -> None:
    if not is_project_initialized(project_root):
        click.echo("Error: project not initialized.", err=True)
        click.echo("  Run `ctxsync init` first to initialize context management.", err=True)
        sys.exit(1)


def _resolve_scope(*, local_only: bool, global_only: bool) -> tuple[bool, bool]:
    """Neither flag means both collections."""
    if not local_only and not global_only:
        return True, True
    return local_only, global_only


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------


@main.command()
@_PROJECT_OPTION
@click.option("--editor", default=DEFAULT_EDITOR, show_default=True, help="Editor identifier.")
@click.option("--force", is_flag=True, help="Reinitialize an existing project.")
def init(*, project: Path | None, editor: str, force: bool) -> None:
    """Create ctx.config.yaml, the global directory and empty registries."""
    from ctxsync.doc_sync.registry import RegistryKind, RegistryStore

    project_root = project or Path.cwd()
    if is_project_initialized(project_root) and not force:
        click.echo(
            f"Error: {CONFIG_FILENAME} already exists. Use --force to reinitialize.",
            err=True,
        )
        sys.exit(1)

    write_default_config(project_root, editor=editor)
    click.echo(f"Created {CONFIG_FILENAME}")

    config = load_config(project_root)
    store = RegistryStore(project_root, config.global_docs.directory)
    for kind in RegistryKind:
        # Existing registries are kept as they are.
        path = store.write(kind, store.read(kind))
        click.echo(f"Wrote {path.relative_to(project_root).as_posix()}")


# ---------------------------------------------------------------------------
# sync
# ---------------------------------------------------------------------------


def _print_reconcile(console: Console, label: str, result: ReconcileResult | None) -> None:
    # Individual warnings and errors are already logged by the engine.
    if result is None:
        return
    console.print(f"[green]✓[/] Synced {result.scanned} {label} context(s)")
    if result.warnings:
        console.print(f"  [yellow]⚠ {len(result.warnings)} warning(s)[/]")
    if result.errors:
        console.print(f"  [red]✗ {len(result.errors)} error(s)[/]")


@main.command("sync")
@click.option("--local", "local_only", is_flag=True, help="Sync local contexts only.")
@click.option("--global", "global_only", is_flag=True, help="Sync global contexts only.")
@_PROJECT_OPTION
def sync_command(*, local_only: bool, global_only: bool, project: Path | None) -> None:
    """Reconcile context documents into the registries.

    Exit codes: 0 = ok, 1 = a registry could not be synced.
    """
    from rich.console import Console

    from ctxsync.doc_sync.engine import sync

    project_root = project or Path.cwd()
    _require_initialized(project_root)
    do_local, do_global = _resolve_scope(local_only=local_only, global_only=global_only)

    result = sync(project_root, local=do_local, global_=do_global)

    console = Console()
    _print_reconcile(console, "local", result.local)
    _print_reconcile(console, "global", result.global_)
    console.print()
    console.print("[bold blue]Sync complete![/]")
    console.print(f"  Local: {result.local_synced}")
    console.print(f"  Global: {result.global_synced}")

    if result.errors:
        console.print(f"[yellow]⚠ {len(result.errors)} error(s) occurred during sync.[/]")
        sys.exit(1)


# ---------------------------------------------------------------------------
# validate
# ---------------------------------------------------------------------------


def _print_issue(console: Console, issue: ValidationIssue, index: int) -> None:
    from rich.markup import escape

    icon = "[red]✗[/]" if issue.status.value == "error" else "[yellow]⚠[/]"
    console.print(f"{index}. {icon} [bold]{escape(issue.document_path)}[/]")
    if issue.target_path:
        console.print(f"   [dim]Target: {escape(issue.target_path)}[/]")
    for check in issue.checks:
        if check.passed or not check.message:
            continue
        code = f"\\[{check.code.value}] " if check.code else ""
        console.print(f"   [dim]{code}{escape(check.message)}[/]")
        if check.suggestion:
            console.print(f"   [dim]→ {escape(check.suggestion)}[/]")
    console.print()


def _print_validation_report(console: Console, report: ValidationReport) -> None:
    from rich.panel import Panel
    from rich.table import Table

    console.print(Panel("Validation Report", border_style="blue"))

    summary = Table(show_header=False, box=None, padding=(0, 1))
    summary.add_column("metric", style="cyan")
    summary.add_column("count", justify="right")
    summary.add_row("Total", str(report.total))
    summary.add_row("Valid", f"[green]{report.valid}[/]")
    summary.add_row("Warnings", f"[yellow]{report.warnings}[/]")
    summary.add_row("Errors", f"[red]{report.errors}[/]")
    console.print(summary)
    console.print()

    errors = [i for i in report.issues if i.status.value == "error"]
    warnings = [i for i in report.issues if i.status.value == "warning"]
    if errors:
        console.print("[bold red]Errors:[/]")
        for index, issue in enumerate(errors, 1):
            _print_issue(console, issue, index)
    if warnings:
        console.print("[bold yellow]Warnings:[/]")
        for index, issue in enumerate(warnings, 1):
            _print_issue(console, issue, index)

    if report.errors:
        console.print("[red]Validation failed. Please fix errors above.[/]")
    elif report.warnings:
        console.print("[yellow]Validation passed with warnings.[/]")
    else:
        console.print("[green]✓ Validation passed![/]")


@main.command()
@click.option("--local", "local_only", is_flag=True, help="Validate local contexts only.")
@click.option("--global", "global_only", is_flag=True, help="Validate global contexts only.")
@click.option("--json", "output_json", is_flag=True, help="Structured JSON output.")
@_PROJECT_OPTION
def validate(
    *,
    local_only: bool,
    global_only: bool,
    output_json: bool,
    project: Path | None,
) -> None:
    """Check registry entries against the files they describe.

    Exit codes: 0 = valid (warnings allowed), 1 = errors found.
    """
    from rich.console import Console

    from ctxsync.doc_sync.validation import validate_project

    project_root = project or Path.cwd()
    _require_initialized(project_root)
    do_local, do_global = _resolve_scope(local_only=local_only, global_only=global_only)

    report = validate_project(project_root, local=do_local, global_=do_global)

    if output_json:
        click.echo(json.dumps(report.to_dict(), ensure_ascii=False, indent=2))
    else:
        _print_validation_report(Console(), report)

    if report.errors:
        sys.exit(1)

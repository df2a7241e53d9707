"""
TreeArchiver CLI Main Entry Point.

Provides the command-line interface for uploading, downloading and
verifying a directory tree against an object store.
"""

from __future__ import annotations

import json
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click
import humanize
from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)
from rich.table import Table

from treearchiver import __version__
from treearchiver.client import create_client
from treearchiver.core.config import ArchiverConfig, load_config
from treearchiver.core.exceptions import CompletionMismatchError, TransferInterrupted
from treearchiver.core.logging import setup_logging
from treearchiver.core.models import (
    MAX_LABEL_WIDTH,
    TransferTotals,
    VerificationEntry,
    VerificationReport,
)
from treearchiver.transfer.manager import TransferManager

console = Console(stderr=True)


class RichProgressDisplay:
    """Progress display backed by a rich progress bar task."""

    def __init__(self, progress: Progress, task: TaskID) -> None:
        self.progress = progress
        self.task = task

    def advance(self, nbytes: int) -> None:
        self.progress.update(self.task, advance=nbytes)


def store_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by every command that talks to the store."""
    func = click.option(
        "--connections",
        type=click.IntRange(min=1),
        help="Maximum concurrent store connections",
    )(func)
    func = click.option("--remote-root", help="Remote directory mirroring LOCAL_ROOT")(func)
    func = click.option(
        "--store",
        "-s",
        required=True,
        type=click.Path(file_okay=False, path_type=Path),
        help="Directory holding the object store",
    )(func)
    return func


def get_manager(
    ctx: click.Context,
    local_root: Path,
    store: Path,
    remote_root: str | None,
    connections: int | None,
) -> TransferManager:
    """Build a transfer manager from the context configuration and overrides."""
    config: ArchiverConfig = ctx.obj["config"]
    store_config = config.store
    updates: dict[str, Any] = {}
    if remote_root is not None:
        updates["remote_root"] = remote_root
    if connections is not None:
        updates["max_connections"] = connections
    if updates:
        store_config = store_config.model_validate({**store_config.model_dump(), **updates})

    client = create_client(store, store_config)
    return TransferManager(client, local_root, config=config.transfer)


def exit_interrupted(ctx: click.Context) -> None:
    console.print("\n[yellow]Operation interrupted[/yellow]")
    ctx.exit(130)


def emit_json(data: dict[str, Any]) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def print_verification_row(entry: VerificationEntry) -> None:
    label = escape(f"[{str(entry.result).center(MAX_LABEL_WIDTH)}]")
    style = "green" if entry.result.is_ok else "red"
    if entry.local_path is not None:
        paths = f"{entry.local_path} <-> {entry.remote_path}"
    else:
        paths = entry.remote_path
    console.print(f"[{style}]{label}[/{style}] {escape(paths)}", highlight=False)


def print_verification_summary(report: VerificationReport, noun: str) -> None:
    table = Table(title=f"Verification summary ({report.direction})")
    table.add_column("Result", style="cyan")
    table.add_column("Count", style="white", justify="right")
    for result, count in sorted(report.counts().items(), key=lambda item: item[0].name):
        table.add_row(str(result), str(count))
    console.print()
    console.print(table)
    ok = report.total - len(report.failures())
    console.print(f"{ok}/{report.total} {noun} verified")


@click.group()
@click.version_option(version=__version__, prog_name="TreeArchiver")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
)
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to the console")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.pass_context
def cli(
    ctx: click.Context,
    config: Path | None,
    verbose: bool,
    json_output: bool,
    quiet: bool,
) -> None:
    """
    TreeArchiver - Bulk transfer of a directory tree to an object store.

    Uploads a local tree, downloads it back, and verifies both directions
    with content checksums.
    """
    ctx.ensure_object(dict)

    loaded = load_config(config)
    if verbose:
        loaded.logging.level = "DEBUG"
    elif quiet:
        loaded.logging.level = "ERROR"
    setup_logging(loaded.logging)

    ctx.obj["config"] = loaded
    ctx.obj["json_output"] = json_output
    ctx.obj["quiet"] = quiet


@cli.command("upload")
@click.argument("local_root", type=click.Path(exists=True, file_okay=False, path_type=Path))
@store_options
@click.pass_context
def upload(
    ctx: click.Context,
    local_root: Path,
    store: Path,
    remote_root: str | None,
    connections: int | None,
) -> None:
    """Upload LOCAL_ROOT to the store."""
    json_output = ctx.obj.get("json_output", False)
    quiet = ctx.obj.get("quiet", False)

    with get_manager(ctx, local_root, store, remote_root, connections) as manager:
        progress = Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            DownloadColumn(binary_units=True),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            console=console,
            disable=quiet or json_output,
        )

        def display_factory(totals: TransferTotals) -> RichProgressDisplay:
            if not (quiet or json_output):
                console.print(
                    f"Bulk upload : [cyan]{escape(str(manager.local_root))}[/cyan] --> "
                    f"[cyan]{escape(manager.client.remote_root)}[/cyan]"
                )
                console.print(f"Total files to upload: {totals.object_count}")
                console.print(
                    f"Total size to upload : {humanize.naturalsize(totals.byte_count, binary=True)} "
                    f"({totals.byte_count})"
                )
                console.print()
            task = progress.add_task("Uploading", total=totals.byte_count)
            return RichProgressDisplay(progress, task)

        try:
            with progress:
                summary = manager.upload_all(display_factory)
        except TransferInterrupted:
            exit_interrupted(ctx)
            return
        except CompletionMismatchError as e:
            console.print(
                f"[red]✗ Upload incomplete: expected {e.expected} objects, "
                f"uploaded {e.actual}[/red]"
            )
            for path in e.abandoned:
                console.print(f"  [red]gave up on[/red] {path}")
            ctx.exit(1)
            return

    if json_output:
        emit_json(summary.to_dict())
        return

    if not quiet:
        console.print(
            f"[green]✓ Uploaded {summary.completed}/{summary.totals.object_count} objects "
            f"({humanize.naturalsize(summary.bytes_transferred, binary=True)})[/green]"
        )
        for warning in summary.warnings:
            console.print(f"[yellow]⚠ {warning}[/yellow]")


@cli.command("download")
@click.argument("local_root", type=click.Path(file_okay=False, path_type=Path))
@store_options
@click.pass_context
def download(
    ctx: click.Context,
    local_root: Path,
    store: Path,
    remote_root: str | None,
    connections: int | None,
) -> None:
    """Download the store contents into LOCAL_ROOT."""
    json_output = ctx.obj.get("json_output", False)

    with get_manager(ctx, local_root, store, remote_root, connections) as manager:
        try:
            with console.status("Downloading...", spinner="dots"):
                summary = manager.download_all()
        except TransferInterrupted:
            exit_interrupted(ctx)
            return

    if json_output:
        emit_json(summary.to_dict())
    else:
        console.print(f"Downloaded {summary.processed}/{summary.observed} objects")
        for path in summary.failed:
            console.print(f"  [red]failed[/red] {path}")

    if not summary.success:
        ctx.exit(1)


@cli.command("verify-local")
@click.argument("local_root", type=click.Path(exists=True, file_okay=False, path_type=Path))
@store_options
@click.pass_context
def verify_local(
    ctx: click.Context,
    local_root: Path,
    store: Path,
    remote_root: str | None,
    connections: int | None,
) -> None:
    """Verify that every entry of LOCAL_ROOT is identical in the store."""
    json_output = ctx.obj.get("json_output", False)
    quiet = ctx.obj.get("quiet", False)
    on_result = None if (json_output or quiet) else print_verification_row

    with get_manager(ctx, local_root, store, remote_root, connections) as manager:
        try:
            report = manager.verify_local(on_result)
        except TransferInterrupted:
            exit_interrupted(ctx)
            return

    if json_output:
        emit_json(report.to_dict())
    elif not quiet:
        print_verification_summary(report, "entries")

    if not report.success:
        ctx.exit(1)


@cli.command("verify-remote")
@click.argument("local_root", type=click.Path(file_okay=False, path_type=Path), default=".")
@store_options
@click.pass_context
def verify_remote(
    ctx: click.Context,
    local_root: Path,
    store: Path,
    remote_root: str | None,
    connections: int | None,
) -> None:
    """Verify that every file in the store can be fetched intact."""
    json_output = ctx.obj.get("json_output", False)
    quiet = ctx.obj.get("quiet", False)
    on_result = None if (json_output or quiet) else print_verification_row

    with get_manager(ctx, local_root, store, remote_root, connections) as manager:
        try:
            report = manager.verify_remote(on_result)
        except TransferInterrupted:
            exit_interrupted(ctx)
            return

    if json_output:
        emit_json(report.to_dict())
    elif not quiet:
        print_verification_summary(report, "files")

    if not report.success:
        ctx.exit(1)


@cli.command("config")
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Write to file")
@click.pass_context
def show_config(ctx: click.Context, output: Path | None) -> None:
    """Show the effective configuration."""
    config: ArchiverConfig = ctx.obj["config"]
    if output is not None:
        config.save(output)
        console.print(f"[green]✓ Configuration written to {output}[/green]")
        return
    emit_json(config.model_dump(mode="json"))


def main() -> None:
    """Main entry point."""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()

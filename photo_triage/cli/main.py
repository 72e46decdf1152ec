"""
Command line front end for cleanup sessions.

Runs analysis, batch review and resets against a JSON collection manifest,
persisting progress in the configured state store.
"""

import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.prompt import Confirm, IntPrompt
from rich.table import Table

from .. import __version__
from ..cleanup import CleanupSession, group_by_month
from ..cleanup.analysis import AnalysisJob
from ..core.config import CleanupSettings
from ..core.types import CleanupBatch, SessionState
from ..shared import format_percent, setup_logging
from .manifest import Manifest

console = Console()


def load_manifest(path: str) -> Manifest:
    """Load a manifest or exit with an error message."""
    try:
        return Manifest.load(Path(path))
    except (OSError, ValueError) as e:
        console.print(f"[red]Error: could not read manifest {path}: {e}[/red]")
        sys.exit(1)


def open_session(ctx: click.Context, manifest: Manifest) -> CleanupSession:
    return CleanupSession.from_settings(manifest.analyzer(), ctx.obj["settings"])


def run_analysis(job: AnalysisJob, quiet: bool) -> bool:
    """Show a progress bar for an analysis job; True if it committed."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        console=console,
        disable=quiet,
    ) as progress:
        task = progress.add_task(f"Analyzing {job.collection_id}...", total=1.0)
        for fraction in job.progress():
            progress.update(task, completed=fraction)

    committed = job.wait()
    if job.error is not None:
        console.print(f"[red]Error: {job.error}[/red]")
    return committed


def print_batch(batch: CleanupBatch, start: int) -> None:
    table = Table(title=f"{batch.collection_id}: {batch.group_count} groups")
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Group", style="magenta")
    table.add_column("Photo")
    table.add_column("Captured", style="green")
    table.add_column("Source")

    for index, photo in enumerate(batch.photos):
        if index < start:
            continue
        table.add_row(
            str(index),
            batch.group_id_for_index(index) or "",
            photo.id,
            photo.captured_at.strftime("%Y-%m-%d %H:%M:%S"),
            photo.source,
        )
    console.print(table)


@click.group()
@click.option(
    "--state-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory holding cleanup progress",
)
@click.option(
    "--backend",
    type=click.Choice(["json", "sqlite", "memory"]),
    default=None,
    help="State store backend",
)
@click.option(
    "--batch-size",
    type=int,
    default=None,
    help="Maximum photos per review batch",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging")
@click.option(
    "-q", "--quiet", is_flag=True, help="Suppress all output except errors"
)
@click.version_option(__version__, prog_name="photo-triage")
@click.pass_context
def cli(
    ctx: click.Context,
    state_dir: Optional[str],
    backend: Optional[str],
    batch_size: Optional[int],
    verbose: bool,
    quiet: bool,
) -> None:
    """
    Review near-duplicate photo groups batch by batch.

    Progress is saved after every step, so a review can be interrupted and
    resumed later.
    """
    setup_logging(verbose=verbose, quiet=quiet)

    overrides: Dict[str, Any] = {}
    if state_dir is not None:
        overrides["state_dir"] = Path(state_dir)
    if backend is not None:
        overrides["store_backend"] = backend
    if batch_size is not None:
        overrides["batch_image_cap"] = batch_size

    try:
        settings = CleanupSettings(**overrides)
    except ValueError as e:
        console.print(f"[red]Error: invalid settings: {e}[/red]")
        sys.exit(1)

    ctx.obj = {"settings": settings, "quiet": quiet}


@cli.command()
@click.argument("manifest", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def status(ctx: click.Context, manifest: str) -> None:
    """Show cleanup progress of every collection in MANIFEST."""
    data = load_manifest(manifest)

    table = Table(title="Cleanup Progress")
    table.add_column("Collection", style="cyan")
    table.add_column("State")
    table.add_column("Groups", justify="right")
    table.add_column("Images left", justify="right")
    table.add_column("Progress", justify="right", style="green")

    with open_session(ctx, data) as session:
        for collection_id in data.collection_ids():
            info = session.get_cleanup_info(collection_id)
            if not info.is_analyzed:
                table.add_row(collection_id, "not analyzed", "-", "-", "-")
                continue
            table.add_row(
                collection_id,
                info.state.value,
                f"{info.processed_groups}/{info.total_groups}",
                str(info.remaining_images),
                format_percent(info.progress),
            )

    console.print(table)


@cli.command()
@click.argument("manifest", type=click.Path(exists=True, dir_okay=False))
@click.argument("collections", nargs=-1, required=True)
@click.pass_context
def analyze(ctx: click.Context, manifest: str, collections: tuple) -> None:
    """Analyze COLLECTIONS from MANIFEST, replacing earlier results."""
    data = load_manifest(manifest)
    quiet = ctx.obj["quiet"]
    failed = False

    with open_session(ctx, data) as session:
        for collection_id in collections:
            if collection_id not in data.collections:
                console.print(f"[red]Error: unknown collection {collection_id}[/red]")
                failed = True
                continue

            job = session.analyze_collection(collection_id, data.photos(collection_id))
            if not run_analysis(job, quiet):
                failed = True
                continue
            if not quiet:
                console.print(
                    f"[green]{collection_id}:[/green] "
                    f"{session.get_total_groups(collection_id)} groups, "
                    f"{session.get_total_images(collection_id)} images"
                )

    if failed:
        sys.exit(1)


@cli.command()
@click.argument("manifest", type=click.Path(exists=True, dir_okay=False))
@click.argument("collection")
@click.option("-y", "--yes", is_flag=True, help="Accept every batch without asking")
@click.option(
    "--round-robin",
    is_flag=True,
    help="Continue with other analyzed collections when this one is done",
)
@click.option(
    "--limit", type=int, default=None, help="Stop after this many batches"
)
@click.pass_context
def review(
    ctx: click.Context,
    manifest: str,
    collection: str,
    yes: bool,
    round_robin: bool,
    limit: Optional[int],
) -> None:
    """Review COLLECTION from MANIFEST one batch at a time."""
    data = load_manifest(manifest)
    if collection not in data.collections:
        console.print(f"[red]Error: unknown collection {collection}[/red]")
        sys.exit(1)
    quiet = ctx.obj["quiet"]

    with open_session(ctx, data) as session:
        if round_robin:
            session.set_round_robin_pool(
                {cid: data.photos(cid) for cid in data.collection_ids()}
            )

        job = session.enter_collection(collection, data.photos(collection))
        if job is not None and not run_analysis(job, quiet):
            sys.exit(1)

        reviewed = 0
        while session.current_batch is not None:
            if limit is not None and reviewed >= limit:
                break

            batch = session.current_batch
            start = session.current_index
            if not quiet:
                print_batch(batch, start)

            if not yes and not Confirm.ask("Done with this batch?", default=True):
                index = IntPrompt.ask("Resume from photo #", default=start)
                session.update_position(index)
                console.print(
                    f"[yellow]Saved position {session.current_index} "
                    f"in {session.foreground_collection}[/yellow]"
                )
                return

            session.advance_batch()
            reviewed += 1

        if session.session_state == SessionState.EXHAUSTED and not quiet:
            console.print("[green]Nothing left to review.[/green]")
        elif not quiet:
            console.print(f"Reviewed {reviewed} batches.")


@cli.command()
@click.argument("manifest", type=click.Path(exists=True, dir_okay=False))
@click.argument("collection")
@click.option("-y", "--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def reset(ctx: click.Context, manifest: str, collection: str, yes: bool) -> None:
    """Forget all review progress of COLLECTION."""
    data = load_manifest(manifest)

    if not yes and not Confirm.ask(f"Reset progress of {collection}?", default=False):
        return

    with open_session(ctx, data) as session:
        session.reset_collection_state(collection)
        remaining = session.get_remaining_groups(collection)

    if not ctx.obj["quiet"]:
        console.print(
            f"[green]Reset {collection}[/green]: {remaining} groups to review "
            f"after re-analysis"
        )


@cli.command()
@click.argument("manifest", type=click.Path(exists=True, dir_okay=False))
def months(manifest: str) -> None:
    """List the month collections of every photo in MANIFEST."""
    data = load_manifest(manifest)

    table = Table(title="Months")
    table.add_column("Month", style="cyan")
    table.add_column("Photos", justify="right", style="green")
    for key, photos in group_by_month(data.all_photos()).items():
        table.add_row(key, str(len(photos)))
    console.print(table)


if __name__ == "__main__":
    cli()

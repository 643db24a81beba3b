"""CLI command for creating torrent files.

Starts a builder task for the given file or directory, follows its progress
and renders the result.
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.filesize import decimal
from rich.markup import escape
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from ccmeta.config.config import get_config
from ccmeta.core.builder import (
    BuildCancelled,
    BuildDone,
    BuilderTask,
    BuildFailed,
    BuildResult,
    create,
)
from ccmeta.core.piece_size import KiB, MiB
from ccmeta.models import BuildOptions, BuildPhase, Config, ErrorKind
from ccmeta.utils.logging_config import LoggingContext

logger = logging.getLogger(__name__)


class PieceSizeParamType(click.ParamType):
    """Piece size in KiB, or in MiB with an ``M`` suffix; converted to bytes."""

    name = "KiB"

    def convert(self, value: Any, param: click.Parameter | None, ctx: click.Context | None) -> int:
        if isinstance(value, int):
            return value
        text = str(value).strip()
        multiplier = KiB
        if text[-1:] in ("M", "m"):
            multiplier = MiB
            text = text[:-1]
        elif text[-1:] in ("K", "k"):
            text = text[:-1]
        try:
            number = int(text)
        except ValueError:
            self.fail(f"{value!r} is not a valid piece size", param, ctx)
        if number <= 0:
            self.fail(f"{value!r} is not a positive piece size", param, ctx)
        return number * multiplier


PIECE_SIZE = PieceSizeParamType()


def default_output_path(source: Path) -> Path:
    """``<cwd>/<basename of source>.torrent``."""
    base = os.path.basename(os.path.normpath(os.path.abspath(source)))
    return Path.cwd() / f"{base}.torrent"


def parse_tracker_tiers(values: tuple[str, ...] | list[str]) -> list[list[str]]:
    """One tier per value; comma-separated URLs share a tier."""
    tiers: list[list[str]] = []
    for value in values:
        tier = [url.strip() for url in value.split(",") if url.strip()]
        if tier:
            tiers.append(tier)
    return tiers


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def follow_progress(task: BuilderTask, console: Console, interval: float) -> BuildResult:
    """Poll ``task`` until it finishes, rendering a piece progress bar."""
    announced = False
    warned = False
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        bar = None
        while True:
            snapshot = task.snapshot()
            if not warned and snapshot.warnings:
                for warning in snapshot.warnings:
                    progress.console.print(f"[yellow]WARNING: {escape(warning)}[/yellow]")
                warned = True
            if not announced and snapshot.total_piece_count:
                progress.console.print(
                    f" {_plural(snapshot.file_count, 'file')}, {decimal(snapshot.total_bytes)}"
                )
                each = "each" if snapshot.total_piece_count > 1 else ""
                progress.console.print(
                    f" {_plural(snapshot.total_piece_count, 'piece')}, "
                    f"{decimal(snapshot.piece_size)} {each}".rstrip()
                )
                announced = True
            if snapshot.phase == BuildPhase.HASHING and bar is None:
                bar = progress.add_task("Hashing", total=snapshot.total_piece_count)
            if bar is not None:
                progress.update(bar, completed=snapshot.current_piece_index)
            if snapshot.done and snapshot.result is not None:
                return snapshot.result
            task.wait(interval)


def describe_failure(result: BuildFailed) -> str:
    """One-line, user-facing description of a failed build."""
    reason = os.strerror(result.os_error_code) if result.os_error_code else result.message
    if result.kind == ErrorKind.PATH_NOT_FOUND:
        return "Cannot find specified input file or directory."
    if result.kind == ErrorKind.IO_READ:
        return f'error reading "{result.path}": {reason}'
    if result.kind == ErrorKind.IO_WRITE:
        return f'error writing "{result.path}": {reason}'
    return result.message


def report_result(console: Console, result: BuildResult) -> None:
    """Print the outcome of a build."""
    if isinstance(result, BuildDone):
        console.print("[green]done![/green]")
        console.print(f"[dim]Info hash: {result.info_hash.hex()}[/dim]")
    elif isinstance(result, BuildCancelled):
        console.print("[yellow]cancelled[/yellow]")
    elif isinstance(result, BuildFailed):
        console.print(f"[red]ERROR: {escape(describe_failure(result))}[/red]")


@click.command("create")
@click.argument("source", type=click.Path(path_type=Path))
@click.option(
    "--outfile",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Save the generated .torrent to this filename",
)
@click.option(
    "--tracker",
    "-t",
    "trackers",
    multiple=True,
    help=(
        "Add a tracker's announce URL. Each -t starts its own tier; "
        "comma-separated URLs in one -t share a tier"
    ),
)
@click.option(
    "--webseed",
    "-w",
    "web_seeds",
    multiple=True,
    help="Add a web seed URL (repeatable)",
)
@click.option("--comment", "-c", type=str, help="Add a comment")
@click.option(
    "--private",
    "-p",
    "is_private",
    is_flag=True,
    help="Allow this torrent to only be used with the specified tracker(s)",
)
@click.option(
    "--source",
    "-r",
    "source_tag",
    type=str,
    help="Set the source for private trackers",
)
@click.option(
    "--piecesize",
    "-s",
    "piece_size",
    type=PIECE_SIZE,
    help="Set the piece size in KiB (or MiB with an M suffix), overriding the default",
)
@click.option("--created-by", type=str, help="Override the 'created by' field")
@click.option("--no-date", is_flag=True, help="Do not record the creation date")
@click.option(
    "--workers",
    type=click.IntRange(1, 64),
    help="Threads hashing pieces concurrently",
)
@click.pass_context
def create_torrent(
    ctx: click.Context,
    source: Path,
    outfile: Path | None,
    trackers: tuple[str, ...],
    web_seeds: tuple[str, ...],
    comment: str | None,
    is_private: bool,
    source_tag: str | None,
    piece_size: int | None,
    created_by: str | None,
    no_date: bool,
    workers: int | None,
) -> None:
    """Create a torrent file from a file or directory.

    Examples:
        ccmeta create /path/to/content -t http://tracker.example.com/announce

        ccmeta create album/ -p -t https://tracker.example.org/announce -s 2M

    """
    console = Console(soft_wrap=True)
    config: Config = get_config()
    create_config = config.create

    tiers = parse_tracker_tiers(trackers) or [
        [url] for url in create_config.default_trackers
    ]
    output = outfile or default_output_path(source)

    options = BuildOptions(
        output_path=output,
        piece_size_override=piece_size,
        trackers=tiers,
        comment=comment,
        is_private=is_private,
        source=source_tag,
        web_seeds=list(web_seeds),
        created_by=created_by or create_config.created_by,
        creation_date=None
        if no_date or not create_config.include_creation_date
        else int(time.time()),
        hash_workers=workers or create_config.hash_workers,
    )

    console.print(f'Creating torrent "{output}"', markup=False)
    with LoggingContext("create_torrent", logger, input_path=str(source)):
        task = create(source, options)
        try:
            result = follow_progress(task, console, create_config.progress_interval)
        except KeyboardInterrupt:
            task.cancel()
            result = task.wait() or BuildCancelled()

    report_result(console, result)
    if not isinstance(result, BuildDone):
        ctx.exit(1)

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import httpx
import typer
from rich.console import Console
from rich.filesize import decimal
from rich.logging import RichHandler
from rich.table import Table
from rich.text import Text

from sizereport.compare import BuildComparison, compare_branch
from sizereport.config import (
    DEFAULT_BRANCH,
    SizeReportConfig,
    default_token,
    load_config,
    normalize_repo,
    save_config,
    split_repo,
)
from sizereport.errors import SizeReportError
from sizereport.filters import build_path_filter
from sizereport.infocard import Infocard, ManualFrameScheduler
from sizereport.infocard_ui import ConsoleSurface
from sizereport.models import FileRecord
from sizereport.report_stream import read_ndjson, to_ndjson
from sizereport.scanner import scan_build_dir_with_progress
from sizereport.size_data import format_size_data
from sizereport.state import BYTE_UNITS, ViewState
from sizereport.travis import TravisClient
from sizereport.tree import build_tree


app = typer.Typer(help="Compare build output sizes between CI builds.")
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging."),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _format_bytes(value: int) -> str:
    return decimal(value)


def _format_delta(value: int) -> str:
    if value == 0:
        return "0 bytes"
    sign = "+" if value > 0 else "-"
    return f"{sign}{decimal(abs(value))}"


def _delta_style(value: int) -> str:
    if value > 0:
        return "red"
    if value < 0:
        return "green"
    return "dim"


def _render_records(title: str, records: list[FileRecord], style: str) -> None:
    if not records:
        return
    table = Table(title=Text(f"{title} ({len(records)})", style=style))
    table.add_column("Path")
    table.add_column("Size", justify="right")
    table.add_column("Gzipped", justify="right")
    for record in sorted(records, key=lambda r: r.path):
        table.add_row(record.path, _format_bytes(record.size), _format_bytes(record.compressed_size))
    console.print(table)


def _render_changed(pairs: list[tuple[FileRecord, FileRecord]]) -> None:
    if not pairs:
        return
    table = Table(title=Text(f"Changed ({len(pairs)})", style="yellow"))
    table.add_column("Path")
    table.add_column("Before", justify="right")
    table.add_column("After", justify="right")
    table.add_column("Change", justify="right")
    table.add_column("Gzipped change", justify="right")
    for old, new in sorted(pairs, key=lambda pair: pair[1].path):
        size_delta = new.size - old.size
        gzip_delta = new.compressed_size - old.compressed_size
        table.add_row(
            new.path,
            _format_bytes(old.size),
            _format_bytes(new.size),
            Text(_format_delta(size_delta), style=_delta_style(size_delta)),
            Text(_format_delta(gzip_delta), style=_delta_style(gzip_delta)),
        )
    console.print(table)


def _render_comparison(comparison: BuildComparison) -> None:
    result = comparison.result
    previous_build = comparison.previous.build
    current_build = comparison.current.build
    if previous_build is not None and current_build is not None:
        console.print(
            f"Comparing build [bold]#{current_build.number}[/bold] "
            f"against previous build [bold]#{previous_build.number}[/bold]"
        )

    _render_records("Added", result.added, "red")
    _render_records("Removed", result.removed, "green")
    _render_changed(result.changed)

    if not result.has_changes:
        console.print("[green]No size changes detected.[/green]")

    total_delta = sum(r.size for r in result.added) - sum(r.size for r in result.removed)
    total_delta += sum(new.size - old.size for old, new in result.changed)
    console.print(
        f"Files: {len(comparison.current)} | Unchanged: {len(result.unchanged)} | "
        f"Total change: {_format_delta(total_delta)}"
    )


def _target_config(repo: str | None, branch: str | None) -> SizeReportConfig:
    if repo is None:
        config = load_config()
    else:
        try:
            config = load_config()
            config.repo = normalize_repo(repo)
        except FileNotFoundError:
            config = SizeReportConfig(repo=normalize_repo(repo), token=default_token())
    if branch:
        config.branch = branch
    return config


async def _fetch_comparison(
    config: SizeReportConfig,
    include: tuple[str, ...],
    exclude: tuple[str, ...],
) -> BuildComparison:
    owner, name = split_repo(config.repo)
    path_filter = build_path_filter([*config.include, *include], [*config.exclude, *exclude])
    async with TravisClient(config.api_url, token=config.token) as client:
        return await compare_branch(client, owner, name, config.branch, path_filter=path_filter)


@app.command()
def init(
    repo: str,
    branch: str = typer.Option(DEFAULT_BRANCH, "--branch", help="Branch whose builds are compared."),
    build_dir: str = typer.Option("build", "--build-dir", help="Directory holding the build output."),
) -> None:
    """Write a .sizereport.json config in the current directory."""
    config = SizeReportConfig(repo=normalize_repo(repo), branch=branch, build_dir=build_dir)
    try:
        split_repo(config.repo)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    path = save_config(config)
    console.print(f"[green]Initialized sizereport[/green] for [bold]{config.repo}[/bold]")
    console.print(f"Config: {path}")
    if config.repo != repo.strip():
        console.print(f"Repo normalized: {repo} -> {config.repo}")
    if not default_token():
        console.print("[yellow]TRAVIS_TOKEN not found in environment; API calls will be anonymous.[/yellow]")


@app.command()
def scan(
    directory: str | None = typer.Argument(
        None,
        help="Build output directory. Defaults to build_dir from the config, or ./build.",
    ),
    include: list[str] | None = typer.Option(
        None, "--include", help="Include glob pattern(s) for files to measure (repeatable)."
    ),
    exclude: list[str] | None = typer.Option(
        None, "--exclude", help="Exclude glob pattern(s) for files to skip (repeatable)."
    ),
) -> None:
    """Measure build output and print the size data line for the CI log."""
    try:
        config = load_config()
    except FileNotFoundError:
        config = None

    root = Path(directory) if directory else (config.build_dir_path if config else Path("build"))
    patterns_in = [*(config.include if config else []), *(include or [])]
    patterns_out = [*(config.exclude if config else []), *(exclude or [])]
    try:
        records = scan_build_dir_with_progress(
            root,
            path_filter=build_path_filter(patterns_in, patterns_out),
            console=console,
        )
    except FileNotFoundError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    except KeyboardInterrupt:
        console.print("[yellow]Scan interrupted.[/yellow]")
        raise typer.Exit(code=130)

    _render_records("Files", records, "bold")
    typer.echo(format_size_data(records))


async def _compare_async(
    repo: str | None,
    branch: str | None,
    include: tuple[str, ...],
    exclude: tuple[str, ...],
    ndjson: bool,
) -> int:
    try:
        config = _target_config(repo, branch)
        comparison = await _fetch_comparison(config, include, exclude)
    except KeyboardInterrupt:
        console.print("[yellow]Compare interrupted.[/yellow]")
        return 130
    except (FileNotFoundError, ValueError, SizeReportError) as exc:
        console.print(f"[red]{exc}[/red]")
        return 1
    except httpx.HTTPError as exc:
        console.print(f"[red]CI request failed:[/red] {exc}")
        return 1

    if ndjson:
        for line in to_ndjson(comparison.stream()):
            typer.echo(line)
    else:
        _render_comparison(comparison)
    return 0


@app.command()
def compare(
    repo: str | None = typer.Argument(None, help="owner/name; defaults to the configured repo."),
    branch: str | None = typer.Option(None, "--branch", help="Branch to compare."),
    include: list[str] | None = typer.Option(
        None, "--include", help="Include glob pattern(s) for paths to compare (repeatable)."
    ),
    exclude: list[str] | None = typer.Option(
        None, "--exclude", help="Exclude glob pattern(s) for paths to ignore (repeatable)."
    ),
    ndjson: bool = typer.Option(
        False, "--ndjson", help="Emit the report as newline-delimited JSON instead of tables."
    ),
) -> None:
    """Compare the latest completed build of a branch with the one before it."""
    raise typer.Exit(
        code=asyncio.run(
            _compare_async(repo, branch, tuple(include or ()), tuple(exclude or ()), ndjson)
        )
    )


async def _show_async(
    repo: str | None,
    branch: str | None,
    report_file: Path | None,
    state: ViewState,
    node_path: str,
) -> int:
    try:
        if report_file is not None:
            with report_file.open("r", encoding="utf-8") as fh:
                tree = build_tree(read_ndjson(fh), state)
        else:
            config = _target_config(repo, branch)
            comparison = await _fetch_comparison(config, (), ())
            tree = build_tree(comparison.stream(), state)
    except KeyboardInterrupt:
        console.print("[yellow]Show interrupted.[/yellow]")
        return 130
    except (FileNotFoundError, ValueError, SizeReportError) as exc:
        console.print(f"[red]{exc}[/red]")
        return 1
    except httpx.HTTPError as exc:
        console.print(f"[red]CI request failed:[/red] {exc}")
        return 1

    node = tree.root.find(node_path)
    if node is None:
        console.print(f"[red]No node at path: {node_path}[/red]")
        return 1

    scheduler = ManualFrameScheduler()
    infocard = Infocard(state, ConsoleSurface(console), scheduler)
    infocard.update_infocard(node)
    scheduler.run_pending()
    infocard.close()
    return 0


@app.command()
def show(
    repo: str | None = typer.Argument(None, help="owner/name; defaults to the configured repo."),
    path: str = typer.Option("", "--path", help="Directory, file or symbol id to describe."),
    branch: str | None = typer.Option(None, "--branch", help="Branch to compare."),
    report_file: Path | None = typer.Option(
        None, "--from-file", help="Read a report saved with `compare --ndjson` instead of calling CI."
    ),
    gzip: bool = typer.Option(False, "--gzip", help="Show gzipped sizes."),
    byteunit: str = typer.Option("KiB", "--byteunit", help=f"One of: {', '.join(BYTE_UNITS)}."),
    types: str | None = typer.Option(
        None, "--types", help="Only count these one-letter symbol types, e.g. 'tr'."
    ),
) -> None:
    """Show the info card of one node of the build comparison tree."""
    if byteunit not in BYTE_UNITS:
        console.print(f"[red]Invalid --byteunit value. Use one of: {', '.join(BYTE_UNITS)}.[/red]")
        raise typer.Exit(code=1)

    state = ViewState([("byteunit", byteunit)])
    state.set_flag("gzip", gzip)
    if types:
        state.set("types", types)
    raise typer.Exit(code=asyncio.run(_show_async(repo, branch, report_file, state, path)))

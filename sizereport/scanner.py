from __future__ import annotations

import zlib
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from sizereport.config import CONFIG_FILENAME
from sizereport.filters import PathFilter
from sizereport.models import FileRecord

if TYPE_CHECKING:
    from rich.console import Console


EXCLUDED_FILENAMES = {CONFIG_FILENAME}
GZIP_LEVEL = 9


def _gzip_file(
    path: Path,
    chunk_size: int = 1024 * 1024,
    *,
    on_chunk: Callable[[int], None] | None = None,
) -> tuple[int, int]:
    """Return the raw and gzip-compressed byte counts of a file, read in chunks."""
    # wbits=31 writes the gzip header and trailer around the deflate stream.
    compressor = zlib.compressobj(GZIP_LEVEL, zlib.DEFLATED, 31)
    size = 0
    compressed_size = 0
    with path.open("rb") as fh:
        while True:
            chunk = fh.read(chunk_size)
            if not chunk:
                break
            size += len(chunk)
            compressed_size += len(compressor.compress(chunk))
            if on_chunk is not None:
                on_chunk(len(chunk))
    compressed_size += len(compressor.flush())
    return size, compressed_size


def _discover_candidates(root: Path, path_filter: PathFilter) -> tuple[list[tuple[Path, str, int]], int]:
    candidates: list[tuple[Path, str, int]] = []
    total_bytes = 0

    for file_path in sorted(root.rglob("*")):
        if not file_path.is_file() or file_path.name in EXCLUDED_FILENAMES:
            continue
        relative_path = file_path.relative_to(root).as_posix()
        if not path_filter.matches(relative_path):
            continue

        size = file_path.stat().st_size
        candidates.append((file_path, relative_path, size))
        total_bytes += size

    return candidates, total_bytes


def _record_from_candidate(
    candidate: tuple[Path, str, int],
    *,
    on_chunk: Callable[[int], None] | None = None,
) -> FileRecord:
    file_path, relative_path, _ = candidate
    size, compressed_size = _gzip_file(file_path, on_chunk=on_chunk)
    return FileRecord(path=relative_path, size=size, compressed_size=compressed_size)


def scan_build_dir(root: Path, *, path_filter: PathFilter | None = None) -> list[FileRecord]:
    root = root.resolve()
    if not root.is_dir():
        raise FileNotFoundError(f"Build directory does not exist: {root}")
    candidates, _ = _discover_candidates(root, path_filter or PathFilter())
    return [_record_from_candidate(candidate) for candidate in candidates]


def scan_build_dir_with_progress(
    root: Path,
    *,
    path_filter: PathFilter | None = None,
    console: "Console | None" = None,
) -> list[FileRecord]:
    from rich.progress import (
        BarColumn,
        DownloadColumn,
        Progress,
        SpinnerColumn,
        TaskProgressColumn,
        TextColumn,
    )

    root = root.resolve()
    if not root.is_dir():
        raise FileNotFoundError(f"Build directory does not exist: {root}")
    path_filter = path_filter or PathFilter()

    if console is not None:
        with console.status("Discovering build files..."):
            candidates, total_bytes = _discover_candidates(root, path_filter)
    else:
        candidates, total_bytes = _discover_candidates(root, path_filter)

    if not candidates:
        return []

    records: list[FileRecord] = []
    with Progress(
        SpinnerColumn(),
        TextColumn("[bold]Measuring"),
        BarColumn(),
        TaskProgressColumn(),
        DownloadColumn(binary_units=True),
        TextColumn("{task.fields[path]}"),
        console=console,
        transient=True,
        expand=True,
    ) as progress:
        task_id = progress.add_task("scan", total=max(total_bytes, 1), path="")
        for candidate in candidates:
            progress.update(task_id, path=candidate[1])
            records.append(
                _record_from_candidate(
                    candidate, on_chunk=lambda delta: progress.advance(task_id, delta)
                )
            )

    return records

from __future__ import annotations

import json
from typing import Any, Iterable, Iterator

from sizereport.errors import MalformedListingError
from sizereport.models import (
    CODE_SYMBOL_TYPE,
    ComparisonResult,
    FileRecord,
    ReportHeader,
    ReportRecord,
)


def _record(data: FileRecord, byte_delta: int, compressed_delta: int, unit: int) -> ReportRecord:
    return ReportRecord(
        path=data.path,
        name=data.name,
        byte_delta=byte_delta,
        compressed_delta=compressed_delta,
        type=CODE_SYMBOL_TYPE,
        unit=unit,
    )


def _by_path(records: list[FileRecord]) -> list[FileRecord]:
    return sorted(records, key=lambda r: r.path)


def transform_changes(result: ComparisonResult) -> Iterator[ReportHeader | ReportRecord]:
    """Flatten a comparison into a header followed by one record per path.

    Records are emitted grouped as added, removed, unchanged, then changed, each
    group in path order. The header comes first because it declares how many
    records follow.
    """
    yield ReportHeader(total=result.total, diff_mode=True)

    for data in _by_path(result.added):
        yield _record(data, data.size, data.compressed_size, 1)
    for data in _by_path(result.removed):
        yield _record(data, -data.size, -data.compressed_size, -1)
    for data in _by_path(result.unchanged):
        yield _record(data, 0, 0, 1)
    for old, new in sorted(result.changed, key=lambda pair: pair[1].path):
        yield _record(
            new,
            new.size - old.size,
            new.compressed_size - old.compressed_size,
            1,
        )


def to_ndjson(stream: Iterable[ReportHeader | ReportRecord]) -> Iterator[str]:
    for item in stream:
        yield json.dumps(item.to_dict(), separators=(",", ":"))


def _require(data: dict[str, Any], key: str, kind: type) -> Any:
    value = data.get(key)
    if not isinstance(value, kind) or (isinstance(value, bool) and kind is not bool):
        raise MalformedListingError(f"Report entry field {key!r} is missing or not {kind.__name__}: {data!r}")
    return value


def read_ndjson(lines: Iterable[str]) -> Iterator[ReportHeader | ReportRecord]:
    """Parse newline-delimited JSON produced by :func:`to_ndjson`.

    The first non-blank line must be the header. Each entry's symbols become
    individual records.
    """
    header_seen = False
    for line in lines:
        line = line.strip()
        if not line:
            continue
        try:
            data = json.loads(line)
        except json.JSONDecodeError as exc:
            raise MalformedListingError(f"Invalid report line: {line[:80]!r}") from exc
        if not isinstance(data, dict):
            raise MalformedListingError(f"Report line is not an object: {line[:80]!r}")

        if not header_seen:
            yield ReportHeader(
                total=_require(data, "total", int),
                diff_mode=_require(data, "diff_mode", bool) if "diff_mode" in data else False,
            )
            header_seen = True
            continue

        path = _require(data, "p", str)
        for symbol in _require(data, "s", list):
            if not isinstance(symbol, dict):
                raise MalformedListingError(f"Symbol entry is not an object: {symbol!r}")
            yield ReportRecord(
                path=path,
                name=_require(symbol, "n", str),
                byte_delta=_require(symbol, "b", int),
                compressed_delta=_require(symbol, "g", int),
                type=_require(symbol, "t", str),
                unit=_require(symbol, "u", int),
            )

    if not header_seen:
        raise MalformedListingError("Report stream is empty; expected a header line.")

from __future__ import annotations

import json
import re
from typing import Any, Iterable

from sizereport.errors import MalformedListingError
from sizereport.models import FileRecord


SIZE_DATA_PREFIX = "Size data: "
_SIZE_DATA_RE = re.compile(r"^Size data: (.*)$", re.MULTILINE)


def format_size_data(records: Iterable[FileRecord]) -> str:
    """Render the single log line a CI job prints so later builds can compare against it."""
    payload = [
        {"path": record.path, "size": record.size, "gzipSize": record.compressed_size}
        for record in sorted(records, key=lambda r: r.path)
    ]
    return SIZE_DATA_PREFIX + json.dumps(payload, separators=(",", ":"))


def _non_negative_int(entry: dict[str, Any], key: str) -> int:
    value = entry.get(key)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise MalformedListingError(f"Size data entry has invalid {key!r}: {entry!r}")
    return value


def parse_size_data(text: str) -> tuple[FileRecord, ...]:
    match = _SIZE_DATA_RE.search(text)
    if match is None:
        raise MalformedListingError("Cannot find size data in build log.")

    try:
        payload = json.loads(match.group(1).strip())
    except json.JSONDecodeError as exc:
        raise MalformedListingError("Size data line is not valid JSON.") from exc
    if not isinstance(payload, list):
        raise MalformedListingError("Size data must be a JSON list of file entries.")

    records: list[FileRecord] = []
    seen: set[str] = set()
    for entry in payload:
        if not isinstance(entry, dict):
            raise MalformedListingError(f"Size data entry is not an object: {entry!r}")
        path = entry.get("path")
        if not isinstance(path, str) or not path:
            raise MalformedListingError(f"Size data entry has invalid 'path': {entry!r}")
        if path in seen:
            raise MalformedListingError(f"Duplicate path in size data: {path}")
        seen.add(path)
        records.append(
            FileRecord(
                path=path,
                size=_non_negative_int(entry, "size"),
                compressed_size=_non_negative_int(entry, "gzipSize"),
            )
        )
    return tuple(records)

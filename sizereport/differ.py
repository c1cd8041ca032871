from __future__ import annotations

import logging
from typing import Iterable

from sizereport.models import BuildSnapshot, ComparisonResult, FileRecord


logger = logging.getLogger(__name__)


def _same_size(old: FileRecord, new: FileRecord) -> bool:
    return old.size == new.size and old.compressed_size == new.compressed_size


def diff_snapshots(
    previous: BuildSnapshot | Iterable[FileRecord],
    current: BuildSnapshot | Iterable[FileRecord],
) -> ComparisonResult:
    """Classify every path of two listings as added, removed, unchanged or changed.

    Paths are matched exactly; a record is unchanged only when both its size and
    its compressed size match the previous build.
    """
    remaining = {record.path: record for record in previous}
    result = ComparisonResult()

    for record in current:
        old = remaining.pop(record.path, None)
        if old is None:
            result.added.append(record)
        elif _same_size(old, record):
            result.unchanged.append(record)
        else:
            result.changed.append((old, record))

    result.removed.extend(remaining.values())

    logger.debug(
        "diff: %d added, %d removed, %d unchanged, %d changed",
        len(result.added),
        len(result.removed),
        len(result.unchanged),
        len(result.changed),
    )
    return result

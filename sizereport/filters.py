from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Iterable

from sizereport.models import FileRecord


def _normalize_pattern(pattern: str) -> str:
    normalized = pattern.strip().replace("\\", "/")
    return normalized[2:] if normalized.startswith("./") else normalized


def _match_pattern(path: str, pattern: str) -> bool:
    if not pattern:
        return False
    if pattern.endswith("/"):
        return path.startswith(pattern)
    candidate = PurePosixPath(path)
    # Bare patterns such as `*.map` match at any depth.
    return candidate.match(pattern) or candidate.match(f"**/{pattern}")


@dataclass(frozen=True, slots=True)
class PathFilter:
    include_patterns: tuple[str, ...] = ()
    exclude_patterns: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.include_patterns and not self.exclude_patterns

    def matches(self, path: str) -> bool:
        if self.include_patterns and not any(
            _match_pattern(path, pattern) for pattern in self.include_patterns
        ):
            return False
        return not any(_match_pattern(path, pattern) for pattern in self.exclude_patterns)

    def apply(self, records: Iterable[FileRecord]) -> tuple[FileRecord, ...]:
        return tuple(record for record in records if self.matches(record.path))


def build_path_filter(
    include_patterns: Iterable[str] | None = None,
    exclude_patterns: Iterable[str] | None = None,
) -> PathFilter:
    return PathFilter(
        include_patterns=tuple(_normalize_pattern(p) for p in include_patterns or () if p),
        exclude_patterns=tuple(_normalize_pattern(p) for p in exclude_patterns or () if p),
    )

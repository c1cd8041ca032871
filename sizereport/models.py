from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


CODE_SYMBOL_TYPE = "t"
COMPLETED_BUILD_STATES = frozenset({"passed"})


@dataclass(frozen=True, slots=True)
class FileRecord:
    path: str
    size: int
    compressed_size: int

    @property
    def name(self) -> str:
        return self.path[self.path.rfind("/") + 1 :]


@dataclass(frozen=True, slots=True)
class BuildInfo:
    id: int
    number: int
    state: str
    branch: str
    job_ids: tuple[int, ...] = ()
    finished_at: str | None = None

    @property
    def is_completed(self) -> bool:
        return self.state in COMPLETED_BUILD_STATES


@dataclass(frozen=True, slots=True)
class BuildSnapshot:
    build: BuildInfo | None
    files: tuple[FileRecord, ...] = ()

    def __iter__(self):
        return iter(self.files)

    def __len__(self) -> int:
        return len(self.files)


@dataclass(slots=True)
class ComparisonResult:
    added: list[FileRecord] = field(default_factory=list)
    removed: list[FileRecord] = field(default_factory=list)
    unchanged: list[FileRecord] = field(default_factory=list)
    changed: list[tuple[FileRecord, FileRecord]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.added) + len(self.removed) + len(self.unchanged) + len(self.changed)

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.removed or self.changed)


@dataclass(frozen=True, slots=True)
class ReportHeader:
    total: int
    diff_mode: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {"total": self.total, "diff_mode": self.diff_mode}


@dataclass(frozen=True, slots=True)
class ReportRecord:
    path: str
    name: str
    byte_delta: int
    compressed_delta: int
    type: str = CODE_SYMBOL_TYPE
    unit: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "p": self.path,
            "s": [
                {
                    "n": self.name,
                    "b": self.byte_delta,
                    "g": self.compressed_delta,
                    "t": self.type,
                    "u": self.unit,
                }
            ],
        }

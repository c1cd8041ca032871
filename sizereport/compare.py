from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from typing import Iterator

from sizereport.differ import diff_snapshots
from sizereport.filters import PathFilter
from sizereport.models import BuildSnapshot, ComparisonResult, ReportHeader, ReportRecord
from sizereport.report_stream import transform_changes
from sizereport.travis import TravisClient


@dataclass(slots=True)
class BuildComparison:
    previous: BuildSnapshot
    current: BuildSnapshot
    result: ComparisonResult

    def stream(self) -> Iterator[ReportHeader | ReportRecord]:
        return transform_changes(self.result)


async def compare_branch(
    client: TravisClient,
    owner: str,
    repo: str,
    branch: str,
    *,
    path_filter: PathFilter | None = None,
) -> BuildComparison:
    current_build, previous_build = await client.resolve_builds(owner, repo, branch, 2)

    # Both builds are known at this point, so the listings are independent reads.
    previous, current = await asyncio.gather(
        client.fetch_file_listing(previous_build),
        client.fetch_file_listing(current_build),
    )

    if path_filter is not None and not path_filter.is_empty:
        previous = replace(previous, files=path_filter.apply(previous.files))
        current = replace(current, files=path_filter.apply(current.files))

    return BuildComparison(
        previous=previous,
        current=current,
        result=diff_snapshots(previous, current),
    )

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from sizereport.config import DEFAULT_API_URL
from sizereport.errors import MalformedListingError, NotFoundError
from sizereport.models import BuildInfo, BuildSnapshot
from sizereport.size_data import parse_size_data


logger = logging.getLogger(__name__)

API_VERSION_HEADER = {"Travis-API-Version": "3"}
DEFAULT_TIMEOUT_SECONDS = 30.0
MIN_COMPARABLE_BUILDS = 2


def _build_from_payload(entry: Any) -> BuildInfo:
    if not isinstance(entry, dict):
        raise MalformedListingError(f"Unexpected build entry from CI API: {entry!r}")
    try:
        branch = entry.get("branch") or {}
        return BuildInfo(
            id=int(entry["id"]),
            number=int(entry["number"]),
            state=str(entry["state"]),
            branch=str(branch.get("name", "")),
            job_ids=tuple(int(job["id"]) for job in entry.get("jobs") or ()),
            finished_at=entry.get("finished_at"),
        )
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise MalformedListingError(f"Unexpected build entry from CI API: {entry!r}") from exc


class TravisClient:
    """Thin async wrapper over the Travis CI v3 API.

    Only the two calls the comparison needs are exposed. Transport failures are
    raised as ``httpx`` errors and never retried here.
    """

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        *,
        token: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        headers = dict(API_VERSION_HEADER)
        if token:
            headers["Authorization"] = f"token {token}"
        self._client = httpx.AsyncClient(
            base_url=api_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "TravisClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, **params: Any) -> httpx.Response:
        logger.debug("GET %s %s", path, params)
        response = await self._client.get(path, params=params or None)
        response.raise_for_status()
        return response

    async def resolve_builds(
        self, owner: str, repo: str, branch: str, count: int = MIN_COMPARABLE_BUILDS
    ) -> list[BuildInfo]:
        """Return up to ``count`` completed builds of ``branch``, newest first."""
        slug = quote(f"{owner}/{repo}", safe="")
        response = await self._get(
            f"/repo/{slug}/builds",
            **{
                "branch.name": branch,
                "state": "passed",
                "limit": max(count, MIN_COMPARABLE_BUILDS),
            },
        )
        payload = response.json()
        entries = payload.get("builds") if isinstance(payload, dict) else None
        if not isinstance(entries, list):
            raise MalformedListingError("CI API response does not contain a build list.")

        builds = [_build_from_payload(entry) for entry in entries]
        completed = sorted(
            (build for build in builds if build.is_completed),
            key=lambda build: build.number,
            reverse=True,
        )

        if len(completed) < MIN_COMPARABLE_BUILDS:
            raise NotFoundError(
                f"Found {len(completed)} completed build(s) for {owner}/{repo}@{branch}; "
                f"at least {MIN_COMPARABLE_BUILDS} are needed to compare."
            )
        return completed[:count]

    async def fetch_file_listing(self, build: BuildInfo) -> BuildSnapshot:
        if not build.job_ids:
            raise MalformedListingError(f"Build #{build.number} has no jobs to read size data from.")
        response = await self._get(f"/job/{build.job_ids[0]}/log.txt")
        files = parse_size_data(response.text)
        logger.debug("build #%d: %d file(s) in size data", build.number, len(files))
        return BuildSnapshot(build=build, files=files)

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from urllib.parse import urlparse


CONFIG_FILENAME = ".sizereport.json"
DEFAULT_API_URL = "https://api.travis-ci.org"
DEFAULT_BRANCH = "master"
DEFAULT_BUILD_DIR = "build"
GITHUB_HOSTS = {"github.com", "www.github.com"}


@dataclass(slots=True)
class SizeReportConfig:
    repo: str
    branch: str = DEFAULT_BRANCH
    build_dir: str = DEFAULT_BUILD_DIR
    api_url: str = DEFAULT_API_URL
    token: str = ""
    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)

    @property
    def owner_and_name(self) -> tuple[str, str]:
        return split_repo(self.repo)

    @property
    def build_dir_path(self) -> Path:
        return Path(self.build_dir).expanduser().resolve()


def config_path(base_dir: Path | None = None) -> Path:
    return (base_dir or Path.cwd()).resolve() / CONFIG_FILENAME


def load_config(base_dir: Path | None = None) -> SizeReportConfig:
    path = config_path(base_dir)
    if not path.exists():
        raise FileNotFoundError(
            f"Config file not found: {path}. Run `sizereport init <owner/repo>` first."
        )

    with path.open("r", encoding="utf-8") as fh:
        data = json.load(fh)

    return SizeReportConfig(
        repo=normalize_repo(data["repo"]),
        branch=data.get("branch", DEFAULT_BRANCH),
        build_dir=data.get("build_dir", DEFAULT_BUILD_DIR),
        api_url=data.get("api_url", DEFAULT_API_URL).rstrip("/"),
        token=data.get("token", "") or default_token(),
        include=list(data.get("include", [])),
        exclude=list(data.get("exclude", [])),
    )


def save_config(config: SizeReportConfig, base_dir: Path | None = None) -> Path:
    path = config_path(base_dir)
    payload = asdict(config)
    payload["repo"] = normalize_repo(str(payload["repo"]))
    # Tokens come from the environment; never persist them.
    payload.pop("token", None)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2)
        fh.write("\n")
    return path


def default_token() -> str:
    return os.getenv("TRAVIS_TOKEN", "")


def split_repo(repo: str) -> tuple[str, str]:
    normalized = normalize_repo(repo)
    owner, sep, name = normalized.partition("/")
    if not sep or not owner or not name or "/" in name:
        raise ValueError(f"Expected a repository in owner/name form, got {repo!r}")
    return owner, name


def normalize_repo(repo: str) -> str:
    value = (repo or "").strip()
    if not value:
        return value

    # `git@github.com:owner/name.git`
    if value.startswith("git@github.com:"):
        return _strip_git_suffix(value.split(":", 1)[1])

    if "://" not in value:
        return _strip_git_suffix(value)

    parsed = urlparse(value)
    if parsed.hostname not in GITHUB_HOSTS:
        return value

    parts = [part for part in parsed.path.split("/") if part]
    return _strip_git_suffix("/".join(parts[:2]))


def _strip_git_suffix(path: str) -> str:
    path = path.strip().strip("/")
    if path.endswith(".git"):
        path = path[:-4]
    return path

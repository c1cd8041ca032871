from __future__ import annotations

import json
from pathlib import Path

import pytest

from sizereport.config import (
    CONFIG_FILENAME,
    DEFAULT_API_URL,
    SizeReportConfig,
    load_config,
    normalize_repo,
    save_config,
    split_repo,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("GoogleChromeLabs/squoosh", "GoogleChromeLabs/squoosh"),
        (" owner/repo/ ", "owner/repo"),
        ("https://github.com/owner/repo", "owner/repo"),
        ("https://github.com/owner/repo.git", "owner/repo"),
        ("https://github.com/owner/repo/tree/master/src", "owner/repo"),
        ("git@github.com:owner/repo.git", "owner/repo"),
        ("https://gitlab.com/owner/repo", "https://gitlab.com/owner/repo"),
        ("", ""),
    ],
)
def test_normalize_repo(value: str, expected: str) -> None:
    assert normalize_repo(value) == expected


def test_split_repo_rejects_incomplete_names() -> None:
    assert split_repo("https://github.com/owner/repo") == ("owner", "repo")
    with pytest.raises(ValueError):
        split_repo("justowner")


def test_save_and_load_config(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("TRAVIS_TOKEN", "from-env")
    config = SizeReportConfig(
        repo="https://github.com/owner/repo",
        branch="main",
        token="should-not-be-saved",
        exclude=["*.map"],
    )

    path = save_config(config, tmp_path)

    assert path == tmp_path.resolve() / CONFIG_FILENAME
    data = json.loads(path.read_text())
    assert data["repo"] == "owner/repo"
    assert "token" not in data

    loaded = load_config(tmp_path)
    assert loaded.repo == "owner/repo"
    assert loaded.branch == "main"
    assert loaded.api_url == DEFAULT_API_URL
    assert loaded.token == "from-env"
    assert loaded.exclude == ["*.map"]
    assert loaded.owner_and_name == ("owner", "repo")


def test_load_config_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError, match="sizereport init"):
        load_config(tmp_path)

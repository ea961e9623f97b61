"""Pytest configuration and fixtures."""

import logging
from collections.abc import Generator
from pathlib import Path

import git
import pytest
import structlog

from tests.repo_helpers import commit_files

# Every setting MigrateSettings reads from the environment.
SETTINGS_ENV = (
    "MODE",
    "ROOT",
    "OUT_CSV",
    "BRANCHES",
    "ALL_BRANCHES",
    "REMOTE",
    "COMMIT",
    "PUSH",
    "ALLOW_DIRTY",
    "EDIT_JENKINS",
    "GITHUB_TOKEN",
    "BACKUP_TOPOLOGY",
    "BACKUP_DIR",
    "STYLE_MODE",
    "EVIDENCE_LINES",
    "DRYRUN_DIFF_FILE",
    "MAX_PM_PATHS_PER_TYPE",
    "PROJECT_NAME",
    "COMMIT_AUTHOR_NAME",
    "COMMIT_AUTHOR_EMAIL",
    "LOG_LEVEL",
    "LOG_FORMAT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Keep the host environment out of settings, and reset logging afterwards."""
    for name in SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)
    yield
    structlog.reset_defaults()
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)


@pytest.fixture
def temp_repo(tmp_path: Path) -> tuple[Path, git.Repo]:
    """Create a temporary git repository with one commit on main."""
    repo_path = tmp_path / "repo"
    repo_path.mkdir()
    repo = git.Repo.init(repo_path, initial_branch="main")

    # Configure git for commits
    with repo.config_writer() as config:
        config.set_value("user", "name", "Test User")
        config.set_value("user", "email", "test@example.com")

    commit_files(repo, {"README.md": "# service\n"}, "Initial commit")
    return repo_path, repo


@pytest.fixture
def remote_repo(
    tmp_path: Path, temp_repo: tuple[Path, git.Repo]
) -> tuple[Path, git.Repo, git.Repo]:
    """temp_repo with a bare repository as origin, main already pushed."""
    repo_path, repo = temp_repo
    bare = git.Repo.init(tmp_path / "origin.git", bare=True)
    origin = repo.create_remote("origin", str(tmp_path / "origin.git"))
    origin.push("main:main")
    origin.fetch()
    return repo_path, repo, bare

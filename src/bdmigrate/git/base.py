"""Version-control interface used by the migration state machine."""

import re
from abc import ABC, abstractmethod
from pathlib import Path

MIGRATION_TAG_PREFIX = "bd-migration:"
MIGRATION_TAG_PATTERN = re.compile(r"^bd-migration:(?P<timestamp>\d{8}_\d{6})\b")
REVERTED_SHA_PATTERN = re.compile(r"This reverts commit ([0-9a-f]{7,40})")


def migration_tag(timestamp: str) -> str:
    """Commit-message marker for the migration run started at timestamp."""
    return f"{MIGRATION_TAG_PREFIX}{timestamp}"


def migration_timestamp(message: str) -> str | None:
    """Run timestamp from a migration commit message, if it carries the tag."""
    match = MIGRATION_TAG_PATTERN.match(message)
    return match["timestamp"] if match else None


class VersionControl(ABC):
    """Abstract base class for the repository the migration runs against."""

    @abstractmethod
    def __init__(self, repo_path: str | Path) -> None:
        pass

    @abstractmethod
    def repo_identifier(self, remote: str) -> str:
        """Remote URL (credentials stripped), else the directory name."""

    @abstractmethod
    def current_branch(self) -> str:
        pass

    @abstractmethod
    def list_remote_branches(self, remote: str) -> list[str]:
        """Fetch and list every branch of remote, without the remote prefix."""

    @abstractmethod
    def checkout(self, branch: str, remote: str) -> None:
        """Check out a local branch, creating it from remote when missing."""

    @abstractmethod
    def is_clean(self) -> bool:
        """True when tracked files have no staged or unstaged changes."""

    @abstractmethod
    def list_files(self) -> list[str]:
        """Tracked plus untracked, non-ignored files, relative to the repo root."""

    @abstractmethod
    def commit(
        self,
        paths: list[Path],
        message: str,
        author_name: str,
        author_email: str,
    ) -> str | None:
        """Stage exactly paths (additions, edits, deletions) and commit them.

        Returns:
            The new commit SHA, or None when nothing was staged
        """

    @abstractmethod
    def push(self, branch: str, remote: str, token: str | None = None) -> None:
        pass

    @abstractmethod
    def commit_message(self, sha: str) -> str:
        pass

    @abstractmethod
    def find_migration_commit(self) -> str | None:
        """Newest migration-tagged commit on HEAD that was not reverted yet."""

    @abstractmethod
    def revert(self, sha: str, author_name: str, author_email: str) -> str:
        """Revert one commit.

        Returns:
            SHA of the revert commit
        """

    def revert_by_tag(self, author_name: str, author_email: str) -> tuple[str, str] | None:
        """Revert the newest un-reverted migration commit.

        Returns:
            (reverted SHA, revert commit SHA), or None when there is nothing
            to revert
        """
        sha = self.find_migration_commit()
        if sha is None:
            return None
        return sha, self.revert(sha, author_name, author_email)

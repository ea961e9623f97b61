"""Pre-migration snapshots of CI files.

Two layouts are supported:

- namespaced: ``<backup root>/<timestamp>/<branch>/<relative path>``, outside
  the normal file positions and never committed.
- sibling: ``<stem>_backup_<timestamp><suffix>`` next to the original,
  committed together with the migrated file.

Timestamps are fixed-width (``%Y%m%d_%H%M%S``), so lexical order is
chronological order. A snapshot is always flushed to disk before the caller
is allowed to modify the original.
"""

from __future__ import annotations

import os
import re
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import structlog

from bdmigrate.errors import BackupError
from bdmigrate.models import BackupTopology

logger = structlog.get_logger(__name__)

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
TIMESTAMP_PATTERN = re.compile(r"^\d{8}_\d{6}$")
SIBLING_PATTERN = re.compile(
    r"^(?P<stem>.+)_backup_(?P<timestamp>\d{8}_\d{6})(?P<suffix>\.[A-Za-z0-9]+)?$"
)


def new_timestamp() -> str:
    """Timestamp identifying one migration run."""
    return datetime.now().strftime(TIMESTAMP_FORMAT)


def is_sibling_backup(relative_path: str) -> bool:
    """Whether a path names a sibling backup file."""
    return SIBLING_PATTERN.match(Path(relative_path).name) is not None


@dataclass(frozen=True)
class BackupHandle:
    """Location of one snapshot and the file it belongs to."""

    relative_path: str
    backup_path: Path
    timestamp: str
    branch: str | None = None


def _write_durably(path: Path, content: bytes, like: Path | None = None) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as handle:
        handle.write(content)
        handle.flush()
        os.fsync(handle.fileno())
    if like is not None and like.exists():
        shutil.copymode(like, path)


def _replace_durably(path: Path, content: bytes) -> None:
    """Overwrite path atomically, keeping its permission bits."""
    tmp = path.with_name(f".{path.name}.bdmigrate.tmp")
    _write_durably(tmp, content, like=path)
    os.replace(tmp, path)


class BackupStore(ABC):
    """Stores and restores pre-migration snapshots for one working tree."""

    topology: BackupTopology

    def __init__(self, root: Path) -> None:
        self.root = root

    @abstractmethod
    def save(
        self,
        relative_path: str,
        content: bytes,
        timestamp: str,
        branch: str | None = None,
    ) -> BackupHandle:
        """Durably store content as the snapshot of relative_path.

        Raises:
            BackupError: If a snapshot with the same key already exists
        """

    @abstractmethod
    def restore(self, handle: BackupHandle) -> bytes:
        """Put the snapshot back in place of the original and drop the snapshot.

        Returns:
            The restored content

        Raises:
            BackupError: If the snapshot no longer exists
        """

    @abstractmethod
    def list_backups(self, branch: str | None = None) -> list[BackupHandle]:
        """All snapshots visible for branch, oldest first."""

    @abstractmethod
    def discard(self, handle: BackupHandle) -> None:
        """Delete a snapshot without restoring it. Missing snapshots are ignored."""

    def drop_generation(self, timestamp: str, branch: str | None = None) -> list[BackupHandle]:
        """Discard every snapshot one run wrote for branch.

        Returns:
            The discarded handles
        """
        dropped = [h for h in self.list_backups(branch) if h.timestamp == timestamp]
        for handle in dropped:
            self.discard(handle)
        if dropped:
            logger.info(
                "backup.generation_dropped",
                timestamp=timestamp,
                branch=branch,
                files=len(dropped),
            )
        return dropped

    def latest(self, relative_path: str, branch: str | None = None) -> BackupHandle | None:
        """Most recent snapshot of one file."""
        matches = [h for h in self.list_backups(branch) if h.relative_path == relative_path]
        return matches[-1] if matches else None

    def latest_generation(self, branch: str | None = None) -> list[BackupHandle]:
        """Every snapshot written by the most recent run for branch."""
        handles = self.list_backups(branch)
        if not handles:
            return []
        newest = handles[-1].timestamp
        return [h for h in handles if h.timestamp == newest]

    def companion_paths(self, handle: BackupHandle) -> list[Path]:
        """Files that must be committed alongside the migrated original."""
        return []


class NamespacedBackupStore(BackupStore):
    """Snapshots under a dedicated directory tree, one subtree per run and branch."""

    topology = BackupTopology.NAMESPACED

    def __init__(self, root: Path, backup_root: Path) -> None:
        super().__init__(root)
        self.backup_root = backup_root

    def _branch_dir(self, timestamp: str, branch: str | None) -> Path:
        base = self.backup_root / timestamp
        return base / branch if branch else base

    def save(
        self,
        relative_path: str,
        content: bytes,
        timestamp: str,
        branch: str | None = None,
    ) -> BackupHandle:
        backup_path = self._branch_dir(timestamp, branch) / relative_path
        if backup_path.exists():
            raise BackupError(f"Backup already exists: {backup_path}")
        _write_durably(backup_path, content, like=self.root / relative_path)
        logger.info("backup.written", path=relative_path, backup=str(backup_path))
        return BackupHandle(relative_path, backup_path, timestamp, branch)

    def restore(self, handle: BackupHandle) -> bytes:
        if not handle.backup_path.is_file():
            raise BackupError(f"Backup not found: {handle.backup_path}")
        content = handle.backup_path.read_bytes()
        target = self.root / handle.relative_path
        target.parent.mkdir(parents=True, exist_ok=True)
        if target.exists():
            _replace_durably(target, content)
        else:
            _write_durably(target, content, like=handle.backup_path)
        handle.backup_path.unlink()
        self._prune(handle.backup_path.parent, self.backup_root / handle.timestamp)
        logger.info(
            "rollback.restored",
            path=handle.relative_path,
            backup=str(handle.backup_path),
        )
        return content

    def discard(self, handle: BackupHandle) -> None:
        handle.backup_path.unlink(missing_ok=True)
        self._prune(handle.backup_path.parent, self.backup_root / handle.timestamp)

    def _prune(self, directory: Path, stop: Path) -> None:
        """Remove now-empty directories from directory up to and including stop."""
        current = directory
        while True:
            try:
                current.rmdir()
            except OSError:
                return
            if current == stop or current == self.backup_root:
                return
            current = current.parent

    def list_backups(self, branch: str | None = None) -> list[BackupHandle]:
        if not self.backup_root.is_dir():
            return []
        handles: list[BackupHandle] = []
        for run_dir in sorted(self.backup_root.iterdir()):
            if not run_dir.is_dir() or not TIMESTAMP_PATTERN.match(run_dir.name):
                continue
            base = run_dir / branch if branch else run_dir
            if not base.is_dir():
                continue
            for path in sorted(base.rglob("*")):
                if path.is_file():
                    handles.append(
                        BackupHandle(
                            relative_path=path.relative_to(base).as_posix(),
                            backup_path=path,
                            timestamp=run_dir.name,
                            branch=branch,
                        )
                    )
        return handles


class SiblingBackupStore(BackupStore):
    """Snapshots stored next to the original as ``<stem>_backup_<ts><suffix>``."""

    topology = BackupTopology.SIBLING

    @staticmethod
    def backup_path_for(original: Path, timestamp: str) -> Path:
        return original.with_name(f"{original.stem}_backup_{timestamp}{original.suffix}")

    def save(
        self,
        relative_path: str,
        content: bytes,
        timestamp: str,
        branch: str | None = None,
    ) -> BackupHandle:
        original = self.root / relative_path
        backup_path = self.backup_path_for(original, timestamp)
        if backup_path.exists():
            raise BackupError(f"Backup already exists: {backup_path}")
        _write_durably(backup_path, content, like=original)
        logger.info("backup.written", path=relative_path, backup=backup_path.name)
        return BackupHandle(relative_path, backup_path, timestamp, branch)

    def restore(self, handle: BackupHandle) -> bytes:
        if not handle.backup_path.is_file():
            raise BackupError(f"Backup not found: {handle.backup_path}")
        content = handle.backup_path.read_bytes()
        target = self.root / handle.relative_path
        # A move, not a copy: once restored the backup no longer exists.
        os.replace(handle.backup_path, target)
        logger.info(
            "rollback.restored",
            path=handle.relative_path,
            backup=handle.backup_path.name,
        )
        return content

    def discard(self, handle: BackupHandle) -> None:
        handle.backup_path.unlink(missing_ok=True)

    def list_backups(self, branch: str | None = None) -> list[BackupHandle]:
        handles: list[BackupHandle] = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = sorted(d for d in dirnames if d != ".git")
            for name in filenames:
                match = SIBLING_PATTERN.match(name)
                if not match:
                    continue
                directory = Path(dirpath)
                original = directory / f"{match['stem']}{match['suffix'] or ''}"
                handles.append(
                    BackupHandle(
                        relative_path=original.relative_to(self.root).as_posix(),
                        backup_path=directory / name,
                        timestamp=match["timestamp"],
                        branch=branch,
                    )
                )
        handles.sort(key=lambda h: (h.timestamp, h.relative_path))
        return handles

    def companion_paths(self, handle: BackupHandle) -> list[Path]:
        return [handle.backup_path]


def create_backup_store(
    topology: BackupTopology,
    root: Path,
    backup_root: Path,
) -> BackupStore:
    """Build the store for the configured topology."""
    if topology is BackupTopology.SIBLING:
        return SiblingBackupStore(root)
    return NamespacedBackupStore(root, backup_root)

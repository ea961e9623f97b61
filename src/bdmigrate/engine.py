"""Migration state machine.

One run executes a single mode (audit, dry-run, apply or rollback) across
one or more branches, strictly one branch and one file at a time:

    checkout -> scan + report -> dispatch(mode) -> branch summary

Checkout failures abort the whole run. Push rejections and impossible
rollbacks fail only the branch they happen on; the run continues and the
caller turns any failed branch into a non-zero exit.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from pathlib import Path

import click
import structlog

from bdmigrate.advice import migration_advice
from bdmigrate.backups import BackupHandle, BackupStore, create_backup_store, new_timestamp
from bdmigrate.classifier import classify_text, read_text
from bdmigrate.config import MigrateSettings
from bdmigrate.discovery import classify_build, list_candidate_files
from bdmigrate.errors import (
    ConfigurationError,
    PreconditionError,
    PushError,
    RepositoryNotFoundError,
    RollbackImpossibleError,
)
from bdmigrate.git import (
    GitPythonVersionControl,
    VersionControl,
    migration_tag,
    migration_timestamp,
)
from bdmigrate.models import BranchSummary, CandidateFile, CIType, Finding, FoundType, Mode
from bdmigrate.report import CsvReportSink
from bdmigrate.transform import (
    TransformOptions,
    changed_lines,
    is_transformable,
    transform,
    unified_diff,
)

logger = structlog.get_logger(__name__)

Echo = Callable[[str], None]


@dataclass(frozen=True)
class ScannedFile:
    """A candidate file with its content as read during the scan."""

    candidate: CandidateFile
    text: str
    finding: Finding


class MigrationStateMachine:
    """Runs one migration mode across the configured branches."""

    def __init__(
        self,
        settings: MigrateSettings,
        vcs: VersionControl,
        store: BackupStore,
        sink: CsvReportSink,
        echo: Echo = click.echo,
        timestamp: str | None = None,
    ) -> None:
        self.settings = settings
        self.mode = settings.validate_inputs()
        self.vcs = vcs
        self.store = store
        self.sink = sink
        self.echo = echo
        self.timestamp = timestamp or new_timestamp()
        self.tag = migration_tag(self.timestamp)
        self.root = settings.root_path
        self.options = TransformOptions(
            edit_jenkins=settings.edit_jenkins,
            project_name=settings.placeholder_project,
        )

    @classmethod
    def from_settings(
        cls,
        settings: MigrateSettings,
        echo: Echo = click.echo,
        timestamp: str | None = None,
    ) -> MigrationStateMachine:
        """Wire the GitPython service, backup store and CSV sink for settings.

        Raises:
            ConfigurationError: If inputs are invalid or ROOT is not a git repo
        """
        settings.validate_inputs()
        try:
            vcs = GitPythonVersionControl(settings.root_path)
        except RepositoryNotFoundError as e:
            raise ConfigurationError(f"ROOT is not a git repo: {settings.root}") from e
        store = create_backup_store(
            settings.backup_topology, settings.root_path, settings.backup_root
        )
        sink = CsvReportSink(settings.out_csv_path)
        return cls(settings, vcs, store, sink, echo=echo, timestamp=timestamp)

    # ------------------------------------------------------------------
    # Pre-flight
    # ------------------------------------------------------------------

    def preflight(self) -> list[str]:
        """Check repository preconditions and resolve the branch list.

        Raises:
            ConfigurationError: If pushing needs a token that is not set
            PreconditionError: If a destructive mode meets a dirty tree
        """
        if self.mode.is_destructive and self.settings.push:
            remote_url = self.vcs.repo_identifier(self.settings.remote)
            if remote_url.startswith("https://") and self.settings.github_token is None:
                raise ConfigurationError(
                    "GITHUB_TOKEN is required when PUSH=1 and the remote is https"
                )

        if (
            self.mode.is_destructive
            and not self.settings.allow_dirty
            and not self.vcs.is_clean()
        ):
            raise PreconditionError(
                "Working tree has uncommitted changes. "
                "Commit or stash them, or set ALLOW_DIRTY=1."
            )

        return self.branches()

    def branches(self) -> list[str]:
        if self.settings.all_branches:
            names = self.vcs.list_remote_branches(self.settings.remote)
            if not names:
                raise ConfigurationError(
                    f"No branches found on remote {self.settings.remote}"
                )
            return names
        if self.settings.branch_list:
            return self.settings.branch_list
        return [self.vcs.current_branch()]

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self) -> list[BranchSummary]:
        """Process every branch in order.

        Returns:
            One summary per processed branch

        Raises:
            MigrateError: On pre-flight failures and checkout failures
        """
        branches = self.preflight()
        self.sink.ensure_header()
        if self.mode is Mode.DRY_RUN and self.settings.dryrun_diff_file is not None:
            self._diff_file().parent.mkdir(parents=True, exist_ok=True)
            self._diff_file().write_text("", encoding="utf-8")

        logger.info(
            "run.start",
            mode=self.mode.value,
            branches=branches,
            tag=self.tag,
        )
        summaries = [self.process_branch(branch) for branch in branches]
        self.echo(f"CSV: {self.sink.path}")
        return summaries

    def process_branch(self, branch: str) -> BranchSummary:
        summary = BranchSummary(branch=branch)
        logger.info("branch.start", branch=branch, mode=self.mode.value)

        self.vcs.checkout(branch, self.settings.remote)

        scanned = self.scan(branch)
        if self.mode is Mode.DRY_RUN:
            scanned = self.preview(scanned, summary)
        summary.findings = self.sink.append(s.finding for s in scanned)

        if self.mode is Mode.APPLY:
            self.apply(branch, scanned, summary)
        elif self.mode is Mode.ROLLBACK:
            self.rollback(branch, summary)

        self._report(summary)
        return summary

    # ------------------------------------------------------------------
    # Scan
    # ------------------------------------------------------------------

    def scan(self, branch: str) -> list[ScannedFile]:
        """Classify every candidate file of the checked-out branch."""
        exclude = []
        if self.settings.backup_root.is_dir():
            exclude.append(self.settings.backup_root)
        candidates = list_candidate_files(self.root, exclude=exclude)
        build = classify_build(
            self.vcs.list_files(), self.settings.max_pm_paths_per_type
        )
        repo = self.vcs.repo_identifier(self.settings.remote)

        scanned: list[ScannedFile] = []
        for candidate in candidates:
            text = read_text(candidate.absolute_path)
            if text is None:
                continue
            classification = classify_text(
                text,
                candidate.relative_path,
                self.settings.style_mode,
                self.settings.evidence_lines,
            )
            if classification is None:
                continue
            changes = ""
            if self.mode is Mode.AUDIT:
                changes = migration_advice(
                    text, classification.ci_type, self.settings.edit_jenkins
                )
            finding = Finding(
                repo=repo,
                branch=branch,
                build_type=build.build_type,
                package_manager_file=build.package_manager_file,
                file_path=candidate.relative_path,
                ci_type=classification.ci_type,
                found_type=classification.found_type,
                invocation_style=classification.invocation_style,
                evidence=classification.evidence,
                migration_changes=changes,
            )
            scanned.append(ScannedFile(candidate, text, finding))

        logger.debug("branch.scanned", branch=branch, findings=len(scanned))
        return scanned

    def _targets(self, scanned: list[ScannedFile]) -> list[ScannedFile]:
        """Direct findings of CI types that are rewritten."""
        return [
            s
            for s in scanned
            if s.finding.found_type is FoundType.DIRECT
            and is_transformable(s.candidate.ci_type, self.settings.edit_jenkins)
        ]

    # ------------------------------------------------------------------
    # Dry-run
    # ------------------------------------------------------------------

    def preview(self, scanned: list[ScannedFile], summary: BranchSummary) -> list[ScannedFile]:
        """Show proposed rewrites without touching the working tree."""
        targets = {id(s) for s in self._targets(scanned)}
        previewed: list[ScannedFile] = []
        for item in scanned:
            if id(item) not in targets:
                previewed.append(item)
                continue
            rel = item.candidate.relative_path
            after = transform(item.text, item.candidate.ci_type, self.options)
            diff = unified_diff(item.text, after, rel)
            if diff:
                summary.diffs += 1
                self._emit_diff(rel, diff)
            finding = replace(
                item.finding, migration_changes=changed_lines(item.text, after)
            )
            previewed.append(replace(item, finding=finding))
        return previewed

    def _diff_file(self) -> Path:
        path = self.settings.dryrun_diff_file.expanduser()
        if not path.is_absolute():
            path = Path.cwd() / path
        return path

    def _emit_diff(self, relative_path: str, diff: str) -> None:
        block = f"---- Proposed diff: {relative_path} ----\n{diff}"
        if not block.endswith("\n"):
            block += "\n"
        self.echo(block.rstrip("\n"))
        if self.settings.dryrun_diff_file is not None:
            with open(self._diff_file(), "a", encoding="utf-8") as handle:
                handle.write(block + "\n")

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    def apply(self, branch: str, scanned: list[ScannedFile], summary: BranchSummary) -> None:
        """Back up, rewrite and (optionally) commit and push changed files."""
        to_stage: list[Path] = []

        for item in scanned:
            candidate = item.candidate
            rel = candidate.relative_path
            if item.finding.found_type is not FoundType.DIRECT:
                continue
            if not is_transformable(candidate.ci_type, self.settings.edit_jenkins):
                if candidate.ci_type is CIType.JENKINS:
                    logger.info("file.skipped", path=rel, reason="EDIT_JENKINS not set")
                    summary.skipped_paths.append(rel)
                continue

            after = transform(item.text, candidate.ci_type, self.options)
            if after == item.text:
                logger.debug("file.unchanged", path=rel)
                continue

            original = candidate.absolute_path.read_bytes()
            handle = self.store.save(rel, original, self.timestamp, branch)
            summary.backups.append(self._display_path(handle))

            with open(candidate.absolute_path, "w", encoding="utf-8", newline="") as out:
                out.write(after)
            logger.info("file.updated", path=rel, branch=branch)

            summary.changed_paths.append(rel)
            to_stage.append(candidate.absolute_path)
            to_stage.extend(self.store.companion_paths(handle))

        if not summary.changed_paths:
            logger.info("branch.no_changes", branch=branch)
            return
        self._commit_and_push(branch, to_stage, f"{self.tag} ({branch})", summary)

    # ------------------------------------------------------------------
    # Rollback
    # ------------------------------------------------------------------

    def rollback(self, branch: str, summary: BranchSummary) -> None:
        """Revert the newest migration commit, else restore the newest backups."""
        reverted = self.vcs.revert_by_tag(
            self.settings.commit_author_name, self.settings.commit_author_email
        )
        if reverted is not None:
            summary.reverted_sha, summary.commit_sha = reverted
            logger.info(
                "rollback.reverted",
                branch=branch,
                reverted=summary.reverted_sha,
                sha=summary.commit_sha,
            )
            # The reverted run's snapshots are now stale and must not be restored later.
            run_ts = migration_timestamp(self.vcs.commit_message(summary.reverted_sha))
            if run_ts is not None:
                dropped = self.store.drop_generation(run_ts, branch)
                summary.dropped_backups.extend(self._display_path(h) for h in dropped)
            if self.settings.push:
                self._push(branch, summary)
            return

        generation = self.store.latest_generation(branch)
        if not generation:
            error = RollbackImpossibleError(branch)
            logger.error("rollback.impossible", branch=branch)
            summary.error = str(error)
            return

        to_stage: list[Path] = []
        for handle in generation:
            companions = self.store.companion_paths(handle)
            self.store.restore(handle)
            summary.restored_paths.append(handle.relative_path)
            to_stage.append(self.root / handle.relative_path)
            to_stage.extend(companions)

        message = f"Rollback {migration_tag(generation[0].timestamp)} ({branch})"
        self._commit_and_push(branch, to_stage, message, summary)

    # ------------------------------------------------------------------
    # Commit / push
    # ------------------------------------------------------------------

    def _commit_and_push(
        self,
        branch: str,
        paths: list[Path],
        message: str,
        summary: BranchSummary,
    ) -> None:
        if not self.settings.commit:
            logger.info("git.commit_skipped", branch=branch, reason="COMMIT not set")
            return
        summary.commit_sha = self.vcs.commit(
            paths,
            message,
            self.settings.commit_author_name,
            self.settings.commit_author_email,
        )
        if summary.commit_sha is not None and self.settings.push:
            self._push(branch, summary)

    def _push(self, branch: str, summary: BranchSummary) -> None:
        token = None
        if self.settings.github_token is not None:
            token = self.settings.github_token.get_secret_value()
        try:
            self.vcs.push(branch, self.settings.remote, token)
        except PushError as e:
            # The local commit stays; only the branch is marked failed.
            logger.error("git.push_failed", branch=branch, error=str(e))
            summary.error = str(e)
            return
        summary.pushed = True

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    def _display_path(self, handle: BackupHandle) -> str:
        try:
            return handle.backup_path.relative_to(self.root).as_posix()
        except ValueError:
            return str(handle.backup_path)

    def _report(self, summary: BranchSummary) -> None:
        logger.info(
            "branch.summary",
            branch=summary.branch,
            findings=summary.findings,
            changed=summary.changed_paths,
            restored=summary.restored_paths,
            dropped_backups=len(summary.dropped_backups),
            backups=len(summary.backups),
            commit=summary.commit_sha,
            pushed=summary.pushed,
            error=summary.error,
        )
        lines = [f"[{summary.branch}] {self.mode.value}: {summary.findings} finding(s)"]
        if self.mode is Mode.DRY_RUN:
            lines.append(f"  proposed diffs: {summary.diffs}")
        for path in summary.changed_paths:
            lines.append(f"  updated: {path}")
        for path in summary.skipped_paths:
            lines.append(f"  skipped: {path}")
        for path in summary.backups:
            lines.append(f"  backup: {path}")
        if summary.reverted_sha:
            lines.append(f"  reverted: {summary.reverted_sha}")
        for path in summary.restored_paths:
            lines.append(f"  restored: {path}")
        for path in summary.dropped_backups:
            lines.append(f"  dropped backup: {path}")
        if self.mode.is_destructive and not summary.changed and not summary.failed:
            lines.append("  no changes")
        if summary.commit_sha:
            lines.append(f"  commit: {summary.commit_sha}")
        if summary.pushed:
            lines.append(f"  pushed: {self.settings.remote}/{summary.branch}")
        if self.mode is Mode.APPLY and summary.changed_paths and not self.settings.commit:
            lines.append("  not committed (COMMIT not set)")
        if summary.error:
            lines.append(f"  error: {summary.error}")
        self.echo("\n".join(lines))

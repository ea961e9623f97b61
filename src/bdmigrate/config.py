"""bd-migrate configuration.

Settings are read from (unprefixed) environment variables, the same names
the pipeline steps that drive the migration already export: MODE, ROOT,
OUT_CSV, BRANCHES, ALL_BRANCHES, REMOTE, COMMIT, PUSH, ALLOW_DIRTY,
EDIT_JENKINS and GITHUB_TOKEN. CLI options override the environment.

The settings object is frozen once built and handed to the state machine;
components never read the environment themselves.
"""

from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from bdmigrate.errors import ConfigurationError
from bdmigrate.models import BackupTopology, Mode, StyleMode

DEFAULT_BACKUP_DIR = Path(".migrate_backups")
DEFAULT_EVIDENCE_LINES = 12
DEFAULT_MAX_PM_PATHS_PER_TYPE = 10


class MigrateSettings(BaseSettings):
    """Immutable run configuration."""

    model_config = SettingsConfigDict(
        env_prefix="",
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
    )

    mode: str = Field(
        default="",
        description="Run mode: audit, dry-run, apply or rollback",
    )
    root: Path = Field(
        default=Path("."),
        description="Path to the repository to migrate",
    )
    out_csv: Path | None = Field(
        default=None,
        description="CSV report path; relative paths resolve against the cwd",
    )
    branches: str = Field(
        default="",
        description="Comma-separated branches to process",
    )
    all_branches: bool = Field(
        default=False,
        description="Process every branch of the remote",
    )
    remote: str = Field(default="origin", description="Git remote name")
    commit: bool = Field(default=False, description="Commit applied changes")
    push: bool = Field(default=False, description="Push commits to the remote")
    allow_dirty: bool = Field(
        default=False,
        description="Allow apply/rollback on a working tree with local changes",
    )
    edit_jenkins: bool = Field(
        default=False,
        description="Opt in to rewriting Jenkinsfiles",
    )
    github_token: SecretStr | None = Field(
        default=None,
        description="Token used for pushes to https GitHub remotes",
    )

    # Backups
    backup_topology: BackupTopology = Field(
        default=BackupTopology.NAMESPACED,
        description="namespaced (backup directory tree) or sibling (file_backup_TS.ext)",
    )
    backup_dir: Path = Field(
        default=DEFAULT_BACKUP_DIR,
        description="Backup tree for the namespaced topology, relative to ROOT",
    )

    # Reporting
    style_mode: StyleMode = Field(
        default=StyleMode.COMPOUND,
        description="Report every invocation style found, or only the strongest",
    )
    evidence_lines: int = Field(
        default=DEFAULT_EVIDENCE_LINES,
        ge=1,
        le=50,
        description="Maximum evidence lines kept per finding",
    )
    dryrun_diff_file: Path | None = Field(
        default=None,
        description="Optional file that also receives dry-run diffs",
    )
    max_pm_paths_per_type: int = Field(
        default=DEFAULT_MAX_PM_PATHS_PER_TYPE,
        ge=1,
        description="Package-manager files listed per build type",
    )

    # Inserted placeholders and commits
    project_name: str | None = Field(
        default=None,
        description="Black Duck project name used in inserted placeholder blocks",
    )
    commit_author_name: str = Field(default="bd-migrate")
    commit_author_email: str = Field(default="bd-migrate@localhost")

    # Logging
    log_level: str = Field(
        default="info",
        description="Logging level (debug, info, warning, error)",
    )
    log_format: str = Field(
        default="console",
        description="Log output format (console or json)",
    )

    @property
    def run_mode(self) -> Mode:
        """The validated run mode.

        Raises:
            ConfigurationError: If MODE is missing or not recognised
        """
        if not self.mode:
            raise ConfigurationError(
                "MODE is required (audit|dry-run|apply|rollback)"
            )
        try:
            return Mode(self.mode)
        except ValueError:
            raise ConfigurationError(f"Invalid MODE={self.mode}") from None

    @property
    def root_path(self) -> Path:
        return self.root.expanduser().resolve()

    @property
    def out_csv_path(self) -> Path:
        """Absolute report path.

        Raises:
            ConfigurationError: If OUT_CSV is not set
        """
        if self.out_csv is None:
            raise ConfigurationError("OUT_CSV is required")
        path = self.out_csv.expanduser()
        if not path.is_absolute():
            path = Path.cwd() / path
        return path

    @property
    def backup_root(self) -> Path:
        path = self.backup_dir.expanduser()
        if not path.is_absolute():
            path = self.root_path / path
        return path

    @property
    def branch_list(self) -> list[str]:
        """Explicit branches, trimmed and de-duplicated in order."""
        seen: list[str] = []
        for raw in self.branches.split(","):
            name = raw.strip()
            if name and name not in seen:
                seen.append(name)
        return seen

    @property
    def placeholder_project(self) -> str:
        return self.project_name or self.root_path.name or "my-project"

    def validate_inputs(self) -> Mode:
        """Check configuration that does not need the repository.

        Returns:
            The validated run mode

        Raises:
            ConfigurationError: On the first invalid input
        """
        mode = self.run_mode
        _ = self.out_csv_path
        if not self.root_path.is_dir():
            raise ConfigurationError(f"ROOT not found: {self.root}")
        if self.log_format not in ("console", "json"):
            raise ConfigurationError(
                f"Invalid LOG_FORMAT={self.log_format} (console|json)"
            )
        return mode

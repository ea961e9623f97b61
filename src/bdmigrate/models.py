"""Enumerations and dataclasses shared across bd-migrate components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class Mode(str, Enum):
    """Global run mode, selected once per invocation."""

    AUDIT = "audit"
    DRY_RUN = "dry-run"
    APPLY = "apply"
    ROLLBACK = "rollback"

    @property
    def is_destructive(self) -> bool:
        return self in (Mode.APPLY, Mode.ROLLBACK)


class CIType(str, Enum):
    """CI system owning a candidate file."""

    TRAVIS = "travis"
    AZURE_DEVOPS = "azure_devops"
    GITHUB_ACTIONS = "github_actions"
    BAMBOO = "bamboo"
    JENKINS = "jenkins"
    BRIDGE_CONFIG = "bridge_config"
    UNKNOWN = "unknown"


class FoundType(str, Enum):
    """Strength of vendor-A evidence in a file."""

    DIRECT = "direct"
    INDIRECT = "indirect"
    NONE = "none"


class BackupTopology(str, Enum):
    """Where pre-migration snapshots are kept."""

    NAMESPACED = "namespaced"
    SIBLING = "sibling"


class StyleMode(str, Enum):
    """How invocation styles are reported when several signals co-occur."""

    COMPOUND = "compound"
    CASCADE = "cascade"


class InvocationStyle(str, Enum):
    """Integration idiom detected in a file."""

    GITHUB_ACTION_SYNOPSYS_ACTION = "github_action_synopsys_action"
    ADO_TASK_SYNOPSYS_SECURITY_SCAN = "ado_task_synopsys_security_scan"
    ADO_TASK_SYNOPSYS_BRIDGE = "ado_task_synopsys_bridge"
    ADO_TASK_BLACKDUCK_SECURITY_SCAN = "ado_task_blackduck_security_scan"
    ADO_TASK_EXTENSION = "ado_task_extension"
    BRIDGE_CLI = "bridge_cli"
    COVERITY_CLI = "coverity_cli"
    JENKINS_COVERITY_PLUGIN_STEPS = "jenkins_coverity_plugin_steps"
    POLARIS_ENV_OR_CONFIG = "polaris_env_or_config"
    BRIDGE_CONFIG_FILE = "bridge_config_file"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class CandidateFile:
    """A CI configuration file found in the working tree."""

    relative_path: str
    absolute_path: Path
    ci_type: CIType


@dataclass(frozen=True)
class BuildInfo:
    """Result of the build classifier for one checkout."""

    build_type: str = "unknown"
    package_manager_file: str = "unknown"


@dataclass(frozen=True)
class Finding:
    """Classification of one candidate file on one branch."""

    repo: str
    branch: str
    build_type: str
    package_manager_file: str
    file_path: str
    ci_type: CIType
    found_type: FoundType
    invocation_style: str
    evidence: tuple[str, ...] = ()
    migration_changes: str = ""


@dataclass
class BranchSummary:
    """What happened on one branch during a run."""

    branch: str
    findings: int = 0
    changed_paths: list[str] = field(default_factory=list)
    skipped_paths: list[str] = field(default_factory=list)
    backups: list[str] = field(default_factory=list)
    diffs: int = 0
    commit_sha: str | None = None
    pushed: bool = False
    reverted_sha: str | None = None
    restored_paths: list[str] = field(default_factory=list)
    dropped_backups: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def changed(self) -> bool:
        return bool(self.changed_paths or self.restored_paths or self.reverted_sha)

    @property
    def failed(self) -> bool:
        return self.error is not None

"""Candidate file discovery, CI-type resolution and build classification."""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from pathlib import Path

from bdmigrate.backups import is_sibling_backup
from bdmigrate.models import BuildInfo, CandidateFile, CIType

# Glob patterns, relative to the repository root, in report order.
PIPELINE_GLOBS: tuple[str, ...] = (
    ".travis.yml",
    "azure-pipelines.yml",
    "azure-pipelines.yaml",
    ".github/workflows/*.yml",
    ".github/workflows/*.yaml",
    "bamboo-specs/**/*.yml",
    "bamboo-specs/**/*.yaml",
    "**/bamboo-specs.yml",
    "**/bamboo-specs.yaml",
    "bridge.yml",
    "bridge.yaml",
    "Jenkinsfile*",
)

_YAML_SUFFIXES = (".yml", ".yaml")


def _is_workflow(rel: str) -> bool:
    return rel.startswith(".github/workflows/") and rel.endswith(_YAML_SUFFIXES)


# Evaluated top to bottom; the first matching predicate decides.
CI_TYPE_RULES: tuple[tuple[Callable[[str], bool], CIType], ...] = (
    (lambda rel: rel == ".travis.yml", CIType.TRAVIS),
    (lambda rel: rel in ("azure-pipelines.yml", "azure-pipelines.yaml"), CIType.AZURE_DEVOPS),
    (_is_workflow, CIType.GITHUB_ACTIONS),
    (lambda rel: "bamboo-specs" in rel, CIType.BAMBOO),
    (lambda rel: rel.startswith("Jenkinsfile"), CIType.JENKINS),
    (lambda rel: rel in ("bridge.yml", "bridge.yaml"), CIType.BRIDGE_CONFIG),
)


def ci_type_of(relative_path: str) -> CIType:
    """Resolve the owning CI system from a repository-relative path."""
    for predicate, ci_type in CI_TYPE_RULES:
        if predicate(relative_path):
            return ci_type
    return CIType.UNKNOWN


def list_candidate_files(
    root: Path,
    exclude: Iterable[Path] = (),
) -> list[CandidateFile]:
    """List CI configuration files present under root.

    Args:
        root: Repository working tree
        exclude: Directories whose contents are never candidates (e.g. the
            backup tree)

    Returns:
        Candidate files in glob order, without duplicates
    """
    root = root.resolve()
    excluded = [root / ".git", *(p.resolve() for p in exclude)]
    seen: set[str] = set()
    candidates: list[CandidateFile] = []

    for pattern in PIPELINE_GLOBS:
        for path in sorted(root.glob(pattern)):
            if not path.is_file():
                continue
            if any(path == ex or ex in path.parents for ex in excluded):
                continue
            rel = path.relative_to(root).as_posix()
            if rel in seen or is_sibling_backup(rel):
                continue
            seen.add(rel)
            candidates.append(
                CandidateFile(
                    relative_path=rel,
                    absolute_path=path,
                    ci_type=ci_type_of(rel),
                )
            )

    return candidates


# Build types and the marker files that reveal them, in report order.
BUILD_MARKERS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("maven", re.compile(r"(^|/)(pom\.xml|mvnw|mvnw\.cmd)$")),
    (
        "gradle",
        re.compile(
            r"(^|/)(build\.gradle|build\.gradle\.kts|settings\.gradle"
            r"|settings\.gradle\.kts|gradle\.properties|gradlew|gradlew\.bat)$"
        ),
    ),
    (
        "npm",
        re.compile(
            r"(^|/)(package\.json|package-lock\.json|yarn\.lock|pnpm-lock\.ya?ml"
            r"|pnpm-workspace\.ya?ml|lerna\.json|nx\.json|turbo\.json)$"
        ),
    ),
    ("docker", re.compile(r"(^|/)(Dockerfile|docker-compose\.ya?ml)$")),
)


def classify_build(files: Iterable[str], max_paths_per_type: int = 10) -> BuildInfo:
    """Derive build type and package-manager files from a repository file list.

    Args:
        files: Repository-relative paths (tracked plus untracked, not ignored)
        max_paths_per_type: Maximum marker paths listed per build type

    Returns:
        BuildInfo such as ``maven+npm`` /
        ``maven: pom.xml; api/pom.xml || npm: package.json``
    """
    file_list = sorted(set(files))
    if not file_list:
        return BuildInfo()

    types: list[str] = []
    groups: list[str] = []
    for build_type, marker in BUILD_MARKERS:
        hits = [f for f in file_list if marker.search(f)][:max_paths_per_type]
        if hits:
            types.append(build_type)
            groups.append(f"{build_type}: {'; '.join(hits)}")

    if not types:
        return BuildInfo()

    return BuildInfo(build_type="+".join(types), package_manager_file=" || ".join(groups))

"""Content classification for CI configuration files.

Answers, for one file's text: how strong the Polaris/Coverity evidence is
(found type), which integration idioms it uses (invocation style), and which
lines prove it (evidence). The CI type comes from the path alone.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import structlog

from bdmigrate import patterns
from bdmigrate.discovery import ci_type_of
from bdmigrate.models import CIType, FoundType, InvocationStyle, StyleMode

logger = structlog.get_logger(__name__)

STYLE_SEPARATOR = " + "


@dataclass(frozen=True)
class Classification:
    """Path- and content-derived attributes of one file."""

    ci_type: CIType
    found_type: FoundType
    invocation_style: str
    evidence: tuple[str, ...]


def found_type_of(text: str) -> FoundType:
    """Direct evidence wins; indirect needs a reuse signal AND a keyword."""
    if patterns.DIRECT_EVIDENCE.search(text):
        return FoundType.DIRECT
    if patterns.SAST_KEYWORDS.search(text) and any(
        signal.search(text) for signal in patterns.INDIRECT_SIGNALS
    ):
        return FoundType.INDIRECT
    return FoundType.NONE


def _ado_style(text: str) -> InvocationStyle:
    if patterns.ADO_SYNOPSYS_SECURITY_SCAN.search(text):
        return InvocationStyle.ADO_TASK_SYNOPSYS_SECURITY_SCAN
    if patterns.ADO_SYNOPSYS_BRIDGE.search(text):
        return InvocationStyle.ADO_TASK_SYNOPSYS_BRIDGE
    if patterns.ADO_BLACKDUCK_SECURITY_SCAN.search(text):
        return InvocationStyle.ADO_TASK_BLACKDUCK_SECURITY_SCAN
    return InvocationStyle.ADO_TASK_EXTENSION


def invocation_styles(text: str, relative_path: str) -> list[InvocationStyle]:
    """All integration idioms present, most specific first.

    Env-var-only evidence is included only when nothing stronger matched.
    """
    styles: list[InvocationStyle] = []

    if (
        ci_type_of(relative_path) is CIType.BRIDGE_CONFIG
        and patterns.BRIDGE_CONFIG_SHAPE.search(text)
    ):
        styles.append(InvocationStyle.BRIDGE_CONFIG_FILE)
    if patterns.GHA_SYNOPSYS_ACTION.search(text):
        styles.append(InvocationStyle.GITHUB_ACTION_SYNOPSYS_ACTION)
    if patterns.ADO_TASK.search(text):
        styles.append(_ado_style(text))
    if patterns.BRIDGE_CLI.search(text):
        styles.append(InvocationStyle.BRIDGE_CLI)
    if patterns.COVERITY_CLI.search(text):
        styles.append(InvocationStyle.COVERITY_CLI)
    if patterns.JENKINS_COVERITY_PLUGIN.search(text):
        styles.append(InvocationStyle.JENKINS_COVERITY_PLUGIN_STEPS)
    if not styles and patterns.POLARIS_ENV.search(text):
        styles.append(InvocationStyle.POLARIS_ENV_OR_CONFIG)

    return styles


def invocation_style_of(
    text: str,
    relative_path: str,
    mode: StyleMode = StyleMode.COMPOUND,
) -> str:
    """Render the invocation style column.

    Compound mode joins every co-occurring style with " + "; cascade mode
    keeps only the first (strongest) one.
    """
    styles = invocation_styles(text, relative_path)
    if not styles:
        return InvocationStyle.UNKNOWN.value
    if mode is StyleMode.CASCADE:
        return styles[0].value
    return STYLE_SEPARATOR.join(style.value for style in styles)


def evidence_of(text: str, limit: int = 12) -> tuple[str, ...]:
    """First matching lines as ``<line number>: <text>``, whitespace collapsed."""
    lines: list[str] = []
    for number, line in enumerate(text.splitlines(), start=1):
        if patterns.DIRECT_EVIDENCE.search(line) or patterns.ENV_MARKERS.search(line):
            lines.append(f"{number}: {' '.join(line.split())}")
            if len(lines) >= limit:
                break
    return tuple(lines)


def classify_text(
    text: str,
    relative_path: str,
    style_mode: StyleMode = StyleMode.COMPOUND,
    evidence_limit: int = 12,
) -> Classification | None:
    """Classify file text; None when there is no evidence at all."""
    found_type = found_type_of(text)
    if found_type is FoundType.NONE:
        return None
    return Classification(
        ci_type=ci_type_of(relative_path),
        found_type=found_type,
        invocation_style=invocation_style_of(text, relative_path, style_mode),
        evidence=evidence_of(text, evidence_limit),
    )


def read_text(path: Path) -> str | None:
    """Read a file exactly as stored (no newline translation).

    Returns None for missing, unreadable or non-UTF-8 files.
    """
    try:
        with open(path, encoding="utf-8", newline="") as handle:
            return handle.read()
    except (OSError, UnicodeDecodeError) as exc:
        logger.debug("file.unreadable", path=str(path), error=str(exc))
        return None


def classify_file(
    path: Path,
    relative_path: str,
    style_mode: StyleMode = StyleMode.COMPOUND,
    evidence_limit: int = 12,
) -> Classification | None:
    """Classify a file on disk. Never raises."""
    text = read_text(path)
    if text is None:
        return None
    return classify_text(text, relative_path, style_mode, evidence_limit)

"""Text rewrites from Polaris/Coverity to Black Duck, keyed by CI type.

Every rule is a pure function ``(text, options) -> text``. Rules never parse
YAML or Groovy; they apply ordered substitutions to the raw text, and every
insertion is guarded by a check for its own output so that applying a rule
twice gives the same text as applying it once.
"""

from __future__ import annotations

import difflib
from collections.abc import Callable
from dataclasses import dataclass

from bdmigrate import patterns
from bdmigrate.models import CIType

PLACEHOLDER_HEADER = "# --- Added by migration script (placeholder) ---"
NO_DIFF = "NO_DIFF"
MAX_CHANGED_LINES = 200


@dataclass(frozen=True)
class TransformOptions:
    """Knobs for rules that insert placeholder content."""

    edit_jenkins: bool = False
    project_name: str = "my-project"
    comment_prefix: str = "#"


Rule = Callable[[str, TransformOptions], str]


def _leading_ws(line: str) -> str:
    return line[: len(line) - len(line.lstrip(" \t"))]


def _newline_of(text: str) -> str:
    return "\r\n" if "\r\n" in text else "\n"


def _ensure_trailing_newline(text: str) -> str:
    if text and not text.endswith(("\n", "\r")):
        return text + _newline_of(text)
    return text


# ---------------------------------------------------------------------------
# Bridge CLI rules (travis, bamboo, bridge-driven workflows, Jenkins opt-in)
# ---------------------------------------------------------------------------


def replace_bridge_stage(text: str, options: TransformOptions) -> str:
    """``--stage polaris`` becomes ``--stage blackduck``."""
    return patterns.STAGE_POLARIS.sub(r"\1blackduck", text)


def ensure_blackduck_env_placeholders(text: str, options: TransformOptions) -> str:
    """Insert commented Black Duck variables after the first Polaris variable line."""
    if patterns.BLACKDUCK_ENV_MARKER.search(text):
        return text
    if not patterns.POLARIS_ENV_MARKER.search(text):
        return text

    lines = text.splitlines(keepends=True)
    for index, line in enumerate(lines):
        if not patterns.POLARIS_ENV_MARKER.search(line):
            continue
        indent = _leading_ws(line)
        newline = _newline_of(text)
        prefix = options.comment_prefix
        block = [
            f"{indent}{prefix} TODO: Set Black Duck connection (prefer secrets/CI vars){newline}",
            f"{indent}{prefix} BLACKDUCK_URL=__set_in_ci_secret__{newline}",
            f"{indent}{prefix} BLACKDUCK_API_TOKEN=__set_in_ci_secret__{newline}",
        ]
        if not line.endswith(("\n", "\r")):
            lines[index] = line + newline
        lines[index + 1:index + 1] = block
        break
    return "".join(lines)


# ---------------------------------------------------------------------------
# Azure DevOps rules
# ---------------------------------------------------------------------------


def rename_ado_task(text: str, options: TransformOptions) -> str:
    """SynopsysSecurityScan@N becomes BlackDuckSecurityScan@N."""
    return patterns.ADO_TASK_RENAME.sub(r"\1BlackDuckSecurityScan\2", text)


def rewrite_ado_inputs(text: str, options: TransformOptions) -> str:
    """Rewrite task inputs: scan type, service connection, bridge keys, naming."""
    text = patterns.ADO_SCAN_TYPE.sub(r"\1blackduck\2", text)
    text = patterns.ADO_POLARIS_SERVICE_URL.sub(r"\1https://\2.polaris.blackduck.com", text)
    text = patterns.ADO_POLARIS_SERVICE_KEY.sub("blackDuckService", text)
    text = patterns.ADO_DISPLAY_NAME_POLARIS.sub(r"\1Black Duck", text)
    text = patterns.ADO_BRIDGE_BUILD_TYPE.sub(r"\1blackduck\2", text)
    text = patterns.ADO_POLARIS_SERVER_URL_KEY.sub(r'\1blackduck_url: "$(BLACKDUCK_URL)"', text)
    text = patterns.ADO_POLARIS_ACCESS_TOKEN_KEY.sub(
        r'\1blackduck_api_token: "$(BLACKDUCK_TOKEN)"', text
    )
    text = text.replace(
        "Synopsys Bridge: Coverity on Polaris", "Synopsys Bridge: Black Duck Coverity"
    )
    text = text.replace("Black Duck Coverity on Polaris", "Black Duck Coverity")
    return text


def normalize_display_name_quotes(text: str, options: TransformOptions) -> str:
    """``displayName: ""Title""`` becomes ``displayName: "Title"``."""
    text = patterns.ADO_DISPLAY_NAME_LEADING_QUOTE.sub(r'\1"', text)
    return patterns.ADO_DISPLAY_NAME_TRAILING_QUOTE.sub(r'\1"\2"', text)


def add_ado_blackduck_step(text: str, options: TransformOptions) -> str:
    """Add a BlackDuckSecurityScan step after ``- checkout: self``.

    Only for pipelines that drive Coverity through its CLI and have no
    Black Duck task yet. Existing steps are never removed.
    """
    if not patterns.COVERITY_CLI.search(text):
        return text
    if not patterns.ADO_STEPS.search(text):
        return text
    if patterns.ADO_BLACKDUCK_SECURITY_SCAN.search(text):
        return text

    lines = text.splitlines(keepends=True)
    for index, line in enumerate(lines):
        match = patterns.ADO_CHECKOUT_SELF.match(line)
        if not match:
            continue
        dash_indent = match.group(1)
        insert_at = index + 1
        # Keep the checkout step's own keys (clean: true, ...) together.
        while insert_at < len(lines):
            following = lines[insert_at]
            if not following.strip():
                break
            if len(_leading_ws(following)) <= len(dash_indent):
                break
            insert_at += 1

        newline = _newline_of(text)
        step = [
            "- task: BlackDuckSecurityScan@1",
            '  displayName: "Black Duck SCA Scan (Added by migration script)"',
            "  inputs:",
            "    # TODO: configure according to your extension inputs",
            '    blackDuckService: "BlackDuck-Service-Connection"',
            f'    projectName: "{options.project_name}"',
            '    versionName: "$(Build.SourceBranchName)"',
            "    waitForScan: true",
        ]
        if insert_at == len(lines) and lines and not lines[-1].endswith(("\n", "\r")):
            lines[-1] = lines[-1] + newline
        lines[insert_at:insert_at] = [f"{dash_indent}{s}{newline}" for s in step]
        break
    return "".join(lines)


# ---------------------------------------------------------------------------
# GitHub Actions rules
# ---------------------------------------------------------------------------


def apply_bridge_cli_if_present(text: str, options: TransformOptions) -> str:
    if not patterns.BRIDGE_CLI.search(text):
        return text
    return ensure_blackduck_env_placeholders(replace_bridge_stage(text, options), options)


def append_gha_blackduck_template(text: str, options: TransformOptions) -> str:
    """Append a commented-out Black Duck step next to synopsys-action usage.

    There is no universal Black Duck action, so this is a suggestion for the
    maintainer rather than a replacement.
    """
    if not patterns.GHA_SYNOPSYS_ACTION.search(text):
        return text
    if patterns.GHA_BLACKDUCK_STEP.search(text):
        return text

    newline = _newline_of(text)
    block = [
        "",
        PLACEHOLDER_HEADER,
        "# TODO: Add your org-approved Black Duck scan step.",
        "# - name: Black Duck Scan",
        "#   uses: <org-approved-blackduck-action>@<version>",
        "#   with:",
        "#     blackduck.url: ${{ secrets.BLACKDUCK_URL }}",
        "#     blackduck.api.token: ${{ secrets.BLACKDUCK_API_TOKEN }}",
        f"#     blackduck.project.name: {options.project_name}",
        "#     blackduck.project.version: ${{ github.ref_name }}",
    ]
    return _ensure_trailing_newline(text) + newline.join(block) + newline


# ---------------------------------------------------------------------------
# bridge.yml rules
# ---------------------------------------------------------------------------


def _stage_polaris_block_end(lines: list[str]) -> tuple[int, str] | None:
    """Find where the ``polaris:`` sub-block under ``stage:`` ends.

    Returns the insertion index and the polaris key's indentation, or None
    when the file does not have the ``stage: / polaris:`` shape.
    """
    for stage_index, line in enumerate(lines):
        stage = patterns.BRIDGE_STAGE_LINE.match(line.rstrip("\r\n"))
        if not stage:
            continue
        stage_indent = len(stage.group(1))
        for polaris_index in range(stage_index + 1, len(lines)):
            candidate = lines[polaris_index]
            if not candidate.strip() or candidate.lstrip().startswith("#"):
                continue
            indent = len(_leading_ws(candidate))
            if indent <= stage_indent:
                break
            polaris = patterns.BRIDGE_POLARIS_LINE.match(candidate)
            if not polaris:
                continue
            polaris_indent = polaris.group(1)
            end = polaris_index + 1
            last_content = polaris_index + 1
            while end < len(lines):
                following = lines[end]
                if following.strip():
                    if len(_leading_ws(following)) <= len(polaris_indent):
                        break
                    last_content = end + 1
                end += 1
            return last_content, polaris_indent
    return None


def add_bridge_blackduck_stage(text: str, options: TransformOptions) -> str:
    """Add a ``blackduck:`` stage next to the existing ``polaris:`` stage."""
    if patterns.BRIDGE_BLACKDUCK_KEY.search(text):
        return text
    if not patterns.BRIDGE_POLARIS_KEY.search(text):
        return text

    newline = _newline_of(text)
    lines = text.splitlines(keepends=True)
    located = _stage_polaris_block_end(lines)

    if located is not None:
        insert_at, indent = located
        block = [
            PLACEHOLDER_HEADER,
            "blackduck:",
            "  # TODO: set these via CI secrets/environment variables",
            '  url: "${BLACKDUCK_URL}"',
            '  apiToken: "${BLACKDUCK_API_TOKEN}"',
            "  project:",
            f'    name: "{options.project_name}"   # TODO: align with your BD project name',
            '    version: "main"      # TODO: align with your BD version naming',
        ]
        if insert_at > 0 and not lines[insert_at - 1].endswith(("\n", "\r")):
            lines[insert_at - 1] = lines[insert_at - 1] + newline
        lines[insert_at:insert_at] = [f"{indent}{s}{newline}" for s in block]
        return "".join(lines)

    block = [
        "",
        PLACEHOLDER_HEADER,
        '# TODO: This file did not match expected "stage:" layout; review placement/indentation.',
        "blackduck:",
        '  url: "${BLACKDUCK_URL}"',
        '  apiToken: "${BLACKDUCK_API_TOKEN}"',
    ]
    return _ensure_trailing_newline(text) + newline.join(block) + newline


# ---------------------------------------------------------------------------
# Rule table
# ---------------------------------------------------------------------------

BRIDGE_RULES: tuple[Rule, ...] = (replace_bridge_stage, ensure_blackduck_env_placeholders)

RULES: dict[CIType, tuple[Rule, ...]] = {
    CIType.TRAVIS: BRIDGE_RULES,
    CIType.BAMBOO: BRIDGE_RULES,
    CIType.AZURE_DEVOPS: (
        rename_ado_task,
        normalize_display_name_quotes,
        rewrite_ado_inputs,
        add_ado_blackduck_step,
    ),
    CIType.GITHUB_ACTIONS: (apply_bridge_cli_if_present, append_gha_blackduck_template),
    CIType.BRIDGE_CONFIG: (add_bridge_blackduck_stage,),
    CIType.JENKINS: BRIDGE_RULES,
}


def is_transformable(ci_type: CIType, edit_jenkins: bool = False) -> bool:
    """Whether files of this CI type are ever rewritten."""
    if ci_type is CIType.JENKINS:
        return edit_jenkins
    return ci_type in RULES


def transform(text: str, ci_type: CIType, options: TransformOptions | None = None) -> str:
    """Apply the rule sequence for ci_type; returns text unchanged when none applies."""
    options = options or TransformOptions()
    if not is_transformable(ci_type, options.edit_jenkins):
        return text
    if ci_type is CIType.JENKINS:
        options = TransformOptions(
            edit_jenkins=options.edit_jenkins,
            project_name=options.project_name,
            comment_prefix="//",
        )
    for rule in RULES[ci_type]:
        text = rule(text, options)
    return text


def unified_diff(before: str, after: str, relative_path: str) -> str:
    """Unified diff of a proposed rewrite, empty when nothing changes."""
    return "".join(
        difflib.unified_diff(
            before.splitlines(keepends=True),
            after.splitlines(keepends=True),
            fromfile=f"a/{relative_path}",
            tofile=f"b/{relative_path}",
        )
    )


def changed_lines(before: str, after: str, limit: int = MAX_CHANGED_LINES) -> str:
    """Only the +/- lines of the diff (no headers, no context), or NO_DIFF."""
    kept: list[str] = []
    diff = difflib.unified_diff(
        before.splitlines(), after.splitlines(), lineterm="", n=0
    )
    for index, line in enumerate(diff):
        # The first two lines are the ---/+++ file headers.
        if index < 2 or line.startswith("@@"):
            continue
        if not line.startswith(("+", "-")) or line in ("+", "-"):
            continue
        kept.append(line)
        if len(kept) >= limit:
            break
    return "\n".join(kept) if kept else NO_DIFF

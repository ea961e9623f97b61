"""Tests for the text rewrite rules."""

import pytest
import yaml
from hypothesis import given, settings
from hypothesis import strategies as st

from bdmigrate.models import CIType
from bdmigrate.discovery import ci_type_of
from bdmigrate.transform import (
    NO_DIFF,
    PLACEHOLDER_HEADER,
    TransformOptions,
    changed_lines,
    is_transformable,
    transform,
    unified_diff,
)
from tests import pipelines

OPTIONS = TransformOptions(project_name="payments")

SAMPLE_LINES = sorted({
    line
    for _, text in pipelines.TRANSFORMABLE
    for line in text.splitlines()
} | set(pipelines.JENKINSFILE.splitlines()))


class TestIdempotence:
    """Applying a rule set twice equals applying it once."""

    @pytest.mark.parametrize(("rel", "text"), pipelines.TRANSFORMABLE)
    def test_transform_is_idempotent(self, rel: str, text: str) -> None:
        ci_type = ci_type_of(rel)

        once = transform(text, ci_type, OPTIONS)
        twice = transform(once, ci_type, OPTIONS)

        assert once != text
        assert twice == once

    @pytest.mark.parametrize(("rel", "text"), pipelines.TRANSFORMABLE)
    def test_output_is_still_yaml(self, rel: str, text: str) -> None:
        yaml.safe_load(transform(text, ci_type_of(rel), OPTIONS))

    def test_jenkins_is_idempotent_when_enabled(self) -> None:
        options = TransformOptions(edit_jenkins=True)

        once = transform(pipelines.JENKINSFILE, CIType.JENKINS, options)

        assert transform(once, CIType.JENKINS, options) == once


class TestAzureDevOps:
    """Tests for Azure DevOps rewrites."""

    def test_security_scan_task_swap(self) -> None:
        out = transform(pipelines.ADO_SECURITY_SCAN, CIType.AZURE_DEVOPS, OPTIONS)

        assert "- task: BlackDuckSecurityScan@1" in out
        assert "SynopsysSecurityScan" not in out
        assert "scanType: 'blackduck'" in out
        assert "blackDuckService: 'Polaris-Connection'" in out
        assert 'displayName: "Black Duck Scan"' in out

    def test_task_version_suffix_kept(self) -> None:
        text = "steps:\n  - task: SynopsysSecurityScan@2.1\n"

        out = transform(text, CIType.AZURE_DEVOPS, OPTIONS)

        assert "- task: BlackDuckSecurityScan@2.1" in out

    def test_bridge_task_inputs(self) -> None:
        out = transform(pipelines.ADO_SYNOPSYS_BRIDGE, CIType.AZURE_DEVOPS, OPTIONS)

        assert 'bridge_build_type: "blackduck"' in out
        assert '      blackduck_url: "$(BLACKDUCK_URL)"' in out
        assert '      blackduck_api_token: "$(BLACKDUCK_TOKEN)"' in out
        assert "polaris_server_url" not in out
        assert 'displayName: "Synopsys Bridge: Black Duck Coverity"' in out

    def test_service_url_domain(self) -> None:
        text = "    polarisService: 'https://acme.polaris.synopsys.com'\n"

        out = transform(text, CIType.AZURE_DEVOPS, OPTIONS)

        assert out == "    blackDuckService: 'https://acme.polaris.blackduck.com'\n"

    def test_display_name_doubled_quotes(self) -> None:
        text = 'steps:\n  - script: echo\n    displayName: ""Synopsys Polaris""\n'

        out = transform(text, CIType.AZURE_DEVOPS, OPTIONS)

        assert 'displayName: "Black Duck"\n' in out

    def test_coverity_cli_gets_blackduck_step(self) -> None:
        out = transform(pipelines.ADO_COVERITY_CLI, CIType.AZURE_DEVOPS, OPTIONS)
        lines = out.splitlines()

        checkout = lines.index("  - checkout: self")
        assert lines[checkout + 1] == "    clean: true"
        assert lines[checkout + 2] == "  - task: BlackDuckSecurityScan@1"
        assert '      projectName: "payments"' in lines
        # Existing steps are kept.
        assert "      cov-build --dir idir mvn -B package" in lines

        steps = yaml.safe_load(out)["steps"]
        assert [list(step)[0] for step in steps] == ["checkout", "task", "script"]

    def test_no_step_without_checkout(self) -> None:
        text = "steps:\n  - script: cov-build --dir idir make\n"

        assert transform(text, CIType.AZURE_DEVOPS, OPTIONS) == text

    def test_no_step_when_blackduck_task_exists(self) -> None:
        text = pipelines.ADO_COVERITY_CLI + "  - task: BlackDuckSecurityScan@1\n"

        assert transform(text, CIType.AZURE_DEVOPS, OPTIONS) == text


class TestBridgeCli:
    """Tests for travis/bamboo Bridge CLI rewrites."""

    def test_stage_and_placeholders(self) -> None:
        out = transform(pipelines.TRAVIS_BRIDGE, CIType.TRAVIS, OPTIONS)
        lines = out.splitlines()

        assert "  - ./bridge --stage blackduck --input bridge.yml" in lines
        marker = lines.index("    - POLARIS_SERVER_URL=https://acme.polaris.synopsys.com")
        assert lines[marker + 1] == "    # TODO: Set Black Duck connection (prefer secrets/CI vars)"
        assert lines[marker + 2] == "    # BLACKDUCK_URL=__set_in_ci_secret__"
        assert lines[marker + 3] == "    # BLACKDUCK_API_TOKEN=__set_in_ci_secret__"
        assert lines[marker + 4].startswith("    - POLARIS_ACCESS_TOKEN")

    def test_no_placeholders_when_blackduck_vars_exist(self) -> None:
        text = "env:\n  - POLARIS_SERVER_URL=x\n  - BLACKDUCK_URL=y\n"

        assert transform(text, CIType.BAMBOO, OPTIONS) == text

    def test_crlf_preserved(self) -> None:
        text = "env:\r\n  - POLARIS_SERVER_URL=x\r\nscript: bridge --stage polaris\r\n"

        out = transform(text, CIType.TRAVIS, OPTIONS)

        assert "\n" not in out.replace("\r\n", "")
        assert "bridge --stage blackduck\r\n" in out


class TestGitHubActions:
    """Tests for GitHub Actions rewrites."""

    def test_appends_commented_template(self) -> None:
        out = transform(pipelines.GHA_SYNOPSYS_ACTION, CIType.GITHUB_ACTIONS, OPTIONS)

        assert out.startswith(pipelines.GHA_SYNOPSYS_ACTION)
        added = out[len(pipelines.GHA_SYNOPSYS_ACTION):]
        assert PLACEHOLDER_HEADER in added
        assert "# - name: Black Duck Scan" in added
        assert "#     blackduck.project.name: payments" in added
        assert all(not line or line.startswith("#") for line in added.splitlines())

    def test_bridge_cli_in_workflow(self) -> None:
        text = "jobs:\n  scan:\n    steps:\n      - run: bridge --stage polaris\n"

        out = transform(text, CIType.GITHUB_ACTIONS, OPTIONS)

        assert out == text.replace("--stage polaris", "--stage blackduck")

    def test_unrelated_workflow_unchanged(self) -> None:
        text = "jobs:\n  test:\n    steps:\n      - run: pytest\n"

        assert transform(text, CIType.GITHUB_ACTIONS, OPTIONS) == text


class TestBridgeConfig:
    """Tests for bridge.yml rewrites."""

    def test_blackduck_stage_under_stage(self) -> None:
        out = transform(pipelines.BRIDGE_STAGE, CIType.BRIDGE_CONFIG, OPTIONS)

        parsed = yaml.safe_load(out)
        assert list(parsed["stage"]) == ["polaris", "blackduck", "connect"]
        assert parsed["stage"]["blackduck"]["url"] == "${BLACKDUCK_URL}"
        assert parsed["stage"]["blackduck"]["project"]["name"] == "payments"
        assert parsed["stage"]["polaris"]["application"]["name"] == "acme"

    def test_bare_polaris_gets_top_level_block(self) -> None:
        out = transform(pipelines.BRIDGE_BARE_POLARIS, CIType.BRIDGE_CONFIG, OPTIONS)

        assert "did not match expected" in out
        assert set(yaml.safe_load(out)) == {"polaris", "blackduck"}

    def test_existing_blackduck_is_noop(self) -> None:
        text = pipelines.BRIDGE_STAGE + "  blackduck:\n    url: x\n"

        assert transform(text, CIType.BRIDGE_CONFIG, OPTIONS) == text

    def test_without_polaris_is_noop(self) -> None:
        text = "stage:\n  connect:\n    timeout: 30\n"

        assert transform(text, CIType.BRIDGE_CONFIG, OPTIONS) == text


class TestJenkins:
    """Tests for Jenkinsfile handling."""

    def test_untouched_by_default(self) -> None:
        assert transform(pipelines.JENKINSFILE, CIType.JENKINS, OPTIONS) == pipelines.JENKINSFILE
        assert not is_transformable(CIType.JENKINS)

    def test_opt_in_uses_groovy_comments(self) -> None:
        out = transform(
            pipelines.JENKINSFILE, CIType.JENKINS, TransformOptions(edit_jenkins=True)
        )

        assert "sh 'bridge --stage blackduck'" in out
        assert "    // BLACKDUCK_URL=__set_in_ci_secret__" in out
        assert "#" not in out

    def test_unknown_is_never_transformed(self) -> None:
        assert not is_transformable(CIType.UNKNOWN)
        assert transform("polaris", CIType.UNKNOWN) == "polaris"


class TestDiffs:
    """Tests for diff rendering."""

    def test_unified_diff(self) -> None:
        diff = unified_diff("a\n", "b\n", "x.yml")

        assert diff.startswith("--- a/x.yml\n+++ b/x.yml\n")
        assert "-a\n+b\n" in diff

    def test_unified_diff_empty_when_unchanged(self) -> None:
        assert unified_diff("a\n", "a\n", "x.yml") == ""

    def test_changed_lines(self) -> None:
        before = pipelines.ADO_SECURITY_SCAN
        after = transform(before, CIType.AZURE_DEVOPS, OPTIONS)

        lines = changed_lines(before, after).split("\n")

        assert "-  - task: SynopsysSecurityScan@1" in lines
        assert "+  - task: BlackDuckSecurityScan@1" in lines
        assert not any(line.startswith(("@@", "+++", " ")) for line in lines)

    def test_no_diff(self) -> None:
        assert changed_lines("a\n", "a\n") == NO_DIFF

    def test_removed_line_starting_with_dashes_kept(self) -> None:
        assert changed_lines("--flag\n", "") == "---flag"

    def test_limit(self) -> None:
        before = "".join(f"l{i}\n" for i in range(300))

        assert len(changed_lines(before, "").split("\n")) == 200


# Property-based tests using hypothesis
@settings(max_examples=60, deadline=None)
@given(
    lines=st.lists(st.sampled_from(SAMPLE_LINES), max_size=25),
    ci_type=st.sampled_from([t for t in CIType if t is not CIType.UNKNOWN]),
)
def test_idempotent_for_mixed_content(lines: list[str], ci_type: CIType) -> None:
    """Rules stay idempotent on arbitrary mixes of real pipeline lines."""
    text = "\n".join(lines) + "\n"
    options = TransformOptions(edit_jenkins=True, project_name="payments")

    once = transform(text, ci_type, options)

    assert transform(once, ci_type, options) == once

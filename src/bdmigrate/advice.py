"""Reviewer-facing migration guidance for audit reports."""

from bdmigrate import patterns
from bdmigrate.models import CIType


def migration_advice(text: str, ci_type: CIType, edit_jenkins: bool = False) -> str:
    """Describe what a migration of this file involves, one step per line.

    Falls back to a generic review note when no specific rule applies.
    """
    if ci_type is CIType.AZURE_DEVOPS:
        if patterns.ADO_SYNOPSYS_BRIDGE.search(text):
            return "\n".join([
                "Update SynopsysBridge inputs from Polaris to Black Duck:",
                "  bridge_build_type: blackduck",
                "  polaris_server_url -> blackduck_url: $(BLACKDUCK_URL)",
                "  polaris_access_token -> blackduck_api_token: $(BLACKDUCK_TOKEN)",
                "Update displayName if needed.",
            ])
        if patterns.ADO_SYNOPSYS_SECURITY_SCAN.search(text):
            return "\n".join([
                "Replace SynopsysSecurityScan@* (scanType: polaris) with BlackDuckSecurityScan@* (scanType: blackduck).",
                "polarisService -> blackDuckService (keep the same service connection).",
                "Ensure the service connection has Black Duck entitlement.",
            ])
        if patterns.COVERITY_CLI.search(text):
            return "\n".join([
                "Replace direct Coverity CLI workflow with Black Duck execution.",
                "Preferred: BlackDuckSecurityScan@1 (scanType: 'blackduck').",
                "Alternative: Bridge CLI with --stage blackduck and a bridge.yml blackduck stage.",
            ])
    elif ci_type is CIType.GITHUB_ACTIONS:
        if patterns.GHA_SYNOPSYS_ACTION.search(text):
            return "\n".join([
                "Update synopsys-action inputs from polaris_* to blackduck_*.",
                "Use BLACKDUCK_URL and BLACKDUCK_API_TOKEN repository or org secrets.",
            ])
        if patterns.BRIDGE_CLI.search(text):
            return _bridge_cli_advice("secrets")
    elif ci_type in (CIType.TRAVIS, CIType.BAMBOO):
        if patterns.BRIDGE_CLI.search(text):
            return _bridge_cli_advice("env vars/secrets")
    elif ci_type is CIType.BRIDGE_CONFIG:
        if patterns.BRIDGE_POLARIS_KEY.search(text):
            return "\n".join([
                "Add a stage.blackduck section (url: ${BLACKDUCK_URL}, apiToken: ${BLACKDUCK_API_TOKEN}).",
                "Keep stage.polaris only if legacy Polaris scans are still required.",
            ])
    elif ci_type is CIType.JENKINS:
        if edit_jenkins:
            return _bridge_cli_advice("credentials")
        return "\n".join([
            "Jenkinsfile is not edited unless EDIT_JENKINS=1.",
            "Otherwise migrate manually: replace Polaris/Bridge steps with a Black Duck stage or plugin step.",
        ])

    return (
        "Detected Synopsys/Polaris/Coverity markers. Review and migrate to "
        "Black Duck / Coverity patterns as per org standards."
    )


def _bridge_cli_advice(secret_store: str) -> str:
    return "\n".join([
        "Update command: bridge --stage polaris -> bridge --stage blackduck.",
        "Add or use stage.blackduck in bridge.yml.",
        f"Add {secret_store}: BLACKDUCK_URL, BLACKDUCK_API_TOKEN.",
    ])

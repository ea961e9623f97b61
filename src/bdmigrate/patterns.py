"""Regular expressions recognising Polaris/Coverity and Black Duck syntax.

Files are matched as plain text, line by line where a pattern is anchored.
Horizontal whitespace is spelled ``[ \\t]`` so that no pattern spans lines.
"""

import re

# Direct evidence: vendor CLI names, task names, config keys, stage flags.
DIRECT_EVIDENCE = re.compile(
    r"polaris|coverity|coverity-on-polaris"
    r"|cov-build|cov-analyze|cov-capture|cov-commit-defects|cov-format-errors"
    r"|synopsys[- ]?bridge|bridge\.ya?ml"
    r"|--stage[ \t]+(?:polaris|blackduck)|--input[ \t]+bridge\.ya?ml"
    r"|synopsys-sig/synopsys-action"
    r"|SynopsysSecurityScan@|SynopsysBridge@|BlackDuckSecurityScan@|CoverityOnPolaris"
    r"|withCoverityEnv|coverityScan|coverityPublisher|covBuild|covAnalyze|covCommitDefects",
    re.IGNORECASE,
)

# Indirect evidence: reuse signals that only count together with a keyword.
INDIRECT_TEMPLATE = re.compile(
    r"- template:|extends:|resources:|@templates|include:"
    r"|uses:[ \t]*[^ \t\n]+/[^ \t\n]+@|workflow_call|reusable workflow"
)
INDIRECT_JENKINS_LIBRARY = re.compile(
    r"@Library\(|library\(|sharedLibrary|vars/|def[ \t]+securityScan"
    r"|securityScan\(|sastScan\(|polarisScan\(|coverityScan\("
)
INDIRECT_CONTAINER = re.compile(
    r"docker[ \t]+run|container:|image:|services:|podman[ \t]+run"
)
INDIRECT_SIGNALS = (INDIRECT_TEMPLATE, INDIRECT_JENKINS_LIBRARY, INDIRECT_CONTAINER)
SAST_KEYWORDS = re.compile(r"polaris|coverity|synopsys|bridge|sast", re.IGNORECASE)

# Invocation styles.
BRIDGE_CONFIG_SHAPE = re.compile(
    r"^[ \t]*stage:[ \t]*$|^[ \t]*polaris[ \t]*:|^[ \t]*blackduck[ \t]*:",
    re.MULTILINE,
)
GHA_SYNOPSYS_ACTION = re.compile(r"uses:[ \t]*synopsys-sig/synopsys-action")
ADO_TASK = re.compile(
    r"SynopsysSecurityScan@|SynopsysBridge@|BlackDuckSecurityScan@|CoverityOnPolaris"
)
ADO_SYNOPSYS_SECURITY_SCAN = re.compile(r"SynopsysSecurityScan@")
ADO_SYNOPSYS_BRIDGE = re.compile(r"SynopsysBridge@")
ADO_BLACKDUCK_SECURITY_SCAN = re.compile(r"BlackDuckSecurityScan@")
BRIDGE_CLI = re.compile(
    r"(?:^|[ \t/])bridge(?:[ \t]|$)|synopsys[- ]?bridge"
    r"|--input[ \t]+bridge\.ya?ml|--stage[ \t]+(?:polaris|blackduck)",
    re.MULTILINE,
)
COVERITY_CLI = re.compile(
    r"cov-build|cov-analyze|cov-capture|cov-commit-defects|cov-format-errors"
)
JENKINS_COVERITY_PLUGIN = re.compile(
    r"withCoverityEnv|coverityScan|coverityPublisher|covBuild|covAnalyze|covCommitDefects"
)
POLARIS_ENV = re.compile(
    r"POLARIS_SERVER_URL|POLARIS_ACCESS_TOKEN|polaris_server_url|polaris_access_token"
)

# Evidence lines also pick up connection variables of either vendor.
ENV_MARKERS = re.compile(
    r"POLARIS_SERVER_URL|POLARIS_ACCESS_TOKEN|COVERITY_URL|COVERITY_STREAM"
    r"|BLACKDUCK_URL|BLACKDUCK_API_TOKEN|BLACKDUCK_TOKEN|blackDuckService|polarisService",
    re.IGNORECASE,
)

# Transform guards and targets.
STAGE_POLARIS = re.compile(r"(--stage[ \t]+)polaris\b")
POLARIS_ENV_MARKER = re.compile(r"POLARIS_SERVER_URL|POLARIS_ACCESS_TOKEN")
BLACKDUCK_ENV_MARKER = re.compile(r"BLACKDUCK_(?:URL|API_TOKEN|TOKEN)")

ADO_TASK_RENAME = re.compile(
    r"^([ \t]*-[ \t]*task:[ \t]*)SynopsysSecurityScan(@[0-9A-Za-z.\-_]+)?",
    re.MULTILINE,
)
ADO_SCAN_TYPE = re.compile(r"(\bscanType:[ \t]*[\"']?)polaris([\"']?)")
ADO_POLARIS_SERVICE_URL = re.compile(
    r"(polarisService:[ \t]*[\"']?)https://([A-Za-z0-9._-]+)\.polaris\.synopsys\.com"
)
ADO_POLARIS_SERVICE_KEY = re.compile(r"\bpolarisService(?=:)")
ADO_DISPLAY_NAME_POLARIS = re.compile(r"(displayName:[ \t]*[\"']?)Synopsys Polaris")
ADO_BRIDGE_BUILD_TYPE = re.compile(r"(bridge_build_type:[ \t]*[\"']?)polaris([\"']?)")
ADO_POLARIS_SERVER_URL_KEY = re.compile(r"^([ \t]*)polaris_server_url:.*$", re.MULTILINE)
ADO_POLARIS_ACCESS_TOKEN_KEY = re.compile(r"^([ \t]*)polaris_access_token:.*$", re.MULTILINE)
ADO_DISPLAY_NAME_TRAILING_QUOTE = re.compile(r"(displayName:[ \t]*)\"([^\"\n]*)\"\"")
ADO_DISPLAY_NAME_LEADING_QUOTE = re.compile(r"(displayName:[ \t]*)\"\"(?=[^\"\s])")
ADO_STEPS = re.compile(r"^[ \t]*steps[ \t]*:", re.MULTILINE)
ADO_CHECKOUT_SELF = re.compile(r"^([ \t]*)-[ \t]*checkout:[ \t]*self\b")

GHA_BLACKDUCK_STEP = re.compile(r"name:[ \t]*Black Duck Scan")

BRIDGE_BLACKDUCK_KEY = re.compile(r"^[ \t]*blackduck[ \t]*:", re.MULTILINE)
BRIDGE_POLARIS_KEY = re.compile(r"^[ \t]*polaris[ \t]*:", re.MULTILINE)
BRIDGE_STAGE_LINE = re.compile(r"^([ \t]*)stage:[ \t]*$")
BRIDGE_POLARIS_LINE = re.compile(r"^([ \t]*)polaris[ \t]*:")

"""Append-only CSV report of findings.

Several invocations (one per repository, or per branch batch) can point at
the same file: the header is written only when the file is missing or
empty, and rows are only ever appended.
"""

from __future__ import annotations

import csv
from collections.abc import Iterable
from pathlib import Path

import structlog

from bdmigrate.models import Finding, FoundType

logger = structlog.get_logger(__name__)

COLUMNS: tuple[str, ...] = (
    "repo",
    "branch",
    "build_type",
    "package_manager_file",
    "file_path",
    "ci_type",
    "found_type",
    "invocation_style",
    "evidence",
    "migration_changes",
)

EVIDENCE_SEPARATOR = "; "


def _one_line(value: str) -> str:
    """Collapse line breaks to single spaces."""
    return " ".join(value.replace("\r", "").split("\n")).strip()


def _escaped_newlines(value: str) -> str:
    """Keep multi-line summaries readable as a literal ``\\n`` marker."""
    return value.replace("\r", "").rstrip().replace("\n", "\\n")


def finding_to_row(finding: Finding) -> list[str]:
    """Render a finding in column order."""
    return [
        _one_line(finding.repo),
        _one_line(finding.branch),
        _one_line(finding.build_type),
        _one_line(finding.package_manager_file),
        _one_line(finding.file_path),
        finding.ci_type.value,
        finding.found_type.value,
        _one_line(finding.invocation_style),
        _one_line(EVIDENCE_SEPARATOR.join(finding.evidence)),
        _escaped_newlines(finding.migration_changes),
    ]


class CsvReportSink:
    """Appends findings to one CSV file."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.rows_written = 0

    def ensure_header(self) -> None:
        """Create the file with a header row unless it already has content."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if self.path.exists() and self.path.stat().st_size > 0:
            return
        with open(self.path, "a", encoding="utf-8", newline="") as handle:
            csv.writer(handle, quoting=csv.QUOTE_ALL).writerow(COLUMNS)
        logger.debug("report.header_written", path=str(self.path))

    def append(self, findings: Iterable[Finding]) -> int:
        """Append one row per finding; findings without evidence are dropped.

        Returns:
            Number of rows written
        """
        rows = [finding_to_row(f) for f in findings if f.found_type is not FoundType.NONE]
        if not rows:
            return 0
        self.ensure_header()
        with open(self.path, "a", encoding="utf-8", newline="") as handle:
            csv.writer(handle, quoting=csv.QUOTE_ALL).writerows(rows)
        self.rows_written += len(rows)
        return len(rows)

    def read_rows(self) -> list[dict[str, str]]:
        """Read the report back (header excluded)."""
        if not self.path.exists():
            return []
        with open(self.path, encoding="utf-8", newline="") as handle:
            return list(csv.DictReader(handle))

"""bd-migrate CLI main entry point.

Every option mirrors an environment variable of the same name (``--out-csv``
is ``OUT_CSV``); options given on the command line win over the
environment.
"""

import sys
from pathlib import Path
from typing import Any

import click
import structlog
from pydantic import ValidationError

from bdmigrate import __version__
from bdmigrate.config import MigrateSettings
from bdmigrate.engine import MigrationStateMachine
from bdmigrate.errors import MigrateError
from bdmigrate.logging import configure_logging
from bdmigrate.models import BackupTopology, Mode, StyleMode

logger = structlog.get_logger(__name__)


def _validation_message(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        field = ".".join(str(loc) for loc in item["loc"]).upper()
        parts.append(f"{field}: {item['msg']}")
    return "Invalid configuration: " + "; ".join(parts)


def build_settings(**overrides: Any) -> MigrateSettings:
    """Settings from the environment, with non-None overrides applied.

    Raises:
        click.ClickException: If a value cannot be parsed
    """
    values = {key: value for key, value in overrides.items() if value is not None}
    try:
        return MigrateSettings(**values)
    except ValidationError as e:
        raise click.ClickException(_validation_message(e)) from e


@click.command(name="bd-migrate")
@click.version_option(version=__version__, prog_name="bd-migrate")
@click.option(
    "--mode",
    type=click.Choice([m.value for m in Mode]),
    help="Run mode (env: MODE).",
)
@click.option(
    "--root",
    type=click.Path(path_type=Path),
    help="Repository to migrate (env: ROOT, default: .).",
)
@click.option(
    "--out-csv",
    type=click.Path(dir_okay=False, path_type=Path),
    help="CSV report, appended to (env: OUT_CSV).",
)
@click.option("--branches", help="Comma-separated branches (env: BRANCHES).")
@click.option(
    "--all-branches/--current-branch",
    default=None,
    help="Process every remote branch (env: ALL_BRANCHES).",
)
@click.option("--remote", help="Git remote (env: REMOTE, default: origin).")
@click.option(
    "--commit/--no-commit",
    default=None,
    help="Commit applied changes (env: COMMIT).",
)
@click.option(
    "--push/--no-push",
    default=None,
    help="Push the migration commit (env: PUSH).",
)
@click.option(
    "--allow-dirty/--require-clean",
    default=None,
    help="Run apply/rollback on a dirty tree (env: ALLOW_DIRTY).",
)
@click.option(
    "--edit-jenkins/--skip-jenkins",
    default=None,
    help="Rewrite Jenkinsfiles too (env: EDIT_JENKINS).",
)
@click.option(
    "--backup-topology",
    type=click.Choice([t.value for t in BackupTopology]),
    help="Where backups go (env: BACKUP_TOPOLOGY).",
)
@click.option(
    "--style-mode",
    type=click.Choice([s.value for s in StyleMode]),
    help="Invocation style reporting (env: STYLE_MODE).",
)
@click.option(
    "--dryrun-diff-file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Also write dry-run diffs here (env: DRYRUN_DIFF_FILE).",
)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    help="Log level (env: LOG_LEVEL).",
)
@click.option(
    "--log-format",
    type=click.Choice(["console", "json"]),
    help="Log format (env: LOG_FORMAT).",
)
def cli(**options: Any) -> None:
    """Audit and migrate Polaris/Coverity CI integrations to Black Duck.

    \b
    Modes:
      audit     scan and write CSV findings only
      dry-run   scan, write CSV and show proposed diffs; never edits files
      apply     back up, rewrite, optionally commit and push
      rollback  revert the last migration commit, else restore backups
    """
    settings = build_settings(**options)
    configure_logging(settings.log_level, settings.log_format)

    try:
        machine = MigrationStateMachine.from_settings(settings)
        summaries = machine.run()
    except MigrateError as e:
        raise click.ClickException(str(e)) from e

    failed = [s for s in summaries if s.failed]
    if failed:
        for summary in failed:
            click.echo(f"Error: [{summary.branch}] {summary.error}", err=True)
        logger.error("run.failed", branches=[s.branch for s in failed])
        sys.exit(1)

    logger.info("run.complete", branches=len(summaries))


if __name__ == "__main__":
    cli()

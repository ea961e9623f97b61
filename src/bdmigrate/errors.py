"""Exception taxonomy for bd-migrate."""


class MigrateError(Exception):
    """Base exception for all bd-migrate errors."""

    pass


class ConfigurationError(MigrateError):
    """Invalid or incomplete configuration, detected before any work starts."""

    pass


class PreconditionError(MigrateError):
    """Repository state does not allow a destructive mode to run."""

    pass


class BackupError(MigrateError):
    """A backup could not be written, located or restored."""

    pass


class VersionControlError(MigrateError):
    """A version-control operation failed.

    Carries the branch and the attempted operation so the operator can act
    on the failure.
    """

    def __init__(self, message: str, branch: str | None = None, operation: str | None = None) -> None:
        super().__init__(message)
        self.branch = branch
        self.operation = operation

    def __str__(self) -> str:
        base = super().__str__()
        context = []
        if self.operation:
            context.append(f"operation={self.operation}")
        if self.branch:
            context.append(f"branch={self.branch}")
        if context:
            return f"{base} ({', '.join(context)})"
        return base


class RepositoryNotFoundError(VersionControlError):
    """Path is not a valid git repository."""

    pass


class CheckoutError(VersionControlError):
    """Branch could not be checked out locally or from the remote."""

    pass


class CommitError(VersionControlError):
    """Staging or committing failed."""

    pass


class PushError(VersionControlError):
    """Push was rejected or could not reach the remote."""

    pass


class RevertError(VersionControlError):
    """Reverting a migration commit failed (usually a conflict)."""

    pass


class RollbackImpossibleError(MigrateError):
    """Neither a migration commit nor a backup exists for the branch."""

    def __init__(self, branch: str) -> None:
        super().__init__(
            f"No migration commit and no backups found for branch {branch}"
        )
        self.branch = branch

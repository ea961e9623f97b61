"""Git integration for bd-migrate.

Provides the version-control interface the state machine depends on and a
GitPython-based implementation.
"""

from .base import (
    MIGRATION_TAG_PATTERN,
    MIGRATION_TAG_PREFIX,
    VersionControl,
    migration_tag,
    migration_timestamp,
)
from .service import GitPythonVersionControl

__all__ = [
    "GitPythonVersionControl",
    "MIGRATION_TAG_PATTERN",
    "MIGRATION_TAG_PREFIX",
    "VersionControl",
    "migration_tag",
    "migration_timestamp",
]

"""structlog setup for bd-migrate.

Log events go to stderr so stdout stays reserved for the operator report
(diffs, branch summaries, the CSV location). Push URLs may carry a GitHub
token; every event passes through ``redact_credentials`` before rendering.
"""

import logging
import re
import sys
from typing import Any

import structlog

_URL_CREDENTIALS = re.compile(r"(?<=://)[^@/\s]+@")


def redact_credentials(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Replace ``user:secret@`` in any URL-like string value with ``***@``."""
    for key, value in event_dict.items():
        if isinstance(value, str) and "://" in value:
            event_dict[key] = _URL_CREDENTIALS.sub("***@", value)
    return event_dict


def _renderer(log_format: str) -> list[Any]:
    if log_format == "json":
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=False)]


def configure_logging(log_level: str = "info", log_format: str = "console") -> None:
    """Route structlog through stdlib logging on stderr.

    Args:
        log_level: debug, info, warning or error (case-insensitive)
        log_format: "console" or "json"
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level, force=True)
    # GitPython logs every command it runs at debug level.
    logging.getLogger("git").setLevel(max(level, logging.INFO))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            redact_credentials,
            *_renderer(log_format),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

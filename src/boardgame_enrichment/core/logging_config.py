"""Structured JSON logging configuration using structlog.

Call ``configure_logging()`` once at process startup (the CLI does this).
All modules can then use either the stdlib logging API or structlog directly:

Stdlib usage::

    import logging
    logger = logging.getLogger(__name__)
    logger.info("page_fetcher: fetched %s", url)

Structlog usage (richer context binding)::

    import structlog
    logger = structlog.get_logger(__name__)
    logger.info("bulk_enrichment.progress", processed=12, total=300)

A ``job_id`` context variable is populated by the bulk enrichment job and
automatically merged into every log record emitted while the job runs.
"""

from __future__ import annotations

import logging
import logging.config
import re
import sys
from contextvars import ContextVar
from typing import Any

import structlog
from structlog.types import EventDict, WrappedLogger

# ---------------------------------------------------------------------------
# Context variable: set by the bulk job, read by the log processor
# ---------------------------------------------------------------------------

job_id_var: ContextVar[str | None] = ContextVar("job_id", default=None)
"""Bulk enrichment run ID propagated from the background task to log processors.

The variable is set inside the job's own task, so interactive
``enrich_game`` calls running concurrently are not tagged.
"""


# ---------------------------------------------------------------------------
# Custom processors
# ---------------------------------------------------------------------------


_SECRET_SUBSTRINGS: frozenset[str] = frozenset({
    "api_key",
    "apikey",
    "password",
    "secret",
    "token",
    "authorization",
    "x-api-key",
})
"""Lower-cased substrings that identify log event-dict keys whose values
must be redacted before the record reaches any renderer."""


_REDACTED = "[REDACTED]"

_QUERY_SECRET_RE = re.compile(r"(?i)\b(api_key|apikey|token)=[^&\s\"']+")
"""Matches ``name=value`` query parameters that carry a credential.

The primary scraping provider authenticates with ``?api_key=...``, and
httpx logs each request line with the full URL, so the key would otherwise
appear verbatim inside the ``event`` string."""


def _is_secret_key(key: Any) -> bool:
    return isinstance(key, str) and any(s in key.lower() for s in _SECRET_SUBSTRINGS)


def _redact_value(value: Any) -> Any:
    if isinstance(value, str):
        return _QUERY_SECRET_RE.sub(rf"\1={_REDACTED}", value)
    if isinstance(value, dict):
        return {
            k: _REDACTED if _is_secret_key(k) else _redact_value(v) for k, v in value.items()
        }
    if isinstance(value, list):
        return [_redact_value(v) for v in value]
    if isinstance(value, tuple):
        return tuple(_redact_value(v) for v in value)
    return value


def _redact_secrets(
    logger: WrappedLogger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Mask credentials in the event dict before any renderer sees it.

    Values under secret-bearing keys (matched case-insensitively against
    :data:`_SECRET_SUBSTRINGS`) are replaced at any nesting depth inside
    dicts and lists.  Every string value, the ``event`` message included,
    also has ``api_key=...`` style query parameters masked, which covers the
    request URLs that httpx writes into its log messages.

    Args:
        logger: The wrapped logger instance (unused).
        method_name: The log method name (unused).
        event_dict: Mutable event dictionary being assembled.

    Returns:
        The event dict with sensitive values replaced by ``"[REDACTED]"``.
    """
    for key in list(event_dict.keys()):
        if _is_secret_key(key):
            event_dict[key] = _REDACTED
        else:
            event_dict[key] = _redact_value(event_dict[key])
    return event_dict


def _inject_job_id(
    logger: WrappedLogger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Inject the current bulk job ID into the log event dict if set.

    Args:
        logger: The wrapped logger instance (unused).
        method_name: The log method name (e.g. ``"info"``). Unused.
        event_dict: Mutable event dictionary being assembled.

    Returns:
        The event dict, possibly with ``job_id`` added.
    """
    job_id = job_id_var.get()
    if job_id is not None and "job_id" not in event_dict:
        event_dict["job_id"] = job_id
    return event_dict


# ---------------------------------------------------------------------------
# Public configuration entry-point
# ---------------------------------------------------------------------------


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structlog with JSON output for production.

    In production (log_level != ``"DEBUG"``), outputs newline-delimited JSON.
    In development (log_level == ``"DEBUG"``), uses structlog's
    ``ConsoleRenderer`` for human-readable coloured output.

    Standard fields added to every log record:

    - ``timestamp``: ISO 8601 string.
    - ``level``: Log level name (``"info"``, ``"warning"``, etc.).
    - ``logger``: Module name that emitted the record.
    - ``job_id``: Current bulk job ID (omitted outside the job).
    - ``event``: The log message string.

    Calling this function more than once replaces the previous
    configuration and never stacks handlers.

    Args:
        log_level: Logging verbosity string.  One of ``"DEBUG"``, ``"INFO"``,
            ``"WARNING"``, ``"ERROR"``, ``"CRITICAL"``.  Case-insensitive.
    """
    level_upper = log_level.upper()
    numeric_level = getattr(logging, level_upper, logging.INFO)
    is_development = level_upper == "DEBUG"

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        _inject_job_id,
        _redact_secrets,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if is_development:
        final_renderer: structlog.types.Processor = structlog.dev.ConsoleRenderer(
            colors=True,
        )
    else:
        final_renderer = structlog.processors.JSONRenderer()

    # Route ``logging.getLogger(__name__)`` records through the same chain.
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            final_renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)

    # One httpx line per request is noise outside DEBUG; the URL key is masked either way.
    noisy_level = logging.NOTSET if is_development else logging.WARNING
    for noisy_logger in ("httpx", "httpcore", "sqlalchemy.engine"):
        logging.getLogger(noisy_logger).setLevel(noisy_level)

    structlog.configure(
        processors=shared_processors
        + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

"""
utils/logging.py — structlog configuration for the pipeline.

Sets up structured logging with JSON or human-readable console output
controlled by settings.log_format. Log lines go to stderr so CLI output on
stdout stays clean. Call configure_logging() once at process startup (done
automatically by the CLI and by pipelines.release.run).

Usage:
    from lighttrap_pipeline.utils.logging import configure_logging, get_logger

    configure_logging()
    log = get_logger("lighttrap_pipeline.sources.yearly")
    log.info("source_run_start", kind="counts", years=[2022, 2023])

    # Bind run-wide context for every subsequent log call in this process:
    bind_run_context(run_id=run_id, policy_version=config.policy_version)
    log.info("write_complete", table="counts_public", rows=412)
"""

from __future__ import annotations

import logging
import sys
from typing import IO, Any

import structlog

from lighttrap_shared.config import settings

_configured = False


class _Stderr:
    """File-like writer that looks up sys.stderr on every call."""

    def write(self, message: str) -> int:
        return sys.stderr.write(message)

    def flush(self) -> None:
        sys.stderr.flush()

    def isatty(self) -> bool:
        return sys.stderr.isatty()


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def configure_logging(
    log_level: str | None = None,
    log_format: str | None = None,
    *,
    stream: IO[str] | None = None,
) -> None:
    """
    Configure structlog for the pipeline process.

    Should be called once at startup. Idempotent.

    Args:
        log_level:  Override settings.log_level ("DEBUG", "INFO", …).
        log_format: Override settings.log_format ("json" | "console").
        stream:     Where log lines go (default: sys.stderr).
    """
    global _configured
    if _configured and log_level is None and log_format is None and stream is None:
        return

    level = log_level or settings.log_level
    fmt = log_format or settings.log_format
    out: Any = stream or _Stderr()
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    # Standard library logging integration (filelock logs through stdlib)
    logging.basicConfig(format="%(message)s", stream=out, level=numeric_level)

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]

    if fmt == "json":
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=out.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=out),
        cache_logger_on_first_use=True,
    )
    _configured = True


def bind_run_context(**values: Any) -> None:
    """Attach run-wide key/values (run_id, policy_version) to every log record."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**values)


def get_logger(name: str, **initial_values: Any) -> structlog.BoundLogger:
    """
    Return a bound structlog logger with optional initial context values.

    Args:
        name:           Logger name (conventionally the module __name__).
        **initial_values: Key-value pairs merged into every log record.

    Returns:
        structlog.BoundLogger
    """
    # PrintLogger has no .name; carry it as context instead.
    return structlog.get_logger(name, logger_name=name, **initial_values)  # type: ignore[return-value]

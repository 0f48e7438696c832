"""Central logging configuration utilities.

Adds a single composition-root driven `configure_logging` that wires
separate stdout/stderr sinks and injects the id of the job being monitored
into all log records. Core code never mutates global logging; it only emits
via `LoggingPort` or standard module loggers.

The job id is carried in a context variable so that every record emitted
while a wait loop runs (including records from retry helpers and the HTTP
adapter) is attributable to its job without threading the id through each
call. Use `job_log_context` to bind it.
"""

from __future__ import annotations

import contextlib
import logging
import sys
from typing import Iterator, Optional
import contextvars

# Job id context variable (populated by the wait loop for its duration)
job_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "job_id", default="-"
)

DEFAULT_FORMAT = (
    "[%(asctime)s] %(levelname)s %(name)s %(job_id)s: %(message)s"
)


def coerce_level(level: int | str | None) -> int:
    if level is None:
        return logging.INFO
    if isinstance(level, int):
        return level
    key = str(level).upper().strip()
    mapping = logging.getLevelNamesMapping()
    return mapping.get(key, logging.INFO)


@contextlib.contextmanager
def job_log_context(job_id: str) -> Iterator[None]:
    """Bind `job_id` to all records emitted inside the block."""
    token = job_id_var.set(job_id)
    try:
        yield
    finally:
        job_id_var.reset(token)


class _JobIdFilter(logging.Filter):
    """Inject job id from contextvar into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - simple
        record.job_id = job_id_var.get()
        return True


class _MaxLevelFilter(logging.Filter):
    def __init__(self, max_level: int):
        super().__init__()
        self.max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover
        return record.levelno <= self.max_level


class _MinLevelFilter(logging.Filter):
    def __init__(self, min_level: int):
        super().__init__()
        self.min_level = min_level

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover
        return record.levelno >= self.min_level


def configure_logging(
    level: int | str | None = None,
    fmt: Optional[str] = None,
    quiet_http_client: bool = True,
) -> None:
    """Configure root logger with separate stdout/stderr sinks & job id.

    Notes
    -----
    * DEBUG/INFO records go to stdout, WARNING and above to stderr.
    * aiohttp's own loggers are raised to WARNING unless `quiet_http_client`
      is False.
    """
    numeric_level = coerce_level(level)
    fmt = fmt or DEFAULT_FORMAT

    root = logging.getLogger()
    root.setLevel(numeric_level)

    # Clear existing handlers to avoid duplication on reconfiguration
    for h in list(root.handlers):
        root.removeHandler(h)

    formatter = logging.Formatter(fmt)
    job_filter = _JobIdFilter()

    # stdout handler for DEBUG/INFO
    stdout_handler = logging.StreamHandler(stream=sys.stdout)
    stdout_handler.setLevel(logging.DEBUG)
    stdout_handler.addFilter(_MaxLevelFilter(logging.INFO))
    stdout_handler.addFilter(job_filter)
    stdout_handler.setFormatter(formatter)

    # stderr handler for WARNING+
    stderr_handler = logging.StreamHandler(stream=sys.stderr)
    stderr_handler.setLevel(logging.WARNING)
    stderr_handler.addFilter(_MinLevelFilter(logging.WARNING))
    stderr_handler.addFilter(job_filter)
    stderr_handler.setFormatter(formatter)

    root.addHandler(stdout_handler)
    root.addHandler(stderr_handler)

    if quiet_http_client:
        logging.getLogger("aiohttp").setLevel(logging.WARNING)

    logging.getLogger("jobmon").debug(
        "Logging configured level=%s quiet_http_client=%s", numeric_level, quiet_http_client
    )

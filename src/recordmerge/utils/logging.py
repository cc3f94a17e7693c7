"""loguru setup plus helpers for job-scoped structured logging.

Every record carries ``job_id`` and ``step`` extras; they default to ``-`` and
are filled in by :func:`logging_context` while a job cycle runs.
"""

from __future__ import annotations

import sys
from contextlib import contextmanager
from time import perf_counter
from typing import Any, Iterator

from loguru import logger

from ..config.settings import Settings, get_settings

_DEFAULT_EXTRA = {"job_id": "-", "step": "-"}

_CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[job_id]}</cyan>/<magenta>{extra[step]}</magenta> | "
    "{message}"
)
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[job_id]} | {extra[step]} | {name}:{line} | {message}"

logger.configure(extra=_DEFAULT_EXTRA)


def configure_logging(settings: Settings | None = None, level: str | None = None) -> None:
    """Replace existing sinks with a stderr sink and a rotating file sink.

    *level* overrides ``settings.logging.level`` for both sinks.
    """

    cfg = settings or get_settings()
    options = cfg.logging
    effective = (level or options.level).upper()
    log_path = cfg.log_file
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.add(sys.stderr, level=effective, format=_CONSOLE_FORMAT, backtrace=False, diagnose=False)
    logger.add(
        log_path,
        level=effective,
        format=_FILE_FORMAT,
        rotation=options.rotation,
        retention=options.retention,
        serialize=options.serialize,
        enqueue=True,
    )
    logger.configure(extra=_DEFAULT_EXTRA)
    logger.debug("Logging configured", level=effective, log_file=str(log_path))


def get_logger(**context: Any):
    return logger.bind(**context)


@contextmanager
def logging_context(**context: Any) -> Iterator[Any]:
    """Bind *context* to every record emitted inside the block."""

    with logger.contextualize(**context):
        yield logger


@contextmanager
def log_timing(step: str, *, logger_=logger) -> Iterator[None]:
    """Log the wall-clock duration of the block as ``Step timing``."""

    started = perf_counter()
    try:
        yield
    finally:
        logger_.info("Step timing", step=step, seconds=round(perf_counter() - started, 4))


__all__ = ["configure_logging", "get_logger", "logging_context", "log_timing"]

"""
Structured Logging with structlog

Every pipeline call runs under its own job id; the stage currently
executing (acquire, rembg, compose, write) is tracked alongside it and
attached to each event together with the package version.
"""

import sys
import time
import logging
import structlog
from typing import Optional, Any, Dict
from contextvars import ContextVar
from functools import wraps

from preset_studio.core.config import settings

job_id_var: ContextVar[Optional[str]] = ContextVar("job_id", default=None)
stage_var: ContextVar[Optional[str]] = ContextVar("stage", default=None)

NOISY_LOGGERS = ("httpx", "httpcore", "PIL")


def add_pipeline_context(
    logger: logging.Logger,
    method_name: str,
    event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Attach version, job id and current stage."""
    event_dict["version"] = settings.APP_VERSION

    job_id = job_id_var.get()
    if job_id:
        event_dict["job_id"] = job_id

    stage = stage_var.get()
    if stage:
        event_dict.setdefault("stage", stage)

    return event_dict


def setup_logging(log_level: str = "INFO", json_format: bool = True):
    """
    Configure structlog for the host process. The library never calls this
    itself; the route layer does at startup.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    renderer = (
        structlog.processors.JSONRenderer()
        if json_format
        else structlog.dev.ConsoleRenderer(colors=True)
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            add_pipeline_context,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


class LogContext:
    """
    Scope a job id and/or stage to a block.

    Usage:
        with LogContext(job_id=new_job_id()):
            with LogContext(stage="compose"):
                ...
    """

    def __init__(self, job_id: Optional[str] = None, stage: Optional[str] = None):
        self.job_id = job_id
        self.stage = stage
        self._tokens = []

    def __enter__(self):
        if self.job_id:
            self._tokens.append((job_id_var, job_id_var.set(self.job_id)))
        if self.stage:
            self._tokens.append((stage_var, stage_var.set(self.stage)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)
        return False


def with_logging(stage: str):
    """
    Run a pipeline stage coroutine under ``stage`` and emit
    ``stage_completed`` / ``stage_failed`` with its duration.
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            logger = get_logger(func.__module__)
            start = time.perf_counter()
            with LogContext(stage=stage):
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    logger.error(
                        "stage_failed",
                        duration_ms=int((time.perf_counter() - start) * 1000),
                        error=str(e),
                        error_type=type(e).__name__
                    )
                    raise
                logger.info(
                    "stage_completed",
                    duration_ms=int((time.perf_counter() - start) * 1000)
                )
                return result
        return wrapper

    return decorator

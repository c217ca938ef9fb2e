"""
Structured logging setup for the Zlatko CRM backend.
Provides JSON-formatted logs with consistent fields for sync and reconciliation runs.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import LoggerFactory


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging with JSON output for production.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            _add_trace_context,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def _add_trace_context(logger, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Tag entries that belong to a sync or reconciliation pass."""
    pass_id = event_dict.get("pass_id")
    if pass_id and "job_run" not in event_dict:
        event_dict["job_run"] = pass_id.split(":", 1)[0]
    return event_dict


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def log_batch_result(job: str, user_id: str | None = None, **counts: int) -> None:
    """Log the aggregate counts of a batch pass with consistent fields."""
    logger = get_logger("batch")

    log_data: dict[str, Any] = {"job": job, "event_type": "batch_result", **counts}
    if user_id:
        log_data["user_id"] = user_id

    if counts.get("failed"):
        logger.warning("Batch pass finished with failures", **log_data)
    else:
        logger.info("Batch pass finished", **log_data)

"""
Structured logging for the catalog cache service.

Correlation ids live in structlog's context variables: ``run_id`` for one
warming run, ``request_id`` for one on-demand lookup issued by a caller.
"""

import logging
import sys
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

import structlog
from structlog.contextvars import bind_contextvars, bound_contextvars, clear_contextvars, merge_contextvars

CORRELATION_KEYS = ("run_id", "request_id")


def configure_logging(service_name: str, log_level: str = "info", json_output: bool = True) -> None:
    """Route structlog through the standard library with JSON (or console) output."""
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            add_service_context(service_name),
            drop_empty_correlation,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def add_service_context(service_name: str):
    """Build a processor that stamps the service name on log events."""

    def processor(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        event_dict.setdefault("service", service_name)
        return event_dict

    return processor


def drop_empty_correlation(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    for key in CORRELATION_KEYS:
        if key in event_dict and not event_dict[key]:
            del event_dict[key]
    return event_dict


def set_run_id(run_id: Optional[str] = None) -> str:
    """Bind a warming run id to the current context and return it."""
    run_id = run_id or uuid.uuid4().hex
    bind_contextvars(run_id=run_id)
    return run_id


@contextmanager
def request_context(request_id: Optional[str] = None) -> Iterator[str]:
    """Bind a request id for the duration of one lookup."""
    request_id = request_id or str(uuid.uuid4())
    with bound_contextvars(request_id=request_id):
        yield request_id


def clear_context():
    clear_contextvars()


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)

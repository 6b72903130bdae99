"""Structured logging setup using structlog.

Every log line carries whichever of ``request_id`` (HTTP request),
``run_id`` and ``template_id`` (transformation run) are bound at the time.
Output is a console rendering with ``DEBUG=true`` and JSON lines otherwise;
stdlib loggers (httpx, openai, uvicorn) go through the same formatter.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

import structlog

from slidesmith.config import get_settings

# ── Context variables ──

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
run_id_var: ContextVar[str | None] = ContextVar("run_id", default=None)
template_id_var: ContextVar[str | None] = ContextVar("template_id", default=None)

_CONTEXT_FIELDS = (
    (request_id_var, "request_id"),
    (run_id_var, "run_id"),
    (template_id_var, "template_id"),
)

MAX_FIELD_LENGTH = 500


@contextmanager
def run_context(run_id: str, template_id: str | None = None) -> Iterator[None]:
    """Bind ``run_id``/``template_id`` for the duration of a transformation run."""
    run_token = run_id_var.set(run_id)
    template_token = template_id_var.set(template_id)
    try:
        yield
    finally:
        template_id_var.reset(template_token)
        run_id_var.reset(run_token)


# ── Processors ──


def _inject_context_vars(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict,
) -> dict:
    for var, key in _CONTEXT_FIELDS:
        value = var.get()
        if value is not None:
            event_dict.setdefault(key, value)
    return event_dict


def _truncate_long_values(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict,
) -> dict:
    for key, value in event_dict.items():
        if key != "event" and isinstance(value, str) and len(value) > MAX_FIELD_LENGTH:
            event_dict[key] = f"{value[:MAX_FIELD_LENGTH]}... ({len(value)} chars)"
    return event_dict


def setup_logging() -> None:
    """Configure structlog + stdlib logging. Call once at app startup."""
    settings = get_settings()
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        _inject_context_vars,
        _truncate_long_values,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    renderer = structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    for noisy in ("httpx", "httpcore", "openai", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)

"""Structured logging setup using structlog.

One shared processor chain (context vars, log level, timestamps, stack
info) runs for every event.  The renderer is chosen from ``APP_ENV``
(``"production"`` selects JSON) unless ``json_output`` forces it; any other
environment gets the coloured ConsoleRenderer.

structlog events are handed to the standard-library ``logging`` machinery
(``structlog.stdlib.LoggerFactory``) and rendered by a single
``ProcessorFormatter`` on the root handler, so ragdesk's own events and
those of the SDKs it talks to (httpx under openai/anthropic/qdrant-client,
botocore, uvicorn) come out of the same stream in the same format.

That stream is stderr by default.  stdout belongs to command output: the
CLI prints listings and search hits there and they must stay pipeable.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TextIO

import structlog

# SDK loggers that log every HTTP request at INFO.
_NOISY_LOGGERS = ("httpx", "httpcore", "botocore", "urllib3")


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = False,
    stream: TextIO | None = None,
) -> structlog.BoundLogger:
    """Configure structlog and the root stdlib logger.

    Args:
        log_level: Logging level string (DEBUG, INFO, WARNING, ERROR).
        json_output: Force JSON output. When False, uses console rendering in
                     development and JSON in production (detected via APP_ENV).
        stream: Where rendered lines go; ``sys.stderr`` when omitted.

    Returns:
        A configured structlog BoundLogger.
    """
    app_env = os.environ.get("APP_ENV", "development")
    use_json = json_output or app_env == "production"
    level = log_level.upper()
    stream = stream or sys.stderr

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if use_json:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=stream.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Records from plain stdlib loggers have not been through the shared
    # chain yet; structlog's own records already have.
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(stream)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    if level != "DEBUG":
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a named structlog logger, configuring defaults on first use."""
    if not structlog.is_configured():
        configure_logging()

    return structlog.get_logger(logger_name=name)

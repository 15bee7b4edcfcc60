"""Structured logging with structlog.

Learn: structlog renders key/value events (logger.info("message.added",
message_id=3)). Context bound via structlog.contextvars — the request id
from RequestIdMiddleware — is merged into every event logged while that
request is being handled. Stdlib logging (uvicorn, SQLAlchemy) is routed
at the same level so everything lands in one stream.
"""

import logging
import sys

import structlog


def configure_logging(level: str = "INFO", json: bool = False, stream=None) -> None:
    """Configure structlog and stdlib logging once at startup.

    The CLI passes stream=sys.stderr so stdout stays clean for output
    that gets piped (an issued key, a JSON listing).
    """
    stream = stream or sys.stdout
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=stream,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )

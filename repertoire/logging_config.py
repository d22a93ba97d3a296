"""Structured logging setup (structlog on top of the stdlib logging tree)."""

import logging
import sys

import structlog
from structlog.types import Processor

from repertoire import config


def setup_logging(log_level: str | None = None, json_output: bool | None = None) -> None:
    """
    Route structlog and stdlib loggers (uvicorn, psycopg, ...) through one
    formatter. Defaults come from LOG_LEVEL / LOG_JSON.
    """
    level = (log_level or config.log_level()).upper()
    as_json = config.log_json() if json_output is None else json_output

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer: Processor
    if as_json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(foreign_pre_chain=shared_processors, processor=renderer)
    )
    logging.basicConfig(handlers=[handler], level=level, force=True)

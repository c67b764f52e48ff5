"""Logging configuration using structlog.

Two output formats share one processor chain:

- ``console``: colored, human-readable key-value lines (default)
- ``json``: one JSON object per line, for piping ``printshop watch`` output

Logs go to stderr so command output on stdout stays clean.
"""

import logging
import sys
from typing import Literal

import structlog
from structlog.typing import Processor

from printshop.config import settings

LogFormat = Literal["console", "json"]


def _renderer(log_format: LogFormat) -> Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=sys.stderr.isatty(),
        exception_formatter=structlog.dev.plain_traceback,
    )


def configure_logging(log_level: str | None = None, log_format: LogFormat | None = None) -> None:
    """Route structlog and stdlib logging through one stderr handler.

    Args:
        log_level: Root level name, defaults to ``settings.log_level``
        log_format: ``console`` or ``json``, defaults to ``settings.log_format``
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    fmt = log_format or settings.log_format
    if fmt == "json":
        shared_processors.append(structlog.processors.format_exc_info)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Foreign pre-chain handles logs from non-structlog loggers (httpx, asyncio)
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(fmt),
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    level_name = (log_level or settings.log_level).upper()
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level_name, logging.INFO))

    # httpx logs every request at INFO, including SSE reconnects
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


_configured = False


def setup_logging(log_level: str | None = None, log_format: LogFormat | None = None) -> None:
    """Setup logging once. Safe to call multiple times."""
    global _configured
    if not _configured:
        configure_logging(log_level, log_format)
        _configured = True

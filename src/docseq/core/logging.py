"""Structured logging configuration using structlog.

docseq modules log through ``logging.getLogger(__name__)``; the root
handler renders those records and native structlog events alike through
``structlog.stdlib.ProcessorFormatter``.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog


def configure_logging(
    json_output: bool = False, level: str = "INFO", stream: TextIO | None = None
) -> None:
    """Configure structlog and the root logger for docseq.

    Args:
        json_output: If True, one JSON object per line; otherwise console output.
        level: Log level (DEBUG, INFO, WARNING, ERROR).
        stream: Destination, stderr by default so command output on stdout
            stays pipeable.
    """
    stream = stream or sys.stderr
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    renderers: list[structlog.types.Processor]
    if json_output:
        renderers = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        renderers = [structlog.dev.ConsoleRenderer(colors=stream.isatty())]

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *renderers],
    )

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper()))
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream)
    handler.setFormatter(formatter)
    root.addHandler(handler)

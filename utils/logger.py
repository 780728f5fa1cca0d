"""
Structured logging for the metrics pipeline.

Why structlog?
  - Background timer threads log with key/value context (namespace,
    batch size, error) that stays greppable in JSON output.
  - Human-readable console output for local dev.
  - Thread-safe out of the box.

The library never configures logging on import. Applications call
setup_logging() once; until then events flow through whatever stdlib
logging configuration the host process has.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

import structlog

LIBRARY_LOGGER = "metrics_aggregator"

_HANDLER_MARK = "_metrics_aggregator_handler"


def setup_logging(*, level: Optional[str] = None, json_output: Optional[bool] = None) -> None:
    """
    Call once at process startup. Configures both stdlib logging
    and structlog in one shot. Unset arguments fall back to settings.
    Calling it again swaps the previously installed handler.
    """
    if level is None or json_output is None:
        from configs.settings import get_settings

        cfg = get_settings()
        level = cfg.log_level if level is None else level
        json_output = cfg.log_json if json_output is None else json_output

    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

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
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    setattr(handler, _HANDLER_MARK, True)

    # replace only our own handler; the host keeps whatever it installed
    root = logging.getLogger()
    for h in [h for h in root.handlers if getattr(h, _HANDLER_MARK, False)]:
        root.removeHandler(h)
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Return a named, bound logger. Unnamed callers share LIBRARY_LOGGER."""
    return structlog.get_logger(name or LIBRARY_LOGGER)

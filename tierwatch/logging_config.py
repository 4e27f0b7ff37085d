"""
Structured logging for the tierwatch service.

Every module logs through stdlib ``logging.getLogger(__name__)``; records are
rendered by structlog as JSON lines, or as console output when debugging.
Refresh cycles log through ``get_cycle_logger`` so each line carries the cycle
id and what triggered it.
"""

import logging
import sys
from typing import Optional

import structlog

from .config import settings

SERVICE_NAME = "tierwatch"

# Libraries whose INFO output drowns the refresh loop
_NOISY_LOGGERS = ("uvicorn.access", "httpcore", "httpx", "websockets", "redis")


def _add_service(logger, method_name, event_dict):
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def _use_console(level: int, log_format: str) -> bool:
    if log_format == "console":
        return True
    if log_format == "json":
        return False
    return level == logging.DEBUG


def setup_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Route stdlib and structlog output through one handler on stdout.

    Args:
        log_level: Override log level (default: settings.log_level)
        log_format: ``json``, ``console`` or ``auto`` (console only at DEBUG)
    """
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)
    console = _use_console(level, (log_format or settings.log_format).lower())

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _add_service,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if console:
        renderer: structlog.types.Processor = structlog.dev.ConsoleRenderer()
    else:
        pre_chain.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_cycle_logger(name: str, **context: object) -> structlog.stdlib.BoundLogger:
    """Logger bound to refresh-cycle context (cycle id, trigger)."""
    return structlog.get_logger(name).bind(**context)

import logging
import sys
from typing import Any, ContextManager, List, Optional

import structlog
from structlog.types import Processor

from dataroom_access.core.config import settings
from dataroom_access.infrastructure.logging_processors import (
    add_service_context,
    sanitize_sensitive_data,
    set_log_severity,
)


def setup_logging(level: Optional[str] = None) -> None:
    timestamper = structlog.processors.TimeStamper(fmt="iso")

    shared_processors: List[Processor] = [
        # Session context (dataroom, group) bound with bound_context()
        structlog.contextvars.merge_contextvars,
        add_service_context,

        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        set_log_severity,

        structlog.processors.format_exc_info,
        timestamper,

        # Must run last before rendering
        sanitize_sensitive_data,
    ]

    if settings.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level or settings.log_level))

    for logger_name in ["httpx", "httpcore"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bound_context(**kwargs: Any) -> ContextManager[None]:
    """Bind ``kwargs`` to every log event emitted inside the ``with`` block"""
    return structlog.contextvars.bound_contextvars(**kwargs)

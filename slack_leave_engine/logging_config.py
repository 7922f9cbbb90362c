"""Structlog configuration for the leave engine's JSON logs."""

from __future__ import annotations

import logging
from typing import Any, MutableMapping

import structlog

LOG_LEVEL = logging.INFO
SERVICE_NAME = "slack-leave-engine"


def _add_service(_logger: Any, _method: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def configure_logging(level: int = LOG_LEVEL) -> None:
    """Route structlog through stdlib logging as one JSON object per line.

    Every entry carries the bound ``trace_id`` (when a request or background
    task set one), the logger name and the service name.
    """

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _add_service,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=level)

from __future__ import annotations

import logging
from typing import Any, Dict

import structlog

_SECRET_KEY_MARKERS = ("api_key", "apikey", "authorization", "token", "password", "secret")
REDACTED = "[REDACTED]"


def redact_secrets(_logger: Any, _method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    for key in list(event_dict.keys()):
        lowered = key.lower()
        if any(marker in lowered for marker in _SECRET_KEY_MARKERS) and event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


def configure_logging(service_name: str, level: int = logging.INFO) -> None:
    logging.basicConfig(level=level)
    logging.getLogger().setLevel(level)
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            redact_secrets,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
    )
    logger = structlog.get_logger(service=service_name)
    logger.debug("logging_configured")


def get_logger(service_name: str) -> structlog.BoundLogger:
    return structlog.get_logger(service=service_name)

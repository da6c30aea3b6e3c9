"""
ELS SDK Logging
===============
Structured logging for applications embedding the SDK.

The SDK's modules log through ``structlog.get_logger(__name__)`` and never
configure logging themselves. Applications that want the SDK's debug events
call ``setup_logging`` once at startup.

Usage:
    from els_sdk.log import setup_logging

    setup_logging(level="DEBUG", json_output=False)
"""

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, MutableMapping

import structlog

REDACTED = "**********"
SENSITIVE_KEYS = frozenset({"secret", "password", "authorization", "secret_access_key"})
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


def redact_secrets(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor masking values whose key names a secret."""
    for key in list(event_dict):
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = REDACTED
    return event_dict


class JSONFormatter(logging.Formatter):
    """Formats log records, and the structlog fields riding on them, as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }

        # Fields passed by structlog arrive as record attributes
        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info),
            }

        return json.dumps(log_data, default=str)


def setup_logging(level: str = "INFO", json_output: bool = True) -> logging.Logger:
    """
    Route structlog events through stdlib logging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Whether to output JSON (for production)

    Returns:
        Configured ``els_sdk`` logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if json_output:
        processors = [
            structlog.stdlib.filter_by_level,
            redact_secrets,
            structlog.stdlib.render_to_log_kwargs,
        ]
    else:
        processors = [
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            redact_secrets,
            structlog.dev.ConsoleRenderer(colors=False),
        ]

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    sdk_logger = logging.getLogger("els_sdk")
    sdk_logger.setLevel(log_level)
    sdk_logger.handlers.clear()
    sdk_logger.propagate = False

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(message)s"))
    sdk_logger.addHandler(handler)

    return sdk_logger

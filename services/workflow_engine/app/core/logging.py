"""
structlog setup: one JSON object per line on stdout.

Shopify Admin tokens and bearer credentials are scrubbed from every event
before rendering, whether they arrive as a keyed value or inside a message.
"""
import logging
import re
from typing import Any

import structlog

SECRET_KEYS = frozenset(
    {"authorization", "x-shopify-access-token", "shopify_access_token", "access_token"}
)
_BEARER = re.compile(r"Bearer\s+[A-Za-z0-9\-_.=:+/]+")
_SHOPIFY_TOKEN = re.compile(r"shp(?:at|ca|ss|pa)_[A-Za-z0-9]+")

REDACTED = "[REDACTED]"


def redact_secrets(_logger, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key, value in event_dict.items():
        if str(key).lower() in SECRET_KEYS:
            event_dict[key] = REDACTED
        elif isinstance(value, str):
            value = _BEARER.sub(f"Bearer {REDACTED}", value)
            event_dict[key] = _SHOPIFY_TOKEN.sub(REDACTED, value)
    return event_dict


def configure_structlog(level: str = "INFO") -> None:
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    # Library loggers (uvicorn, sqlalchemy, alembic) stay on stdlib
    logging.basicConfig(format="%(message)s", level=numeric_level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            redact_secrets,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str):
    return structlog.get_logger(name)

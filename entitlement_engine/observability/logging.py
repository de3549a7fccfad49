"""
Structured logging for the entitlement engine.

Restore and resolve events carry the subscriber and platform they concern.
Purchase tokens are credentials: any raw token that reaches a log call is
reduced to its prefix before rendering.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from entitlement_engine.config import settings

TOKEN_PREFIX_LENGTH = 8

_RAW_TOKEN_KEYS = ("purchase_token", "purchaseToken", "token")


def redact_purchase_tokens(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Replace raw purchase tokens with a short `token_prefix`."""
    for key in _RAW_TOKEN_KEYS:
        if key not in event_dict:
            continue
        value = event_dict.pop(key)
        if isinstance(value, str) and value:
            event_dict.setdefault("token_prefix", value[:TOKEN_PREFIX_LENGTH])
    return event_dict


def add_service_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["service"] = settings.service_name
    event_dict["version"] = settings.api_version
    event_dict["entitlement_id"] = settings.premium_entitlement_id
    return event_dict


def build_processors(log_format: str, log_level: str) -> list[Processor]:
    """Processor chain shared by JSON and console output."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_service_context,
        redact_purchase_tokens,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if log_level.upper() == "DEBUG":
        processors.append(structlog.processors.ExceptionRenderer())
    else:
        processors.append(structlog.processors.format_exc_info)

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    return processors


def setup_logging() -> None:
    """
    Configure structlog from settings.

    A JSON line for a legacy restore looks like:
    {
        "event": "legacy_candidate_pending",
        "level": "info",
        "logger": "entitlement_engine.services.legacy_restore",
        "service": "entitlement-engine",
        "entitlement_id": "premium",
        "request_id": "c0ffee...",
        "platform": "android",
        "product_id": "premium_unlock",
        "token_prefix": "abcdefgh",
        ...
    }
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
    )

    structlog.configure(
        processors=build_processors(settings.log_format, settings.log_level),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)  # type: ignore[no-any-return]


@contextmanager
def log_context(
    request_id: str | None = None,
    app_user_id: str | None = None,
    platform: str | None = None,
    **extra: Any,
) -> Iterator[None]:
    """
    Bind request, subscriber and platform fields for the enclosed block.

    Fields left as None are not bound, so an outer binding stays visible.

    Usage:
        with log_context(request_id=request_id, app_user_id="uid-1", platform="android"):
            await restore_legacy_aware(...)
    """
    fields = {"request_id": request_id, "app_user_id": app_user_id, "platform": platform}
    fields.update(extra)
    bound = {key: value for key, value in fields.items() if value is not None}
    with structlog.contextvars.bound_contextvars(**bound):
        yield

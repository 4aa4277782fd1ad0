"""Structured logging setup using structlog."""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog


# Event-dict keys whose values must never reach log output in full
SENSITIVE_KEYS = frozenset({"authorization", "signature", "partner_key", "api_key"})


def redact(value: str | None, keep: int = 8) -> str:
    """Shorten a secret-bearing value to a prefix safe for logs."""
    if not value:
        return "<absent>"
    if len(value) <= keep:
        return "***"
    return f"{value[:keep]}..."


def redact_sensitive(
    _logger: Any, _method: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """structlog processor that redacts known secret-bearing keys."""
    for key in SENSITIVE_KEYS & event_dict.keys():
        event_dict[key] = redact(str(event_dict[key]))
    return event_dict


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    """Configure structured logging for the service and its CLI."""
    log_level = getattr(logging, level.upper())
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_sensitive,
        structlog.processors.StackInfoRenderer(),
    ]

    if json_format:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a logger instance."""
    return structlog.get_logger(name)

"""Structured logging setup.

Ledger services log through structlog. Output is either Splunk-style
key=value lines or one JSON object per line, chosen by ``logging.format``.
"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any

import structlog

from . import audit
from .config import Config

LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def _utc_stamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _kv_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        value = ",".join(str(v) for v in value)
    text = str(value)
    if " " in text or "=" in text:
        return f'"{text}"'
    return text


def splunk_processor(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> str:
    """Render an event as one key=value line.

    Example:
        2024-03-31T09:15:00Z INFO  invoice.created client=acme number=INV-1000
    """
    level = event_dict.pop("level", "INFO").upper()
    event = event_dict.pop("event", "")
    pairs = " ".join(
        f"{key}={_kv_value(value)}"
        for key, value in sorted(event_dict.items())
        if not key.startswith("_")
    )
    line = f"{_utc_stamp()} {level:5} {event}"
    return f"{line} {pairs}" if pairs else line


def json_processor(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Add a UTC timestamp and an uppercase level before JSON rendering."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    event_dict["level"] = event_dict.get("level", "info").upper()
    return event_dict


def _handlers(config: Config) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.logging.file:
        config.logging.file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(config.logging.file))
    return handlers


def configure_logging(config: Config) -> structlog.BoundLogger:
    """Route structlog through stdlib logging and enable audit events.

    Args:
        config: Application configuration.

    Returns:
        Logger for the application.
    """
    logging.basicConfig(
        format="%(message)s",
        level=LEVELS.get(config.logging.level, logging.INFO),
        handlers=_handlers(config),
        force=True,
    )

    processors: list[Any] = [structlog.stdlib.add_log_level]
    if config.logging.format == "json":
        processors += [json_processor, structlog.processors.JSONRenderer()]
    else:
        processors.append(splunk_processor)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    audit.configure(enabled=config.logging.enabled)
    return structlog.get_logger("openledger")


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Logger for a module."""
    return structlog.get_logger(name)

"""Structured logging for the resource engine"""

import logging
import sys
from typing import IO, Any, Optional

import structlog
from structlog.types import EventDict, Processor

from resource_engine import __version__
from resource_engine.config import settings

# Event keys that may carry a user's profile; only the anonymous id is logged
REDACTED_KEYS = frozenset({"profile", "demographics", "risk", "interaction_history", "preferences"})

# Third-party loggers kept at WARNING unless debugging
NOISY_LOGGERS = ("uvicorn.access", "httpx", "multipart")


def add_service_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Tag each entry with the environment, service name and version"""
    event_dict["environment"] = settings.environment
    event_dict["service"] = "resource-engine"
    event_dict["version"] = __version__
    return event_dict


def redact_profile_fields(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    for key in REDACTED_KEYS & event_dict.keys():
        event_dict[key] = "[redacted]"
    return event_dict


def _open_stream(output: str) -> IO[str]:
    if output == "stdout":
        return sys.stdout
    if output == "stderr":
        return sys.stderr
    return open(output, "a", encoding="utf-8")


def setup_logging(stream: Optional[IO[str]] = None) -> None:
    """
    Configure stdlib logging and structlog.

    Safe to call more than once; each call replaces the root handlers, so a
    new output stream takes effect.

    Args:
        stream: Output stream (LOG_OUTPUT setting if None)
    """
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=stream or _open_stream(settings.logging.output),
        level=log_level,
        force=True,
    )
    if not settings.debug:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        add_service_context,
        redact_profile_fields,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.logging.format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_request(request_id: str, **fields: Any) -> None:
    """Attach a request id (and any extra fields) to every entry logged in this context"""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, **fields)


def clear_request() -> None:
    structlog.contextvars.clear_contextvars()


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)

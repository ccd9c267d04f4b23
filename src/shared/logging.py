"""Structured logging for the Project Assistant platform.

Every module logs through structlog with keyword context (thread, run,
assistant and project ids). Request handlers bind the project id once so
each line emitted while serving that project carries it.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

# Keys whose values never reach the log output
SENSITIVE_KEYS = {"api_key", "apikey", "authorization", "token", "secret"}

# Third-party loggers that log every HTTP request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "openai")


def redact_sensitive(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Replace credential-like values in the event dict."""
    for key in list(event_dict):
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = "[REDACTED]"
    return event_dict


def _renderer_chain(json_output: bool) -> list[Processor]:
    chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_sensitive,
    ]
    if json_output:
        # Hebrew message text stays readable in production logs
        chain += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ]
    else:
        chain.append(structlog.dev.ConsoleRenderer(colors=True))
    return chain


def setup_logging(log_level: str = "INFO", json_output: bool = False) -> None:
    """
    Configure structlog and the standard library root logger.

    Args:
        log_level: Minimum level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Render JSON lines instead of colored console output
    """
    level = logging.getLevelName(log_level.upper())

    structlog.configure(
        processors=_renderer_chain(json_output),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.BoundLogger:
    """Module logger, optionally pre-bound with context."""
    logger = structlog.get_logger(name)
    return logger.bind(**initial_context) if initial_context else logger


def bind_project_context(project_id: str, **context: Any) -> None:
    """Bind the project id (and extras) to every log line in the current task."""
    structlog.contextvars.bind_contextvars(project_id=project_id, **context)


def clear_context() -> None:
    """Drop everything bound with bind_project_context."""
    structlog.contextvars.clear_contextvars()

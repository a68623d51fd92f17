"""Structured logging setup using structlog.

Every event carries the service name and, once :func:`setup_logging` has
run, the deployment environment.  Inside :func:`game_context` every event
also carries the ``game_code`` being settled, including events emitted by
the price resolver and the repository, which never see the code directly.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from contextlib import AbstractContextManager
from pathlib import Path
from typing import Any

import structlog

SERVICE_NAME = "wallstreet-settlement"
LOG_FILE_NAME = "wallstreet.log"

# HTTP chatter from the quote client and per-statement SQL output
QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "sqlalchemy.pool")


def _service_stamper(environment: str | None) -> structlog.types.Processor:
    def stamp(logger: Any, method_name: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
        event_dict.setdefault("service", SERVICE_NAME)
        if environment is not None:
            event_dict.setdefault("environment", environment)
        return event_dict

    return stamp


def setup_logging(
    level: str = "INFO",
    json_output: bool = True,
    log_dir: str = "logs",
    environment: str | None = None,
) -> None:
    """Configure structured logging for the settlement engine.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: If True, output JSON lines. If False, output human-readable.
        log_dir: Directory for the ``wallstreet.log`` file.
        environment: Deployment environment stamped on every event.
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        _service_stamper(environment),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)

    file_handler = logging.FileHandler(log_path / LOG_FILE_NAME)
    file_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        if isinstance(handler, logging.FileHandler):
            handler.close()
    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)
    root_logger.setLevel(getattr(logging, level.upper()))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def game_context(game_code: str, **extra: Any) -> AbstractContextManager[None]:
    """Bind *game_code* (and *extra*) to every event logged inside the block.

    Usage::

        with game_context("WS-8821", trigger="scheduler"):
            orchestrator.settle_game("WS-8821")
    """
    return structlog.contextvars.bound_contextvars(game_code=game_code, **extra)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger bound to the given name."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger

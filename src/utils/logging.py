"""Structured logging for actPulse, built on structlog.

One shared processor chain feeds either a coloured console renderer
(development) or a JSON renderer (``APP_ENV=production`` or
``json_output=True``).  The standard-library root logger is routed
through the same chain, so uvicorn access lines and library warnings come
out in the same format as our own events.

Every line carries ``service="actpulse"``.  Background work binds
``act_id`` and ``task`` through :func:`act_log_context`, and the request
middleware binds ``correlation_id``; both reach every line via
contextvars without being passed around.

httpx logs one INFO line per request; the fetch queue and the cache
updater make thousands of those a day, so httpx/httpcore and aiosqlite are
held at WARNING unless the configured level is DEBUG.
"""

import logging
import os
import sys
from contextlib import contextmanager
from typing import Any, Iterator, MutableMapping

import structlog

SERVICE_NAME = "actpulse"

_CHATTY_LIBRARIES = ("httpx", "httpcore", "aiosqlite")


def _add_service(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def _build_renderer(use_json: bool) -> structlog.types.Processor:
    if use_json:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def configure_logging(log_level: str = "INFO", json_output: bool = False) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: Minimum level name (DEBUG, INFO, WARNING, ERROR).
        json_output: Force JSON lines.  When False, JSON is still used if
            ``APP_ENV`` is ``"production"``.
    """
    level_name = log_level.upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level, level_name = logging.INFO, "INFO"

    use_json = json_output or os.environ.get("APP_ENV", "development") == "production"

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        _add_service,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]
    if use_json:
        # Console rendering prints tracebacks itself; JSON needs them as a field.
        shared_processors.append(structlog.processors.format_exc_info)

    renderer = _build_renderer(use_json)

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
            foreign_pre_chain=shared_processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level_name)

    library_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in _CHATTY_LIBRARIES:
        logging.getLogger(name).setLevel(library_level)


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a structlog logger bound to *name*, configuring defaults on first use."""
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger(logger_name=name)


@contextmanager
def act_log_context(act_id: str, task: str) -> Iterator[None]:
    """Bind ``act_id`` and the running ``task`` to every log line inside the block."""
    with structlog.contextvars.bound_contextvars(act_id=act_id, task=task):
        yield

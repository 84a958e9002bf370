from __future__ import annotations

import logging
import sys
from typing import Any

import orjson
import structlog


def _orjson_dumps(obj: Any, default: Any) -> str:
    return orjson.dumps(obj, default=default).decode("utf-8")


def configure_logging(*, level: str = "INFO", json_output: bool = True) -> None:
    """
    Configure structlog for the whole process. Call once, at startup.

    json_output=False renders colourless key=value lines, which reads better
    when an operator is watching a script step through by hand.
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        raise ValueError(f"unknown log level: {level!r}")

    renderer: Any
    if json_output:
        renderer = structlog.processors.JSONRenderer(serializer=_orjson_dumps)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            # prefix / epoch, bound by StepEngine.begin_run
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        cache_logger_on_first_use=True,
    )

    # stdlib loggers (uvicorn, fastapi) share the stream
    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def bind_context(**values: Any) -> None:
    """
    Attach key/values to every later log line in this context.

        bind_context(prefix="food", epoch=12)
    """
    structlog.contextvars.bind_contextvars(**values)

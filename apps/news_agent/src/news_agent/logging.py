"""Structured JSON logging for the crawl and delivery pipeline.

Every event is rendered as one JSON line on stdout. Context bound with
:func:`bound_task` (task name, trigger, run id) is merged into each event
emitted while the task runs, so a crawl's fetch, dedup and insert events can
be grouped by ``run_id``.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from uuid import uuid4

import structlog

# Libraries that log per request or per update at INFO.
_QUIET_LOGGERS = ("httpx", "httpcore", "aiogram.event")


def _resolve_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    value = logging.getLevelName(name)
    return value if isinstance(value, int) else logging.INFO


def configure_logging(level: str | int) -> None:
    level_value = _resolve_level(level)

    logging.basicConfig(level=level_value, format="%(message)s", stream=sys.stdout, force=True)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level_value, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level_value),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


@contextmanager
def bound_task(task: str, *, manual: bool) -> Iterator[str]:
    """Bind ``task``, ``trigger`` and a fresh ``run_id`` to every event in the block."""
    run_id = uuid4().hex[:12]
    with structlog.contextvars.bound_contextvars(
        task=task,
        trigger="manual" if manual else "scheduled",
        run_id=run_id,
    ):
        yield run_id


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)

"""structlog setup for record stores.

Library modules log through plain `logging.getLogger(__name__)`; this module
routes those records through structlog so they render as JSON in production
or as colored console lines in development. Audited writes bind the acting
identity with `bound_actor()`, and every line logged inside that block
carries it as `actor`.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

import structlog

from mongo_crud.config import get_settings

actor_var: ContextVar[str | None] = ContextVar("actor", default=None)

DRIVER_LOGGERS = ("pymongo", "motor")


@contextmanager
def bound_actor(actor: object) -> Iterator[None]:
    """Attribute log lines emitted inside the block to `actor`."""
    token = actor_var.set(str(actor))
    try:
        yield
    finally:
        actor_var.reset(token)


def _add_actor(logger, method_name, event_dict):
    actor = actor_var.get()
    if actor is not None:
        event_dict["actor"] = actor
    return event_dict


def _renderer(log_format: str):
    if log_format == "console":
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def configure_logging(log_level: str | None = None, log_format: str | None = None) -> None:
    """Install a single stdout handler on the root logger.

    Args:
        log_level: Root level name; unknown names fall back to INFO.
            Defaults to settings.log_level.
        log_format: "json" or "console". Defaults to settings.log_format.
    """
    settings = get_settings()
    log_level = log_level or settings.log_level
    log_format = log_format or settings.log_format

    pre_chain = [
        structlog.contextvars.merge_contextvars,
        _add_actor,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(log_format),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Server selection and heartbeat chatter
    for name in DRIVER_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

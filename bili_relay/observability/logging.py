"""
Structured logging for the relay.

Sources and the relay service log through structlog with key/value fields;
the HTTP client, classifier and output channels use stdlib logging. Both
kinds of record go through one ``ProcessorFormatter`` so they share the
renderer (JSON in production, console otherwise) and the bound context:

- ``account_context()`` binds ``source`` and ``uid`` while one account is
  polled, so retry warnings from the HTTP layer name the account they
  belong to.
- ``OUTPUT_LOGGER`` carries the messages of the console output channel. It
  stays at INFO whatever the configured level, because for that channel
  the log *is* the delivery.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from structlog.types import Processor

from bili_relay.config.settings import get_settings

OUTPUT_LOGGER = "bili_relay.output"

# Third-party loggers that log every request at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "asyncio")


@contextmanager
def account_context(source: str, uid: int) -> Iterator[None]:
    """Bind ``source`` and ``uid`` to every record logged inside the block."""
    with structlog.contextvars.bound_contextvars(source=source, uid=uid):
        yield


def _renderer(production: bool) -> list[Processor]:
    if production:
        return [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ]
    return [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]


def setup_logging(level: str | None = None) -> None:
    """
    Configure structlog and stdlib logging for the relay.

    Args:
        level: Override for the configured log level (the CLI passes
            "DEBUG" for ``--debug``)
    """
    settings = get_settings()
    level = level or settings.log_level

    # Applied to structlog events and to plain stdlib records alike
    pre_chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    structlog.configure(
        processors=pre_chain + [
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta]
        + _renderer(settings.is_production),
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    output_level = min(logging.INFO, root.level)
    logging.getLogger(OUTPUT_LOGGER).setLevel(output_level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, root.level))

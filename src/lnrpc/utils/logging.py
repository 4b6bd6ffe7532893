import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import structlog


def setup_logging(level: int = logging.DEBUG) -> None:
    """Render lnrpc events on stderr, keeping stdout free for command output.

    Args:
        level (int): Level of the ``lnrpc`` logger
    """
    logging.basicConfig(format="%(message)s", stream=sys.stderr)
    logging.getLogger("lnrpc").setLevel(level)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="%H:%M:%S"),
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


@contextmanager
def logging_context(**context) -> Iterator[None]:
    """Bind ``context`` for the duration of the block; keys an outer block bound keep their value."""
    unbound = {key: value for key, value in context.items() if key not in structlog.contextvars.get_contextvars()}
    with structlog.contextvars.bound_contextvars(**unbound):
        yield

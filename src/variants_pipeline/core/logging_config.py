"""
Logging setup for the variants pipeline.

Every record written by the pipeline's stdout handler is stamped with the id
of the invocation that produced it: the Lambda request id when running in
Lambda, a generated id otherwise. Size tokens processed on worker threads
keep the id of the invocation that scheduled them.
"""

import os
import sys
import uuid
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

STDOUT_HANDLER_NAME = "variants-pipeline-stdout"
NO_INVOCATION = "-"

STRUCTURED_FORMAT = (
    "%(asctime)s | %(invocation_id)s | %(name)s | %(levelname)-8s | "
    "%(filename)s:%(lineno)d | %(message)s"
)
SIMPLE_FORMAT = "%(asctime)s - %(invocation_id)s - %(levelname)s - %(message)s"

_invocation_id: ContextVar[Optional[str]] = ContextVar("invocation_id", default=None)


def current_invocation_id() -> Optional[str]:
    return _invocation_id.get()


@contextmanager
def invocation_scope(invocation_id: Optional[str] = None) -> Iterator[str]:
    """
    Bind an invocation id for the enclosed block.

    An enclosing scope's id is reused when ``invocation_id`` is not given, so
    the orchestrator logs under the request id bound by the Lambda handler.
    """
    resolved = invocation_id or _invocation_id.get() or uuid.uuid4().hex
    token = _invocation_id.set(resolved)
    try:
        yield resolved
    finally:
        _invocation_id.reset(token)


class InvocationIdFilter(logging.Filter):
    """Adds ``invocation_id`` to every record passing through a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.invocation_id = _invocation_id.get() or NO_INVOCATION
        return True


def _stdout_handler(logger: logging.Logger) -> Optional[logging.Handler]:
    for handler in logger.handlers:
        if handler.get_name() == STDOUT_HANDLER_NAME:
            return handler
    return None


def setup_logger(
    name: str = "variants-pipeline",
    level: Optional[str] = None,
    format_type: str = "structured",
) -> logging.Logger:
    """
    Configure a pipeline logger writing to stdout.

    Args:
        name: Logger name
        level: Log level override (defaults to LOG_LEVEL, then INFO)
        format_type: "structured" or "simple" (LOG_FORMAT takes precedence)

    The stdout handler is added once per logger, whatever other handlers a
    host (Lambda runtime, test runner) has attached.
    """
    logger = logging.getLogger(name)

    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))

    if _stdout_handler(logger) is None:
        handler = logging.StreamHandler(sys.stdout)
        handler.set_name(STDOUT_HANDLER_NAME)
        handler.addFilter(InvocationIdFilter())

        env_format = os.getenv("LOG_FORMAT", format_type).lower()
        if env_format == "structured":
            formatter = logging.Formatter(STRUCTURED_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        else:
            formatter = logging.Formatter(SIMPLE_FORMAT)

        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.propagate = False
    return logger


def get_logger(name: str = "variants-pipeline") -> logging.Logger:
    return setup_logger(name)


def set_debug(logger: logging.Logger) -> None:
    """Switch a pipeline logger and the root logger to DEBUG."""
    logger.setLevel(logging.DEBUG)
    logging.getLogger().setLevel(logging.DEBUG)

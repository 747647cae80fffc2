"""Free-text diagnostic loggers.

Hosts hand the client a plain callable that receives messages. The helpers
here prefix, gate and default that callable.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

Logger = Callable[[str], None]

_default = logging.getLogger("context_client")


def default_logger(message: str) -> None:
    """Sink used when the host does not supply one."""

    _default.info(message)


def scoped_logger(logger: Optional[Logger], scope: str) -> Optional[Logger]:
    """Prefix every message with ``scope``; ``None`` stays ``None``."""

    if logger is None:
        return None

    def log(message: str) -> None:
        logger(f"{scope}: {message}")

    return log


def gated_logger(logger: Logger, enabled: Callable[[], bool]) -> Logger:
    """Forward messages only while ``enabled()`` is true.

    The predicate is evaluated per message, so flipping it takes effect
    immediately for every holder of the returned logger.
    """

    def log(message: str) -> None:
        if enabled():
            logger(message)

    return log

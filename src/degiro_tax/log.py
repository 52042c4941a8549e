from __future__ import annotations

import logging

from .config import LOG_FORMAT


def setup_logging(level: int = logging.WARNING) -> None:
    """Configure the root logger for command-line use.

    Safe to call more than once: the handler is installed on the first call and
    later calls only change the level.
    """
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    root.setLevel(level)

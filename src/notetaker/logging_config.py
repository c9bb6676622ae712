from __future__ import annotations

import logging

from src.notetaker.config import settings


def configure_logging(level: str | None = None) -> None:
    """Install the process-wide log format.

    Module loggers ("notetaker.*", "audit") propagate to the root logger
    configured here.
    """

    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

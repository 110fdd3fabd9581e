"""Logging setup for the command-line scripts."""

from __future__ import annotations

import logging
from typing import Union

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: Union[int, str] = logging.INFO) -> logging.Logger:
    """
    Attach one stream handler to the `foofinder_kit`/`foofinder_live` loggers.

    Calling it again only updates the level.
    """

    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level!r}")
        level = resolved

    root = logging.getLogger("foofinder_live")
    for name in ("foofinder_kit", "foofinder_live"):
        logger = logging.getLogger(name)
        logger.setLevel(level)
        if not any(getattr(h, "_foofinder", False) for h in logger.handlers):
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            handler._foofinder = True  # type: ignore[attr-defined]
            logger.addHandler(handler)
        logger.propagate = False
    return root

"""Logging setup shared by the CLI and the API."""

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def setup_logging(level: int | str = logging.WARNING) -> None:
    """Attach one stderr handler to the package logger (idempotent)."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING

    logger = logging.getLogger("cgtcalc")
    logger.setLevel(level)
    if not any(getattr(h, "_cgtcalc", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        handler._cgtcalc = True  # type: ignore[attr-defined]
        logger.addHandler(handler)

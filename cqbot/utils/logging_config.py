"""Logging configuration helpers for the CodeQuestionBot client."""

from __future__ import annotations

import logging
from logging import Logger


def configure_logging(level: str | int = logging.INFO) -> Logger:
    """Configure basic logging for the client and return the package logger."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    # httpx logs every request at INFO; keep it out of the console flow.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return logging.getLogger("cqbot")

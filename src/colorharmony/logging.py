"""Logging configuration for colorharmony.

All modules log through ``get_logger`` under the ``colorharmony``
namespace.  ``setup_logging`` attaches one stderr handler and, when asked,
one file handler per path; the CLI drives it from ``--verbose``,
``--log-file`` and ``--json-logs``.
"""

from __future__ import annotations

import json
import logging
import os
import sys
import threading
from datetime import datetime, timezone
from typing import Any

ROOT_LOGGER = "colorharmony"
DEFAULT_FORMAT = "%(levelname)-5s | %(name)-22s | %(message)s"
VERBOSE_FORMAT = "%(asctime)s | %(levelname)-5s | %(name)-22s | %(message)s"
_SETUP_LOCK = threading.Lock()

# Attributes every LogRecord carries; anything else came in through ``extra=``
_RECORD_FIELDS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """One JSON object per line, with ``extra=`` fields under ``context``."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "where": f"{record.module}:{record.lineno}",
            "message": record.getMessage(),
        }
        context = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_FIELDS and not key.startswith("_")
        }
        if context:
            payload["context"] = context
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def _text_formatter(verbose: bool) -> logging.Formatter:
    return logging.Formatter(VERBOSE_FORMAT if verbose else DEFAULT_FORMAT)


def _stderr_handler(logger: logging.Logger) -> logging.Handler:
    """Return the single stderr handler, dropping any duplicates."""
    found = [
        h
        for h in logger.handlers
        if type(h) is logging.StreamHandler and getattr(h, "stream", None) is sys.stderr
    ]
    for extra in found[1:]:
        logger.removeHandler(extra)
    if found:
        return found[0]
    handler = logging.StreamHandler(sys.stderr)
    logger.addHandler(handler)
    return handler


def _file_handler(logger: logging.Logger, path: str | os.PathLike[str]) -> logging.Handler:
    """Return the file handler for *path*, creating it on first use."""
    target = os.path.abspath(os.fspath(path))
    for h in logger.handlers:
        if isinstance(h, logging.FileHandler) and h.baseFilename == target:
            return h
    handler = logging.FileHandler(target, encoding="utf-8")
    logger.addHandler(handler)
    return handler


def setup_logging(
    level: int = logging.INFO,
    verbose: bool = False,
    log_file: str | os.PathLike[str] | None = None,
    json_logs: bool = False,
) -> logging.Logger:
    """Configure the ``colorharmony`` logger.

    Repeated calls reconfigure the existing handlers instead of stacking
    new ones.  File output always carries timestamps.

    Args:
        level: Logging level (default: INFO).
        verbose: If True, include timestamps in stderr output.
        log_file: Optional file to write logs to, in addition to stderr.
        json_logs: Emit JSON lines on every handler instead of text.

    Returns:
        The configured package logger.
    """
    with _SETUP_LOCK:
        logger = logging.getLogger(ROOT_LOGGER)
        logger.setLevel(level)

        console = _stderr_handler(logger)
        console.setFormatter(JsonFormatter() if json_logs else _text_formatter(verbose))

        if log_file:
            handler = _file_handler(logger, log_file)
            handler.setFormatter(JsonFormatter() if json_logs else _text_formatter(True))
        return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a colorharmony module, e.g. ``get_logger("transfer")``."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")

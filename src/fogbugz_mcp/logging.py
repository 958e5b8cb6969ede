"""Structured JSON logging for fogbugz-mcp.

stdout carries the JSON-RPC stream, so diagnostics go to stderr (and
optionally to a rotating JSONL file, 5MB with 3 backups).
"""

from __future__ import annotations

import json
import logging
import os
import sys
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, TextIO

LOGGER_NAME = "fogbugz_mcp"
_setup_lock = threading.Lock()
_MAX_BYTES = 5 * 1024 * 1024  # 5MB
_BACKUP_COUNT = 3


class _JsonFormatter(logging.Formatter):
    """Format log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "msg": record.getMessage(),
        }
        if hasattr(record, "method"):
            entry["method"] = record.method
        if hasattr(record, "tool"):
            entry["tool"] = record.tool
        if hasattr(record, "args_data"):
            entry["args"] = record.args_data
        if hasattr(record, "duration_ms"):
            entry["duration_ms"] = record.duration_ms
        if hasattr(record, "error"):
            entry["error"] = record.error
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = str(record.exc_info[1])
        return json.dumps(entry, default=str)


def _is_console_handler(handler: logging.Handler) -> bool:
    # RotatingFileHandler is itself a StreamHandler subclass.
    return isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler)


def setup_logging(
    stream: TextIO | None = None,
    log_file: Path | None = None,
    level: str | int = logging.INFO,
) -> logging.Logger:
    """Attach JSON handlers to the ``fogbugz_mcp`` logger.

    Always logs to *stream* (default: stderr). When *log_file* is given, also
    writes JSONL there with rotation. Safe to call repeatedly: an existing
    handler for the same target is reused, a stale one is replaced.
    """
    logger = logging.getLogger(LOGGER_NAME)
    target_stream = stream if stream is not None else sys.stderr
    target_filename = os.path.abspath(str(log_file)) if log_file is not None else None

    with _setup_lock:
        have_console = False
        have_file = False
        for h in logger.handlers[:]:
            if isinstance(h, RotatingFileHandler):
                if h.baseFilename == target_filename:
                    have_file = True
                    continue
                logger.removeHandler(h)
                h.close()
            elif _is_console_handler(h):
                if h.stream is target_stream:  # type: ignore[attr-defined]
                    have_console = True
                    continue
                # Different stream; drop it so log lines never land on stdout twice.
                logger.removeHandler(h)

        if not have_console:
            console = logging.StreamHandler(target_stream)
            console.setFormatter(_JsonFormatter())
            logger.addHandler(console)

        if target_filename is not None and not have_file:
            Path(target_filename).parent.mkdir(parents=True, exist_ok=True)
            handler = RotatingFileHandler(
                target_filename,
                maxBytes=_MAX_BYTES,
                backupCount=_BACKUP_COUNT,
            )
            handler.setFormatter(_JsonFormatter())
            logger.addHandler(handler)

        logger.setLevel(level)
    return logger

"""Structured logging configuration for bandsweep.

Console output goes to stderr in a compact human-readable form; an optional
JSON-lines file handler carries the same records for machine parsing. Sweep
context (source, band, sweep id) travels on records as ``extra`` fields and
is rendered by both formatters.

Usage:
    from bandsweep.util.logging import configure_logging, get_logger, sweep_context

    configure_logging(level="DEBUG", json_file="bandsweep.jsonl")
    log = sweep_context(get_logger(__name__), src="track.wav", band="bass")
    log.info("sweep finished", extra={"duration_ms": 812.0})
"""

from __future__ import annotations

import json
import logging
import os
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, MutableMapping, Optional, Tuple

_configured = False
_root_logger_name = "bandsweep"

CONTEXT_FIELDS: Tuple[str, ...] = ("sweep_id", "src", "band", "step", "error_type", "duration_ms")


def _context_of(record: logging.LogRecord) -> Dict[str, Any]:
    return {key: getattr(record, key) for key in CONTEXT_FIELDS if getattr(record, key, None) is not None}


class JSONFormatter(logging.Formatter):
    """Emit log records as single-line JSON for machine parsing."""

    def format(self, record: logging.LogRecord) -> str:
        output: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        output.update(_context_of(record))
        if record.exc_info:
            output["traceback"] = "".join(traceback.format_exception(*record.exc_info))
        return json.dumps(output, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable console format with optional color and trailing context."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        level = record.levelname
        if self.use_color:
            level_str = f"{self.LEVEL_COLORS.get(level, '')}{level:8}{self.RESET}"
        else:
            level_str = f"{level:8}"
        name = record.name.replace(f"{_root_logger_name}.", "")
        line = f"[{ts}] {level_str} [{name}] {record.getMessage()}"
        context = _context_of(record)
        if context:
            line += " " + " ".join(f"{key}={value}" for key, value in context.items())
        if record.exc_info:
            line += "\n" + "".join(traceback.format_exception(*record.exc_info))
        return line


class SweepContextAdapter(logging.LoggerAdapter):
    """Merge bound sweep context into every record's ``extra``."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        extra = dict(self.extra or {})
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return msg, kwargs


def configure_logging(
    *,
    level: Optional[str] = None,
    json_file: Optional[str] = None,
    use_color: bool = True,
) -> None:
    """Configure the bandsweep logging subsystem.

    Args:
        level: Log level name. Defaults to ``BANDSWEEP_LOG_LEVEL`` (INFO), or
               DEBUG when ``BANDSWEEP_DEBUG=1`` is set.
        json_file: Optional path receiving JSON-formatted records.
        use_color: Colorize console output (ignored when stderr is not a TTY).

    Calling it again replaces the previously installed handlers.
    """
    global _configured

    if level is None:
        if os.environ.get("BANDSWEEP_DEBUG", "").strip() in ("1", "true", "yes"):
            level = "DEBUG"
        else:
            level = os.environ.get("BANDSWEEP_LOG_LEVEL", "INFO")
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(_root_logger_name)
    logger.setLevel(numeric_level)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(ConsoleFormatter(use_color=use_color))
    logger.addHandler(console_handler)

    if json_file:
        try:
            file_handler = logging.FileHandler(json_file, mode="a", encoding="utf-8")
        except OSError as exc:
            logger.warning("Failed to open JSON log file %s: %s", json_file, exc)
        else:
            file_handler.setLevel(numeric_level)
            file_handler.setFormatter(JSONFormatter())
            logger.addHandler(file_handler)

    logger.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the bandsweep namespace, configuring defaults on first use."""
    if not _configured:
        configure_logging()
    if not name.startswith(_root_logger_name):
        name = f"{_root_logger_name}.main" if name == "__main__" else f"{_root_logger_name}.{name}"
    return logging.getLogger(name)


def sweep_context(logger: logging.Logger, **fields: Any) -> SweepContextAdapter:
    """Bind sweep context fields (src, band, sweep_id, ...) to a logger."""
    return SweepContextAdapter(logger, {k: v for k, v in fields.items() if v is not None})


def log_exception(
    logger: logging.Logger,
    message: str,
    *,
    error_type: Optional[str] = None,
    **extra: Any,
) -> None:
    """Log the exception being handled with structured context.

    Call this inside an except block.
    """
    extra_dict = dict(extra)
    if error_type:
        extra_dict["error_type"] = error_type
    logger.exception(message, extra=extra_dict)

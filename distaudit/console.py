"""
Leveled logging for the command line tools.

Code logs through structlog bound loggers: the message plus keyword fields
(``rule_id``, ``severity``, ``path``, ``section``, ``success``). The processor
chain hands each event to the stdlib ``distaudit`` logger with those fields as
record attributes; :class:`ConsoleFormatter` is the only place that knows
about markers and layout.
"""
from __future__ import annotations

import logging
import sys
from typing import Any, Iterable

import structlog

OK = "✅"
WARN = "⚠️ "
ERR = "❌"

LOGGER_NAME = "distaudit"

_SEVERITY_TO_LEVEL = {
    "error": logging.ERROR,
    "warning": logging.WARNING,
}

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.UnicodeDecoder(),
        structlog.stdlib.render_to_log_kwargs,
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
)


class ConsoleFormatter(logging.Formatter):
    """Render leveled records for a terminal.

    Records carrying ``success=True`` get the OK marker, warnings and errors get
    their own markers, plain info is tagged ``[audit]``. ``section=True``
    renders a header line.
    """

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        if getattr(record, "section", False):
            return f"\n=== {msg} ==="
        if getattr(record, "success", False):
            return f"{OK} {msg}"
        if record.levelno >= logging.ERROR:
            line = f"{ERR} {msg}"
        elif record.levelno >= logging.WARNING:
            line = f"{WARN}{msg}"
        elif record.levelno <= logging.DEBUG:
            line = f"   {msg}"
        else:
            line = f"[audit] {msg}"
        if record.exc_info and record.levelno <= logging.DEBUG:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(verbosity: int = 0, stream=None) -> logging.Logger:
    """-1 quiet (warnings and errors), 0 normal, 1+ debug."""
    level = logging.WARNING if verbosity < 0 else logging.DEBUG if verbosity > 0 else logging.INFO
    logger = logging.getLogger(LOGGER_NAME)
    for h in list(logger.handlers):
        if getattr(h, "_distaudit", False):
            logger.removeHandler(h)
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(ConsoleFormatter())
    handler._distaudit = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger


def get_logger(name: str = "") -> Any:
    return structlog.get_logger(f"{LOGGER_NAME}.{name}" if name else LOGGER_NAME)


def section(log, title: str) -> None:
    log.info(title, section=True)


def success(log, message: str, *args) -> None:
    log.info(message, *args, success=True)


def emit_violations(log, violations: Iterable) -> None:
    for v in violations:
        severity = v.severity.value
        log.log(_SEVERITY_TO_LEVEL[severity], v.message,
                rule_id=v.rule_id, severity=severity, path=v.path)

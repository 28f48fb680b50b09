"""
Logging for the spam filter.

Every chatfilter logger (and twitchio's) writes through one setup:
- SecretFilter keeps the OAuth token and client secret out of the output
- ChatFormatter tags records with the channel they concern and, on a
  terminal, colours verdict records by what happened to the message
- chat text goes through ``preview`` so one message is always one log line

Verdict records are logged with ``extra={"channel": ..., "action": ...}``
where action is one of "hidden", "marked" or "detected".
"""

from __future__ import annotations

import logging
import re
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from chatfilter.config import Config

LOGGER_NAMESPACE = "chatfilter"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(where)-16s | %(name)s | %(message)s"

PREVIEW_LENGTH = 180
REDACTED = "[REDACTED]"

# Shorter values would match ordinary chat text
MIN_SECRET_LENGTH = 4


def preview(text: str | None, limit: int = PREVIEW_LENGTH) -> str:
    """Chat text as a single line of at most ``limit`` characters."""
    return " ".join((text or "").split())[:limit]


class SecretFilter(logging.Filter):
    """
    Redacts configured secrets from the rendered log message.

    Secrets are matched longest first, so "oauth:<token>" is replaced as a
    whole rather than leaving the "oauth:" prefix behind.
    """

    def __init__(self, secrets: Iterable[str] = ()) -> None:
        super().__init__()
        values = sorted(
            {s for s in secrets if s and len(s) >= MIN_SECRET_LENGTH},
            key=len,
            reverse=True,
        )
        self._pattern = (
            re.compile("|".join(re.escape(v) for v in values), re.IGNORECASE)
            if values
            else None
        )

    def redact(self, value: str) -> str:
        """Return ``value`` with every secret replaced."""
        if self._pattern is None:
            return value
        return self._pattern.sub(REDACTED, value)

    def filter(self, record: logging.LogRecord) -> bool:
        if self._pattern is None:
            return True
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            # Broken format args; the handler reports those itself
            return True
        redacted = self.redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


class ChatFormatter(logging.Formatter):
    """
    Formatter that shows which channel a record belongs to.

    Records without a channel (startup, twitchio) show "-". With colours on,
    verdict records are coloured by action and other records by level.
    """

    ACTION_COLORS = {
        "hidden": "\033[31m",  # Red
        "marked": "\033[33m",  # Yellow
        "detected": "\033[36m",  # Cyan
    }
    LEVEL_COLORS = {
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[41m",
    }
    RESET = "\033[0m"

    def __init__(self, fmt: str = LOG_FORMAT, use_colors: bool = False) -> None:
        super().__init__(fmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        channel = getattr(record, "channel", None)
        record.where = f"#{channel}" if channel else "-"
        line = super().format(record)
        if not self.use_colors:
            return line
        color = self.ACTION_COLORS.get(getattr(record, "action", None)) or self.LEVEL_COLORS.get(
            record.levelno
        )
        return f"{color}{line}{self.RESET}" if color else line


def _attach(
    handler: logging.Handler,
    formatter: logging.Formatter,
    secret_filter: SecretFilter,
) -> logging.Handler:
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    handler.addFilter(secret_filter)
    return handler


def setup_logging(config: Config) -> logging.Logger:
    """
    Route chatfilter and twitchio logging to the console and, optionally, a file.

    Args:
        config: Runtime configuration with log level, log file and secrets

    Returns:
        logging.Logger: The chatfilter root logger
    """
    secret_filter = SecretFilter(config.secrets)
    handlers = [
        _attach(
            logging.StreamHandler(sys.stderr),
            ChatFormatter(use_colors=sys.stderr.isatty()),
            secret_filter,
        )
    ]
    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            _attach(logging.FileHandler(log_path, encoding="utf-8"), ChatFormatter(), secret_filter)
        )

    root = logging.getLogger(LOGGER_NAMESPACE)
    root.setLevel(config.log_level)
    root.propagate = False
    for old in list(root.handlers):
        root.removeHandler(old)
        old.close()
    for handler in handlers:
        root.addHandler(handler)

    # twitchio reports every IRC event at INFO
    twitchio_logger = logging.getLogger("twitchio")
    twitchio_logger.setLevel(logging.WARNING)
    twitchio_logger.propagate = False
    twitchio_logger.handlers = list(handlers)

    root.debug("Logging initialized with level %s", config.log_level)
    return root


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger under the chatfilter namespace.

    Args:
        name: Module name (usually __name__)
    """
    if not name.startswith(LOGGER_NAMESPACE):
        name = f"{LOGGER_NAMESPACE}.{name}"
    return logging.getLogger(name)

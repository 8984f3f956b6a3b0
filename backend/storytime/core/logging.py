"""Structured logging configuration for the StoryTime backend.

This module provides:
- JSON structured logs for files and production consoles
- Colored console output when DEBUG is on
- Rotating file handler (10MB max, 5 backups)
- A filter that redacts passwords, tokens, secrets and the tokens
  embedded in verification and reset links before any handler writes
  a record

Services attach structured data through ``extra={"context": {...}}``;
both formatters render it.
"""

from __future__ import annotations

import copy
import json
import logging
import re
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import ClassVar

# Verify and reset tokens travel as the last path segment of account links
_LINK_TOKEN_RE = re.compile(
    r"(/verifyEmail|/resetpassword|/verify-email|/reset-password)/[^/\s?\"']+"
)


def redact_link_tokens(text: str) -> str:
    """Replace the token segment of verification and reset links.

    Examples:
        >>> redact_link_tokens("GET /api/v1/users/verifyEmail/eyJhbGc")
        'GET /api/v1/users/verifyEmail/[REDACTED]'
    """
    return _LINK_TOKEN_RE.sub(r"\1/[REDACTED]", text)


class SensitiveDataFilter(logging.Filter):
    """Redact credentials from log messages.

    Matches ``key: value`` / ``key=value`` pairs whose key looks like a
    password, token, secret or authorization header, bearer tokens, and
    the token segment of account links.

    Examples:
        >>> SensitiveDataFilter().redact("login ok, token=eyJhbGc")
        'login ok, token: [REDACTED]'
    """

    SENSITIVE_PATTERNS: ClassVar[list[str]] = [
        "password",
        "passwd",
        "pwd",
        "secret",
        "token",
        "api_key",
        "apikey",
        "authorization",
        "credential",
    ]

    _PAIR_RE: ClassVar[re.Pattern[str]] = re.compile(
        rf"({'|'.join(SENSITIVE_PATTERNS)})[:=]\s*[\"']?[^\s\"',]+",
        re.IGNORECASE,
    )
    _BEARER_RE: ClassVar[re.Pattern[str]] = re.compile(
        r"bearer\s+[A-Za-z0-9\-._~+/]+=*",
        re.IGNORECASE,
    )

    def filter(self, record: logging.LogRecord) -> bool:
        """Redact sensitive data in place; never drops the record.

        The message is merged with its args first, so values of any type
        (URLs, headers, exceptions) are redacted by their rendered text.
        """
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            # Mismatched args; handlers report these through handleError
            return True

        record.msg = self.redact(message)
        record.args = None
        return True

    def redact(self, text: str) -> str:
        """Return ``text`` with credential values replaced by [REDACTED]."""
        text = self._PAIR_RE.sub(lambda m: f"{m.group(1)}: [REDACTED]", text)
        text = self._BEARER_RE.sub("Bearer [REDACTED]", text)
        return redact_link_tokens(text)


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Format:
        {
            "timestamp": "2026-01-12T10:30:45.123Z",
            "level": "INFO",
            "logger": "storytime.services.account_service",
            "message": "User registered",
            "service": "StoryTime API",
            "context": {"user_id": "...", "action": "register"}
        }
    """

    def __init__(self, service_name: str = "StoryTime API") -> None:
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
        }

        context = getattr(record, "context", None)
        if context:
            log_entry["context"] = context

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        if record.levelno >= logging.ERROR:
            log_entry["source"] = {
                "function": record.funcName,
                "line": record.lineno,
                "file": record.pathname,
            }

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class ColoredConsoleFormatter(logging.Formatter):
    """Human-readable colored console output for development."""

    COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[41m",  # Red background
    }
    RESET: ClassVar[str] = "\033[0m"

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        # Other handlers share the record
        record = copy.copy(record)
        color = self.COLORS.get(record.levelname, self.RESET)
        record.levelname = f"{color}{record.levelname}{self.RESET}"

        context = getattr(record, "context", None)
        if context:
            record.msg = f"{record.msg} | Context: {json.dumps(context, default=str)}"

        return super().format(record)


def setup_logging(
    log_level: str = "INFO",
    log_file: str | None = None,
    service_name: str = "StoryTime API",
    enable_json: bool = True,
    enable_console: bool = True,
    debug: bool = False,
) -> logging.Logger:
    """Configure the root logger with file and console handlers.

    Args:
        log_level: Logging level name for the console handler and root
        log_file: Path to log file. Defaults to logs/app.log
        service_name: Service name embedded in JSON records
        enable_json: Use JSON for the file handler (plain text otherwise)
        enable_console: Attach a stdout handler
        debug: Use the colored console formatter instead of JSON

    Returns:
        Configured root logger instance

    Examples:
        >>> logger = setup_logging(log_level="INFO")
        >>> logger.info("Application started", extra={"context": {"port": 8000}})
    """
    if log_file is None:
        log_file_path = Path("logs") / "app.log"
    else:
        log_file_path = Path(log_file)
    log_file_path.parent.mkdir(parents=True, exist_ok=True)

    level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    sensitive_filter = SensitiveDataFilter()

    file_handler = RotatingFileHandler(
        filename=str(log_file_path),
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    if enable_json:
        file_handler.setFormatter(JSONFormatter(service_name=service_name))
    else:
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
    file_handler.addFilter(sensitive_filter)
    logger.addHandler(file_handler)

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        if debug:
            console_handler.setFormatter(ColoredConsoleFormatter())
        else:
            console_handler.setFormatter(JSONFormatter(service_name=service_name))
        console_handler.addFilter(sensitive_filter)
        logger.addHandler(console_handler)

    logger.info(
        "Logging initialized",
        extra={
            "context": {
                "log_level": log_level,
                "log_file": str(log_file_path),
                "service": service_name,
            }
        },
    )

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger that inherits the configuration from setup_logging().

    Examples:
        >>> from storytime.core.logging import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.info("Processing request")
    """
    return logging.getLogger(name)


__all__ = [
    "ColoredConsoleFormatter",
    "JSONFormatter",
    "SensitiveDataFilter",
    "get_logger",
    "redact_link_tokens",
    "setup_logging",
]

"""
RAPID Dispatch Console - Structured Logging

Provides structured JSON logging with context injection for console IDs
and call session IDs. Identifiers are masked before they reach a log line.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar, Token
from datetime import datetime
from typing import List, Optional


# =============================================================================
# Context Variables
# =============================================================================

console_id_var: ContextVar[Optional[str]] = ContextVar('console_id', default=None)
session_id_var: ContextVar[Optional[str]] = ContextVar('session_id', default=None)


# =============================================================================
# Masking Utilities
# =============================================================================

def mask_id(value: Optional[str]) -> Optional[str]:
    """Mask an identifier to its first 8 characters."""
    if not value:
        return None
    return value[:8] if len(value) > 8 else value


# =============================================================================
# Formatters
# =============================================================================

class StructuredFormatter(logging.Formatter):
    """
    JSON formatter that injects context variables.

    Output format:
    {
        "timestamp": "2024-11-30T00:00:00.000Z",
        "level": "INFO",
        "logger": "module.submodule",
        "console_id": "con_ab12",
        "session_id": "ses_xyz7",
        "message": "Human-readable message",
        "data": { ... }
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        console_id = console_id_var.get()
        if console_id:
            log_entry["console_id"] = mask_id(console_id)

        session_id = session_id_var.get()
        if session_id:
            log_entry["session_id"] = mask_id(session_id)

        if hasattr(record, 'event_type'):
            log_entry["event_type"] = record.event_type

        if hasattr(record, 'data') and record.data:
            log_entry["data"] = record.data

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry)


class HumanReadableFormatter(logging.Formatter):
    """
    Human-readable formatter for development.
    Includes timestamp, level, logger, and message with context.
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S")

        context_parts = []

        console_id = console_id_var.get()
        if console_id:
            context_parts.append(f"console={mask_id(console_id)}")

        session_id = session_id_var.get()
        if session_id:
            context_parts.append(f"session={mask_id(session_id)}")

        context_str = f" [{', '.join(context_parts)}]" if context_parts else ""

        message = f"{timestamp} | {record.levelname:<8} | {record.name}{context_str} | {record.getMessage()}"

        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)

        return message


# =============================================================================
# Logger Setup
# =============================================================================

def setup_structured_logging(
    level: str = "INFO",
    json_format: bool = False,
) -> None:
    """
    Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: Use JSON format (True for production, False for development)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))

    if json_format:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(HumanReadableFormatter())

    root_logger.addHandler(handler)

    # Suppress noisy loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)


# =============================================================================
# Context Manager
# =============================================================================

class LogContext:
    """
    Context manager for setting log context variables.

    Usage:
        with LogContext(console_id="con_abc123", session_id="ses_xyz789"):
            logger.info("Processing request")
    """

    def __init__(
        self,
        console_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ):
        self._console_id = console_id
        self._session_id = session_id
        self._tokens: List[tuple[ContextVar, Token]] = []

    def __enter__(self):
        if self._console_id:
            self._tokens.append((console_id_var, console_id_var.set(self._console_id)))
        if self._session_id:
            self._tokens.append((session_id_var, session_id_var.set(self._session_id)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()
        return False

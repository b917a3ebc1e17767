"""
RAPID Dispatch Console - Operator Event Log

Bounded, newest-first list of operator-visible console messages. Every entry
is mirrored to the process log at a matching level. Entries that quote call
text carry a redacted form, which replaces them in the process log when
anonymization is on.
"""

from __future__ import annotations

import logging
import uuid
from collections import deque
from datetime import datetime
from threading import Lock
from typing import Deque, List, Optional

from dispatch_console.core.types import LogEntry, LogEntryType

logger = logging.getLogger(__name__)

_PROCESS_LOG_LEVELS = {
    LogEntryType.INFO: logging.INFO,
    LogEntryType.ALERT: logging.INFO,
    LogEntryType.SUCCESS: logging.INFO,
    LogEntryType.WARNING: logging.WARNING,
}


class ConsoleEventLog:
    """
    In-memory operator log.

    Oldest entries are evicted once ``max_entries`` is reached.
    """

    def __init__(self, max_entries: int = 50, anonymize: bool = True):
        if max_entries <= 0:
            raise ValueError(f"max_entries must be positive, got {max_entries}")
        self._max_entries = max_entries
        self._anonymize = anonymize
        self._lock = Lock()
        self._entries: Deque[LogEntry] = deque(maxlen=max_entries)

    def add(
        self,
        message: str,
        entry_type: LogEntryType = LogEntryType.INFO,
        redacted: Optional[str] = None,
    ) -> LogEntry:
        """
        Record a message and return the created entry.

        ``redacted`` is written to the process log instead of ``message``
        when anonymization is on. The operator entry always keeps the full text.
        """
        entry = LogEntry(
            id=uuid.uuid4().hex[:10],
            timestamp=datetime.utcnow(),
            message=message,
            type=entry_type,
        )
        with self._lock:
            self._entries.appendleft(entry)

        logged = redacted if self._anonymize and redacted is not None else message
        logger.log(_PROCESS_LOG_LEVELS[entry_type], "[%s] %s", entry_type.value.upper(), logged)
        return entry

    def entries(self, entry_type: Optional[LogEntryType] = None) -> List[LogEntry]:
        """Entries newest first, optionally filtered by type."""
        with self._lock:
            snapshot = list(self._entries)
        if entry_type is None:
            return snapshot
        return [e for e in snapshot if e.type is entry_type]

    def __len__(self) -> int:
        return len(self._entries)

"""
RAPID Dispatch Console - Transcript Log

Append-only, ordered record of attributed call lines. It is the single
source of truth for the scorer and for analysis triggers.
"""

from __future__ import annotations

from typing import Callable, List, Optional, Tuple

from dispatch_console.core.types import Speaker, TranscriptLine

AppendObserver = Callable[[TranscriptLine], None]
"""Called after every successful append."""


class TranscriptLog:
    """
    Ordered sequence of TranscriptLines.

    Sequence indices start at zero and grow by exactly one per append.
    Lines are never reordered, edited or removed; a new call gets a new log.
    """

    def __init__(self, observer: Optional[AppendObserver] = None):
        self._lines: List[TranscriptLine] = []
        self._observer = observer

    def append(self, speaker: Speaker, text: str) -> TranscriptLine:
        """Append a line and notify the observer."""
        line = TranscriptLine(
            speaker=speaker,
            text=text,
            sequence_index=len(self._lines),
        )
        self._lines.append(line)
        if self._observer is not None:
            self._observer(line)
        return line

    def lines_as_of(self, count: int) -> Tuple[TranscriptLine, ...]:
        """The first ``count`` lines (all lines if count exceeds the length)."""
        if count < 0:
            raise ValueError(f"count must be >= 0, got {count}")
        return tuple(self._lines[:count])

    def texts(self, count: Optional[int] = None) -> List[str]:
        """Plain text of the first ``count`` lines (default: all)."""
        lines = self._lines if count is None else self._lines[:count]
        return [line.text for line in lines]

    def full_text(self) -> str:
        """All lines joined by single spaces, in sequence order."""
        return " ".join(self.texts())

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self):
        return iter(tuple(self._lines))

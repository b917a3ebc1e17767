"""
RAPID Dispatch Console - Core Domain Types

Internal type definitions shared by the controller, scorer, audio codec and
collaborator services. These are domain objects, independent of API
serialization.

Design Notes:
- API layer converts these to Pydantic schemas for external communication.
- Value objects (lines, analyses, scores, audio buffers) are frozen
  dataclasses; the only mutable aggregate is CallSession, which is owned by
  exactly one CallSessionController.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, NewType, Optional, Tuple

import numpy as np


# =============================================================================
# Type Aliases
# =============================================================================

SessionId = NewType("SessionId", str)
"""Unique identifier for one call session. Opaque string."""

ConsoleId = NewType("ConsoleId", str)
"""Unique identifier for one operator console."""


# =============================================================================
# Enums
# =============================================================================

class EmergencyType(str, Enum):
    """Emergency category returned by the classifier."""
    MEDICAL = "Medical"
    FIRE = "Fire"
    CRIME = "Crime"
    ACCIDENT = "Accident"
    UNKNOWN = "Unknown"


class SeverityLevel(str, Enum):
    """Dispatch priority. P1 is life threatening, P3 routine."""
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"


class Speaker(str, Enum):
    """Attribution of a transcript line."""
    CALLER = "caller"
    DISPATCHER = "dispatcher"


class CaptureSource(str, Enum):
    """Producer currently feeding the transcript."""
    NONE = "none"
    SIMULATION = "simulation"
    MICROPHONE = "microphone"
    UPLOAD = "upload"


class LifecycleState(str, Enum):
    """Call session lifecycle."""
    IDLE = "idle"
    ACTIVE = "active"
    TAKEOVER = "takeover"
    DISPATCHED = "dispatched"


class LogEntryType(str, Enum):
    """Category of an operator-visible console log entry."""
    INFO = "info"
    ALERT = "alert"
    SUCCESS = "success"
    WARNING = "warning"


# =============================================================================
# Transcript
# =============================================================================

@dataclass(frozen=True)
class TranscriptLine:
    """One attributed line of the call transcript."""
    speaker: Speaker
    text: str
    sequence_index: int

    def render(self) -> str:
        """Display form used by transcript renderers."""
        if self.speaker is Speaker.DISPATCHER:
            return f"[DISPATCHER]: {self.text}"
        return self.text


# =============================================================================
# Classification & Scoring
# =============================================================================

@dataclass(frozen=True)
class AnalysisResult:
    """
    Classification snapshot returned by the emergency classifier.

    Treated as opaque and replaced wholesale on each classification. The
    only derivation is an operator route override, which yields a copy.

    Attributes:
        emergency_type: Detected emergency category
        severity: Classifier severity (P1-P3)
        summary: One-paragraph incident summary
        key_risks: Short risk phrases
        confidence: Classifier confidence (0-1)
        recommended_route: Service the call should be routed to
        reasoning_trace: Free-text justification
    """
    emergency_type: EmergencyType
    severity: SeverityLevel
    summary: str
    key_risks: Tuple[str, ...]
    confidence: float
    recommended_route: str
    reasoning_trace: str

    def __post_init__(self):
        """Validate constraints."""
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be 0-1, got {self.confidence}")

    def with_route(self, route: str) -> "AnalysisResult":
        """Copy of this analysis routed to a different service."""
        return replace(self, recommended_route=route)

    @classmethod
    def fallback(cls) -> "AnalysisResult":
        """Fail-safe analysis used when classification is unavailable."""
        return cls(
            emergency_type=EmergencyType.UNKNOWN,
            severity=SeverityLevel.P1,
            summary="Neural inference error. Manual triage required immediately.",
            key_risks=("System connectivity loss",),
            confidence=0.0,
            recommended_route="Dispatcher Manual Override",
            reasoning_trace="Critical: request failed or timed out.",
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "emergency_type": self.emergency_type.value,
            "severity": self.severity.value,
            "summary": self.summary,
            "key_risks": list(self.key_risks),
            "confidence": self.confidence,
            "recommended_route": self.recommended_route,
            "reasoning_trace": self.reasoning_trace,
        }


@dataclass(frozen=True)
class HybridScore:
    """Fusion of a classification with the local danger-keyword rule."""
    final_priority: SeverityLevel
    distress_score: float  # 0-1
    keyword_matches: frozenset[str]
    ai_confidence: float


# =============================================================================
# Audio
# =============================================================================

@dataclass(frozen=True)
class PcmAudioBuffer:
    """
    Decoded, normalized PCM audio.

    ``samples`` holds one float32 array per channel, every array
    ``frame_count`` long, values in [-1.0, 1.0).
    """
    sample_rate: int
    channel_count: int
    samples: Tuple[np.ndarray, ...]

    @property
    def frame_count(self) -> int:
        return int(self.samples[0].size) if self.samples else 0

    @property
    def duration_seconds(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return self.frame_count / self.sample_rate

    def interleaved(self) -> np.ndarray:
        """Frames x channels matrix, the layout output devices expect."""
        if not self.samples:
            return np.zeros((0, self.channel_count), dtype=np.float32)
        return np.stack(self.samples, axis=1)


# =============================================================================
# Capture
# =============================================================================

@dataclass(frozen=True)
class RecognitionResult:
    """One result reported by a speech recognizer."""
    text: str
    is_final: bool = True


@dataclass(frozen=True)
class CallScenario:
    """Scripted call used by simulated and uploaded playback."""
    id: str
    name: str
    script: Tuple[str, ...]
    expected_type: EmergencyType = EmergencyType.UNKNOWN


@dataclass(frozen=True)
class UploadPayload:
    """Audio file handed to the upload producer."""
    audio: bytes
    mime_type: str
    filename: str = "upload"


# =============================================================================
# Console Log
# =============================================================================

@dataclass(frozen=True)
class LogEntry:
    """Operator-visible console log entry."""
    id: str
    timestamp: datetime
    message: str
    type: LogEntryType = LogEntryType.INFO

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat() + "Z",
            "message": self.message,
            "type": self.type.value,
        }


# =============================================================================
# Session Aggregate
# =============================================================================

@dataclass
class CallSession:
    """
    Root aggregate for one call.

    Owned and mutated exclusively by its CallSessionController; renderers
    only ever see SessionSnapshot copies.
    """
    session_id: SessionId
    lifecycle_state: LifecycleState = LifecycleState.IDLE
    active_source: CaptureSource = CaptureSource.NONE
    scenario: Optional[CallScenario] = None
    latest_analysis: Optional[AnalysisResult] = None
    latest_score: Optional[HybridScore] = None
    override_route: Optional[str] = None
    call_ended: bool = False
    analyses_in_flight: int = 0


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable view of a console's current session, for renderers."""
    console_id: str
    session_id: str
    lifecycle_state: LifecycleState
    active_source: CaptureSource
    scenario: Optional[CallScenario]
    transcript: Tuple[TranscriptLine, ...]
    latest_analysis: Optional[AnalysisResult]
    latest_score: Optional[HybridScore]
    override_route: Optional[str]
    is_analyzing: bool
    call_ended: bool
    logs: Tuple[LogEntry, ...] = ()

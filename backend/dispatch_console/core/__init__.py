"""
RAPID Dispatch Console - Core Package

Contains the domain types and the console's pure building blocks:
- types: Internal domain types and type aliases
- scoring: Hybrid triage scorer
- transcript: Append-only transcript log
- scenarios: Built-in scripted calls and danger keywords
- event_log: Operator-visible console log

The orchestration modules (capture, controller, console_store) depend on
the services package and are imported from their own modules.
"""

from .types import (
    SessionId,
    ConsoleId,
    EmergencyType,
    SeverityLevel,
    Speaker,
    CaptureSource,
    LifecycleState,
    LogEntryType,
    TranscriptLine,
    AnalysisResult,
    HybridScore,
    PcmAudioBuffer,
    RecognitionResult,
    CallScenario,
    UploadPayload,
    LogEntry,
    CallSession,
    SessionSnapshot,
)
from .scoring import score, find_keyword_matches
from .transcript import TranscriptLog
from .scenarios import DANGER_KEYWORDS, SIMULATION_SCENARIOS, get_scenario, split_into_script
from .event_log import ConsoleEventLog

__all__ = [
    # Scoring
    "score",
    "find_keyword_matches",
    # Transcript
    "TranscriptLog",
    # Scenarios
    "DANGER_KEYWORDS",
    "SIMULATION_SCENARIOS",
    "get_scenario",
    "split_into_script",
    # Event log
    "ConsoleEventLog",
    # Types
    "SessionId",
    "ConsoleId",
    "EmergencyType",
    "SeverityLevel",
    "Speaker",
    "CaptureSource",
    "LifecycleState",
    "LogEntryType",
    "TranscriptLine",
    "AnalysisResult",
    "HybridScore",
    "PcmAudioBuffer",
    "RecognitionResult",
    "CallScenario",
    "UploadPayload",
    "LogEntry",
    "CallSession",
    "SessionSnapshot",
]

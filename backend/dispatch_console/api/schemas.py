"""
RAPID Dispatch Console - API Schemas

Pydantic models for request/response validation.
These define the contract between console renderers and the backend.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from dispatch_console.core.types import (
    AnalysisResult,
    CallScenario,
    CaptureSource,
    EmergencyType,
    HybridScore,
    LifecycleState,
    LogEntry,
    LogEntryType,
    SessionSnapshot,
    SeverityLevel,
    Speaker,
    TranscriptLine,
)


# ===========================================
# Request Schemas
# ===========================================

class SimulationRequest(BaseModel):
    """Start a scripted call."""
    scenario_id: str = Field(description="Built-in scenario ID (e.g. med-1)")


class UploadRequest(BaseModel):
    """Start a call from a recorded audio file."""
    audio_base64: str = Field(description="Base64 of the complete audio file")
    mime_type: str = Field(default="audio/wav", description="MIME type of the file")
    filename: str = Field(default="upload", max_length=200)


class VoiceSampleRequest(BaseModel):
    """Play a synthesized caller line from a scenario."""
    scenario_id: str


class RespondRequest(BaseModel):
    """Dispatcher response spoken to the caller."""
    text: str = Field(max_length=2000)


class OverrideRequest(BaseModel):
    """Operator route override."""
    service: str = Field(min_length=1, max_length=200)


# ===========================================
# Domain Views
# ===========================================

class ScenarioSchema(BaseModel):
    id: str
    name: str
    expected_type: EmergencyType
    line_count: int

    @classmethod
    def from_domain(cls, scenario: CallScenario) -> "ScenarioSchema":
        return cls(
            id=scenario.id,
            name=scenario.name,
            expected_type=scenario.expected_type,
            line_count=len(scenario.script),
        )


class TranscriptLineSchema(BaseModel):
    speaker: Speaker
    text: str
    sequence_index: int
    display: str = Field(description="Rendered line (dispatcher lines prefixed)")

    @classmethod
    def from_domain(cls, line: TranscriptLine) -> "TranscriptLineSchema":
        return cls(
            speaker=line.speaker,
            text=line.text,
            sequence_index=line.sequence_index,
            display=line.render(),
        )


class AnalysisSchema(BaseModel):
    """Latest emergency classification."""
    emergency_type: EmergencyType
    severity: SeverityLevel
    summary: str
    key_risks: List[str]
    confidence: float = Field(ge=0.0, le=1.0)
    recommended_route: str
    reasoning_trace: str

    @classmethod
    def from_domain(cls, analysis: AnalysisResult) -> "AnalysisSchema":
        return cls(**analysis.to_dict())


class HybridScoreSchema(BaseModel):
    """Classification fused with the local keyword rule."""
    final_priority: SeverityLevel
    distress_score: float = Field(ge=0.0, le=1.0)
    keyword_matches: List[str]
    ai_confidence: float

    @classmethod
    def from_domain(cls, hybrid: HybridScore) -> "HybridScoreSchema":
        return cls(
            final_priority=hybrid.final_priority,
            distress_score=hybrid.distress_score,
            keyword_matches=sorted(hybrid.keyword_matches),
            ai_confidence=hybrid.ai_confidence,
        )


class LogEntrySchema(BaseModel):
    id: str
    timestamp: datetime
    message: str
    type: LogEntryType

    @classmethod
    def from_domain(cls, entry: LogEntry) -> "LogEntrySchema":
        return cls(id=entry.id, timestamp=entry.timestamp, message=entry.message, type=entry.type)


class ConsoleSnapshot(BaseModel):
    """Complete renderable state of one console."""
    console_id: str
    session_id: str
    lifecycle_state: LifecycleState
    active_source: CaptureSource
    scenario: Optional[ScenarioSchema] = None
    transcript: List[TranscriptLineSchema] = Field(default_factory=list)
    analysis: Optional[AnalysisSchema] = None
    score: Optional[HybridScoreSchema] = None
    override_route: Optional[str] = None
    is_analyzing: bool = False
    call_ended: bool = False
    logs: List[LogEntrySchema] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, snapshot: SessionSnapshot) -> "ConsoleSnapshot":
        return cls(
            console_id=snapshot.console_id,
            session_id=snapshot.session_id,
            lifecycle_state=snapshot.lifecycle_state,
            active_source=snapshot.active_source,
            scenario=ScenarioSchema.from_domain(snapshot.scenario) if snapshot.scenario else None,
            transcript=[TranscriptLineSchema.from_domain(line) for line in snapshot.transcript],
            analysis=(
                AnalysisSchema.from_domain(snapshot.latest_analysis)
                if snapshot.latest_analysis else None
            ),
            score=(
                HybridScoreSchema.from_domain(snapshot.latest_score)
                if snapshot.latest_score else None
            ),
            override_route=snapshot.override_route,
            is_analyzing=snapshot.is_analyzing,
            call_ended=snapshot.call_ended,
            logs=[LogEntrySchema.from_domain(entry) for entry in snapshot.logs],
        )


# ===========================================
# Response Schemas
# ===========================================

class ActionResponse(BaseModel):
    """Result of an operator action. Guarded no-ops report applied=False."""
    applied: bool
    console: ConsoleSnapshot


class ConsoleCreateResponse(BaseModel):
    console_id: str
    websocket_url: str
    console: ConsoleSnapshot


class HealthResponse(BaseModel):
    """System health status."""
    status: str = Field(description="Overall status: healthy | degraded")
    components: Dict[str, str] = Field(default_factory=dict)
    active_consoles: int = 0
    version: str = Field(default="0.1.0")


class ErrorResponse(BaseModel):
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)

"""
RAPID Dispatch Console - Emergency Classifier Service

Provides semantic emergency classification of call transcripts.

Architecture:
    - Protocol defines the interface for classifiers
    - DummyEmergencyClassifier: keyword heuristic for development/testing
    - OpenAIEmergencyClassifier: LLM classification with a JSON contract

Safety Notes:
    - Classifiers raise ClassificationError on failure; the controller then
      substitutes the fail-safe P1 analysis (AnalysisResult.fallback)
    - The prompt instructs the model to err toward P1 when unsure
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import abstractmethod
from typing import List, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from dispatch_console.core.exceptions import ClassificationError
from dispatch_console.core.types import AnalysisResult, EmergencyType, SeverityLevel

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """You are an expert Emergency Triage AI.
Your task is to analyze transcripts from 911/emergency calls and categorize them.

EMERGENCY TYPES: Medical, Fire, Crime, Accident, Unknown.
SEVERITY LEVELS:
- P1: Life-threatening, immediate intervention required.
- P2: Urgent, but not immediately life-threatening.
- P3: Routine or non-urgent.

Be decisive and conservative with life-safety (err on P1 if unsure).

Respond with a single JSON object with exactly these keys:
emergency_type, severity, summary, key_risks (array of strings),
confidence (number 0-1), recommended_route, reasoning_trace."""


# =============================================================================
# Protocol (Interface)
# =============================================================================

@runtime_checkable
class EmergencyClassifier(Protocol):
    """
    Protocol for emergency classifiers.

    Classifiers receive the full transcript text and return a complete
    AnalysisResult, or raise ClassificationError.
    """

    @abstractmethod
    async def classify(self, transcript_text: str) -> AnalysisResult:
        """
        Classify a call transcript.

        Args:
            transcript_text: Transcript lines joined by single spaces

        Returns:
            AnalysisResult snapshot

        Raises:
            ClassificationError: If classification fails
        """
        ...

    @property
    @abstractmethod
    def model_id(self) -> str:
        """Return classifier identifier (for logging/health)."""
        ...


# =============================================================================
# Response Contract
# =============================================================================

class AnalysisPayload(BaseModel):
    """JSON contract the classifier model must satisfy."""

    emergency_type: EmergencyType
    severity: SeverityLevel
    summary: str
    key_risks: List[str] = Field(default_factory=list)
    confidence: float
    recommended_route: str
    reasoning_trace: str = ""

    def to_domain(self) -> AnalysisResult:
        return AnalysisResult(
            emergency_type=self.emergency_type,
            severity=self.severity,
            summary=self.summary,
            key_risks=tuple(self.key_risks),
            confidence=min(1.0, max(0.0, self.confidence)),
            recommended_route=self.recommended_route,
            reasoning_trace=self.reasoning_trace,
        )


def parse_analysis(raw: str) -> AnalysisResult:
    """
    Parse a classifier JSON response into an AnalysisResult.

    Raises:
        ClassificationError: If the response is not valid JSON or misses fields
    """
    try:
        data = json.loads(raw.strip())
        return AnalysisPayload.model_validate(data).to_domain()
    except (json.JSONDecodeError, PydanticValidationError) as e:
        raise ClassificationError(f"Malformed classifier response: {e}") from e


# =============================================================================
# Dummy Implementation (Development/Testing)
# =============================================================================

class DummyEmergencyClassifier:
    """
    Keyword-based classifier for development and testing.

    Deterministic: the same transcript always yields the same analysis.
    It has no operational validity; it exists to exercise the console.
    """

    TYPE_KEYWORDS = {
        EmergencyType.MEDICAL: (
            "breathing", "pulse", "cpr", "collapsed", "heart", "unconscious",
            "bleeding", "stroke", "seizure", "overdose",
        ),
        EmergencyType.FIRE: ("fire", "smoke", "burning", "flames", "alarm"),
        EmergencyType.CRIME: (
            "knife", "gun", "intruder", "break into", "broke", "robbery",
            "police", "weapon", "stolen",
        ),
        EmergencyType.ACCIDENT: ("crash", "collision", "car", "accident", "fell", "hit by"),
    }

    CRITICAL_KEYWORDS = (
        "not breathing", "no pulse", "can't feel a pulse", "unconscious",
        "trapped", "knife", "gun", "spreading", "bleeding",
    )

    ROUTES = {
        EmergencyType.MEDICAL: "EMS / Advanced Life Support",
        EmergencyType.FIRE: "Fire & Rescue",
        EmergencyType.CRIME: "Police Patrol",
        EmergencyType.ACCIDENT: "EMS + Traffic Police",
        EmergencyType.UNKNOWN: "Dispatcher Triage Queue",
    }

    def __init__(self, simulated_latency_ms: float = 30.0):
        """
        Initialize dummy classifier.

        Args:
            simulated_latency_ms: Artificial delay to simulate inference time
        """
        self._simulated_latency_ms = simulated_latency_ms

    @property
    def model_id(self) -> str:
        return "dummy-classifier-v0.1.0"

    async def classify(self, transcript_text: str) -> AnalysisResult:
        await asyncio.sleep(self._simulated_latency_ms / 1000.0)

        text_lower = transcript_text.lower()

        hits = {
            etype: [kw for kw in keywords if kw in text_lower]
            for etype, keywords in self.TYPE_KEYWORDS.items()
        }
        emergency_type = max(hits, key=lambda t: len(hits[t]))
        if not hits[emergency_type]:
            emergency_type = EmergencyType.UNKNOWN

        critical = [kw for kw in self.CRITICAL_KEYWORDS if kw in text_lower]
        if critical:
            severity = SeverityLevel.P1
        elif emergency_type is not EmergencyType.UNKNOWN:
            severity = SeverityLevel.P2
        else:
            severity = SeverityLevel.P3

        type_hits = hits.get(emergency_type, [])
        confidence = min(0.95, 0.4 + 0.1 * len(type_hits) + 0.1 * len(critical))

        return AnalysisResult(
            emergency_type=emergency_type,
            severity=severity,
            summary=self._summary(emergency_type, severity),
            key_risks=tuple(critical[:3]) or tuple(type_hits[:3]),
            confidence=round(confidence, 2),
            recommended_route=self.ROUTES[emergency_type],
            reasoning_trace=(
                f"Keyword heuristic: type hits={type_hits}, critical hits={critical}"
            ),
        )

    @staticmethod
    def _summary(emergency_type: EmergencyType, severity: SeverityLevel) -> str:
        if emergency_type is EmergencyType.UNKNOWN:
            return "Insufficient information to classify the emergency."
        return f"{severity.value} {emergency_type.value.lower()} emergency reported by caller."


# =============================================================================
# OpenAI Implementation
# =============================================================================

class OpenAIEmergencyClassifier:
    """
    Classifier backed by an OpenAI chat model in JSON mode.

    The response is validated against AnalysisPayload; anything else is a
    ClassificationError.
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_seconds: float = 30.0,
        client=None,
    ):
        if client is None:
            from openai import AsyncOpenAI

            client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout_seconds)
        self._client = client
        self._model = model

    @property
    def model_id(self) -> str:
        return f"openai:{self._model}"

    async def classify(self, transcript_text: str) -> AnalysisResult:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": (
                            "Analyze this emergency dispatch transcript and provide "
                            f'a triage report: "{transcript_text}"'
                        ),
                    },
                ],
            )
        except Exception as e:
            raise ClassificationError(f"Classifier request failed: {type(e).__name__}: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ClassificationError("Classifier returned an empty response")

        return parse_analysis(content)

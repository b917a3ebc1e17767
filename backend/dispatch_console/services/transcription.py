"""
RAPID Dispatch Console - Transcription Service

Provides full-text transcription of recorded calls and of live-capture
utterance segments.

Architecture:
    - Protocol defines the interface for all transcription implementations
    - DummyTranscriptionService: canned call transcripts for development/testing
    - OpenAITranscriptionService: OpenAI speech-to-text

Privacy Considerations:
    - Raw audio is never logged; failures carry an audio hash instead
    - Transcripts may contain PII; they are only logged when anonymize_logs is off
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from abc import abstractmethod
from typing import Optional, Protocol, runtime_checkable

from dispatch_console.core.exceptions import TranscriptionError

logger = logging.getLogger(__name__)


# =============================================================================
# Protocol (Interface)
# =============================================================================

@runtime_checkable
class TranscriptionService(Protocol):
    """
    Protocol for speech-to-text transcription services.

    Returns a verbatim, best-effort transcript as a single block of text.
    """

    @abstractmethod
    async def transcribe(self, audio: bytes, mime_type: str) -> str:
        """
        Transcribe a complete audio file.

        Args:
            audio: Encoded audio file contents
            mime_type: MIME type of the file (e.g. "audio/wav")

        Returns:
            Transcript text (may be empty)

        Raises:
            TranscriptionError: If transcription fails
        """
        ...

    @property
    @abstractmethod
    def model_id(self) -> str:
        """Return identifier for the underlying model (for logging/tracking)."""
        ...


def audio_fingerprint(audio: bytes) -> str:
    """Short hash of an audio payload, for debugging without storing audio."""
    return hashlib.sha256(audio).hexdigest()[:12]


# =============================================================================
# Dummy Implementation (Development/Testing)
# =============================================================================

class DummyTranscriptionService:
    """
    Placeholder transcription service for development and testing.

    Returns one of a few canned emergency-call transcripts, selected
    deterministically from the audio hash.

    WARNING: This is NOT suitable for production use.
    """

    def __init__(self, simulated_latency_ms: float = 50.0):
        """
        Initialize dummy transcription service.

        Args:
            simulated_latency_ms: Artificial delay to simulate processing time
        """
        self._simulated_latency_ms = simulated_latency_ms

        self._canned_responses = [
            "Hi, I need an ambulance. My neighbor fell off a ladder and he's bleeding "
            "from his head. He's awake but really confused! We're at 9 Birch Street.",

            "There's been a crash on the highway near exit 12. Two cars, one is on its "
            "side. I think someone is trapped inside! Please send help fast.",

            "I smell smoke coming from the apartment next door. The alarm is going off "
            "and nobody is answering. Should I knock on the door?",

            "Someone just grabbed my bag and ran toward the station. He had a knife. "
            "I'm okay, but I'm really shaken up.",
        ]

    @property
    def model_id(self) -> str:
        return "dummy-transcription-v0.1.0"

    async def transcribe(self, audio: bytes, mime_type: str) -> str:
        await asyncio.sleep(self._simulated_latency_ms / 1000.0)

        if not audio:
            raise TranscriptionError("Empty audio payload", details={"mime_type": mime_type})

        digest = hashlib.md5(audio).hexdigest()
        index = int(digest[:8], 16) % len(self._canned_responses)
        return self._canned_responses[index]


# =============================================================================
# OpenAI Implementation
# =============================================================================

_MIME_EXTENSIONS = {
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/wave": "wav",
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/mp4": "m4a",
    "audio/x-m4a": "m4a",
    "audio/ogg": "ogg",
    "audio/webm": "webm",
    "audio/flac": "flac",
}


class OpenAITranscriptionService:
    """
    Transcription through the OpenAI audio API.

    The upload filename extension is derived from the MIME type, since the
    API sniffs the container format from it.
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini-transcribe",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_seconds: float = 30.0,
        anonymize_logs: bool = True,
        client=None,
    ):
        if client is None:
            from openai import AsyncOpenAI

            client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout_seconds)
        self._client = client
        self._model = model
        self._anonymize_logs = anonymize_logs

    @property
    def model_id(self) -> str:
        return f"openai:{self._model}"

    async def transcribe(self, audio: bytes, mime_type: str) -> str:
        extension = _MIME_EXTENSIONS.get(mime_type.split(";")[0].strip().lower(), "wav")
        try:
            response = await self._client.audio.transcriptions.create(
                model=self._model,
                file=(f"call.{extension}", audio, mime_type),
                prompt="Verbatim transcript of an emergency call. Transcribe everything exactly as heard.",
            )
        except Exception as e:
            raise TranscriptionError(
                f"Transcription request failed: {type(e).__name__}: {e}",
                details={"audio_hash": audio_fingerprint(audio)},
            ) from e

        text = (getattr(response, "text", None) or "").strip()

        if self._anonymize_logs:
            logger.debug("Transcript: [REDACTED, %d chars]", len(text))
        else:
            logger.debug("Transcript: %s", text[:100])

        return text

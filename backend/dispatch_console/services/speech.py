"""
RAPID Dispatch Console - Speech Synthesis Service

Converts dispatcher text to speech for the caller.

Contract:
    synthesize(text) returns base64 of raw s16le PCM, 24 kHz, mono, or None
    when no audio is available. Synthesis failures are logged and reported
    as None; a missing voice never interrupts the call flow.
"""

from __future__ import annotations

import logging
import math
from abc import abstractmethod
from typing import Optional, Protocol, runtime_checkable

import numpy as np

from dispatch_console.audio.codec import encode_base64_audio, encode_pcm16

logger = logging.getLogger(__name__)

SYNTHESIS_SAMPLE_RATE = 24000

DISPATCHER_VOICE_INSTRUCTIONS = "Say authoritatively and calmly as an emergency dispatcher."


# =============================================================================
# Protocol (Interface)
# =============================================================================

@runtime_checkable
class SpeechSynthesizer(Protocol):
    """Protocol for text-to-speech collaborators."""

    @abstractmethod
    async def synthesize(self, text: str) -> Optional[str]:
        """
        Synthesize speech for ``text``.

        Returns:
            Base64 of raw 24 kHz mono s16le PCM, or None if unavailable
        """
        ...

    @property
    @abstractmethod
    def model_id(self) -> str:
        """Return identifier for the voice model."""
        ...


# =============================================================================
# Dummy Implementation (Development/Testing)
# =============================================================================

class DummySpeechSynthesizer:
    """
    Generates a soft tone whose length follows the text length.

    Lets the full decode/playback path run without a TTS backend.
    """

    def __init__(
        self,
        seconds_per_word: float = 0.05,
        max_seconds: float = 2.0,
        frequency_hz: float = 440.0,
    ):
        self._seconds_per_word = seconds_per_word
        self._max_seconds = max_seconds
        self._frequency_hz = frequency_hz

    @property
    def model_id(self) -> str:
        return "dummy-tts-v0.1.0"

    async def synthesize(self, text: str) -> Optional[str]:
        words = len(text.split())
        if words == 0:
            return None

        duration = min(self._max_seconds, words * self._seconds_per_word)
        n_samples = int(duration * SYNTHESIS_SAMPLE_RATE)
        t = np.arange(n_samples) / SYNTHESIS_SAMPLE_RATE
        tone = 0.2 * np.sin(2 * math.pi * self._frequency_hz * t)

        return encode_base64_audio(encode_pcm16(tone))


# =============================================================================
# OpenAI Implementation
# =============================================================================

def _accepts_instructions(model: str) -> bool:
    return not model.startswith("tts-1")


class OpenAISpeechSynthesizer:
    """
    Speech synthesis through the OpenAI audio API.

    Requests ``response_format="pcm"``, which the API returns as raw
    24 kHz mono s16le samples with no header. Voice instructions are only
    sent to models that accept them; the ``tts-1`` family rejects them.
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini-tts",
        voice: str = "onyx",
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
        self._voice = voice

    @property
    def model_id(self) -> str:
        return f"openai:{self._model}:{self._voice}"

    async def synthesize(self, text: str) -> Optional[str]:
        try:
            request = dict(
                model=self._model,
                voice=self._voice,
                input=text,
                response_format="pcm",
            )
            if _accepts_instructions(self._model):
                request["instructions"] = DISPATCHER_VOICE_INSTRUCTIONS
            response = await self._client.audio.speech.create(**request)
            audio = response.content
        except Exception as e:
            logger.warning("TTS synthesis failed: %s: %s", type(e).__name__, e)
            return None

        if not audio:
            return None
        return encode_base64_audio(audio)

"""
RAPID Dispatch Console - Audio Output

Plays decoded dispatcher speech.

Architecture:
    - Protocol defines the interface for audio outputs
    - DummyAudioOutput: records buffers (headless consoles and tests)
    - SoundDeviceAudioOutput: plays through the default output device

The output device is opened lazily on first playback and reused for the
lifetime of the console. A new playback replaces whatever is sounding.
"""

from __future__ import annotations

import asyncio
import logging
from abc import abstractmethod
from typing import List, Optional, Protocol, runtime_checkable

from dispatch_console.core.types import PcmAudioBuffer

logger = logging.getLogger(__name__)


# =============================================================================
# Protocol (Interface)
# =============================================================================

@runtime_checkable
class AudioOutput(Protocol):
    """Protocol for dispatcher voice playback devices."""

    @abstractmethod
    async def play(self, buffer: PcmAudioBuffer) -> None:
        """Start playing a buffer. Returns once playback has been started."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release the output device."""
        ...

    @property
    @abstractmethod
    def output_id(self) -> str:
        """Return identifier for the output (for logging/health)."""
        ...


# =============================================================================
# Dummy Implementation (Development/Testing)
# =============================================================================

class DummyAudioOutput:
    """
    Output that keeps the buffers it was asked to play.

    Useful for headless deployments and for asserting playback in tests.
    """

    def __init__(self):
        self.played: List[PcmAudioBuffer] = []

    @property
    def output_id(self) -> str:
        return "dummy-output"

    async def play(self, buffer: PcmAudioBuffer) -> None:
        self.played.append(buffer)
        logger.debug(
            "DummyAudioOutput: %d frames @ %dHz (%.2fs)",
            buffer.frame_count,
            buffer.sample_rate,
            buffer.duration_seconds,
        )

    async def close(self) -> None:
        self.played.clear()


# =============================================================================
# sounddevice Implementation
# =============================================================================

class SoundDeviceAudioOutput:
    """
    Plays buffers on the default output device via sounddevice.

    sounddevice is imported on first use so consoles without PortAudio can
    still run with the dummy output.
    """

    def __init__(self, device: Optional[int] = None):
        self._device = device
        self._sd = None

    @property
    def output_id(self) -> str:
        return f"sounddevice:{self._device if self._device is not None else 'default'}"

    def _ensure_backend(self):
        if self._sd is None:
            import sounddevice as sd

            self._sd = sd
            logger.info("Audio output opened: %s", self.output_id)
        return self._sd

    async def play(self, buffer: PcmAudioBuffer) -> None:
        if buffer.frame_count == 0:
            logger.debug("Skipping playback of empty buffer")
            return

        sd = self._ensure_backend()
        frames = buffer.interleaved()
        # sd.play is non-blocking but may touch the device; keep it off the loop
        await asyncio.to_thread(
            sd.play,
            frames,
            samplerate=buffer.sample_rate,
            device=self._device,
        )

    async def close(self) -> None:
        if self._sd is not None:
            self._sd.stop()
            logger.info("Audio output closed: %s", self.output_id)

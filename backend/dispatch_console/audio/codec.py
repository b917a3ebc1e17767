"""
RAPID Dispatch Console - PCM Audio Codec

Converts headerless signed 16-bit little-endian PCM into normalized
per-channel float buffers, and back.

Format rules:
    - A trailing odd byte is a partial sample and is dropped.
    - Samples that do not complete a frame across all channels are dropped.
    - Each sample is divided by 32768.0, giving values in [-1.0, 32767/32768].
    - Only a non-positive channel count is an error; short or ragged input
      degrades by truncation.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Sequence

import numpy as np

from dispatch_console.core.exceptions import DecodeError
from dispatch_console.core.types import PcmAudioBuffer

logger = logging.getLogger(__name__)

PCM16_SCALE = 32768.0
BYTES_PER_SAMPLE = 2


def decode_base64_audio(payload: str) -> bytes:
    """
    Decode base64-encoded audio.

    Synthesized speech arrives as standard base64 of raw PCM.

    Raises:
        DecodeError: If the payload is not valid base64
    """
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Invalid base64 audio payload: {e}") from e


def encode_base64_audio(data: bytes) -> str:
    """Encode raw audio bytes as standard base64 text."""
    return base64.b64encode(data).decode("ascii")


def decode_pcm16(data: bytes, sample_rate: int, channel_count: int) -> PcmAudioBuffer:
    """
    Decode interleaved s16le PCM into a PcmAudioBuffer.

    Args:
        data: Raw PCM bytes (no header)
        sample_rate: Sample rate of the payload in Hz
        channel_count: Number of interleaved channels

    Returns:
        PcmAudioBuffer with ``len(data) // 2 // channel_count`` frames per channel

    Raises:
        DecodeError: If channel_count <= 0
    """
    if channel_count <= 0:
        raise DecodeError(
            f"channel_count must be positive, got {channel_count}",
            details={"channel_count": channel_count},
        )

    usable_bytes = len(data) - (len(data) % BYTES_PER_SAMPLE)
    if usable_bytes != len(data):
        logger.debug("Dropping trailing odd byte from %d-byte PCM payload", len(data))

    samples = np.frombuffer(data, dtype="<i2", count=usable_bytes // BYTES_PER_SAMPLE)
    frame_count = samples.size // channel_count
    frames = samples[: frame_count * channel_count].reshape(frame_count, channel_count)

    channels = tuple(
        frames[:, channel].astype(np.float32) / np.float32(PCM16_SCALE)
        for channel in range(channel_count)
    )

    return PcmAudioBuffer(
        sample_rate=sample_rate,
        channel_count=channel_count,
        samples=channels,
    )


def encode_pcm16(samples: Sequence[float] | np.ndarray) -> bytes:
    """
    Encode mono float samples in [-1, 1] as s16le PCM.

    Values are scaled by 32768 and clipped to the 16-bit range.
    """
    array = np.asarray(samples, dtype=np.float64)
    pcm = np.clip(np.round(array * PCM16_SCALE), -32768, 32767).astype("<i2")
    return pcm.tobytes()

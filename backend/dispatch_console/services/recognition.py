"""
RAPID Dispatch Console - Live Speech Recognition

Capture-device collaborators for the live-capture producer.

Architecture:
    - Protocol defines the capture device contract: availability check,
      start/stop, and an async stream of RecognitionResults
    - DummySpeechRecognizer: replays scripted results (demo/testing)
    - MicrophoneRecognizer: sounddevice capture, energy-gated utterance
      segmentation, each segment finalized by a TranscriptionService

Only finalized results are appended to the transcript; interim results are
dropped by the consumer.
"""

from __future__ import annotations

import asyncio
import io
import logging
import wave
from abc import abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional, Protocol, Sequence, runtime_checkable

import numpy as np

from dispatch_console.core.exceptions import CaptureError, CaptureUnavailableError, TranscriptionError
from dispatch_console.core.types import RecognitionResult
from dispatch_console.services.transcription import TranscriptionService

logger = logging.getLogger(__name__)


# =============================================================================
# Protocol (Interface)
# =============================================================================

@runtime_checkable
class SpeechRecognizer(Protocol):
    """
    Protocol for live speech capture devices.

    The device is held exclusively between start() and stop(); stop() must
    release it and end the results() stream.
    """

    @abstractmethod
    def is_available(self) -> bool:
        """Whether capture and recognition are supported on this host."""
        ...

    @abstractmethod
    async def start(self) -> None:
        """
        Acquire the capture device and begin recognition.

        Raises:
            CaptureError: Permission denied, no device, or I/O failure
        """
        ...

    @abstractmethod
    def results(self) -> AsyncIterator[RecognitionResult]:
        """Stream of interim and final results until stopped."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Release the capture device. Safe to call more than once."""
        ...

    @property
    @abstractmethod
    def recognizer_id(self) -> str:
        """Return identifier for logging/health."""
        ...


_STOP = object()


# =============================================================================
# Dummy Implementation (Development/Testing)
# =============================================================================

class DummySpeechRecognizer:
    """
    Recognizer that replays a fixed list of results.

    Results are emitted ``interval_seconds`` apart; the stream ends after the
    last one or when stopped. ``fail_on_start`` / ``fail_after`` inject
    device failures.
    """

    DEFAULT_RESULTS = (
        RecognitionResult("there's been an accident", is_final=False),
        RecognitionResult("There's been an accident at the crossroads."),
        RecognitionResult("A man is unconscious", is_final=False),
        RecognitionResult("A man is unconscious and bleeding from the head."),
    )

    def __init__(
        self,
        results: Optional[Sequence[RecognitionResult]] = None,
        interval_seconds: float = 1.0,
        available: bool = True,
        fail_on_start: Optional[Exception] = None,
        fail_after: Optional[int] = None,
    ):
        self._results = list(results if results is not None else self.DEFAULT_RESULTS)
        self._interval = interval_seconds
        self._available = available
        self._fail_on_start = fail_on_start
        self._fail_after = fail_after
        self._queue: Optional[asyncio.Queue] = None
        self._feeder: Optional[asyncio.Task] = None
        self.device_open = False
        self.start_count = 0

    @property
    def recognizer_id(self) -> str:
        return "dummy-recognizer"

    def is_available(self) -> bool:
        return self._available

    async def start(self) -> None:
        if self._fail_on_start is not None:
            raise CaptureError(f"Capture device failed to start: {self._fail_on_start}")
        self.start_count += 1
        self.device_open = True
        self._queue = asyncio.Queue()
        self._feeder = asyncio.create_task(self._feed())

    async def _feed(self) -> None:
        for index, result in enumerate(self._results):
            await asyncio.sleep(self._interval)
            if self._fail_after is not None and index >= self._fail_after:
                await self._queue.put(CaptureError("network"))
                return
            await self._queue.put(result)
        await self._queue.put(_STOP)

    async def results(self) -> AsyncIterator[RecognitionResult]:
        if self._queue is None:
            return
        while True:
            item = await self._queue.get()
            if item is _STOP:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    async def stop(self) -> None:
        if self._feeder is not None:
            self._feeder.cancel()
            try:
                await self._feeder
            except asyncio.CancelledError:
                pass
            self._feeder = None
        if self._queue is not None:
            self._queue.put_nowait(_STOP)
        self.device_open = False


# =============================================================================
# Energy Gate
# =============================================================================

@dataclass(frozen=True)
class SegmentConfig:
    """Energy-gate parameters for utterance segmentation."""
    sample_rate: int = 16000
    frame_ms: int = 20
    calibration_ms: int = 1200
    energy_floor_dbfs: float = -60.0
    energy_offset_db: float = 12.0
    min_speech_ms: int = 400
    max_silence_ms: int = 700
    max_segment_seconds: float = 12.0


class EnergySegmenter:
    """
    Splits a stream of s16le frames into utterance segments.

    The noise floor is calibrated over the first frames, then tracked while
    silent. A segment closes after ``max_silence_ms`` of silence or once it
    reaches ``max_segment_seconds``; segments shorter than
    ``min_speech_ms`` are discarded.
    """

    def __init__(self, cfg: SegmentConfig):
        self.cfg = cfg
        self._calibration_frames = max(1, cfg.calibration_ms // cfg.frame_ms)
        self._calibration_levels: List[float] = []
        self._noise_floor_dbfs = cfg.energy_floor_dbfs
        self._threshold_dbfs = cfg.energy_floor_dbfs + cfg.energy_offset_db
        self._speaking = False
        self._silence_frames = 0
        self._segment: List[bytes] = []
        self._min_speech_frames = max(1, cfg.min_speech_ms // cfg.frame_ms)
        self._max_silence_frames = max(1, cfg.max_silence_ms // cfg.frame_ms)
        self._max_segment_frames = max(
            self._min_speech_frames + 1,
            int(cfg.max_segment_seconds * 1000 / cfg.frame_ms),
        )

    @staticmethod
    def frame_dbfs(pcm16: bytes) -> float:
        samples = np.frombuffer(pcm16, dtype="<i2").astype(np.float32)
        if samples.size == 0:
            return -120.0
        rms = float(np.sqrt(np.mean(np.square(samples)))) + 1e-12
        db = 20.0 * np.log10(rms / 32768.0)
        return float(db) if np.isfinite(db) else -120.0

    def _update_threshold(self) -> None:
        self._threshold_dbfs = max(
            self.cfg.energy_floor_dbfs,
            self._noise_floor_dbfs + self.cfg.energy_offset_db,
        )

    def add_frame(self, pcm16: bytes) -> Optional[bytes]:
        """Feed one frame; return a finished segment if this frame closed one."""
        dbfs = self.frame_dbfs(pcm16)

        if self._calibration_frames > 0:
            self._calibration_levels.append(dbfs)
            self._calibration_frames -= 1
            if self._calibration_frames == 0:
                baseline = float(np.mean(self._calibration_levels))
                self._noise_floor_dbfs = max(self.cfg.energy_floor_dbfs, baseline)
                self._update_threshold()
            return None

        is_speech = dbfs >= self._threshold_dbfs

        if not self._speaking:
            if is_speech:
                self._speaking = True
                self._silence_frames = 0
                self._segment = [pcm16]
            else:
                self._noise_floor_dbfs = 0.95 * self._noise_floor_dbfs + 0.05 * dbfs
                self._update_threshold()
            return None

        self._segment.append(pcm16)
        self._silence_frames = 0 if is_speech else self._silence_frames + 1

        if (
            self._silence_frames >= self._max_silence_frames
            or len(self._segment) >= self._max_segment_frames
        ):
            return self._close_segment()
        return None

    def flush(self) -> Optional[bytes]:
        """Close any pending segment."""
        if not self._speaking:
            return None
        return self._close_segment()

    def _close_segment(self) -> Optional[bytes]:
        frames = self._segment
        self._segment = []
        self._speaking = False
        self._silence_frames = 0
        if len(frames) < self._min_speech_frames:
            return None
        return b"".join(frames)


def pcm16_to_wav(pcm16: bytes, sample_rate: int, channels: int = 1) -> bytes:
    """Wrap raw s16le PCM in a WAV container."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm16)
    return buf.getvalue()


# =============================================================================
# Microphone Implementation
# =============================================================================

class MicrophoneRecognizer:
    """
    Live recognizer: default input device -> energy gate -> transcription.

    The sounddevice callback runs on the PortAudio thread and hands frames
    to the event loop; segmentation and transcription run on the loop.
    Every transcribed segment is reported as a final result.
    """

    def __init__(
        self,
        transcription: TranscriptionService,
        segment_config: Optional[SegmentConfig] = None,
        device: Optional[int] = None,
    ):
        self._transcription = transcription
        self._cfg = segment_config or SegmentConfig()
        self._device = device
        self._stream = None
        self._frames: Optional[asyncio.Queue] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def recognizer_id(self) -> str:
        return f"microphone+{self._transcription.model_id}"

    def is_available(self) -> bool:
        try:
            import sounddevice as sd

            sd.query_devices(self._device, kind="input")
        except (ImportError, OSError, ValueError) as e:
            logger.info("Microphone capture unavailable: %s", e)
            return False
        return True

    async def start(self) -> None:
        try:
            import sounddevice as sd
        except (ImportError, OSError) as e:
            raise CaptureUnavailableError(f"sounddevice unavailable: {e}") from e

        self._loop = asyncio.get_running_loop()
        self._frames = asyncio.Queue()
        blocksize = self._cfg.sample_rate * self._cfg.frame_ms // 1000

        def callback(indata, _frames, _time_info, status):
            if status:
                logger.debug("Microphone status: %s", status)
            self._loop.call_soon_threadsafe(self._frames.put_nowait, bytes(indata))

        try:
            stream = sd.RawInputStream(
                samplerate=self._cfg.sample_rate,
                channels=1,
                dtype="int16",
                blocksize=blocksize,
                device=self._device,
                callback=callback,
            )
            stream.start()
        except Exception as e:
            raise CaptureError(f"Microphone access failed: {type(e).__name__}: {e}") from e

        self._stream = stream
        logger.info("Microphone capture started (%d Hz)", self._cfg.sample_rate)

    async def results(self) -> AsyncIterator[RecognitionResult]:
        if self._frames is None:
            return
        segmenter = EnergySegmenter(self._cfg)
        frames = self._frames

        while True:
            frame = await frames.get()
            if frame is _STOP:
                segment = segmenter.flush()
            else:
                segment = segmenter.add_frame(frame)

            if segment:
                text = await self._finalize(segment)
                if text:
                    yield RecognitionResult(text=text, is_final=True)

            if frame is _STOP:
                return

    async def _finalize(self, segment: bytes) -> str:
        wav = pcm16_to_wav(segment, self._cfg.sample_rate)
        try:
            return (await self._transcription.transcribe(wav, "audio/wav")).strip()
        except TranscriptionError as e:
            logger.warning("Segment transcription failed: %s", e)
            return ""

    async def stop(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None:
            try:
                stream.stop()
            finally:
                stream.close()
            logger.info("Microphone capture released")
        if self._frames is not None:
            self._frames.put_nowait(_STOP)

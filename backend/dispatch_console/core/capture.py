"""
RAPID Dispatch Console - Capture Sources

Line producers that feed the transcript, and the arbiter that keeps at most
one of them active.

Producers:
    - SimulationProducer: plays a scripted call on a jittered timer
    - UploadProducer: transcribes a recorded call, splits it into sentences,
      then plays it like a simulation
    - MicrophoneProducer: forwards finalized results of a live recognizer

Producers never touch session state. They report through two callbacks
supplied by the owner:

    emit(producer, text, final_line)   one caller line
    finished(producer, error)          the producer ended on its own
                                       (script exhausted, device failure)

``finished`` runs inside the producer's own task, so the owner must detach
the producer there instead of stopping it.
"""

from __future__ import annotations

import asyncio
import logging
import random
from abc import abstractmethod
from typing import Callable, Optional, Protocol, Sequence, runtime_checkable

from dispatch_console.core.exceptions import CaptureError, CaptureUnavailableError
from dispatch_console.core.scenarios import scenario_from_upload
from dispatch_console.core.types import CallScenario, CaptureSource, UploadPayload
from dispatch_console.services.recognition import SpeechRecognizer
from dispatch_console.services.transcription import TranscriptionService

logger = logging.getLogger(__name__)

EmitCallback = Callable[["LineProducer", str, bool], None]
FinishedCallback = Callable[["LineProducer", Optional[Exception]], None]


# =============================================================================
# Protocol (Interface)
# =============================================================================

@runtime_checkable
class LineProducer(Protocol):
    """A source of caller lines."""

    source: CaptureSource
    scenario: Optional[CallScenario]

    @abstractmethod
    async def start(self) -> None:
        """
        Begin producing lines.

        Raises:
            DispatchConsoleError: If the producer cannot start
        """
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Cancel pending lines and release any device. Idempotent."""
        ...


# =============================================================================
# Scripted Playback
# =============================================================================

class SimulationProducer:
    """
    Emits a script one line at a time.

    The first line comes after ``initial_delay``; every following line, and
    the end-of-call notice after the last one, after a delay drawn
    uniformly from [min_delay, max_delay].
    """

    source = CaptureSource.SIMULATION

    def __init__(
        self,
        scenario: Optional[CallScenario],
        emit: EmitCallback,
        finished: FinishedCallback,
        initial_delay: float = 0.3,
        min_delay: float = 1.5,
        max_delay: float = 3.0,
        rng: Optional[random.Random] = None,
    ):
        self.scenario = scenario
        self._emit = emit
        self._finished = finished
        self._initial_delay = initial_delay
        self._min_delay = min_delay
        self._max_delay = max(min_delay, max_delay)
        self._rng = rng or random.Random()
        self._task: Optional[asyncio.Task] = None

    @property
    def script(self) -> Sequence[str]:
        return self.scenario.script if self.scenario else ()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._play())

    def _next_delay(self) -> float:
        return self._rng.uniform(self._min_delay, self._max_delay)

    async def _play(self) -> None:
        script = self.script
        last = len(script) - 1

        await asyncio.sleep(self._initial_delay)
        for index, line in enumerate(script):
            if index > 0:
                await asyncio.sleep(self._next_delay())
            self._emit(self, line, index == last)

        await asyncio.sleep(self._next_delay())
        logger.info("Scripted call exhausted after %d lines", len(script))
        self._finished(self, None)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


class UploadProducer(SimulationProducer):
    """
    Plays back a recorded call.

    start() transcribes the whole file first; the resulting sentences then
    play exactly like a simulation script.
    """

    source = CaptureSource.UPLOAD

    def __init__(
        self,
        payload: UploadPayload,
        transcription: TranscriptionService,
        emit: EmitCallback,
        finished: FinishedCallback,
        **timing,
    ):
        super().__init__(None, emit, finished, **timing)
        self._payload = payload
        self._transcription = transcription

    async def start(self) -> None:
        text = await self._transcription.transcribe(self._payload.audio, self._payload.mime_type)
        scenario = scenario_from_upload(self._payload.filename, text)
        if not scenario.script:
            raise CaptureError(
                "Uploaded recording produced no transcript lines",
                details={"filename": self._payload.filename},
            )

        logger.info("Upload transcribed into %d lines", len(scenario.script))
        self.scenario = scenario
        await super().start()


# =============================================================================
# Live Capture
# =============================================================================

class MicrophoneProducer:
    """
    Forwards finalized recognition results as caller lines.

    Interim results and blank finals are dropped. When the result stream
    ends or the device fails, the device is released and ``finished`` is
    called with the error, if any.
    """

    source = CaptureSource.MICROPHONE
    scenario: Optional[CallScenario] = None

    def __init__(
        self,
        recognizer: Optional[SpeechRecognizer],
        emit: EmitCallback,
        finished: FinishedCallback,
    ):
        self._recognizer = recognizer
        self._emit = emit
        self._finished = finished
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        if self._recognizer is None or not self._recognizer.is_available():
            raise CaptureUnavailableError("Speech recognition is not supported on this console")

        await self._recognizer.start()
        self._task = asyncio.create_task(self._pump())
        logger.info("Live capture started via %s", self._recognizer.recognizer_id)

    async def _pump(self) -> None:
        try:
            async for result in self._recognizer.results():
                text = result.text.strip()
                if result.is_final and text:
                    self._emit(self, text, False)
        except CaptureError as e:
            logger.warning("Live capture failed: %s", e)
            await self._recognizer.stop()
            self._finished(self, e)
        else:
            logger.info("Live capture stream ended")
            await self._recognizer.stop()
            self._finished(self, None)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self._recognizer is not None:
            await self._recognizer.stop()


# =============================================================================
# Arbiter
# =============================================================================

class CaptureSourceArbiter:
    """
    Holds the single active line producer.

    activate() fully stops the current producer before starting the next.
    If another activate() or release() happens while a producer is still
    starting, that producer is stopped again once its start completes and
    the activation fails with CaptureError.
    """

    def __init__(self):
        self._active: Optional[LineProducer] = None
        self._generation = 0

    @property
    def active(self) -> Optional[LineProducer]:
        return self._active

    @property
    def active_source(self) -> CaptureSource:
        return self._active.source if self._active is not None else CaptureSource.NONE

    async def activate(self, producer: LineProducer) -> None:
        await self.release()
        generation = self._generation

        await producer.start()

        if generation != self._generation:
            await producer.stop()
            raise CaptureError(f"{producer.source.value} start superseded")

        self._active = producer
        logger.debug("Capture source active: %s", producer.source.value)

    async def release(self) -> None:
        """Stop the active producer, if any."""
        self._generation += 1
        producer, self._active = self._active, None
        if producer is not None:
            await producer.stop()
            logger.debug("Capture source released: %s", producer.source.value)

    def detach(self, producer: LineProducer) -> bool:
        """Forget a producer that ended on its own, without stopping it."""
        if self._active is not producer:
            return False
        self._active = None
        return True

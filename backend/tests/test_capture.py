"""
RAPID Dispatch Console - Capture Source Tests

Tests the line producers and the single-source arbiter in isolation.
These tests verify:
- Scripted playback order, final-line flag and end-of-call report
- Live capture filters interim results and reports stream end and device failures
- The arbiter stops the previous producer before starting the next
- A start that is superseded while in progress is rolled back

Run with: pytest tests/test_capture.py -v
"""

import asyncio

import pytest

from dispatch_console.core.capture import (
    CaptureSourceArbiter,
    MicrophoneProducer,
    SimulationProducer,
    UploadProducer,
)
from dispatch_console.core.exceptions import CaptureError, CaptureUnavailableError
from dispatch_console.core.scenarios import get_scenario
from dispatch_console.core.types import CaptureSource, RecognitionResult, UploadPayload


class Recorder:
    """Collects producer callbacks."""

    def __init__(self):
        self.lines = []
        self.finished = []

    def emit(self, producer, text, final_line):
        self.lines.append((text, final_line))

    def done(self, producer, error):
        self.finished.append(error)


class SlowProducer:
    """Producer whose start() blocks until released by the test."""

    source = CaptureSource.SIMULATION
    scenario = None

    def __init__(self):
        self.gate = asyncio.Event()
        self.started = False
        self.stopped = False

    async def start(self):
        await self.gate.wait()
        self.started = True

    async def stop(self):
        self.stopped = True


@pytest.fixture
def recorder():
    return Recorder()


class TestSimulationProducer:
    """Scripted playback."""

    @pytest.mark.asyncio
    async def test_emits_script_in_order(self, recorder, wait_until):
        scenario = get_scenario("crime-1")
        producer = SimulationProducer(
            scenario, recorder.emit, recorder.done,
            initial_delay=0, min_delay=0, max_delay=0,
        )

        await producer.start()
        await wait_until(lambda: recorder.finished)

        assert [text for text, _ in recorder.lines] == list(scenario.script)
        assert [final for _, final in recorder.lines] == [False] * 6 + [True]
        assert recorder.finished == [None]

    @pytest.mark.asyncio
    async def test_stop_cancels_pending_lines(self, recorder):
        producer = SimulationProducer(
            get_scenario("med-1"), recorder.emit, recorder.done,
            initial_delay=0.05, min_delay=0.05, max_delay=0.05,
        )

        await producer.start()
        await producer.stop()
        await asyncio.sleep(0.1)

        assert recorder.lines == []
        assert recorder.finished == []
        assert producer.running is False

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, recorder):
        producer = SimulationProducer(get_scenario("med-1"), recorder.emit, recorder.done)

        await producer.stop()
        await producer.start()
        await producer.stop()
        await producer.stop()


class TestUploadProducer:
    """Transcribe-then-replay."""

    @pytest.mark.asyncio
    async def test_start_builds_script(self, recorder, transcription, wait_until):
        producer = UploadProducer(
            UploadPayload(audio=b"data", mime_type="audio/wav", filename="call.wav"),
            transcription,
            recorder.emit,
            recorder.done,
            initial_delay=0, min_delay=0, max_delay=0,
        )

        await producer.start()
        await wait_until(lambda: recorder.finished)

        assert producer.source is CaptureSource.UPLOAD
        assert producer.scenario.id == "upload:call.wav"
        assert recorder.lines[-1] == ("Someone is trapped?", True)

    @pytest.mark.asyncio
    async def test_empty_transcript_raises(self, recorder, fixed_transcription_factory):
        producer = UploadProducer(
            UploadPayload(audio=b"data", mime_type="audio/wav"),
            fixed_transcription_factory(""),
            recorder.emit,
            recorder.done,
        )

        with pytest.raises(CaptureError):
            await producer.start()
        assert producer.running is False


class TestMicrophoneProducer:
    """Live capture forwarding."""

    @pytest.mark.asyncio
    async def test_forwards_final_non_blank_results(self, recorder, recognizer_factory, wait_until):
        recognizer = recognizer_factory(
            results=[
                RecognitionResult("hel", is_final=False),
                RecognitionResult("Hello?"),
                RecognitionResult("   "),
                RecognitionResult("Anyone there?"),
            ],
            interval_seconds=0.0,
        )
        producer = MicrophoneProducer(recognizer, recorder.emit, recorder.done)

        await producer.start()
        await wait_until(lambda: len(recorder.lines) == 2)
        await producer.stop()

        assert recorder.lines == [("Hello?", False), ("Anyone there?", False)]
        assert recognizer.device_open is False

    @pytest.mark.asyncio
    async def test_missing_recognizer_is_unavailable(self, recorder):
        producer = MicrophoneProducer(None, recorder.emit, recorder.done)

        with pytest.raises(CaptureUnavailableError):
            await producer.start()

    @pytest.mark.asyncio
    async def test_unavailable_recognizer(self, recorder, recognizer_factory):
        recognizer = recognizer_factory(available=False)
        producer = MicrophoneProducer(recognizer, recorder.emit, recorder.done)

        with pytest.raises(CaptureUnavailableError):
            await producer.start()
        assert recognizer.start_count == 0

    @pytest.mark.asyncio
    async def test_runtime_failure_reported(self, recorder, recognizer_factory, wait_until):
        recognizer = recognizer_factory(
            results=[RecognitionResult("one"), RecognitionResult("two")],
            interval_seconds=0.0,
            fail_after=1,
        )
        producer = MicrophoneProducer(recognizer, recorder.emit, recorder.done)

        await producer.start()
        await wait_until(lambda: recorder.finished)

        assert recorder.lines == [("one", False)]
        assert isinstance(recorder.finished[0], CaptureError)
        assert recognizer.device_open is False

    @pytest.mark.asyncio
    async def test_stream_end_reported(self, recorder, recognizer_factory, wait_until):
        recognizer = recognizer_factory(results=[RecognitionResult("only line")], interval_seconds=0.0)
        producer = MicrophoneProducer(recognizer, recorder.emit, recorder.done)

        await producer.start()
        await wait_until(lambda: recorder.finished)

        assert recorder.lines == [("only line", False)]
        assert recorder.finished == [None]
        assert recognizer.device_open is False


class TestCaptureSourceArbiter:
    """At most one active producer."""

    @pytest.mark.asyncio
    async def test_activate_replaces_previous(self, recognizer_factory, recorder):
        arbiter = CaptureSourceArbiter()
        recognizer = recognizer_factory(interval_seconds=10.0)
        mic = MicrophoneProducer(recognizer, recorder.emit, recorder.done)
        sim = SimulationProducer(get_scenario("med-1"), recorder.emit, recorder.done)

        await arbiter.activate(mic)
        assert arbiter.active_source is CaptureSource.MICROPHONE

        await arbiter.activate(sim)

        assert recognizer.device_open is False
        assert arbiter.active is sim
        assert arbiter.active_source is CaptureSource.SIMULATION
        await arbiter.release()

    @pytest.mark.asyncio
    async def test_release_clears_active(self):
        arbiter = CaptureSourceArbiter()
        producer = SlowProducer()
        producer.gate.set()
        await arbiter.activate(producer)

        await arbiter.release()

        assert arbiter.active is None
        assert arbiter.active_source is CaptureSource.NONE
        assert producer.stopped is True

    @pytest.mark.asyncio
    async def test_superseded_start_is_rolled_back(self):
        arbiter = CaptureSourceArbiter()
        slow = SlowProducer()
        fast = SlowProducer()
        fast.gate.set()

        pending = asyncio.create_task(arbiter.activate(slow))
        await asyncio.sleep(0)
        await arbiter.activate(fast)
        slow.gate.set()

        with pytest.raises(CaptureError):
            await pending

        assert slow.stopped is True
        assert arbiter.active is fast

    @pytest.mark.asyncio
    async def test_detach_only_matches_active(self):
        arbiter = CaptureSourceArbiter()
        active = SlowProducer()
        active.gate.set()
        other = SlowProducer()
        await arbiter.activate(active)

        assert arbiter.detach(other) is False
        assert arbiter.detach(active) is True
        assert arbiter.active is None
        assert active.stopped is False

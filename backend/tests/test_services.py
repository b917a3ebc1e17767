"""
RAPID Dispatch Console - Collaborator Service Tests

Tests the classifier, transcription, synthesis and recognition services
with dummy implementations and fake OpenAI clients (no network).

Run with: pytest tests/test_services.py -v
"""

import io
import json
import logging
import wave
from types import SimpleNamespace

import numpy as np
import pytest

from dispatch_console.audio.codec import decode_base64_audio, decode_pcm16
from dispatch_console.core.exceptions import ClassificationError, TranscriptionError
from dispatch_console.core.logging import (
    HumanReadableFormatter,
    LogContext,
    StructuredFormatter,
    console_id_var,
    mask_id,
)
from dispatch_console.core.types import EmergencyType, RecognitionResult, SeverityLevel
from dispatch_console.services import (
    DummyEmergencyClassifier,
    DummySpeechRecognizer,
    DummySpeechSynthesizer,
    DummyTranscriptionService,
    EmergencyClassifier,
    OpenAIEmergencyClassifier,
    OpenAISpeechSynthesizer,
    OpenAITranscriptionService,
    SpeechRecognizer,
)
from dispatch_console.services.classifier import parse_analysis
from dispatch_console.services.recognition import EnergySegmenter, SegmentConfig, pcm16_to_wav


VALID_RESPONSE = {
    "emergency_type": "Fire",
    "severity": "P1",
    "summary": "Structure fire with people trapped.",
    "key_risks": ["smoke inhalation", "trapped occupants"],
    "confidence": 0.92,
    "recommended_route": "Fire & Rescue",
    "reasoning_trace": "Caller reports fire and trapped people.",
}


def fake_client(**endpoints):
    """Nested namespace mimicking the AsyncOpenAI client surface."""
    return SimpleNamespace(
        chat=SimpleNamespace(completions=SimpleNamespace(create=endpoints.get("chat"))),
        audio=SimpleNamespace(
            transcriptions=SimpleNamespace(create=endpoints.get("transcriptions")),
            speech=SimpleNamespace(create=endpoints.get("speech")),
        ),
    )


def chat_response(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


# =============================================================================
# Classifier
# =============================================================================

class TestParseAnalysis:
    """JSON contract of classifier responses."""

    def test_valid_response(self):
        result = parse_analysis(json.dumps(VALID_RESPONSE))

        assert result.emergency_type is EmergencyType.FIRE
        assert result.severity is SeverityLevel.P1
        assert result.key_risks == ("smoke inhalation", "trapped occupants")
        assert result.confidence == 0.92

    def test_confidence_is_clamped(self):
        result = parse_analysis(json.dumps({**VALID_RESPONSE, "confidence": 1.7}))

        assert result.confidence == 1.0

    @pytest.mark.parametrize("raw", [
        "not json",
        json.dumps({**VALID_RESPONSE, "severity": "P9"}),
        json.dumps({k: v for k, v in VALID_RESPONSE.items() if k != "summary"}),
    ])
    def test_malformed_response(self, raw):
        with pytest.raises(ClassificationError):
            parse_analysis(raw)


class TestDummyClassifier:
    """Keyword heuristic classifier."""

    @pytest.mark.asyncio
    async def test_protocol(self):
        assert isinstance(DummyEmergencyClassifier(), EmergencyClassifier)

    @pytest.mark.asyncio
    async def test_medical_critical(self):
        classifier = DummyEmergencyClassifier(simulated_latency_ms=0)

        result = await classifier.classify("My father collapsed. He is not breathing!")

        assert result.emergency_type is EmergencyType.MEDICAL
        assert result.severity is SeverityLevel.P1
        assert 0.0 <= result.confidence <= 1.0

    @pytest.mark.asyncio
    async def test_unknown_is_routine(self):
        classifier = DummyEmergencyClassifier(simulated_latency_ms=0)

        result = await classifier.classify("Hello? Can you hear me?")

        assert result.emergency_type is EmergencyType.UNKNOWN
        assert result.severity is SeverityLevel.P3

    @pytest.mark.asyncio
    async def test_deterministic(self):
        classifier = DummyEmergencyClassifier(simulated_latency_ms=0)
        text = "There is smoke and fire in the building"

        assert await classifier.classify(text) == await classifier.classify(text)


class TestOpenAIClassifier:
    """OpenAI classifier against a fake client."""

    @pytest.mark.asyncio
    async def test_classify(self):
        requests = []

        async def create(**kwargs):
            requests.append(kwargs)
            return chat_response(json.dumps(VALID_RESPONSE))

        classifier = OpenAIEmergencyClassifier(model="test-model", client=fake_client(chat=create))

        result = await classifier.classify("Fire! People trapped!")

        assert result.recommended_route == "Fire & Rescue"
        assert requests[0]["model"] == "test-model"
        assert requests[0]["response_format"] == {"type": "json_object"}
        assert "Fire! People trapped!" in requests[0]["messages"][1]["content"]
        assert classifier.model_id == "openai:test-model"

    @pytest.mark.asyncio
    async def test_request_failure(self):
        async def create(**kwargs):
            raise ConnectionError("timed out")

        classifier = OpenAIEmergencyClassifier(client=fake_client(chat=create))

        with pytest.raises(ClassificationError):
            await classifier.classify("help")

    @pytest.mark.asyncio
    async def test_empty_response(self):
        async def create(**kwargs):
            return chat_response(None)

        classifier = OpenAIEmergencyClassifier(client=fake_client(chat=create))

        with pytest.raises(ClassificationError):
            await classifier.classify("help")


# =============================================================================
# Transcription
# =============================================================================

class TestTranscription:
    """Dummy and OpenAI transcription."""

    @pytest.mark.asyncio
    async def test_dummy_is_deterministic(self):
        service = DummyTranscriptionService(simulated_latency_ms=0)

        first = await service.transcribe(b"abc", "audio/wav")

        assert first
        assert await service.transcribe(b"abc", "audio/wav") == first

    @pytest.mark.asyncio
    async def test_dummy_rejects_empty_audio(self):
        with pytest.raises(TranscriptionError):
            await DummyTranscriptionService(simulated_latency_ms=0).transcribe(b"", "audio/wav")

    @pytest.mark.asyncio
    async def test_openai_file_extension_from_mime(self):
        requests = []

        async def create(**kwargs):
            requests.append(kwargs)
            return SimpleNamespace(text="  Help me please.  ")

        service = OpenAITranscriptionService(client=fake_client(transcriptions=create))

        text = await service.transcribe(b"data", "audio/webm;codecs=opus")

        assert text == "Help me please."
        assert requests[0]["file"][0] == "call.webm"

    @pytest.mark.asyncio
    async def test_openai_failure(self):
        async def create(**kwargs):
            raise RuntimeError("bad gateway")

        service = OpenAITranscriptionService(client=fake_client(transcriptions=create))

        with pytest.raises(TranscriptionError) as exc_info:
            await service.transcribe(b"data", "audio/wav")

        assert "audio_hash" in exc_info.value.details


# =============================================================================
# Speech Synthesis
# =============================================================================

class TestSpeechSynthesis:
    """Dummy and OpenAI synthesis."""

    @pytest.mark.asyncio
    async def test_dummy_produces_pcm(self):
        audio = await DummySpeechSynthesizer().synthesize("Help is on the way")

        buffer = decode_pcm16(decode_base64_audio(audio), sample_rate=24000, channel_count=1)
        assert buffer.frame_count > 0
        assert float(np.max(np.abs(buffer.samples[0]))) <= 0.25

    @pytest.mark.asyncio
    async def test_dummy_blank_text(self):
        assert await DummySpeechSynthesizer().synthesize("   ") is None

    @pytest.mark.asyncio
    async def test_openai_requests_raw_pcm(self):
        requests = []

        async def create(**kwargs):
            requests.append(kwargs)
            return SimpleNamespace(content=b"\x00\x00\xff\x7f")

        synthesizer = OpenAISpeechSynthesizer(voice="onyx", client=fake_client(speech=create))

        audio = await synthesizer.synthesize("Stay calm")

        assert decode_base64_audio(audio) == b"\x00\x00\xff\x7f"
        assert requests[0]["response_format"] == "pcm"
        assert requests[0]["voice"] == "onyx"
        assert "instructions" in requests[0]

    @pytest.mark.asyncio
    async def test_tts1_models_get_no_instructions(self):
        requests = []

        async def create(**kwargs):
            requests.append(kwargs)
            return SimpleNamespace(content=b"\x00\x00")

        for model in ("tts-1", "tts-1-hd"):
            synthesizer = OpenAISpeechSynthesizer(model=model, client=fake_client(speech=create))
            assert await synthesizer.synthesize("Stay calm") is not None

        assert [r["model"] for r in requests] == ["tts-1", "tts-1-hd"]
        assert all("instructions" not in r for r in requests)

    @pytest.mark.asyncio
    async def test_openai_failure_returns_none(self):
        async def create(**kwargs):
            raise RuntimeError("quota exceeded")

        synthesizer = OpenAISpeechSynthesizer(client=fake_client(speech=create))

        assert await synthesizer.synthesize("Stay calm") is None


# =============================================================================
# Recognition
# =============================================================================

FRAME_SAMPLES = 320  # 20 ms at 16 kHz


def frame(amplitude: int) -> bytes:
    return np.full(FRAME_SAMPLES, amplitude, dtype="<i2").tobytes()


SILENCE = frame(0)
SPEECH = frame(8000)


class TestEnergySegmenter:
    """Energy-gated utterance segmentation."""

    def make(self, **overrides) -> EnergySegmenter:
        params = dict(
            sample_rate=16000,
            frame_ms=20,
            calibration_ms=100,
            min_speech_ms=100,
            max_silence_ms=100,
            max_segment_seconds=1.0,
        )
        params.update(overrides)
        return EnergySegmenter(SegmentConfig(**params))

    def feed(self, segmenter, frames):
        return [s for s in (segmenter.add_frame(f) for f in frames) if s is not None]

    def test_segment_closes_after_silence(self):
        segmenter = self.make()

        segments = self.feed(segmenter, [SILENCE] * 5 + [SPEECH] * 10 + [SILENCE] * 5)

        assert len(segments) == 1
        assert len(segments[0]) == 15 * len(SPEECH)

    def test_calibration_frames_never_start_speech(self):
        segmenter = self.make()

        assert self.feed(segmenter, [SPEECH] * 5) == []
        assert segmenter.flush() is None

    def test_short_blip_is_discarded(self):
        segmenter = self.make(min_speech_ms=400)

        segments = self.feed(segmenter, [SILENCE] * 5 + [SPEECH] * 2 + [SILENCE] * 5)

        assert segments == []

    def test_max_segment_length(self):
        segmenter = self.make(max_segment_seconds=0.2)

        segments = self.feed(segmenter, [SILENCE] * 5 + [SPEECH] * 25)

        assert len(segments) == 2
        assert all(len(s) == 10 * len(SPEECH) for s in segments)

    def test_flush_returns_pending_segment(self):
        segmenter = self.make()
        self.feed(segmenter, [SILENCE] * 5 + [SPEECH] * 8)

        segment = segmenter.flush()

        assert segment is not None
        assert len(segment) == 8 * len(SPEECH)

    def test_frame_dbfs(self):
        assert EnergySegmenter.frame_dbfs(SILENCE) < -100
        assert EnergySegmenter.frame_dbfs(frame(32767)) == pytest.approx(0.0, abs=0.01)
        assert EnergySegmenter.frame_dbfs(b"") == -120.0


class TestPcmToWav:
    def test_wav_header(self):
        wav = pcm16_to_wav(SPEECH, 16000)

        with wave.open(io.BytesIO(wav), "rb") as wf:
            assert wf.getnchannels() == 1
            assert wf.getsampwidth() == 2
            assert wf.getframerate() == 16000
            assert wf.getnframes() == FRAME_SAMPLES


class TestDummySpeechRecognizer:
    """Scripted recognizer."""

    @pytest.mark.asyncio
    async def test_protocol(self):
        assert isinstance(DummySpeechRecognizer(), SpeechRecognizer)

    @pytest.mark.asyncio
    async def test_replays_results_then_ends(self):
        results = [RecognitionResult("a", is_final=False), RecognitionResult("a b")]
        recognizer = DummySpeechRecognizer(results=results, interval_seconds=0)

        await recognizer.start()
        received = [r async for r in recognizer.results()]
        await recognizer.stop()

        assert received == results
        assert recognizer.device_open is False

    @pytest.mark.asyncio
    async def test_stop_ends_stream(self):
        recognizer = DummySpeechRecognizer(interval_seconds=10.0)

        await recognizer.start()
        await recognizer.stop()

        assert [r async for r in recognizer.results()] == []


# =============================================================================
# Logging
# =============================================================================

class TestLogging:
    """Context injection and identifier masking."""

    def test_mask_id(self):
        assert mask_id("con_0123456789ab") == "con_0123"
        assert mask_id("short") == "short"
        assert mask_id(None) is None

    def test_log_context_sets_and_restores(self):
        assert console_id_var.get() is None

        with LogContext(console_id="con_0123456789ab"):
            assert console_id_var.get() == "con_0123456789ab"

        assert console_id_var.get() is None

    def test_structured_formatter_masks_ids(self):
        record = logging.LogRecord("test", logging.INFO, __file__, 1, "hello %s", ("world",), None)

        with LogContext(console_id="con_0123456789ab", session_id="ses_abcdef012345"):
            data = json.loads(StructuredFormatter().format(record))

        assert data["message"] == "hello world"
        assert data["console_id"] == "con_0123"
        assert data["session_id"] == "ses_abcd"

    def test_human_readable_formatter(self):
        record = logging.LogRecord("test", logging.WARNING, __file__, 1, "careful", (), None)

        with LogContext(console_id="con_0123456789ab"):
            line = HumanReadableFormatter().format(record)

        assert "WARNING" in line
        assert "console=con_0123" in line
        assert line.endswith("careful")

"""
RAPID Dispatch Console - Test Configuration and Fixtures

Shared fixtures for all test modules.
"""

import asyncio
import os
import sys
from typing import Callable, Generator, List, Optional, Tuple

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

# Ensure backend package is importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dispatch_console.audio.playback import DummyAudioOutput
from dispatch_console.config import Settings
from dispatch_console.core.controller import CallSessionController
from dispatch_console.core.types import AnalysisResult, EmergencyType, SeverityLevel
from dispatch_console.services.recognition import DummySpeechRecognizer
from dispatch_console.services.speech import DummySpeechSynthesizer


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")
    config.addinivalue_line("markers", "integration: marks tests requiring external dependencies")


# =============================================================================
# Settings Fixtures
# =============================================================================

@pytest.fixture
def test_settings() -> Settings:
    """
    Test settings: dummy collaborators and no playback delays, so a scripted
    call plays through within a few event-loop turns.
    """
    return Settings(
        app_env="testing",
        app_debug=True,
        app_log_level="WARNING",
        classifier_backend="dummy",
        transcription_backend="dummy",
        synthesis_backend="dummy",
        recognizer_backend="none",
        audio_output_backend="dummy",
        simulation_initial_delay_seconds=0.0,
        simulation_min_line_delay_seconds=0.0,
        simulation_max_line_delay_seconds=0.0,
        archive_notice_delay_seconds=0.01,
        max_consoles=3,
        anonymize_logs=True,
    )


@pytest.fixture
def slow_settings(test_settings: Settings) -> Settings:
    """Settings where scripted lines are far apart (state can be inspected mid-call)."""
    return test_settings.model_copy(update={
        "simulation_initial_delay_seconds": 0.05,
        "simulation_min_line_delay_seconds": 0.05,
        "simulation_max_line_delay_seconds": 0.05,
    })


# =============================================================================
# Fake Collaborators
# =============================================================================

def make_analysis(
    severity: SeverityLevel = SeverityLevel.P3,
    emergency_type: EmergencyType = EmergencyType.MEDICAL,
    confidence: float = 0.8,
    route: str = "EMS",
    summary: str = "Test analysis",
) -> AnalysisResult:
    return AnalysisResult(
        emergency_type=emergency_type,
        severity=severity,
        summary=summary,
        key_risks=("test risk",),
        confidence=confidence,
        recommended_route=route,
        reasoning_trace="test",
    )


@pytest.fixture
def analysis_factory() -> Callable[..., AnalysisResult]:
    """Factory for AnalysisResult values."""
    return make_analysis


class ScriptedClassifier:
    """
    Classifier whose outcomes and latencies are queued by the test.

    Each classify() call takes the next (delay, outcome) pair; an Exception
    outcome is raised. With the queue empty, the default analysis is
    returned immediately.
    """

    def __init__(self, default: Optional[AnalysisResult] = None):
        self.calls: List[str] = []
        self._queue: List[Tuple[float, object]] = []
        self._default = default or make_analysis()

    @property
    def model_id(self) -> str:
        return "scripted-classifier"

    def enqueue(self, outcome, delay: float = 0.0) -> None:
        self._queue.append((delay, outcome))

    async def classify(self, transcript_text: str) -> AnalysisResult:
        self.calls.append(transcript_text)
        delay, outcome = self._queue.pop(0) if self._queue else (0.0, self._default)
        await asyncio.sleep(delay)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FixedTranscription:
    """Transcription service returning a fixed text (or raising)."""

    def __init__(self, text: str = "", error: Optional[Exception] = None):
        self.text = text
        self.error = error
        self.calls = 0

    @property
    def model_id(self) -> str:
        return "fixed-transcription"

    async def transcribe(self, audio: bytes, mime_type: str) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.text


class FixedSynthesizer:
    """Synthesizer returning a fixed base64 payload (or None)."""

    def __init__(self, audio: Optional[str] = None):
        self.audio = audio
        self.texts: List[str] = []

    @property
    def model_id(self) -> str:
        return "fixed-synthesizer"

    async def synthesize(self, text: str) -> Optional[str]:
        self.texts.append(text)
        return self.audio


@pytest.fixture
def classifier() -> ScriptedClassifier:
    return ScriptedClassifier()


@pytest.fixture
def transcription() -> FixedTranscription:
    return FixedTranscription("Help! My car crashed into a pole. Someone is trapped?")


@pytest.fixture
def synthesizer() -> DummySpeechSynthesizer:
    return DummySpeechSynthesizer()


@pytest.fixture
def output() -> DummyAudioOutput:
    return DummyAudioOutput()


@pytest.fixture
def fixed_synthesizer_factory() -> Callable[..., FixedSynthesizer]:
    return FixedSynthesizer


@pytest.fixture
def fixed_transcription_factory() -> Callable[..., FixedTranscription]:
    return FixedTranscription


# =============================================================================
# Controller Fixtures
# =============================================================================

@pytest_asyncio.fixture
async def controller_factory(
    test_settings: Settings,
    classifier: ScriptedClassifier,
    transcription: FixedTranscription,
    synthesizer: DummySpeechSynthesizer,
    output: DummyAudioOutput,
):
    """
    Build controllers wired to the fake collaborators.

    Keyword arguments override individual collaborators or settings.
    Every controller built here is closed after the test.
    """
    created: List[CallSessionController] = []

    def build(**overrides) -> CallSessionController:
        controller = CallSessionController(
            classifier=overrides.get("classifier", classifier),
            transcription=overrides.get("transcription", transcription),
            synthesizer=overrides.get("synthesizer", synthesizer),
            output=overrides.get("output", output),
            recognizer=overrides.get("recognizer"),
            settings=overrides.get("settings", test_settings),
        )
        created.append(controller)
        return controller

    yield build

    for ctrl in created:
        await ctrl.close()


@pytest.fixture
def controller(controller_factory) -> CallSessionController:
    """A controller with fake collaborators and no live capture."""
    return controller_factory()


@pytest.fixture
def recognizer_factory() -> Callable[..., DummySpeechRecognizer]:
    return DummySpeechRecognizer


@pytest.fixture
def wait_until():
    """Poll a condition on the running loop until it holds or times out."""

    async def _wait(condition: Callable[[], bool], timeout: float = 2.0, interval: float = 0.005) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not condition():
            if loop.time() > deadline:
                raise AssertionError("condition not met before timeout")
            await asyncio.sleep(interval)

    return _wait


# =============================================================================
# Sample Data Fixtures
# =============================================================================

@pytest.fixture
def pcm_stereo_bytes() -> bytes:
    """Two stereo frames: (0, -32768), (16384, 32767), little-endian."""
    return bytes([
        0x00, 0x00, 0x00, 0x80,
        0x00, 0x40, 0xFF, 0x7F,
    ])


# =============================================================================
# FastAPI App Fixture
# =============================================================================

@pytest.fixture
def app(test_settings: Settings):
    """Create a FastAPI app instance with test settings."""
    from main import create_app

    return create_app(test_settings)


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI app."""
    with TestClient(app) as c:
        yield c

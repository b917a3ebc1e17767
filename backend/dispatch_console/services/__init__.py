"""
RAPID Dispatch Console - Services Package

Contains collaborator interfaces and implementations for:
- Emergency classification
- Transcription (uploads and live-capture segments)
- Speech synthesis (dispatcher voice)
- Live speech recognition (capture device)

Design Pattern:
    Each service defines a Protocol (interface) with a deterministic Dummy
    implementation and a real backend. The controller is configured with
    concrete implementations at startup, enabling dependency injection and
    easy testing/swapping of components.
"""

from .classifier import (
    EmergencyClassifier,
    DummyEmergencyClassifier,
    OpenAIEmergencyClassifier,
)
from .transcription import (
    TranscriptionService,
    DummyTranscriptionService,
    OpenAITranscriptionService,
)
from .speech import (
    SpeechSynthesizer,
    DummySpeechSynthesizer,
    OpenAISpeechSynthesizer,
)
from .recognition import (
    SpeechRecognizer,
    DummySpeechRecognizer,
    MicrophoneRecognizer,
)

__all__ = [
    # Classification
    "EmergencyClassifier",
    "DummyEmergencyClassifier",
    "OpenAIEmergencyClassifier",
    # Transcription
    "TranscriptionService",
    "DummyTranscriptionService",
    "OpenAITranscriptionService",
    # Speech
    "SpeechSynthesizer",
    "DummySpeechSynthesizer",
    "OpenAISpeechSynthesizer",
    # Recognition
    "SpeechRecognizer",
    "DummySpeechRecognizer",
    "MicrophoneRecognizer",
]

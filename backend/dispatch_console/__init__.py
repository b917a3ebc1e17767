"""
RAPID Dispatch Console - Backend Package

This package contains the operator console core:
- Call session orchestration (state machine, capture arbitration)
- Hybrid triage scoring
- Raw PCM audio decoding and playback
- Collaborator service wrappers (classification, transcription, speech)
- HTTP and WebSocket surface for console renderers
"""

__version__ = "0.1.0"

"""
RAPID Dispatch Console - Exception Hierarchy

Structured exceptions for consistent error handling across the console.
All exceptions include error codes for API responses.

Guarded no-op operations (dispatch without analysis, takeover after
dispatch, ...) are NOT exceptions; they simply report that nothing changed.
"""

from typing import Optional


class DispatchConsoleError(Exception):
    """Base exception for all console errors."""

    code: str = "UNKNOWN_ERROR"
    status_code: int = 500

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


# =============================================================================
# Audio Errors
# =============================================================================

class DecodeError(DispatchConsoleError):
    """Audio payload cannot be decoded with the requested layout."""
    code = "DECODE_ERROR"
    status_code = 400


# =============================================================================
# Collaborator Errors
# =============================================================================

class ServiceError(DispatchConsoleError):
    """An external collaborator call failed."""
    code = "SERVICE_ERROR"
    status_code = 502


class ClassificationError(ServiceError):
    """Emergency classification failed or returned an unusable payload."""
    code = "CLASSIFICATION_ERROR"


class TranscriptionError(ServiceError):
    """Audio transcription failed."""
    code = "TRANSCRIPTION_ERROR"


# =============================================================================
# Capture Errors
# =============================================================================

class CaptureError(DispatchConsoleError):
    """A capture source could not be started or failed while running."""
    code = "CAPTURE_ERROR"
    status_code = 409


class CaptureUnavailableError(CaptureError):
    """The requested capture capability is not present on this console."""
    code = "CAPTURE_UNAVAILABLE"
    status_code = 503


# =============================================================================
# Console Errors
# =============================================================================

class ConsoleError(DispatchConsoleError):
    """Error related to console management."""
    code = "CONSOLE_ERROR"
    status_code = 400


class ConsoleNotFoundError(ConsoleError):
    """Console not found."""
    code = "CONSOLE_NOT_FOUND"
    status_code = 404


class ConsoleLimitError(ConsoleError):
    """Maximum concurrent consoles exceeded."""
    code = "CONSOLE_LIMIT_EXCEEDED"
    status_code = 429


# =============================================================================
# Validation Errors
# =============================================================================

class ValidationError(DispatchConsoleError):
    """Input validation error."""
    code = "VALIDATION_ERROR"
    status_code = 400


class UnknownScenarioError(ValidationError):
    """Requested simulation scenario does not exist."""
    code = "UNKNOWN_SCENARIO"
    status_code = 404

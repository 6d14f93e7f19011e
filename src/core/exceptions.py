"""
Civics quiz exception hierarchy.

All application-specific exceptions inherit from QuizError, enabling
centralized error handling in the API middleware layer and at the
session orchestrator boundary.
"""

from datetime import UTC, datetime


class QuizError(Exception):
    """Base exception for all quiz errors."""

    code = "QUIZ_ERROR"

    def __init__(
        self,
        detail: str = "An unexpected error occurred",
        code: str | None = None,
        status_code: int = 500,
    ) -> None:
        self.detail = detail
        self.code = code or type(self).code
        self.status_code = status_code
        self.timestamp = datetime.now(UTC).isoformat()
        super().__init__(detail)


class PermissionDeniedError(QuizError):
    """Raised when the platform refuses microphone access."""

    code = "PERMISSION_DENIED"

    def __init__(self, detail: str = "Microphone access was denied") -> None:
        super().__init__(detail=detail, status_code=403)


class DeviceUnavailableError(QuizError):
    """Raised when no usable audio device exists."""

    code = "DEVICE_UNAVAILABLE"

    def __init__(self, detail: str = "No audio input device is available") -> None:
        super().__init__(detail=detail, status_code=503)


class NotInitializedError(QuizError):
    """Raised when recording starts before a microphone stream is held."""

    code = "NOT_INITIALIZED"

    def __init__(self, detail: str = "Microphone has not been acquired") -> None:
        super().__init__(detail=detail, status_code=409)


class ProvisioningError(QuizError):
    """Raised when the quiz agent cannot be looked up or created."""

    code = "PROVISIONING_ERROR"

    def __init__(self, detail: str = "Failed to provision the quiz agent") -> None:
        super().__init__(detail=detail, status_code=502)


class UpstreamError(QuizError):
    """Raised when a remote inference call fails or its run does not complete."""

    code = "UPSTREAM_ERROR"

    def __init__(self, detail: str = "Upstream inference call failed") -> None:
        super().__init__(detail=detail, status_code=502)


class SynthesisError(QuizError):
    """Raised when text-to-speech fails."""

    code = "SYNTHESIS_ERROR"

    def __init__(self, detail: str = "Speech synthesis failed", status_code: int = 502) -> None:
        super().__init__(detail=detail, status_code=status_code)


class RecognitionError(QuizError):
    """Raised when speech-to-text fails or receives no audio."""

    code = "RECOGNITION_ERROR"

    def __init__(self, detail: str = "Transcription failed", status_code: int = 502) -> None:
        super().__init__(detail=detail, status_code=status_code)


class PlaybackError(QuizError):
    """Raised when synthesized audio cannot be decoded or played."""

    code = "PLAYBACK_ERROR"

    def __init__(self, detail: str = "Failed to play audio") -> None:
        super().__init__(detail=detail, status_code=500)


class InvalidRequestError(QuizError):
    """Raised when a request is missing a required field."""

    code = "INVALID_REQUEST"

    def __init__(self, detail: str = "Invalid request") -> None:
        super().__init__(detail=detail, status_code=400)


class InvalidTransitionError(QuizError):
    """Raised when a command is issued in a state that does not permit it."""

    code = "INVALID_TRANSITION"

    def __init__(self, current: str, target: str) -> None:
        super().__init__(
            detail=f"Cannot move from {current} to {target}",
            status_code=409,
        )


# Used by the HTTP client to rebuild domain errors from response envelopes
ERRORS_BY_CODE: dict[str, type[QuizError]] = {
    cls.code: cls
    for cls in (
        PermissionDeniedError,
        DeviceUnavailableError,
        NotInitializedError,
        ProvisioningError,
        UpstreamError,
        SynthesisError,
        RecognitionError,
        PlaybackError,
        InvalidRequestError,
    )
}

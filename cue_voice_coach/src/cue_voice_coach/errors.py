"""
Voice Practice Errors

Exception taxonomy for the voice-practice orchestrator.

- Transient generation failures (timeouts, transport errors, malformed payloads)
  are raised as TurnBackendError and absorbed by the generator.
- A second banned-content failure is raised as ContentPolicyError and crosses
  the Session Controller boundary as a recoverable, user-visible error.
- Microphone permission problems are blocking.
"""

from typing import Optional


class VoicePracticeError(Exception):
    """Base class for every orchestrator error."""


class TurnBackendError(VoicePracticeError):
    """The conversational turn backend failed (network, status code, payload)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ContentPolicyError(VoicePracticeError):
    """Generated text still contained a banned term after the single regenerate."""

    def __init__(self, term: str, attempts: int = 2):
        super().__init__(
            f"Unable to generate age-appropriate coach reply. Banned term detected: {term}"
        )
        self.term = term
        self.attempts = attempts


class MicrophonePermissionError(VoicePracticeError):
    """Microphone access was denied; the session cannot continue listening."""


class SpeechInputError(VoicePracticeError):
    """Speech-to-text reported a failure.

    ``kind`` follows the browser recognition error codes
    ("no-speech", "aborted", "audio-capture", "not-allowed", ...).
    """

    PERMISSION_KINDS = frozenset({"not-allowed", "service-not-allowed"})
    IGNORABLE_KINDS = frozenset({"no-speech", "aborted"})

    def __init__(self, kind: str, message: Optional[str] = None):
        super().__init__(message or f"Speech input error: {kind}")
        self.kind = kind

    @property
    def is_permission_denial(self) -> bool:
        return self.kind in self.PERMISSION_KINDS

    @property
    def is_ignorable(self) -> bool:
        return self.kind in self.IGNORABLE_KINDS

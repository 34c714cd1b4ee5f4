"""Custom exception classes for voicechat."""

from typing import Optional


class VoiceChatError(Exception):
    """Base error for this library.

    ``stage`` names the pipeline stage the error was raised in, once the
    engine has tagged it.
    """

    stage: Optional[str] = None


class InputError(VoiceChatError):
    """Raised when the audio or session id supplied by the caller is unusable."""


class CollaboratorError(VoiceChatError):
    """Raised when transcription, completion or synthesis fails."""


class EmptyTranscriptError(CollaboratorError):
    """Raised when transcription yields no text to reply to."""


class StoreError(VoiceChatError):
    """Raised when a session record is unreadable, corrupt or unwritable."""


class CancelledError(VoiceChatError):
    """Raised when the caller abandons a pipeline run."""


class ConfigurationError(VoiceChatError):
    """Raised when configuration is invalid."""

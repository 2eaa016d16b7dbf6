"""
Exception hierarchy for the audio notes pipeline.

The pipeline runner decides retry policy by exception type:
- AudioConversionError: bad input, never retried
- TranscriptionError / SummarizationError: retried per step
- anything else inside the settings..saving block: one full restart
"""

from typing import Any


class AudioNotesError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class AudioConversionError(AudioNotesError):
    """Raised when ffmpeg cannot decode or transcode the source audio."""

    def __init__(self, message: str, source_path: str | None = None, details: dict[str, Any] | None = None) -> None:
        details = details or {}
        if source_path:
            details["source_path"] = source_path
        super().__init__(message, details)


# ----------------------------
# Speech-to-text
# ----------------------------


class TranscriptionError(AudioNotesError):
    """Base for speech-to-text endpoint failures."""


class TranscriptionTimeoutError(TranscriptionError):
    """The STT endpoint did not answer within the configured timeout."""


class TranscriptionHTTPError(TranscriptionError):
    """The STT endpoint answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int, details: dict[str, Any] | None = None) -> None:
        self.status_code = status_code
        super().__init__(message, details)


class TranscriptionTransportError(TranscriptionError):
    """Connection-level failure talking to the STT endpoint."""


# ----------------------------
# Summarization (LLM)
# ----------------------------


class SummarizationError(AudioNotesError):
    """Base for language-model endpoint failures."""


class SummarizationTimeoutError(SummarizationError):
    """The LLM endpoint did not answer within the configured timeout."""


class SummarizationHTTPError(SummarizationError):
    """The LLM endpoint answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None, details: dict[str, Any] | None = None) -> None:
        self.status_code = status_code
        super().__init__(message, details)


class SummarizationParseError(SummarizationError):
    """The model answered, but not with a usable JSON note."""


# ----------------------------
# Infrastructure / lookups
# ----------------------------


class SettingsNotFoundError(AudioNotesError):
    """Raised when the admin model settings are missing or incomplete."""


class NoteNotFoundError(AudioNotesError):
    """Raised when a note cannot be found for the given owner."""

    def __init__(self, note_id: str, details: dict[str, Any] | None = None) -> None:
        details = details or {}
        details["note_id"] = note_id
        super().__init__(f"Note not found: {note_id}", details)


class JsonExtractionError(ValueError):
    """Raised when no JSON value can be recovered from model output."""


class RetriesExhaustedError(AudioNotesError):
    """A retried pipeline step failed on its final attempt; never restarted."""

    def __init__(self, message: str, step: str, attempts: int, details: dict[str, Any] | None = None) -> None:
        details = details or {}
        self.step = step
        self.attempts = attempts
        super().__init__(message, details)

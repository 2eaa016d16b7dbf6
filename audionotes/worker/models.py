"""Domain models for in-memory audio-to-note jobs."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

JobKey = tuple[str, str]  # (user_id, note_id)


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_finished(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.ERROR)


class JobStep(str, Enum):
    """Resumption point inside a single pass through the pipeline."""

    QUEUED = "queued"
    CONVERTING = "converting"
    SETTINGS = "settings"
    TRANSCRIBING = "transcribing"
    SUMMARIZING = "summarizing"
    SAVING = "saving"
    COMPLETED = "completed"


@dataclass(frozen=True)
class JobDescriptor:
    """What the upload handler hands to the queue."""

    user_id: str
    note_id: str
    original_path: str
    mp3_path: str
    markdown_path: str
    language: str | None = None

    @property
    def key(self) -> JobKey:
        return (self.user_id, self.note_id)


@dataclass
class Job:
    """
    One uploaded recording tracked by the pipeline runner.
    Only the runner thread mutates these fields; readers take snapshots.
    """

    descriptor: JobDescriptor
    status: JobStatus = JobStatus.QUEUED
    progress: float = 0.0
    current_step: JobStep = JobStep.QUEUED
    stt_retries: int = 0
    llm_retries: int = 0
    full_retries: int = 0
    error: str | None = None
    logs: list[str] = field(default_factory=list)

    @property
    def key(self) -> JobKey:
        return self.descriptor.key

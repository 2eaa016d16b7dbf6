"""Progress reporting for polling clients."""

from __future__ import annotations

from dataclasses import dataclass

from audionotes.worker.models import Job, JobStatus, JobStep

# (upper bound exclusive, label) for a job that is processing
_PHASE_LABELS: list[tuple[float, str]] = [
    (10, "Starting processing..."),
    (40, "Converting audio to MP3..."),
    (50, "Loading API settings..."),
    (70, "Transcribing audio to text..."),
    (90, "Generating AI summary..."),
    (100, "Saving markdown file..."),
]
_FINAL_LABEL = "Finalizing..."


@dataclass(frozen=True)
class ProgressReport:
    queue_progress: float
    process_progress: float
    status: str

    def as_dict(self) -> dict:
        return {
            "queue_progress": self.queue_progress,
            "process_progress": self.process_progress,
            "status": self.status,
        }


NOT_FOUND = ProgressReport(queue_progress=0.0, process_progress=0.0, status="not found")


def queue_position_percent(position: int, queued_count: int) -> float:
    """
    Inverse-rank "almost there" figure, not a time estimate:
    100 for the front of the queue, smallest for the back.
    """
    if queued_count <= 0 or position <= 0:
        return 0.0
    return ((queued_count - position + 1) / queued_count) * 100


def retry_suffix(job: Job, stt_max: int = 3, llm_max: int = 3, full_max: int = 1) -> str:
    if job.current_step == JobStep.TRANSCRIBING and job.stt_retries > 0:
        return f" (Retry {job.stt_retries}/{stt_max})"
    if job.current_step == JobStep.SUMMARIZING and job.llm_retries > 0:
        return f" (Retry {job.llm_retries}/{llm_max})"
    if job.full_retries > 0:
        return f" (Retry {job.full_retries}/{full_max})"
    return ""


def describe_status(job: Job, stt_max: int = 3, llm_max: int = 3, full_max: int = 1) -> str:
    if job.status == JobStatus.ERROR:
        return f"Error: {job.error}"
    if job.status == JobStatus.QUEUED:
        return "Waiting in queue..."
    if job.status == JobStatus.COMPLETED:
        return "Complete"

    progress = round(job.progress)
    suffix = retry_suffix(job, stt_max, llm_max, full_max)
    label = next((text for bound, text in _PHASE_LABELS if progress < bound), _FINAL_LABEL)
    return f"{label}{suffix} ({progress}%)"


def build_report(
    job: Job,
    position: int,
    queued_count: int,
    *,
    stt_max: int = 3,
    llm_max: int = 3,
    full_max: int = 1,
) -> ProgressReport:
    if job.status == JobStatus.QUEUED:
        queue_progress = queue_position_percent(position, queued_count)
    else:
        queue_progress = 100.0
    return ProgressReport(
        queue_progress=queue_progress,
        process_progress=job.progress,
        status=describe_status(job, stt_max, llm_max, full_max),
    )

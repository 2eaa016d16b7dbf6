"""
Single-worker processing queue for uploaded recordings.

Jobs run strictly one at a time, in arrival order, on one daemon thread:

    converting -> settings -> transcribing -> summarizing -> saving

Retry policy:
- conversion failures are terminal right away
- transcription / summarization retry their own step (2s * attempt backoff)
- any other failure restarts the whole pipeline once (fixed delay)

All job mutation happens on the worker thread under the queue lock; the
query path only reads snapshots taken under the same lock.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import replace
from typing import Any, TypeVar

from audionotes.core.config import settings
from audionotes.core.exceptions import AudioConversionError, AudioNotesError, RetriesExhaustedError
from audionotes.services.model_settings import ModelSettings, select_stt_settings
from audionotes.services.storage import transcript_path_for
from audionotes.services.summarizer import NoteSummary
from audionotes.worker.deps import PipelineDeps, build_default_deps
from audionotes.worker.models import Job, JobDescriptor, JobKey, JobStatus, JobStep
from audionotes.worker.progress import NOT_FOUND, ProgressReport, build_report

T = TypeVar("T")
logger = logging.getLogger(__name__)

UNSUPPORTED_AUDIO_MSG = "Unsupported audio format or corrupted file. Please try a different audio file."

MAX_TRACKED_LOGS = 50

# progress bands, percent of a single attempt
STARTED = 5.0
CONVERT_START = 10.0
CONVERT_END = 40.0
SETTINGS_START = 45.0
SETTINGS_END = 50.0
TRANSCRIBE_END = 70.0
SUMMARIZE_END = 90.0
NOTE_WRITTEN = 92.0
TRANSCRIPT_WRITTEN = 94.0
RECORD_UPDATED = 97.0
DONE = 100.0


def _error_message(e: BaseException) -> str:
    if isinstance(e, AudioNotesError):
        return e.message
    return str(e) or e.__class__.__name__


def _job_label(job: Job) -> str:
    return f"{job.descriptor.user_id}/{job.descriptor.note_id}"


class ProcessingQueue:
    """In-memory FIFO of audio-to-note jobs with a single background worker."""

    def __init__(
        self,
        deps: PipelineDeps | None = None,
        *,
        stt_max_retries: int | None = None,
        llm_max_retries: int | None = None,
        full_max_retries: int | None = None,
        step_retry_base_sec: float | None = None,
        full_retry_delay_sec: float | None = None,
        history_limit: int | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._deps = deps
        self.stt_max_retries = settings.stt_max_retries if stt_max_retries is None else stt_max_retries
        self.llm_max_retries = settings.llm_max_retries if llm_max_retries is None else llm_max_retries
        self.full_max_retries = settings.full_max_retries if full_max_retries is None else full_max_retries
        self._step_retry_base = settings.step_retry_base_sec if step_retry_base_sec is None else step_retry_base_sec
        self._full_retry_delay = settings.full_retry_delay_sec if full_retry_delay_sec is None else full_retry_delay_sec
        self._history_limit = settings.job_history_limit if history_limit is None else history_limit
        self._sleep = sleep

        self._jobs: list[Job] = []
        self._lock = threading.RLock()
        self._cond = threading.Condition(self._lock)
        self._thread: threading.Thread | None = None
        self._running: Job | None = None
        self._stopping = False

    @property
    def deps(self) -> PipelineDeps:
        if self._deps is None:
            self._deps = build_default_deps()
        return self._deps

    # ----------------------------
    # Submission / lifecycle
    # ----------------------------

    def submit(self, descriptor: JobDescriptor) -> None:
        """Enqueue a job and wake the worker. Returns immediately."""
        with self._cond:
            if self._stopping:
                raise RuntimeError("Processing queue is shut down")

            existing = self._find(descriptor.key)
            if existing is not None:
                if not existing.status.is_finished:
                    raise ValueError(f"Job already enqueued: {descriptor.user_id}/{descriptor.note_id}")
                # resubmission after a terminal state replaces the history entry
                self._jobs.remove(existing)

            self._jobs.append(Job(descriptor=descriptor))
            self._ensure_worker()
            self._cond.notify_all()

        logger.info("Queued job %s/%s", descriptor.user_id, descriptor.note_id)

    def _ensure_worker(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self._worker_loop, name="audionotes-worker", daemon=True)
        self._thread.start()

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until nothing is queued or processing. Returns False on timeout."""
        with self._cond:
            return self._cond.wait_for(self._is_idle, timeout=timeout)

    def shutdown(self, wait: bool = True, timeout: float | None = None) -> None:
        """Stop the worker after the job it is running; queued jobs are dropped."""
        with self._cond:
            self._stopping = True
            self._cond.notify_all()
            thread = self._thread
        if wait and thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def _is_idle(self) -> bool:
        return self._running is None and not any(j.status == JobStatus.QUEUED for j in self._jobs)

    # ----------------------------
    # Queries (snapshots only)
    # ----------------------------

    def _find(self, key: JobKey) -> Job | None:
        return next((j for j in self._jobs if j.key == key), None)

    def _queued(self) -> list[Job]:
        return [j for j in self._jobs if j.status == JobStatus.QUEUED]

    def get_job(self, key: JobKey) -> Job | None:
        with self._lock:
            job = self._find(key)
            return replace(job, logs=list(job.logs)) if job else None

    def get_queue_position(self, key: JobKey) -> int:
        """1-based position among queued jobs; 0 when the job is not queued."""
        with self._lock:
            for i, job in enumerate(self._queued(), start=1):
                if job.key == key:
                    return i
            return 0

    def queue_length(self) -> int:
        """Number of queued jobs; running and finished jobs never count."""
        with self._lock:
            return len(self._queued())

    def get_progress(self, key: JobKey) -> ProgressReport:
        with self._lock:
            job = self._find(key)
            if job is None:
                return NOT_FOUND
            snapshot = replace(job, logs=[])
            position = self.get_queue_position(key)
            queued_count = self.queue_length()
        return build_report(
            snapshot,
            position,
            queued_count,
            stt_max=self.stt_max_retries,
            llm_max=self.llm_max_retries,
            full_max=self.full_max_retries,
        )

    def stats(self) -> dict[str, Any]:
        with self._lock:
            counts = {s.value: 0 for s in JobStatus}
            for job in self._jobs:
                counts[job.status.value] += 1
            running = self._running
            return {
                "queue_length": counts[JobStatus.QUEUED.value],
                "running": _job_label(running) if running else None,
                "counts": counts,
            }

    # ----------------------------
    # Worker
    # ----------------------------

    def _next_queued(self) -> Job | None:
        return next((j for j in self._jobs if j.status == JobStatus.QUEUED), None)

    def _worker_loop(self) -> None:
        while True:
            with self._cond:
                job = self._next_queued()
                while job is None and not self._stopping:
                    self._cond.wait()
                    job = self._next_queued()
                if self._stopping:
                    return
                job.status = JobStatus.PROCESSING
                job.progress = STARTED
                self._running = job

            try:
                self._process(job)
            finally:
                with self._cond:
                    self._running = None
                    self._evict_history()
                    self._cond.notify_all()

    def _evict_history(self) -> None:
        finished = [j for j in self._jobs if j.status.is_finished]
        overflow = len(finished) - max(self._history_limit, 0)
        for job in finished[: max(overflow, 0)]:
            self._jobs.remove(job)

    # ----------------------------
    # State helpers (worker thread only)
    # ----------------------------

    def _log(self, job: Job, message: str) -> None:
        with self._lock:
            job.logs.append(message)
            if len(job.logs) > MAX_TRACKED_LOGS:
                del job.logs[:-MAX_TRACKED_LOGS]

    def _advance(self, job: Job, progress: float) -> None:
        # non-decreasing within an attempt
        with self._lock:
            job.progress = max(job.progress, min(progress, DONE))

    def _enter(self, job: Job, step: JobStep, progress: float | None = None) -> None:
        with self._lock:
            job.current_step = step
        if progress is not None:
            self._advance(job, progress)
        logger.debug("Job %s -> %s", _job_label(job), step.value)

    # ----------------------------
    # Pipeline
    # ----------------------------

    def _process(self, job: Job) -> None:
        logger.info("Processing job %s", _job_label(job))
        try:
            while True:
                try:
                    self._run_attempt(job)
                    return
                except (AudioConversionError, RetriesExhaustedError):
                    raise
                except Exception as e:
                    if job.full_retries >= self.full_max_retries:
                        raise
                    self._restart(job, e)
        except Exception as e:
            self._fail(job, e)

    def _restart(self, job: Job, cause: Exception) -> None:
        with self._lock:
            job.full_retries += 1
            job.current_step = JobStep.CONVERTING
            job.stt_retries = 0
            job.llm_retries = 0
            job.progress = CONVERT_START
        msg = f"Full process retry {job.full_retries}/{self.full_max_retries}: {_error_message(cause)}"
        self._log(job, msg)
        logger.warning("%s for job %s", msg, _job_label(job))
        self._sleep(self._full_retry_delay)

    def _run_attempt(self, job: Job) -> None:
        if job.current_step in (JobStep.QUEUED, JobStep.CONVERTING):
            self._convert(job)

        model_settings = self._load_settings(job)
        transcript = self._transcribe(job, model_settings)
        summary = self._summarize(job, transcript, model_settings)
        self._save(job, transcript, summary)

    def _convert(self, job: Job) -> None:
        d = job.descriptor
        self._enter(job, JobStep.CONVERTING, CONVERT_START)

        def on_progress(percent: float) -> None:
            pct = max(0.0, min(100.0, float(percent or 0.0)))
            self._advance(job, CONVERT_START + pct * 0.3)

        try:
            self.deps.convert_audio(d.original_path, d.mp3_path, on_progress)
        except Exception as e:
            logger.warning("Conversion failed for job %s: %s", _job_label(job), e)
            raise AudioConversionError(UNSUPPORTED_AUDIO_MSG, source_path=d.original_path) from e

        self._advance(job, CONVERT_END)
        self._log(job, "Converted audio to mp3")

    def _load_settings(self, job: Job) -> ModelSettings:
        self._enter(job, JobStep.SETTINGS, SETTINGS_START)
        model_settings = self.deps.load_settings()
        self._advance(job, SETTINGS_END)
        return model_settings

    def _transcribe(self, job: Job, model_settings: ModelSettings) -> str:
        d = job.descriptor
        stt = select_stt_settings(model_settings.stt, d.language)
        transcript = self._run_with_retries(
            job,
            JobStep.TRANSCRIBING,
            "stt_retries",
            self.stt_max_retries,
            "Speech-to-text",
            lambda: self.deps.transcribe(d.mp3_path, stt),
        )
        self._advance(job, TRANSCRIBE_END)
        self._log(job, f"Transcribed {len(transcript)} chars")
        return transcript

    def _summarize(self, job: Job, transcript: str, model_settings: ModelSettings) -> NoteSummary:
        d = job.descriptor
        self._enter(job, JobStep.SUMMARIZING)
        categories = self.deps.list_categories(d.user_id)
        summary = self._run_with_retries(
            job,
            JobStep.SUMMARIZING,
            "llm_retries",
            self.llm_max_retries,
            "AI summarization",
            lambda: self.deps.summarize(transcript, model_settings.llm, categories),
        )
        self._advance(job, SUMMARIZE_END)
        self._log(job, f"Summarized as {summary.title!r}")
        return summary

    def _run_with_retries(
        self,
        job: Job,
        step: JobStep,
        counter: str,
        max_retries: int,
        label: str,
        call: Callable[[], T],
    ) -> T:
        while True:
            self._enter(job, step)
            try:
                return call()
            except Exception as e:
                used = getattr(job, counter)
                if used >= max_retries:
                    raise RetriesExhaustedError(
                        f"{label} failed after {used + 1} attempts ({step.value}): {_error_message(e)}",
                        step=step.value,
                        attempts=used + 1,
                    ) from e

                with self._lock:
                    setattr(job, counter, used + 1)
                delay = self._step_retry_base * (used + 1)
                msg = f"{label} retry {used + 1}/{max_retries}: {_error_message(e)}"
                self._log(job, msg)
                logger.warning("%s for job %s (waiting %.1fs)", msg, _job_label(job), delay)
                self._sleep(delay)

    def _save(self, job: Job, transcript: str, summary: NoteSummary) -> None:
        d = job.descriptor
        storage = self.deps.storage
        self._enter(job, JobStep.SAVING, SUMMARIZE_END)

        storage.write_text(d.markdown_path, summary.content)
        self._advance(job, NOTE_WRITTEN)

        storage.write_text(transcript_path_for(d.markdown_path), transcript)
        self._advance(job, TRANSCRIPT_WRITTEN)

        fields = {**summary.as_note_fields(), "status": JobStatus.COMPLETED.value, "error": None}
        self.deps.update_note(d.user_id, d.note_id, fields)
        self._advance(job, RECORD_UPDATED)

        # only after both the note file and the record are written
        try:
            if storage.exists(d.original_path):
                storage.delete(d.original_path)
        except OSError as e:
            logger.warning("Could not delete source %s for job %s: %s", d.original_path, _job_label(job), e)

        with self._lock:
            job.status = JobStatus.COMPLETED
            job.progress = DONE
            job.current_step = JobStep.COMPLETED
        self._log(job, "Completed")
        logger.info("Completed job %s", _job_label(job))

    def _fail(self, job: Job, error: Exception) -> None:
        message = _error_message(error)
        logger.error("Processing failed for job %s: %s", _job_label(job), message, exc_info=error)

        with self._lock:
            job.status = JobStatus.ERROR
            job.error = message
        self._log(job, f"Error: {message}")

        try:
            self.deps.update_note(
                job.descriptor.user_id,
                job.descriptor.note_id,
                {"status": JobStatus.ERROR.value, "error": message},
            )
        except Exception:
            logger.exception("Failed to update note with error status for job %s", _job_label(job))

import os
import tempfile

# Must run before audionotes is imported: Settings reads env at import time.
_TMP = tempfile.mkdtemp(prefix="audionotes-tests-")
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["DATA_DIR"] = os.path.join(_TMP, "data")

import pytest  # noqa: E402

from audionotes.db.base import Base  # noqa: E402
from audionotes.db.session import SessionLocal, engine, init_db  # noqa: E402

init_db()


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def _clean_tables():
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


# ----------------------------
# Fake pipeline collaborators
# ----------------------------

import threading  # noqa: E402
from pathlib import Path  # noqa: E402

from audionotes.services.model_settings import ModelSettings  # noqa: E402
from audionotes.services.storage import FileStorage  # noqa: E402
from audionotes.services.summarizer import NoteSummary  # noqa: E402
from audionotes.worker.deps import PipelineDeps  # noqa: E402
from audionotes.worker.models import JobDescriptor, JobStatus  # noqa: E402


def _next_result(results: list, default):
    if results:
        r = results.pop(0)
        if isinstance(r, Exception):
            raise r
        return r
    return default


class FakeCollaborators:
    """
    Scriptable stand-ins for ffmpeg, the settings store, STT, LLM and the notes store.
    *_results lists are consumed one item per call; an Exception item is raised.
    """

    def __init__(self, root: Path) -> None:
        self.root = root
        self.queue = None

        self.convert_calls: list[str] = []
        self.convert_error: Exception | None = None
        self.convert_started = threading.Event()
        self.convert_gate: threading.Event | None = None
        self.processing_seen: list[int] = []
        self.progress_seen: list[float] = []

        self.model_settings = ModelSettings()
        self.settings_results: list = []
        self.settings_calls = 0

        self.categories: list[str] = []
        self.category_results: list = []

        self.transcript = "hello world"
        self.stt_results: list = []
        self.transcribe_calls: list = []

        self.summary = NoteSummary(title="Title", description="Desc", content="# Notes\n\n- point one\n")
        self.llm_results: list = []
        self.summarize_calls: list = []

        self.update_results: list = []
        self.note_updates: list = []
        self.forward_updates = False

        self.sleeps: list[float] = []
        # (step, job progress) at every collaborator call
        self.progress_trace: list[tuple[str, float]] = []

    # collaborators

    def convert(self, src: str, dst: str, on_progress) -> None:
        self._trace("convert", src)
        self.convert_calls.append(src)
        self.convert_started.set()
        if self.queue is not None:
            self.processing_seen.append(self.queue.stats()["counts"][JobStatus.PROCESSING.value])
        if self.convert_gate is not None:
            self.convert_gate.wait(5)
        if self.convert_error is not None:
            raise self.convert_error
        for pct in (0, 50, 100):
            on_progress(pct)
            if self.queue is not None:
                job = self.queue.get_job(self._key_for(src))
                if job is not None:
                    self.progress_seen.append(job.progress)
        Path(dst).parent.mkdir(parents=True, exist_ok=True)
        Path(dst).write_bytes(b"ID3fake")

    def load_settings(self) -> ModelSettings:
        self._trace("settings")
        self.settings_calls += 1
        return _next_result(self.settings_results, self.model_settings)

    def list_categories(self, user_id: str) -> list[str]:
        self._trace("categories")
        return _next_result(self.category_results, list(self.categories))

    def transcribe(self, audio_path: str, stt) -> str:
        self._trace("transcribe", audio_path)
        self.transcribe_calls.append((audio_path, stt))
        return _next_result(self.stt_results, self.transcript)

    def summarize(self, transcript: str, llm, categories: list[str]) -> NoteSummary:
        self._trace("summarize")
        self.summarize_calls.append((transcript, llm, categories))
        return _next_result(self.llm_results, self.summary)

    def update_note(self, user_id: str, note_id: str, fields: dict) -> None:
        self._trace("update_note", key=(user_id, note_id))
        _next_result(self.update_results, None)
        self.note_updates.append((user_id, note_id, dict(fields)))
        if self.forward_updates:
            from audionotes.worker.deps import _update_note

            _update_note(user_id, note_id, fields)

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)

    # helpers

    def _trace(self, step: str, path: str | None = None, key=None) -> None:
        if self.queue is None:
            return
        if key is None:
            key = self._key_for(path) if path else self._running_key()
        job = self.queue.get_job(key) if key else None
        if job is not None:
            self.progress_trace.append((step, job.progress))

    def _running_key(self):
        running = self.queue.stats()["running"]
        return tuple(running.split("/", 1)) if running else None

    def _key_for(self, src: str):
        p = Path(src)
        return (p.parent.parent.name, p.parent.name)

    def deps(self) -> PipelineDeps:
        return PipelineDeps(
            convert_audio=self.convert,
            load_settings=self.load_settings,
            list_categories=self.list_categories,
            transcribe=self.transcribe,
            summarize=self.summarize,
            update_note=self.update_note,
            storage=FileStorage(),
        )

    def descriptor(self, user_id: str = "u1", note_id: str = "n1", language: str | None = None) -> JobDescriptor:
        note_dir = self.root / user_id / note_id
        note_dir.mkdir(parents=True, exist_ok=True)
        original = note_dir / "original.m4a"
        original.write_bytes(b"\x00\x00\x00\x18ftypM4A ")
        return JobDescriptor(
            user_id=user_id,
            note_id=note_id,
            original_path=str(original),
            mp3_path=str(note_dir / "converted.mp3"),
            markdown_path=str(note_dir / "output.md"),
            language=language,
        )


@pytest.fixture()
def fakes(tmp_path):
    return FakeCollaborators(tmp_path / "data")


@pytest.fixture()
def make_queue(fakes):
    from audionotes.worker.queue import ProcessingQueue

    created = []

    def _make(**kwargs):
        kwargs.setdefault("sleep", fakes.sleep)
        q = ProcessingQueue(fakes.deps(), **kwargs)
        fakes.queue = q
        created.append(q)
        return q

    yield _make

    for q in created:
        if fakes.convert_gate is not None:
            fakes.convert_gate.set()
        q.shutdown(wait=True, timeout=5)

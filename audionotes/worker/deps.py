"""Collaborators the pipeline runner consumes, bundled for injection."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from audionotes.db.session import SessionLocal
from audionotes.services import notes as notes_service
from audionotes.services.audio_utils import convert_audio_to_mp3
from audionotes.services.model_settings import LlmSettings, ModelSettings, SttCallSettings, load_model_settings
from audionotes.services.storage import FileStorage, file_storage
from audionotes.services.stt import transcribe_audio
from audionotes.services.summarizer import NoteSummary, summarize_transcript

ProgressCallback = Callable[[float], None]


@dataclass
class PipelineDeps:
    convert_audio: Callable[[str, str, ProgressCallback], None]
    load_settings: Callable[[], ModelSettings]
    list_categories: Callable[[str], list[str]]
    transcribe: Callable[[str, SttCallSettings], str]
    summarize: Callable[[str, LlmSettings, list[str]], NoteSummary]
    update_note: Callable[[str, str, dict[str, Any]], None]
    storage: FileStorage


def _load_settings() -> ModelSettings:
    db = SessionLocal()
    try:
        return load_model_settings(db)
    finally:
        db.close()


def _list_categories(user_id: str) -> list[str]:
    db = SessionLocal()
    try:
        return notes_service.list_category_names(db, user_id)
    finally:
        db.close()


def _update_note(user_id: str, note_id: str, fields: dict[str, Any]) -> None:
    db = SessionLocal()
    try:
        notes_service.update_note(db, user_id, note_id, fields)
    finally:
        db.close()


def _convert(src: str, dst: str, on_progress: ProgressCallback) -> None:
    convert_audio_to_mp3(src, dst, on_progress)


def _summarize(transcript: str, llm: LlmSettings, categories: list[str]) -> NoteSummary:
    return summarize_transcript(transcript, llm, categories)


def build_default_deps() -> PipelineDeps:
    return PipelineDeps(
        convert_audio=_convert,
        load_settings=_load_settings,
        list_categories=_list_categories,
        transcribe=transcribe_audio,
        summarize=_summarize,
        update_note=_update_note,
        storage=file_storage,
    )

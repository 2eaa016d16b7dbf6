from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from audionotes.api.deps import get_current_user_id, get_processing_queue
from audionotes.core.exceptions import NoteNotFoundError, SettingsNotFoundError
from audionotes.db.session import get_db
from audionotes.services import notes as notes_service
from audionotes.services.audio_utils import extract_audio_metadata
from audionotes.services.model_settings import load_model_settings
from audionotes.services.storage import (
    CONVERTED_NAME,
    MARKDOWN_NAME,
    ORIGINAL_STEM,
    file_storage,
    get_file_extension,
    get_note_dir,
    transcript_path_for,
)
from audionotes.services.study_tools import generate_flashcards, generate_quiz
from audionotes.worker.models import JobDescriptor
from audionotes.worker.queue import ProcessingQueue

router = APIRouter(prefix="/notes", tags=["notes"])

# matches Note.language
MAX_LANGUAGE_LEN = 16


class UploadResponse(BaseModel):
    ok: bool
    note_id: str
    message: str


class ProgressResponse(BaseModel):
    queue_progress: float
    process_progress: float
    status: str


class StudyResponse(BaseModel):
    flashcards: list[dict]
    quiz_questions: list[dict]


@router.post("/upload", response_model=UploadResponse)
def upload_audio(
    file: UploadFile = File(...),
    language: str | None = Form(default=None),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    queue: ProcessingQueue = Depends(get_processing_queue),
) -> UploadResponse:
    if not (file.content_type or "").startswith("audio/"):
        raise HTTPException(status_code=400, detail="Invalid file type. Please upload an audio file.")

    note_id = queue_audio_upload(db, queue, user_id, file.filename or "audio", file.file.read(), language)
    return UploadResponse(
        ok=True,
        note_id=note_id,
        message="File uploaded successfully and queued for processing",
    )


def queue_audio_upload(
    db: Session,
    queue: ProcessingQueue,
    user_id: str,
    file_name: str,
    data: bytes,
    language: str | None = None,
) -> str:
    """Store the upload, create the processing note and enqueue its job. Returns the note id."""
    language = (language or "").strip() or None
    if language and len(language) > MAX_LANGUAGE_LEN:
        raise HTTPException(status_code=400, detail=f"Language hint must be at most {MAX_LANGUAGE_LEN} characters")

    note_id = uuid.uuid4().hex
    note_dir = get_note_dir(user_id, note_id)
    original_path = note_dir / f"{ORIGINAL_STEM}{get_file_extension(file_name)}"
    file_storage.write_bytes(original_path, data)

    metadata = extract_audio_metadata(original_path)
    notes_service.create_processing_note(db, user_id, file_name, metadata, note_id=note_id, language=language)

    queue.submit(
        JobDescriptor(
            user_id=user_id,
            note_id=note_id,
            original_path=str(original_path),
            mp3_path=str(note_dir / CONVERTED_NAME),
            markdown_path=str(note_dir / MARKDOWN_NAME),
            language=language,
        )
    )
    return note_id


@router.get("")
def list_notes(
    category: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    rows = notes_service.list_notes(db, user_id, category=category, limit=limit, offset=offset)
    return {"ok": True, "notes": [notes_service.note_to_dict(n) for n in rows]}


@router.get("/{note_id}")
def get_note(note_id: str, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    try:
        note = notes_service.get_note(db, user_id, note_id)
    except NoteNotFoundError:
        raise HTTPException(status_code=404, detail="Note not found")
    return {"ok": True, "note": notes_service.note_to_dict(note)}


@router.delete("/{note_id}")
def delete_note(note_id: str, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    try:
        notes_service.delete_note(db, user_id, note_id)
    except NoteNotFoundError:
        raise HTTPException(status_code=404, detail="Note not found")
    file_storage.delete_dir(get_note_dir(user_id, note_id))
    return {"ok": True}


@router.get("/{note_id}/progress", response_model=ProgressResponse)
def get_progress(
    note_id: str,
    user_id: str = Depends(get_current_user_id),
    queue: ProcessingQueue = Depends(get_processing_queue),
) -> ProgressResponse:
    report = queue.get_progress((user_id, note_id))
    return ProgressResponse(**report.as_dict())


@router.get("/{note_id}/transcript", response_class=PlainTextResponse)
def get_transcript(note_id: str, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    try:
        note = notes_service.get_note(db, user_id, note_id)
    except NoteNotFoundError:
        raise HTTPException(status_code=404, detail="Note not found")

    path = transcript_path_for(get_note_dir(user_id, note_id) / MARKDOWN_NAME)
    if file_storage.exists(path):
        transcript = file_storage.read_text(path)
    else:
        # older notes have no transcript file; backfill it from the markdown
        transcript = note.content or ""
        file_storage.write_text(path, transcript)

    return PlainTextResponse(
        transcript,
        headers={"Content-Disposition": f'attachment; filename="transcript-{note_id}.txt"'},
    )


@router.post("/{note_id}/study", response_model=StudyResponse)
def generate_study_tools(
    note_id: str,
    flashcards: bool = Query(default=False),
    quiz: bool = Query(default=False),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> StudyResponse:
    if not flashcards and not quiz:
        raise HTTPException(status_code=400, detail="Must specify flashcards or quiz")

    try:
        note = notes_service.get_note(db, user_id, note_id)
    except NoteNotFoundError:
        raise HTTPException(status_code=404, detail="Note not found")

    try:
        model_settings = load_model_settings(db)
    except SettingsNotFoundError:
        raise HTTPException(status_code=500, detail="Global API settings not configured")

    return StudyResponse(
        flashcards=generate_flashcards(note.content, model_settings.llm) if flashcards else [],
        quiz_questions=generate_quiz(note.content, model_settings.llm) if quiz else [],
    )

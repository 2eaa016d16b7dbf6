from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from audionotes.core.exceptions import AudioNotesError, NoteNotFoundError
from audionotes.models.note import Note
from audionotes.models.user_category import UserCategory
from audionotes.services.audio_utils import AudioMetadata

UPDATABLE_FIELDS = {"title", "description", "content", "category", "status", "error"}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def create_processing_note(
    db: Session,
    user_id: str,
    file_name: str,
    metadata: AudioMetadata | None = None,
    *,
    note_id: str | None = None,
    language: str | None = None,
) -> Note:
    meta = metadata or AudioMetadata()
    note = Note(
        user_id=user_id,
        title=f"Processing: {file_name}",
        description="Processing audio file...",
        content="",
        status="processing",
        original_file_name=file_name,
        language=language,
        **{**meta.as_note_fields(), "recorded_at": meta.recorded_at or _now()},
    )
    if note_id:
        note.id = note_id
    db.add(note)
    db.commit()
    db.refresh(note)
    return note


def get_note(db: Session, user_id: str, note_id: str) -> Note:
    note = db.query(Note).filter(Note.id == note_id, Note.user_id == user_id).first()
    if not note:
        raise NoteNotFoundError(note_id)
    return note


def list_notes(db: Session, user_id: str, category: str | None = None, limit: int = 50, offset: int = 0) -> list[Note]:
    query = db.query(Note).filter(Note.user_id == user_id)
    if category:
        query = query.filter(Note.category == category)
    return query.order_by(Note.created_at.desc()).offset(offset).limit(limit).all()


def update_note(db: Session, user_id: str, note_id: str, fields: dict[str, Any]) -> Note:
    """Last write wins; safe to call repeatedly for the same note."""
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise AudioNotesError("Unsupported note fields", {"fields": sorted(unknown)})

    note = get_note(db, user_id, note_id)
    for k, v in fields.items():
        setattr(note, k, v)
    note.updated_at = _now()
    db.commit()
    db.refresh(note)
    return note


def delete_note(db: Session, user_id: str, note_id: str) -> None:
    note = get_note(db, user_id, note_id)
    db.delete(note)
    db.commit()


def note_to_dict(note: Note) -> dict[str, Any]:
    return {
        "id": note.id,
        "title": note.title,
        "description": note.description,
        "content": note.content,
        "category": note.category,
        "status": note.status,
        "error": note.error,
        "original_file_name": note.original_file_name,
        "language": note.language,
        "duration": note.duration,
        "bitrate": note.bitrate,
        "sample_rate": note.sample_rate,
        "channels": note.channels,
        "format": note.format,
        "recorded_at": note.recorded_at.isoformat() if note.recorded_at else None,
        "created_at": note.created_at.isoformat() if note.created_at else None,
        "updated_at": note.updated_at.isoformat() if note.updated_at else None,
    }


# ----------------------------
# Categories
# ----------------------------


def list_categories(db: Session, user_id: str) -> list[UserCategory]:
    return db.query(UserCategory).filter(UserCategory.user_id == user_id).order_by(UserCategory.name.asc()).all()


def list_category_names(db: Session, user_id: str) -> list[str]:
    return [c.name for c in list_categories(db, user_id)]


def create_category(db: Session, user_id: str, name: str, description: str | None = None) -> UserCategory:
    name = (name or "").strip()
    if not name:
        raise ValueError("Category name is required")

    existing = db.query(UserCategory).filter(UserCategory.user_id == user_id, UserCategory.name == name).first()
    if existing:
        raise ValueError("Category name already exists")

    cat = UserCategory(user_id=user_id, name=name, description=(description or "").strip())
    db.add(cat)
    db.commit()
    db.refresh(cat)
    return cat


def get_notes_by_ids(db: Session, user_id: str, note_ids: list[str]) -> list[Note]:
    """Owned notes among note_ids, in the order the ids were given; unknown ids are skipped."""
    rows = db.query(Note).filter(Note.user_id == user_id, Note.id.in_(note_ids)).all()
    by_id = {n.id: n for n in rows}
    return [by_id[i] for i in dict.fromkeys(note_ids) if i in by_id]

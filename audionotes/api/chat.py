import logging
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from audionotes.api.deps import get_current_user_id
from audionotes.core.exceptions import AudioNotesError, NoteNotFoundError, SettingsNotFoundError
from audionotes.db.session import get_db
from audionotes.services import notes as notes_service
from audionotes.services.chat import ChatTurn, answer_about_note, answer_about_notes
from audionotes.services.model_settings import LlmSettings, load_model_settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class NoteChatRequest(BaseModel):
    message: str = ""
    history: list[ChatMessage] = Field(default_factory=list)


class MultiNoteChatRequest(NoteChatRequest):
    note_ids: list[str] = Field(default_factory=list)


class ChatResponse(BaseModel):
    message: str


def _require_message(req: NoteChatRequest) -> str:
    message = req.message.strip()
    if not message:
        raise HTTPException(status_code=400, detail="Message is required")
    return message


def _turns(req: NoteChatRequest) -> list[ChatTurn]:
    return [ChatTurn(role=m.role, content=m.content) for m in req.history]


def _llm_settings(db: Session) -> LlmSettings:
    try:
        return load_model_settings(db).llm
    except SettingsNotFoundError:
        raise HTTPException(status_code=500, detail="Global API settings not configured")


@router.post("/notes/{note_id}/chat", response_model=ChatResponse)
def chat_with_note(
    note_id: str,
    req: NoteChatRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ChatResponse:
    message = _require_message(req)
    try:
        note = notes_service.get_note(db, user_id, note_id)
    except NoteNotFoundError:
        raise HTTPException(status_code=404, detail="Note not found")

    llm = _llm_settings(db)
    try:
        reply = answer_about_note(note, message, _turns(req), llm)
    except AudioNotesError as e:
        logger.error("Chat failed for note %s: %s", note_id, e)
        raise HTTPException(status_code=500, detail="Chat failed")
    return ChatResponse(message=reply)


@router.post("/chat", response_model=ChatResponse)
def chat_with_notes(
    req: MultiNoteChatRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ChatResponse:
    message = _require_message(req)
    if not req.note_ids:
        raise HTTPException(status_code=400, detail="At least one note ID is required")

    notes = notes_service.get_notes_by_ids(db, user_id, req.note_ids)
    if not notes:
        raise HTTPException(status_code=404, detail="No notes found for the given IDs")

    llm = _llm_settings(db)
    try:
        reply = answer_about_notes(notes, message, _turns(req), llm)
    except AudioNotesError as e:
        logger.error("Multi-note chat failed: %s", e)
        raise HTTPException(status_code=500, detail="Chat failed")
    return ChatResponse(message=reply)

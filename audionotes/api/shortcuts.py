from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel
from sqlalchemy.orm import Session

from audionotes.api.deps import get_current_user_id, get_processing_queue
from audionotes.api.notes import queue_audio_upload
from audionotes.db.session import get_db
from audionotes.services import shortcut_tokens as tokens_service
from audionotes.worker.queue import ProcessingQueue

router = APIRouter(tags=["shortcuts"])

RAW_UPLOAD_NAME = "recording.m4a"


class TokenCreateRequest(BaseModel):
    name: str
    description: str | None = None


# ----------------------------
# Token management (signed-in user)
# ----------------------------


@router.get("/user/shortcut-tokens")
def list_shortcut_tokens(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    rows = tokens_service.list_tokens(db, user_id)
    return {"ok": True, "tokens": [tokens_service.token_to_dict(t) for t in rows]}


@router.post("/user/shortcut-tokens")
def create_shortcut_token(
    req: TokenCreateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    try:
        tok = tokens_service.create_token(db, user_id, req.name, req.description)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"ok": True, "token": tokens_service.token_to_dict(tok, reveal=True)}


@router.delete("/user/shortcut-tokens/{token_id}")
def revoke_shortcut_token(token_id: int, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    if not tokens_service.revoke_token(db, user_id, token_id):
        raise HTTPException(status_code=404, detail="Token not found")
    return {"ok": True}


# ----------------------------
# Upload (token-authenticated)
# ----------------------------


@router.put("/shortcuts")
async def shortcut_upload(
    request: Request,
    authorization: str | None = Header(default=None),
    db: Session = Depends(get_db),
    queue: ProcessingQueue = Depends(get_processing_queue),
):
    """
    Upload from a phone shortcut: either multipart with a `recording` field
    (and optional `language`), or the raw audio bytes as the request body.
    """
    if not authorization:
        raise HTTPException(status_code=401, detail="Authorization header required")
    bearer = authorization.removeprefix("Bearer ").strip()
    tok = await run_in_threadpool(tokens_service.resolve_token, db, bearer)
    if tok is None:
        raise HTTPException(status_code=401, detail="Invalid or inactive token")

    language: str | None = None
    if "multipart/form-data" in request.headers.get("content-type", ""):
        form = await request.form()
        recording = form.get("recording")
        if recording is None or isinstance(recording, str):
            raise HTTPException(status_code=400, detail="No recording file provided")
        file_name = recording.filename or RAW_UPLOAD_NAME
        data = await recording.read()
        lang_field = form.get("language")
        language = lang_field if isinstance(lang_field, str) else None
    else:
        file_name = RAW_UPLOAD_NAME
        data = await request.body()

    if not data:
        raise HTTPException(status_code=400, detail="No recording data provided")

    note_id = await run_in_threadpool(queue_audio_upload, db, queue, tok.user_id, file_name, data, language)
    return {
        "ok": True,
        "note_id": note_id,
        "file_name": file_name,
        "message": "Recording uploaded successfully",
    }

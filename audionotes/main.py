from contextlib import asynccontextmanager

from fastapi import FastAPI
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.orm import Session

from audionotes.api.categories import router as categories_router
from audionotes.api.chat import router as chat_router
from audionotes.api.notes import router as notes_router
from audionotes.api.queue import router as queue_router
from audionotes.api.settings import router as settings_router
from audionotes.api.shortcuts import router as shortcuts_router
from audionotes.core.config import settings
from audionotes.core.logging import configure_logging
from audionotes.db.session import get_db, init_db
from audionotes.worker.queue import ProcessingQueue


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level)
    init_db()
    # tests may install their own queue before startup
    if getattr(app.state, "processing_queue", None) is None:
        app.state.processing_queue = ProcessingQueue()
    try:
        yield
    finally:
        app.state.processing_queue.shutdown(wait=False)


app = FastAPI(title="Audio Notes API", version="0.1.0", lifespan=lifespan)
app.include_router(notes_router)
app.include_router(categories_router)
app.include_router(settings_router)
app.include_router(queue_router)
app.include_router(chat_router)
app.include_router(shortcuts_router)


class HealthResponse(BaseModel):
    ok: bool
    service: str
    version: str
    db_ok: bool


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    # lightweight DB check
    db_ok = False
    db: Session | None = None
    try:
        db = next(get_db())
        db.execute(text("SELECT 1"))
        db_ok = True
    except Exception:
        db_ok = False
    finally:
        if db is not None:
            db.close()

    return HealthResponse(ok=True, service="api", version=app.version, db_ok=db_ok)

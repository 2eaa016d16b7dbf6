from fastapi import Depends, Header, HTTPException, Request

from audionotes.core.config import settings
from audionotes.worker.queue import ProcessingQueue


def _is_path_safe(user_id: str) -> bool:
    # user ids name a directory under data_dir
    return "/" not in user_id and "\\" not in user_id and ".." not in user_id


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    # identity comes from the auth layer in front of this service
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    if not _is_path_safe(user_id):
        raise HTTPException(status_code=400, detail="Invalid user id")
    return user_id


def require_admin(user_id: str = Depends(get_current_user_id)) -> str:
    admins = {u.strip() for u in settings.admin_user_ids.split(",") if u.strip()}
    if user_id not in admins:
        raise HTTPException(status_code=403, detail="Forbidden - Only administrators can modify settings")
    return user_id


def get_processing_queue(request: Request) -> ProcessingQueue:
    return request.app.state.processing_queue

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from audionotes.api.deps import get_current_user_id, require_admin
from audionotes.db.session import get_db
from audionotes.services.model_settings import (
    ModelSettings,
    get_settings_or_default,
    mask_api_key,
    masked_copy,
    save_model_settings,
)

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("/models", response_model=ModelSettings)
def get_model_settings(_user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)) -> ModelSettings:
    return masked_copy(get_settings_or_default(db))


@router.put("/models", response_model=ModelSettings)
def put_model_settings(
    req: ModelSettings,
    _admin_id: str = Depends(require_admin),
    db: Session = Depends(get_db),
) -> ModelSettings:
    current = get_settings_or_default(db)

    # a masked key echoed back from GET means "unchanged"
    if req.stt.api_key and req.stt.api_key == mask_api_key(current.stt.api_key):
        req.stt.api_key = current.stt.api_key
    if req.llm.api_key and req.llm.api_key == mask_api_key(current.llm.api_key):
        req.llm.api_key = current.llm.api_key

    return masked_copy(save_model_settings(db, req))

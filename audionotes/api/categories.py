from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from audionotes.api.deps import get_current_user_id
from audionotes.db.session import get_db
from audionotes.services import notes as notes_service

router = APIRouter(prefix="/categories", tags=["categories"])


class CategoryCreateRequest(BaseModel):
    name: str
    description: str | None = None


def _category_to_dict(c) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "description": c.description,
        "created_at": c.created_at.isoformat() if c.created_at else None,
    }


@router.get("")
def list_categories(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    rows = notes_service.list_categories(db, user_id)
    return {"ok": True, "categories": [_category_to_dict(c) for c in rows]}


@router.post("")
def create_category(req: CategoryCreateRequest, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    try:
        cat = notes_service.create_category(db, user_id, req.name, req.description)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"ok": True, "category": _category_to_dict(cat)}

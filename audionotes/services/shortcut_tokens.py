from __future__ import annotations

import secrets
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from audionotes.models.shortcut_token import ShortcutToken

TOKEN_BYTES = 32


def create_token(db: Session, user_id: str, name: str, description: str | None = None) -> ShortcutToken:
    name = (name or "").strip()
    if not name:
        raise ValueError("Token name is required")

    existing = db.query(ShortcutToken).filter(ShortcutToken.user_id == user_id, ShortcutToken.name == name).first()
    if existing:
        raise ValueError("Token name already exists")

    tok = ShortcutToken(
        user_id=user_id,
        name=name,
        description=(description or "").strip(),
        token=secrets.token_hex(TOKEN_BYTES),
        is_active=True,
    )
    db.add(tok)
    db.commit()
    db.refresh(tok)
    return tok


def list_tokens(db: Session, user_id: str) -> list[ShortcutToken]:
    return (
        db.query(ShortcutToken)
        .filter(ShortcutToken.user_id == user_id)
        .order_by(ShortcutToken.created_at.desc(), ShortcutToken.id.desc())
        .all()
    )


def revoke_token(db: Session, user_id: str, token_id: int) -> bool:
    tok = db.query(ShortcutToken).filter(ShortcutToken.id == token_id, ShortcutToken.user_id == user_id).first()
    if not tok:
        return False
    tok.is_active = False
    db.commit()
    return True


def resolve_token(db: Session, token: str) -> ShortcutToken | None:
    """Active token record for a bearer value, stamping last_used_at; None if unknown or revoked."""
    token = (token or "").strip()
    if not token:
        return None
    tok = db.query(ShortcutToken).filter(ShortcutToken.token == token, ShortcutToken.is_active.is_(True)).first()
    if not tok:
        return None
    tok.last_used_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(tok)
    return tok


def token_to_dict(tok: ShortcutToken, *, reveal: bool = False) -> dict[str, Any]:
    return {
        "id": tok.id,
        "name": tok.name,
        "description": tok.description,
        # the full value is only shown once, right after creation
        "token": tok.token if reveal else f"...{tok.token[-4:]}",
        "is_active": tok.is_active,
        "created_at": tok.created_at.isoformat() if tok.created_at else None,
        "last_used_at": tok.last_used_at.isoformat() if tok.last_used_at else None,
    }

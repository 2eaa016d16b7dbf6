"""
Admin-managed model settings (STT + LLM endpoints).

Stored as one JSON document in global_settings(type="models") and read fresh
for every pipeline attempt, so an admin change applies on the next attempt.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.orm import Session

from audionotes.core.exceptions import SettingsNotFoundError
from audionotes.models.global_settings import GlobalSettings

MODELS_SETTINGS_TYPE = "models"
DEFAULT_BASE_URL = "https://api.openai.com/v1"

_MISSING_MSG = "Global API settings not found. Please ask an administrator to configure API settings."


class SttVariant(BaseModel):
    model_name: str = Field(default="whisper-1", min_length=1)
    task: Literal["transcribe", "translate"] = "transcribe"
    temperature: float = Field(default=0.0, ge=0.0, le=1.0)


class SttSettings(BaseModel):
    base_url: str = Field(default=DEFAULT_BASE_URL, min_length=1)
    api_key: str = ""
    english: SttVariant = Field(default_factory=SttVariant)
    other: SttVariant = Field(default_factory=SttVariant)


class LlmSettings(BaseModel):
    base_url: str = Field(default=DEFAULT_BASE_URL, min_length=1)
    api_key: str = ""
    summarization_model: str = Field(default="gpt-3.5-turbo", min_length=1)
    quiz_model: str = Field(default="gpt-3.5-turbo", min_length=1)
    chat_model: str = Field(default="gpt-3.5-turbo", min_length=1)


class ModelSettings(BaseModel):
    stt: SttSettings = Field(default_factory=SttSettings)
    llm: LlmSettings = Field(default_factory=LlmSettings)


@dataclass(frozen=True)
class SttCallSettings:
    """Everything one transcription request needs."""

    base_url: str
    api_key: str
    model_name: str
    task: str
    temperature: float
    language: str | None = None


def is_english(language: str | None) -> bool:
    s = (language or "").strip().lower()
    return not s or s in ("en", "english") or s.startswith("en-") or s.startswith("en_")


def select_stt_settings(stt: SttSettings, language: str | None) -> SttCallSettings:
    """Pick the english/other model variant from the job's language hint."""
    english = is_english(language)
    variant = stt.english if english else stt.other
    return SttCallSettings(
        base_url=stt.base_url,
        api_key=stt.api_key,
        model_name=variant.model_name,
        task=variant.task,
        temperature=variant.temperature,
        language=None if english else (language or "").strip(),
    )


def load_model_settings(db: Session) -> ModelSettings:
    row = db.get(GlobalSettings, MODELS_SETTINGS_TYPE)
    if not row or not (row.settings_json or "").strip():
        raise SettingsNotFoundError(_MISSING_MSG)

    try:
        raw = json.loads(row.settings_json)
    except json.JSONDecodeError as e:
        raise SettingsNotFoundError(_MISSING_MSG, {"reason": f"invalid JSON: {e}"}) from e

    if not isinstance(raw, dict) or "stt" not in raw or "llm" not in raw:
        raise SettingsNotFoundError(_MISSING_MSG, {"reason": "stt/llm sections missing"})

    try:
        return ModelSettings.model_validate(raw)
    except ValidationError as e:
        raise SettingsNotFoundError(_MISSING_MSG, {"reason": str(e)}) from e


def get_settings_or_default(db: Session) -> ModelSettings:
    try:
        return load_model_settings(db)
    except SettingsNotFoundError:
        return ModelSettings()


def save_model_settings(db: Session, payload: ModelSettings) -> ModelSettings:
    row = db.get(GlobalSettings, MODELS_SETTINGS_TYPE)
    if not row:
        row = GlobalSettings(type=MODELS_SETTINGS_TYPE)
        db.add(row)
    row.settings_json = payload.model_dump_json()
    db.commit()
    db.refresh(row)
    return payload


def mask_api_key(key: str) -> str:
    if not key:
        return ""
    if len(key) <= 8:
        return "*" * len(key)
    return f"{key[:3]}...{key[-4:]}"


def masked_copy(payload: ModelSettings) -> ModelSettings:
    out = payload.model_copy(deep=True)
    out.stt.api_key = mask_api_key(out.stt.api_key)
    out.llm.api_key = mask_api_key(out.llm.api_key)
    return out

from __future__ import annotations

import logging
from typing import Any

from audionotes.core.exceptions import AudioNotesError, JsonExtractionError
from audionotes.services.llm.json_utils import extract_json_array
from audionotes.services.llm.openai_client import ChatClient
from audionotes.services.llm.prompts import FLASHCARDS_USER_TEMPLATE, QUIZ_USER_TEMPLATE
from audionotes.services.model_settings import LlmSettings

logger = logging.getLogger(__name__)

MAX_CONTENT_CHARS = 8000


def _clean_flashcards(items: list[Any]) -> list[dict[str, str]]:
    out: list[dict[str, str]] = []
    for it in items:
        if not isinstance(it, dict):
            continue
        front = it.get("front")
        back = it.get("back")
        if isinstance(front, str) and front.strip() and isinstance(back, str) and back.strip():
            out.append({"front": front.strip(), "back": back.strip()})
    return out


def _clean_quiz(items: list[Any]) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    for it in items:
        if not isinstance(it, dict):
            continue

        q = it.get("question")
        answers = it.get("answers")
        # accept the camelCase key some models echo back
        idx = it.get("correct_answer_index", it.get("correctAnswerIndex"))

        if not isinstance(q, str) or not q.strip():
            continue
        if not isinstance(answers, list) or len(answers) < 2 or not all(isinstance(a, str) for a in answers):
            continue
        if not isinstance(idx, int) or isinstance(idx, bool) or not 0 <= idx < len(answers):
            continue

        out.append(
            {
                "question": q.strip(),
                "answers": answers,
                "correct_answer_index": idx,
                "explanation": str(it.get("explanation") or ""),
            }
        )
    return out


def _generate(template: str, content: str, llm: LlmSettings, client: ChatClient | None) -> list[Any]:
    chat = client or ChatClient(llm.base_url, llm.api_key)
    raw = chat.complete(
        llm.quiz_model,
        template.format(content=(content or "")[:MAX_CONTENT_CHARS]),
        temperature=0.7,
        max_tokens=4000,
    )
    return extract_json_array(raw)


def generate_flashcards(content: str, llm: LlmSettings, *, client: ChatClient | None = None) -> list[dict[str, str]]:
    """Returns [] on any model/parse failure; the caller shows an empty deck."""
    try:
        return _clean_flashcards(_generate(FLASHCARDS_USER_TEMPLATE, content, llm, client))
    except (AudioNotesError, JsonExtractionError) as e:
        logger.error("Failed to generate flashcards: %s", e)
        return []


def generate_quiz(content: str, llm: LlmSettings, *, client: ChatClient | None = None) -> list[dict[str, Any]]:
    try:
        return _clean_quiz(_generate(QUIZ_USER_TEMPLATE, content, llm, client))
    except (AudioNotesError, JsonExtractionError) as e:
        logger.error("Failed to generate quiz: %s", e)
        return []

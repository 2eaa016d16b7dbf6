from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from audionotes.core.exceptions import JsonExtractionError, SummarizationParseError
from audionotes.services.llm.json_utils import extract_json_object
from audionotes.services.llm.openai_client import ChatClient
from audionotes.services.llm.prompts import SUMMARY_SYSTEM, build_summary_prompt
from audionotes.services.model_settings import LlmSettings

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("title", "description", "content")


@dataclass(frozen=True)
class NoteSummary:
    title: str
    description: str
    content: str
    category: str | None = None

    def as_note_fields(self) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "title": self.title,
            "description": self.description,
            "content": self.content,
        }
        if self.category:
            fields["category"] = self.category
        return fields


def _match_category(raw: Any, categories: list[str]) -> str | None:
    if not categories or not isinstance(raw, str) or not raw.strip():
        return None
    wanted = raw.strip()
    for c in categories:
        if c == wanted:
            return c
    # tolerate case drift, keep the user's spelling
    lowered = wanted.lower()
    for c in categories:
        if c.lower() == lowered:
            return c
    return wanted


def parse_summary(raw_text: str, categories: list[str] | None = None) -> NoteSummary:
    try:
        payload = extract_json_object(raw_text)
    except JsonExtractionError as e:
        raise SummarizationParseError("Failed to parse LLM response as JSON", {"reason": str(e)}) from e

    missing = [k for k in REQUIRED_FIELDS if not isinstance(payload.get(k), str) or not payload.get(k).strip()]
    if missing:
        raise SummarizationParseError("Invalid response structure from LLM", {"missing": missing})

    return NoteSummary(
        title=payload["title"].strip(),
        description=payload["description"].strip(),
        content=payload["content"],
        category=_match_category(payload.get("category"), list(categories or [])),
    )


def summarize_transcript(
    transcript: str,
    llm: LlmSettings,
    categories: list[str] | None = None,
    *,
    client: ChatClient | None = None,
) -> NoteSummary:
    """
    Turn a transcript into {title, description, content, category?}.
    Raises SummarizationError subclasses; parse failures count as LLM failures.
    """
    chat = client or ChatClient(llm.base_url, llm.api_key)
    raw = chat.complete(
        llm.summarization_model,
        build_summary_prompt(transcript, categories),
        system=SUMMARY_SYSTEM,
        temperature=0.7,
        max_tokens=2000,
    )
    try:
        return parse_summary(raw, categories)
    except SummarizationParseError:
        logger.warning("Unparseable LLM summary (first 200 chars): %r", raw[:200])
        raise

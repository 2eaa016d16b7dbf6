"""
Q&A chat grounded in one or more notes.

The note content goes into the system prompt; only the most recent
MAX_HISTORY_TURNS user/assistant turns of the client's history are sent.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from audionotes.models.note import Note
from audionotes.services.llm.openai_client import ChatClient
from audionotes.services.llm.prompts import (
    MULTI_NOTE_CHAT_SYSTEM_TEMPLATE,
    MULTI_NOTE_SECTION_TEMPLATE,
    NOTE_CHAT_SYSTEM_TEMPLATE,
)
from audionotes.services.model_settings import LlmSettings

MAX_HISTORY_TURNS = 10
CHAT_ROLES = ("user", "assistant")


@dataclass(frozen=True)
class ChatTurn:
    role: str
    content: str


def build_messages(system: str, message: str, history: Iterable[ChatTurn] = ()) -> list[dict[str, str]]:
    turns = [t for t in history if t.role in CHAT_ROLES][-MAX_HISTORY_TURNS:]
    messages = [{"role": "system", "content": system}]
    messages.extend({"role": t.role, "content": t.content} for t in turns)
    messages.append({"role": "user", "content": message})
    return messages


def note_system_prompt(note: Note) -> str:
    return NOTE_CHAT_SYSTEM_TEMPLATE.format(content=note.content or "")


def notes_system_prompt(notes: Sequence[Note]) -> str:
    sections = "".join(
        MULTI_NOTE_SECTION_TEMPLATE.format(
            index=i,
            title=n.title or "",
            description=n.description or "",
            content=n.content or "",
        )
        for i, n in enumerate(notes, start=1)
    )
    return MULTI_NOTE_CHAT_SYSTEM_TEMPLATE.format(notes=sections)


def _ask(system: str, message: str, history: Iterable[ChatTurn], llm: LlmSettings, client: ChatClient | None) -> str:
    chat = client or ChatClient(llm.base_url, llm.api_key)
    return chat.chat(llm.chat_model, build_messages(system, message, history), temperature=0.7, max_tokens=2000)


def answer_about_note(
    note: Note,
    message: str,
    history: Iterable[ChatTurn],
    llm: LlmSettings,
    *,
    client: ChatClient | None = None,
) -> str:
    return _ask(note_system_prompt(note), message, history, llm, client)


def answer_about_notes(
    notes: Sequence[Note],
    message: str,
    history: Iterable[ChatTurn],
    llm: LlmSettings,
    *,
    client: ChatClient | None = None,
) -> str:
    return _ask(notes_system_prompt(notes), message, history, llm, client)

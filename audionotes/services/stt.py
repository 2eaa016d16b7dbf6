from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import httpx

from audionotes.core.config import settings
from audionotes.core.exceptions import (
    TranscriptionHTTPError,
    TranscriptionTimeoutError,
    TranscriptionTransportError,
)
from audionotes.services.model_settings import SttCallSettings

logger = logging.getLogger(__name__)


class SttClient:
    """
    Minimal client for an OpenAI-compatible /audio/transcriptions endpoint.

    Timeouts, non-2xx answers and transport failures raise distinct
    TranscriptionError subclasses so the user-facing message can tell them apart.
    """

    def __init__(self, timeout_s: float | None = None, transport: httpx.BaseTransport | None = None) -> None:
        self.timeout_s = settings.stt_timeout_sec if timeout_s is None else timeout_s
        self._transport = transport

    def transcribe(self, audio_path: str | Path, stt: SttCallSettings) -> str:
        url = f"{stt.base_url.rstrip('/')}/audio/transcriptions"

        data: dict[str, Any] = {
            "model": stt.model_name,
            "task": stt.task,
            "temperature": str(stt.temperature),
            "response_format": "text",
        }
        if stt.language:
            data["language"] = stt.language

        headers = {"Authorization": f"Bearer {stt.api_key}"}
        audio = Path(audio_path).read_bytes()
        files = {"file": ("audio.mp3", audio, "audio/mpeg")}

        try:
            with httpx.Client(timeout=self.timeout_s, transport=self._transport) as client:
                r = client.post(url, data=data, files=files, headers=headers)
        except httpx.TimeoutException as e:
            raise TranscriptionTimeoutError(
                f"STT API timed out after {int(self.timeout_s)}s", {"url": url}
            ) from e
        except httpx.HTTPError as e:
            raise TranscriptionTransportError(f"STT API unreachable: {e}", {"url": url}) from e

        if r.status_code < 200 or r.status_code >= 300:
            raise TranscriptionHTTPError(
                f"STT API error: {r.status_code} {r.reason_phrase}",
                status_code=r.status_code,
            )

        # silent recordings come back empty and still go on to summarization
        return r.text


def transcribe_audio(audio_path: str | Path, stt: SttCallSettings) -> str:
    return SttClient().transcribe(audio_path, stt)

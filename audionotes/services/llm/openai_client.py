from __future__ import annotations

from typing import Any

from audionotes.core.config import settings
from audionotes.core.exceptions import (
    SummarizationError,
    SummarizationHTTPError,
    SummarizationTimeoutError,
)


def build_openai_client(base_url: str, api_key: str, timeout_s: float | None = None):
    """
    OpenAI SDK client pointed at any OpenAI-compatible base URL.
    SDK-level retries are off: the pipeline owns the retry policy.
    """
    from openai import OpenAI  # type: ignore

    return OpenAI(
        base_url=base_url.rstrip("/"),
        api_key=api_key or "not-set",
        timeout=settings.llm_timeout_sec if timeout_s is None else timeout_s,
        max_retries=0,
    )


class ChatClient:
    """Thin wrapper around chat.completions that returns the reply text."""

    def __init__(self, base_url: str, api_key: str, timeout_s: float | None = None, client: Any = None) -> None:
        self.timeout_s = settings.llm_timeout_sec if timeout_s is None else timeout_s
        self._client = client or build_openai_client(base_url, api_key, self.timeout_s)

    def complete(
        self,
        model: str,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 2000,
    ) -> str:
        messages: list[dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return self.chat(model, messages, temperature=temperature, max_tokens=max_tokens)

    def chat(
        self,
        model: str,
        messages: list[dict[str, str]],
        *,
        temperature: float = 0.7,
        max_tokens: int = 2000,
    ) -> str:
        """Send a prepared role/content message list; returns the reply text."""
        import openai  # type: ignore

        try:
            chat = self._client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.APITimeoutError as e:
            raise SummarizationTimeoutError(f"LLM API timed out after {int(self.timeout_s)}s") from e
        except openai.APIStatusError as e:
            raise SummarizationHTTPError(f"LLM API error: {e.status_code} {e.message}", status_code=e.status_code) from e
        except openai.APIConnectionError as e:
            raise SummarizationError(f"LLM API unreachable: {e}") from e

        choices = getattr(chat, "choices", None) or []
        content = (choices[0].message.content or "").strip() if choices else ""
        if not content:
            raise SummarizationError("No content received from LLM API")
        return content

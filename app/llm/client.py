from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from openai import OpenAI

from app.config import settings

logger = logging.getLogger(__name__)


class LLMClientConfigError(Exception):
    pass


@dataclass
class LLMGenerationParams:
    model: str
    max_tokens: Optional[int] = None
    temperature: Optional[float] = 0.7


def build_openai_client() -> OpenAI:
    api_key = settings.OPENAI_API_KEY
    if not api_key:
        raise LLMClientConfigError("OPENAI_API_KEY not configured")
    client_kwargs: dict[str, Any] = {
        "api_key": api_key,
        "timeout": float(settings.LLM_REQUEST_TIMEOUT),
        "max_retries": settings.LLM_REQUEST_RETRIES,
    }
    if settings.OPENAI_BASE_URL:
        client_kwargs["base_url"] = settings.OPENAI_BASE_URL
    return OpenAI(**client_kwargs)


class LLMClient:
    """
    Chat-completion wrapper used for listing copy, chat refinement and image analysis.
    """

    def __init__(self, openai_client: Optional[OpenAI] = None) -> None:
        self._openai_client = openai_client

    def _client(self) -> OpenAI:
        if self._openai_client is None:
            self._openai_client = build_openai_client()
        return self._openai_client

    def generate_text(
        self,
        prompt: str,
        params: LLMGenerationParams,
        *,
        system: Optional[str] = None,
    ) -> str:
        messages: list[dict[str, Any]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return self.complete(messages, params)

    def complete(self, messages: list[dict[str, Any]], params: LLMGenerationParams) -> str:
        completion_kwargs: dict[str, Any] = {"model": params.model, "messages": messages}
        if params.temperature is not None:
            completion_kwargs["temperature"] = params.temperature
        if params.max_tokens:
            completion_kwargs["max_tokens"] = params.max_tokens

        logger.info("OpenAI chat completion request", extra={"model": params.model})
        try:
            completion = self._client().chat.completions.create(**completion_kwargs)
        except LLMClientConfigError:
            raise
        except Exception:
            logger.exception("OpenAI chat completion failed", extra={"model": params.model})
            raise

        text = None
        if completion and completion.choices:
            text = getattr(completion.choices[0].message, "content", None)
        if text:
            return text
        raise RuntimeError(f"OpenAI chat completion returned no content for model {params.model}")

    def analyze_image(
        self,
        *,
        image_url: str,
        prompt: str,
        system: str,
        params: LLMGenerationParams,
    ) -> str:
        messages = [
            {"role": "system", "content": system},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {"type": "image_url", "image_url": {"url": image_url, "detail": "high"}},
                ],
            },
        ]
        return self.complete(messages, params)

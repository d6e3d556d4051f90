from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Any, Optional

from openai import OpenAI

from app.llm.client import build_openai_client

logger = logging.getLogger(__name__)


@dataclass
class GeneratedImage:
    b64_json: Optional[str] = None
    url: Optional[str] = None

    def decode(self) -> bytes:
        if not self.b64_json:
            raise ValueError("Generated image has no base64 payload")
        return base64.b64decode(self.b64_json)


class ImageClient:
    """Image edit and generation calls against the OpenAI Images API."""

    def __init__(self, openai_client: Optional[OpenAI] = None) -> None:
        self._openai_client = openai_client

    def _client(self) -> OpenAI:
        if self._openai_client is None:
            self._openai_client = build_openai_client()
        return self._openai_client

    @staticmethod
    def _first_image(response: Any, *, model: str) -> GeneratedImage:
        data = getattr(response, "data", None) or []
        if not data:
            raise RuntimeError(f"No image data returned from {model}")
        item = data[0]
        image = GeneratedImage(b64_json=getattr(item, "b64_json", None), url=getattr(item, "url", None))
        if not image.b64_json and not image.url:
            raise RuntimeError(f"No image data in {model} response")
        return image

    def edit_image(
        self,
        *,
        image: bytes,
        prompt: str,
        model: str,
        filename: str = "source-product-image.png",
        content_type: str = "image/png",
        size: Optional[str] = None,
    ) -> GeneratedImage:
        kwargs: dict[str, Any] = {
            "model": model,
            "image": (filename, image, content_type),
            "prompt": prompt,
        }
        if size:
            kwargs["size"] = size
        logger.info("OpenAI image edit request", extra={"model": model, "source_bytes": len(image)})
        response = self._client().images.edit(**kwargs)
        return self._first_image(response, model=model)

    def generate_image(
        self,
        *,
        prompt: str,
        model: str,
        size: str = "1024x1024",
        quality: Optional[str] = None,
        style: Optional[str] = None,
    ) -> GeneratedImage:
        kwargs: dict[str, Any] = {"model": model, "prompt": prompt, "size": size, "n": 1}
        if quality:
            kwargs["quality"] = quality
        if style:
            kwargs["style"] = style
        logger.info("OpenAI image generate request", extra={"model": model})
        response = self._client().images.generate(**kwargs)
        return self._first_image(response, model=model)

from __future__ import annotations

from typing import Optional

from app.db.enums import AgentTypeEnum
from app.llm.client import LLMClientConfigError

NO_PRODUCT_IMAGES_MESSAGE = (
    "No product images provided. Please connect to a Product Image Node with uploaded images."
)
IMAGE_DOWNLOAD_FAILED_MESSAGE = (
    "Failed to process current hero image. Please try generating a new image instead."
)
RATE_LIMIT_MESSAGE = "Too many requests. Please wait a moment and try again."
QUOTA_MESSAGE = "Image generation quota exceeded. Please try again later."
GENERATE_CONTENT_POLICY_MESSAGE = (
    "The product image content doesn't meet image generation guidelines. "
    "Please try with different product images or adjust your requirements."
)
REFINE_CONTENT_POLICY_MESSAGE = (
    "The refinement request doesn't meet image generation guidelines. "
    "Please try different feedback or generate a new image."
)
DEFAULT_FAILURE_MESSAGE = "Generation failed."

_SERVICE_LABELS = {
    AgentTypeEnum.title: "Title",
    AgentTypeEnum.bullet_points: "Bullet point",
    AgentTypeEnum.hero_image: "Hero image",
    AgentTypeEnum.lifestyle_image: "Lifestyle image",
    AgentTypeEnum.infographic: "Infographic",
}


class GenerationError(RuntimeError):
    """User-facing generation failure; the agent has already been marked as errored."""

    def __init__(self, message: str, *, agent_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.agent_id = agent_id


def not_configured_message(agent_type: AgentTypeEnum) -> str:
    return f"{_SERVICE_LABELS.get(agent_type, 'Content')} generation service is not configured. Please contact support."


def map_provider_error(exc: BaseException, *, agent_type: AgentTypeEnum, refining: bool = False) -> str:
    if isinstance(exc, GenerationError):
        return exc.message
    if isinstance(exc, LLMClientConfigError):
        return not_configured_message(agent_type)

    raw = str(exc) or ""
    lowered = raw.lower()
    if "content_policy" in lowered:
        return REFINE_CONTENT_POLICY_MESSAGE if refining else GENERATE_CONTENT_POLICY_MESSAGE
    if "rate_limit" in lowered:
        return RATE_LIMIT_MESSAGE
    if "quota" in lowered:
        return QUOTA_MESSAGE
    return raw.strip() or DEFAULT_FAILURE_MESSAGE

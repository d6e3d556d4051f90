from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass
from typing import Any, Callable, Optional
from uuid import UUID

import httpx
from sqlalchemy.orm import Session

from app.config import settings
from app.db.enums import IMAGE_AGENT_TYPES, AgentStatusEnum, AgentTypeEnum, ChatRoleEnum
from app.db.models import Agent, Product
from app.db.repositories.agents import AgentsRepository
from app.db.repositories.brand_kits import CanvasBrandKitsRepository
from app.db.repositories.products import ProductsRepository
from app.db.repositories.profiles import ProfilesRepository
from app.llm.client import LLMClient, LLMGenerationParams
from app.llm.images import GeneratedImage, ImageClient
from app.services.media_storage import MediaStorage, get_media_storage
from app.services.prompts import (
    ConnectedOutput,
    PromptContext,
    build_prompt,
    build_prompt_context,
    build_refine_context,
    generation_params,
    refine_params,
    refine_system_prompt_for,
    system_prompt_for,
)
from app.services.provider_errors import (
    IMAGE_DOWNLOAD_FAILED_MESSAGE,
    NO_PRODUCT_IMAGES_MESSAGE,
    GenerationError,
    map_provider_error,
)

logger = logging.getLogger(__name__)

IMAGE_DOWNLOAD_TIMEOUT_SECONDS = 60.0

IMAGE_CONCEPTS = {
    AgentTypeEnum.hero_image: (
        "Professional Amazon hero shot created by transforming your uploaded product image with gpt-image-1 - "
        "pure white background, studio lighting, and Amazon compliance"
    ),
    AgentTypeEnum.lifestyle_image: (
        "Professional Amazon lifestyle shot created by transforming your uploaded product image with gpt-image-1 - "
        "realistic scene with target audience and natural environment"
    ),
    AgentTypeEnum.infographic: (
        "Professional Amazon infographic created by transforming your uploaded product image with gpt-image-1 - "
        "clean layout highlighting key features, benefits, and specifications"
    ),
}

HERO_ANALYSIS_SYSTEM_PROMPT = (
    "You are an expert Amazon product photographer. Analyze the current hero image and understand what needs "
    "to be changed based on the user's feedback for Amazon listing optimization."
)

_HERO_REFINE_REQUIREMENTS = (
    "AMAZON HERO IMAGE REQUIREMENTS:",
    "- Apply the user's requested changes while maintaining Amazon compliance",
    "- Clean white background (RGB 255, 255, 255)",
    "- Product fills 85% of image frame",
    "- Professional lighting, no harsh shadows",
    "- High resolution and sharp focus",
    "- No text overlays or graphics",
)


class AgentNotFoundError(LookupError):
    pass


@dataclass
class GenerationResult:
    content: str
    prompt: str
    image_url: Optional[str] = None
    storage_id: Optional[str] = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"content": self.content, "prompt": self.prompt}
        if self.image_url:
            payload["imageUrl"] = self.image_url
        if self.storage_id:
            payload["storageId"] = self.storage_id
        return payload


def _hero_analysis_request(message: str) -> str:
    return (
        f'Current hero image analysis needed. User feedback: "{message}"\n\n'
        "Analyze this Amazon hero image and describe:\n"
        "1. Product positioning and background\n"
        "2. Lighting and image quality\n"
        "3. Compliance with Amazon requirements\n"
        "4. What specific changes are needed based on the user's feedback"
    )


def build_hero_refinement_prompt(*, message: str, analysis: str, ctx: PromptContext) -> str:
    lines = [
        "Edit this Amazon hero image based on user feedback:",
        "",
        f"USER FEEDBACK: {message}",
        "",
        "CURRENT IMAGE ANALYSIS:",
        analysis,
        "",
    ]
    if ctx.product_name:
        lines += [f"PRODUCT TITLE: {ctx.product_name}", ""]
    if ctx.key_features:
        features = [feature.strip() for feature in ctx.key_features.split(",") if feature.strip()]
        lines += ["PRODUCT FEATURES:", *(f"{i}. {feature}" for i, feature in enumerate(features, start=1)), ""]
    lines += list(_HERO_REFINE_REQUIREMENTS)
    if ctx.has_profile:
        brand = " - ".join(part for part in (ctx.brand_name, ctx.niche) if part)
        lines.append("")
        if brand:
            lines.append(f"BRAND STYLE: {brand}")
        if ctx.product_category:
            lines.append(f"PRODUCT CATEGORY: {ctx.product_category}")
    return "\n".join(lines) + "\n"


class GenerationService:
    """
    Runs one generation or refinement for an agent and owns its status transitions.

    Every call re-reads the agent's product, canvas brand kit, profile and connected
    agents, so the prompt reflects what is persisted at call time.
    """

    def __init__(
        self,
        session: Session,
        *,
        llm: LLMClient,
        images: ImageClient,
        storage_factory: Callable[[], MediaStorage] = get_media_storage,
    ) -> None:
        self.session = session
        self.llm = llm
        self.images = images
        self._storage_factory = storage_factory
        self._storage: Optional[MediaStorage] = None
        self.agents = AgentsRepository(session)
        self.products = ProductsRepository(session)
        self.canvas_brand_kits = CanvasBrandKitsRepository(session)
        self.profiles = ProfilesRepository(session)

    @property
    def storage(self) -> MediaStorage:
        if self._storage is None:
            self._storage = self._storage_factory()
        return self._storage

    def _load_agent(self, *, agent_id: UUID, user_id: str) -> Agent:
        agent = self.agents.get(user_id=user_id, agent_id=agent_id)
        if not agent:
            raise AgentNotFoundError("Agent not found or unauthorized")
        return agent

    def _connected_outputs(self, agent: Agent) -> list[ConnectedOutput]:
        ids: list[UUID] = []
        for entry in agent.connections or []:
            try:
                candidate = UUID(str(entry))
            except ValueError:
                continue
            if candidate not in (agent.id, agent.product_id):
                ids.append(candidate)
        by_id = {a.id: a for a in self.agents.list_by_ids(user_id=agent.user_id, agent_ids=ids)}
        outputs = []
        for agent_id in ids:
            source = by_id.get(agent_id)
            if source is not None and (source.draft or "").strip():
                outputs.append(ConnectedOutput(type=source.type.value, content=source.draft))
        return outputs

    def _prompt_context(self, agent: Agent) -> tuple[Product, PromptContext]:
        product = self.products.get(user_id=agent.user_id, product_id=agent.product_id)
        if not product:
            raise GenerationError("Product not found or unauthorized", agent_id=str(agent.id))
        brand_kit = None
        if agent.project_id is not None:
            brand_kit = self.canvas_brand_kits.get_for_project(user_id=agent.user_id, project_id=agent.project_id)
        profile = self.profiles.get(user_id=agent.user_id)
        ctx = build_prompt_context(
            product,
            brand_kit=brand_kit,
            profile=profile,
            connected_outputs=self._connected_outputs(agent),
        )
        return product, ctx

    def _fail(self, agent: Agent, *, prior_draft: str, exc: BaseException, refining: bool) -> GenerationError:
        message = map_provider_error(exc, agent_type=agent.type, refining=refining)
        logger.exception(
            "Agent generation failed",
            extra={"agent_id": str(agent.id), "agent_type": agent.type.value, "refining": refining},
        )
        self.session.rollback()
        self.agents.update_draft(agent, draft=prior_draft, status=AgentStatusEnum.error)
        return GenerationError(message, agent_id=str(agent.id))

    def generate(
        self, *, agent_id: UUID, user_id: str, additional_context: Optional[str] = None
    ) -> GenerationResult:
        agent = self._load_agent(agent_id=agent_id, user_id=user_id)
        prior_draft = agent.draft or ""
        self.agents.update_status(agent, status=AgentStatusEnum.generating)
        try:
            result = self._run_generation(agent, additional_context=additional_context)
        except Exception as exc:
            raise self._fail(agent, prior_draft=prior_draft, exc=exc, refining=False) from exc

        self.agents.update_draft(
            agent,
            draft=result.content,
            status=AgentStatusEnum.ready,
            image_url=result.image_url,
            image_storage_key=result.storage_id,
        )
        logger.info(
            "Agent generation complete",
            extra={"agent_id": str(agent.id), "agent_type": agent.type.value, "has_image": bool(result.image_url)},
        )
        return result

    def _run_generation(self, agent: Agent, *, additional_context: Optional[str]) -> GenerationResult:
        product, ctx = self._prompt_context(agent)
        prompt = build_prompt(
            agent.type,
            ctx,
            instance=self.agents.instance_number(agent),
            user_request=additional_context,
        )
        if agent.type not in IMAGE_AGENT_TYPES:
            content = self.llm.generate_text(
                prompt, generation_params(agent.type), system=system_prompt_for(agent.type)
            )
            return GenerationResult(content=content.strip(), prompt=prompt)

        source, content_type = self._product_source_image(product)
        generated = self.images.edit_image(
            image=source,
            prompt=prompt,
            model=settings.IMAGE_EDIT_MODEL,
            filename=_upload_filename("source-product-image", content_type),
            content_type=content_type,
        )
        stored = self._store_generated(generated, agent_type=agent.type)
        return GenerationResult(
            content=IMAGE_CONCEPTS[agent.type], prompt=prompt, image_url=stored.url, storage_id=stored.key
        )

    def _product_source_image(self, product: Product) -> tuple[bytes, str]:
        images = [image for image in (product.product_images or []) if image.get("url") or image.get("storageId")]
        if images:
            source = images[0]
            storage_key, url = source.get("storageId"), source.get("url")
        elif product.storage_key:
            storage_key, url = product.storage_key, None
        else:
            raise GenerationError(NO_PRODUCT_IMAGES_MESSAGE)

        if storage_key:
            data, content_type = self.storage.download_bytes(key=storage_key)
        else:
            data, content_type = download_image(url)
        return data, (content_type or "image/png")

    def _store_generated(self, generated: GeneratedImage, *, agent_type: AgentTypeEnum):
        if generated.b64_json:
            data, content_type = generated.decode(), "image/png"
        else:
            data, content_type = download_image(generated.url)
            content_type = content_type or "image/png"
        return self.storage.store(data=data, content_type=content_type, kind=f"generated/{agent_type.value}")

    def refine(self, *, agent_id: UUID, user_id: str, message: str) -> GenerationResult:
        agent = self._load_agent(agent_id=agent_id, user_id=user_id)
        self.agents.add_chat_message(agent, role=ChatRoleEnum.user, message=message)

        if agent.type in IMAGE_AGENT_TYPES and not (agent.type == AgentTypeEnum.hero_image and agent.image_url):
            result = self.generate(agent_id=agent.id, user_id=user_id, additional_context=message)
            self.agents.add_chat_message(agent, role=ChatRoleEnum.ai, message=result.content)
            return result

        prior_draft = agent.draft or ""
        self.agents.update_status(agent, status=AgentStatusEnum.generating)
        try:
            if agent.type == AgentTypeEnum.hero_image:
                result = self._refine_hero_image(agent, message=message)
            else:
                result = self._refine_text(agent, message=message, current_draft=prior_draft)
        except Exception as exc:
            raise self._fail(agent, prior_draft=prior_draft, exc=exc, refining=True) from exc

        self.agents.update_draft(
            agent,
            draft=result.content,
            status=AgentStatusEnum.ready,
            image_url=result.image_url,
            image_storage_key=result.storage_id,
        )
        self.agents.add_chat_message(agent, role=ChatRoleEnum.ai, message=result.content)
        return result

    def _refine_text(self, agent: Agent, *, message: str, current_draft: str) -> GenerationResult:
        _product, ctx = self._prompt_context(agent)
        context_message = build_refine_context(current_draft, ctx)
        messages = [
            {"role": "system", "content": refine_system_prompt_for(agent.type)},
            {"role": "assistant", "content": context_message},
            {"role": "user", "content": message},
        ]
        content = self.llm.complete(messages, refine_params(agent.type))
        return GenerationResult(content=content.strip(), prompt=context_message)

    def _refine_hero_image(self, agent: Agent, *, message: str) -> GenerationResult:
        _product, ctx = self._prompt_context(agent)
        analysis = self.llm.analyze_image(
            image_url=agent.image_url,
            prompt=_hero_analysis_request(message),
            system=HERO_ANALYSIS_SYSTEM_PROMPT,
            params=LLMGenerationParams(model=settings.VISION_MODEL, max_tokens=500, temperature=None),
        )

        try:
            if agent.image_storage_key:
                current, content_type = self.storage.download_bytes(key=agent.image_storage_key)
            else:
                current, content_type = download_image(agent.image_url)
        except Exception as exc:
            logger.warning("Failed to download current hero image", extra={"agent_id": str(agent.id)})
            raise GenerationError(IMAGE_DOWNLOAD_FAILED_MESSAGE, agent_id=str(agent.id)) from exc

        prompt = build_hero_refinement_prompt(message=message, analysis=analysis, ctx=ctx)
        try:
            refined = self.images.edit_image(
                image=current,
                prompt=prompt,
                model=settings.IMAGE_REFINE_EDIT_MODEL,
                filename="current-hero-image.png",
                content_type=content_type or "image/png",
                size="1024x1024",
            )
        except Exception:
            logger.warning(
                "Hero image edit failed, generating a replacement instead", extra={"agent_id": str(agent.id)}
            )
            fallback_prompt = (
                f"Create an Amazon hero image that incorporates these changes:\n\n{prompt}\n\n"
                f"Based on analysis of previous image:\n{analysis}"
            )
            refined = self.images.generate_image(
                prompt=fallback_prompt,
                model=settings.IMAGE_REFINE_GENERATE_MODEL,
                size="1024x1024",
                quality="hd",
                style="natural",
            )

        stored = self._store_generated(refined, agent_type=agent.type)
        return GenerationResult(content=analysis, prompt=prompt, image_url=stored.url, storage_id=stored.key)


def _upload_filename(stem: str, content_type: str) -> str:
    ext = mimetypes.guess_extension(content_type or "") or ".png"
    return f"{stem}{ext}"


def download_image(url: Optional[str]) -> tuple[bytes, Optional[str]]:
    if not url:
        raise GenerationError(NO_PRODUCT_IMAGES_MESSAGE)
    with httpx.Client(timeout=IMAGE_DOWNLOAD_TIMEOUT_SECONDS, follow_redirects=True) as client:
        resp = client.get(url)
        resp.raise_for_status()
        content_type = (resp.headers.get("content-type") or "").split(";")[0].strip() or None
        return resp.content, content_type

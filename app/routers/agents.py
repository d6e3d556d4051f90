from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from app.auth.dependencies import AuthContext, get_current_user, get_optional_user
from app.db.deps import get_session
from app.db.enums import AgentTypeEnum, CanvasNodeTypeEnum
from app.db.repositories.agents import AgentsRepository
from app.db.repositories.products import ProductsRepository
from app.llm.client import LLMClient
from app.llm.images import ImageClient
from app.schemas.agents import (
    AgentConnectionsUpdateRequest,
    AgentCreateRequest,
    AgentDraftUpdateRequest,
    AgentPositionUpdateRequest,
    ChatMessageCreateRequest,
    GenerateRequest,
    RefineRequest,
)
from app.services.canvas_layout import find_non_overlapping_position
from app.services.canvas_store import occupied_positions
from app.services.generation import AgentNotFoundError, GenerationService
from app.services.provider_errors import GenerationError

router = APIRouter(prefix="/agents", tags=["agents"])
logger = logging.getLogger(__name__)

MAX_IMAGE_AGENTS_PER_PROJECT = {
    AgentTypeEnum.hero_image: 4,
    AgentTypeEnum.lifestyle_image: 4,
}
_LIMIT_LABELS = {
    AgentTypeEnum.hero_image: "hero image",
    AgentTypeEnum.lifestyle_image: "lifestyle image",
}


def get_llm_client() -> LLMClient:
    return LLMClient()


def get_image_client() -> ImageClient:
    return ImageClient()


def get_generation_service(
    session: Session = Depends(get_session),
    llm: LLMClient = Depends(get_llm_client),
    images: ImageClient = Depends(get_image_client),
) -> GenerationService:
    return GenerationService(session, llm=llm, images=images)


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Agent not found or unauthorized")


def _require_agent(session: Session, *, user_id: str, agent_id: UUID):
    agent = AgentsRepository(session).get(user_id=user_id, agent_id=agent_id)
    if not agent:
        raise _not_found()
    return agent


@router.get("")
def list_agents(
    productId: Optional[UUID] = None,
    projectId: Optional[UUID] = None,
    auth: Optional[AuthContext] = Depends(get_optional_user),
    session: Session = Depends(get_session),
):
    if auth is None:
        return []
    repo = AgentsRepository(session)
    if productId is not None:
        return jsonable_encoder(repo.list_by_product(user_id=auth.user_id, product_id=productId))
    if projectId is not None:
        return jsonable_encoder(repo.list_by_project(user_id=auth.user_id, project_id=projectId))
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="productId or projectId is required")


@router.post("", status_code=status.HTTP_201_CREATED)
def create_agent(
    payload: AgentCreateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    product = ProductsRepository(session).get(user_id=auth.user_id, product_id=payload.productId)
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found or unauthorized")
    if product.project_id is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Product is not part of a project")

    repo = AgentsRepository(session)
    limit = MAX_IMAGE_AGENTS_PER_PROJECT.get(payload.type)
    if limit is not None and repo.count_by_type(project_id=product.project_id, agent_type=payload.type) >= limit:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Maximum of {limit} {_LIMIT_LABELS[payload.type]} agents per project reached",
        )

    position = find_non_overlapping_position(
        payload.canvasPosition.model_dump(),
        CanvasNodeTypeEnum.agent,
        occupied_positions(session, user_id=auth.user_id, project_id=product.project_id),
    )
    agent = repo.create(
        user_id=auth.user_id,
        product_id=product.id,
        project_id=product.project_id,
        agent_type=payload.type,
        canvas_position=position,
    )
    logger.info(
        "Created agent",
        extra={"agent_id": str(agent.id), "agent_type": agent.type.value, "product_id": str(product.id)},
    )
    return jsonable_encoder(agent)


@router.get("/{agent_id}")
def get_agent(
    agent_id: UUID,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return jsonable_encoder(_require_agent(session, user_id=auth.user_id, agent_id=agent_id))


@router.patch("/{agent_id}/draft")
def update_agent_draft(
    agent_id: UUID,
    payload: AgentDraftUpdateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    agent = _require_agent(session, user_id=auth.user_id, agent_id=agent_id)
    agent = AgentsRepository(session).update_draft(
        agent,
        draft=payload.draft,
        status=payload.status,
        image_url=payload.imageUrl,
        image_storage_key=payload.imageStorageId,
    )
    return jsonable_encoder(agent)


@router.put("/{agent_id}/connections")
def update_agent_connections(
    agent_id: UUID,
    payload: AgentConnectionsUpdateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    agent = _require_agent(session, user_id=auth.user_id, agent_id=agent_id)
    agent = AgentsRepository(session).update_connections(agent, connections=payload.connections)
    return jsonable_encoder(agent)


@router.post("/{agent_id}/chat")
def add_agent_chat_message(
    agent_id: UUID,
    payload: ChatMessageCreateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    agent = _require_agent(session, user_id=auth.user_id, agent_id=agent_id)
    agent = AgentsRepository(session).add_chat_message(agent, role=payload.role, message=payload.message)
    return jsonable_encoder(agent)


@router.patch("/{agent_id}/position")
def update_agent_position(
    agent_id: UUID,
    payload: AgentPositionUpdateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    agent = _require_agent(session, user_id=auth.user_id, agent_id=agent_id)
    agent = AgentsRepository(session).update_position(agent, canvas_position=payload.canvasPosition.model_dump())
    return jsonable_encoder(agent)


@router.post("/{agent_id}/generate")
def generate_agent_content(
    agent_id: UUID,
    payload: Optional[GenerateRequest] = None,
    auth: AuthContext = Depends(get_current_user),
    service: GenerationService = Depends(get_generation_service),
):
    try:
        result = service.generate(
            agent_id=agent_id,
            user_id=auth.user_id,
            additional_context=payload.additionalContext if payload else None,
        )
    except AgentNotFoundError as exc:
        raise _not_found() from exc
    except GenerationError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=exc.message) from exc
    return result.to_payload()


@router.post("/{agent_id}/refine")
def refine_agent_content(
    agent_id: UUID,
    payload: RefineRequest,
    auth: AuthContext = Depends(get_current_user),
    service: GenerationService = Depends(get_generation_service),
):
    try:
        result = service.refine(agent_id=agent_id, user_id=auth.user_id, message=payload.message)
    except AgentNotFoundError as exc:
        raise _not_found() from exc
    except GenerationError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=exc.message) from exc
    return result.to_payload()


@router.delete("/{agent_id}")
def delete_agent(
    agent_id: UUID,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    agent = _require_agent(session, user_id=auth.user_id, agent_id=agent_id)
    AgentsRepository(session).delete(agent)
    return {"ok": True}

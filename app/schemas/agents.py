from __future__ import annotations

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.db.enums import AgentStatusEnum, AgentTypeEnum, ChatRoleEnum
from app.schemas.common import Position


class AgentCreateRequest(BaseModel):
    productId: UUID
    type: AgentTypeEnum
    canvasPosition: Position


class AgentDraftUpdateRequest(BaseModel):
    draft: str
    status: AgentStatusEnum = AgentStatusEnum.ready
    imageUrl: Optional[str] = None
    imageStorageId: Optional[str] = None


class AgentConnectionsUpdateRequest(BaseModel):
    connections: list[str]


class ChatMessageCreateRequest(BaseModel):
    role: ChatRoleEnum
    message: str = Field(min_length=1)


class AgentPositionUpdateRequest(BaseModel):
    canvasPosition: Position


class GenerateRequest(BaseModel):
    additionalContext: Optional[str] = None


class RefineRequest(BaseModel):
    message: str = Field(min_length=1)

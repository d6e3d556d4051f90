from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.db.enums import AgentStatusEnum, AgentTypeEnum, CanvasNodeTypeEnum
from app.schemas.common import ColorPalette, Position, Viewport


class ProductNodeData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    productId: str
    title: Optional[str] = None
    imageUrl: Optional[str] = None
    productName: Optional[str] = None
    keyFeatures: Optional[str] = None
    targetKeywords: Optional[str] = None
    targetAudience: Optional[str] = None
    customTargetAudience: Optional[str] = None
    productCategory: Optional[str] = None


class AgentNodeData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    agentId: str
    type: AgentTypeEnum
    draft: str = ""
    status: AgentStatusEnum = AgentStatusEnum.idle
    imageUrl: Optional[str] = None
    nickname: Optional[str] = None


class BrandKitNodeData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    brandKitId: str
    brandName: str
    brandVoice: str
    colorPalette: ColorPalette


DEFAULT_VIEWPORT = {"x": 0.0, "y": 0.0, "zoom": 1.0}

NODE_DATA_MODELS: dict[CanvasNodeTypeEnum, type[BaseModel]] = {
    CanvasNodeTypeEnum.product: ProductNodeData,
    CanvasNodeTypeEnum.agent: AgentNodeData,
    CanvasNodeTypeEnum.brand_kit: BrandKitNodeData,
}


class CanvasNode(BaseModel):
    id: str
    type: CanvasNodeTypeEnum
    position: Position
    data: dict[str, Any] = Field(default_factory=dict)


class CanvasEdge(BaseModel):
    id: str
    source: str
    target: str
    sourceHandle: Optional[str] = None
    targetHandle: Optional[str] = None


class CanvasState(BaseModel):
    nodes: list[CanvasNode] = Field(default_factory=list)
    edges: list[CanvasEdge] = Field(default_factory=list)
    viewport: Viewport = Field(default_factory=Viewport)


class ViewportUpdateRequest(BaseModel):
    viewport: Viewport

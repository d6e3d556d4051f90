from __future__ import annotations

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.common import ColorPalette, Position

BRAND_KIT_FIELD_MAP = {
    "name": "name",
    "colorPalette": "color_palette",
    "brandVoice": "brand_voice",
    "isDefault": "is_default",
}

CANVAS_BRAND_KIT_FIELD_MAP = {
    "brandKitId": "brand_kit_id",
    "brandName": "brand_name",
    "colorPalette": "color_palette",
    "brandVoice": "brand_voice",
    "canvasPosition": "canvas_position",
}


class BrandKitCreateRequest(BaseModel):
    name: str = Field(min_length=1)
    colorPalette: ColorPalette
    brandVoice: str
    isDefault: bool = False


class BrandKitUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    colorPalette: Optional[ColorPalette] = None
    brandVoice: Optional[str] = None
    isDefault: Optional[bool] = None


class CanvasBrandKitCreateRequest(BaseModel):
    brandKitId: Optional[UUID] = None
    brandName: str = Field(min_length=1)
    colorPalette: ColorPalette
    brandVoice: str
    canvasPosition: Position


class CanvasBrandKitUpdateRequest(BaseModel):
    brandKitId: Optional[UUID] = None
    brandName: Optional[str] = Field(default=None, min_length=1)
    colorPalette: Optional[ColorPalette] = None
    brandVoice: Optional[str] = None
    canvasPosition: Optional[Position] = None

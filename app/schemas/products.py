from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel

from app.schemas.common import Position

PRODUCT_LEGACY_FIELD_MAP = {
    "title": "title",
    "asin": "asin",
    "features": "features",
    "specifications": "specifications",
    "keywords": "keywords",
    "brandInfo": "brand_info",
    "canvasPosition": "canvas_position",
}

PRODUCT_INFO_FIELD_MAP = {
    "productName": "product_name",
    "keyFeatures": "key_features",
    "targetKeywords": "target_keywords",
    "targetAudience": "target_audience",
    "customTargetAudience": "custom_target_audience",
    "productCategory": "product_category",
}

PRODUCT_METADATA_FIELD_MAP = {
    "fileSize": "file_size",
    "resolution": "resolution",
    "format": "format",
    "metadata": "extra_metadata",
}


class Specifications(BaseModel):
    dimensions: Optional[str] = None
    weight: Optional[str] = None
    materials: Optional[list[str]] = None
    color: Optional[str] = None
    size: Optional[str] = None


class BrandInfo(BaseModel):
    name: str
    description: Optional[str] = None


class Resolution(BaseModel):
    width: int
    height: int


class ProductCreateRequest(BaseModel):
    projectId: UUID
    canvasPosition: Position
    storageId: Optional[str] = None
    imageUrl: Optional[str] = None
    title: Optional[str] = None
    asin: Optional[str] = None
    productName: Optional[str] = None
    keyFeatures: Optional[str] = None
    targetKeywords: Optional[str] = None
    targetAudience: Optional[str] = None
    customTargetAudience: Optional[str] = None
    productCategory: Optional[str] = None
    features: Optional[list[str]] = None
    specifications: Optional[Specifications] = None
    keywords: Optional[list[str]] = None
    brandInfo: Optional[BrandInfo] = None
    fileSize: Optional[int] = None
    resolution: Optional[Resolution] = None
    format: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class ProductUpdateRequest(BaseModel):
    title: Optional[str] = None
    asin: Optional[str] = None
    features: Optional[list[str]] = None
    specifications: Optional[Specifications] = None
    keywords: Optional[list[str]] = None
    brandInfo: Optional[BrandInfo] = None
    canvasPosition: Optional[Position] = None


class ProductInfoUpdateRequest(BaseModel):
    productName: Optional[str] = None
    keyFeatures: Optional[str] = None
    targetKeywords: Optional[str] = None
    targetAudience: Optional[str] = None
    customTargetAudience: Optional[str] = None
    productCategory: Optional[str] = None


class ProductMetadataUpdateRequest(BaseModel):
    fileSize: Optional[int] = None
    resolution: Optional[Resolution] = None
    format: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class ProductStorageUpdateRequest(BaseModel):
    storageId: str
    imageUrl: Optional[str] = None

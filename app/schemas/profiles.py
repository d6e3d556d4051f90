from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

PROFILE_FIELD_MAP = {
    "brandName": "brand_name",
    "productCategory": "product_category",
    "niche": "niche",
    "links": "links",
    "tone": "tone",
    "targetAudience": "target_audience",
    "sellerType": "seller_type",
}


class ProfileUpsertRequest(BaseModel):
    brandName: str
    productCategory: str
    niche: str
    links: list[str] = []
    tone: Optional[str] = None
    targetAudience: Optional[str] = None
    sellerType: Optional[str] = None

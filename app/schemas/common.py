from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, model_validator

from app.db.enums import PalettePresetEnum, PaletteTypeEnum


class Position(BaseModel):
    x: float
    y: float


class Viewport(BaseModel):
    x: float = 0.0
    y: float = 0.0
    zoom: float = 1.0


class CustomPalette(BaseModel):
    primary: str
    secondary: str
    accent: str


class ColorPalette(BaseModel):
    type: PaletteTypeEnum
    preset: Optional[PalettePresetEnum] = None
    custom: Optional[CustomPalette] = None

    @model_validator(mode="after")
    def _check_variant(self) -> "ColorPalette":
        if self.type == PaletteTypeEnum.preset and self.preset is None:
            raise ValueError("colorPalette.preset is required when type is 'preset'")
        if self.type == PaletteTypeEnum.custom and self.custom is None:
            raise ValueError("colorPalette.custom is required when type is 'custom'")
        return self


def fields_from_payload(payload: BaseModel, field_map: dict[str, str]) -> dict[str, Any]:
    """Map the explicitly provided request keys to model column names."""
    fields: dict[str, Any] = {}
    for request_key in payload.model_fields_set:
        column = field_map.get(request_key)
        if column is None:
            continue
        value = getattr(payload, request_key)
        if isinstance(value, BaseModel):
            value = value.model_dump(mode="json", exclude_none=True)
        fields[column] = value
    return fields

from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from app.auth.dependencies import AuthContext, get_current_user, get_optional_user
from app.db.deps import get_session
from app.db.enums import CanvasNodeTypeEnum
from app.db.repositories.brand_kits import BrandKitsRepository, CanvasBrandKitsRepository
from app.db.repositories.projects import ProjectsRepository
from app.schemas.brand_kits import (
    BRAND_KIT_FIELD_MAP,
    CANVAS_BRAND_KIT_FIELD_MAP,
    BrandKitCreateRequest,
    BrandKitUpdateRequest,
    CanvasBrandKitCreateRequest,
    CanvasBrandKitUpdateRequest,
)
from app.schemas.common import fields_from_payload
from app.services.canvas_graph import brand_kit_node_id
from app.services.canvas_layout import find_non_overlapping_position
from app.services.canvas_store import occupied_positions

router = APIRouter(tags=["brand-kits"])


def _preset_not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Brand kit not found or unauthorized")


def _require_project(session: Session, *, user_id: str, project_id: UUID):
    project = ProjectsRepository(session).get(user_id=user_id, project_id=project_id)
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found or unauthorized")
    return project


@router.get("/brand-kits")
def list_brand_kits(
    auth: Optional[AuthContext] = Depends(get_optional_user),
    session: Session = Depends(get_session),
):
    if auth is None:
        return []
    return jsonable_encoder(BrandKitsRepository(session).list(user_id=auth.user_id))


@router.get("/brand-kits/default")
def get_default_brand_kit(
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    brand_kit = BrandKitsRepository(session).get_default(user_id=auth.user_id)
    return jsonable_encoder(brand_kit) if brand_kit else None


@router.post("/brand-kits", status_code=status.HTTP_201_CREATED)
def create_brand_kit(
    payload: BrandKitCreateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    brand_kit = BrandKitsRepository(session).create(
        user_id=auth.user_id,
        name=payload.name,
        color_palette=payload.colorPalette.model_dump(mode="json", exclude_none=True),
        brand_voice=payload.brandVoice,
        is_default=payload.isDefault,
    )
    return jsonable_encoder(brand_kit)


@router.patch("/brand-kits/{brand_kit_id}")
def update_brand_kit(
    brand_kit_id: UUID,
    payload: BrandKitUpdateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    fields = fields_from_payload(payload, BRAND_KIT_FIELD_MAP)
    brand_kit = BrandKitsRepository(session).update(user_id=auth.user_id, brand_kit_id=brand_kit_id, **fields)
    if not brand_kit:
        raise _preset_not_found()
    return jsonable_encoder(brand_kit)


@router.delete("/brand-kits/{brand_kit_id}")
def delete_brand_kit(
    brand_kit_id: UUID,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    if not BrandKitsRepository(session).delete(user_id=auth.user_id, brand_kit_id=brand_kit_id):
        raise _preset_not_found()
    return {"ok": True}


@router.get("/projects/{project_id}/brand-kit")
def get_canvas_brand_kit(
    project_id: UUID,
    auth: Optional[AuthContext] = Depends(get_optional_user),
    session: Session = Depends(get_session),
):
    if auth is None:
        return None
    brand_kit = CanvasBrandKitsRepository(session).get_for_project(user_id=auth.user_id, project_id=project_id)
    return jsonable_encoder(brand_kit) if brand_kit else None


@router.put("/projects/{project_id}/brand-kit")
def upsert_canvas_brand_kit(
    project_id: UUID,
    payload: CanvasBrandKitCreateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    project = _require_project(session, user_id=auth.user_id, project_id=project_id)
    repo = CanvasBrandKitsRepository(session)
    if payload.brandKitId is not None and not BrandKitsRepository(session).get(
        user_id=auth.user_id, brand_kit_id=payload.brandKitId
    ):
        raise _preset_not_found()

    fields = fields_from_payload(payload, CANVAS_BRAND_KIT_FIELD_MAP)
    # The upsert replaces the current kit, so it does not block its own spot.
    others = [
        box
        for box in occupied_positions(session, user_id=auth.user_id, project_id=project.id)
        if box["type"] != CanvasNodeTypeEnum.brand_kit.value
    ]
    fields["canvas_position"] = find_non_overlapping_position(
        payload.canvasPosition.model_dump(), CanvasNodeTypeEnum.brand_kit, others
    )
    brand_kit = repo.upsert(user_id=auth.user_id, project_id=project.id, **fields)
    payload_out = jsonable_encoder(brand_kit)
    payload_out["nodeId"] = brand_kit_node_id(brand_kit.id)
    return payload_out


@router.patch("/projects/{project_id}/brand-kit")
def update_canvas_brand_kit(
    project_id: UUID,
    payload: CanvasBrandKitUpdateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    repo = CanvasBrandKitsRepository(session)
    brand_kit = repo.get_for_project(user_id=auth.user_id, project_id=project_id)
    if not brand_kit:
        raise _preset_not_found()
    brand_kit = repo.update(brand_kit, **fields_from_payload(payload, CANVAS_BRAND_KIT_FIELD_MAP))
    return jsonable_encoder(brand_kit)


@router.delete("/projects/{project_id}/brand-kit")
def delete_canvas_brand_kit(
    project_id: UUID,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    repo = CanvasBrandKitsRepository(session)
    brand_kit = repo.get_for_project(user_id=auth.user_id, project_id=project_id)
    if not brand_kit:
        raise _preset_not_found()
    repo.delete(brand_kit)
    return {"ok": True}

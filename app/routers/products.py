from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from app.auth.dependencies import AuthContext, get_current_user, get_optional_user
from app.db.deps import get_session
from app.db.enums import CanvasNodeTypeEnum
from app.db.repositories.products import ProductsRepository
from app.db.repositories.projects import ProjectsRepository
from app.schemas.common import fields_from_payload
from app.schemas.products import (
    PRODUCT_INFO_FIELD_MAP,
    PRODUCT_LEGACY_FIELD_MAP,
    PRODUCT_METADATA_FIELD_MAP,
    ProductCreateRequest,
    ProductInfoUpdateRequest,
    ProductMetadataUpdateRequest,
    ProductStorageUpdateRequest,
    ProductUpdateRequest,
)
from app.services.canvas_layout import find_non_overlapping_position
from app.services.canvas_store import occupied_positions
from app.services.media_storage import get_media_storage
from app.services.uploads import UploadValidationError, validate_upload

router = APIRouter(prefix="/products", tags=["products"])
logger = logging.getLogger(__name__)

_UPLOAD_STATUS_BY_REASON = {
    "too_large": status.HTTP_413_CONTENT_TOO_LARGE,
    "unsupported_type": status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
    "empty": status.HTTP_400_BAD_REQUEST,
}


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found or unauthorized")


@router.get("")
def list_products(
    projectId: Optional[UUID] = None,
    auth: Optional[AuthContext] = Depends(get_optional_user),
    session: Session = Depends(get_session),
):
    if auth is None:
        return []
    repo = ProductsRepository(session)
    if projectId is not None:
        return jsonable_encoder(repo.list_by_project(user_id=auth.user_id, project_id=projectId))
    return jsonable_encoder(repo.list_by_user(user_id=auth.user_id))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_product(
    payload: ProductCreateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    project = ProjectsRepository(session).get(user_id=auth.user_id, project_id=payload.projectId)
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found or unauthorized")

    fields = fields_from_payload(
        payload, {**PRODUCT_LEGACY_FIELD_MAP, **PRODUCT_INFO_FIELD_MAP, **PRODUCT_METADATA_FIELD_MAP}
    )
    fields.pop("canvas_position", None)
    position = find_non_overlapping_position(
        payload.canvasPosition.model_dump(),
        CanvasNodeTypeEnum.product,
        occupied_positions(session, user_id=auth.user_id, project_id=project.id),
    )

    image_url = payload.imageUrl
    if payload.storageId and not image_url:
        image_url = get_media_storage().resolve_url(key=payload.storageId)

    product = ProductsRepository(session).create(
        user_id=auth.user_id,
        project_id=project.id,
        canvas_position=position,
        storage_key=payload.storageId,
        image_url=image_url,
        **fields,
    )
    ProjectsRepository(session).touch(project)
    logger.info("Created product", extra={"product_id": str(product.id), "project_id": str(project.id)})
    return jsonable_encoder(product)


@router.get("/{product_id}")
def get_product(
    product_id: UUID,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    product = ProductsRepository(session).get(user_id=auth.user_id, product_id=product_id)
    if not product:
        raise _not_found()
    return jsonable_encoder(product)


@router.get("/{product_id}/features")
def get_product_with_features(
    product_id: UUID,
    auth: Optional[AuthContext] = Depends(get_optional_user),
    session: Session = Depends(get_session),
):
    """Lookup used by generation previews; answers null instead of 404."""
    if auth is None:
        return None
    product = ProductsRepository(session).get(user_id=auth.user_id, product_id=product_id)
    return jsonable_encoder(product) if product else None


@router.patch("/{product_id}")
def update_product(
    product_id: UUID,
    payload: ProductUpdateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    fields = fields_from_payload(payload, PRODUCT_LEGACY_FIELD_MAP)
    product = ProductsRepository(session).update(user_id=auth.user_id, product_id=product_id, **fields)
    if not product:
        raise _not_found()
    return jsonable_encoder(product)


@router.patch("/{product_id}/metadata")
def update_product_metadata(
    product_id: UUID,
    payload: ProductMetadataUpdateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    fields = fields_from_payload(payload, PRODUCT_METADATA_FIELD_MAP)
    product = ProductsRepository(session).update_metadata(user_id=auth.user_id, product_id=product_id, **fields)
    if not product:
        raise _not_found()
    return jsonable_encoder(product)


@router.patch("/{product_id}/info")
def update_product_info(
    product_id: UUID,
    payload: ProductInfoUpdateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    fields = fields_from_payload(payload, PRODUCT_INFO_FIELD_MAP)
    product = ProductsRepository(session).update_product_info(
        user_id=auth.user_id, product_id=product_id, **fields
    )
    if not product:
        raise _not_found()
    return jsonable_encoder(product)


@router.put("/{product_id}/storage")
def update_product_storage(
    product_id: UUID,
    payload: ProductStorageUpdateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    repo = ProductsRepository(session)
    if not repo.get(user_id=auth.user_id, product_id=product_id):
        raise _not_found()
    image_url = payload.imageUrl or get_media_storage().resolve_url(key=payload.storageId)
    product = repo.update_storage(
        user_id=auth.user_id, product_id=product_id, storage_key=payload.storageId, image_url=image_url
    )
    return jsonable_encoder(product)


@router.post("/{product_id}/images", status_code=status.HTTP_201_CREATED)
async def upload_product_image(
    product_id: UUID,
    file: UploadFile = File(...),
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    repo = ProductsRepository(session)
    product = repo.get(user_id=auth.user_id, product_id=product_id)
    if not product:
        raise _not_found()

    content = await file.read()
    try:
        content_type = validate_upload(content_type=file.content_type, size_bytes=len(content), filename=file.filename)
    except UploadValidationError as exc:
        raise HTTPException(
            status_code=_UPLOAD_STATUS_BY_REASON.get(exc.reason, status.HTTP_400_BAD_REQUEST), detail=str(exc)
        ) from exc

    stored = get_media_storage().store(data=content, content_type=content_type, kind="products")
    product = repo.update_storage(
        user_id=auth.user_id, product_id=product.id, storage_key=stored.key, image_url=stored.url
    )
    repo.update_metadata(
        user_id=auth.user_id,
        product_id=product.id,
        file_size=stored.size_bytes,
        format=content_type,
    )
    logger.info(
        "Uploaded product image",
        extra={"product_id": str(product.id), "key": stored.key, "size_bytes": stored.size_bytes},
    )
    return {"product": jsonable_encoder(product), "storageId": stored.key, "url": stored.url}


@router.delete("/{product_id}")
def delete_product(
    product_id: UUID,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    deleted = ProductsRepository(session).delete(user_id=auth.user_id, product_id=product_id)
    if not deleted:
        raise _not_found()
    return {"ok": True}

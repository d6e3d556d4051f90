from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from app.auth.dependencies import AuthContext, get_current_user, get_optional_user
from app.db.deps import get_session
from app.db.repositories.projects import ProjectsRepository
from app.db.repositories.shares import SharesRepository
from app.services.canvas_store import load_canvas

router = APIRouter(tags=["shares"])
logger = logging.getLogger(__name__)


@router.post("/projects/{project_id}/shares", status_code=status.HTTP_201_CREATED)
def create_share(
    project_id: UUID,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    project = ProjectsRepository(session).get(user_id=auth.user_id, project_id=project_id)
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found or unauthorized")
    snapshot = load_canvas(session, user_id=auth.user_id, project_id=project.id)
    share = SharesRepository(session).create(user_id=auth.user_id, project_id=project.id, canvas_state=snapshot)
    logger.info("Created share", extra={"project_id": str(project.id), "share_id": share.share_id})
    return jsonable_encoder(share)


@router.get("/projects/{project_id}/shares")
def list_shares(
    project_id: UUID,
    auth: Optional[AuthContext] = Depends(get_optional_user),
    session: Session = Depends(get_session),
):
    if auth is None:
        return []
    return jsonable_encoder(SharesRepository(session).list_by_project(user_id=auth.user_id, project_id=project_id))


@router.get("/shares/{share_id}")
def resolve_share(share_id: str, session: Session = Depends(get_session)):
    """Public, read-only view of a shared canvas. Each resolve counts as a view."""
    repo = SharesRepository(session)
    share = repo.get_by_share_id(share_id=share_id)
    if not share:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Share not found")
    share = repo.record_view(share)
    return {
        "shareId": share.share_id,
        "projectId": str(share.project_id),
        "canvasState": share.canvas_state,
        "viewCount": share.view_count,
        "createdAt": share.created_at,
    }

from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from app.auth.dependencies import AuthContext, get_current_user, get_optional_user
from app.db.deps import get_session
from app.db.repositories.projects import ProjectsRepository
from app.schemas.common import fields_from_payload
from app.schemas.projects import PROJECT_FIELD_MAP, ProjectCreateRequest, ProjectUpdateRequest

router = APIRouter(prefix="/projects", tags=["projects"])


@router.get("")
def list_projects(
    includeArchived: bool = False,
    auth: Optional[AuthContext] = Depends(get_optional_user),
    session: Session = Depends(get_session),
):
    if auth is None:
        return []
    projects = ProjectsRepository(session).list(user_id=auth.user_id, include_archived=includeArchived)
    return jsonable_encoder(projects)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_project(
    payload: ProjectCreateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    project = ProjectsRepository(session).create(
        user_id=auth.user_id,
        title=payload.title,
        description=payload.description,
        thumbnail=payload.thumbnail,
    )
    return jsonable_encoder(project)


@router.get("/{project_id}")
def get_project(
    project_id: UUID,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    project = ProjectsRepository(session).get(user_id=auth.user_id, project_id=project_id)
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found or unauthorized")
    return jsonable_encoder(project)


@router.patch("/{project_id}")
def update_project(
    project_id: UUID,
    payload: ProjectUpdateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    fields = fields_from_payload(payload, PROJECT_FIELD_MAP)
    project = ProjectsRepository(session).update(user_id=auth.user_id, project_id=project_id, **fields)
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found or unauthorized")
    return jsonable_encoder(project)


@router.delete("/{project_id}")
def delete_project(
    project_id: UUID,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    deleted = ProjectsRepository(session).delete(user_id=auth.user_id, project_id=project_id)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found or unauthorized")
    return {"ok": True}

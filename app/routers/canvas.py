from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.auth.dependencies import AuthContext, get_current_user
from app.db.deps import get_session
from app.db.repositories.canvases import ProjectCanvasesRepository
from app.db.repositories.projects import ProjectsRepository
from app.schemas.canvas import CanvasState, ViewportUpdateRequest
from app.services.canvas_graph import CanvasGraphError
from app.services.canvas_store import load_canvas, save_canvas

router = APIRouter(prefix="/projects/{project_id}/canvas", tags=["canvas"])


def _require_project(session: Session, *, user_id: str, project_id: UUID):
    project = ProjectsRepository(session).get(user_id=user_id, project_id=project_id)
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found or unauthorized")
    return project


@router.get("")
def get_canvas(
    project_id: UUID,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    _require_project(session, user_id=auth.user_id, project_id=project_id)
    return load_canvas(session, user_id=auth.user_id, project_id=project_id)


@router.put("")
def put_canvas(
    project_id: UUID,
    payload: CanvasState,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    project = _require_project(session, user_id=auth.user_id, project_id=project_id)
    try:
        state = save_canvas(session, user_id=auth.user_id, project_id=project_id, state=payload)
    except CanvasGraphError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc
    ProjectsRepository(session).touch(project)
    return state


@router.patch("/viewport")
def patch_canvas_viewport(
    project_id: UUID,
    payload: ViewportUpdateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    _require_project(session, user_id=auth.user_id, project_id=project_id)
    canvas = ProjectCanvasesRepository(session).save_viewport(
        user_id=auth.user_id, project_id=project_id, viewport=payload.viewport.model_dump()
    )
    return {"viewport": canvas.viewport}

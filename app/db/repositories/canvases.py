from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select

from app.db.models import ProjectCanvas, utcnow
from app.db.repositories.base import Repository


class ProjectCanvasesRepository(Repository):
    def get(self, *, user_id: str, project_id: UUID) -> Optional[ProjectCanvas]:
        stmt = select(ProjectCanvas).where(
            ProjectCanvas.project_id == project_id, ProjectCanvas.user_id == user_id
        )
        return self.session.scalars(stmt).first()

    def save_state(
        self,
        *,
        user_id: str,
        project_id: UUID,
        nodes: list[dict[str, Any]],
        edges: list[dict[str, Any]],
        viewport: dict[str, float],
    ) -> ProjectCanvas:
        canvas = self.get(user_id=user_id, project_id=project_id)
        if canvas is None:
            canvas = ProjectCanvas(user_id=user_id, project_id=project_id)
        canvas.nodes = nodes
        canvas.edges = edges
        canvas.viewport = viewport
        canvas.updated_at = utcnow()
        return self.save(canvas)

    def save_viewport(self, *, user_id: str, project_id: UUID, viewport: dict[str, float]) -> ProjectCanvas:
        canvas = self.get(user_id=user_id, project_id=project_id)
        if canvas is None:
            canvas = ProjectCanvas(user_id=user_id, project_id=project_id, nodes=[], edges=[])
        canvas.viewport = viewport
        canvas.updated_at = utcnow()
        return self.save(canvas)

from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

from sqlalchemy import delete, select

from app.db.models import (
    Agent,
    CanvasBrandKit,
    Product,
    Project,
    ProjectCanvas,
    Share,
    utcnow,
)
from app.db.repositories.base import Repository


class ProjectsRepository(Repository):
    def list(self, *, user_id: str, include_archived: bool = False) -> list[Project]:
        stmt = select(Project).where(Project.user_id == user_id)
        if not include_archived:
            stmt = stmt.where(Project.is_archived.is_(False))
        stmt = stmt.order_by(Project.updated_at.desc())
        return list(self.session.scalars(stmt).all())

    def get(self, *, user_id: str, project_id: UUID) -> Optional[Project]:
        stmt = select(Project).where(Project.id == project_id, Project.user_id == user_id)
        return self.session.scalars(stmt).first()

    def create(self, *, user_id: str, title: str, **fields: Any) -> Project:
        return self.save(Project(user_id=user_id, title=title, **fields))

    def update(self, *, user_id: str, project_id: UUID, **fields: Any) -> Optional[Project]:
        project = self.get(user_id=user_id, project_id=project_id)
        if not project:
            return None
        fields["updated_at"] = utcnow()
        return self.patch(project, fields)

    def touch(self, project: Project) -> None:
        project.updated_at = utcnow()
        self.session.commit()

    def delete(self, *, user_id: str, project_id: UUID) -> bool:
        project = self.get(user_id=user_id, project_id=project_id)
        if not project:
            return False
        # Explicit cascade; SQLite does not enforce ON DELETE without a pragma.
        for model in (Agent, Product, CanvasBrandKit, ProjectCanvas, Share):
            self.session.execute(delete(model).where(model.project_id == project_id))
        self.session.delete(project)
        self.session.commit()
        return True

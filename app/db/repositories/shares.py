from __future__ import annotations

import secrets
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select

from app.db.models import Share, utcnow
from app.db.repositories.base import Repository

_SHARE_ID_BYTES = 12


class SharesRepository(Repository):
    def create(self, *, user_id: str, project_id: UUID, canvas_state: dict[str, Any]) -> Share:
        share = Share(
            share_id=secrets.token_urlsafe(_SHARE_ID_BYTES),
            user_id=user_id,
            project_id=project_id,
            canvas_state=canvas_state,
            view_count=0,
        )
        return self.save(share)

    def list_by_project(self, *, user_id: str, project_id: UUID) -> list[Share]:
        stmt = (
            select(Share)
            .where(Share.project_id == project_id, Share.user_id == user_id)
            .order_by(Share.created_at.desc())
        )
        return list(self.session.scalars(stmt).all())

    def get_by_share_id(self, *, share_id: str) -> Optional[Share]:
        stmt = select(Share).where(Share.share_id == share_id)
        return self.session.scalars(stmt).first()

    def record_view(self, share: Share) -> Share:
        share.view_count = (share.view_count or 0) + 1
        share.updated_at = utcnow()
        return self.save(share)

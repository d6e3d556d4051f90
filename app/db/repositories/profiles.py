from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import select

from app.db.models import Profile, utcnow
from app.db.repositories.base import Repository


class ProfilesRepository(Repository):
    def get(self, *, user_id: str) -> Optional[Profile]:
        stmt = select(Profile).where(Profile.user_id == user_id)
        return self.session.scalars(stmt).first()

    def upsert(self, *, user_id: str, **fields: Any) -> Profile:
        profile = self.get(user_id=user_id)
        if profile is None:
            return self.save(Profile(user_id=user_id, **fields))
        fields["updated_at"] = utcnow()
        return self.patch(profile, fields)

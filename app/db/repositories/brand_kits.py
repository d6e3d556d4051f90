from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select, update

from app.db.models import BrandKit, CanvasBrandKit, utcnow
from app.db.repositories.base import Repository


class BrandKitsRepository(Repository):
    """Saved brand kit presets, independent of any project."""

    def list(self, *, user_id: str) -> list[BrandKit]:
        stmt = select(BrandKit).where(BrandKit.user_id == user_id).order_by(BrandKit.created_at.desc())
        return list(self.session.scalars(stmt).all())

    def get(self, *, user_id: str, brand_kit_id: UUID) -> Optional[BrandKit]:
        stmt = select(BrandKit).where(BrandKit.id == brand_kit_id, BrandKit.user_id == user_id)
        return self.session.scalars(stmt).first()

    def get_default(self, *, user_id: str) -> Optional[BrandKit]:
        stmt = select(BrandKit).where(BrandKit.user_id == user_id, BrandKit.is_default.is_(True))
        return self.session.scalars(stmt).first()

    def _clear_defaults(self, *, user_id: str, keep_id: Optional[UUID] = None) -> None:
        stmt = update(BrandKit).where(BrandKit.user_id == user_id, BrandKit.is_default.is_(True))
        if keep_id is not None:
            stmt = stmt.where(BrandKit.id != keep_id)
        self.session.execute(stmt.values(is_default=False))

    def create(
        self,
        *,
        user_id: str,
        name: str,
        color_palette: dict[str, Any],
        brand_voice: str,
        is_default: bool = False,
    ) -> BrandKit:
        if is_default:
            self._clear_defaults(user_id=user_id)
        return self.save(
            BrandKit(
                user_id=user_id,
                name=name,
                color_palette=color_palette,
                brand_voice=brand_voice,
                is_default=is_default,
            )
        )

    def update(self, *, user_id: str, brand_kit_id: UUID, **fields: Any) -> Optional[BrandKit]:
        brand_kit = self.get(user_id=user_id, brand_kit_id=brand_kit_id)
        if not brand_kit:
            return None
        if fields.get("is_default"):
            self._clear_defaults(user_id=user_id, keep_id=brand_kit.id)
        fields["updated_at"] = utcnow()
        return self.patch(brand_kit, fields)

    def delete(self, *, user_id: str, brand_kit_id: UUID) -> bool:
        brand_kit = self.get(user_id=user_id, brand_kit_id=brand_kit_id)
        if not brand_kit:
            return False
        self.session.execute(
            update(CanvasBrandKit).where(CanvasBrandKit.brand_kit_id == brand_kit.id).values(brand_kit_id=None)
        )
        self.session.delete(brand_kit)
        self.session.commit()
        return True


class CanvasBrandKitsRepository(Repository):
    """The single brand kit node placed on a project's canvas."""

    def get_for_project(self, *, user_id: str, project_id: UUID) -> Optional[CanvasBrandKit]:
        stmt = (
            select(CanvasBrandKit)
            .where(CanvasBrandKit.project_id == project_id, CanvasBrandKit.user_id == user_id)
            .order_by(CanvasBrandKit.created_at.asc())
        )
        return self.session.scalars(stmt).first()

    def get(self, *, user_id: str, canvas_brand_kit_id: UUID) -> Optional[CanvasBrandKit]:
        stmt = select(CanvasBrandKit).where(
            CanvasBrandKit.id == canvas_brand_kit_id, CanvasBrandKit.user_id == user_id
        )
        return self.session.scalars(stmt).first()

    def upsert(self, *, user_id: str, project_id: UUID, **fields: Any) -> CanvasBrandKit:
        existing = self.get_for_project(user_id=user_id, project_id=project_id)
        if existing:
            return self.patch(existing, fields)
        return self.save(CanvasBrandKit(user_id=user_id, project_id=project_id, **fields))

    def update(self, canvas_brand_kit: CanvasBrandKit, **fields: Any) -> CanvasBrandKit:
        return self.patch(canvas_brand_kit, fields)

    def delete(self, canvas_brand_kit: CanvasBrandKit) -> None:
        self.session.delete(canvas_brand_kit)
        self.session.commit()

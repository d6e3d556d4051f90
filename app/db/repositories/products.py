from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

from sqlalchemy import delete, select

from app.db.enums import ProductImageRoleEnum
from app.db.models import Agent, Product
from app.db.repositories.base import Repository

PRODUCT_INFO_FIELDS = (
    "product_name",
    "key_features",
    "target_keywords",
    "target_audience",
    "custom_target_audience",
    "product_category",
)
PRODUCT_METADATA_FIELDS = ("file_size", "resolution", "format", "extra_metadata")


def main_image_descriptor(*, url: str, storage_key: Optional[str]) -> dict[str, Any]:
    descriptor: dict[str, Any] = {"url": url, "type": ProductImageRoleEnum.main.value}
    if storage_key:
        descriptor["storageId"] = storage_key
    return descriptor


class ProductsRepository(Repository):
    def list_by_user(self, *, user_id: str) -> list[Product]:
        stmt = select(Product).where(Product.user_id == user_id).order_by(Product.created_at.desc())
        return list(self.session.scalars(stmt).all())

    def list_by_project(self, *, user_id: str, project_id: UUID) -> list[Product]:
        stmt = (
            select(Product)
            .where(Product.user_id == user_id, Product.project_id == project_id)
            .order_by(Product.created_at.asc())
        )
        return list(self.session.scalars(stmt).all())

    def get(self, *, user_id: str, product_id: UUID) -> Optional[Product]:
        stmt = select(Product).where(Product.id == product_id, Product.user_id == user_id)
        return self.session.scalars(stmt).first()

    def create(
        self,
        *,
        user_id: str,
        project_id: UUID,
        canvas_position: dict[str, float],
        storage_key: Optional[str] = None,
        image_url: Optional[str] = None,
        **fields: Any,
    ) -> Product:
        product = Product(
            user_id=user_id,
            project_id=project_id,
            canvas_position=canvas_position,
            storage_key=storage_key,
            **fields,
        )
        if image_url:
            product.product_images = [main_image_descriptor(url=image_url, storage_key=storage_key)]
        return self.save(product)

    def update(self, *, user_id: str, product_id: UUID, **fields: Any) -> Optional[Product]:
        product = self.get(user_id=user_id, product_id=product_id)
        if not product:
            return None
        return self.patch(product, fields)

    def update_metadata(self, *, user_id: str, product_id: UUID, **fields: Any) -> Optional[Product]:
        unknown = set(fields) - set(PRODUCT_METADATA_FIELDS)
        if unknown:
            raise ValueError(f"Unsupported metadata fields: {sorted(unknown)}")
        return self.update(user_id=user_id, product_id=product_id, **fields)

    def update_product_info(self, *, user_id: str, product_id: UUID, **fields: Any) -> Optional[Product]:
        unknown = set(fields) - set(PRODUCT_INFO_FIELDS)
        if unknown:
            raise ValueError(f"Unsupported product info fields: {sorted(unknown)}")
        return self.update(user_id=user_id, product_id=product_id, **fields)

    def update_storage(
        self, *, user_id: str, product_id: UUID, storage_key: str, image_url: str
    ) -> Optional[Product]:
        return self.update(
            user_id=user_id,
            product_id=product_id,
            storage_key=storage_key,
            product_images=[main_image_descriptor(url=image_url, storage_key=storage_key)],
        )

    def delete(self, *, user_id: str, product_id: UUID) -> bool:
        product = self.get(user_id=user_id, product_id=product_id)
        if not product:
            return False
        self.session.execute(delete(Agent).where(Agent.product_id == product.id))
        self.session.delete(product)
        self.session.commit()
        return True

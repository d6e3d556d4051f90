from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID, uuid4

import sqlalchemy as sa
from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.db.enums import AgentStatusEnum, AgentTypeEnum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class Project(Base):
    __tablename__ = "projects"
    __table_args__ = (sa.Index("idx_projects_user_archived", "user_id", "is_archived"),)

    id: Mapped[UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    thumbnail: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )


class Product(Base):
    __tablename__ = "products"

    id: Mapped[UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    project_id: Mapped[Optional[UUID]] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), nullable=True, index=True
    )
    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    asin: Mapped[Optional[str]] = mapped_column(Text, nullable=True, index=True)
    product_images: Mapped[list[dict[str, Any]]] = mapped_column(sa.JSON, nullable=False, default=list)
    storage_key: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    product_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    key_features: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    target_keywords: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    target_audience: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    custom_target_audience: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    product_category: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    features: Mapped[Optional[list[str]]] = mapped_column(sa.JSON, nullable=True)
    specifications: Mapped[Optional[dict[str, Any]]] = mapped_column(sa.JSON, nullable=True)
    keywords: Mapped[Optional[list[str]]] = mapped_column(sa.JSON, nullable=True)
    brand_info: Mapped[Optional[dict[str, Any]]] = mapped_column(sa.JSON, nullable=True)

    canvas_position: Mapped[dict[str, float]] = mapped_column(sa.JSON, nullable=False)
    file_size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    resolution: Mapped[Optional[dict[str, int]]] = mapped_column(sa.JSON, nullable=True)
    format: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # "metadata" is reserved on declarative classes.
    extra_metadata: Mapped[Optional[dict[str, Any]]] = mapped_column("metadata", sa.JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )


class Agent(Base):
    __tablename__ = "agents"

    id: Mapped[UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    product_id: Mapped[UUID] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    project_id: Mapped[Optional[UUID]] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), nullable=True, index=True
    )
    type: Mapped[AgentTypeEnum] = mapped_column(
        Enum(AgentTypeEnum, name="agent_type", values_callable=_enum_values, native_enum=False),
        nullable=False,
    )
    draft: Mapped[str] = mapped_column(Text, nullable=False, default="")
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_storage_key: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    connections: Mapped[list[str]] = mapped_column(sa.JSON, nullable=False, default=list)
    chat_history: Mapped[list[dict[str, Any]]] = mapped_column(sa.JSON, nullable=False, default=list)
    canvas_position: Mapped[dict[str, float]] = mapped_column(sa.JSON, nullable=False)
    status: Mapped[AgentStatusEnum] = mapped_column(
        Enum(AgentStatusEnum, name="agent_status", values_callable=_enum_values, native_enum=False),
        nullable=False,
        default=AgentStatusEnum.idle,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )


class BrandKit(Base):
    __tablename__ = "brand_kits"

    id: Mapped[UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    color_palette: Mapped[dict[str, Any]] = mapped_column(sa.JSON, nullable=False)
    brand_voice: Mapped[str] = mapped_column(Text, nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )


class CanvasBrandKit(Base):
    __tablename__ = "canvas_brand_kits"

    id: Mapped[UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    project_id: Mapped[UUID] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    brand_kit_id: Mapped[Optional[UUID]] = mapped_column(
        ForeignKey("brand_kits.id", ondelete="SET NULL"), nullable=True
    )
    brand_name: Mapped[str] = mapped_column(Text, nullable=False)
    color_palette: Mapped[dict[str, Any]] = mapped_column(sa.JSON, nullable=False)
    brand_voice: Mapped[str] = mapped_column(Text, nullable=False)
    canvas_position: Mapped[dict[str, float]] = mapped_column(sa.JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )


class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    brand_name: Mapped[str] = mapped_column(Text, nullable=False)
    product_category: Mapped[str] = mapped_column(Text, nullable=False)
    niche: Mapped[str] = mapped_column(Text, nullable=False)
    links: Mapped[list[str]] = mapped_column(sa.JSON, nullable=False, default=list)
    tone: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    target_audience: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    seller_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )


class Share(Base):
    __tablename__ = "shares"

    id: Mapped[UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid4)
    share_id: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    project_id: Mapped[UUID] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    canvas_state: Mapped[dict[str, Any]] = mapped_column(sa.JSON, nullable=False)
    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )


class ProjectCanvas(Base):
    __tablename__ = "project_canvases"
    __table_args__ = (UniqueConstraint("project_id", name="uq_project_canvases_project"),)

    id: Mapped[UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    project_id: Mapped[UUID] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    nodes: Mapped[list[dict[str, Any]]] = mapped_column(sa.JSON, nullable=False, default=list)
    edges: Mapped[list[dict[str, Any]]] = mapped_column(sa.JSON, nullable=False, default=list)
    viewport: Mapped[dict[str, float]] = mapped_column(sa.JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

from __future__ import annotations

import time
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import func, select

from app.db.enums import AgentStatusEnum, AgentTypeEnum, ChatRoleEnum
from app.db.models import Agent
from app.db.repositories.base import Repository


def _epoch_ms() -> int:
    return int(time.time() * 1000)


class AgentsRepository(Repository):
    def list_by_product(self, *, user_id: str, product_id: UUID) -> list[Agent]:
        stmt = (
            select(Agent)
            .where(Agent.user_id == user_id, Agent.product_id == product_id)
            .order_by(Agent.created_at.asc())
        )
        return list(self.session.scalars(stmt).all())

    def list_by_project(self, *, user_id: str, project_id: UUID) -> list[Agent]:
        stmt = (
            select(Agent)
            .where(Agent.user_id == user_id, Agent.project_id == project_id)
            .order_by(Agent.created_at.asc())
        )
        return list(self.session.scalars(stmt).all())

    def list_by_ids(self, *, user_id: str, agent_ids: Iterable[UUID]) -> list[Agent]:
        ids = list(agent_ids)
        if not ids:
            return []
        stmt = select(Agent).where(Agent.user_id == user_id, Agent.id.in_(ids))
        return list(self.session.scalars(stmt).all())

    def get(self, *, user_id: str, agent_id: UUID) -> Optional[Agent]:
        stmt = select(Agent).where(Agent.id == agent_id, Agent.user_id == user_id)
        return self.session.scalars(stmt).first()

    def count_by_type(self, *, project_id: UUID, agent_type: AgentTypeEnum) -> int:
        stmt = select(func.count(Agent.id)).where(Agent.project_id == project_id, Agent.type == agent_type)
        return int(self.session.scalar(stmt) or 0)

    def instance_number(self, agent: Agent) -> int:
        """1-based position of the agent among same-type agents of its project."""
        stmt = (
            select(Agent.id)
            .where(Agent.project_id == agent.project_id, Agent.type == agent.type)
            .order_by(Agent.created_at.asc())
        )
        ids = list(self.session.scalars(stmt).all())
        return ids.index(agent.id) + 1 if agent.id in ids else 1

    def create(
        self,
        *,
        user_id: str,
        product_id: UUID,
        project_id: UUID,
        agent_type: AgentTypeEnum,
        canvas_position: dict[str, float],
    ) -> Agent:
        agent = Agent(
            user_id=user_id,
            product_id=product_id,
            project_id=project_id,
            type=agent_type,
            draft="",
            connections=[str(product_id)],
            chat_history=[],
            canvas_position=canvas_position,
            status=AgentStatusEnum.idle,
        )
        return self.save(agent)

    def update_draft(
        self,
        agent: Agent,
        *,
        draft: str,
        status: AgentStatusEnum = AgentStatusEnum.ready,
        image_url: Optional[str] = None,
        image_storage_key: Optional[str] = None,
    ) -> Agent:
        agent.draft = draft
        agent.status = status
        if image_url is not None:
            agent.image_url = image_url
        if image_storage_key is not None:
            agent.image_storage_key = image_storage_key
        return self.save(agent)

    def update_status(self, agent: Agent, *, status: AgentStatusEnum) -> Agent:
        agent.status = status
        return self.save(agent)

    def update_connections(self, agent: Agent, *, connections: list[str]) -> Agent:
        agent.connections = list(dict.fromkeys(connections))
        return self.save(agent)

    def update_position(self, agent: Agent, *, canvas_position: dict[str, float]) -> Agent:
        agent.canvas_position = dict(canvas_position)
        return self.save(agent)

    def add_chat_message(
        self, agent: Agent, *, role: ChatRoleEnum, message: str, timestamp: Optional[int] = None
    ) -> Agent:
        entry = {"role": role.value, "message": message, "timestamp": timestamp or _epoch_ms()}
        # Reassign so the JSON column is flagged dirty.
        agent.chat_history = [*(agent.chat_history or []), entry]
        return self.save(agent)

    def delete(self, agent: Agent) -> None:
        self.session.delete(agent)
        self.session.commit()

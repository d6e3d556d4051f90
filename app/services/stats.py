from __future__ import annotations

from datetime import datetime, time, timezone
from typing import Any, Optional

from sqlalchemy import func, select, union
from sqlalchemy.orm import Session

from app.db.enums import AgentStatusEnum
from app.db.models import Agent, Product, Profile, Project

RECENT_ACTIVITY_LIMIT = 5


def _start_of_day(now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return datetime.combine(now.astimezone(timezone.utc).date(), time.min, tzinfo=timezone.utc)


def _count(session: Session, stmt) -> int:
    return int(session.scalar(stmt) or 0)


def hero_stats(session: Session, *, now: Optional[datetime] = None) -> dict[str, int]:
    """Platform-wide counters for the landing page. Day boundaries are UTC."""
    today = _start_of_day(now)
    owners = union(select(Project.user_id), select(Profile.user_id)).subquery()
    return {
        "productsProcessed": _count(session, select(func.count(Product.id))),
        "agentsDeployed": _count(session, select(func.count(Agent.id))),
        "activeAgents": _count(
            session,
            select(func.count(Agent.id)).where(
                Agent.status.in_([AgentStatusEnum.ready, AgentStatusEnum.generating])
            ),
        ),
        "projectsCreated": _count(session, select(func.count(Project.id))),
        "totalUsers": _count(session, select(func.count()).select_from(owners)),
        "productsToday": _count(session, select(func.count(Product.id)).where(Product.created_at >= today)),
        "agentsToday": _count(session, select(func.count(Agent.id)).where(Agent.created_at >= today)),
    }


def recent_activity(session: Session, *, limit: int = RECENT_ACTIVITY_LIMIT) -> dict[str, list[dict[str, Any]]]:
    projects = session.scalars(select(Project).order_by(Project.created_at.desc()).limit(limit)).all()
    agents = session.scalars(select(Agent).order_by(Agent.created_at.desc()).limit(limit)).all()
    return {
        "recentProjects": [
            {"id": str(project.id), "title": project.title, "createdAt": project.created_at.isoformat()}
            for project in projects
        ],
        "recentAgents": [
            {
                "id": str(agent.id),
                "type": agent.type.value,
                "status": agent.status.value,
                "createdAt": agent.created_at.isoformat(),
            }
            for agent in agents
        ],
    }

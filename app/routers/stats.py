from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db.deps import get_session
from app.services.stats import hero_stats, recent_activity

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("/hero")
def get_hero_stats(session: Session = Depends(get_session)):
    return hero_stats(session)


@router.get("/recent")
def get_recent_activity(session: Session = Depends(get_session)):
    return recent_activity(session)

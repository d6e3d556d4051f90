from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from app.auth.dependencies import AuthContext, get_current_user
from app.db.deps import get_session
from app.db.repositories.profiles import ProfilesRepository
from app.schemas.common import fields_from_payload
from app.schemas.profiles import PROFILE_FIELD_MAP, ProfileUpsertRequest

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("")
def get_profile(
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    profile = ProfilesRepository(session).get(user_id=auth.user_id)
    return jsonable_encoder(profile) if profile else None


@router.put("")
def upsert_profile(
    payload: ProfileUpsertRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    fields = fields_from_payload(payload, PROFILE_FIELD_MAP)
    fields.setdefault("links", list(payload.links))
    profile = ProfilesRepository(session).upsert(user_id=auth.user_id, **fields)
    return jsonable_encoder(profile)

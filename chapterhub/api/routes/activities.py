"""
chapterhub.api.routes.activities — Activities & participation
==============================================================
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import Engine
from sqlalchemy.orm import Session

from chapterhub.api.deps import CurrentActor, ExecutiveActor, get_engine, get_session
from chapterhub.database.engine import run_db
from chapterhub.services import activity_service
from chapterhub.services.activity_service import activity_to_dict, participation_to_dict

router = APIRouter(prefix="/activities", tags=["activities"])


class ActivityCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    activity_type: str
    activity_points: int = Field(0, ge=0)
    begins_at: datetime | None = None
    description: str | None = None


class ParticipationCreate(BaseModel):
    member_id: str
    is_temp: bool = False
    is_interested: bool = False
    rate: int | None = Field(None, ge=1, le=5)
    notes: str | None = None


class ParticipationUpdate(BaseModel):
    is_temp: bool | None = None
    is_interested: bool | None = None
    rate: int | None = Field(None, ge=1, le=5)
    notes: str | None = None


@router.get("")
def list_activities(
    actor: CurrentActor,
    session: Annotated[Session, Depends(get_session)],
):
    return [activity_to_dict(a) for a in activity_service.list_activities(session)]


@router.post("", status_code=201)
async def create_activity(
    body: ActivityCreate,
    actor: ExecutiveActor,
    engine: Annotated[Engine, Depends(get_engine)],
):
    activity = await run_db(activity_service.create_activity, engine, actor=actor, **body.model_dump())
    return activity_to_dict(activity)


@router.post("/{activity_id}/participants", status_code=201)
async def add_participant(
    activity_id: int,
    body: ParticipationCreate,
    actor: ExecutiveActor,
    engine: Annotated[Engine, Depends(get_engine)],
):
    participation = await run_db(
        activity_service.add_participation, engine,
        actor=actor, activity_id=activity_id, **body.model_dump(),
    )
    return participation_to_dict(participation)


@router.delete("/{activity_id}/participants/{member_id}")
async def remove_participant(
    activity_id: int,
    member_id: str,
    actor: ExecutiveActor,
    engine: Annotated[Engine, Depends(get_engine)],
):
    await run_db(
        activity_service.remove_participation, engine,
        actor=actor, activity_id=activity_id, member_id=member_id,
    )
    return {"removed": member_id}


@router.patch("/{activity_id}/participants/{member_id}")
async def update_participant(
    activity_id: int,
    member_id: str,
    body: ParticipationUpdate,
    actor: ExecutiveActor,
    engine: Annotated[Engine, Depends(get_engine)],
):
    """Edit rate / notes, or mark an interested participant present."""
    changes = body.model_dump(exclude_unset=True)
    for flag in ("is_temp", "is_interested"):
        if flag in changes and changes[flag] is None:
            del changes[flag]
    participation = await run_db(
        activity_service.update_participation, engine,
        actor=actor, activity_id=activity_id, member_id=member_id, changes=changes,
    )
    return participation_to_dict(participation)


@router.post("/{activity_id}/interest", status_code=201)
async def mark_interest(
    activity_id: int,
    actor: CurrentActor,
    engine: Annotated[Engine, Depends(get_engine)],
):
    """The caller marks themselves interested (no points until attended)."""
    participation = await run_db(
        activity_service.set_interest, engine,
        actor=actor, activity_id=activity_id, member_id=actor.member_id,
    )
    return participation_to_dict(participation)


@router.delete("/{activity_id}/interest")
async def withdraw_interest(
    activity_id: int,
    actor: CurrentActor,
    engine: Annotated[Engine, Depends(get_engine)],
):
    await run_db(
        activity_service.set_interest, engine,
        actor=actor, activity_id=activity_id, member_id=actor.member_id, interested=False,
    )
    return {"withdrawn": activity_id}

"""
chapterhub.api.routes.members — Registration & member profiles
===============================================================
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy import Engine
from sqlalchemy.orm import Session

from chapterhub.api.deps import (
    CurrentActor,
    ExecutiveActor,
    get_engine,
    get_session,
    get_token_payload,
)
from chapterhub.database.engine import run_db
from chapterhub.services import member_service, points_service
from chapterhub.services.member_service import member_to_dict

router = APIRouter(prefix="/members", tags=["members"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class RegisterRequest(BaseModel):
    display_name: str = Field(min_length=1, max_length=100)
    email: str | None = None


class MemberUpdate(BaseModel):
    display_name: str | None = None
    email: str | None = None
    description: str | None = None
    strengths: list[str] | None = None
    weaknesses: list[str] | None = None
    role: str | None = None
    is_validated: bool | None = None
    cotisation_s1: bool | None = None
    cotisation_s2: bool | None = None
    points: int | None = None
    advisor_id: str | None = None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------
@router.post("/me", status_code=201)
async def register_me(
    body: RegisterRequest,
    payload: Annotated[dict, Depends(get_token_payload)],
    engine: Annotated[Engine, Depends(get_engine)],
):
    """Create the caller's member profile (pending validation)."""
    member = await run_db(
        member_service.register_member,
        engine,
        member_id=str(payload["sub"]),
        display_name=body.display_name,
        email=body.email,
    )
    return member_to_dict(member)


@router.get("")
def list_members(
    actor: CurrentActor,
    session: Annotated[Session, Depends(get_session)],
    role: str | None = Query(None),
    validated: bool | None = Query(None),
):
    members = member_service.list_members(session, role=role, validated=validated)
    return [member_to_dict(m) for m in members]


@router.get("/{member_id}")
def get_member(
    member_id: str,
    actor: CurrentActor,
    session: Annotated[Session, Depends(get_session)],
):
    member = member_service.get_member(session, member_id)
    rank = points_service.compute_rank(session, member.points)
    return member_to_dict(member, rank=rank)


@router.patch("/{member_id}")
async def update_member(
    member_id: str,
    body: MemberUpdate,
    actor: CurrentActor,
    engine: Annotated[Engine, Depends(get_engine)],
):
    member = await run_db(
        member_service.update_member,
        engine,
        actor=actor,
        member_id=member_id,
        changes=body.model_dump(exclude_unset=True),
    )
    return member_to_dict(member)


@router.post("/{member_id}/validate")
async def validate_member(
    member_id: str,
    actor: ExecutiveActor,
    engine: Annotated[Engine, Depends(get_engine)],
):
    member = await run_db(member_service.validate_member, engine, actor=actor, member_id=member_id)
    return member_to_dict(member)


@router.delete("/{member_id}")
async def delete_member(
    member_id: str,
    actor: ExecutiveActor,
    engine: Annotated[Engine, Depends(get_engine)],
):
    await run_db(member_service.delete_member, engine, actor=actor, member_id=member_id)
    return {"deleted": member_id}


@router.get("/{member_id}/advisees")
def list_advisees(
    member_id: str,
    actor: CurrentActor,
    session: Annotated[Session, Depends(get_session)],
):
    return [member_to_dict(m) for m in member_service.list_advisees(session, member_id)]

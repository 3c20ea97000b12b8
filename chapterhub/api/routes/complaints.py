"""
chapterhub.api.routes.complaints — Member complaints
=====================================================
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy import Engine
from sqlalchemy.orm import Session

from chapterhub.api.deps import CurrentActor, ExecutiveActor, get_engine, get_session
from chapterhub.database.engine import run_db
from chapterhub.services import complaint_service
from chapterhub.services.complaint_service import complaint_to_dict

router = APIRouter(tags=["complaints"])


class ComplaintCreate(BaseModel):
    content: str = Field(min_length=1)


class ComplaintStatusUpdate(BaseModel):
    status: str


@router.post("/members/{member_id}/complaints", status_code=201)
async def file_complaint(
    member_id: str,
    body: ComplaintCreate,
    actor: CurrentActor,
    engine: Annotated[Engine, Depends(get_engine)],
):
    complaint = await run_db(
        complaint_service.add_complaint, engine,
        actor=actor, member_id=member_id, content=body.content,
    )
    return complaint_to_dict(complaint)


@router.get("/complaints")
def list_complaints(
    actor: CurrentActor,
    session: Annotated[Session, Depends(get_session)],
    member_id: str | None = Query(None),
    status: str | None = Query(None),
):
    complaints = complaint_service.list_complaints(
        session, actor=actor, member_id=member_id, status=status,
    )
    return [complaint_to_dict(c) for c in complaints]


@router.patch("/complaints/{complaint_id}")
async def update_complaint(
    complaint_id: int,
    body: ComplaintStatusUpdate,
    actor: ExecutiveActor,
    engine: Annotated[Engine, Depends(get_engine)],
):
    complaint = await run_db(
        complaint_service.set_complaint_status, engine,
        actor=actor, complaint_id=complaint_id, status=body.status,
    )
    return complaint_to_dict(complaint)

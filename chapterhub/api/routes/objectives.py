"""
chapterhub.api.routes.objectives — Objective catalogue & assignments
=====================================================================
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import Engine
from sqlalchemy.orm import Session

from chapterhub.api.deps import CurrentActor, ExecutiveActor, get_engine, get_session
from chapterhub.database.engine import run_db
from chapterhub.engine.objectives import GROUPS_WITHOUT_PRIVACY, Difficulty, taxonomy_as_dict
from chapterhub.services import objective_service
from chapterhub.services.objective_service import assignment_to_dict, objective_to_dict

router = APIRouter(tags=["objectives"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class ObjectiveCreate(BaseModel):
    group: str
    action: str
    feature: str
    title: str | None = None
    target: int = Field(1, ge=1)
    points: int = Field(0, ge=0)
    difficulty: str | None = None  # None or "auto" → derived from target
    privacy: str | None = None
    target_roles: list[str] = Field(default_factory=list)


class ProgressUpdate(BaseModel):
    progress: int


class ProgressStep(BaseModel):
    step: int = 1


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------
@router.get("/objectives/taxonomy")
def get_taxonomy():
    """Legal group → action → feature combinations for the creation form."""
    return {
        "taxonomy": taxonomy_as_dict(),
        "groups_without_privacy": sorted(g.value for g in GROUPS_WITHOUT_PRIVACY),
        "difficulties": [d.value for d in Difficulty],
    }


@router.get("/objectives")
def list_objectives(
    actor: CurrentActor,
    session: Annotated[Session, Depends(get_session)],
):
    return [objective_to_dict(o) for o in objective_service.list_objectives(session)]


@router.post("/objectives", status_code=201)
async def create_objective(
    body: ObjectiveCreate,
    actor: ExecutiveActor,
    engine: Annotated[Engine, Depends(get_engine)],
):
    obj = await run_db(objective_service.create_objective, engine, actor=actor, **body.model_dump())
    return objective_to_dict(obj)


@router.delete("/objectives/{objective_id}")
async def delete_objective(
    objective_id: int,
    actor: ExecutiveActor,
    engine: Annotated[Engine, Depends(get_engine)],
):
    await run_db(objective_service.delete_objective, engine, actor=actor, objective_id=objective_id)
    return {"deleted": objective_id}


# ---------------------------------------------------------------------------
# Member assignments
# ---------------------------------------------------------------------------
@router.get("/members/{member_id}/objectives")
def member_objectives(
    member_id: str,
    actor: CurrentActor,
    session: Annotated[Session, Depends(get_session)],
):
    return [s.to_dict() for s in objective_service.list_for_member(session, member_id)]


@router.post("/members/{member_id}/objectives/{objective_id}", status_code=201)
async def assign_objective(
    member_id: str,
    objective_id: int,
    actor: CurrentActor,
    engine: Annotated[Engine, Depends(get_engine)],
):
    uo = await run_db(
        objective_service.assign, engine,
        actor=actor, member_id=member_id, objective_id=objective_id,
    )
    return assignment_to_dict(uo)


@router.delete("/members/{member_id}/objectives/{objective_id}")
async def unassign_objective(
    member_id: str,
    objective_id: int,
    actor: CurrentActor,
    engine: Annotated[Engine, Depends(get_engine)],
):
    await run_db(
        objective_service.unassign, engine,
        actor=actor, member_id=member_id, objective_id=objective_id,
    )
    return {"unassigned": objective_id}


@router.put("/members/{member_id}/objectives/{objective_id}/progress")
async def set_progress(
    member_id: str,
    objective_id: int,
    body: ProgressUpdate,
    actor: ExecutiveActor,
    engine: Annotated[Engine, Depends(get_engine)],
):
    uo = await run_db(
        objective_service.update_progress, engine,
        actor=actor, member_id=member_id, objective_id=objective_id, progress=body.progress,
    )
    return assignment_to_dict(uo)


@router.post("/members/{member_id}/objectives/{objective_id}/step")
async def step_progress(
    member_id: str,
    objective_id: int,
    body: ProgressStep,
    actor: ExecutiveActor,
    engine: Annotated[Engine, Depends(get_engine)],
):
    uo = await run_db(
        objective_service.step_progress, engine,
        actor=actor, member_id=member_id, objective_id=objective_id, step=body.step,
    )
    return assignment_to_dict(uo)

"""
chapterhub.api.routes.points — Ledger, aggregates, rank & leaderboards
=======================================================================
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy import Engine
from sqlalchemy.orm import Session

from chapterhub.api.deps import CurrentActor, get_config, get_engine, get_session
from chapterhub.config import ChapterHubConfig
from chapterhub.constants import PointsSource, Window
from chapterhub.database.engine import run_db
from chapterhub.database.models import PointsHistory
from chapterhub.engine.windows import parse_window
from chapterhub.services import member_service, points_service

router = APIRouter(tags=["points"])


class ManualGrantRequest(BaseModel):
    delta: int
    description: str = Field(min_length=1)


def _entry_to_dict(entry: PointsHistory) -> dict:
    return {
        "id": entry.id,
        "member_id": entry.member_id,
        "points": entry.points,
        "source_type": entry.source_type,
        "description": entry.description,
        "created_at": entry.created_at.isoformat() if entry.created_at else None,
    }


@router.post("/members/{member_id}/points")
async def grant_points(
    member_id: str,
    body: ManualGrantRequest,
    actor: CurrentActor,
    engine: Annotated[Engine, Depends(get_engine)],
):
    """Manual executive adjustment.  A zero delta writes nothing."""
    entry = await run_db(
        points_service.grant,
        engine,
        member_id=member_id,
        delta=body.delta,
        description=body.description,
        source_type=PointsSource.MANUAL,
        actor=actor,
    )
    return {"entry": _entry_to_dict(entry) if entry else None}


@router.get("/members/{member_id}/points/history")
def points_history(
    member_id: str,
    actor: CurrentActor,
    session: Annotated[Session, Depends(get_session)],
):
    return [_entry_to_dict(e) for e in points_service.get_history(session, member_id)]


@router.get("/members/{member_id}/points/aggregate")
def points_aggregate(
    member_id: str,
    actor: CurrentActor,
    session: Annotated[Session, Depends(get_session)],
    cfg: Annotated[ChapterHubConfig, Depends(get_config)],
    window: str = Query(Window.ALL.value),
):
    win = parse_window(window)
    total = points_service.get_aggregate(session, member_id, win, tz=cfg.timezone)
    return {"member_id": member_id, "window": win.value, "points": total}


@router.get("/members/{member_id}/points/series")
def points_series(
    member_id: str,
    actor: CurrentActor,
    session: Annotated[Session, Depends(get_session)],
    cfg: Annotated[ChapterHubConfig, Depends(get_config)],
    window: str = Query(Window.MONTH.value),
):
    win = parse_window(window)
    series = points_service.get_series(session, member_id, win, tz=cfg.timezone)
    return {"member_id": member_id, "window": win.value, "series": series}


@router.get("/members/{member_id}/rank")
def member_rank(
    member_id: str,
    actor: CurrentActor,
    session: Annotated[Session, Depends(get_session)],
):
    rank = points_service.get_member_rank(session, member_id)
    return {
        "member_id": member_id,
        "points": member_service.get_member(session, member_id).points,
        "rank": rank,
    }


@router.get("/rank")
def rank_for_points(
    actor: CurrentActor,
    session: Annotated[Session, Depends(get_session)],
    points: int = Query(...),
):
    return {"points": points, "rank": points_service.compute_rank(session, points)}


@router.get("/leaderboard")
def leaderboard(
    actor: CurrentActor,
    session: Annotated[Session, Depends(get_session)],
    cfg: Annotated[ChapterHubConfig, Depends(get_config)],
    window: str = Query(Window.MONTH.value),
    limit: int | None = Query(None, ge=1, le=100),
    include_executives: bool = Query(False),
):
    """Top progressors inside *window* (executives hidden by default)."""
    win = parse_window(window)
    rows = points_service.get_leaderboard(
        session,
        win,
        exclude_roles=() if include_executives else cfg.leaderboard_exclude_roles,
        limit=limit or cfg.leaderboard_size,
        tz=cfg.timezone,
    )
    return {"window": win.value, "entries": [r.to_dict() for r in rows]}


@router.get("/leaderboard/by-role")
def top_performers_by_role(
    actor: CurrentActor,
    session: Annotated[Session, Depends(get_session)],
    cfg: Annotated[ChapterHubConfig, Depends(get_config)],
):
    """Highest all-time total in each role."""
    rows = points_service.top_by_role(session, exclude_roles=cfg.top_by_role_exclude_roles)
    return {"entries": [r.to_dict() for r in rows]}

"""
chapterhub.api.routes.admin — Audit trail, live logs & reconciliation
======================================================================
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy import Engine

from chapterhub.api.deps import ExecutiveActor, get_engine
from chapterhub.database.engine import run_db
from chapterhub.services import admin_service, reconciliation_service
from chapterhub.services.log_buffer import (
    VALID_LEVELS,
    get_capture_level,
    get_logs,
    set_capture_level,
)

router = APIRouter(prefix="/admin", tags=["admin"])


class LogLevelUpdate(BaseModel):
    level: str


@router.get("/audit")
def get_audit_log(
    actor: ExecutiveActor,
    engine: Annotated[Engine, Depends(get_engine)],
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    target_table: str | None = Query(None),
    actor_id: str | None = Query(None),
):
    """Paginated admin audit log, newest first."""
    entries = admin_service.list_audit_log(
        engine, actor=actor, limit=limit, offset=offset,
        target_table=target_table, actor_id=actor_id,
    )
    return {"entries": entries, "limit": limit, "offset": offset}


@router.get("/logs")
def get_live_logs(
    actor: ExecutiveActor,
    tail: int = Query(200, ge=1, le=5000),
    level: str | None = Query(None),
    logger_filter: str | None = Query(None, alias="logger"),
):
    """Recent log entries from the in-memory ring buffer."""
    if level and level.upper() not in VALID_LEVELS:
        raise HTTPException(400, detail=f"Invalid level. Must be one of: {', '.join(VALID_LEVELS)}")
    entries = get_logs(tail=tail, level=level, logger_filter=logger_filter)
    return {
        "entries": entries,
        "total": len(entries),
        "capture_level": get_capture_level(),
        "valid_levels": list(VALID_LEVELS),
    }


@router.put("/logs/level")
def change_log_level(body: LogLevelUpdate, actor: ExecutiveActor):
    """Change the capture level of the ring-buffer handler on the fly."""
    if body.level.upper() not in VALID_LEVELS:
        raise HTTPException(400, detail=f"Invalid level. Must be one of: {', '.join(VALID_LEVELS)}")
    return {"level": set_capture_level(body.level)}


@router.post("/reconcile")
async def reconcile(actor: ExecutiveActor, engine: Annotated[Engine, Depends(get_engine)]):
    """Realign every member's cached total with the points ledger."""
    return await run_db(reconciliation_service.reconcile_points, engine, actor=actor)

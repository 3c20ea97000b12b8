"""
chapterhub.services.admin_service — Audit Trail Helpers
========================================================

Every executive mutation writes one ``admin_log`` row inside the same
transaction as the change itself:
  1. Begin transaction
  2. Read "before" snapshot
  3. Apply change
  4. Write admin_log with before/after JSON
  5. Commit
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from chapterhub.database.models import AdminLog, AdminActionType
from chapterhub.engine.policy import Action, Actor, authorize

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Generic audit helpers
# ---------------------------------------------------------------------------
def row_to_dict(obj: Any) -> dict | None:
    """Convert a SQLAlchemy model instance to a JSON-serializable dict."""
    if obj is None:
        return None
    result = {}
    for col in obj.__table__.columns:
        val = getattr(obj, col.key, None)
        if isinstance(val, datetime):
            val = val.isoformat()
        result[col.name] = val
    return result


def log_admin_action(
    session: Session,
    *,
    actor_id: str,
    action_type: str,
    target_table: str,
    target_id: str | None,
    before: dict | None,
    after: dict | None,
    reason: str | None = None,
) -> None:
    """Insert a row into admin_log within the current transaction."""
    session.add(AdminLog(
        actor_id=actor_id,
        action_type=action_type,
        target_table=target_table,
        target_id=target_id,
        before_snapshot=before,
        after_snapshot=after,
        reason=reason,
    ))


def audited_create(session: Session, row: Any, *, table_name: str, actor_id: str) -> Any:
    """Add *row*, flush to obtain its id, and log a CREATE."""
    session.add(row)
    session.flush()
    log_admin_action(
        session,
        actor_id=actor_id,
        action_type=AdminActionType.CREATE,
        target_table=table_name,
        target_id=str(row.id),
        before=None,
        after=row_to_dict(row),
    )
    return row


def audited_delete(session: Session, row: Any, *, table_name: str, actor_id: str) -> None:
    """Log a DELETE with the row's last state, then delete it."""
    log_admin_action(
        session,
        actor_id=actor_id,
        action_type=AdminActionType.DELETE,
        target_table=table_name,
        target_id=str(row.id),
        before=row_to_dict(row),
        after=None,
    )
    session.delete(row)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def list_audit_log(
    engine: Engine,
    *,
    actor: Actor,
    limit: int = 50,
    offset: int = 0,
    target_table: str | None = None,
    actor_id: str | None = None,
) -> list[dict]:
    """Newest-first page of the audit trail (executives only)."""
    authorize(actor, Action.VIEW_AUDIT)
    with Session(engine) as session:
        stmt = select(AdminLog)
        if target_table:
            stmt = stmt.where(AdminLog.target_table == target_table)
        if actor_id:
            stmt = stmt.where(AdminLog.actor_id == actor_id)
        stmt = stmt.order_by(AdminLog.id.desc()).offset(offset).limit(limit)
        return [row_to_dict(row) for row in session.scalars(stmt).all()]

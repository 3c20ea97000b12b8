"""
chapterhub.services.reconciliation_service — Ledger / Total Reconciliation
===========================================================================

``members.points`` is a cache of ``sum(points_history.points)``.  Grants
keep the two in step inside one transaction; this job is the safety net
for anything that bypassed the points service (manual SQL, restores).

How it works:
    1. ``SUM(points)`` from ``points_history`` grouped by member.
    2. Compare against each member's stored ``points``.
    3. On mismatch, overwrite the stored total with the ledger sum.
    4. Log every correction at WARNING and in ``admin_log``.

The ledger is the source of truth; it is never modified here.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import Engine, func, select, update
from sqlalchemy.orm import Session

from chapterhub.database.engine import get_session
from chapterhub.database.models import AdminActionType, Member, PointsHistory
from chapterhub.engine.policy import Action, Actor, authorize
from chapterhub.errors import ConsistencyError, NotFoundError
from chapterhub.services.admin_service import log_admin_action

logger = logging.getLogger(__name__)

# Scheduled and operator-run reconciliations act as this executive identity.
SYSTEM_ACTOR = Actor(member_id="system", role="admin", executive=True)


def ledger_sum(session: Session, member_id: str) -> int:
    return int(session.scalar(
        select(func.coalesce(func.sum(PointsHistory.points), 0)).where(
            PointsHistory.member_id == member_id
        )
    ) or 0)


def verify_member(session: Session, member_id: str) -> int:
    """Return the member's total, raising if it disagrees with the ledger.

    Raises
    ------
    NotFoundError
        Unknown member.
    ConsistencyError
        Cached total differs from the ledger sum.
    """
    member = session.get(Member, member_id)
    if member is None:
        raise NotFoundError(f"Member {member_id} not found")
    actual = ledger_sum(session, member_id)
    if member.points != actual:
        raise ConsistencyError(
            f"Member {member_id} total is {member.points} but ledger sums to {actual}"
        )
    return actual


def reconcile_points(engine: Engine, *, actor: Actor = SYSTEM_ACTOR) -> dict:
    """Compare every member's total to the ledger and fix drift.

    Returns ``{"checked": N, "corrected": M, "corrections": [...], "timestamp": ...}``.

    Raises
    ------
    AuthorizationError
        *actor* is not allowed to reconcile.
    """
    authorize(actor, Action.RECONCILE)
    corrections: list[dict] = []

    with get_session(engine) as session:
        truth: dict[str, int] = {
            row.member_id: int(row.actual)
            for row in session.execute(
                select(
                    PointsHistory.member_id,
                    func.sum(PointsHistory.points).label("actual"),
                ).group_by(PointsHistory.member_id)
            ).all()
        }
        members = session.execute(select(Member.id, Member.points)).all()

        for member_id, stored in members:
            actual = truth.get(member_id, 0)
            if stored == actual:
                continue
            corrections.append({
                "member_id": member_id,
                "stored": stored,
                "actual": actual,
                "diff": actual - stored,
            })
            session.execute(
                update(Member).where(Member.id == member_id).values(points=actual)
            )
            log_admin_action(
                session,
                actor_id=actor.member_id,
                action_type=AdminActionType.RECONCILE,
                target_table="members",
                target_id=member_id,
                before={"points": stored},
                after={"points": actual},
                reason="Cached total did not match the points ledger",
            )

    checked = len(members)
    if corrections:
        logger.warning(
            "Points reconciliation: corrected %d/%d members: %s",
            len(corrections), checked, corrections,
        )
    else:
        logger.info("Points reconciliation: all %d members match", checked)

    return {
        "checked": checked,
        "corrected": len(corrections),
        "corrections": corrections,
        "timestamp": datetime.now(UTC).isoformat(),
    }

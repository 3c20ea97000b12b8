"""
chapterhub.services.points_service — Points Ledger, Aggregates & Rank
======================================================================

The only module that writes ``points_history`` or ``members.points``.
Each grant appends one ledger row and moves the member's cached total by
the same delta in one transaction; the increment is computed by the
database (``points = points + :delta``) so two concurrent grants cannot
overwrite each other.

Reads (history, window aggregates, chart series, leaderboards, rank) are
recomputed from the ledger on every call.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import Engine, func, select, update
from sqlalchemy.orm import Session

from chapterhub.constants import DEFAULT_TOP_BY_ROLE_EXCLUDE, PointsSource, Window
from chapterhub.database.models import AdminActionType, Member, PointsHistory
from chapterhub.engine.policy import Action, Actor, authorize
from chapterhub.engine.ranking import LeaderboardRow, rank_leaderboard, top_per_role
from chapterhub.engine.windows import as_utc, buckets_for, fill_buckets, parse_window, window_start
from chapterhub.errors import NotFoundError, ValidationError
from chapterhub.services.admin_service import log_admin_action, row_to_dict

logger = logging.getLogger(__name__)

__all__ = [
    "compute_rank",
    "get_aggregate",
    "get_history",
    "get_leaderboard",
    "get_member_rank",
    "get_series",
    "grant",
    "grant_in_session",
    "top_by_role",
]


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def _parse_source(source_type: str | PointsSource) -> PointsSource:
    try:
        return PointsSource(source_type)
    except ValueError as exc:
        raise ValidationError(f"Unknown points source: {source_type!r}") from exc


def grant_in_session(
    session: Session,
    *,
    member_id: str,
    delta: int,
    description: str,
    source_type: str | PointsSource,
    actor: Actor | None = None,
) -> PointsHistory | None:
    """Append a ledger row and move the cached total, without committing.

    Used by other services that must grant points in the same transaction
    as their own change (objective completion, activity participation).
    Returns ``None`` and writes nothing when *delta* is zero.

    Raises
    ------
    ValidationError
        Non-integer delta, unknown source or blank description.
    AuthorizationError
        A manual grant whose actor is not executive.
    NotFoundError
        *member_id* does not exist.
    """
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise ValidationError(f"Points delta must be an integer, got {delta!r}")
    if delta == 0:
        return None

    source = _parse_source(source_type)
    text = (description or "").strip()
    if not text:
        raise ValidationError("A points grant needs a description")
    if source is PointsSource.MANUAL:
        authorize(actor, Action.GRANT_MANUAL_POINTS, subject_id=member_id)

    if session.get(Member, member_id) is None:
        raise NotFoundError(f"Member {member_id} not found")

    entry = PointsHistory(
        member_id=member_id,
        points=delta,
        source_type=source.value,
        description=text,
    )
    session.add(entry)
    session.execute(
        update(Member)
        .where(Member.id == member_id)
        .values(points=Member.points + delta)
    )
    session.flush()

    if source is PointsSource.MANUAL:
        log_admin_action(
            session,
            actor_id=actor.member_id,
            action_type=AdminActionType.MANUAL_GRANT,
            target_table="points_history",
            target_id=str(entry.id),
            before=None,
            after=row_to_dict(entry),
            reason=text,
        )

    logger.info(
        "Points %+d for member %s (%s): %s", delta, member_id, source.value, text,
    )
    return entry


def grant(
    engine: Engine,
    *,
    member_id: str,
    delta: int,
    description: str,
    source_type: str | PointsSource,
    actor: Actor | None = None,
) -> PointsHistory | None:
    """Grant (or deduct, when negative) *delta* points to a member.

    See :func:`grant_in_session` for the rules; this wrapper owns the
    transaction.
    """
    with Session(engine, expire_on_commit=False) as session:
        entry = grant_in_session(
            session,
            member_id=member_id,
            delta=delta,
            description=description,
            source_type=source_type,
            actor=actor,
        )
        session.commit()
        if entry is not None:
            session.refresh(entry)
            session.expunge(entry)
        return entry


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_history(session: Session, member_id: str) -> list[PointsHistory]:
    """All ledger rows of a member, newest first.  Unknown member → ``[]``."""
    stmt = (
        select(PointsHistory)
        .where(PointsHistory.member_id == member_id)
        .order_by(PointsHistory.created_at.desc(), PointsHistory.id.desc())
    )
    return list(session.scalars(stmt).all())


def get_aggregate(
    session: Session,
    member_id: str,
    window: Window | str,
    *,
    now: datetime | None = None,
    tz: str = "UTC",
) -> int:
    """Sum of a member's ledger rows inside *window*."""
    stmt = select(func.coalesce(func.sum(PointsHistory.points), 0)).where(
        PointsHistory.member_id == member_id
    )
    start = window_start(window, now, tz)
    if start is not None:
        stmt = stmt.where(PointsHistory.created_at >= start)
    return int(session.scalar(stmt) or 0)


def get_series(
    session: Session,
    member_id: str,
    window: Window | str,
    *,
    now: datetime | None = None,
    tz: str = "UTC",
) -> list[dict]:
    """Per-bucket point sums for the progress chart."""
    window = parse_window(window)
    first_year = None
    if window is Window.ALL:
        earliest = session.scalar(
            select(func.min(PointsHistory.created_at)).where(
                PointsHistory.member_id == member_id
            )
        )
        if earliest is not None:
            first_year = as_utc(earliest).year

    buckets = buckets_for(window, now, tz, first_year=first_year)
    rows = session.execute(
        select(PointsHistory.created_at, PointsHistory.points).where(
            PointsHistory.member_id == member_id,
            PointsHistory.created_at >= buckets[0].start,
            PointsHistory.created_at < buckets[-1].end,
        )
    ).all()
    return fill_buckets(buckets, ((ts, pts) for ts, pts in rows))


def get_leaderboard(
    session: Session,
    window: Window | str,
    *,
    exclude_roles: Iterable[str] = (),
    limit: int = 5,
    now: datetime | None = None,
    tz: str = "UTC",
) -> list[LeaderboardRow]:
    """Members who gained the most points inside *window*."""
    window_sum = func.sum(PointsHistory.points)
    stmt = (
        select(Member.id, Member.display_name, Member.role, window_sum)
        .join(PointsHistory, PointsHistory.member_id == Member.id)
        .group_by(Member.id, Member.display_name, Member.role)
    )
    start = window_start(window, now, tz)
    if start is not None:
        stmt = stmt.where(PointsHistory.created_at >= start)

    rows = (
        LeaderboardRow(member_id=mid, display_name=name, role=role, points=int(total or 0))
        for mid, name, role, total in session.execute(stmt).all()
    )
    return rank_leaderboard(rows, exclude_roles=exclude_roles, limit=limit)


def top_by_role(
    session: Session,
    *,
    exclude_roles: Iterable[str] = DEFAULT_TOP_BY_ROLE_EXCLUDE,
) -> list[LeaderboardRow]:
    """Highest cumulative total in each role (all-time, from ``members.points``)."""
    rows = (
        LeaderboardRow(member_id=mid, display_name=name, role=role, points=points)
        for mid, name, role, points in session.execute(
            select(Member.id, Member.display_name, Member.role, Member.points)
        ).all()
    )
    return top_per_role(rows, exclude_roles=exclude_roles)


def compute_rank(session: Session, points: int) -> int:
    """``1 + count(members with strictly more points)``."""
    higher = session.scalar(
        select(func.count()).select_from(Member).where(Member.points > points)
    )
    return 1 + int(higher or 0)


def get_member_rank(session: Session, member_id: str) -> int:
    member = session.get(Member, member_id)
    if member is None:
        raise NotFoundError(f"Member {member_id} not found")
    return compute_rank(session, member.points)

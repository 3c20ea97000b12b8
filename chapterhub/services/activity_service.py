"""
chapterhub.services.activity_service — Activities & Participation Rewards
==========================================================================

Recording that a member took part in an activity grants the activity's
points (source ``activity``) in the same transaction.  Temporary
registrations and interest-only marks earn nothing.  Members may mark
their own interest; executives later mark them present, which grants the
points then.  Whenever a participation changes, ``points_awarded`` is
settled against what it should now earn, so the ledger always nets to the
current state.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from chapterhub.constants import ActivityType, PointsSource
from chapterhub.database.models import Activity, ActivityParticipant, Member
from chapterhub.engine.policy import Action, Actor, authorize
from chapterhub.errors import NotFoundError, ValidationError
from chapterhub.services.admin_service import audited_create
from chapterhub.services.points_service import grant_in_session

logger = logging.getLogger(__name__)


def activity_to_dict(activity: Activity) -> dict:
    return {
        "id": activity.id,
        "name": activity.name,
        "activity_type": activity.activity_type,
        "description": activity.description,
        "activity_points": activity.activity_points,
        "begins_at": activity.begins_at.isoformat() if activity.begins_at else None,
        "created_by": activity.created_by,
    }


def participation_to_dict(p: ActivityParticipant) -> dict:
    return {
        "activity_id": p.activity_id,
        "member_id": p.member_id,
        "is_temp": p.is_temp,
        "is_interested": p.is_interested,
        "rate": p.rate,
        "notes": p.notes,
        "points_awarded": p.points_awarded,
        "registered_at": p.registered_at.isoformat() if p.registered_at else None,
    }


def list_activities(session: Session) -> list[Activity]:
    stmt = select(Activity).order_by(Activity.begins_at.desc(), Activity.id.desc())
    return list(session.scalars(stmt).all())


def create_activity(
    engine: Engine,
    *,
    actor: Actor,
    name: str,
    activity_type: str,
    activity_points: int = 0,
    begins_at: datetime | None = None,
    description: str | None = None,
) -> Activity:
    authorize(actor, Action.MANAGE_ACTIVITIES)
    title = (name or "").strip()
    if not title:
        raise ValidationError("Activity name is required")
    try:
        kind = ActivityType(activity_type)
    except ValueError as exc:
        raise ValidationError(f"Unknown activity type: {activity_type!r}") from exc
    if activity_points < 0:
        raise ValidationError("Activity points cannot be negative")

    with Session(engine, expire_on_commit=False) as session:
        activity = audited_create(
            session,
            Activity(
                name=title,
                activity_type=kind.value,
                activity_points=activity_points,
                begins_at=begins_at,
                description=description,
                created_by=actor.member_id,
            ),
            table_name="activities",
            actor_id=actor.member_id,
        )
        session.commit()
        session.refresh(activity)
        session.expunge(activity)

    logger.info("Activity %d (%s) created by %s", activity.id, title, actor.member_id)
    return activity


# ---------------------------------------------------------------------------
# Participation
# ---------------------------------------------------------------------------
PARTICIPATION_FIELDS: frozenset[str] = frozenset({"is_temp", "is_interested", "rate", "notes"})


def _check_rate(rate: int | None) -> None:
    if rate is not None and (isinstance(rate, bool) or not isinstance(rate, int) or not 1 <= rate <= 5):
        raise ValidationError("Rate must be between 1 and 5")


def _earned(activity: Activity, participation: ActivityParticipant) -> int:
    """Points a participation is worth in its current state."""
    if participation.is_temp or participation.is_interested:
        return 0
    return max(activity.activity_points, 0)


def _settle(session: Session, activity: Activity, participation: ActivityParticipant) -> int:
    """Grant or deduct the gap between what was awarded and what is earned now."""
    delta = _earned(activity, participation) - participation.points_awarded
    if delta > 0:
        description = f"Participation in activity: {activity.name}"
    else:
        description = f"Cancelled participation in activity: {activity.name}"
    grant_in_session(
        session,
        member_id=participation.member_id,
        delta=delta,
        description=description,
        source_type=PointsSource.ACTIVITY,
    )
    participation.points_awarded += delta
    return delta


def _find_participation(session: Session, activity_id: int, member_id: str) -> ActivityParticipant | None:
    return session.scalar(
        select(ActivityParticipant).where(
            ActivityParticipant.activity_id == activity_id,
            ActivityParticipant.member_id == member_id,
        )
    )


def _load_targets(session: Session, activity_id: int, member_id: str) -> Activity:
    activity = session.get(Activity, activity_id)
    if activity is None:
        raise NotFoundError(f"Activity {activity_id} not found")
    if session.get(Member, member_id) is None:
        raise NotFoundError(f"Member {member_id} not found")
    return activity


def add_participation(
    engine: Engine,
    *,
    actor: Actor,
    activity_id: int,
    member_id: str,
    is_temp: bool = False,
    is_interested: bool = False,
    rate: int | None = None,
    notes: str | None = None,
) -> ActivityParticipant:
    """Record a participation and grant the activity's points when earned."""
    authorize(actor, Action.RECORD_PARTICIPATION, subject_id=member_id)
    _check_rate(rate)

    with Session(engine, expire_on_commit=False) as session:
        activity = _load_targets(session, activity_id, member_id)
        if _find_participation(session, activity_id, member_id) is not None:
            raise ValidationError(f"Member {member_id} already takes part in activity {activity_id}")

        participation = ActivityParticipant(
            activity_id=activity_id,
            member_id=member_id,
            is_temp=is_temp,
            is_interested=is_interested,
            rate=rate,
            notes=notes,
            points_awarded=0,
        )
        session.add(participation)
        session.flush()
        _settle(session, activity, participation)

        session.commit()
        session.refresh(participation)
        session.expunge(participation)

    logger.info("Member %s joined activity %d", member_id, activity_id)
    return participation


def update_participation(
    engine: Engine,
    *,
    actor: Actor,
    activity_id: int,
    member_id: str,
    changes: dict[str, Any],
) -> ActivityParticipant:
    """Change rate, notes or attendance flags of a participation.

    Marking an interested or temporary participant present grants the
    activity's points; turning a present participant back into an
    interested or temporary one deducts what was awarded.
    """
    authorize(actor, Action.RECORD_PARTICIPATION, subject_id=member_id)
    unknown = set(changes) - PARTICIPATION_FIELDS
    if unknown:
        raise ValidationError(f"Unknown participation fields: {sorted(unknown)}")
    for flag in ("is_temp", "is_interested"):
        if flag in changes and not isinstance(changes[flag], bool):
            raise ValidationError(f"{flag} must be true or false")
    if "rate" in changes:
        _check_rate(changes["rate"])

    with Session(engine, expire_on_commit=False) as session:
        participation = _find_participation(session, activity_id, member_id)
        if participation is None:
            raise NotFoundError(f"Member {member_id} is not registered for activity {activity_id}")
        activity = participation.activity

        for field, value in changes.items():
            setattr(participation, field, value)
        session.flush()
        delta = _settle(session, activity, participation)

        session.commit()
        session.refresh(participation)
        session.expunge(participation)

    logger.info(
        "Participation of %s in activity %d updated by %s (%+d points)",
        member_id, activity_id, actor.member_id, delta,
    )
    return participation


def set_interest(
    engine: Engine,
    *,
    actor: Actor,
    activity_id: int,
    member_id: str,
    interested: bool = True,
) -> ActivityParticipant | None:
    """Mark or withdraw a member's interest in an upcoming activity.

    Marking creates an interest-only participation worth no points.
    Withdrawing removes it, but only while it is still interest-only; a
    confirmed attendance can only be removed by an executive.
    """
    authorize(actor, Action.MARK_INTEREST, subject_id=member_id)

    with Session(engine, expire_on_commit=False) as session:
        _load_targets(session, activity_id, member_id)
        participation = _find_participation(session, activity_id, member_id)

        if not interested:
            if participation is None:
                raise NotFoundError(f"Member {member_id} is not registered for activity {activity_id}")
            if not participation.is_interested or participation.points_awarded:
                raise ValidationError("Attendance is confirmed; ask an executive to remove it")
            session.delete(participation)
            session.commit()
            logger.info("Member %s withdrew interest in activity %d", member_id, activity_id)
            return None

        if participation is not None:
            raise ValidationError(f"Member {member_id} already takes part in activity {activity_id}")
        participation = ActivityParticipant(
            activity_id=activity_id,
            member_id=member_id,
            is_interested=True,
            points_awarded=0,
        )
        session.add(participation)
        session.commit()
        session.refresh(participation)
        session.expunge(participation)

    logger.info("Member %s is interested in activity %d", member_id, activity_id)
    return participation


def remove_participation(engine: Engine, *, actor: Actor, activity_id: int, member_id: str) -> None:
    """Cancel a participation, deducting whatever it earned."""
    authorize(actor, Action.RECORD_PARTICIPATION, subject_id=member_id)

    with Session(engine) as session:
        participation = _find_participation(session, activity_id, member_id)
        if participation is None:
            raise NotFoundError(f"Member {member_id} is not registered for activity {activity_id}")

        if participation.points_awarded:
            grant_in_session(
                session,
                member_id=member_id,
                delta=-participation.points_awarded,
                description=f"Cancelled participation in activity: {participation.activity.name}",
                source_type=PointsSource.ACTIVITY,
            )
        session.delete(participation)
        session.commit()

    logger.info("Member %s removed from activity %d", member_id, activity_id)

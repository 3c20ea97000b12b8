"""
chapterhub.services.objective_service — Objectives Catalog & Assignments
=========================================================================

Executives maintain a catalogue of objective templates; members pick the
ones their role is eligible for, and executives record progress.  Reaching
the target grants the objective's points exactly once, in the same
transaction as the progress change.

Completion is never stored: an assignment is complete when
``progress >= objective.target``.  Once complete it is terminal, so a second
``update_progress`` call is a no-op and cannot grant twice.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session, selectinload

from chapterhub.constants import PointsSource
from chapterhub.database.models import AdminActionType, Member, Objective, UserObjective
from chapterhub.engine.objectives import (
    Classification,
    Difficulty,
    Privacy,
    apply_progress,
    derive_difficulty,
    is_eligible,
    normalize_target_roles,
    privacy_allowed,
)
from chapterhub.engine.policy import Action, Actor, authorize
from chapterhub.errors import NotFoundError, ValidationError
from chapterhub.services.admin_service import (
    audited_create,
    audited_delete,
    log_admin_action,
    row_to_dict,
)
from chapterhub.services.points_service import grant_in_session

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------
def objective_to_dict(obj: Objective) -> dict:
    return {
        "id": obj.id,
        "title": obj.title,
        "group": obj.objective_group,
        "action": obj.action_type,
        "feature": obj.feature,
        "difficulty": obj.difficulty,
        "privacy": obj.privacy,
        "target_roles": list(obj.target_roles or []),
        "target": obj.target,
        "points": obj.points,
        "created_by": obj.created_by,
        "created_at": obj.created_at.isoformat() if obj.created_at else None,
    }


def assignment_to_dict(uo: UserObjective) -> dict:
    return {
        "member_id": uo.member_id,
        "objective_id": uo.objective_id,
        "progress": uo.progress,
        "target": uo.objective.target,
        "completed": uo.completed,
        "assigned_at": uo.assigned_at.isoformat() if uo.assigned_at else None,
    }


@dataclass(frozen=True, slots=True)
class ObjectiveStatus:
    """An eligible objective paired with the member's assignment, if any."""

    objective: Objective
    assignment: UserObjective | None

    def to_dict(self) -> dict:
        return {
            "objective": objective_to_dict(self.objective),
            "assignment": assignment_to_dict(self.assignment) if self.assignment else None,
        }


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------
def list_objectives(session: Session) -> list[Objective]:
    return list(session.scalars(select(Objective).order_by(Objective.id)).all())


def create_objective(
    engine: Engine,
    *,
    actor: Actor,
    group: str,
    action: str,
    feature: str,
    target: int = 1,
    points: int = 0,
    title: str | None = None,
    difficulty: str | None = None,
    privacy: str | None = None,
    target_roles: Iterable[str] | None = None,
) -> Objective:
    """Add an objective template to the catalogue (executive only).

    ``difficulty`` of ``None`` or ``"auto"`` is derived from *target*.
    ``privacy`` is forced to ``None`` for groups that carry no privacy
    setting and defaults to public for the others.
    """
    authorize(actor, Action.MANAGE_OBJECTIVES)

    classification = Classification.parse(group, action, feature)
    if target < 1:
        raise ValidationError("Objective target must be at least 1")
    if points < 0:
        raise ValidationError("Objective points cannot be negative")

    if difficulty is None or difficulty.lower() == "auto":
        level = derive_difficulty(target)
    else:
        try:
            level = Difficulty(difficulty.capitalize())
        except ValueError as exc:
            raise ValidationError(f"Unknown difficulty: {difficulty!r}") from exc

    if not privacy_allowed(classification.group):
        privacy_value = None
    else:
        try:
            privacy_value = Privacy((privacy or Privacy.PUBLIC).lower()).value
        except ValueError as exc:
            raise ValidationError(f"Unknown privacy: {privacy!r}") from exc

    roles = normalize_target_roles(target_roles)

    with Session(engine, expire_on_commit=False) as session:
        obj = audited_create(
            session,
            Objective(
                title=(title or "").strip() or None,
                objective_group=classification.group.value,
                action_type=classification.action.value,
                feature=classification.feature.value,
                difficulty=level.value,
                privacy=privacy_value,
                target_roles=roles,
                target=target,
                points=points,
                created_by=actor.member_id,
            ),
            table_name="objectives",
            actor_id=actor.member_id,
        )
        session.commit()
        session.refresh(obj)
        session.expunge(obj)

    logger.info("Objective %d created by %s: %s", obj.id, actor.member_id, classification.label())
    return obj


def delete_objective(engine: Engine, *, actor: Actor, objective_id: int) -> None:
    """Remove a template and its assignments.  Granted points are kept."""
    authorize(actor, Action.MANAGE_OBJECTIVES)
    with Session(engine) as session:
        obj = session.get(Objective, objective_id)
        if obj is None:
            raise NotFoundError(f"Objective {objective_id} not found")
        audited_delete(session, obj, table_name="objectives", actor_id=actor.member_id)
        session.commit()
    logger.info("Objective %d deleted by %s", objective_id, actor.member_id)


# ---------------------------------------------------------------------------
# Member view
# ---------------------------------------------------------------------------
def list_for_member(session: Session, member_id: str) -> list[ObjectiveStatus]:
    """Every objective the member's role is eligible for, with assignment."""
    member = session.get(Member, member_id)
    if member is None:
        raise NotFoundError(f"Member {member_id} not found")

    assignments = {
        uo.objective_id: uo
        for uo in session.scalars(
            select(UserObjective)
            .where(UserObjective.member_id == member_id)
            .options(selectinload(UserObjective.objective))
        ).all()
    }
    return [
        ObjectiveStatus(objective=obj, assignment=assignments.get(obj.id))
        for obj in list_objectives(session)
        if is_eligible(obj.target_roles, member.role)
    ]


# ---------------------------------------------------------------------------
# Assignment
# ---------------------------------------------------------------------------
def _detach(session: Session, uo: UserObjective) -> UserObjective:
    session.refresh(uo)
    _ = uo.objective  # load before the session closes
    session.expunge(uo)
    return uo


def assign(engine: Engine, *, actor: Actor, member_id: str, objective_id: int) -> UserObjective:
    """Start tracking *objective_id* for *member_id* at progress 0."""
    authorize(actor, Action.ASSIGN_OBJECTIVE, subject_id=member_id)

    with Session(engine, expire_on_commit=False) as session:
        member = session.get(Member, member_id)
        if member is None:
            raise NotFoundError(f"Member {member_id} not found")
        obj = session.get(Objective, objective_id)
        if obj is None:
            raise NotFoundError(f"Objective {objective_id} not found")
        if not is_eligible(obj.target_roles, member.role):
            raise ValidationError(
                f"Objective {objective_id} is not available to role {member.role!r}"
            )
        if session.get(UserObjective, (member_id, objective_id)) is not None:
            raise ValidationError(f"Objective {objective_id} is already assigned")

        uo = UserObjective(member_id=member_id, objective_id=objective_id, progress=0)
        session.add(uo)
        session.commit()
        logger.info("Objective %d assigned to %s by %s", objective_id, member_id, actor.member_id)
        return _detach(session, uo)


def unassign(engine: Engine, *, actor: Actor, member_id: str, objective_id: int) -> None:
    """Drop an assignment.  Points already granted for it stay in the ledger."""
    authorize(actor, Action.UNASSIGN_OBJECTIVE, subject_id=member_id)

    with Session(engine) as session:
        uo = session.get(UserObjective, (member_id, objective_id))
        if uo is None:
            raise NotFoundError(f"Objective {objective_id} is not assigned to {member_id}")
        session.delete(uo)
        session.commit()
    logger.info("Objective %d unassigned from %s by %s", objective_id, member_id, actor.member_id)


def _change_progress(
    engine: Engine,
    *,
    actor: Actor,
    member_id: str,
    objective_id: int,
    requested: Callable[[int], int],
) -> UserObjective:
    authorize(actor, Action.ADJUST_PROGRESS, subject_id=member_id)

    with Session(engine, expire_on_commit=False) as session:
        uo = session.scalar(
            select(UserObjective)
            .where(
                UserObjective.member_id == member_id,
                UserObjective.objective_id == objective_id,
            )
            .with_for_update()
        )
        if uo is None:
            raise NotFoundError(f"Objective {objective_id} is not assigned to {member_id}")

        obj = uo.objective
        change = apply_progress(uo.progress, requested(uo.progress), obj.target)
        if not change.changed:
            return _detach(session, uo)

        before = row_to_dict(uo)
        uo.progress = change.new
        session.flush()
        log_admin_action(
            session,
            actor_id=actor.member_id,
            action_type=AdminActionType.UPDATE,
            target_table="user_objectives",
            target_id=f"{member_id}:{objective_id}",
            before=before,
            after=row_to_dict(uo),
        )

        if change.completed_now:
            label = obj.title or Classification.parse(
                obj.objective_group, obj.action_type, obj.feature
            ).label()
            grant_in_session(
                session,
                member_id=member_id,
                delta=obj.points,
                description=f"Objective completed: {label}",
                source_type=PointsSource.OBJECTIVE,
            )
            logger.info("Member %s completed objective %d", member_id, objective_id)

        session.commit()
        return _detach(session, uo)


def update_progress(
    engine: Engine,
    *,
    actor: Actor,
    member_id: str,
    objective_id: int,
    progress: int,
) -> UserObjective:
    """Set progress (clamped to ``[0, target]``); completion grants once."""
    return _change_progress(
        engine,
        actor=actor,
        member_id=member_id,
        objective_id=objective_id,
        requested=lambda _current: progress,
    )


def step_progress(
    engine: Engine,
    *,
    actor: Actor,
    member_id: str,
    objective_id: int,
    step: int,
) -> UserObjective:
    """Move progress by *step* (negative to go back), with the same rules."""
    return _change_progress(
        engine,
        actor=actor,
        member_id=member_id,
        objective_id=objective_id,
        requested=lambda current: current + step,
    )

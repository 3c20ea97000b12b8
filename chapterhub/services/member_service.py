"""
chapterhub.services.member_service — Member Registration & Profiles
====================================================================

Field-level permissions on profile edits:

* a regular member editing **their own** record may change profile fields
  only; admin fields in the payload are dropped with a warning;
* an executive editing **someone else** may change admin fields only;
* an executive editing **themselves** may change both;
* anyone else is refused.

A change to ``points`` is never written directly: the difference becomes a
manual ledger grant so the cached total stays equal to the ledger sum.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from chapterhub.constants import ALL_ROLES, MANUAL_ADJUSTMENT_DESCRIPTION, PointsSource, Role
from chapterhub.database.models import AdminActionType, Member
from chapterhub.engine.policy import Action, Actor, authorize
from chapterhub.errors import AuthorizationError, NotFoundError, ValidationError
from chapterhub.services.admin_service import audited_delete, log_admin_action, row_to_dict
from chapterhub.services.points_service import grant_in_session

logger = logging.getLogger(__name__)

PROFILE_FIELDS: frozenset[str] = frozenset({
    "display_name", "email", "description", "strengths", "weaknesses",
})
ADMIN_FIELDS: frozenset[str] = frozenset({
    "role", "is_validated", "cotisation_s1", "cotisation_s2", "points", "advisor_id",
})
BOOLEAN_ADMIN_FIELDS: frozenset[str] = frozenset({"is_validated", "cotisation_s1", "cotisation_s2"})


def member_to_dict(member: Member, *, rank: int | None = None) -> dict:
    data = {
        "id": member.id,
        "display_name": member.display_name,
        "email": member.email,
        "role": member.role,
        "points": member.points,
        "is_validated": member.is_validated,
        "cotisation_s1": member.cotisation_s1,
        "cotisation_s2": member.cotisation_s2,
        "description": member.description,
        "strengths": list(member.strengths or []),
        "weaknesses": list(member.weaknesses or []),
        "advisor_id": member.advisor_id,
        "created_at": member.created_at.isoformat() if member.created_at else None,
    }
    if rank is not None:
        data["rank"] = rank
    return data


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_member(session: Session, member_id: str) -> Member:
    member = session.get(Member, member_id)
    if member is None:
        raise NotFoundError(f"Member {member_id} not found")
    return member


def list_members(
    session: Session,
    *,
    role: str | None = None,
    validated: bool | None = None,
) -> list[Member]:
    stmt = select(Member)
    if role is not None:
        stmt = stmt.where(Member.role == role.lower())
    if validated is not None:
        stmt = stmt.where(Member.is_validated == validated)
    stmt = stmt.order_by(Member.points.desc(), Member.display_name)
    return list(session.scalars(stmt).all())


def list_advisees(session: Session, advisor_id: str) -> list[Member]:
    get_member(session, advisor_id)
    stmt = (
        select(Member)
        .where(Member.advisor_id == advisor_id)
        .order_by(Member.display_name)
    )
    return list(session.scalars(stmt).all())


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def register_member(
    engine: Engine,
    *,
    member_id: str,
    display_name: str,
    email: str | None = None,
) -> Member:
    """Create the caller's profile, pending executive validation."""
    name = (display_name or "").strip()
    if not name:
        raise ValidationError("Display name is required")

    with Session(engine, expire_on_commit=False) as session:
        if session.get(Member, member_id) is not None:
            raise ValidationError(f"Member {member_id} is already registered")
        member = Member(
            id=member_id,
            display_name=name,
            email=email,
            role=Role.MEMBER.value,
            points=0,
            is_validated=False,
        )
        session.add(member)
        session.commit()
        session.refresh(member)
        session.expunge(member)

    logger.info("Registered member %s (%s), pending validation", member_id, name)
    return member


def _allowed_fields(actor: Actor, member_id: str) -> frozenset[str]:
    editing_self = actor.member_id == member_id
    if actor.executive and editing_self:
        return PROFILE_FIELDS | ADMIN_FIELDS
    if actor.executive:
        return ADMIN_FIELDS
    if editing_self:
        return PROFILE_FIELDS
    raise AuthorizationError("You can only edit your own profile")


def _check_value(session: Session, member_id: str, field: str, value: Any) -> Any:
    if field in BOOLEAN_ADMIN_FIELDS:
        if not isinstance(value, bool):
            raise ValidationError(f"{field} must be true or false")
        return value
    if field == "role":
        if value is None:
            raise ValidationError("role cannot be empty")
        role = str(value).lower()
        if role not in ALL_ROLES:
            raise ValidationError(f"Unknown role: {value!r}")
        return role
    if field == "advisor_id" and value is not None:
        if value == member_id:
            raise ValidationError("A member cannot be their own advisor")
        if session.get(Member, value) is None:
            raise NotFoundError(f"Advisor {value} not found")
    if field == "display_name":
        value = (value or "").strip()
        if not value:
            raise ValidationError("Display name cannot be empty")
    if field in ("strengths", "weaknesses"):
        return [str(v).strip() for v in value or () if str(v).strip()]
    if field == "points" and (isinstance(value, bool) or not isinstance(value, int)):
        raise ValidationError("points must be an integer")
    return value


def update_member(
    engine: Engine,
    *,
    actor: Actor,
    member_id: str,
    changes: dict[str, Any],
) -> Member:
    """Apply *changes* after field-level permission filtering."""
    unknown = set(changes) - PROFILE_FIELDS - ADMIN_FIELDS
    if unknown:
        raise ValidationError(f"Unknown member fields: {sorted(unknown)}")

    allowed = _allowed_fields(actor, member_id)
    authorize(
        actor,
        Action.EDIT_ADMIN_FIELDS if allowed == ADMIN_FIELDS else Action.EDIT_PROFILE,
        subject_id=member_id,
    )
    dropped = sorted(set(changes) - allowed)
    if dropped:
        logger.warning(
            "Actor %s may not change %s on member %s; ignoring", actor.member_id, dropped, member_id,
        )

    with Session(engine, expire_on_commit=False) as session:
        member = get_member(session, member_id)
        before = row_to_dict(member)

        target_points = None
        for field, value in changes.items():
            if field not in allowed:
                continue
            value = _check_value(session, member_id, field, value)
            if field == "points":
                target_points = value
                continue
            setattr(member, field, value)
        session.flush()

        if target_points is not None and target_points != member.points:
            grant_in_session(
                session,
                member_id=member_id,
                delta=target_points - member.points,
                description=MANUAL_ADJUSTMENT_DESCRIPTION,
                source_type=PointsSource.MANUAL,
                actor=actor,
            )

        if actor.executive:
            session.refresh(member)
            log_admin_action(
                session,
                actor_id=actor.member_id,
                action_type=AdminActionType.UPDATE,
                target_table="members",
                target_id=member_id,
                before=before,
                after=row_to_dict(member),
            )
        session.commit()
        session.refresh(member)
        session.expunge(member)

    logger.info("Member %s updated by %s", member_id, actor.member_id)
    return member


def validate_member(engine: Engine, *, actor: Actor, member_id: str) -> Member:
    """Approve a pending registration."""
    authorize(actor, Action.VALIDATE_MEMBER, subject_id=member_id)
    with Session(engine, expire_on_commit=False) as session:
        member = get_member(session, member_id)
        before = row_to_dict(member)
        member.is_validated = True
        session.flush()
        log_admin_action(
            session,
            actor_id=actor.member_id,
            action_type=AdminActionType.VALIDATE,
            target_table="members",
            target_id=member_id,
            before=before,
            after=row_to_dict(member),
        )
        session.commit()
        session.refresh(member)
        session.expunge(member)

    logger.info("Member %s validated by %s", member_id, actor.member_id)
    return member


def delete_member(engine: Engine, *, actor: Actor, member_id: str) -> None:
    """Hard delete.  Ledger, assignments, participations and complaints go
    with the member through ``ON DELETE CASCADE``; advisees lose their
    advisor through ``SET NULL``.
    """
    authorize(actor, Action.DELETE_MEMBER, subject_id=member_id)
    with Session(engine) as session:
        member = get_member(session, member_id)
        audited_delete(session, member, table_name="members", actor_id=actor.member_id)
        session.commit()
    logger.info("Member %s deleted by %s", member_id, actor.member_id)

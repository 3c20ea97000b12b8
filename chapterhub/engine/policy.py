"""
chapterhub.engine.policy — Central Authorization Policy
========================================================

Every privileged service call asks :func:`evaluate` (or :func:`authorize`,
which raises) instead of comparing role strings inline.  A decision always
carries a human-readable reason so denials can be logged and shown as-is.

This module is pure calculation — no database I/O.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from chapterhub.constants import DEFAULT_EXECUTIVE_ROLES
from chapterhub.errors import AuthorizationError

logger = logging.getLogger(__name__)


class Action(enum.StrEnum):
    """Mutations and privileged reads that go through the policy."""
    GRANT_MANUAL_POINTS = "grant_manual_points"
    MANAGE_OBJECTIVES = "manage_objectives"
    ADJUST_PROGRESS = "adjust_progress"
    ASSIGN_OBJECTIVE = "assign_objective"
    UNASSIGN_OBJECTIVE = "unassign_objective"
    EDIT_PROFILE = "edit_profile"
    EDIT_ADMIN_FIELDS = "edit_admin_fields"
    VALIDATE_MEMBER = "validate_member"
    DELETE_MEMBER = "delete_member"
    MANAGE_ACTIVITIES = "manage_activities"
    RECORD_PARTICIPATION = "record_participation"
    MARK_INTEREST = "mark_interest"
    FILE_COMPLAINT = "file_complaint"
    VIEW_COMPLAINTS = "view_complaints"
    RESOLVE_COMPLAINT = "resolve_complaint"
    VIEW_AUDIT = "view_audit"
    RECONCILE = "reconcile"
    EXECUTIVE_AREA = "executive_area"


# Actions a member may perform on their own record without an executive role.
SELF_SERVICE: frozenset[Action] = frozenset({
    Action.ASSIGN_OBJECTIVE,
    Action.UNASSIGN_OBJECTIVE,
    Action.EDIT_PROFILE,
    Action.FILE_COMPLAINT,
    Action.VIEW_COMPLAINTS,
    Action.MARK_INTEREST,
})


@dataclass(frozen=True, slots=True)
class Actor:
    """The authenticated member on whose behalf a service call runs."""

    member_id: str
    role: str
    executive: bool = False

    @classmethod
    def from_role(
        cls,
        member_id: str,
        role: str,
        executive_roles: frozenset[str] = DEFAULT_EXECUTIVE_ROLES,
    ) -> Actor:
        return cls(member_id=member_id, role=role, executive=is_executive(role, executive_roles))


@dataclass(frozen=True, slots=True)
class Decision:
    allowed: bool
    reason: str

    def __bool__(self) -> bool:
        return self.allowed


def is_executive(role: str | None, executive_roles: frozenset[str] = DEFAULT_EXECUTIVE_ROLES) -> bool:
    return (role or "").lower() in executive_roles


def evaluate(actor: Actor | None, action: Action, *, subject_id: str | None = None) -> Decision:
    """Decide whether *actor* may perform *action* on member *subject_id*.

    Executives may do everything.  Self-service actions are allowed when
    the subject is the actor's own record.
    """
    if actor is None:
        return Decision(False, "No authenticated actor")
    if actor.executive:
        return Decision(True, f"Role {actor.role!r} is executive")
    if action in SELF_SERVICE and subject_id is not None and subject_id == actor.member_id:
        return Decision(True, "Self-service on own record")
    if action in SELF_SERVICE:
        return Decision(False, f"{action} is only allowed on your own record")
    return Decision(False, f"{action} requires an executive role (you are {actor.role!r})")


def authorize(actor: Actor | None, action: Action, *, subject_id: str | None = None) -> Decision:
    """Like :func:`evaluate` but raise :class:`AuthorizationError` on deny."""
    decision = evaluate(actor, action, subject_id=subject_id)
    if not decision.allowed:
        logger.warning(
            "Denied %s for actor=%s subject=%s: %s",
            action, actor.member_id if actor else None, subject_id, decision.reason,
        )
        raise AuthorizationError(decision.reason)
    return decision

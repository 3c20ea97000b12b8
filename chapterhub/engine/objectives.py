"""
chapterhub.engine.objectives — Objective Taxonomy & Progress Rules
===================================================================

An objective is classified by *group* → *action* → *feature*.  Which
actions are valid depends on the group, and which features are valid
depends on the (group, action) pair.  :data:`TAXONOMY` is the closed list of
legal combinations; :class:`Classification` cannot be built outside it, and
:func:`taxonomy_check_sql` turns the same table into a database CHECK so
the rule holds at rest too.

This module is pure calculation — no database I/O.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from chapterhub.constants import ALL_ROLES
from chapterhub.errors import ValidationError


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ObjectiveGroup(enum.StrEnum):
    ACTIVITY = "activity"
    TEAM = "team"
    RECRUITMENT = "recruitment"
    PROFILE = "profile"


class ObjectiveAction(enum.StrEnum):
    PARTICIPATE = "participate"
    ORGANIZE = "organize"
    JOIN = "join"
    LEAD = "lead"
    INVITE = "invite"
    SPONSOR = "sponsor"
    COMPLETE = "complete"
    PAY = "pay"


class ObjectiveFeature(enum.StrEnum):
    MEETING = "meeting"
    FORMATION = "formation"
    GENERAL_ASSEMBLY = "general_assembly"
    EVENT = "event"
    TEAM = "team"
    PROJECT = "project"
    VISITOR = "visitor"
    NEW_MEMBER = "new_member"
    BIO = "bio"
    STRENGTHS = "strengths"
    COTISATION = "cotisation"


class Difficulty(enum.StrEnum):
    BASIC = "Basic"
    MEDIUM = "Medium"
    HARD = "Hard"
    EXTREME = "Extreme"


class Privacy(enum.StrEnum):
    PUBLIC = "public"
    PRIVATE = "private"


G, A, F = ObjectiveGroup, ObjectiveAction, ObjectiveFeature

TAXONOMY: Mapping[ObjectiveGroup, Mapping[ObjectiveAction, frozenset[ObjectiveFeature]]] = (
    MappingProxyType({
        G.ACTIVITY: MappingProxyType({
            A.PARTICIPATE: frozenset({F.MEETING, F.FORMATION, F.GENERAL_ASSEMBLY, F.EVENT}),
            A.ORGANIZE: frozenset({F.FORMATION, F.EVENT}),
        }),
        G.TEAM: MappingProxyType({
            A.JOIN: frozenset({F.TEAM, F.PROJECT}),
            A.LEAD: frozenset({F.TEAM, F.PROJECT}),
        }),
        G.RECRUITMENT: MappingProxyType({
            A.INVITE: frozenset({F.VISITOR}),
            A.SPONSOR: frozenset({F.NEW_MEMBER}),
        }),
        G.PROFILE: MappingProxyType({
            A.COMPLETE: frozenset({F.BIO, F.STRENGTHS}),
            A.PAY: frozenset({F.COTISATION}),
        }),
    })
)

# Profile goals are personal bookkeeping; a privacy choice makes no sense.
GROUPS_WITHOUT_PRIVACY: frozenset[ObjectiveGroup] = frozenset({G.PROFILE})


# ---------------------------------------------------------------------------
# Lookups used by the creation form
# ---------------------------------------------------------------------------
def actions_for(group: ObjectiveGroup) -> list[ObjectiveAction]:
    return sorted(TAXONOMY[group])


def features_for(group: ObjectiveGroup, action: ObjectiveAction) -> list[ObjectiveFeature]:
    return sorted(TAXONOMY[group].get(action, frozenset()))


def privacy_allowed(group: ObjectiveGroup) -> bool:
    return group not in GROUPS_WITHOUT_PRIVACY


def taxonomy_as_dict() -> dict[str, dict[str, list[str]]]:
    """JSON-friendly view of :data:`TAXONOMY`."""
    return {
        group.value: {
            action.value: sorted(f.value for f in features)
            for action, features in actions.items()
        }
        for group, actions in TAXONOMY.items()
    }


# ---------------------------------------------------------------------------
# Classification value type
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Classification:
    """A legal (group, action, feature) triple.

    Use :meth:`parse` to build one from raw strings; direct construction
    with enum members is validated the same way.
    """

    group: ObjectiveGroup
    action: ObjectiveAction
    feature: ObjectiveFeature

    def __post_init__(self) -> None:
        actions = TAXONOMY.get(self.group)
        if actions is None:
            raise ValidationError(f"Unknown objective group: '{self.group}'")
        if self.action not in actions:
            raise ValidationError(
                f"Action '{self.action}' is not valid for group '{self.group}'"
            )
        if self.feature not in actions[self.action]:
            raise ValidationError(
                f"Feature '{self.feature}' is not valid for "
                f"{self.group}/{self.action}"
            )

    @classmethod
    def parse(cls, group: str, action: str, feature: str) -> Classification:
        try:
            return cls(ObjectiveGroup(group), ObjectiveAction(action), ObjectiveFeature(feature))
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

    def label(self) -> str:
        return f"{self.group}: {self.action} {self.feature}"


def taxonomy_check_sql(
    group_col: str = "objective_group",
    action_col: str = "action_type",
    feature_col: str = "feature",
) -> str:
    """Render :data:`TAXONOMY` as a SQL boolean expression for a CHECK."""
    clauses = []
    for group, actions in sorted(TAXONOMY.items()):
        for action, features in sorted(actions.items()):
            feature_list = ", ".join(f"'{f.value}'" for f in sorted(features))
            clauses.append(
                f"({group_col} = '{group.value}' AND {action_col} = '{action.value}' "
                f"AND {feature_col} IN ({feature_list}))"
            )
    return " OR ".join(clauses)


# ---------------------------------------------------------------------------
# Template rules
# ---------------------------------------------------------------------------
def derive_difficulty(target: int) -> Difficulty:
    """Difficulty used when the creator leaves it on "auto"."""
    if target <= 1:
        return Difficulty.BASIC
    if target <= 3:
        return Difficulty.MEDIUM
    if target < 10:
        return Difficulty.HARD
    return Difficulty.EXTREME


def normalize_target_roles(roles: Iterable[str] | None) -> list[str]:
    """Lower-case, de-duplicate and validate an eligible-role list."""
    cleaned = sorted({r.strip().lower() for r in roles or () if r and r.strip()})
    unknown = [r for r in cleaned if r not in ALL_ROLES]
    if unknown:
        raise ValidationError(f"Unknown target roles: {unknown}")
    return cleaned


def is_eligible(target_roles: Iterable[str] | None, role: str) -> bool:
    """An empty role list means the objective is open to everyone."""
    roles = list(target_roles or ())
    return not roles or role.lower() in roles


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ProgressChange:
    """Outcome of applying a progress update to one assignment."""

    old: int
    new: int
    target: int
    completed_now: bool

    @property
    def changed(self) -> bool:
        return self.old != self.new


def clamp_progress(value: int, target: int) -> int:
    return max(0, min(value, target))


def apply_progress(current: int, requested: int, target: int) -> ProgressChange:
    """Clamp *requested* into ``[0, target]`` and detect completion.

    A finished assignment is terminal: the returned change keeps
    ``current`` and never reports ``completed_now`` again, which is what
    keeps the completion reward to a single grant.
    """
    if current >= target:
        return ProgressChange(old=current, new=current, target=target, completed_now=False)
    new = clamp_progress(requested, target)
    return ProgressChange(old=current, new=new, target=target, completed_now=new >= target)

"""
chapterhub.constants — Shared Constants
========================================

Single source of truth for roles, point sources and aggregation windows.
Import from here instead of repeating role strings in services and routes.
"""

from __future__ import annotations

import enum


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------
class Role(enum.StrEnum):
    """Chapter roles, lowest to highest."""
    VISITOR = "visitor"
    MEMBER = "member"
    VICE_PRESIDENT = "vp"
    PRESIDENT = "president"
    ADMIN = "admin"


ALL_ROLES: frozenset[str] = frozenset(r.value for r in Role)

# Roles allowed to perform administrative mutations unless config.yaml
# overrides ``executive_roles``.
DEFAULT_EXECUTIVE_ROLES: frozenset[str] = frozenset({
    Role.VICE_PRESIDENT.value,
    Role.PRESIDENT.value,
    Role.ADMIN.value,
})

# Hidden from "most improved" leaderboards by default.
DEFAULT_LEADERBOARD_EXCLUDE: tuple[str, ...] = ("president", "vp", "vice-president")

# Hidden from the per-role top performers view.
DEFAULT_TOP_BY_ROLE_EXCLUDE: tuple[str, ...] = ("president",)


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------
class PointsSource(enum.StrEnum):
    """Where a ledger row came from."""
    MANUAL = "manual"
    ACTIVITY = "activity"
    OBJECTIVE = "objective"


class Window(enum.StrEnum):
    """Aggregation windows for charts and leaderboards."""
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"
    ALL = "all"


MANUAL_ADJUSTMENT_DESCRIPTION = "Manual adjustment by administrator"


# ---------------------------------------------------------------------------
# Complaints
# ---------------------------------------------------------------------------
class ComplaintStatus(enum.StrEnum):
    PENDING = "pending"
    RESOLVED = "resolved"


# ---------------------------------------------------------------------------
# Activities
# ---------------------------------------------------------------------------
class ActivityType(enum.StrEnum):
    MEETING = "meeting"
    FORMATION = "formation"
    GENERAL_ASSEMBLY = "general_assembly"
    EVENT = "event"

"""
chapterhub.engine.ranking — Rank & Leaderboard Rules
=====================================================

Rank is ``1 + (number of members with strictly more points)``: equal totals
share a rank and the next distinct total skips ahead (1, 2, 2, 4).  Ranks
are recomputed on every read and never stored.

This module is pure calculation — no database I/O.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import asdict, dataclass


def rank_of(points: int, all_totals: Iterable[int]) -> int:
    return 1 + sum(1 for total in all_totals if total > points)


@dataclass(frozen=True, slots=True)
class LeaderboardRow:
    member_id: str
    display_name: str
    role: str
    points: int

    def to_dict(self) -> dict:
        return asdict(self)


def rank_leaderboard(
    rows: Iterable[LeaderboardRow],
    *,
    exclude_roles: Iterable[str] = (),
    limit: int = 5,
) -> list[LeaderboardRow]:
    """Drop excluded roles, sort by points descending, keep the top *limit*.

    Role matching is case-insensitive.  Ties are ordered by display name so
    repeated reads return the same list.
    """
    excluded = {r.lower() for r in exclude_roles}
    kept = [r for r in rows if (r.role or "").lower() not in excluded]
    kept.sort(key=lambda r: (-r.points, r.display_name.lower(), r.member_id))
    return kept[:max(limit, 0)]


def top_per_role(
    rows: Iterable[LeaderboardRow],
    *,
    exclude_roles: Iterable[str] = (),
) -> list[LeaderboardRow]:
    """Best performer of each role, strongest role leader first.

    Roles are compared case-insensitively, both for grouping and for
    *exclude_roles*.  Within a role, ties go to the display name that sorts
    first.
    """
    excluded = {r.lower() for r in exclude_roles}
    best: dict[str, LeaderboardRow] = {}
    for row in sorted(rows, key=lambda r: (-r.points, r.display_name.lower(), r.member_id)):
        role = (row.role or "").lower()
        if role in excluded or role in best:
            continue
        best[role] = row
    return sorted(best.values(), key=lambda r: (-r.points, (r.role or "").lower()))

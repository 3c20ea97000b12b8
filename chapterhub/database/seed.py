"""
chapterhub.database.seed — Starter Objective Catalogue
=======================================================

A small set of objectives inserted on first startup so members have
something to pick from before the executive board builds its own catalogue.

Idempotent: nothing is written once the ``objectives`` table holds at least
one row, so objectives deleted by executives are never resurrected.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, func, select
from sqlalchemy.orm import Session

from chapterhub.database.models import Objective
from chapterhub.engine.objectives import (
    Classification,
    Privacy,
    derive_difficulty,
    privacy_allowed,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Starter catalogue
# ---------------------------------------------------------------------------
STARTER_OBJECTIVES: list[dict] = [
    {
        "title": "Attend three monthly meetings",
        "classification": ("activity", "participate", "meeting"),
        "target": 3, "points": 30, "target_roles": [],
    },
    {
        "title": "Follow a formation",
        "classification": ("activity", "participate", "formation"),
        "target": 1, "points": 20, "target_roles": [],
    },
    {
        "title": "Bring a visitor to an event",
        "classification": ("recruitment", "invite", "visitor"),
        "target": 1, "points": 15, "target_roles": ["member"],
    },
    {
        "title": "Complete your profile bio",
        "classification": ("profile", "complete", "bio"),
        "target": 1, "points": 5, "target_roles": ["visitor", "member"],
    },
    {
        "title": "Pay both semester cotisations",
        "classification": ("profile", "pay", "cotisation"),
        "target": 2, "points": 10, "target_roles": ["member"],
    },
]


# ---------------------------------------------------------------------------
# Seeder
# ---------------------------------------------------------------------------
def seed_objectives(engine: Engine) -> None:
    """Insert :data:`STARTER_OBJECTIVES` if the catalogue is empty."""
    session = Session(engine)
    try:
        count = session.scalar(select(func.count()).select_from(Objective))
        if count:
            return
        for entry in STARTER_OBJECTIVES:
            cls = Classification.parse(*entry["classification"])
            session.add(Objective(
                title=entry["title"],
                objective_group=cls.group.value,
                action_type=cls.action.value,
                feature=cls.feature.value,
                difficulty=derive_difficulty(entry["target"]).value,
                privacy=Privacy.PUBLIC.value if privacy_allowed(cls.group) else None,
                target_roles=entry["target_roles"],
                target=entry["target"],
                points=entry["points"],
            ))
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    logger.info("Seeded %d starter objectives.", len(STARTER_OBJECTIVES))

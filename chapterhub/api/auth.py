"""
chapterhub.api.auth — Caller identity
======================================

Tokens are issued by the hosted identity provider; this router only tells
the dashboard who the caller is and what they may do.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from chapterhub.api.deps import get_config, get_session, get_token_payload
from chapterhub.config import ChapterHubConfig
from chapterhub.database.models import Member
from chapterhub.engine.policy import is_executive

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me")
def me(
    payload: Annotated[dict, Depends(get_token_payload)],
    session: Annotated[Session, Depends(get_session)],
    cfg: Annotated[ChapterHubConfig, Depends(get_config)],
):
    """Return the caller's id and, once registered, role and validation state."""
    member_id = str(payload["sub"])
    member = session.get(Member, member_id)
    if member is None:
        return {
            "id": member_id,
            "registered": False,
            "role": None,
            "is_validated": False,
            "is_executive": False,
        }
    return {
        "id": member.id,
        "registered": True,
        "display_name": member.display_name,
        "role": member.role,
        "is_validated": member.is_validated,
        "is_executive": is_executive(member.role, cfg.executive_roles),
    }

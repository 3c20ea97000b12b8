"""
chapterhub.services.complaint_service — Member Complaints
==========================================================

Members file complaints about their own experience; the executive board
reads them and marks them resolved.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from chapterhub.constants import ComplaintStatus
from chapterhub.database.models import AdminActionType, Complaint, Member
from chapterhub.engine.policy import Action, Actor, authorize
from chapterhub.errors import NotFoundError, ValidationError
from chapterhub.services.admin_service import log_admin_action, row_to_dict

logger = logging.getLogger(__name__)


def complaint_to_dict(complaint: Complaint) -> dict:
    return {
        "id": complaint.id,
        "member_id": complaint.member_id,
        "content": complaint.content,
        "status": complaint.status,
        "created_at": complaint.created_at.isoformat() if complaint.created_at else None,
    }


def _parse_status(status: str) -> ComplaintStatus:
    try:
        return ComplaintStatus(status)
    except ValueError as exc:
        raise ValidationError(f"Unknown complaint status: {status!r}") from exc


def add_complaint(engine: Engine, *, actor: Actor, member_id: str, content: str) -> Complaint:
    authorize(actor, Action.FILE_COMPLAINT, subject_id=member_id)
    text = (content or "").strip()
    if not text:
        raise ValidationError("Complaint content cannot be empty")

    with Session(engine, expire_on_commit=False) as session:
        if session.get(Member, member_id) is None:
            raise NotFoundError(f"Member {member_id} not found")
        complaint = Complaint(member_id=member_id, content=text)
        session.add(complaint)
        session.commit()
        session.refresh(complaint)
        session.expunge(complaint)

    logger.info("Complaint %d filed for member %s", complaint.id, member_id)
    return complaint


def list_complaints(
    session: Session,
    *,
    actor: Actor,
    member_id: str | None = None,
    status: str | None = None,
) -> list[Complaint]:
    """Executives see every complaint; members only their own."""
    authorize(actor, Action.VIEW_COMPLAINTS, subject_id=member_id)

    stmt = select(Complaint)
    if member_id is not None:
        stmt = stmt.where(Complaint.member_id == member_id)
    if status is not None:
        stmt = stmt.where(Complaint.status == _parse_status(status).value)
    stmt = stmt.order_by(Complaint.created_at.desc(), Complaint.id.desc())
    return list(session.scalars(stmt).all())


def set_complaint_status(
    engine: Engine,
    *,
    actor: Actor,
    complaint_id: int,
    status: str,
) -> Complaint:
    authorize(actor, Action.RESOLVE_COMPLAINT)
    new_status = _parse_status(status)

    with Session(engine, expire_on_commit=False) as session:
        complaint = session.get(Complaint, complaint_id)
        if complaint is None:
            raise NotFoundError(f"Complaint {complaint_id} not found")
        before = row_to_dict(complaint)
        complaint.status = new_status.value
        session.flush()
        log_admin_action(
            session,
            actor_id=actor.member_id,
            action_type=AdminActionType.UPDATE,
            target_table="complaints",
            target_id=str(complaint_id),
            before=before,
            after=row_to_dict(complaint),
        )
        session.commit()
        session.refresh(complaint)
        session.expunge(complaint)

    logger.info("Complaint %d marked %s by %s", complaint_id, new_status, actor.member_id)
    return complaint

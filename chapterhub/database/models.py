"""
chapterhub.database.models — SQLAlchemy 2.0 Data Models
========================================================

Tables:
- members               — Chapter member profiles (identity-provider subject PK)
- points_history        — Append-only points ledger
- objectives            — Objective templates (closed classification taxonomy)
- user_objectives       — Per-member objective assignments with progress
- activities            — Meetings, trainings, assemblies and events
- activity_participants — Who took part in which activity
- complaints            — Member complaints for the executive board
- admin_log             — Append-only audit trail of executive mutations
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from chapterhub.constants import ComplaintStatus, PointsSource, Role
from chapterhub.engine.objectives import taxonomy_check_sql


def utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all ChapterHub ORM models."""


class AdminActionType:
    """Categories of executive mutations recorded in admin_log."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    MANUAL_GRANT = "MANUAL_GRANT"
    VALIDATE = "VALIDATE"
    RECONCILE = "RECONCILE"


# ---------------------------------------------------------------------------
# Members: one row per chapter member
# ---------------------------------------------------------------------------
class Member(Base):
    __tablename__ = "members"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), default=None)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=Role.MEMBER.value)
    # Denormalised cache of sum(points_history.points); only the points
    # service writes it, inside the same transaction as the ledger row.
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_validated: Mapped[bool] = mapped_column(Boolean, default=False)
    cotisation_s1: Mapped[bool] = mapped_column(Boolean, default=False)
    cotisation_s2: Mapped[bool] = mapped_column(Boolean, default=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    strengths: Mapped[list | None] = mapped_column(JSONB, default=list)
    weaknesses: Mapped[list | None] = mapped_column(JSONB, default=list)
    advisor_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("members.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    # Relationships.  Ledger rows are removed by the database cascade only;
    # the ORM never deletes them (see the before_delete guard below).
    points_history: Mapped[list[PointsHistory]] = relationship(
        back_populates="member", passive_deletes="all"
    )
    objectives: Mapped[list[UserObjective]] = relationship(
        back_populates="member", cascade="all, delete-orphan", passive_deletes=True
    )
    participations: Mapped[list[ActivityParticipant]] = relationship(
        back_populates="member", cascade="all, delete-orphan", passive_deletes=True
    )
    complaints: Mapped[list[Complaint]] = relationship(
        back_populates="member", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        Index("ix_members_points_desc", "points"),
        Index("ix_members_advisor", "advisor_id"),
    )

    def __repr__(self) -> str:
        return f"<Member id={self.id} name={self.display_name!r} pts={self.points}>"


# ---------------------------------------------------------------------------
# PointsHistory: append-only ledger
# ---------------------------------------------------------------------------
_SOURCE_VALUES = ", ".join(f"'{s.value}'" for s in PointsSource)


class PointsHistory(Base):
    __tablename__ = "points_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    member_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("members.id", ondelete="CASCADE"), nullable=False
    )
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    source_type: Mapped[str] = mapped_column(String(20), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    member: Mapped[Member] = relationship(back_populates="points_history")

    __table_args__ = (
        CheckConstraint("points <> 0", name="ck_points_history_nonzero"),
        CheckConstraint(
            f"source_type IN ({_SOURCE_VALUES})", name="ck_points_history_source"
        ),
        Index("ix_points_history_member_time", "member_id", "created_at"),
        Index("ix_points_history_time", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<PointsHistory id={self.id} member={self.member_id} "
            f"pts={self.points:+d} src={self.source_type}>"
        )


@event.listens_for(PointsHistory, "before_update")
def _refuse_ledger_update(mapper, connection, target) -> None:
    raise RuntimeError("points_history is append-only; rows cannot be updated")


@event.listens_for(PointsHistory, "before_delete")
def _refuse_ledger_delete(mapper, connection, target) -> None:
    raise RuntimeError("points_history is append-only; rows cannot be deleted")


# ---------------------------------------------------------------------------
# Objectives: templates
# ---------------------------------------------------------------------------
class Objective(Base):
    __tablename__ = "objectives"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str | None] = mapped_column(String(200), default=None)
    objective_group: Mapped[str] = mapped_column(String(30), nullable=False)
    action_type: Mapped[str] = mapped_column(String(30), nullable=False)
    feature: Mapped[str] = mapped_column(String(30), nullable=False)
    difficulty: Mapped[str] = mapped_column(String(10), nullable=False)
    privacy: Mapped[str | None] = mapped_column(String(10), nullable=True)
    target_roles: Mapped[list | None] = mapped_column(JSONB, default=list)
    target: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    assignments: Mapped[list[UserObjective]] = relationship(
        back_populates="objective", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        CheckConstraint("target >= 1", name="ck_objectives_target_positive"),
        CheckConstraint("points >= 0", name="ck_objectives_points_nonnegative"),
        CheckConstraint(taxonomy_check_sql(), name="ck_objectives_classification"),
    )

    def __repr__(self) -> str:
        return (
            f"<Objective id={self.id} {self.objective_group}/{self.action_type}/"
            f"{self.feature} target={self.target}>"
        )


# ---------------------------------------------------------------------------
# UserObjective: assignment with progress
# ---------------------------------------------------------------------------
class UserObjective(Base):
    __tablename__ = "user_objectives"

    member_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("members.id", ondelete="CASCADE"), primary_key=True
    )
    objective_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("objectives.id", ondelete="CASCADE"), primary_key=True
    )
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    member: Mapped[Member] = relationship(back_populates="objectives")
    objective: Mapped[Objective] = relationship(back_populates="assignments")

    __table_args__ = (
        CheckConstraint("progress >= 0", name="ck_user_objectives_progress_nonnegative"),
    )

    @property
    def completed(self) -> bool:
        return self.progress >= self.objective.target

    def __repr__(self) -> str:
        return (
            f"<UserObjective member={self.member_id} objective={self.objective_id} "
            f"progress={self.progress}>"
        )


# ---------------------------------------------------------------------------
# Activities & participation
# ---------------------------------------------------------------------------
class Activity(Base):
    __tablename__ = "activities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    activity_type: Mapped[str] = mapped_column(String(30), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    activity_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    begins_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    participants: Mapped[list[ActivityParticipant]] = relationship(
        back_populates="activity", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        CheckConstraint("activity_points >= 0", name="ck_activities_points_nonnegative"),
    )

    def __repr__(self) -> str:
        return f"<Activity id={self.id} name={self.name!r} pts={self.activity_points}>"


class ActivityParticipant(Base):
    __tablename__ = "activity_participants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    activity_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("activities.id", ondelete="CASCADE"), nullable=False
    )
    member_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("members.id", ondelete="CASCADE"), nullable=False
    )
    is_temp: Mapped[bool] = mapped_column(Boolean, default=False)
    is_interested: Mapped[bool] = mapped_column(Boolean, default=False)
    rate: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Points actually granted for this participation (0 for temp / interest)
    points_awarded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    registered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    activity: Mapped[Activity] = relationship(back_populates="participants")
    member: Mapped[Member] = relationship(back_populates="participations")

    __table_args__ = (
        UniqueConstraint("activity_id", "member_id", name="uq_activity_participants"),
        CheckConstraint("rate IS NULL OR (rate BETWEEN 1 AND 5)", name="ck_participant_rate"),
    )

    def __repr__(self) -> str:
        return f"<ActivityParticipant activity={self.activity_id} member={self.member_id}>"


# ---------------------------------------------------------------------------
# Complaints
# ---------------------------------------------------------------------------
class Complaint(Base):
    __tablename__ = "complaints"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    member_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("members.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ComplaintStatus.PENDING.value
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    member: Mapped[Member] = relationship(back_populates="complaints")

    __table_args__ = (
        Index("ix_complaints_status_time", "status", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Complaint id={self.id} member={self.member_id} status={self.status}>"


# ---------------------------------------------------------------------------
# AdminLog: append-only audit trail
# ---------------------------------------------------------------------------
class AdminLog(Base):
    __tablename__ = "admin_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    actor_id: Mapped[str] = mapped_column(String(36), nullable=False)
    action_type: Mapped[str] = mapped_column(String(50), nullable=False)
    target_table: Mapped[str] = mapped_column(String(50), nullable=False)
    target_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    before_snapshot: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    after_snapshot: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_admin_log_actor_time", "actor_id", "timestamp"),
        Index("ix_admin_log_target", "target_table", "target_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<AdminLog id={self.id} actor={self.actor_id} action={self.action_type}>"

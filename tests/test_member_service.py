"""
tests/test_member_service.py — Registration, Field Permissions & Deletion
==========================================================================
"""

from __future__ import annotations

import pytest
from conftest import actor_for, make_member
from sqlalchemy import select
from sqlalchemy.orm import Session

from chapterhub.constants import MANUAL_ADJUSTMENT_DESCRIPTION
from chapterhub.database.models import AdminLog, Member, PointsHistory
from chapterhub.errors import AuthorizationError, NotFoundError, ValidationError
from chapterhub.services import member_service, objective_service, points_service


class TestRegister:
    def test_new_member_is_pending(self, db_engine):
        member = member_service.register_member(db_engine, member_id="u-1", display_name=" Sami ")
        assert member.display_name == "Sami"
        assert member.role == "member"
        assert member.points == 0
        assert member.is_validated is False

    def test_duplicate(self, db_engine):
        member_service.register_member(db_engine, member_id="u-1", display_name="Sami")
        with pytest.raises(ValidationError, match="already registered"):
            member_service.register_member(db_engine, member_id="u-1", display_name="Sami")

    def test_blank_name(self, db_engine):
        with pytest.raises(ValidationError):
            member_service.register_member(db_engine, member_id="u-1", display_name="  ")


class TestUpdateMember:
    def test_member_edits_own_profile(self, db_engine, alice):
        member = member_service.update_member(
            db_engine, actor=alice, member_id="alice",
            changes={"description": "Loves events", "strengths": ["public speaking", " "]},
        )
        assert member.description == "Loves events"
        assert member.strengths == ["public speaking"]

    def test_member_admin_fields_are_dropped(self, db_engine, alice):
        member = member_service.update_member(
            db_engine, actor=alice, member_id="alice",
            changes={"role": "admin", "points": 1000, "description": "hi"},
        )
        assert member.role == "member"
        assert member.points == 0
        assert member.description == "hi"

    def test_member_cannot_edit_others(self, db_engine, alice, bob):
        with pytest.raises(AuthorizationError):
            member_service.update_member(db_engine, actor=alice, member_id="bob",
                                         changes={"description": "x"})

    def test_executive_edits_admin_fields_only_on_others(self, db_engine, admin, alice):
        member = member_service.update_member(
            db_engine, actor=admin, member_id="alice",
            changes={"role": "VP", "cotisation_s1": True, "description": "ignored"},
        )
        assert member.role == "vp"
        assert member.cotisation_s1 is True
        assert member.description is None

    def test_executive_edits_everything_on_self(self, db_engine, admin):
        member = member_service.update_member(
            db_engine, actor=admin, member_id="admin-1",
            changes={"description": "President of the board", "cotisation_s2": True},
        )
        assert member.description == "President of the board"
        assert member.cotisation_s2 is True

    def test_points_change_becomes_manual_grant(self, db_engine, admin, alice):
        points_service.grant(db_engine, member_id="alice", delta=10, description="seed",
                             source_type="activity")
        member = member_service.update_member(db_engine, actor=admin, member_id="alice",
                                              changes={"points": 25})
        assert member.points == 25
        with Session(db_engine) as session:
            manual = session.scalars(
                select(PointsHistory).where(PointsHistory.source_type == "manual")
            ).one()
        assert manual.points == 15
        assert manual.description == MANUAL_ADJUSTMENT_DESCRIPTION

    def test_unknown_role(self, db_engine, admin, alice):
        with pytest.raises(ValidationError, match="Unknown role"):
            member_service.update_member(db_engine, actor=admin, member_id="alice",
                                         changes={"role": "treasurer"})

    def test_unknown_field(self, db_engine, alice):
        with pytest.raises(ValidationError, match="Unknown member fields"):
            member_service.update_member(db_engine, actor=alice, member_id="alice",
                                         changes={"shoe_size": 42})

    @pytest.mark.parametrize("field", ["is_validated", "cotisation_s1", "cotisation_s2", "role"])
    def test_null_admin_field_rejected(self, db_engine, admin, alice, field):
        with pytest.raises(ValidationError):
            member_service.update_member(db_engine, actor=admin, member_id="alice",
                                         changes={field: None})
        with Session(db_engine) as session:
            member = session.get(Member, "alice")
            assert member.is_validated is True
            assert member.role == "member"

    @pytest.mark.parametrize("value", [None, 2.5, True])
    def test_points_must_be_an_integer(self, db_engine, admin, alice, value):
        with pytest.raises(ValidationError, match="integer"):
            member_service.update_member(db_engine, actor=admin, member_id="alice",
                                         changes={"points": value})

    def test_advisor_rules(self, db_engine, admin, alice, bob):
        with pytest.raises(ValidationError):
            member_service.update_member(db_engine, actor=admin, member_id="alice",
                                         changes={"advisor_id": "alice"})
        with pytest.raises(NotFoundError):
            member_service.update_member(db_engine, actor=admin, member_id="alice",
                                         changes={"advisor_id": "ghost"})
        member_service.update_member(db_engine, actor=admin, member_id="alice",
                                     changes={"advisor_id": "bob"})
        with Session(db_engine) as session:
            assert [m.id for m in member_service.list_advisees(session, "bob")] == ["alice"]

    def test_executive_update_is_audited(self, db_engine, admin, alice):
        member_service.update_member(db_engine, actor=admin, member_id="alice",
                                     changes={"is_validated": False})
        with Session(db_engine) as session:
            log = session.scalars(select(AdminLog)).one()
        assert log.target_table == "members"
        assert log.before_snapshot["is_validated"] is True
        assert log.after_snapshot["is_validated"] is False


class TestValidateAndDelete:
    def test_validate(self, db_engine, admin):
        make_member(db_engine, "new", validated=False)
        assert member_service.validate_member(db_engine, actor=admin, member_id="new").is_validated

    def test_member_cannot_validate(self, db_engine, alice):
        make_member(db_engine, "new", validated=False)
        with pytest.raises(AuthorizationError):
            member_service.validate_member(db_engine, actor=alice, member_id="new")

    def test_delete_cascades(self, db_engine, admin, alice, bob):
        obj = objective_service.create_objective(
            db_engine, actor=admin, group="activity", action="participate", feature="event",
        )
        objective_service.assign(db_engine, actor=alice, member_id="alice", objective_id=obj.id)
        points_service.grant(db_engine, member_id="alice", delta=5, description="x",
                             source_type="manual", actor=admin)
        member_service.update_member(db_engine, actor=admin, member_id="bob",
                                     changes={"advisor_id": "alice"})

        member_service.delete_member(db_engine, actor=admin, member_id="alice")

        with Session(db_engine) as session:
            assert session.get(Member, "alice") is None
            assert points_service.get_history(session, "alice") == []
            assert session.get(Member, "bob").advisor_id is None

    def test_delete_unknown(self, db_engine, admin):
        with pytest.raises(NotFoundError):
            member_service.delete_member(db_engine, actor=admin, member_id="ghost")


class TestReads:
    def test_list_filters(self, db_engine):
        make_member(db_engine, "a", points=5)
        make_member(db_engine, "b", points=50, validated=False)
        make_member(db_engine, "c", role="vp", points=20)
        with Session(db_engine) as session:
            assert [m.id for m in member_service.list_members(session)] == ["b", "c", "a"]
            assert [m.id for m in member_service.list_members(session, validated=False)] == ["b"]
            assert [m.id for m in member_service.list_members(session, role="VP")] == ["c"]

    def test_member_to_dict_includes_rank(self, db_engine):
        make_member(db_engine, "a", points=5)
        with Session(db_engine) as session:
            data = member_service.member_to_dict(member_service.get_member(session, "a"), rank=1)
        assert data["rank"] == 1
        assert data["strengths"] == []


def test_actor_for_vp_is_executive():
    assert actor_for("v", "vp").executive

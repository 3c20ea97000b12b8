"""
tests/test_api_routes.py — FastAPI Route Integration Tests
============================================================
Auth guards, error mapping and the main member journeys through the HTTP
layer, using the FastAPI TestClient against the in-memory database.
"""

from __future__ import annotations

import pytest
from conftest import auth_header, make_member, make_token


@pytest.fixture
def board(db_engine):
    """An admin, a president and two validated members."""
    make_member(db_engine, "admin-1", role="admin", display_name="Admin One")
    make_member(db_engine, "pres", role="president", display_name="Pres")
    make_member(db_engine, "alice", display_name="Alice")
    make_member(db_engine, "bob", display_name="Bob")


# ===========================================================================
# Health & auth guards
# ===========================================================================
class TestGuards:
    def test_health_returns_ok(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    def test_missing_token(self, client):
        assert client.get("/api/members").status_code == 401

    def test_bad_token(self, client):
        resp = client.get("/api/members", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401

    def test_token_without_sub(self, client):
        import jwt

        from chapterhub.api.deps import JWT_ALGORITHM, JWT_SECRET

        token = jwt.encode({"name": "x"}, JWT_SECRET, algorithm=JWT_ALGORITHM)
        resp = client.get("/api/members", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    def test_unregistered_caller(self, client):
        resp = client.get("/api/members", headers=auth_header("stranger"))
        assert resp.status_code == 403

    def test_member_cannot_reach_admin_routes(self, client, board):
        for method, path in [
            ("get", "/api/admin/audit"),
            ("get", "/api/admin/logs"),
            ("post", "/api/admin/reconcile"),
        ]:
            resp = getattr(client, method)(path, headers=auth_header("alice"))
            assert resp.status_code == 403, path


# ===========================================================================
# Registration & profile
# ===========================================================================
class TestMembers:
    def test_me_before_and_after_registration(self, client):
        headers = {"Authorization": f"Bearer {make_token('new-1')}"}
        assert client.get("/api/auth/me", headers=headers).json()["registered"] is False

        resp = client.post("/api/members/me", json={"display_name": "Nour"}, headers=headers)
        assert resp.status_code == 201
        assert resp.json()["is_validated"] is False

        me = client.get("/api/auth/me", headers=headers).json()
        assert me["registered"] is True
        assert me["role"] == "member"
        assert me["is_executive"] is False

    def test_double_registration_is_422(self, client, board):
        resp = client.post("/api/members/me", json={"display_name": "Alice"},
                           headers=auth_header("alice"))
        assert resp.status_code == 422
        assert "already registered" in resp.json()["detail"]

    def test_get_member_includes_rank(self, client, board):
        resp = client.get("/api/members/alice", headers=auth_header("bob"))
        assert resp.status_code == 200
        assert resp.json()["rank"] == 1

    def test_unknown_member_is_404(self, client, board):
        resp = client.get("/api/members/ghost", headers=auth_header("alice"))
        assert resp.status_code == 404

    def test_patch_other_profile_is_403(self, client, board):
        resp = client.patch("/api/members/bob", json={"description": "x"},
                            headers=auth_header("alice"))
        assert resp.status_code == 403

    def test_validate_requires_executive(self, client, board):
        assert client.post("/api/members/bob/validate",
                           headers=auth_header("alice")).status_code == 403
        assert client.post("/api/members/bob/validate",
                           headers=auth_header("pres")).status_code == 200


# ===========================================================================
# Points & leaderboard
# ===========================================================================
class TestPoints:
    def test_manual_grant_flow(self, client, board):
        resp = client.post("/api/members/alice/points",
                           json={"delta": 30, "description": "Organised the AG"},
                           headers=auth_header("admin-1"))
        assert resp.status_code == 200
        assert resp.json()["entry"]["points"] == 30

        history = client.get("/api/members/alice/points/history",
                             headers=auth_header("alice")).json()
        assert [e["points"] for e in history] == [30]

        agg = client.get("/api/members/alice/points/aggregate?window=month",
                         headers=auth_header("alice")).json()
        assert agg["points"] == 30

        rank = client.get("/api/members/alice/rank", headers=auth_header("alice")).json()
        assert rank == {"member_id": "alice", "points": 30, "rank": 1}

    def test_zero_delta_returns_no_entry(self, client, board):
        resp = client.post("/api/members/alice/points",
                           json={"delta": 0, "description": "noop"},
                           headers=auth_header("admin-1"))
        assert resp.json() == {"entry": None}

    def test_member_cannot_grant(self, client, board):
        resp = client.post("/api/members/alice/points",
                           json={"delta": 30, "description": "self"},
                           headers=auth_header("alice"))
        assert resp.status_code == 403

    def test_unknown_window_is_422(self, client, board):
        resp = client.get("/api/members/alice/points/aggregate?window=decade",
                          headers=auth_header("alice"))
        assert resp.status_code == 422

    def test_leaderboard_hides_executives_by_default(self, client, board):
        for mid, delta in [("pres", 100), ("alice", 20), ("bob", 10)]:
            client.post(f"/api/members/{mid}/points",
                        json={"delta": delta, "description": "x"},
                        headers=auth_header("admin-1"))

        default = client.get("/api/leaderboard", headers=auth_header("bob")).json()
        assert default["window"] == "month"
        assert [e["member_id"] for e in default["entries"]] == ["alice", "bob"]

        everyone = client.get("/api/leaderboard?include_executives=true",
                              headers=auth_header("bob")).json()
        assert everyone["entries"][0]["member_id"] == "pres"

    def test_rank_for_points(self, client, board):
        client.post("/api/members/alice/points", json={"delta": 50, "description": "x"},
                    headers=auth_header("admin-1"))
        resp = client.get("/api/rank?points=10", headers=auth_header("bob")).json()
        assert resp == {"points": 10, "rank": 2}


# ===========================================================================
# Objectives
# ===========================================================================
class TestObjectives:
    def test_taxonomy_is_public(self, client):
        body = client.get("/api/objectives/taxonomy").json()
        assert "activity" in body["taxonomy"]
        assert body["groups_without_privacy"] == ["profile"]

    def test_objective_journey(self, client, board):
        created = client.post("/api/objectives", json={
            "group": "activity", "action": "participate", "feature": "meeting",
            "target": 2, "points": 12,
        }, headers=auth_header("admin-1"))
        assert created.status_code == 201
        obj = created.json()
        assert obj["difficulty"] == "Medium"

        assigned = client.post(f"/api/members/alice/objectives/{obj['id']}",
                               headers=auth_header("alice"))
        assert assigned.status_code == 201

        # self-service progress is not allowed
        assert client.post(f"/api/members/alice/objectives/{obj['id']}/step", json={},
                           headers=auth_header("alice")).status_code == 403

        for _ in range(3):
            resp = client.post(f"/api/members/alice/objectives/{obj['id']}/step", json={},
                               headers=auth_header("admin-1"))
            assert resp.status_code == 200
        assert resp.json()["completed"] is True
        assert resp.json()["progress"] == 2

        me = client.get("/api/members/alice", headers=auth_header("alice")).json()
        assert me["points"] == 12

    def test_member_cannot_create_objective(self, client, board):
        resp = client.post("/api/objectives", json={
            "group": "activity", "action": "participate", "feature": "meeting",
        }, headers=auth_header("alice"))
        assert resp.status_code == 403

    def test_invalid_classification_is_422(self, client, board):
        resp = client.post("/api/objectives", json={
            "group": "team", "action": "invite", "feature": "visitor",
        }, headers=auth_header("admin-1"))
        assert resp.status_code == 422


# ===========================================================================
# Activities, complaints & admin
# ===========================================================================
class TestOperations:
    def test_activity_participation_grants_points(self, client, board):
        activity = client.post("/api/activities", json={
            "name": "Leadership Formation", "activity_type": "formation", "activity_points": 8,
        }, headers=auth_header("admin-1")).json()

        resp = client.post(f"/api/activities/{activity['id']}/participants",
                           json={"member_id": "bob", "rate": 5},
                           headers=auth_header("admin-1"))
        assert resp.status_code == 201
        assert resp.json()["points_awarded"] == 8
        assert client.get("/api/members/bob", headers=auth_header("bob")).json()["points"] == 8

    def test_complaint_lifecycle(self, client, board):
        filed = client.post("/api/members/alice/complaints", json={"content": "No minutes sent"},
                            headers=auth_header("alice"))
        assert filed.status_code == 201
        cid = filed.json()["id"]

        own = client.get("/api/complaints?member_id=alice", headers=auth_header("alice"))
        assert [c["id"] for c in own.json()] == [cid]
        assert client.get("/api/complaints", headers=auth_header("alice")).status_code == 403

        resolved = client.patch(f"/api/complaints/{cid}", json={"status": "resolved"},
                                headers=auth_header("admin-1"))
        assert resolved.json()["status"] == "resolved"

    def test_audit_log_records_grants(self, client, board):
        client.post("/api/members/alice/points", json={"delta": 5, "description": "help"},
                    headers=auth_header("admin-1"))
        body = client.get("/api/admin/audit", headers=auth_header("admin-1")).json()
        assert body["entries"][0]["action_type"] == "MANUAL_GRANT"
        assert body["limit"] == 50

    def test_reconcile_endpoint(self, client, board):
        body = client.post("/api/admin/reconcile", headers=auth_header("admin-1")).json()
        assert body["checked"] == 4
        assert body["corrected"] == 0

    def test_logs_reject_bad_level(self, client, board):
        resp = client.get("/api/admin/logs?level=LOUD", headers=auth_header("admin-1"))
        assert resp.status_code == 400


# ===========================================================================
# Pending registrations
# ===========================================================================
class TestPendingMembers:
    def test_pending_member_is_held_at_the_door(self, client, board, db_engine):
        make_member(db_engine, "newbie", validated=False)
        headers = auth_header("newbie")
        for path in ("/api/objectives", "/api/leaderboard", "/api/members/newbie"):
            resp = client.get(path, headers=headers)
            assert resp.status_code == 403, path
            assert resp.json()["detail"] == "Membership pending validation"

        me = client.get("/api/auth/me", headers=headers).json()
        assert me["registered"] is True
        assert me["is_validated"] is False

    def test_validation_opens_access(self, client, board, db_engine):
        make_member(db_engine, "newbie", validated=False)
        client.post("/api/members/newbie/validate", headers=auth_header("admin-1"))
        assert client.get("/api/objectives", headers=auth_header("newbie")).status_code == 200

    def test_pending_executive_keeps_access(self, client, db_engine):
        make_member(db_engine, "vp-new", role="vp", validated=False)
        assert client.get("/api/admin/audit", headers=auth_header("vp-new")).status_code == 200


class TestAdminFieldValidation:
    @pytest.mark.parametrize("field", ["is_validated", "cotisation_s1", "role"])
    def test_null_admin_field_is_422(self, client, board, field):
        resp = client.patch("/api/members/alice", json={field: None},
                            headers=auth_header("admin-1"))
        assert resp.status_code == 422

    def test_executive_guard_reports_policy_reason(self, client, board):
        resp = client.post("/api/admin/reconcile", headers=auth_header("alice"))
        assert resp.status_code == 403
        assert "executive" in resp.json()["detail"]


class TestParticipationRoutes:
    def test_interest_then_attendance(self, client, board):
        activity = client.post("/api/activities", json={
            "name": "General Assembly", "activity_type": "general_assembly", "activity_points": 6,
        }, headers=auth_header("admin-1")).json()
        aid = activity["id"]

        marked = client.post(f"/api/activities/{aid}/interest", headers=auth_header("alice"))
        assert marked.status_code == 201
        assert marked.json()["is_interested"] is True

        assert client.patch(f"/api/activities/{aid}/participants/alice",
                            json={"is_interested": False},
                            headers=auth_header("alice")).status_code == 403

        present = client.patch(f"/api/activities/{aid}/participants/alice",
                               json={"is_interested": False, "rate": 4},
                               headers=auth_header("admin-1"))
        assert present.status_code == 200
        assert present.json()["points_awarded"] == 6
        assert client.get("/api/members/alice", headers=auth_header("alice")).json()["points"] == 6

    def test_withdraw_interest(self, client, board):
        aid = client.post("/api/activities", json={
            "name": "Meetup", "activity_type": "meeting",
        }, headers=auth_header("admin-1")).json()["id"]
        client.post(f"/api/activities/{aid}/interest", headers=auth_header("bob"))
        resp = client.delete(f"/api/activities/{aid}/interest", headers=auth_header("bob"))
        assert resp.json() == {"withdrawn": aid}


class TestTopByRoleRoute:
    def test_president_hidden(self, client, board):
        for mid, delta in [("pres", 100), ("alice", 20), ("admin-1", 5)]:
            client.post(f"/api/members/{mid}/points", json={"delta": delta, "description": "x"},
                        headers=auth_header("admin-1"))
        body = client.get("/api/leaderboard/by-role", headers=auth_header("bob")).json()
        assert [(e["role"], e["member_id"]) for e in body["entries"]] == [
            ("member", "alice"), ("admin", "admin-1"),
        ]

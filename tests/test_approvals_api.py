# tests/test_approvals_api.py
"""
Decisiones de aprobación, bandejas e historiales
"""
from decimal import Decimal

import pytest

from app.modules.audit.repository import AuditRepository
from app.shared.database.models import ApprovalDecision, DiscountRequest, User

REQUESTS_URL = "/api/v1/requests"
ACT_URL = "/api/v1/approvals/act"


def submit(client, auth, agent_id, buyer_id, amount):
    response = client.post(REQUESTS_URL, data={"buyer_id": str(buyer_id), "amount": amount}, headers=auth(agent_id))
    assert response.status_code == 200
    return response.json()["request_id"]


def act(client, auth, user_id, request_id, action="approved", comment=None):
    return client.post(ACT_URL, json={"id": request_id, "action": action, "comment": comment}, headers=auth(user_id))


class TestAct:

    def test_assigned_team_lead_approves(self, client, org, auth, db, notifier):
        request_id = submit(client, auth, org.agent, org.buyer, "20")

        response = act(client, auth, org.tl_a, request_id, comment="OK")

        assert response.status_code == 200
        assert response.json()["status"] == "approved"
        assert db.get(DiscountRequest, request_id).status == "approved"
        decision = db.query(ApprovalDecision).filter(ApprovalDecision.request_id == request_id).one()
        assert decision.approver_id == org.tl_a
        assert decision.approver_role == "team_lead"
        assert decision.comment == "OK"
        assert notifier.decisions == [(request_id, org.tl_a)]

    def test_decision_is_audited(self, client, org, auth, db):
        request_id = submit(client, auth, org.agent, org.buyer, "250")
        act(client, auth, org.director, request_id, action="rejected", comment="Demasiado")

        events = AuditRepository(db).events_for_request(request_id)

        assert [event.event for event in events] == ["created", "rejected"]
        assert events[1].actor_user_id == org.director
        assert events[1].meta["comment"] == "Demasiado"

    @pytest.mark.parametrize("second_actor", ["tl_a", "director", "dm_a"])
    def test_second_act_is_already_decided(self, client, org, auth, db, second_actor):
        request_id = submit(client, auth, org.agent, org.buyer, "20")
        assert act(client, auth, org.tl_a, request_id).status_code == 200

        response = act(client, auth, getattr(org, second_actor), request_id, action="rejected")

        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "already_decided"
        assert db.get(DiscountRequest, request_id).status == "approved"
        assert db.query(ApprovalDecision).filter(ApprovalDecision.request_id == request_id).count() == 1

    def test_wrong_role(self, client, org, auth, db):
        request_id = submit(client, auth, org.agent, org.buyer, "20")

        response = act(client, auth, org.dm_a, request_id)

        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "wrong_role"
        assert db.get(DiscountRequest, request_id).status == "pending"

    def test_other_team_lead_is_forbidden(self, client, org, auth, db):
        request_id = submit(client, auth, org.agent, org.buyer, "20")

        response = act(client, auth, org.tl_a2, request_id)

        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "forbidden"
        assert db.query(ApprovalDecision).count() == 0

    def test_division_manager_from_other_division_is_forbidden(self, client, org, auth, db):
        request_id = submit(client, auth, org.agent_b, org.buyer, "150")

        response = act(client, auth, org.dm_a, request_id)

        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "forbidden"
        assert db.get(DiscountRequest, request_id).status == "pending"

        assert act(client, auth, org.dm_b, request_id).status_code == 200

    def test_null_division_request_is_forbidden_for_null_division_manager(self, client, org, auth, db):
        manager = User(
            email="nodivdm@local", password_hash="x", first_name="Sin", last_name="Division",
            role="division_manager", is_active=True
        )
        db.add(manager)
        db.commit()
        request_id = submit(client, auth, org.agent_no_div, org.buyer, "150")

        response = act(client, auth, manager.id, request_id)

        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "forbidden"
        assert db.get(DiscountRequest, request_id).status == "pending"

    def test_sales_director_acts_on_any_division(self, client, org, auth):
        request_id = submit(client, auth, org.agent_b, org.buyer, "500")
        assert act(client, auth, org.director, request_id).status_code == 200

    def test_not_found(self, client, org, auth):
        response = act(client, auth, org.director, 9999)

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "not_found"

    def test_bad_action(self, client, org, auth, db):
        request_id = submit(client, auth, org.agent, org.buyer, "20")

        response = act(client, auth, org.tl_a, request_id, action="maybe")

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "bad_action"
        assert db.get(DiscountRequest, request_id).status == "pending"

    def test_agent_cannot_act(self, client, org, auth):
        request_id = submit(client, auth, org.agent, org.buyer, "20")
        assert act(client, auth, org.agent, request_id).status_code == 403

    def test_legacy_route(self, client, org, auth, db):
        request_id = submit(client, auth, org.agent, org.buyer, "20")

        response = client.post(
            f"/api/v1/approvals/{request_id}/rejected",
            json={"comment": "No aplica"},
            headers=auth(org.tl_a)
        )

        assert response.status_code == 200
        assert db.get(DiscountRequest, request_id).status == "rejected"

    def test_legacy_route_without_body(self, client, org, auth, db):
        request_id = submit(client, auth, org.agent, org.buyer, "20")

        response = client.post(f"/api/v1/approvals/{request_id}/approved", headers=auth(org.tl_a))

        assert response.status_code == 200
        assert db.get(DiscountRequest, request_id).status == "approved"

    def test_unassigned_legacy_row_is_resolved_at_act_time(self, client, org, auth, db):
        legacy = DiscountRequest(
            agent_id=org.agent,
            division_id=org.div_a,
            buyer_id=org.buyer,
            amount=Decimal("15.00"),
            required_role="team_lead",
            status="pending",
        )
        db.add(legacy)
        db.commit()

        assert act(client, auth, org.tl_a2, legacy.id).status_code == 403
        assert act(client, auth, org.tl_a, legacy.id).status_code == 200

    def test_inactive_default_lead_is_not_assigned(self, client, org, auth, db):
        db.query(User).filter(User.id == org.tl_a).update({"is_active": False})
        db.commit()

        created = client.post(
            REQUESTS_URL, data={"buyer_id": str(org.buyer), "amount": "20"}, headers=auth(org.agent)
        ).json()

        assert created["assigned_to_user_id"] == org.tl_a2
        assert created["assigned_reason"] == "first_in_division"
        assert act(client, auth, org.tl_a2, created["request_id"]).status_code == 200


class TestPending:

    def _seed(self, client, org, auth):
        return {
            "team_a": submit(client, auth, org.agent, org.buyer, "20"),
            "division_a": submit(client, auth, org.agent, org.buyer, "150"),
            "division_b": submit(client, auth, org.agent_b, org.buyer, "150"),
            "director": submit(client, auth, org.agent_b, org.buyer, "300"),
        }

    def _pending_ids(self, client, auth, user_id):
        response = client.get("/api/v1/approvals/pending", headers=auth(user_id))
        assert response.status_code == 200
        return {item["id"] for item in response.json()["items"]}

    def test_each_role_sees_its_own_queue(self, client, org, auth):
        ids = self._seed(client, org, auth)

        assert self._pending_ids(client, auth, org.tl_a) == {ids["team_a"]}
        assert self._pending_ids(client, auth, org.tl_a2) == set()
        assert self._pending_ids(client, auth, org.dm_a) == {ids["division_a"]}
        assert self._pending_ids(client, auth, org.dm_b) == {ids["division_b"]}
        assert self._pending_ids(client, auth, org.director) == {ids["director"]}

    def test_decided_requests_leave_the_queue(self, client, org, auth):
        ids = self._seed(client, org, auth)
        act(client, auth, org.dm_a, ids["division_a"])

        assert self._pending_ids(client, auth, org.dm_a) == set()

    def test_agents_have_no_queue(self, client, org, auth):
        response = client.get("/api/v1/approvals/pending", headers=auth(org.agent))
        assert response.status_code == 403


class TestHistory:

    def _decide_some(self, client, org, auth):
        team_a = submit(client, auth, org.agent, org.buyer, "20")
        division_b = submit(client, auth, org.agent_b, org.buyer, "150")
        director = submit(client, auth, org.agent, org.buyer, "300")
        act(client, auth, org.tl_a, team_a)
        act(client, auth, org.dm_b, division_b, action="rejected")
        act(client, auth, org.director, director)
        return team_a, division_b, director

    def _history(self, client, auth, path, user_id):
        return client.get(f"/api/v1/approvals/{path}", headers=auth(user_id))

    def test_my_history(self, client, org, auth):
        team_a, _, _ = self._decide_some(client, org, auth)

        body = self._history(client, auth, "my-history", org.tl_a).json()

        assert [item["request_id"] for item in body["items"]] == [team_a]
        assert body["items"][0]["action"] == "approved"

    def test_role_history_is_division_scoped(self, client, org, auth):
        _, division_b, _ = self._decide_some(client, org, auth)

        assert self._history(client, auth, "role-history", org.dm_a).json()["total"] == 0
        body = self._history(client, auth, "role-history", org.dm_b).json()
        assert [item["request_id"] for item in body["items"]] == [division_b]

    def test_all_history_for_sales_director(self, client, org, auth):
        self._decide_some(client, org, auth)

        assert self._history(client, auth, "all-history", org.director).json()["total"] == 3
        assert self._history(client, auth, "all-history", org.tl_a).status_code == 403

    def test_team_lead_history_for_division_manager(self, client, org, auth):
        team_a, _, _ = self._decide_some(client, org, auth)

        body = self._history(client, auth, "teamlead-history", org.dm_a).json()
        assert [item["request_id"] for item in body["items"]] == [team_a]
        assert self._history(client, auth, "teamlead-history", org.dm_b).json()["total"] == 0
        assert self._history(client, auth, "teamlead-history", org.director).status_code == 403

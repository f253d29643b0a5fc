"""HTTP tests for the project lifecycle blueprint.

Covers request parsing, error mapping (400 / 404 / 409 / 422) and the
end-to-end scenarios that go through several endpoints.
"""

from datetime import date, timedelta

from agency_ops.models import db
from agency_ops.models.project import Project

BASE = "/api/v1/projects"


def _create(api, headers, **overrides):
    body = {
        "name": "Bakery Website",
        "client": "Sweet Crumbs",
        "type": "web",
        "total_amount": 4000,
        "team": [
            {"role": "Project Manager", "name": "Ayşe"},
            {"role": "Designer", "name": "Deniz"},
            {"role": "Frontend Dev", "name": "Mehmet"},
        ],
    }
    body.update(overrides)
    res = api.post(BASE, json=body, headers=headers)
    assert res.status_code == 201, res.get_json()
    return res.get_json()


def _stage(project_json, name):
    return next(s for s in project_json["stages"] if s["name"] == name)


class TestProjectsEndpoints:

    def test_create_and_get(self, client, headers):
        created = _create(client, headers)
        assert created["progress"] == 0
        assert len(created["stages"]) == 7
        assert created["created_by_name"] == headers["X-User-Name"]

        res = client.get(f"{BASE}/{created['id']}")
        assert res.status_code == 200
        assert res.get_json()["name"] == "Bakery Website"

    def test_create_requires_name(self, client, headers):
        res = client.post(BASE, json={"client": "X"}, headers=headers)
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    def test_create_invalid_type_is_422(self, client, headers):
        res = client.post(BASE, json={"name": "A", "client": "B", "type": "spaceship"}, headers=headers)
        assert res.status_code == 422
        assert "type" in res.get_json()["details"]

    def test_list_with_search_and_pagination(self, client, headers):
        _create(client, headers, name="Bakery Website")
        _create(client, headers, name="Florist Shop", client="Petals")
        res = client.get(f"{BASE}?search=petal")
        body = res.get_json()
        assert body["total"] == 1
        assert body["items"][0]["name"] == "Florist Shop"
        assert "stages" not in body["items"][0]

        res = client.get(f"{BASE}?limit=1")
        assert len(res.get_json()["items"]) == 1
        assert res.get_json()["total"] == 2

    def test_unknown_project_is_404(self, client):
        res = client.get(f"{BASE}/9999/health")
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_non_json_body_rejected(self, client, headers):
        res = client.post(BASE, data="name=x", headers={**headers, "Content-Type": "text/plain"})
        assert res.status_code == 415


class TestProjectUpdateEndpoints:

    def _pause(self, client, headers):
        created = _create(client, headers, due_date=(date.today() + timedelta(days=60)).isoformat())
        from agency_ops.services.payments import payments_for_project

        payments_for_project(created["id"])[0].due_date = date.today() - timedelta(days=1)
        db.session.commit()
        client.get(f"{BASE}/{created['id']}/health")
        assert db.session.get(Project, created["id"]).mode == "paused"
        return created["id"]

    def test_resume_paused_project(self, client, headers):
        pid = self._pause(client, headers)

        res = client.put(f"{BASE}/{pid}", json={"mode": "active", "status": "info"}, headers=headers)

        assert res.status_code == 200
        body = res.get_json()
        assert body["mode"] == "active"
        assert body["status"] == "info"
        feed = client.get(f"{BASE}/{pid}/activities?limit=1").get_json()["items"]
        assert feed[0]["action"] == "updated project details (mode, status)"

    def test_update_team_and_due_date(self, client, headers):
        created = _create(client, headers)
        res = client.put(f"{BASE}/{created['id']}", json={
            "due_date": "2031-03-01",
            "team": [{"role": "QA Engineer", "name": "Selin"}],
        }, headers=headers)
        body = res.get_json()
        assert res.status_code == 200
        assert body["due_date"] == "2031-03-01"
        assert [m["name"] for m in body["team"]] == ["Selin"]

    def test_empty_body_is_400(self, client, headers):
        created = _create(client, headers)
        res = client.put(f"{BASE}/{created['id']}", json={}, headers=headers)
        assert res.status_code == 400

    def test_no_updatable_fields_is_422(self, client, headers):
        created = _create(client, headers)
        res = client.put(f"{BASE}/{created['id']}", json={"progress": 100}, headers=headers)
        assert res.status_code == 422
        assert res.get_json()["code"] == "ERR_VALIDATION_RULE"

    def test_invalid_mode_is_422(self, client, headers):
        created = _create(client, headers)
        res = client.put(f"{BASE}/{created['id']}", json={"mode": "hibernating"}, headers=headers)
        assert res.status_code == 422
        assert "mode" in res.get_json()["details"]

    def test_unknown_project_is_404(self, client, headers):
        res = client.put(f"{BASE}/9999", json={"mode": "active"}, headers=headers)
        assert res.status_code == 404

    def test_stats(self, client, headers):
        _create(client, headers)
        _create(client, headers, name="Florist Shop", status="warning")
        res = client.get(f"{BASE}/stats")
        assert res.status_code == 200
        assert res.get_json() == {"total": 2, "danger": 0, "info": 1, "success": 0, "warning": 1}


class TestStageEndpoints:

    def test_update_stage_and_item(self, client, headers):
        created = _create(client, headers)
        pid = created["id"]
        requirement = _stage(created, "Requirement")

        res = client.put(f"{BASE}/{pid}/stages/{requirement['id']}", json={"status": "in-progress"}, headers=headers)
        assert res.status_code == 200
        assert res.get_json()["current_stage"] == "Requirement"

        item_id = requirement["items"][0]["id"]
        res = client.put(f"{BASE}/{pid}/stages/{requirement['id']}/items/{item_id}", json={"done": True}, headers=headers)
        assert _stage(res.get_json(), "Requirement")["items"][0]["done"] is True

    def test_update_stage_empty_body(self, client, headers):
        created = _create(client, headers)
        sid = _stage(created, "Design")["id"]
        res = client.put(f"{BASE}/{created['id']}/stages/{sid}", json={}, headers=headers)
        assert res.status_code == 400

    def test_update_stage_rejects_string_visibility(self, client, headers):
        created = _create(client, headers)
        sid = _stage(created, "Design")["id"]
        res = client.put(f"{BASE}/{created['id']}/stages/{sid}", json={"client_visible": "false"}, headers=headers)
        assert res.status_code == 422
        assert "client_visible" in res.get_json()["details"]

    def test_unknown_stage_is_404(self, client, headers):
        created = _create(client, headers)
        res = client.put(f"{BASE}/{created['id']}/stages/not-a-stage/visibility", json={}, headers=headers)
        assert res.status_code == 404

    def test_visibility_and_client_view(self, client, headers):
        created = _create(client, headers)
        pid = created["id"]
        for stage in created["stages"]:
            if stage["name"] != "Design":
                client.put(f"{BASE}/{pid}/stages/{stage['id']}/visibility",
                           json={"client_visible": False}, headers=headers)

        view = client.get(f"{BASE}/{pid}/client-view").get_json()
        assert [p["name"] for p in view["phases"]] == ["Design"]
        assert "team" not in view

    def test_report_data(self, client, headers):
        created = _create(client, headers)
        sid = _stage(created, "QA Testing")["id"]
        res = client.get(f"{BASE}/{created['id']}/stages/{sid}/report-data?type=client")
        assert res.status_code == 200
        assert res.get_json()["type"] == "client"

        res = client.get(f"{BASE}/{created['id']}/stages/{sid}/report-data?type=sonnet")
        assert res.status_code == 422


class TestApprovalEndpoints:

    def test_admin_before_subadmin_is_409(self, client, headers):
        created = _create(client, headers)
        sid = _stage(created, "Requirement")["id"]
        client.put(f"{BASE}/{created['id']}/stages/{sid}/submit-approval", headers=headers)

        res = client.put(f"{BASE}/{created['id']}/stages/{sid}/admin-approve", json={}, headers=headers)
        assert res.status_code == 409
        body = res.get_json()
        assert body["code"] == "ERR_INVALID_STATE"
        assert body["details"]["current_state"] == "submitted"

    def test_full_chain_advances_project(self, client, headers):
        created = _create(client, headers)
        pid = created["id"]
        sid = _stage(created, "Requirement")["id"]

        client.put(f"{BASE}/{pid}/stages/{sid}/submit-approval", headers=headers)
        client.put(f"{BASE}/{pid}/stages/{sid}/subadmin-review", json={"comment": "ok"}, headers=headers)
        res = client.put(f"{BASE}/{pid}/stages/{sid}/admin-approve", json={"decision": "approved"}, headers=headers)

        body = res.get_json()
        assert res.status_code == 200
        assert body["progress"] == 14
        assert body["current_stage"] == "Design"
        assert _stage(body, "Requirement")["approval_workflow"]["admin_approval"]["status"] == "approved"

        docs = client.get(f"{BASE}/{pid}/documents").get_json()["items"]
        assert [d["type"] for d in docs] == ["stage-summary"]

    def test_invalid_decision_is_422(self, client, headers):
        created = _create(client, headers)
        sid = _stage(created, "Requirement")["id"]
        client.put(f"{BASE}/{created['id']}/stages/{sid}/submit-approval", headers=headers)
        res = client.put(f"{BASE}/{created['id']}/stages/{sid}/subadmin-review",
                         json={"decision": "perhaps"}, headers=headers)
        assert res.status_code == 422

    def test_maintenance_before_delivery_is_409(self, client, headers):
        created = _create(client, headers)
        res = client.put(f"{BASE}/{created['id']}/maintenance", json={}, headers=headers)
        assert res.status_code == 409


class TestDerivedStateEndpoints:

    def test_blockers_payment_scenario(self, client, headers):
        created = _create(client, headers)
        pid = created["id"]
        design = _stage(created, "Design")
        client.put(f"{BASE}/{pid}/stages/{design['id']}/link-payment",
                   json={"milestone_label": "Advance Payment"}, headers=headers)

        res = client.get(f"{BASE}/{pid}/blockers")
        stages = {s["stage_name"]: s for s in res.get_json()["stages"]}
        assert stages["Design"]["status"] == "blocked"
        assert stages["Design"]["blockers"][0]["type"] == "payment-pending"

    def test_link_payment_requires_label(self, client, headers):
        created = _create(client, headers)
        sid = _stage(created, "Design")["id"]
        res = client.put(f"{BASE}/{created['id']}/stages/{sid}/link-payment", json={}, headers=headers)
        assert res.status_code == 400

    def test_health_pauses_on_overdue(self, client, headers):
        created = _create(client, headers, due_date=(date.today() + timedelta(days=60)).isoformat())
        pid = created["id"]
        from agency_ops.services.payments import payments_for_project

        advance = payments_for_project(pid)[0]
        advance.due_date = date.today() - timedelta(days=1)
        db.session.commit()

        res = client.get(f"{BASE}/{pid}/health")
        body = res.get_json()
        assert res.status_code == 200
        assert body["payment"] == "danger"
        assert 0 <= body["overall_score"] <= 100
        assert db.session.get(Project, pid).mode == "paused"

    def test_asset_flow_ticks_checklist(self, client, headers):
        created = _create(client, headers)
        pid = created["id"]
        sid = _stage(created, "Requirement")["id"]

        res = client.post(f"{BASE}/{pid}/stages/{sid}/asset-requests",
                          json={"label": "Client Approval Document", "type": "approval"}, headers=headers)
        assert res.status_code == 201
        asset_id = _stage(res.get_json(), "Requirement")["asset_requests"][0]["id"]

        res = client.put(f"{BASE}/{pid}/stages/{sid}/asset-requests/{asset_id}",
                         json={"status": "received"}, headers=headers)
        items = _stage(res.get_json(), "Requirement")["items"]
        assert [i["done"] for i in items] == [False, False, True, False]

        res = client.delete(f"{BASE}/{pid}/stages/{sid}/asset-requests/{asset_id}", headers=headers)
        assert _stage(res.get_json(), "Requirement")["asset_requests"] == []

    def test_activity_feed(self, client, headers):
        created = _create(client, headers)
        res = client.get(f"{BASE}/{created['id']}/activities?limit=5")
        items = res.get_json()["items"]
        assert items[0]["action"] == "created the project"
        assert items[0]["user_name"] == headers["X-User-Name"]


class TestHealthProbes:

    def test_ready(self, client):
        assert client.get("/api/v1/health/ready").get_json() == {"status": "ok"}

    def test_live(self, client):
        res = client.get("/api/v1/health/live")
        assert res.status_code == 200
        assert res.get_json()["checks"]["database"]["status"] == "ok"
        assert res.get_json()["checks"]["document_service"]["status"] == "skipped"

"""Tests for the client view projection."""

from datetime import date, timedelta

from agency_ops.models import db
from agency_ops.models.project import AssetRequest
from agency_ops.services.client_view import get_client_view, visible_stages

TODAY = date(2026, 5, 10)


class TestStageFilter:

    def test_only_visible_stages(self, project):
        for stage in project.stages:
            stage.client_visible = stage.name in ("Design", "Delivery")
        db.session.commit()

        view = get_client_view(project.id, today=TODAY)
        assert [p["name"] for p in view["phases"]] == ["Design", "Delivery"]

    def test_falls_back_to_all_stages_when_none_visible(self, project):
        for stage in project.stages:
            stage.client_visible = False
        db.session.commit()

        assert len(visible_stages(project.stages)) == 7
        assert len(get_client_view(project.id, today=TODAY)["phases"]) == 7

    def test_phase_completion_rate(self, project):
        requirement = project.stage_named("Requirement")
        requirement.items[0].done = True
        project.stage_named("Frontend").set_status("completed")
        db.session.commit()

        phases = {p["name"]: p for p in get_client_view(project.id, today=TODAY)["phases"]}
        assert phases["Requirement"]["completion_rate"] == 25
        assert phases["Frontend"]["completion_rate"] == 100
        assert phases["Backend"]["completion_rate"] == 0


class TestContent:

    def test_internal_fields_hidden(self, project, actor):
        from agency_ops.services.approval_workflow import submit_stage_for_approval

        submit_stage_for_approval(project.id, project.stage_named("Requirement").id, actor)
        view = get_client_view(project.id, today=TODAY)

        assert "team" not in view
        for phase in view["phases"]:
            assert "approval_workflow" not in phase
            assert "assigned_name" not in phase
            assert "summary" not in phase

    def test_assets_collected_from_hidden_stages(self, project):
        design = project.stage_named("Design")
        design.client_visible = False
        design.asset_requests.append(AssetRequest(label="Logo", type="logo"))
        design.asset_requests.append(AssetRequest(
            label="Brand guide", type="brand-guide", status="received", file_name="brand.pdf",
        ))
        db.session.commit()

        view = get_client_view(project.id, today=TODAY)
        assert [a["label"] for a in view["pending_from_client"]] == ["Logo"]
        assert view["pending_from_client"][0]["stage_name"] == "Design"
        assert view["completed_by_client"][0]["file_name"] == "brand.pdf"

    def test_payment_block(self, project, add_payment_fn):
        add_payment_fn(project, "Advance Payment", 2500, status="received")
        add_payment_fn(project, "1st Milestone", 2500, due_date=TODAY - timedelta(days=3))
        add_payment_fn(project, "2nd Milestone", 5000, due_date=TODAY + timedelta(days=30))

        payments = get_client_view(project.id, today=TODAY)["payments"]
        assert payments["total"] == 10000
        assert payments["received"] == 2500
        assert payments["pending"] == 7500
        assert payments["is_overdue"] is True
        assert payments["overdue_count"] == 1
        assert [d["label"] for d in payments["details"]] == ["Advance Payment", "1st Milestone", "2nd Milestone"]

    def test_blocker_reasons_and_pause_flag(self, project):
        frontend = project.stage_named("Frontend")
        frontend.blocker_reasons = [{"type": "repo-empty", "label": "Repository URL is empty", "severity": "info"}]
        project.mode = "paused"
        db.session.commit()

        view = get_client_view(project.id, today=TODAY)
        assert view["blocker_reasons"] == [{
            "stage_name": "Frontend", "type": "repo-empty",
            "label": "Repository URL is empty", "severity": "info",
        }]
        assert view["is_paused"] is True

    def test_read_only(self, project):
        version = project.version
        get_client_view(project.id, today=TODAY)
        db.session.commit()
        assert project.version == version

"""Tests for the health scorer and the overdue-payment pause."""

from datetime import date, timedelta

import pytest

from agency_ops.models import db
from agency_ops.models.activity import Activity
from agency_ops.models.project import AssetRequest
from agency_ops.services.health_scorer import apply_overdue_pause, compute_health, get_project_health
from agency_ops.services.payments import payments_for_project

TODAY = date(2026, 3, 1)


def project_payments(project):
    return payments_for_project(project.id)


class TestSignals:

    def test_baseline_full_team_on_track(self, project, add_payment_fn):
        add_payment_fn(project, "Advance Payment", 1000, status="received")
        project.due_date = TODAY + timedelta(days=90)
        health = compute_health(project, project_payments(project), TODAY)

        assert health.payment == "healthy"
        assert health.developer_assignment == "full"
        assert health.qa_status == "not-started"
        assert health.deadline_risk == "on-track"
        assert health.client_pending == 3
        # 50 + 15 (payment) - 9 (client pending) + 10 (team) + 10 (deadline)
        assert health.overall_score == 76

    def test_overdue_payment_is_danger(self, project, add_payment_fn):
        add_payment_fn(project, "1st Milestone", 500, due_date=TODAY - timedelta(days=1))
        health = compute_health(project, project_payments(project), TODAY)
        assert health.payment == "danger"
        assert health.overdue_payments_exist is True
        assert health.payment_details == {"total": 500, "received": 0, "overdue": 1}

    def test_low_collection_is_warning(self, project, add_payment_fn):
        add_payment_fn(project, "Advance Payment", 100, status="received")
        add_payment_fn(project, "1st Milestone", 900)
        assert compute_health(project, project_payments(project), TODAY).payment == "warning"

    def test_pending_assets_count_against_client(self, project):
        design = project.stage_named("Design")
        design.asset_requests.append(AssetRequest(label="Logo", type="logo", status="pending"))
        design.asset_requests.append(AssetRequest(label="Copy", type="content", status="pending"))
        assert compute_health(project, [], TODAY).client_pending == 5

    @pytest.mark.parametrize("team_size,expected", [(0, "none"), (1, "partial"), (3, "full")])
    def test_developer_assignment(self, make_project_fn, team_size, expected):
        roles = ["Project Manager", "Designer", "QA Engineer"]
        p = make_project_fn(team=[{"role": r, "name": r} for r in roles[:team_size]])
        assert compute_health(p, [], TODAY).developer_assignment == expected

    def test_qa_signal(self, project):
        qa = project.stage_named("QA Testing")
        qa.set_status("in-progress")
        assert compute_health(project, [], TODAY).qa_status == "in-progress"
        qa.set_status("completed")
        assert compute_health(project, [], TODAY).qa_status == "passed"
        qa.set_status("pending")
        qa.health = "danger"
        assert compute_health(project, [], TODAY).qa_status == "failed"

    def test_deadline_risk(self, project):
        project.due_date = TODAY + timedelta(days=5)
        assert compute_health(project, [], TODAY).deadline_risk == "at-risk"
        project.due_date = TODAY - timedelta(days=1)
        assert compute_health(project, [], TODAY).deadline_risk == "overdue"
        project.due_date = None
        assert compute_health(project, [], TODAY).deadline_risk == "on-track"

    def test_thresholds_are_configurable(self, project):
        project.due_date = TODAY + timedelta(days=20)
        assert compute_health(project, [], TODAY).deadline_risk == "on-track"
        assert compute_health(project, [], TODAY, at_risk_days=30).deadline_risk == "at-risk"


class TestScoreBounds:

    def test_score_never_below_zero(self, make_project_fn, add_payment_fn):
        p = make_project_fn(due_date=(TODAY - timedelta(days=10)).isoformat())
        design = p.stage_named("Design")
        for n in range(20):
            design.asset_requests.append(AssetRequest(label=f"Asset {n}", type="other", status="pending"))
        add_payment_fn(p, "Advance Payment", 100, due_date=TODAY - timedelta(days=3))
        assert compute_health(p, project_payments(p), TODAY).overall_score == 0

    def test_score_never_above_hundred(self, project):
        for stage in project.stages:
            for item in stage.items:
                item.done = True
        project.stage_named("QA Testing").set_status("completed")
        project.due_date = TODAY + timedelta(days=365)
        score = compute_health(project, [], TODAY).overall_score
        assert 0 <= score <= 100
        assert score == 95


class TestOverduePause:

    def test_pauses_active_project_once(self, project, add_payment_fn):
        payment = add_payment_fn(project, "Advance Payment", due_date=TODAY - timedelta(days=2))
        assert apply_overdue_pause(project, [payment], TODAY) is True
        db.session.commit()
        assert project.mode == "paused"
        assert project.status == "danger"

        assert apply_overdue_pause(project, [payment], TODAY) is False
        entries = Activity.query.filter(Activity.action.like("[AUTO] Payment overdue%")).all()
        assert len(entries) == 1

    def test_maintenance_project_not_paused(self, project, add_payment_fn):
        payment = add_payment_fn(project, "Advance Payment", due_date=TODAY - timedelta(days=2))
        project.mode = "maintenance"
        assert apply_overdue_pause(project, [payment], TODAY) is False
        assert project.mode == "maintenance"

    def test_get_project_health_persists_snapshot(self, project, add_payment_fn):
        add_payment_fn(project, "Advance Payment", due_date=TODAY - timedelta(days=2))
        result = get_project_health(project.id, today=TODAY)

        assert result["payment"] == "danger"
        assert project.health_score == result["overall_score"]
        assert project.health_payment == "danger"
        assert project.health_updated_at is not None
        assert project.mode == "paused"

    def test_progress_independent_of_health(self, project, add_payment_fn):
        add_payment_fn(project, "Advance Payment", due_date=TODAY - timedelta(days=2))
        get_project_health(project.id, today=TODAY)
        assert project.progress == 0
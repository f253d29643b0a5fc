"""Tests for the stage approval workflow and maintenance mode.

Coverage:
  1. submit → sub-admin → admin happy path, including stage advancement
  2. Guard rails: admin before sub-admin, review before submission, decided stages
  3. Rejection and resubmission
  4. Advancement never clobbers a next stage that is not pending
  5. Automation runs after approval (stage summary, Delivery documents)
  6. Maintenance mode gate and idempotent Maintenance stage
"""

import pytest

from agency_ops.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from agency_ops.models.document import Document
from agency_ops.services.approval_workflow import (
    admin_approve_stage,
    approval_state,
    enter_maintenance_mode,
    submit_stage_for_approval,
    subadmin_review_stage,
)

SUBADMIN = {"id": "u-2", "name": "Can Lead", "role": "subadmin"}
ADMIN = {"id": "u-3", "name": "Zeynep Admin", "role": "admin"}


def _approve(project, stage, actor):
    submit_stage_for_approval(project.id, stage.id, actor)
    subadmin_review_stage(project.id, stage.id, SUBADMIN)
    return admin_approve_stage(project.id, stage.id, ADMIN)


class TestHappyPath:

    def test_full_chain(self, project, actor):
        requirement = project.stage_named("Requirement")

        submit_stage_for_approval(project.id, requirement.id, actor)
        assert approval_state(requirement) == "submitted"
        assert requirement.submitted_by_name == actor["name"]

        subadmin_review_stage(project.id, requirement.id, SUBADMIN, comment="Looks good")
        assert approval_state(requirement) == "subadmin-approved"
        assert requirement.subadmin_reviewed_by_name == "Can Lead"

        admin_approve_stage(project.id, requirement.id, ADMIN)
        assert approval_state(requirement) == "admin-approved"
        assert requirement.approved is True
        assert requirement.status == "completed"

        design = project.stage_named("Design")
        assert design.status == "in-progress"
        assert project.current_stage == "Design"
        assert project.progress == 14

    def test_legacy_stage_id_accepted(self, project, actor):
        design = project.stage_named("Design")
        design.legacy_id = "a1b2c3"
        submit_stage_for_approval(project.id, "a1b2c3", actor)
        assert design.is_submitted

    def test_workflow_serialized_as_nested_record(self, project, actor):
        requirement = project.stage_named("Requirement")
        _approve(project, requirement, actor)
        wf = requirement.to_dict()["approval_workflow"]
        assert wf["subadmin_review"]["status"] == "approved"
        assert wf["admin_approval"]["approved_by_name"] == "Zeynep Admin"


class TestGuards:

    def test_admin_requires_subadmin_approval(self, project, actor):
        requirement = project.stage_named("Requirement")
        submit_stage_for_approval(project.id, requirement.id, actor)
        with pytest.raises(InvalidStateError) as exc:
            admin_approve_stage(project.id, requirement.id, ADMIN)
        assert exc.value.current_state == "submitted"
        assert requirement.status == "pending"

    def test_review_requires_submission(self, project):
        requirement = project.stage_named("Requirement")
        with pytest.raises(InvalidStateError):
            subadmin_review_stage(project.id, requirement.id, SUBADMIN)

    def test_no_second_admin_decision(self, project, actor):
        requirement = project.stage_named("Requirement")
        _approve(project, requirement, actor)
        with pytest.raises(InvalidStateError):
            admin_approve_stage(project.id, requirement.id, ADMIN, decision="rejected")
        with pytest.raises(InvalidStateError):
            subadmin_review_stage(project.id, requirement.id, SUBADMIN, decision="rejected")
        assert requirement.admin_status == "approved"

    def test_unknown_decision(self, project, actor):
        requirement = project.stage_named("Requirement")
        submit_stage_for_approval(project.id, requirement.id, actor)
        with pytest.raises(ValidationError):
            subadmin_review_stage(project.id, requirement.id, SUBADMIN, decision="maybe")

    def test_unknown_stage(self, project, actor):
        with pytest.raises(NotFoundError):
            submit_stage_for_approval(project.id, "missing", actor)


class TestRejection:

    def test_subadmin_rejection_then_resubmit(self, project, actor):
        requirement = project.stage_named("Requirement")
        submit_stage_for_approval(project.id, requirement.id, actor)
        subadmin_review_stage(project.id, requirement.id, SUBADMIN, decision="rejected", comment="Missing scope")
        assert approval_state(requirement) == "subadmin-rejected"

        with pytest.raises(InvalidStateError):
            admin_approve_stage(project.id, requirement.id, ADMIN)

        submit_stage_for_approval(project.id, requirement.id, actor)
        assert approval_state(requirement) == "submitted"
        assert requirement.subadmin_comment == ""

    def test_admin_rejection_keeps_stage_open(self, project, actor):
        requirement = project.stage_named("Requirement")
        requirement.set_status("in-progress")
        submit_stage_for_approval(project.id, requirement.id, actor)
        subadmin_review_stage(project.id, requirement.id, SUBADMIN)
        admin_approve_stage(project.id, requirement.id, ADMIN, decision="rejected")

        assert approval_state(requirement) == "admin-rejected"
        assert requirement.approved is False
        assert requirement.status == "in-progress"
        assert project.stage_named("Design").status == "pending"


class TestAdvancement:

    def test_next_stage_not_clobbered(self, project, actor):
        design = project.stage_named("Design")
        design.set_status("blocked")
        _approve(project, project.stage_named("Requirement"), actor)
        assert design.status == "blocked"
        assert project.current_stage == "Requirement"

    def test_last_stage_approval_has_no_next(self, project, actor):
        delivery = project.stage_named("Delivery")
        _approve(project, delivery, actor)
        assert delivery.status == "completed"
        assert project.stage_named("Maintenance") is None


class TestAutomationAfterApproval:

    def test_stage_summary_generated(self, project, actor):
        _approve(project, project.stage_named("Requirement"), actor)
        docs = Document.query.filter_by(project_id=project.id).all()
        assert [d.type for d in docs] == ["stage-summary"]
        assert docs[0].stage == "Requirement"

    def test_delivery_generates_handover_kit(self, project, actor):
        _approve(project, project.stage_named("Delivery"), actor)
        types = sorted(d.type for d in Document.query.filter_by(project_id=project.id))
        assert types == ["feedback-request", "handover", "maintenance-agreement", "stage-summary"]


class TestMaintenanceMode:

    def test_requires_delivery_approval(self, project, actor):
        with pytest.raises(InvalidStateError):
            enter_maintenance_mode(project.id, actor)
        assert project.mode == "active"

    def test_enters_and_appends_stage_once(self, project, actor):
        _approve(project, project.stage_named("Delivery"), actor)

        enter_maintenance_mode(project.id, actor, notes="Monthly retainer")
        assert project.mode == "maintenance"
        assert project.current_stage == "Maintenance"
        assert project.maintenance_notes == "Monthly retainer"
        maintenance = project.stage_named("Maintenance")
        assert maintenance.order == 8
        assert maintenance.status == "in-progress"

        enter_maintenance_mode(project.id, actor)
        assert [s.name for s in project.stages].count("Maintenance") == 1

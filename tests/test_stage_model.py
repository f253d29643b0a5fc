"""Tests for the stage model, stage lookup and payment schedule helpers.

Coverage:
  1. Template seeding on intake (seven stages, checklist items, deliveries)
  2. Progress is recomputed on every flush
  3. Legacy status synonyms are normalized; unknown statuses rejected
  4. Stage shape validation (order uniqueness, items only on checklist stages)
  5. find_stage_by_id resolves native ids and legacy string ids
  6. matching_checklist_item: substring first, then keyword overlap
  7. build_payment_schedule splits the contract amount
"""

import pytest

from agency_ops.core.exceptions import NotFoundError, ValidationError
from agency_ops.models import db
from agency_ops.models.project import ChecklistItem, Stage, percent, validate_stage_shape
from agency_ops.services.payments import build_payment_schedule, payments_for_project
from agency_ops.services.stage_lookup import find_stage_by_id, matching_checklist_item


class TestTemplateSeeding:

    def test_seven_stages_in_order(self, project):
        assert [s.name for s in project.stages] == [
            "Requirement", "Design", "Frontend", "Backend",
            "QA Testing", "Hosting & Deployment", "Delivery",
        ]
        assert [s.order for s in project.stages] == list(range(1, 8))
        assert all(s.status == "pending" for s in project.stages)

    def test_checklist_items_and_deliveries(self, project):
        requirement = project.stage_named("Requirement")
        assert [i.text for i in requirement.items][2] == "Get client approval"
        assert not any(i.done for i in requirement.items)

        delivery = project.stage_named("Delivery")
        assert delivery.items == []
        assert [d["name"] for d in delivery.deliveries] == ["Beta Release", "Final Release", "Production Deploy"]
        assert all(d["approved"] is False for d in delivery.deliveries)

    def test_current_stage_and_progress(self, project):
        assert project.current_stage == "Requirement"
        assert project.progress == 0

    def test_payment_schedule_seeded(self, make_project_fn):
        p = make_project_fn(total_amount=10000, advance_percent=25, milestones=3)
        payments = payments_for_project(p.id)
        assert [x.label for x in payments] == ["Advance Payment", "1st Milestone", "2nd Milestone", "3rd Milestone"]
        assert sum(x.amount for x in payments) == 10000
        assert all(x.status == "pending" for x in payments)

    def test_missing_client_rejected(self, make_project_fn):
        with pytest.raises(ValidationError):
            make_project_fn(client="")

    def test_imported_stages_keep_legacy_ids(self, make_project_fn):
        p = make_project_fn(stages=[
            {"name": "Requirement", "order": 1, "legacy_id": "stg-a1", "status": "approved",
             "items": [{"text": "Gather client requirements", "done": True}]},
            {"name": "Design", "order": 2, "legacy_id": "stg-b2", "status": "active"},
        ])
        assert [s.status for s in p.stages] == ["completed", "in-progress"]
        assert p.progress == 50
        assert find_stage_by_id(p, "stg-b2").name == "Design"


class TestProgressInvariant:

    def test_progress_follows_completed_ratio(self, project):
        project.stages[0].set_status("completed")
        db.session.commit()
        assert project.progress == percent(1, 7) == 14

        project.stages[1].set_status("completed")
        project.stages[2].set_status("completed")
        db.session.commit()
        assert project.progress == 43

    def test_progress_recomputed_when_stage_reopened(self, project):
        for stage in project.stages:
            stage.set_status("completed")
        db.session.commit()
        assert project.progress == 100

        project.stages[-1].set_status("in-progress")
        db.session.commit()
        assert project.progress == 86

    def test_child_change_bumps_version(self, project):
        version = project.version
        project.stages[0].items[0].done = True
        db.session.commit()
        assert project.version == version + 1

    def test_percent_rounding(self):
        assert percent(0, 0) == 0
        assert percent(1, 8) == 13
        assert percent(1, 3) == 33
        assert percent(2, 3) == 67


class TestStatusNormalization:

    def test_synonyms_normalized(self, project):
        stage = project.stages[0]
        stage.status = "active"
        assert stage.status == "in-progress"
        stage.status = "approved"
        assert stage.status == "completed"

    def test_unknown_status_rejected(self, project):
        with pytest.raises(ValidationError) as exc:
            project.stages[0].status = "done"
        assert "status" in exc.value.details


class TestStageShape:

    def test_duplicate_order_rejected(self, project):
        extra = Stage(name="Maintenance", type="maintenance", order=3, status="pending")
        with pytest.raises(ValidationError) as exc:
            validate_stage_shape(extra, siblings=list(project.stages) + [extra])
        assert "order" in exc.value.details

    def test_items_only_on_checklist_stages(self, project):
        frontend = project.stage_named("Frontend")
        frontend.items.append(ChecklistItem(text="Stray item", position=0))
        with pytest.raises(ValidationError) as exc:
            validate_stage_shape(frontend)
        assert "items" in exc.value.details
        db.session.rollback()

    def test_unknown_name_rejected(self):
        stage = Stage(name="Launch Party", type="checklist", order=9, status="pending")
        with pytest.raises(ValidationError) as exc:
            validate_stage_shape(stage, siblings=[stage])
        assert "name" in exc.value.details


class TestStageLookup:

    def test_native_id_int_and_string(self, project):
        design = project.stage_named("Design")
        assert find_stage_by_id(project, design.id) is design
        assert find_stage_by_id(project, str(design.id)) is design

    def test_legacy_id(self, project):
        design = project.stage_named("Design")
        design.legacy_id = "65f1c0ffee"
        db.session.commit()
        assert find_stage_by_id(project, "65f1c0ffee") is design

    def test_unknown_id_raises(self, project):
        with pytest.raises(NotFoundError):
            find_stage_by_id(project, "nope")
        with pytest.raises(NotFoundError):
            find_stage_by_id(project, 999999)


class TestChecklistMatching:

    def _items(self, *texts):
        return [ChecklistItem(text=t, position=i) for i, t in enumerate(texts)]

    def test_substring_match_first(self):
        items = self._items("Collect brand guide", "Upload logo files")
        assert matching_checklist_item(items, "logo").text == "Upload logo files"

    def test_keyword_overlap(self):
        items = self._items("Gather client requirements", "Create requirement document", "Get client approval")
        assert matching_checklist_item(items, "Client Approval Document").text == "Get client approval"

    def test_single_shared_keyword_is_not_enough(self):
        items = self._items("Get design approval")
        assert matching_checklist_item(items, "Client Approval Document") is None

    def test_no_label(self):
        assert matching_checklist_item(self._items("Anything"), "") is None


class TestPaymentSchedule:

    def test_advance_and_milestones(self):
        schedule = build_payment_schedule(10000, 25, 3)
        assert schedule[0] == {"label": "Advance Payment", "amount": 2500}
        assert [s["amount"] for s in schedule[1:]] == [2500, 2500, 2500]

    def test_last_milestone_absorbs_rounding(self):
        schedule = build_payment_schedule(1000, 30, 3)
        assert schedule[0]["amount"] == 300
        assert [s["amount"] for s in schedule[1:]] == [233, 233, 234]

    def test_zero_total_means_no_schedule(self):
        assert build_payment_schedule(0) == []

    def test_zero_advance_is_kept(self):
        schedule = build_payment_schedule(900, 0, 3)
        assert schedule[0]["amount"] == 0
        assert [s["amount"] for s in schedule[1:]] == [300, 300, 300]

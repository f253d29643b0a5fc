"""
Stage approval workflow.

    not-submitted ──submit──▶ submitted ──sub-admin──▶ subadmin-approved ──admin──▶ admin-approved
                                              │                                  └──▶ admin-rejected
                                              └──▶ subadmin-rejected

``submit`` always resets the record, which is the only way back from a
rejection.  Admin approval marks the stage completed and advances the
project to the next stage by ``order`` when that stage is still pending.
After the approval commits, the automation dispatcher runs its
``stage_approved`` hooks; their failures are logged, never raised.

Every operation returns the updated Project.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from agency_ops.core.exceptions import InvalidStateError, ValidationError
from agency_ops.models.activity import write_activity
from agency_ops.models.project import MAINTENANCE_STAGE, Stage
from agency_ops.services.automation import STAGE_APPROVED, dispatcher
from agency_ops.services.stage_lookup import find_stage_by_id, load_project
from agency_ops.utils.helpers import commit_or_raise

logger = logging.getLogger(__name__)

DECISIONS = {"approved", "rejected"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _actor_id(actor) -> str | None:
    value = (actor or {}).get("id")
    return str(value) if value is not None else None


def _actor_name(actor) -> str:
    return (actor or {}).get("name") or "Unknown"


def _decision(value) -> str:
    decision = (value or "approved").strip().lower()
    if decision not in DECISIONS:
        raise ValidationError(
            f"Invalid decision: {value}",
            details={"decision": f"must be one of {sorted(DECISIONS)}"},
        )
    return decision


def approval_state(stage) -> str:
    """Current position of ``stage`` in the approval pipeline."""
    if not stage.is_submitted:
        return "not-submitted"
    if stage.admin_status in DECISIONS:
        return f"admin-{stage.admin_status}"
    if stage.subadmin_status in DECISIONS:
        return f"subadmin-{stage.subadmin_status}"
    return "submitted"


def _log_transition(project, stage, state):
    logger.info(
        "Stage %s (%s) → %s", stage.id, stage.name, state,
        extra={"project_id": project.id, "stage_id": stage.id, "event_type": f"stage_{state}"},
    )


# ═════════════════════════════════════════════════════════════════════════════
# Operations
# ═════════════════════════════════════════════════════════════════════════════


def submit_stage_for_approval(project_id, stage_id, actor):
    """Stamp the submitter and reset both reviews to pending.

    Raises:
        NotFoundError: project or stage does not exist.
    """
    project = load_project(project_id)
    stage = find_stage_by_id(project, stage_id)

    stage.submitted_at = _utcnow()
    stage.submitted_by_id = _actor_id(actor)
    stage.submitted_by_name = _actor_name(actor)
    stage.subadmin_status = "pending"
    stage.subadmin_reviewed_by_id = None
    stage.subadmin_reviewed_by_name = None
    stage.subadmin_reviewed_at = None
    stage.subadmin_comment = ""
    stage.admin_status = "pending"
    stage.admin_approved_by_id = None
    stage.admin_approved_by_name = None
    stage.admin_approved_at = None
    stage.admin_comment = ""

    write_activity(
        project_id=project.id, actor=actor, icon="📤", type="stage",
        action=f'submitted stage "{stage.name}" for approval',
    )
    commit_or_raise("Project", project.version)
    _log_transition(project, stage, "submitted")
    return project


def subadmin_review_stage(project_id, stage_id, actor, decision=None, comment=""):
    """Record the sub-admin's decision (default ``approved``).

    Raises:
        NotFoundError: project or stage does not exist.
        ValidationError: decision is not approved/rejected.
        InvalidStateError: stage not submitted, or the admin already decided.
    """
    decision = _decision(decision)
    project = load_project(project_id)
    stage = find_stage_by_id(project, stage_id)

    state = approval_state(stage)
    if not stage.is_submitted:
        raise InvalidStateError("Stage must be submitted for approval first", current_state=state)
    if stage.admin_status != "pending":
        raise InvalidStateError("Admin has already decided; resubmit the stage", current_state=state)

    stage.subadmin_status = decision
    stage.subadmin_reviewed_by_id = _actor_id(actor)
    stage.subadmin_reviewed_by_name = _actor_name(actor)
    stage.subadmin_reviewed_at = _utcnow()
    stage.subadmin_comment = comment or ""

    write_activity(
        project_id=project.id, actor=actor, type="stage",
        icon="✅" if decision == "approved" else "❌",
        action=f'sub-admin {decision} stage "{stage.name}"',
    )
    commit_or_raise("Project", project.version)
    _log_transition(project, stage, f"subadmin_{decision}")
    return project


def admin_approve_stage(project_id, stage_id, actor, decision=None, comment=""):
    """Record the admin's decision; on approval complete the stage and advance.

    Advancement touches the stage with ``order + 1`` only if it is still
    ``pending``; any other status on that stage is left as it is.

    Raises:
        NotFoundError: project or stage does not exist.
        ValidationError: decision is not approved/rejected.
        InvalidStateError: sub-admin has not approved, or admin already decided.
    """
    decision = _decision(decision)
    project = load_project(project_id)
    stage = find_stage_by_id(project, stage_id)

    state = approval_state(stage)
    if stage.subadmin_status != "approved":
        raise InvalidStateError("Sub-admin approval is required before admin approval", current_state=state)
    if stage.admin_status != "pending":
        raise InvalidStateError("Admin has already decided; resubmit the stage", current_state=state)

    stage.admin_status = decision
    stage.admin_approved_by_id = _actor_id(actor)
    stage.admin_approved_by_name = _actor_name(actor)
    stage.admin_approved_at = _utcnow()
    stage.admin_comment = comment or ""

    advanced_to = None
    if decision == "approved":
        stage.approved = True
        stage.set_status("completed")
        next_stage = project.stage_at_order(stage.order + 1)
        if next_stage is not None and next_stage.status == "pending":
            next_stage.set_status("in-progress")
            project.current_stage = next_stage.name
            advanced_to = next_stage.name

    action = f'admin {decision} stage "{stage.name}"'
    if advanced_to:
        action += f' → "{advanced_to}" started'
    write_activity(
        project_id=project.id, actor=actor, type="stage",
        icon="🏁" if decision == "approved" else "❌",
        action=action,
    )
    commit_or_raise("Project", project.version)
    _log_transition(project, stage, f"admin_{decision}")

    if decision == "approved":
        outcomes = dispatcher.dispatch(STAGE_APPROVED, project, stage, actor)
        failed = [o.hook for o in outcomes if not o.ok]
        if failed:
            logger.warning(
                "Automation after approval of stage %s had failures: %s", stage.id, ", ".join(failed),
                extra={"project_id": project.id, "stage_id": stage.id},
            )
    return project


def enter_maintenance_mode(project_id, actor, notes=""):
    """Switch a delivered project into maintenance.

    Appends the Maintenance stage unless the project already has one.

    Raises:
        NotFoundError: project does not exist.
        InvalidStateError: the Delivery stage is not approved.
    """
    project = load_project(project_id)
    delivery = project.stage_named("Delivery")
    if delivery is None or not delivery.approved:
        raise InvalidStateError(
            "Delivery stage must be approved before entering maintenance",
            current_state=delivery.status if delivery is not None else None,
        )

    project.mode = "maintenance"
    project.maintenance_started_at = _utcnow()
    project.maintenance_notes = notes or ""
    project.current_stage = "Maintenance"

    if project.stage_named("Maintenance") is None:
        next_order = max((s.order for s in project.stages), default=0) + 1
        project.stages.append(Stage(
            name=MAINTENANCE_STAGE["name"],
            type=MAINTENANCE_STAGE["type"],
            status=MAINTENANCE_STAGE["status"],
            icon=MAINTENANCE_STAGE["icon"],
            order=max(next_order, MAINTENANCE_STAGE["order"]),
        ))

    write_activity(
        project_id=project.id, actor=actor, icon="🔧",
        action="moved the project to maintenance mode",
    )
    commit_or_raise("Project", project.version)
    logger.info(
        "Project %s entered maintenance", project.id,
        extra={"project_id": project.id, "event_type": "maintenance_entered"},
    )
    return project

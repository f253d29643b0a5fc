"""
Automation Dispatcher.

Post-transition hooks keyed by event name.  The approval workflow commits
its state change first and then dispatches; every hook runs in its own
try/commit/rollback so a failing hook never undoes the approval or stops
the hooks after it.

Default ``stage_approved`` hooks, in order:
    1. stage summary document         (every approved stage)
    2. handover kit                   (Delivery only)
    3. maintenance agreement          (Delivery only)
    4. feedback request               (Delivery only, built locally)

Scheduled entry points (no request involved):
    check_payment_overdue(project_id)  → shared overdue-pause rule
    flag_waiting_on_assets(project)    → stages with pending assets wait on client
    run_all_checks(project_id)         → both of the above
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable

from agency_ops.models import db
from agency_ops.models.activity import write_activity
from agency_ops.services.document_generator import DocumentGenerator, build_document_generator, record_document
from agency_ops.services.health_scorer import apply_overdue_pause
from agency_ops.services.payments import payments_for_project
from agency_ops.services.stage_lookup import load_project
from agency_ops.utils.helpers import commit_or_raise

logger = logging.getLogger(__name__)

STAGE_APPROVED = "stage_approved"

FEEDBACK_CATEGORIES = [
    {"category": "Overall Satisfaction", "description": "How satisfied are you with the project delivery?"},
    {"category": "Communication", "description": "How was the communication throughout the project?"},
    {"category": "Quality", "description": "How do you rate the quality of the deliverables?"},
    {"category": "Timeliness", "description": "Was the project delivered on time?"},
]


@dataclass
class StageEvent:
    """What a hook receives."""
    project: object
    stage: object
    actor: dict
    generator: DocumentGenerator


@dataclass
class HookOutcome:
    hook: str
    ok: bool
    error: str | None = None

    def to_dict(self) -> dict:
        return {"hook": self.hook, "ok": self.ok, "error": self.error}


@dataclass
class AutomationDispatcher:
    """Ordered hook lists per event, each hook individually error-isolated."""

    generator_factory: Callable[[], DocumentGenerator] = build_document_generator
    _hooks: dict[str, list[Callable]] = field(default_factory=dict)

    def register(self, event: str):
        """Decorator: append ``fn`` to the hook list for ``event``."""
        def decorator(fn: Callable) -> Callable:
            self._hooks.setdefault(event, []).append(fn)
            return fn
        return decorator

    def hooks(self, event: str) -> list[Callable]:
        return list(self._hooks.get(event, []))

    def dispatch(self, event: str, project, stage, actor) -> list[HookOutcome]:
        """Run every hook for ``event``.  Never raises."""
        outcomes: list[HookOutcome] = []
        try:
            generator = self.generator_factory()
        except Exception as exc:
            logger.exception("Automation: document generator unavailable for %s", event)
            return [HookOutcome(hook="generator_factory", ok=False, error=str(exc))]

        payload = StageEvent(project=project, stage=stage, actor=actor or {}, generator=generator)
        for hook in self.hooks(event):
            name = getattr(hook, "__name__", repr(hook))
            try:
                hook(payload)
                db.session.commit()
                outcomes.append(HookOutcome(hook=name, ok=True))
            except Exception as exc:
                db.session.rollback()
                logger.exception(
                    "Automation hook %s failed for %s", name, event,
                    extra={"project_id": getattr(project, "id", None), "event_type": event},
                )
                outcomes.append(HookOutcome(hook=name, ok=False, error=str(exc)))
        return outcomes


dispatcher = AutomationDispatcher()


# ═════════════════════════════════════════════════════════════════════════════
# stage_approved hooks
# ═════════════════════════════════════════════════════════════════════════════


@dispatcher.register(STAGE_APPROVED)
def generate_stage_summary(event: StageEvent):
    event.generator.generate_stage_summary(event.project, event.stage.id, event.actor)
    write_activity(
        project_id=event.project.id,
        actor=event.actor,
        action=f'[AUTO] Stage "{event.stage.name}" approved → Stage Summary generated',
        icon="🤖",
        type="stage",
    )


@dispatcher.register(STAGE_APPROVED)
def generate_handover_kit(event: StageEvent):
    if event.stage.name != "Delivery":
        return
    event.generator.generate_handover_kit(event.project, event.actor)
    write_activity(
        project_id=event.project.id,
        actor=event.actor,
        action="[AUTO] Final Delivery approved → Handover Kit generated",
        icon="🎉",
    )


@dispatcher.register(STAGE_APPROVED)
def generate_maintenance_agreement(event: StageEvent):
    if event.stage.name != "Delivery":
        return
    event.generator.generate_maintenance_agreement(event.project, event.actor)
    write_activity(
        project_id=event.project.id,
        actor=event.actor,
        action="[AUTO] Final Delivery approved → Maintenance Agreement generated",
        icon="🎉",
    )


@dispatcher.register(STAGE_APPROVED)
def create_feedback_request(event: StageEvent):
    if event.stage.name != "Delivery":
        return
    project = event.project
    title = f"Feedback Request - {project.name}"
    record_document(
        project,
        doc_type="feedback-request",
        title=title,
        content={
            "title": title,
            "generated_date": datetime.now(timezone.utc).isoformat(),
            "sections": {
                "message": (
                    f"Dear {project.client}, we have completed the delivery of {project.name}. "
                    "We would love to hear your feedback."
                ),
                "rating_categories": FEEDBACK_CATEGORIES,
                "project_name": project.name,
                "completion_date": datetime.now(timezone.utc).date().isoformat(),
            },
        },
        actor=event.actor,
        stage="Delivery",
    )
    write_activity(
        project_id=project.id,
        actor=event.actor,
        action="[AUTO] Final Delivery approved → Feedback Request created",
        icon="🎉",
    )


# ═════════════════════════════════════════════════════════════════════════════
# Scheduled checks
# ═════════════════════════════════════════════════════════════════════════════


def check_payment_overdue(project_id: int, today: date | None = None) -> bool:
    """Pause ``project_id`` if it is active and has an overdue payment.

    Returns:
        True if the project was paused by this call.

    Raises:
        NotFoundError: project does not exist.
    """
    project = load_project(project_id)
    paused = apply_overdue_pause(project, payments_for_project(project.id), today or date.today())
    if paused:
        commit_or_raise("Project", project.version)
    return paused


def flag_waiting_on_assets(project, actor=None) -> int:
    """Move unfinished, unblocked stages with pending asset requests to waiting-client.

    Stages already ``completed``, ``blocked`` or ``waiting-client`` are left
    alone.  Flushes only; returns the number of stages changed.
    """
    changed = 0
    for stage in project.stages:
        if stage.status in ("completed", "blocked", "waiting-client"):
            continue
        pending = sum(1 for a in stage.asset_requests if a.status == "pending")
        if not pending:
            continue
        stage.pre_blocker_status = stage.work_status
        stage.status = "waiting-client"
        changed += 1
        write_activity(
            project_id=project.id,
            actor=actor,
            action=f'[AUTO] {pending} asset(s) missing in "{stage.name}" → status set to Waiting Client',
            icon="⏳",
            type="stage",
        )
    return changed


def run_all_checks(project_id: int, today: date | None = None) -> dict:
    """Overdue-payment pause plus the asset wait check for one project."""
    paused = check_payment_overdue(project_id, today)
    project = load_project(project_id)
    flagged = flag_waiting_on_assets(project)
    if flagged:
        commit_or_raise("Project", project.version)
    return {"project_id": project_id, "paused": paused, "stages_waiting": flagged}

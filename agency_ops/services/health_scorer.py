"""
Health Scorer.

Combines five independent signals into one 0-100 score:

    payment               healthy / warning / danger   +15 / 0 / -15
    client_pending        count of open client items   -3 each
    developer_assignment  full / partial / none        +10 / 0 / 0
    qa_status             passed / ...                 +10 if passed
    deadline_risk         on-track / at-risk / overdue +10 / 0 / -20

starting from 50 and clamped to [0, 100].  ``progress`` and the score are
independent signals; neither is derived from the other.

``apply_overdue_pause`` is the single place that pauses a project over an
overdue payment; both the health read path and the scheduled overdue check
call it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

from flask import current_app

from agency_ops.models.activity import write_activity
from agency_ops.services.payments import overdue_payments, payments_for_project, summarize_payments
from agency_ops.services.stage_lookup import load_project, text_mentions
from agency_ops.utils.helpers import commit_or_raise

logger = logging.getLogger(__name__)

BASE_SCORE = 50
FULL_TEAM_SIZE = 3


@dataclass(frozen=True)
class Health:
    payment: str
    client_pending: int
    developer_assignment: str
    qa_status: str
    deadline_risk: str
    overall_score: int
    payment_details: dict = field(default_factory=dict)

    @property
    def overdue_payments_exist(self) -> bool:
        return self.payment_details.get("overdue", 0) > 0

    def to_dict(self) -> dict:
        return {
            "payment": self.payment,
            "client_pending": self.client_pending,
            "developer_assignment": self.developer_assignment,
            "qa_status": self.qa_status,
            "deadline_risk": self.deadline_risk,
            "overall_score": self.overall_score,
            "payment_details": dict(self.payment_details),
            "overdue_payments_exist": self.overdue_payments_exist,
        }


# ── Signals ──────────────────────────────────────────────────────────────────


def _payment_signal(summary) -> str:
    if summary.is_overdue:
        return "danger"
    if summary.received < summary.total * 0.5:
        return "warning"
    return "healthy"


def _client_pending(stages) -> int:
    count = 0
    for stage in stages:
        count += sum(1 for a in stage.asset_requests if a.status == "pending")
        if stage.type == "checklist":
            count += sum(1 for i in stage.items if not i.done and text_mentions(i.text, "client"))
    return count


def _developer_assignment(team) -> str:
    size = len(team)
    if size >= FULL_TEAM_SIZE:
        return "full"
    if size >= 1:
        return "partial"
    return "none"


def _qa_status(stages) -> str:
    qa = next((s for s in stages if s.name == "QA Testing"), None)
    if qa is None:
        return "not-started"
    if qa.status == "completed":
        return "passed"
    if qa.status == "in-progress":
        return "in-progress"
    if qa.health == "danger":
        return "failed"
    return "not-started"


def _deadline_risk(due_date, progress, today, at_risk_days, at_risk_progress) -> str:
    if due_date is None:
        return "on-track"
    days_left = (due_date - today).days
    if days_left < 0:
        return "overdue"
    if days_left < at_risk_days and (progress or 0) < at_risk_progress:
        return "at-risk"
    return "on-track"


def compute_health(project, payments, today: date, *, at_risk_days=14, at_risk_progress=70) -> Health:
    """Derive the composite health of ``project`` as of ``today``.  No mutation."""
    summary = summarize_payments(payments, today)
    payment = _payment_signal(summary)
    client_pending = _client_pending(project.stages)
    developer_assignment = _developer_assignment(project.team)
    qa_status = _qa_status(project.stages)
    deadline_risk = _deadline_risk(project.due_date, project.progress, today, at_risk_days, at_risk_progress)

    score = BASE_SCORE
    if payment == "healthy":
        score += 15
    elif payment == "danger":
        score -= 15
    score -= 3 * client_pending
    if developer_assignment == "full":
        score += 10
    if qa_status == "passed":
        score += 10
    if deadline_risk == "on-track":
        score += 10
    elif deadline_risk == "overdue":
        score -= 20

    return Health(
        payment=payment,
        client_pending=client_pending,
        developer_assignment=developer_assignment,
        qa_status=qa_status,
        deadline_risk=deadline_risk,
        overall_score=max(0, min(100, score)),
        payment_details={
            "total": summary.total,
            "received": summary.received,
            "overdue": summary.overdue_count,
        },
    )


def store_health(project, health: Health):
    """Copy a computed Health onto the project's snapshot columns."""
    project.health_payment = health.payment
    project.health_client_pending = health.client_pending
    project.health_developer_assignment = health.developer_assignment
    project.health_qa_status = health.qa_status
    project.health_deadline_risk = health.deadline_risk
    project.health_score = health.overall_score
    project.health_updated_at = datetime.now(timezone.utc)


# ── Overdue pause ────────────────────────────────────────────────────────────


def apply_overdue_pause(project, payments, today: date, actor=None) -> bool:
    """Pause an active project that has an overdue payment.

    Sets ``mode = paused`` and the ``danger`` indicator and logs an activity.
    No-op unless the project is ``active``, so repeated calls are harmless.
    Flushes only; the caller commits.

    Returns:
        True if the project was paused by this call.
    """
    overdue = overdue_payments(payments, today)
    if not overdue or project.mode != "active":
        return False

    project.mode = "paused"
    project.status = "danger"
    write_activity(
        project_id=project.id,
        actor=actor,
        action=f"[AUTO] Payment overdue → project paused ({len(overdue)} overdue payment(s))",
        icon="🚨",
        type="payment",
    )
    logger.warning(
        "Project paused for overdue payments project=%s overdue=%d", project.id, len(overdue),
        extra={"project_id": project.id, "event_type": "project_auto_paused"},
    )
    return True


# ── Operation ────────────────────────────────────────────────────────────────


def get_project_health(project_id: int, today: date | None = None) -> dict:
    """Score a project, persist the snapshot, and auto-pause on overdue payments.

    Raises:
        NotFoundError: project does not exist.
    """
    today = today or date.today()
    project = load_project(project_id)
    payments = payments_for_project(project.id)

    health = compute_health(
        project, payments, today,
        at_risk_days=current_app.config.get("HEALTH_AT_RISK_DAYS", 14),
        at_risk_progress=current_app.config.get("HEALTH_AT_RISK_PROGRESS", 70),
    )
    store_health(project, health)
    paused = apply_overdue_pause(project, payments, today)
    commit_or_raise("Project", project.version)

    logger.debug(
        "Health scored project=%s score=%s paused=%s", project.id, health.overall_score, paused,
        extra={"project_id": project.id},
    )
    return health.to_dict()

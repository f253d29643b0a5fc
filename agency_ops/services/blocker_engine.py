"""
Blocker Inference Engine.

Derives, per stage, the conditions currently holding it up and the status
those conditions imply.  Derivation is pure (``compute_blockers``);
``compute_project_blockers`` is the load → derive → write-back → commit
operation exposed to the API.

Rules (evaluated independently per stage):
    payment-pending  blocked   linked milestone's payment is still pending
    client-approval  waiting   unapproved, started checklist stage with an open "approval" item
    assets-missing   waiting   at least one asset request still pending
    repo-empty       info      in-progress development stage without a repo URL

Status policy: any ``blocked`` blocker forces ``blocked``; otherwise any
``waiting`` blocker forces ``waiting-client``.  ``completed`` stages are never
touched, ``info`` never changes status, and nothing here advances a stage.
A forced status falls back to the working status once its cause clears.
Rules read ``Stage.work_status`` (the status before any forced override),
so re-running the pass on unchanged inputs reproduces the same result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from agency_ops.services.payments import payments_for_project
from agency_ops.services.stage_lookup import load_project, pending_payment_for, text_mentions
from agency_ops.utils.helpers import commit_or_raise

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    BLOCKED = "blocked"
    WAITING = "waiting"
    INFO = "info"


class BlockerType(str, Enum):
    PAYMENT_PENDING = "payment-pending"
    CLIENT_APPROVAL = "client-approval"
    ASSETS_MISSING = "assets-missing"
    REPO_EMPTY = "repo-empty"


@dataclass(frozen=True)
class BlockerReason:
    """Single derived reason a stage cannot progress."""
    type: BlockerType
    label: str
    severity: Severity

    def to_dict(self) -> dict:
        return {"type": self.type.value, "label": self.label, "severity": self.severity.value}


@dataclass
class StageBlockers:
    """Inference result for one stage."""
    stage_id: int
    stage_name: str
    status: str
    pre_blocker_status: str | None
    blockers: list[BlockerReason] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "stage_id": self.stage_id,
            "stage_name": self.stage_name,
            "status": self.status,
            "blockers": [b.to_dict() for b in self.blockers],
        }


# ═════════════════════════════════════════════════════════════════════════════
# Pure derivation
# ═════════════════════════════════════════════════════════════════════════════


def compute_stage_blockers(stage, payments) -> list[BlockerReason]:
    blockers: list[BlockerReason] = []
    status = stage.work_status

    milestone = stage.linked_payment_milestone
    if milestone and pending_payment_for(payments, milestone) is not None:
        blockers.append(BlockerReason(
            BlockerType.PAYMENT_PENDING, f'Payment "{milestone}" is pending', Severity.BLOCKED,
        ))

    if stage.type == "checklist" and not stage.approved and status != "pending":
        if any(not i.done and text_mentions(i.text, "approval") for i in stage.items):
            blockers.append(BlockerReason(
                BlockerType.CLIENT_APPROVAL, "Client approval is missing", Severity.WAITING,
            ))

    pending_assets = sum(1 for a in stage.asset_requests if a.status == "pending")
    if pending_assets:
        blockers.append(BlockerReason(
            BlockerType.ASSETS_MISSING, f"{pending_assets} requested asset(s) not received", Severity.WAITING,
        ))

    if stage.type == "development" and status == "in-progress" and not stage.repo_url:
        blockers.append(BlockerReason(
            BlockerType.REPO_EMPTY, "Repository URL is empty", Severity.INFO,
        ))

    return blockers


def resolve_status(stage, blockers) -> tuple[str, str | None]:
    """Status (and remembered pre-override status) implied by ``blockers``."""
    if stage.status == "completed":
        return "completed", None

    severities = {b.severity for b in blockers}
    if Severity.BLOCKED in severities:
        return "blocked", stage.work_status
    if Severity.WAITING in severities:
        return "waiting-client", stage.work_status
    return stage.work_status, None


def compute_blockers(stages, payments) -> list[StageBlockers]:
    """Derive blockers and implied status for every stage.  No mutation."""
    results = []
    for stage in stages:
        blockers = compute_stage_blockers(stage, payments)
        status, pre = resolve_status(stage, blockers)
        results.append(StageBlockers(
            stage_id=stage.id,
            stage_name=stage.name,
            status=status,
            pre_blocker_status=pre,
            blockers=blockers,
        ))
    return results


def apply_blockers(stages, results: list[StageBlockers]) -> int:
    """Write inference results back onto the stages.  Returns status changes."""
    by_id = {r.stage_id: r for r in results}
    changed = 0
    for stage in stages:
        result = by_id.get(stage.id)
        if result is None:
            continue
        stage.blocker_reasons = [b.to_dict() for b in result.blockers]
        if stage.status != result.status:
            changed += 1
            stage.status = result.status
        stage.pre_blocker_status = result.pre_blocker_status
    return changed


# ═════════════════════════════════════════════════════════════════════════════
# Operation
# ═════════════════════════════════════════════════════════════════════════════


def compute_project_blockers(project_id: int) -> list[dict]:
    """Recompute and persist blockers for every stage of a project.

    Returns:
        ``[{stage_id, stage_name, status, blockers: [...]}, ...]`` in stage order.

    Raises:
        NotFoundError: project does not exist.
    """
    project = load_project(project_id)
    payments = payments_for_project(project.id)

    results = compute_blockers(project.stages, payments)
    changed = apply_blockers(project.stages, results)
    commit_or_raise("Project", project.version)

    if changed:
        logger.info(
            "Blockers recomputed project=%s status_changes=%d", project.id, changed,
            extra={"project_id": project.id, "event_type": "blockers_recomputed"},
        )
    return [r.to_dict() for r in results]

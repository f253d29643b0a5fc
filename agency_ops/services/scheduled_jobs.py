"""
Agency Ops Platform
Scheduled Jobs.

Concrete job implementations run through SchedulerService.

Jobs:
    - payment_overdue_check: pause active projects that have an overdue payment
    - asset_wait_check: move unfinished stages with pending client assets to
      waiting-client on every project that is not completed

One project failing never stops the scan; the error is logged and counted.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from sqlalchemy import select

from agency_ops.models import db
from agency_ops.models.project import Project
from agency_ops.services.automation import check_payment_overdue, flag_waiting_on_assets
from agency_ops.services.scheduler_service import register_job
from agency_ops.utils.helpers import commit_or_raise

logger = logging.getLogger(__name__)


def _project_ids(*modes, exclude=()) -> list[int]:
    stmt = select(Project.id).order_by(Project.id)
    if modes:
        stmt = stmt.where(Project.mode.in_(modes))
    if exclude:
        stmt = stmt.where(Project.mode.not_in(exclude))
    return list(db.session.execute(stmt).scalars())


# ═══════════════════════════════════════════════════════════════════════════
#  Job 1: Payment Overdue Check
# ═══════════════════════════════════════════════════════════════════════════

@register_job("payment_overdue_check")
def check_overdue_payments(app) -> dict[str, Any]:
    """Pause active projects with a pending payment past its due date."""
    results = {"projects_checked": 0, "projects_paused": 0, "errors": 0}
    today = date.today()

    for project_id in _project_ids("active"):
        try:
            if check_payment_overdue(project_id, today):
                results["projects_paused"] += 1
            results["projects_checked"] += 1
        except Exception as e:
            db.session.rollback()
            results["errors"] += 1
            logger.error("Overdue check failed for project %s: %s", project_id, e,
                         extra={"project_id": project_id, "job_name": "payment_overdue_check"})

    logger.info("Payment overdue check: %s", results)
    return results


# ═══════════════════════════════════════════════════════════════════════════
#  Job 2: Asset Wait Check
# ═══════════════════════════════════════════════════════════════════════════

@register_job("asset_wait_check")
def check_waiting_assets(app) -> dict[str, Any]:
    """Flag stages waiting on client assets across projects that are not completed."""
    results = {"projects_checked": 0, "stages_flagged": 0, "errors": 0}

    for project_id in _project_ids(exclude=("completed",)):
        try:
            project = db.session.get(Project, project_id)
            flagged = flag_waiting_on_assets(project)
            if flagged:
                commit_or_raise("Project", project.version)
            results["stages_flagged"] += flagged
            results["projects_checked"] += 1
        except Exception as e:
            db.session.rollback()
            results["errors"] += 1
            logger.error("Asset wait check failed for project %s: %s", project_id, e,
                         extra={"project_id": project_id, "job_name": "asset_wait_check"})

    logger.info("Asset wait check: %s", results)
    return results

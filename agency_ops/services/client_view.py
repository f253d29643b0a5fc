"""
Client View Projector.

Builds the read-only project view shown to the client.  Approval workflow
records, team members and developer identities are never included.

Stage filter: stages flagged ``client_visible``; when none are flagged,
every stage is shown so a misconfigured project is never blank for its
client.  Asset requests and blocker reasons are collected from all stages,
visible or not.
"""

from __future__ import annotations

from datetime import date

from agency_ops.models.project import percent
from agency_ops.services.payments import payments_for_project, summarize_payments
from agency_ops.services.stage_lookup import load_project


def visible_stages(stages) -> list:
    shown = [s for s in stages if s.client_visible]
    return shown or list(stages)


def completion_rate(stage) -> int:
    if stage.type == "checklist" and stage.items:
        return percent(sum(1 for i in stage.items if i.done), len(stage.items))
    return 100 if stage.status == "completed" else 0


def _phase(stage) -> dict:
    return {
        "name": stage.name,
        "status": stage.status,
        "icon": stage.icon,
        "order": stage.order,
        "approved": bool(stage.approved),
        "deadline": stage.deadline.isoformat() if stage.deadline else None,
        "type": stage.type or "checklist",
        "repo_url": stage.repo_url or "",
        "live_url": stage.live_url or "",
        "health": stage.health or "pending",
        "hosting_provider": stage.hosting_provider or "",
        "domain_url": stage.domain_url or "",
        "ssl_status": stage.ssl_status or "pending",
        "completion_rate": completion_rate(stage),
    }


def project_client_view(project, payments, today: date) -> dict:
    """Pure projection of ``project`` for the client role."""
    pending_from_client, completed_by_client, blockers = [], [], []
    for stage in project.stages:
        for asset in stage.asset_requests:
            if asset.status == "pending":
                pending_from_client.append({
                    "stage_name": stage.name,
                    "stage_id": stage.id,
                    "asset_id": asset.id,
                    "label": asset.label,
                    "type": asset.type,
                })
            elif asset.status == "received":
                completed_by_client.append({
                    "stage_name": stage.name,
                    "label": asset.label,
                    "received_at": asset.received_at.isoformat() if asset.received_at else None,
                    "file_name": asset.file_name or "",
                    "file_url": asset.file_url or "",
                })
        for reason in stage.blocker_reasons or []:
            blockers.append({"stage_name": stage.name, **reason})

    summary = summarize_payments(payments, today)
    return {
        "project_name": project.name,
        "client": project.client,
        "progress": project.progress,
        "mode": project.mode,
        "current_stage": project.current_stage,
        "due_date": project.due_date.isoformat() if project.due_date else None,
        "phases": [_phase(s) for s in visible_stages(project.stages)],
        "payments": {
            "total": summary.total,
            "received": summary.received,
            "pending": summary.pending,
            "is_overdue": summary.is_overdue,
            "overdue_count": summary.overdue_count,
            "details": [
                {
                    "label": p.label,
                    "amount": p.amount,
                    "status": p.status,
                    "due_date": p.due_date.isoformat() if p.due_date else None,
                }
                for p in payments
            ],
        },
        "pending_from_client": pending_from_client,
        "completed_by_client": completed_by_client,
        "blocker_reasons": blockers,
        "is_paused": project.mode == "paused",
    }


def get_client_view(project_id: int, today: date | None = None) -> dict:
    """Client view for ``project_id``.  Read-only.

    Raises:
        NotFoundError: project does not exist.
    """
    project = load_project(project_id)
    return project_client_view(project, payments_for_project(project.id), today or date.today())

"""
Project intake and stage-level record operations.

Rules:
  - Every mutation writes one Activity row and commits here (blueprints
    never commit).
  - Stage and sub-entity lookups go through ``stage_lookup``.
  - Raises NotFoundError / ValidationError; blueprints map them to HTTP.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, or_, select

from agency_ops.core.exceptions import ValidationError
from agency_ops.models import db
from agency_ops.models.activity import Activity, write_activity
from agency_ops.models.document import Document
from agency_ops.models.project import (
    ASSET_STATUSES,
    ASSET_TYPES,
    PROJECT_MODES,
    PROJECT_PRIORITIES,
    PROJECT_STATUSES,
    PROJECT_TYPES,
    STAGE_TEMPLATE,
    TEAM_ROLES,
    AssetRequest,
    ChecklistItem,
    Project,
    Stage,
    TeamMember,
    percent,
    validate_stage_shape,
)
from agency_ops.services.payments import seed_payment_schedule
from agency_ops.services.stage_lookup import (
    find_asset_request,
    find_checklist_item,
    find_stage_by_id,
    load_project,
    matching_checklist_item,
)
from agency_ops.utils.helpers import commit_or_raise, parse_date_input

logger = logging.getLogger(__name__)

# Stage fields a user may set directly.  ``approved`` only changes through
# the approval workflow.
STAGE_UPDATABLE_FIELDS = {
    "status", "health", "repo_url", "live_url", "linked_backend",
    "hosting_provider", "domain_url", "ssl_status", "summary",
    "assigned_name", "deadline", "deliveries", "client_visible",
    "linked_payment_milestone",
}

# Project fields a user may set directly.  Stages, progress and health
# snapshots are derived or owned by their own operations.
PROJECT_UPDATABLE_FIELDS = {
    "name", "client", "description", "type", "priority", "status", "mode",
    "start_date", "due_date", "total_amount", "advance_percent", "milestones",
    "team",
}

_PROJECT_CHOICES = {
    "type": PROJECT_TYPES,
    "priority": PROJECT_PRIORITIES,
    "status": PROJECT_STATUSES,
    "mode": PROJECT_MODES,
}

REPORT_TYPES = {"technical", "client", "handover"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_choice(data, key, choices, default):
    value = data.get(key) or default
    if value not in choices:
        raise ValidationError(
            f"Invalid {key}: {value}",
            details={key: f"must be one of {sorted(choices)}"},
        )
    return value


def _date_field(data, key):
    try:
        return parse_date_input(data.get(key))
    except ValueError as exc:
        raise ValidationError(str(exc), details={key: "invalid date"}) from exc


def _given(data, key):
    return data.get(key) not in (None, "")


def _monetary_terms(data, total_amount=0, advance_percent=25, milestones=3):
    try:
        if _given(data, "total_amount"):
            total_amount = float(data["total_amount"])
        if _given(data, "advance_percent"):
            advance_percent = int(data["advance_percent"])
        if _given(data, "milestones"):
            milestones = int(data["milestones"])
    except (TypeError, ValueError) as exc:
        raise ValidationError("Monetary terms must be numeric") from exc
    if not 0 <= advance_percent <= 100:
        raise ValidationError("advance_percent must be between 0 and 100")
    if milestones < 1:
        raise ValidationError("milestones must be at least 1")
    return total_amount, advance_percent, milestones


def _team_members(entries) -> list[TeamMember]:
    members = []
    for member in entries or []:
        role = member.get("role") if isinstance(member, dict) else None
        if role not in TEAM_ROLES:
            raise ValidationError(
                f"Invalid team role: {role}",
                details={"team": f"role must be one of {sorted(TEAM_ROLES)}"},
            )
        members.append(TeamMember(
            role=role,
            name=member.get("name") or role,
            user_id=str(member["user_id"]) if member.get("user_id") is not None else None,
        ))
    return members


# ═════════════════════════════════════════════════════════════════════════════
# Intake
# ═════════════════════════════════════════════════════════════════════════════


def _stage_from_template(entry: dict) -> Stage:
    stage = Stage(
        name=entry.get("name"),
        type=entry.get("type") or "checklist",
        order=entry.get("order"),
        status=entry.get("status") or "pending",
        icon=entry.get("icon") or "📌",
        legacy_id=entry.get("legacy_id"),
        client_visible=entry.get("client_visible", True),
        deliveries=[
            {"name": d, "date": None, "approved": False} if isinstance(d, str) else dict(d)
            for d in entry.get("deliveries") or []
        ],
    )
    for position, item in enumerate(entry.get("items") or []):
        if isinstance(item, str):
            item = {"text": item}
        stage.items.append(ChecklistItem(
            text=item["text"], done=bool(item.get("done", False)), position=position,
        ))
    return stage


def create_project(data: dict, actor: dict | None = None) -> Project:
    """Create a project with the stage template, team and payment schedule.

    ``data["stages"]`` may replace the template when importing records from
    the older store (each entry may carry a ``legacy_id``).

    Raises:
        ValidationError: missing name/client, bad enum, bad date, bad stage shape.
    """
    name = (data.get("name") or "").strip()
    client = (data.get("client") or "").strip()
    missing = {k: "is required" for k, v in (("name", name), ("client", client)) if not v}
    if missing:
        raise ValidationError("name and client are required", details=missing)

    total_amount, advance_percent, milestones = _monetary_terms(data)

    actor = actor or {}
    project = Project(
        name=name,
        client=client,
        description=data.get("description"),
        type=_require_choice(data, "type", PROJECT_TYPES, "web"),
        priority=_require_choice(data, "priority", PROJECT_PRIORITIES, "medium"),
        status=_require_choice(data, "status", PROJECT_STATUSES, "info"),
        mode=_require_choice(data, "mode", PROJECT_MODES, "active"),
        start_date=_date_field(data, "start_date"),
        due_date=_date_field(data, "due_date"),
        total_amount=total_amount,
        advance_percent=advance_percent,
        milestones=milestones,
        created_by_id=str(actor["id"]) if actor.get("id") is not None else None,
        created_by_name=actor.get("name"),
    )

    project.team.extend(_team_members(data.get("team")))

    for entry in data.get("stages") or STAGE_TEMPLATE:
        project.stages.append(_stage_from_template(entry))
    for stage in project.stages:
        validate_stage_shape(stage, siblings=project.stages)

    first = min(project.stages, key=lambda s: s.order, default=None)
    project.current_stage = data.get("current_stage") or (first.name if first else "Requirement")

    db.session.add(project)
    db.session.flush()
    seed_payment_schedule(project)
    write_activity(project_id=project.id, actor=actor, icon="🚀", action="created the project")
    commit_or_raise("Project")

    logger.info(
        "Project created id=%s name=%s stages=%d", project.id, project.name, len(project.stages),
        extra={"project_id": project.id, "event_type": "project_created"},
    )
    return project


def list_projects(*, status=None, priority=None, mode=None, search=None):
    """Select statement for projects, newest first, with optional filters."""
    stmt = select(Project).order_by(Project.created_at.desc(), Project.id.desc())
    if status:
        stmt = stmt.where(Project.status == status)
    if priority:
        stmt = stmt.where(Project.priority == priority)
    if mode:
        stmt = stmt.where(Project.mode == mode)
    if search:
        like = f"%{search}%"
        stmt = stmt.where(or_(Project.name.ilike(like), Project.client.ilike(like)))
    return stmt


def get_project(project_id) -> Project:
    return load_project(project_id)


def update_project(project_id, data: dict, actor=None) -> Project:
    """Apply allow-listed changes to project details.

    ``team`` replaces the whole team.  New monetary terms leave existing
    payment rows as they are.  Setting ``mode = active`` resumes a project
    paused for overdue payments.

    Raises:
        NotFoundError: project does not exist.
        ValidationError: no updatable field, empty name/client, bad enum,
            bad date, bad monetary terms or team role.
    """
    project = load_project(project_id)
    changes = {k: v for k, v in data.items() if k in PROJECT_UPDATABLE_FIELDS}
    if not changes:
        raise ValidationError(
            "No updatable project fields in request",
            details={"fields": f"must include one of {sorted(PROJECT_UPDATABLE_FIELDS)}"},
        )

    values = {}
    for key in ("name", "client"):
        if key in changes:
            value = changes[key].strip() if isinstance(changes[key], str) else ""
            if not value:
                raise ValidationError(f"{key} cannot be empty", details={key: "is required"})
            values[key] = value
    if "description" in changes:
        values["description"] = changes["description"]
    for key, choices in _PROJECT_CHOICES.items():
        if key in changes:
            values[key] = _require_choice(changes, key, choices, None)
    for key in ("start_date", "due_date"):
        if key in changes:
            values[key] = _date_field(changes, key)
    if changes.keys() & {"total_amount", "advance_percent", "milestones"}:
        values["total_amount"], values["advance_percent"], values["milestones"] = _monetary_terms(
            changes, project.total_amount, project.advance_percent, project.milestones,
        )
    if "team" in changes:
        if not isinstance(changes["team"], list):
            raise ValidationError("team must be a list", details={"team": "must be a list"})
        values["team"] = _team_members(changes["team"])

    for key, value in values.items():
        setattr(project, key, value)

    write_activity(
        project_id=project.id, actor=actor, icon="✏️",
        action=f'updated project details ({", ".join(sorted(changes))})',
    )
    commit_or_raise("Project", project.version)

    logger.info(
        "Project updated id=%s fields=%s mode=%s", project.id, sorted(changes), project.mode,
        extra={"project_id": project.id, "event_type": "project_updated"},
    )
    return project


def get_project_stats() -> dict:
    """Project counts per status indicator, plus the overall total."""
    stats = {"total": 0, **{status: 0 for status in sorted(PROJECT_STATUSES)}}
    rows = db.session.execute(
        select(Project.status, func.count(Project.id)).group_by(Project.status)
    ).all()
    for status, count in rows:
        stats[status] = count
        stats["total"] += count
    return stats


# ═════════════════════════════════════════════════════════════════════════════
# Stage updates
# ═════════════════════════════════════════════════════════════════════════════


def update_stage(project_id, stage_id, data: dict, actor=None) -> Project:
    """Apply allow-listed field changes to one stage.

    Setting ``status = in-progress`` also makes the stage the project's
    current stage.

    Raises:
        NotFoundError, ValidationError
    """
    project = load_project(project_id)
    stage = find_stage_by_id(project, stage_id)

    changes = {k: v for k, v in data.items() if k in STAGE_UPDATABLE_FIELDS}
    if "client_visible" in changes and not isinstance(changes["client_visible"], bool):
        raise ValidationError(
            "client_visible must be a boolean", details={"client_visible": "must be true or false"},
        )
    for key, value in changes.items():
        if key == "status":
            stage.set_status(value)
        elif key == "deadline":
            stage.deadline = _date_field(changes, "deadline")
        elif key == "client_visible":
            stage.client_visible = value
        else:
            setattr(stage, key, value)
    validate_stage_shape(stage)

    if stage.status == "in-progress" and "status" in changes:
        project.current_stage = stage.name

    if changes:
        write_activity(
            project_id=project.id, actor=actor, icon="📝", type="stage",
            action=f'updated stage "{stage.name}" ({", ".join(sorted(changes))})',
        )
    commit_or_raise("Project", project.version)
    return project


def update_stage_item(project_id, stage_id, item_id, done=None, actor=None) -> Project:
    """Set (or toggle when ``done`` is None) a checklist item."""
    project = load_project(project_id)
    stage = find_stage_by_id(project, stage_id)
    item = find_checklist_item(stage, item_id)
    item.done = (not item.done) if done is None else bool(done)

    write_activity(
        project_id=project.id, actor=actor, type="stage",
        icon="☑️" if item.done else "⬜",
        action=f'{"completed" if item.done else "reopened"} "{item.text}" in {stage.name}',
    )
    commit_or_raise("Project", project.version)
    return project


def toggle_stage_visibility(project_id, stage_id, client_visible=None, actor=None) -> Project:
    """Set ``client_visible`` explicitly, or flip it when no value is given."""
    project = load_project(project_id)
    stage = find_stage_by_id(project, stage_id)
    stage.client_visible = (not stage.client_visible) if client_visible is None else bool(client_visible)

    write_activity(
        project_id=project.id, actor=actor, icon="👁️", type="stage",
        action=f'{"showed" if stage.client_visible else "hid"} stage "{stage.name}" for the client',
    )
    commit_or_raise("Project", project.version)
    return project


def link_payment_to_stage(project_id, stage_id, label, actor=None) -> Project:
    """Gate a stage on the payment carrying ``label`` (empty string unlinks)."""
    project = load_project(project_id)
    stage = find_stage_by_id(project, stage_id)
    stage.linked_payment_milestone = (label or "").strip()

    write_activity(
        project_id=project.id, actor=actor, icon="💳", type="payment",
        action=(
            f'linked "{stage.linked_payment_milestone}" to stage "{stage.name}"'
            if stage.linked_payment_milestone else f'unlinked payment from stage "{stage.name}"'
        ),
    )
    commit_or_raise("Project", project.version)
    return project


# ═════════════════════════════════════════════════════════════════════════════
# Asset requests
# ═════════════════════════════════════════════════════════════════════════════


def add_asset_request(project_id, stage_id, data: dict, actor=None) -> Project:
    project = load_project(project_id)
    stage = find_stage_by_id(project, stage_id)

    label = (data.get("label") or "").strip()
    if not label:
        raise ValidationError("label is required", details={"label": "is required"})
    asset_type = _require_choice(data, "type", ASSET_TYPES, "other")

    stage.asset_requests.append(AssetRequest(label=label, type=asset_type, note=data.get("note") or ""))
    write_activity(
        project_id=project.id, actor=actor, icon="📎", type="stage",
        action=f'requested "{label}" from the client ({stage.name})',
    )
    commit_or_raise("Project", project.version)
    return project


def update_asset_request(project_id, stage_id, asset_id, data: dict, actor=None) -> Project:
    """Update an asset request.

    Moving it to ``received`` stamps ``received_at`` and ticks the checklist
    item it fulfils (see ``stage_lookup.matching_checklist_item``).
    """
    project = load_project(project_id)
    stage = find_stage_by_id(project, stage_id)
    asset = find_asset_request(stage, asset_id)

    if "status" in data:
        asset.status = _require_choice(data, "status", ASSET_STATUSES, asset.status)
    for key in ("label", "file_name", "file_url", "note"):
        if key in data:
            setattr(asset, key, data[key] or "")
    if "type" in data:
        asset.type = _require_choice(data, "type", ASSET_TYPES, asset.type)

    ticked = None
    if data.get("status") == "received":
        asset.received_at = _utcnow()
        ticked = matching_checklist_item(stage.items, asset.label)
        if ticked is not None:
            ticked.done = True

    write_activity(
        project_id=project.id, actor=actor, type="stage",
        icon="✅" if asset.status == "received" else "📎",
        action=f'marked asset "{asset.label}" as {asset.status}',
    )
    commit_or_raise("Project", project.version)
    if ticked is not None:
        logger.info(
            "Asset %s received, checklist item %s ticked", asset.id, ticked.id,
            extra={"project_id": project.id, "stage_id": stage.id},
        )
    return project


def delete_asset_request(project_id, stage_id, asset_id, actor=None) -> Project:
    project = load_project(project_id)
    stage = find_stage_by_id(project, stage_id)
    asset = find_asset_request(stage, asset_id)
    label = asset.label
    stage.asset_requests.remove(asset)

    write_activity(
        project_id=project.id, actor=actor, icon="🗑️", type="stage",
        action=f'removed asset request "{label}" from {stage.name}',
    )
    commit_or_raise("Project", project.version)
    return project


# ═════════════════════════════════════════════════════════════════════════════
# Read models
# ═════════════════════════════════════════════════════════════════════════════


def get_stage_report_data(project_id, stage_id, report_type="technical") -> dict:
    """Data for a printable stage report: ``technical``, ``client`` or ``handover``."""
    report_type = report_type or "technical"
    if report_type not in REPORT_TYPES:
        raise ValidationError(
            f"Invalid report type: {report_type}",
            details={"type": f"must be one of {sorted(REPORT_TYPES)}"},
        )
    project = load_project(project_id)
    stage = find_stage_by_id(project, stage_id)

    data = {
        "project_name": project.name,
        "client_name": project.client,
        "stage_name": stage.name,
        "stage_status": stage.status,
        "stage_icon": stage.icon,
        "generated_at": _utcnow().isoformat(),
        "type": report_type,
    }
    if report_type == "technical":
        data.update({
            "team": [{"name": m.name, "role": m.role} for m in project.team],
            "deadline": stage.deadline.isoformat() if stage.deadline else None,
            "repo_url": stage.repo_url or "N/A",
            "live_url": stage.live_url or "N/A",
            "health": stage.health or "pending",
            "checklist": [{"text": i.text, "done": i.done} for i in stage.items],
            "completion_rate": percent(sum(1 for i in stage.items if i.done), len(stage.items)),
            "blockers": list(stage.blocker_reasons or []),
            "remarks": stage.summary or "No remarks",
        })
    elif report_type == "client":
        data.update({
            "progress": project.progress,
            "deliverables": [i.text for i in stage.items],
            "completed_items": [i.text for i in stage.items if i.done],
            "pending_from_client": [a.label for a in stage.asset_requests if a.status == "pending"],
        })
    else:
        hosting = project.stage_named("Hosting & Deployment")
        data.update({
            "hosting_provider": hosting.hosting_provider if hosting else "N/A",
            "domain": hosting.domain_url if hosting else "N/A",
            "ssl_status": hosting.ssl_status if hosting else "N/A",
            "repo_links": [{"stage": s.name, "url": s.repo_url} for s in project.stages if s.repo_url],
            "deployment_notes": stage.summary or "",
        })
    return data


def list_activities(project_id, limit=50) -> list[dict]:
    load_project(project_id)
    rows = db.session.execute(
        select(Activity)
        .where(Activity.project_id == project_id)
        .order_by(Activity.created_at.desc(), Activity.id.desc())
        .limit(limit)
    ).scalars()
    return [a.to_dict() for a in rows]


def list_documents(project_id, doc_type=None) -> list[dict]:
    load_project(project_id)
    stmt = select(Document).where(Document.project_id == project_id).order_by(Document.id)
    if doc_type:
        stmt = stmt.where(Document.type == doc_type)
    return [d.to_dict() for d in db.session.execute(stmt).scalars()]

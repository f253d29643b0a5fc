"""
Agency Ops Platform
Project lifecycle domain model.

Models:
    - Project: aggregate root for one client engagement
    - TeamMember: project roster entry (feeds the staffing health signal)
    - Stage: one ordered lifecycle phase, embedded in Project
    - ChecklistItem: checklist line on a ``checklist`` stage
    - AssetRequest: client-asset pull (logo, content, API keys, ...) on a stage

``Project.progress`` is kept equal to the completed-stage ratio by a
``before_flush`` listener at the bottom of this module, so every persist
path (services, scripts, tests) sees the same value.
"""

import math
from datetime import datetime, timezone

from sqlalchemy import event
from sqlalchemy.orm import Session, validates

from agency_ops.core.exceptions import ValidationError
from agency_ops.models import db


# ── Constants ────────────────────────────────────────────────────────────────

STAGE_NAMES = (
    "Requirement",
    "Design",
    "Frontend",
    "Backend",
    "QA Testing",
    "Hosting & Deployment",
    "Delivery",
    "Maintenance",
)

STAGE_STATUSES = {"pending", "in-progress", "completed", "blocked", "waiting-client"}

# Older records carry these; normalized on write.
LEGACY_STATUS_SYNONYMS = {"active": "in-progress", "approved": "completed"}

STAGE_TYPES = {"checklist", "development", "hosting", "delivery", "maintenance"}
STAGE_HEALTH = {"success", "warning", "danger", "pending"}
SSL_STATUSES = {"active", "expired", "pending"}
REVIEW_STATUSES = {"pending", "approved", "rejected"}

ASSET_TYPES = {"logo", "content", "brand-guide", "api-keys", "approval", "other"}
ASSET_STATUSES = {"pending", "received", "rejected"}

PROJECT_TYPES = {"web", "mobile", "desktop", "ecommerce", "crm", "api", "other"}
PROJECT_PRIORITIES = {"low", "medium", "high", "critical"}
PROJECT_STATUSES = {"success", "warning", "danger", "info"}
PROJECT_MODES = {"active", "paused", "maintenance", "completed"}

TEAM_ROLES = {
    "Project Manager", "Designer", "Frontend Dev",
    "Backend Dev", "QA Engineer", "DevOps",
}

# Seeded on project intake. Maintenance is appended later, once.
STAGE_TEMPLATE = [
    {
        "name": "Requirement", "type": "checklist", "order": 1, "icon": "📋",
        "items": [
            "Gather client requirements",
            "Create requirement document",
            "Get client approval",
            "Define technical specifications",
        ],
    },
    {
        "name": "Design", "type": "checklist", "order": 2, "icon": "🎨",
        "items": [
            "Create wireframes",
            "Design UI mockups",
            "Create design system",
            "Get design approval",
        ],
    },
    {"name": "Frontend", "type": "development", "order": 3, "icon": "💻"},
    {"name": "Backend", "type": "development", "order": 4, "icon": "⚙️"},
    {
        "name": "QA Testing", "type": "checklist", "order": 5, "icon": "🔍",
        "items": [
            "Create test cases",
            "Functional testing",
            "Performance testing",
            "Security testing",
            "UAT with client",
        ],
    },
    {"name": "Hosting & Deployment", "type": "hosting", "order": 6, "icon": "☁️"},
    {
        "name": "Delivery", "type": "delivery", "order": 7, "icon": "🚀",
        "deliveries": ["Beta Release", "Final Release", "Production Deploy"],
    },
]

MAINTENANCE_STAGE = {
    "name": "Maintenance", "type": "maintenance", "order": 8, "icon": "🔧",
    "status": "in-progress",
}


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


def percent(part: int, whole: int) -> int:
    """Whole-number percentage, halves rounded up (0 when ``whole`` is 0)."""
    if not whole:
        return 0
    return int(math.floor(100 * part / whole + 0.5))


def normalize_stage_status(status):
    """Map legacy synonyms onto the canonical stage status set."""
    if status is None:
        return None
    status = str(status).strip()
    return LEGACY_STATUS_SYNONYMS.get(status, status)


# ═════════════════════════════════════════════════════════════════════════════
# Project
# ═════════════════════════════════════════════════════════════════════════════


class Project(db.Model):
    """Client engagement tracked through the fixed stage lifecycle."""

    __tablename__ = "projects"
    __table_args__ = (
        db.CheckConstraint("progress >= 0 AND progress <= 100", name="ck_projects_progress_range"),
        db.Index("ix_projects_mode", "mode"),
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    client = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    type = db.Column(
        db.String(20), nullable=False, default="web",
        comment="web | mobile | desktop | ecommerce | crm | api | other",
    )
    priority = db.Column(
        db.String(20), nullable=False, default="medium",
        comment="low | medium | high | critical",
    )
    status = db.Column(
        db.String(20), nullable=False, default="info",
        comment="Traffic-light indicator: success | warning | danger | info",
    )
    mode = db.Column(
        db.String(20), nullable=False, default="active",
        comment="active | paused | maintenance | completed",
    )
    current_stage = db.Column(
        db.String(50), nullable=False, default="Requirement",
        comment="Stage name pointer (advisory, not a reference)",
    )
    progress = db.Column(db.Integer, nullable=False, default=0)
    start_date = db.Column(db.Date, nullable=True)
    due_date = db.Column(db.Date, nullable=True)

    # Monetary terms
    total_amount = db.Column(db.Float, nullable=False, default=0)
    advance_percent = db.Column(db.Integer, nullable=False, default=25)
    milestones = db.Column(db.Integer, nullable=False, default=3)

    # Maintenance
    maintenance_started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    maintenance_notes = db.Column(db.Text, nullable=True)

    # Health snapshot (written by the health scorer)
    health_payment = db.Column(db.String(20), nullable=True, comment="healthy | warning | danger")
    health_client_pending = db.Column(db.Integer, nullable=False, default=0)
    health_developer_assignment = db.Column(db.String(20), nullable=True, comment="full | partial | none")
    health_qa_status = db.Column(db.String(20), nullable=True,
                                 comment="passed | in-progress | failed | not-started")
    health_deadline_risk = db.Column(db.String(20), nullable=True, comment="on-track | at-risk | overdue")
    health_score = db.Column(db.Integer, nullable=False, default=50)
    health_updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by_id = db.Column(db.String(64), nullable=True)
    created_by_name = db.Column(db.String(150), nullable=True)

    # Optimistic concurrency counter, bumped by SQLAlchemy on every UPDATE
    version = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    stages = db.relationship(
        "Stage", back_populates="project", order_by="Stage.order",
        cascade="all, delete-orphan", lazy="selectin",
    )
    team = db.relationship(
        "TeamMember", back_populates="project", order_by="TeamMember.id",
        cascade="all, delete-orphan", lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    # ── Derived state ────────────────────────────────────────────────────

    def recalculate_progress(self):
        """Set ``progress`` from the completed-stage ratio."""
        completed = sum(1 for s in self.stages if s.status == "completed")
        self.progress = percent(completed, len(self.stages))
        return self.progress

    def stage_named(self, name):
        return next((s for s in self.stages if s.name == name), None)

    def stage_at_order(self, order):
        return next((s for s in self.stages if s.order == order), None)

    @property
    def health(self) -> dict:
        return {
            "payment": self.health_payment,
            "client_pending": self.health_client_pending,
            "developer_assignment": self.health_developer_assignment,
            "qa_status": self.health_qa_status,
            "deadline_risk": self.health_deadline_risk,
            "overall_score": self.health_score,
            "updated_at": _iso(self.health_updated_at),
        }

    def to_dict(self, include_stages=True):
        d = {
            "id": self.id,
            "name": self.name,
            "client": self.client,
            "description": self.description,
            "type": self.type,
            "priority": self.priority,
            "status": self.status,
            "mode": self.mode,
            "current_stage": self.current_stage,
            "progress": self.progress,
            "start_date": _iso(self.start_date),
            "due_date": _iso(self.due_date),
            "total_amount": self.total_amount,
            "advance_percent": self.advance_percent,
            "milestones": self.milestones,
            "maintenance_started_at": _iso(self.maintenance_started_at),
            "maintenance_notes": self.maintenance_notes,
            "health": self.health,
            "created_by_id": self.created_by_id,
            "created_by_name": self.created_by_name,
            "team": [m.to_dict() for m in self.team],
            "version": self.version,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_stages:
            d["stages"] = [s.to_dict() for s in self.stages]
        return d

    def __repr__(self):
        return f"<Project {self.id}: {self.name} [{self.mode}]>"


class TeamMember(db.Model):
    """Person assigned to a project in one role."""

    __tablename__ = "project_team_members"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    role = db.Column(db.String(30), nullable=False, comment="Project Manager | Designer | ... | DevOps")
    user_id = db.Column(db.String(64), nullable=True)
    name = db.Column(db.String(150), nullable=False)

    project = db.relationship("Project", back_populates="team")

    def to_dict(self):
        return {"id": self.id, "role": self.role, "user_id": self.user_id, "name": self.name}

    def __repr__(self):
        return f"<TeamMember {self.name} ({self.role})>"


# ═════════════════════════════════════════════════════════════════════════════
# Stage
# ═════════════════════════════════════════════════════════════════════════════


class Stage(db.Model):
    """
    One lifecycle phase of a project.

    The approval workflow (submit → sub-admin review → admin approval) is
    stored flat on the row and serialized as a nested record by
    ``approval_workflow_dict``.  ``blocker_reasons`` is derived and replaced
    wholesale by the blocker engine.
    """

    __tablename__ = "project_stages"
    __table_args__ = (
        db.UniqueConstraint("project_id", "order", name="uq_stage_project_order"),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    legacy_id = db.Column(
        db.String(64), nullable=True, index=True,
        comment="Identifier from records imported out of the older store",
    )
    name = db.Column(db.String(50), nullable=False)
    status = db.Column(
        db.String(20), nullable=False, default="pending",
        comment="pending | in-progress | completed | blocked | waiting-client",
    )
    type = db.Column(
        db.String(20), nullable=False, default="checklist",
        comment="checklist | development | hosting | delivery | maintenance",
    )
    order = db.Column(db.Integer, nullable=False)
    icon = db.Column(db.String(10), default="📌")
    approved = db.Column(db.Boolean, nullable=False, default=False)
    deadline = db.Column(db.Date, nullable=True)
    summary = db.Column(db.Text, default="")
    health = db.Column(db.String(20), nullable=False, default="pending",
                       comment="success | warning | danger | pending")
    assigned_name = db.Column(db.String(150), nullable=True)

    # Development / hosting fields
    repo_url = db.Column(db.String(500), default="")
    live_url = db.Column(db.String(500), default="")
    linked_backend = db.Column(db.String(500), default="")
    hosting_provider = db.Column(db.String(100), default="")
    domain_url = db.Column(db.String(500), default="")
    ssl_status = db.Column(db.String(20), default="pending", comment="active | expired | pending")
    deliveries = db.Column(db.JSON, default=list, comment="[{name, date, approved}]")

    # Client visibility / payment gating
    client_visible = db.Column(db.Boolean, nullable=False, default=True)
    linked_payment_milestone = db.Column(
        db.String(50), default="",
        comment="Payment label this stage waits on (matched by value)",
    )
    blocker_reasons = db.Column(db.JSON, default=list, comment="Derived: [{type, label, severity}]")
    pre_blocker_status = db.Column(
        db.String(20), nullable=True,
        comment="Status held before the blocker engine forced blocked/waiting-client",
    )

    # Approval workflow
    submitted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    submitted_by_id = db.Column(db.String(64), nullable=True)
    submitted_by_name = db.Column(db.String(150), nullable=True)
    subadmin_status = db.Column(db.String(20), nullable=False, default="pending")
    subadmin_reviewed_by_id = db.Column(db.String(64), nullable=True)
    subadmin_reviewed_by_name = db.Column(db.String(150), nullable=True)
    subadmin_reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    subadmin_comment = db.Column(db.Text, default="")
    admin_status = db.Column(db.String(20), nullable=False, default="pending")
    admin_approved_by_id = db.Column(db.String(64), nullable=True)
    admin_approved_by_name = db.Column(db.String(150), nullable=True)
    admin_approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    admin_comment = db.Column(db.Text, default="")

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    project = db.relationship("Project", back_populates="stages")
    items = db.relationship(
        "ChecklistItem", back_populates="stage", order_by="ChecklistItem.position",
        cascade="all, delete-orphan", lazy="selectin",
    )
    asset_requests = db.relationship(
        "AssetRequest", back_populates="stage", order_by="AssetRequest.id",
        cascade="all, delete-orphan", lazy="selectin",
    )

    @validates("status")
    def _normalize_status(self, _key, value):
        value = normalize_stage_status(value)
        if value not in STAGE_STATUSES:
            raise ValidationError(
                f"Invalid stage status: {value}",
                details={"status": f"must be one of {sorted(STAGE_STATUSES)}"},
            )
        return value

    @property
    def is_submitted(self) -> bool:
        return self.submitted_at is not None

    @property
    def work_status(self) -> str:
        """Status the stage would have without blocker-driven overrides."""
        if self.pre_blocker_status and self.status in ("blocked", "waiting-client"):
            return self.pre_blocker_status
        return self.status

    def set_status(self, status):
        """Explicit status change (user or workflow); drops any blocker override."""
        self.status = status
        self.pre_blocker_status = None

    def approval_workflow_dict(self) -> dict:
        return {
            "submitted_at": _iso(self.submitted_at),
            "submitted_by": self.submitted_by_id,
            "submitted_by_name": self.submitted_by_name,
            "subadmin_review": {
                "status": self.subadmin_status,
                "reviewed_by": self.subadmin_reviewed_by_id,
                "reviewed_by_name": self.subadmin_reviewed_by_name,
                "reviewed_at": _iso(self.subadmin_reviewed_at),
                "comment": self.subadmin_comment or "",
            },
            "admin_approval": {
                "status": self.admin_status,
                "approved_by": self.admin_approved_by_id,
                "approved_by_name": self.admin_approved_by_name,
                "approved_at": _iso(self.admin_approved_at),
                "comment": self.admin_comment or "",
            },
        }

    def to_dict(self):
        return {
            "id": self.id,
            "legacy_id": self.legacy_id,
            "project_id": self.project_id,
            "name": self.name,
            "status": self.status,
            "type": self.type,
            "order": self.order,
            "icon": self.icon,
            "approved": self.approved,
            "deadline": _iso(self.deadline),
            "summary": self.summary or "",
            "health": self.health,
            "assigned_name": self.assigned_name,
            "repo_url": self.repo_url or "",
            "live_url": self.live_url or "",
            "linked_backend": self.linked_backend or "",
            "hosting_provider": self.hosting_provider or "",
            "domain_url": self.domain_url or "",
            "ssl_status": self.ssl_status or "pending",
            "deliveries": list(self.deliveries or []),
            "client_visible": self.client_visible,
            "linked_payment_milestone": self.linked_payment_milestone or "",
            "blocker_reasons": list(self.blocker_reasons or []),
            "approval_workflow": self.approval_workflow_dict(),
            "items": [i.to_dict() for i in self.items],
            "asset_requests": [a.to_dict() for a in self.asset_requests],
        }

    def __repr__(self):
        return f"<Stage {self.id}: {self.name} #{self.order} [{self.status}]>"


class ChecklistItem(db.Model):
    """Single checklist line on a checklist stage."""

    __tablename__ = "stage_checklist_items"

    id = db.Column(db.Integer, primary_key=True)
    stage_id = db.Column(
        db.Integer, db.ForeignKey("project_stages.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    text = db.Column(db.String(300), nullable=False)
    done = db.Column(db.Boolean, nullable=False, default=False)
    position = db.Column(db.Integer, nullable=False, default=0)

    stage = db.relationship("Stage", back_populates="items")

    def to_dict(self):
        return {"id": self.id, "text": self.text, "done": self.done}

    def __repr__(self):
        return f"<ChecklistItem {self.id}: {'x' if self.done else ' '} {self.text[:30]}>"


class AssetRequest(db.Model):
    """Something the agency is waiting to receive from the client."""

    __tablename__ = "stage_asset_requests"

    id = db.Column(db.Integer, primary_key=True)
    stage_id = db.Column(
        db.Integer, db.ForeignKey("project_stages.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    label = db.Column(db.String(200), nullable=False)
    type = db.Column(db.String(20), nullable=False, default="other",
                     comment="logo | content | brand-guide | api-keys | approval | other")
    status = db.Column(db.String(20), nullable=False, default="pending",
                       comment="pending | received | rejected")
    file_name = db.Column(db.String(255), default="")
    file_url = db.Column(db.String(500), default="")
    note = db.Column(db.Text, default="")
    requested_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)

    stage = db.relationship("Stage", back_populates="asset_requests")

    def to_dict(self):
        return {
            "id": self.id,
            "stage_id": self.stage_id,
            "label": self.label,
            "type": self.type,
            "status": self.status,
            "file_name": self.file_name or "",
            "file_url": self.file_url or "",
            "note": self.note or "",
            "requested_at": _iso(self.requested_at),
            "received_at": _iso(self.received_at),
        }

    def __repr__(self):
        return f"<AssetRequest {self.id}: {self.label} [{self.status}]>"


# ── Shape invariants ─────────────────────────────────────────────────────────


def validate_stage_shape(stage, siblings=None):
    """Check enum values, per-project order uniqueness and checklist placement.

    Raises:
        ValidationError: with one entry per offending field in ``details``.
    """
    errors = {}
    if stage.name not in STAGE_NAMES:
        errors["name"] = f"must be one of {list(STAGE_NAMES)}"
    if stage.status not in STAGE_STATUSES:
        errors["status"] = f"must be one of {sorted(STAGE_STATUSES)}"
    if stage.type not in STAGE_TYPES:
        errors["type"] = f"must be one of {sorted(STAGE_TYPES)}"
    if stage.health and stage.health not in STAGE_HEALTH:
        errors["health"] = f"must be one of {sorted(STAGE_HEALTH)}"
    if stage.ssl_status and stage.ssl_status not in SSL_STATUSES:
        errors["ssl_status"] = f"must be one of {sorted(SSL_STATUSES)}"
    if stage.items and stage.type != "checklist":
        errors["items"] = "checklist items are only allowed on checklist stages"

    siblings = siblings if siblings is not None else (stage.project.stages if stage.project else [])
    if any(s is not stage and s.order == stage.order for s in siblings):
        errors["order"] = f"order {stage.order} is already used in this project"

    if errors:
        raise ValidationError(f"Invalid stage '{stage.name}'", details=errors)


# ── Progress invariant ───────────────────────────────────────────────────────


def _owning_project(obj):
    if isinstance(obj, Project):
        return obj
    if isinstance(obj, Stage):
        return obj.project
    if isinstance(obj, (ChecklistItem, AssetRequest)):
        return obj.stage.project if obj.stage is not None else None
    return None


@event.listens_for(Session, "before_flush")
def _recalculate_progress(session, flush_context, instances):
    """Recompute progress and bump the aggregate version on every persist.

    Any change under a project (stage, item, asset request) also touches the
    project row, so the optimistic version check covers the whole aggregate.
    """
    touched = {}
    for obj in list(session.new) + list(session.dirty):
        if obj in session.dirty and not session.is_modified(obj):
            continue
        project = _owning_project(obj)
        if project is not None and project not in session.deleted:
            touched[id(project)] = (project, obj is project)

    for project, is_self in touched.values():
        project.recalculate_progress()
        if not is_self and project in session and project not in session.new:
            project.updated_at = _utcnow()

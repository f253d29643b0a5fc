"""
Agency Ops Platform
Project activity feed.

Models:
    - Activity: append-only, human-readable log of what happened on a project.
"""

from datetime import datetime, timezone

from agency_ops.models import db


ACTIVITY_TYPES = {"general", "stage", "payment", "task", "remark"}

SYSTEM_ACTOR = {"id": None, "name": "System", "role": "system"}


class Activity(db.Model):
    """
    One line in a project's activity feed.

    Automation entries carry an ``[AUTO]`` prefix in ``action``.
    """

    __tablename__ = "project_activities"
    __table_args__ = (
        db.Index("ix_activity_project_created", "project_id", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    user_id = db.Column(db.String(64), nullable=True)
    user_name = db.Column(db.String(150), nullable=False, default="System")
    action = db.Column(db.String(200), nullable=False)
    icon = db.Column(db.String(10), default="📌")
    type = db.Column(db.String(20), nullable=False, default="general",
                     comment="general | stage | payment | task | remark")
    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "action": self.action,
            "icon": self.icon,
            "type": self.type,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Activity {self.id}: {self.action[:40]}>"


# ── Convenience writer ───────────────────────────────────────────────────────

def write_activity(
    *,
    project_id: int,
    action: str,
    actor: dict | None = None,
    icon: str = "📌",
    type: str = "general",
) -> Activity:
    """
    Append a single activity row.  Uses ``flush`` so callers keep
    transaction control.

    ``actor`` is the ``{id, name, role}`` dict passed into every service
    operation; ``None`` records the entry as System.
    """
    actor = actor or SYSTEM_ACTOR
    entry = Activity(
        project_id=project_id,
        user_id=str(actor["id"]) if actor.get("id") is not None else None,
        user_name=actor.get("name") or "System",
        action=action[:200],
        icon=icon,
        type=type if type in ACTIVITY_TYPES else "general",
    )
    db.session.add(entry)
    db.session.flush()
    return entry

"""
Agency Ops Platform
Generated project documents.

Only the record of a generated artifact lives here; filling templates or
drafting prose happens in the document service, not in this platform.
"""

from datetime import datetime, timezone

from agency_ops.models import db


DOCUMENT_TYPES = {
    "stage-summary",
    "handover",
    "maintenance-agreement",
    "feedback-request",
    "requirement",
    "quotation",
    "agreement",
    "monthly-report",
}
DOCUMENT_STATUSES = {"draft", "final", "approved", "sent"}


class Document(db.Model):
    """Artifact produced for a project (automatically or on request)."""

    __tablename__ = "project_documents"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    type = db.Column(db.String(30), nullable=False,
                     comment="stage-summary | handover | maintenance-agreement | feedback-request | ...")
    title = db.Column(db.String(300), nullable=False)
    stage = db.Column(db.String(50), nullable=True, comment="Stage name the document belongs to")
    status = db.Column(db.String(20), nullable=False, default="draft",
                       comment="draft | final | approved | sent")
    content = db.Column(db.JSON, default=dict)
    external_ref = db.Column(db.String(200), nullable=True,
                             comment="Identifier returned by a remote document service")
    generated_by_id = db.Column(db.String(64), nullable=True)
    generated_by_name = db.Column(db.String(150), nullable=True)
    generated_at = db.Column(db.DateTime(timezone=True),
                             default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "type": self.type,
            "title": self.title,
            "stage": self.stage,
            "status": self.status,
            "content": self.content or {},
            "external_ref": self.external_ref,
            "generated_by_id": self.generated_by_id,
            "generated_by_name": self.generated_by_name,
            "generated_at": self.generated_at.isoformat() if self.generated_at else None,
        }

    def __repr__(self):
        return f"<Document {self.id}: {self.type} '{self.title[:30]}'>"

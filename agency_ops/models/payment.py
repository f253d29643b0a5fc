"""
Agency Ops Platform
Client payment schedule.

The lifecycle core only reads these rows (by project) and matches them to
stages by ``label``.  Rows are seeded when a project is created; editing
them belongs to the billing side of the platform.
"""

from datetime import date, datetime, timezone

from agency_ops.models import db


PAYMENT_LABELS = (
    "Advance Payment",
    "1st Milestone",
    "2nd Milestone",
    "3rd Milestone",
    "4th Milestone",
    "5th Milestone",
    "Final Payment",
    "Other",
)
PAYMENT_STATUSES = {"pending", "received", "cancelled"}


class ClientPayment(db.Model):
    """One scheduled or received client payment for a project."""

    __tablename__ = "client_payments"
    __table_args__ = (
        db.Index("ix_client_payments_project_status", "project_id", "status"),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    label = db.Column(db.String(50), nullable=False, comment="Advance Payment | 1st Milestone | ...")
    amount = db.Column(db.Float, nullable=False, default=0)
    due_date = db.Column(db.Date, nullable=True, comment="Payment is overdue after this date while pending")
    status = db.Column(db.String(20), nullable=False, default="pending",
                       comment="pending | received | cancelled")
    note = db.Column(db.Text, default="")

    created_at = db.Column(db.DateTime(timezone=True),
                           default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True),
                           default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    def is_overdue(self, today: date) -> bool:
        return self.status == "pending" and self.due_date is not None and self.due_date < today

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "label": self.label,
            "amount": self.amount,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "status": self.status,
            "note": self.note or "",
        }

    def __repr__(self):
        return f"<ClientPayment {self.label}={self.amount} [{self.status}]>"

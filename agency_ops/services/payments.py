"""
Read side of the client payment schedule, plus the intake-time seeding.

The lifecycle engine never edits payments; it loads them per project,
derives totals/overdue state, and matches stages to them by label.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import select

from agency_ops.models import db
from agency_ops.models.payment import ClientPayment

MILESTONE_LABELS = ("1st Milestone", "2nd Milestone", "3rd Milestone", "4th Milestone", "5th Milestone")


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass
class PaymentSummary:
    """Totals over one project's payments as of a given day."""
    total: float = 0
    received: float = 0
    overdue: list = field(default_factory=list)

    @property
    def pending(self) -> float:
        return self.total - self.received

    @property
    def overdue_count(self) -> int:
        return len(self.overdue)

    @property
    def is_overdue(self) -> bool:
        return bool(self.overdue)


def payments_for_project(project_id: int) -> list[ClientPayment]:
    return list(db.session.execute(
        select(ClientPayment)
        .where(ClientPayment.project_id == project_id)
        .order_by(ClientPayment.id)
    ).scalars())


def overdue_payments(payments, today: date) -> list:
    """Pending payments whose due date is before ``today``."""
    return [p for p in payments if p.is_overdue(today)]


def summarize_payments(payments, today: date) -> PaymentSummary:
    return PaymentSummary(
        total=sum(p.amount or 0 for p in payments),
        received=sum(p.amount or 0 for p in payments if p.status == "received"),
        overdue=overdue_payments(payments, today),
    )


def build_payment_schedule(total_amount, advance_percent=25, milestones=3) -> list[dict]:
    """Split a contract amount into advance + milestone payments.

    The advance is ``round(total × pct / 100)``; the remainder is split
    evenly across milestones with the last one absorbing the rounding.
    Labels past the fifth milestone fall back to "Final Payment".
    """
    if not total_amount or total_amount <= 0:
        return []
    advance_percent = 25 if advance_percent is None else advance_percent
    milestones = max(int(milestones or 3), 1)

    advance = _round_half_up(total_amount * advance_percent / 100)
    remaining = total_amount - advance
    per_milestone = _round_half_up(remaining / milestones)

    schedule = [{"label": "Advance Payment", "amount": advance}]
    for i in range(milestones):
        is_last = i == milestones - 1
        amount = remaining - per_milestone * (milestones - 1) if is_last else per_milestone
        label = MILESTONE_LABELS[i] if i < len(MILESTONE_LABELS) else "Final Payment"
        schedule.append({"label": label, "amount": amount})
    return schedule


def seed_payment_schedule(project) -> list[ClientPayment]:
    """Create pending ClientPayment rows for a freshly created project (flush only)."""
    rows = [
        ClientPayment(project_id=project.id, label=entry["label"], amount=entry["amount"], status="pending")
        for entry in build_payment_schedule(project.total_amount, project.advance_percent, project.milestones)
    ]
    db.session.add_all(rows)
    db.session.flush()
    return rows

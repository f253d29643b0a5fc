"""
Agency Ops Platform
Blueprint registry.
"""

from flask import request
from sqlalchemy import func, select

from agency_ops.models import db


def paginate_query(stmt, default_limit=50, max_limit=500):
    """Apply limit/offset pagination to a SQLAlchemy select statement.

    Query params:
        limit  - max items (default 50, capped at max_limit)
        offset - starting position (default 0)

    Returns:
        (items_list, total_count)
    """
    total = db.session.scalar(select(func.count()).select_from(stmt.order_by(None).subquery()))
    try:
        limit = min(int(request.args.get("limit", default_limit)), max_limit)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    items = db.session.execute(stmt.limit(limit).offset(offset)).scalars().all()
    return items, total


def current_actor() -> dict:
    """Acting user from the identity headers set by the upstream gateway."""
    return {
        "id": request.headers.get("X-User-Id") or None,
        "name": request.headers.get("X-User-Name") or "Unknown",
        "role": request.headers.get("X-User-Role") or None,
    }

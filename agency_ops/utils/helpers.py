"""Shared utility functions.

parse_date:        lenient date parsing (returns None on bad input)
parse_date_input:  strict date parsing (raises ValueError, for 400 responses)
commit_or_raise:   commit helper for the service layer
"""
import logging
from datetime import date, datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from agency_ops.core.exceptions import ConflictError
from agency_ops.models import db

logger = logging.getLogger(__name__)


def parse_date(value):
    """Parse a date string (ISO or DD.MM.YYYY) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    - DD.MM.YYYY
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()
    except (ValueError, TypeError):
        pass
    try:
        return datetime.strptime(str(value), "%d.%m.%Y").date()
    except (ValueError, TypeError):
        return None


def parse_date_input(value):
    """Parse a date string, raising ValueError on bad input.

    Same as parse_date() but raises instead of returning None, so blueprints
    can turn it into a 400.
    """
    if not value:
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise ValueError("Invalid date format. Use YYYY-MM-DD or DD.MM.YYYY.")
    return parsed


# ── Database commit helper ───────────────────────────────────────────────────

def commit_or_raise(resource: str = "Project", version=None):
    """Commit the current session; roll back and raise on failure.

    StaleDataError (optimistic version check failed) → ConflictError.
    IntegrityError → ConflictError on the violated constraint.
    Anything else is logged and re-raised unchanged so the caller sees an
    infrastructure failure.
    """
    try:
        db.session.commit()
    except StaleDataError:
        db.session.rollback()
        logger.warning("Concurrent modification detected on %s (version=%s)", resource, version)
        raise ConflictError(resource, "version", str(version) if version is not None else None)
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on commit: %s", exc.orig)
        raise ConflictError(resource, "constraint", str(exc.orig)[:200])
    except Exception:
        db.session.rollback()
        logger.exception("Unexpected database error on commit")
        raise

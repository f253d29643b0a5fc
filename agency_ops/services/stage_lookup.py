"""
Stage lookup and value-based matching rules.

Every place in the lifecycle engine that matches things by value goes
through one of these functions:

    load_project             project by primary key
    find_stage_by_id         native integer id, or the legacy string id
    pending_payment_for      stage → payment, exact label equality
    text_mentions            case-insensitive substring test
    matching_checklist_item  asset request → checklist item
"""

from __future__ import annotations

import re

from agency_ops.core.exceptions import NotFoundError
from agency_ops.models import db
from agency_ops.models.project import Project

_WORD_RE = re.compile(r"[a-z0-9]+")

# Words too generic to link an asset label to a checklist line
_GENERIC_WORDS = frozenset({
    "a", "an", "and", "the", "of", "for", "to", "with", "from",
    "get", "create", "document", "doc", "file", "files", "request",
})


def _coerce_native_id(stage_id) -> int | None:
    if isinstance(stage_id, bool):
        return None
    if isinstance(stage_id, int):
        return stage_id
    text = str(stage_id).strip()
    return int(text) if text.isdigit() else None


def load_project(project_id):
    """Fetch a Project by primary key.

    Raises:
        NotFoundError: the project does not exist.
    """
    project = db.session.get(Project, project_id) if project_id is not None else None
    if project is None:
        raise NotFoundError("Project", project_id)
    return project


def find_stage_by_id(project, stage_id):
    """Return the stage of ``project`` identified by ``stage_id``.

    Accepts the native id (int or digit string) or, for records imported
    from the older store, the legacy string id.

    Raises:
        NotFoundError: no stage matches either form.
    """
    if stage_id is None or str(stage_id).strip() == "":
        raise NotFoundError("Stage", stage_id)

    native = _coerce_native_id(stage_id)
    if native is not None:
        for stage in project.stages:
            if stage.id == native:
                return stage

    legacy = str(stage_id).strip()
    for stage in project.stages:
        if stage.legacy_id and stage.legacy_id == legacy:
            return stage

    raise NotFoundError("Stage", stage_id)


def find_asset_request(stage, asset_id):
    """Return the asset request on ``stage`` with id ``asset_id``."""
    native = _coerce_native_id(asset_id) if asset_id is not None else None
    for asset in stage.asset_requests:
        if native is not None and asset.id == native:
            return asset
    raise NotFoundError("AssetRequest", asset_id)


def find_checklist_item(stage, item_id):
    native = _coerce_native_id(item_id) if item_id is not None else None
    for item in stage.items:
        if native is not None and item.id == native:
            return item
    raise NotFoundError("ChecklistItem", item_id)


def pending_payment_for(payments, label):
    """First pending payment whose label equals ``label`` exactly, else None."""
    if not label:
        return None
    return next((p for p in payments if p.label == label and p.status == "pending"), None)


def text_mentions(text, needle) -> bool:
    """Case-insensitive substring test; empty inputs never match."""
    if not text or not needle:
        return False
    return needle.lower() in text.lower()


def _keywords(text) -> set[str]:
    return {w for w in _WORD_RE.findall((text or "").lower()) if w not in _GENERIC_WORDS}


def matching_checklist_item(items, asset_label):
    """Checklist item that a received asset request fulfils, or None.

    1. The first item whose text contains the asset label.
    2. Otherwise the item sharing the most keywords with the label, as long
       as it shares at least two (or the label's only keyword).
       "Client Approval Document" → "Get client approval".
    """
    if not asset_label:
        return None

    for item in items:
        if text_mentions(item.text, asset_label):
            return item

    label_words = _keywords(asset_label)
    if not label_words:
        return None
    threshold = min(2, len(label_words))

    best, best_score = None, 0
    for item in items:
        score = len(label_words & _keywords(item.text))
        if score > best_score:
            best, best_score = item, score
    return best if best_score >= threshold else None

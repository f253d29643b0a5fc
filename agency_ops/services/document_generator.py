"""
Document generation boundary.

The lifecycle engine asks for three artifacts and never builds their prose:

    generate_stage_summary(project, stage_id, actor)
    generate_handover_kit(project, actor)
    generate_maintenance_agreement(project, actor)

``LocalDocumentGenerator`` records a Document row whose content is the
structured project data a template would need.  When DOCUMENT_SERVICE_URL
is configured, ``build_document_generator`` returns the remote gateway
(``agency_ops.integrations.document_gateway``) instead.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from flask import current_app

from agency_ops.models import db
from agency_ops.models.document import Document
from agency_ops.models.project import percent
from agency_ops.services.stage_lookup import find_stage_by_id

logger = logging.getLogger(__name__)


def record_document(project, *, doc_type, title, content, actor=None, stage=None,
                    status="draft", external_ref=None) -> Document:
    """Insert a Document row for ``project`` (flush only)."""
    actor = actor or {}
    doc = Document(
        project_id=project.id,
        type=doc_type,
        title=title[:300],
        stage=stage,
        status=status,
        content=content,
        external_ref=external_ref,
        generated_by_id=str(actor["id"]) if actor.get("id") is not None else None,
        generated_by_name=actor.get("name") or "System",
    )
    db.session.add(doc)
    db.session.flush()
    return doc


# ── Content builders (shared by local and remote generators) ─────────────────


def stage_summary_content(project, stage) -> dict:
    done = [i.text for i in stage.items if i.done]
    return {
        "project_name": project.name,
        "client": project.client,
        "stage": {
            "name": stage.name,
            "order": stage.order,
            "status": stage.status,
            "approved": stage.approved,
            "completion_rate": percent(len(done), len(stage.items)) if stage.items
            else (100 if stage.status == "completed" else 0),
            "completed_items": done,
            "open_items": [i.text for i in stage.items if not i.done],
            "repo_url": stage.repo_url or "",
            "live_url": stage.live_url or "",
            "deliveries": list(stage.deliveries or []),
            "remarks": stage.summary or "",
        },
        "approval": stage.approval_workflow_dict(),
        "progress": project.progress,
        "generated_at": datetime.now(timezone.utc).isoformat(),
    }


def handover_content(project) -> dict:
    hosting = project.stage_named("Hosting & Deployment")
    return {
        "project_name": project.name,
        "client": project.client,
        "hosting_provider": hosting.hosting_provider if hosting else "",
        "domain": hosting.domain_url if hosting else "",
        "ssl_status": hosting.ssl_status if hosting else "",
        "live_urls": [{"stage": s.name, "url": s.live_url} for s in project.stages if s.live_url],
        "repo_links": [{"stage": s.name, "url": s.repo_url} for s in project.stages if s.repo_url],
        "team": [{"name": m.name, "role": m.role} for m in project.team],
        "generated_at": datetime.now(timezone.utc).isoformat(),
    }


def maintenance_agreement_content(project) -> dict:
    return {
        "project_name": project.name,
        "client": project.client,
        "project_type": project.type,
        "delivered_on": datetime.now(timezone.utc).date().isoformat(),
        "support_channels": ["email", "ticket"],
        "notes": project.maintenance_notes or "",
        "generated_at": datetime.now(timezone.utc).isoformat(),
    }


# ── Generators ───────────────────────────────────────────────────────────────


class DocumentGenerator(ABC):
    """Interface the automation dispatcher calls.  Each method returns a Document."""

    @abstractmethod
    def generate_stage_summary(self, project, stage_id, actor):
        """Summary of one approved stage."""

    @abstractmethod
    def generate_handover_kit(self, project, actor):
        """Handover kit for a delivered project."""

    @abstractmethod
    def generate_maintenance_agreement(self, project, actor):
        """Maintenance agreement for a delivered project."""


class LocalDocumentGenerator(DocumentGenerator):
    """Records structured document content in the platform database."""

    def generate_stage_summary(self, project, stage_id, actor):
        stage = find_stage_by_id(project, stage_id)
        return record_document(
            project,
            doc_type="stage-summary",
            title=f"{stage.name} Stage Summary - {project.name}",
            content=stage_summary_content(project, stage),
            actor=actor,
            stage=stage.name,
            status="final",
        )

    def generate_handover_kit(self, project, actor):
        return record_document(
            project,
            doc_type="handover",
            title=f"Handover Kit - {project.name}",
            content=handover_content(project),
            actor=actor,
            stage="Delivery",
        )

    def generate_maintenance_agreement(self, project, actor):
        return record_document(
            project,
            doc_type="maintenance-agreement",
            title=f"Maintenance Agreement - {project.name}",
            content=maintenance_agreement_content(project),
            actor=actor,
            stage="Delivery",
        )


def build_document_generator() -> DocumentGenerator:
    """Remote gateway when DOCUMENT_SERVICE_URL is set, local recorder otherwise."""
    url = current_app.config.get("DOCUMENT_SERVICE_URL")
    if url:
        from agency_ops.integrations.document_gateway import HttpDocumentGenerator

        return HttpDocumentGenerator(
            base_url=url,
            timeout=current_app.config.get("DOCUMENT_SERVICE_TIMEOUT", 10),
        )
    return LocalDocumentGenerator()

"""
Remote document service gateway.

Posts the structured content for a stage summary, handover kit or
maintenance agreement to an external rendering service and records the
returned reference as a Document row.

    POST {base_url}/documents/{type}
    body:     {"project_id", "type", "title", "content", "requested_by"}
    response: {"id": "...", "status": "draft|final"}

Every call is bounded by ``timeout`` seconds.  Failures raise
DocumentServiceError; the automation dispatcher logs and suppresses them.

Testability: pass a mock `session` to HttpDocumentGenerator() in tests
instead of letting it create a real requests.Session.
"""

from __future__ import annotations

import logging
import time

import requests

from agency_ops.services.document_generator import (
    DocumentGenerator,
    handover_content,
    maintenance_agreement_content,
    record_document,
    stage_summary_content,
)
from agency_ops.services.stage_lookup import find_stage_by_id

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 10


class DocumentServiceError(Exception):
    """Remote document service unreachable or returned a non-2xx response."""


class HttpDocumentGenerator(DocumentGenerator):
    """DocumentGenerator backed by a remote HTTP service.

    Usage:
        gen = HttpDocumentGenerator("https://docs.internal", timeout=5)
        gen.generate_handover_kit(project, actor)
    """

    def __init__(self, base_url: str, timeout: float = _DEFAULT_TIMEOUT,
                 session: requests.Session | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session: requests.Session | None = session

    @property
    def session(self) -> requests.Session:
        """Return (or lazily create) the requests.Session."""
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def _post(self, doc_type: str, payload: dict) -> dict:
        url = f"{self.base_url}/documents/{doc_type}"
        start = time.monotonic()
        try:
            resp = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            raise DocumentServiceError(f"{doc_type}: {exc}") from exc
        duration_ms = int((time.monotonic() - start) * 1000)

        if not 200 <= resp.status_code < 300:
            raise DocumentServiceError(
                f"{doc_type}: HTTP {resp.status_code} from document service"
            )
        logger.info(
            "Document service generated %s in %dms", doc_type, duration_ms,
            extra={"project_id": payload.get("project_id"), "duration_ms": duration_ms},
        )
        try:
            return resp.json() or {}
        except ValueError:
            return {}

    def _generate(self, project, *, doc_type, title, content, actor, stage):
        data = self._post(doc_type, {
            "project_id": project.id,
            "type": doc_type,
            "title": title,
            "content": content,
            "requested_by": (actor or {}).get("name"),
        })
        return record_document(
            project,
            doc_type=doc_type,
            title=title,
            content=content,
            actor=actor,
            stage=stage,
            status=data.get("status") or "draft",
            external_ref=str(data["id"]) if data.get("id") is not None else None,
        )

    def generate_stage_summary(self, project, stage_id, actor):
        stage = find_stage_by_id(project, stage_id)
        return self._generate(
            project,
            doc_type="stage-summary",
            title=f"{stage.name} Stage Summary - {project.name}",
            content=stage_summary_content(project, stage),
            actor=actor,
            stage=stage.name,
        )

    def generate_handover_kit(self, project, actor):
        return self._generate(
            project,
            doc_type="handover",
            title=f"Handover Kit - {project.name}",
            content=handover_content(project),
            actor=actor,
            stage="Delivery",
        )

    def generate_maintenance_agreement(self, project, actor):
        return self._generate(
            project,
            doc_type="maintenance-agreement",
            title=f"Maintenance Agreement - {project.name}",
            content=maintenance_agreement_content(project),
            actor=actor,
            stage="Delivery",
        )

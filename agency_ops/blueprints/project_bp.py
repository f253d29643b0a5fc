"""
Project lifecycle blueprint.

Endpoint groups:
  Projects          GET/POST /api/v1/projects
                    GET      /api/v1/projects/stats
                    GET/PUT  /api/v1/projects/<pid>
  Stage records     PUT      /api/v1/projects/<pid>/stages/<sid>
                    PUT      /api/v1/projects/<pid>/stages/<sid>/items/<iid>
                    PUT      /api/v1/projects/<pid>/stages/<sid>/visibility
                    PUT      /api/v1/projects/<pid>/stages/<sid>/link-payment
                    GET      /api/v1/projects/<pid>/stages/<sid>/report-data
  Client assets     POST     /api/v1/projects/<pid>/stages/<sid>/asset-requests
                    PUT/DEL  /api/v1/projects/<pid>/stages/<sid>/asset-requests/<aid>
  Approvals         PUT      /api/v1/projects/<pid>/stages/<sid>/submit-approval
                    PUT      /api/v1/projects/<pid>/stages/<sid>/subadmin-review
                    PUT      /api/v1/projects/<pid>/stages/<sid>/admin-approve
                    PUT      /api/v1/projects/<pid>/maintenance
  Derived state     GET      /api/v1/projects/<pid>/blockers
                    GET      /api/v1/projects/<pid>/health
                    GET      /api/v1/projects/<pid>/client-view
  Feeds             GET      /api/v1/projects/<pid>/activities
                    GET      /api/v1/projects/<pid>/documents

Stage ids in the path are native integer ids or legacy string ids.
Service layer owns all business logic and commits.
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

import agency_ops.services.approval_workflow as workflow
import agency_ops.services.project_service as projects
from agency_ops.blueprints import current_actor, paginate_query
from agency_ops.core.exceptions import ConflictError, InvalidStateError, NotFoundError, ValidationError
from agency_ops.services.blocker_engine import compute_project_blockers
from agency_ops.services.client_view import get_client_view
from agency_ops.services.health_scorer import get_project_health
from agency_ops.utils.errors import E, api_error

logger = logging.getLogger(__name__)

project_bp = Blueprint("project", __name__, url_prefix="/api/v1")


# ── Error handlers ────────────────────────────────────────────────────────────


@project_bp.errorhandler(NotFoundError)
def _handle_not_found(error: NotFoundError):
    return api_error(E.NOT_FOUND, str(error))


@project_bp.errorhandler(ValidationError)
def _handle_validation(error: ValidationError):
    return api_error(E.VALIDATION_RULE, str(error), details=error.details)


@project_bp.errorhandler(InvalidStateError)
def _handle_invalid_state(error: InvalidStateError):
    return api_error(E.INVALID_STATE, str(error), details={"current_state": error.current_state})


@project_bp.errorhandler(ConflictError)
def _handle_conflict(error: ConflictError):
    code = E.CONFLICT_STATE if error.field == "version" else E.CONFLICT_DUPLICATE
    return api_error(code, str(error))


@project_bp.errorhandler(Exception)
def _handle_unexpected(error: Exception):
    logger.exception("Unexpected error in project_bp endpoint=%s", request.endpoint)
    return api_error(E.INTERNAL, "Internal server error")


def _body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


# ═════════════════════════════════════════════════════════════════════════
# Projects
# ═════════════════════════════════════════════════════════════════════════


@project_bp.route("/projects", methods=["GET"])
def list_projects():
    """List projects.

    Query params: status, priority, mode, search, limit, offset
    Returns: {"items": [...], "total": n}
    """
    stmt = projects.list_projects(
        status=request.args.get("status"),
        priority=request.args.get("priority"),
        mode=request.args.get("mode"),
        search=(request.args.get("search") or "").strip() or None,
    )
    items, total = paginate_query(stmt)
    return jsonify({"items": [p.to_dict(include_stages=False) for p in items], "total": total}), 200


@project_bp.route("/projects", methods=["POST"])
def create_project():
    """Create a project seeded with the stage template.

    Body: {name, client, type?, priority?, start_date?, due_date?,
           total_amount?, advance_percent?, milestones?, team?: [{role, name, user_id?}]}
    Returns: project dict (201).
    """
    data = _body()
    if not (data.get("name") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "name is required")
    if not (data.get("client") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "client is required")
    if "team" in data and not isinstance(data["team"], list):
        return api_error(E.VALIDATION_INVALID, "team must be a list")

    project = projects.create_project(data, current_actor())
    return jsonify(project.to_dict()), 201


@project_bp.route("/projects/stats", methods=["GET"])
def project_stats():
    """Returns: {"total": n, "success": n, "warning": n, "danger": n, "info": n}"""
    return jsonify(projects.get_project_stats()), 200


@project_bp.route("/projects/<int:project_id>", methods=["GET"])
def get_project(project_id):
    return jsonify(projects.get_project(project_id).to_dict()), 200


@project_bp.route("/projects/<int:project_id>", methods=["PUT"])
def update_project(project_id):
    """Update project details.

    Body: any subset of {name, client, description, type, priority, status,
          mode, start_date, due_date, total_amount, advance_percent,
          milestones, team}
    ``mode = active`` resumes a paused project.
    """
    data = _body()
    if not data:
        return api_error(E.VALIDATION_REQUIRED, "Request body is required")
    if "team" in data and not isinstance(data["team"], list):
        return api_error(E.VALIDATION_INVALID, "team must be a list")
    project = projects.update_project(project_id, data, current_actor())
    return jsonify(project.to_dict()), 200


# ═════════════════════════════════════════════════════════════════════════
# Stage records
# ═════════════════════════════════════════════════════════════════════════


@project_bp.route("/projects/<int:project_id>/stages/<stage_id>", methods=["PUT"])
def update_stage(project_id, stage_id):
    """Body: any subset of the updatable stage fields."""
    data = _body()
    if not data:
        return api_error(E.VALIDATION_REQUIRED, "Request body is required")
    project = projects.update_stage(project_id, stage_id, data, current_actor())
    return jsonify(project.to_dict()), 200


@project_bp.route("/projects/<int:project_id>/stages/<stage_id>/items/<item_id>", methods=["PUT"])
def update_stage_item(project_id, stage_id, item_id):
    """Body: {done?} - omitted ``done`` toggles the item."""
    data = _body()
    if "done" in data and not isinstance(data["done"], bool):
        return api_error(E.VALIDATION_INVALID, "done must be a boolean")
    project = projects.update_stage_item(project_id, stage_id, item_id, data.get("done"), current_actor())
    return jsonify(project.to_dict()), 200


@project_bp.route("/projects/<int:project_id>/stages/<stage_id>/visibility", methods=["PUT"])
def toggle_stage_visibility(project_id, stage_id):
    """Body: {client_visible?} - omitted value flips the flag."""
    data = _body()
    if "client_visible" in data and not isinstance(data["client_visible"], bool):
        return api_error(E.VALIDATION_INVALID, "client_visible must be a boolean")
    project = projects.toggle_stage_visibility(
        project_id, stage_id, data.get("client_visible"), current_actor(),
    )
    return jsonify(project.to_dict()), 200


@project_bp.route("/projects/<int:project_id>/stages/<stage_id>/link-payment", methods=["PUT"])
def link_payment(project_id, stage_id):
    """Body: {milestone_label} - empty string unlinks."""
    data = _body()
    if "milestone_label" not in data:
        return api_error(E.VALIDATION_REQUIRED, "milestone_label is required")
    project = projects.link_payment_to_stage(project_id, stage_id, data["milestone_label"], current_actor())
    return jsonify(project.to_dict()), 200


@project_bp.route("/projects/<int:project_id>/stages/<stage_id>/report-data", methods=["GET"])
def stage_report_data(project_id, stage_id):
    """Query params: type = technical | client | handover (default technical)."""
    data = projects.get_stage_report_data(project_id, stage_id, request.args.get("type", "technical"))
    return jsonify(data), 200


# ═════════════════════════════════════════════════════════════════════════
# Client asset requests
# ═════════════════════════════════════════════════════════════════════════


@project_bp.route("/projects/<int:project_id>/stages/<stage_id>/asset-requests", methods=["POST"])
def add_asset_request(project_id, stage_id):
    """Body: {label, type?, note?}"""
    data = _body()
    if not (data.get("label") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "label is required")
    project = projects.add_asset_request(project_id, stage_id, data, current_actor())
    return jsonify(project.to_dict()), 201


@project_bp.route(
    "/projects/<int:project_id>/stages/<stage_id>/asset-requests/<asset_id>", methods=["PUT"],
)
def update_asset_request(project_id, stage_id, asset_id):
    """Body: {status?, label?, type?, file_name?, file_url?, note?}"""
    project = projects.update_asset_request(project_id, stage_id, asset_id, _body(), current_actor())
    return jsonify(project.to_dict()), 200


@project_bp.route(
    "/projects/<int:project_id>/stages/<stage_id>/asset-requests/<asset_id>", methods=["DELETE"],
)
def delete_asset_request(project_id, stage_id, asset_id):
    project = projects.delete_asset_request(project_id, stage_id, asset_id, current_actor())
    return jsonify(project.to_dict()), 200


# ═════════════════════════════════════════════════════════════════════════
# Approval workflow
# ═════════════════════════════════════════════════════════════════════════


@project_bp.route("/projects/<int:project_id>/stages/<stage_id>/submit-approval", methods=["PUT"])
def submit_approval(project_id, stage_id):
    project = workflow.submit_stage_for_approval(project_id, stage_id, current_actor())
    return jsonify(project.to_dict()), 200


@project_bp.route("/projects/<int:project_id>/stages/<stage_id>/subadmin-review", methods=["PUT"])
def subadmin_review(project_id, stage_id):
    """Body: {decision?: approved|rejected, comment?}"""
    data = _body()
    project = workflow.subadmin_review_stage(
        project_id, stage_id, current_actor(),
        decision=data.get("decision"), comment=data.get("comment", ""),
    )
    return jsonify(project.to_dict()), 200


@project_bp.route("/projects/<int:project_id>/stages/<stage_id>/admin-approve", methods=["PUT"])
def admin_approve(project_id, stage_id):
    """Body: {decision?: approved|rejected, comment?}"""
    data = _body()
    project = workflow.admin_approve_stage(
        project_id, stage_id, current_actor(),
        decision=data.get("decision"), comment=data.get("comment", ""),
    )
    return jsonify(project.to_dict()), 200


@project_bp.route("/projects/<int:project_id>/maintenance", methods=["PUT"])
def enter_maintenance(project_id):
    """Body: {notes?}"""
    data = _body()
    project = workflow.enter_maintenance_mode(project_id, current_actor(), data.get("notes", ""))
    return jsonify(project.to_dict()), 200


# ═════════════════════════════════════════════════════════════════════════
# Derived state
# ═════════════════════════════════════════════════════════════════════════


@project_bp.route("/projects/<int:project_id>/blockers", methods=["GET"])
def project_blockers(project_id):
    """Recompute and persist blocker reasons for every stage."""
    return jsonify({"project_id": project_id, "stages": compute_project_blockers(project_id)}), 200


@project_bp.route("/projects/<int:project_id>/health", methods=["GET"])
def project_health(project_id):
    return jsonify(get_project_health(project_id)), 200


@project_bp.route("/projects/<int:project_id>/client-view", methods=["GET"])
def client_view(project_id):
    return jsonify(get_client_view(project_id)), 200


# ═════════════════════════════════════════════════════════════════════════
# Feeds
# ═════════════════════════════════════════════════════════════════════════


@project_bp.route("/projects/<int:project_id>/activities", methods=["GET"])
def activities(project_id):
    """Query params: limit (default 50, max 200)"""
    limit = min(max(request.args.get("limit", 50, type=int), 1), 200)
    return jsonify({"items": projects.list_activities(project_id, limit)}), 200


@project_bp.route("/projects/<int:project_id>/documents", methods=["GET"])
def documents(project_id):
    """Query params: type"""
    return jsonify({"items": projects.list_documents(project_id, request.args.get("type"))}), 200

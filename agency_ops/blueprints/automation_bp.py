"""
Scheduler blueprint.

Endpoints:
    GET   /api/v1/scheduler/jobs                  - registered jobs with run history
    GET   /api/v1/scheduler/jobs/<name>           - one job's record
    POST  /api/v1/scheduler/jobs/<name>/trigger   - run a job now
    PATCH /api/v1/scheduler/jobs/<name>/toggle    - enable / disable

The external scheduler drives the periodic lifecycle checks through the
trigger endpoint.
"""

import logging

from flask import Blueprint, jsonify, request

from agency_ops.services.scheduler_service import SchedulerService
from agency_ops.utils.errors import E, api_error

logger = logging.getLogger(__name__)

automation_bp = Blueprint("automation_bp", __name__, url_prefix="/api/v1")


@automation_bp.route("/scheduler/jobs", methods=["GET"])
def list_scheduled_jobs():
    """List all registered jobs with their status."""
    jobs = SchedulerService.list_jobs()
    return jsonify({"jobs": jobs, "total": len(jobs)})


@automation_bp.route("/scheduler/jobs/<job_name>", methods=["GET"])
def get_job_status(job_name):
    job = SchedulerService.get_job_status(job_name)
    if not job:
        return api_error(E.NOT_FOUND, f"Job '{job_name}' not found")
    return jsonify(job)


@automation_bp.route("/scheduler/jobs/<job_name>/trigger", methods=["POST"])
def trigger_job(job_name):
    """Manually trigger a scheduled job."""
    result = SchedulerService.run_job(job_name)
    if result.get("status") == "error" and "Unknown job" in (result.get("error") or ""):
        return api_error(E.NOT_FOUND, result["error"])
    logger.info("Job %s triggered via API status=%s", job_name, result.get("status"),
                extra={"job_name": job_name})
    return jsonify(result)


@automation_bp.route("/scheduler/jobs/<job_name>/toggle", methods=["PATCH"])
def toggle_job_status(job_name):
    """Enable or disable a scheduled job."""
    data = request.get_json(silent=True) or {}
    enabled = data.get("enabled")
    if not isinstance(enabled, bool):
        return api_error(E.VALIDATION_REQUIRED, "'enabled' field is required (true/false)")

    result = SchedulerService.toggle_job(job_name, enabled)
    if not result:
        return api_error(E.NOT_FOUND, f"Job '{job_name}' not found")
    return jsonify(result)

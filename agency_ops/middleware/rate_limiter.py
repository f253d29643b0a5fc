"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in agency_ops/__init__.py with no default
limits; this module applies granular limits per route category.

Usage:
    from agency_ops.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

PROJECT_LIMIT = "120/minute"
SCHEDULER_LIMIT = "20/minute"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Project endpoints:   120/minute
        - Scheduler triggers:  20/minute  (each run scans every active project)
        - Health check:        exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    bp = app.blueprints.get("project")
    if bp:
        limiter.limit(PROJECT_LIMIT)(bp)

    bp = app.blueprints.get("automation_bp")
    if bp:
        limiter.limit(SCHEDULER_LIMIT)(bp)

    bp = app.blueprints.get("health_bp")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured - project: %s, scheduler: %s", PROJECT_LIMIT, SCHEDULER_LIMIT,
    )

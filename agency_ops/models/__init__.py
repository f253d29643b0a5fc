"""
Agency Ops Platform
SQLAlchemy models package.

All models share the single ``db`` instance defined here; the app factory
binds it with ``db.init_app(app)``.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

"""
Standards Workflow Engine
Model package: shared SQLAlchemy handle.

Every model module imports ``db`` from here:

    from stageflow.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

"""
Flask-Migrate / Alembic entry point.

Usage:
    flask --app wsgi db upgrade
    flask --app wsgi seed-stages [--file catalog.json]
    flask --app wsgi stalled-projects 3
"""

from stageflow import create_app

app = create_app()

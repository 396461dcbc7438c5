"""
Standards Workflow Engine
Flask Application Factory.

Usage:
    from stageflow import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config

The engine is a set of service-layer functions (``stageflow.services``)
that run inside an application context; there is no HTTP surface here.
"""

import logging
import os

import click
from flask import Flask
from flask_migrate import Migrate

from stageflow.config import config
from stageflow.middleware.logging_config import configure_logging
from stageflow.models import db

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    # Instantiated so ProductionConfig can refuse a missing DATABASE_URL
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)

    # ── Collaborators ────────────────────────────────────────────────────
    from stageflow.services.document_lookup import SqlDocumentLookup
    from stageflow.services.notification_dispatcher import NotificationDispatcher
    from stageflow.services.stage_catalog import CatalogSnapshot

    app.extensions["document_lookup"] = SqlDocumentLookup()
    NotificationDispatcher(app)
    CatalogSnapshot(app)

    # ── Import all models so Alembic can detect them ─────────────────────
    from stageflow.models import stage as _stage_models            # noqa: F401
    from stageflow.models import committee as _committee_models    # noqa: F401
    from stageflow.models import document as _document_models      # noqa: F401
    from stageflow.models import project as _project_models        # noqa: F401
    from stageflow.models import proposal as _proposal_models      # noqa: F401
    from stageflow.models import acceptance as _acceptance_models  # noqa: F401
    from stageflow.models import enquiry as _enquiry_models        # noqa: F401
    from stageflow.models import consultation as _consultation_models  # noqa: F401
    from stageflow.models import balloting as _balloting_models    # noqa: F401
    from stageflow.models import meeting as _meeting_models        # noqa: F401
    from stageflow.models import audit as _audit_models            # noqa: F401
    from stageflow.models import notification as _notification_models  # noqa: F401

    if config_name == "development":
        os.makedirs(app.instance_path, exist_ok=True)
        with app.app_context():
            db.create_all()
            app.logger.info("db.create_all() completed successfully")

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed-stages")
    @click.option("--file", "catalog_file", default=None,
                  help="JSON stage catalog; defaults to STAGE_CATALOG_FILE or the built-in catalog.")
    def seed_stages_cmd(catalog_file):
        """Seed the stage catalog (idempotent)."""
        from stageflow.services.stage_catalog import load_catalog_file, seed_stages

        path = catalog_file or app.config.get("STAGE_CATALOG_FILE")
        stages = load_catalog_file(path) if path else None
        result = seed_stages(stages)
        click.echo(f"Stages created: {result['created']}, already present: {result['existing']}")

    @app.cli.command("stalled-projects")
    @click.argument("stage_number", type=int)
    @click.option("--days", default=None, type=int,
                  help="Threshold in days; defaults to the stage's standard max_days.")
    def stalled_projects_cmd(stage_number, days):
        """List projects that have been in a stage for longer than allowed."""
        from stageflow.services.stage_catalog import get_stage_by_number, timeframe_for
        from stageflow.services.stage_transition import find_projects_in_stage_longer_than

        stage = get_stage_by_number(stage_number)
        if days is None:
            bound = timeframe_for(stage, "standard")
            if not bound or bound[1] is None:
                raise click.UsageError(f"Stage {stage_number} has no standard timeframe; pass --days")
            days = bound[1]
        for project in find_projects_in_stage_longer_than(stage.id, days):
            click.echo(f"{project.reference}\t{project.title}")

    return app

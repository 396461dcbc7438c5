"""
Primary-key lookup helpers.

Every get-by-id in the workflow services goes through these helpers
instead of ``db.session.get(Model, pk)`` so that a missing row always
surfaces as ``NotFoundError`` and row locks are taken the same way
everywhere.

Usage:
    project = get_or_raise(Project, project_id)

    # Inside an atomic() block, serialise concurrent writers on the row
    project = get_or_raise(Project, project_id, lock=True)

    # When None is an acceptable outcome
    stage = get_or_none(Stage, stage_id)
"""

import logging

from sqlalchemy import select

from stageflow.core.exceptions import NotFoundError
from stageflow.models import db

logger = logging.getLogger(__name__)


def get_or_none(model, pk, *, lock: bool = False):
    """Fetch a single entity by PK, or None when it does not exist.

    Args:
        model: SQLAlchemy model class with an ``id`` PK column.
        pk: Primary key value.
        lock: Issue ``SELECT ... FOR UPDATE`` (ignored by SQLite, which
              serialises writers at the database level).
    """
    if pk is None:
        return None
    stmt = select(model).where(model.id == pk)
    if lock:
        stmt = stmt.with_for_update()
    return db.session.execute(stmt).scalar_one_or_none()


def get_or_raise(model, pk, *, lock: bool = False, label: str | None = None):
    """Fetch a single entity by PK or raise NotFoundError."""
    obj = get_or_none(model, pk, lock=lock)
    if obj is None:
        resource = label or model.__name__
        logger.debug("%s lookup miss", resource, extra={"entity_type": resource})
        raise NotFoundError(resource=resource, resource_id=pk)
    return obj

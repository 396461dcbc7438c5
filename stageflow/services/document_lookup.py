"""
Document lookup collaborator.

Resolves free-form document identifiers to ``Document`` rows. The engine
only depends on the ``resolve(identifiers)`` call; ``create_app`` installs
the SQL-backed implementation in ``app.extensions["document_lookup"]`` and
callers may pass another implementation explicitly.
"""

import logging

from flask import current_app, has_app_context
from sqlalchemy import select

from stageflow.core.exceptions import NotFoundError
from stageflow.models import db
from stageflow.models.document import Document

logger = logging.getLogger(__name__)


class SqlDocumentLookup:
    """Resolve identifiers against the ``documents`` table by primary key."""

    def resolve(self, identifiers) -> list[Document]:
        ids = [str(i).strip() for i in (identifiers or []) if str(i).strip()]
        if not ids:
            return []
        # Keep first occurrence order, drop duplicates
        ids = list(dict.fromkeys(ids))
        found = {
            d.id: d for d in db.session.execute(
                select(Document).where(Document.id.in_(ids))
            ).scalars().all()
        }
        missing = [i for i in ids if i not in found]
        if missing:
            raise NotFoundError(resource="Document", resource_id=", ".join(missing))
        return [found[i] for i in ids]


def get_document_lookup(override=None):
    if override is not None:
        return override
    if has_app_context():
        installed = current_app.extensions.get("document_lookup")
        if installed is not None:
            return installed
    return SqlDocumentLookup()

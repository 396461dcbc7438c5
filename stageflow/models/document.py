"""
Standards Workflow Engine
Document references.

Only metadata is kept here; file storage lives outside the engine.
"""

import uuid
from datetime import datetime, timezone

from stageflow.models import db


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


# N:M  acceptance round ↔ documents the NSBs were asked to consider
documents_to_consider = db.Table(
    "acceptance_documents_to_consider",
    db.Column(
        "acceptance_id", db.String(36),
        db.ForeignKey("acceptances.id", ondelete="CASCADE"), primary_key=True,
    ),
    db.Column(
        "document_id", db.String(36),
        db.ForeignKey("documents.id", ondelete="CASCADE"), primary_key=True,
    ),
)


class Document(db.Model):
    __tablename__ = "documents"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    title = db.Column(db.String(300), nullable=False)
    reference = db.Column(db.String(120), default="", index=True)
    description = db.Column(db.Text, default="")
    file_url = db.Column(db.String(500), default="")
    created_by_id = db.Column(
        db.String(36), db.ForeignKey("members.id", ondelete="SET NULL"), nullable=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "reference": self.reference,
            "description": self.description,
            "file_url": self.file_url,
            "created_by_id": self.created_by_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

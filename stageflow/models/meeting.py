"""
Standards Workflow Engine
Committee meetings and their quorum snapshot.
"""

import uuid
from datetime import datetime, timezone

from stageflow.models import db


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


class Meeting(db.Model):
    """
    A committee meeting.

    ``has_quorum`` is derived from the two P-member counts and written back
    by ``stageflow.services.quorum.check_quorum``.
    """

    __tablename__ = "meetings"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    committee_id = db.Column(
        db.String(36), db.ForeignKey("committees.id", ondelete="CASCADE"), nullable=True,
    )
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="SET NULL"), nullable=True,
    )
    title = db.Column(db.String(200), nullable=False)
    date = db.Column(db.DateTime(timezone=True), nullable=True)
    location = db.Column(db.String(200), default="")

    total_p_members = db.Column(db.Integer, nullable=False, default=0)
    present_p_members = db.Column(db.Integer, nullable=False, default=0)
    has_quorum = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "committee_id": self.committee_id,
            "project_id": self.project_id,
            "title": self.title,
            "date": self.date.isoformat() if self.date else None,
            "location": self.location,
            "total_p_members": self.total_p_members,
            "present_p_members": self.present_p_members,
            "has_quorum": self.has_quorum,
        }

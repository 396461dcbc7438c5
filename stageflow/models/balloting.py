"""
Standards Workflow Engine
Balloting stage: formal vote on the final draft.

Models:
    - Balloting: one ballot per project with an open window
    - Vote: one accept/reject vote per member per ballot
"""

import uuid
from datetime import datetime, timezone

from stageflow.models import db


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


BALLOT_WINDOW_DAYS = 30
BALLOT_ACCEPTANCE_RATIO = 0.75

FDARS_ACTION_PUBLISH = "PUBLISH"
FDARS_ACTION_RECIRCULATE = "RECIRCULATE"
FDARS_ACTION_CANCELLED = "CANCELLED"

FDARS_ACTIONS = {FDARS_ACTION_PUBLISH, FDARS_ACTION_RECIRCULATE, FDARS_ACTION_CANCELLED}


class Balloting(db.Model):
    __tablename__ = "ballotings"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, unique=True,
    )
    start_date = db.Column(db.DateTime(timezone=True), nullable=False)
    end_date = db.Column(db.DateTime(timezone=True), nullable=False)

    approved = db.Column(db.Boolean, nullable=False, default=False)
    approved_by_id = db.Column(db.String(36), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    next_course_of_action = db.Column(
        db.String(20), nullable=True, comment="PUBLISH | RECIRCULATE | CANCELLED",
    )

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    project = db.relationship("Project", backref=db.backref("balloting", uselist=False))
    votes = db.relationship(
        "Vote", backref="balloting", lazy="selectin",
        order_by="Vote.created_at", cascade="all, delete-orphan",
    )

    def to_dict(self, include_votes=False):
        result = {
            "id": self.id,
            "project_id": self.project_id,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "approved": self.approved,
            "approved_by_id": self.approved_by_id,
            "approved_at": self.approved_at.isoformat() if self.approved_at else None,
            "next_course_of_action": self.next_course_of_action,
        }
        if include_votes:
            result["votes"] = [v.to_dict() for v in self.votes]
        return result


class Vote(db.Model):
    __tablename__ = "votes"
    __table_args__ = (
        db.UniqueConstraint("balloting_id", "member_id", name="uq_vote_member"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    balloting_id = db.Column(
        db.String(36), db.ForeignKey("ballotings.id", ondelete="CASCADE"), nullable=False,
    )
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    member_id = db.Column(
        db.String(36), db.ForeignKey("members.id", ondelete="RESTRICT"), nullable=False,
    )
    national_standard_body_id = db.Column(db.String(36), nullable=True, index=True)
    acceptance = db.Column(db.Boolean, nullable=False, default=False)
    is_committed_to_participate = db.Column(db.Boolean, nullable=False, default=False)
    comment = db.Column(db.Text, default="")
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "balloting_id": self.balloting_id,
            "project_id": self.project_id,
            "member_id": self.member_id,
            "national_standard_body_id": self.national_standard_body_id,
            "acceptance": self.acceptance,
            "is_committed_to_participate": self.is_committed_to_participate,
            "comment": self.comment,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

"""
Standards Workflow Engine
New work item proposal.

Exactly one proposal exists per project (unique ``project_id``); the
service re-checks this under the project row lock before inserting.
"""

import uuid
from datetime import datetime, timezone

from stageflow.models import db


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


LEGISLATION_STATUSES = {"YES", "NO", "NOT_KNOWN"}


class Proposal(db.Model):
    __tablename__ = "proposals"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, unique=True,
    )
    created_by_id = db.Column(
        db.String(36), db.ForeignKey("members.id", ondelete="SET NULL"), nullable=True,
    )
    proposing_nsb_id = db.Column(
        db.String(36),
        db.ForeignKey("national_standard_bodies.id", ondelete="SET NULL"),
        nullable=True,
    )

    full_title = db.Column(db.String(300), nullable=False)
    scope = db.Column(db.Text, default="")
    justification = db.Column(db.Text, default="")
    estimated_time = db.Column(db.String(60), default="")
    proposed_deadline = db.Column(db.Date, nullable=True)

    existing_intl_standard = db.Column(db.Boolean, default=False)
    existing_intl_standard_details = db.Column(db.Text, default="")
    suitable_for_endorsement = db.Column(db.Boolean, default=False)
    is_draft_text_attached = db.Column(db.Boolean, default=False)
    existing_legislation = db.Column(db.Text, default="")
    legislation_status = db.Column(
        db.String(20), default="NOT_KNOWN", comment="YES | NO | NOT_KNOWN",
    )
    will_participate_in_work = db.Column(db.Boolean, default=False)
    will_undertake_secretariat = db.Column(db.Boolean, default=False)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    project = db.relationship("Project", backref=db.backref("proposal", uselist=False))

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "created_by_id": self.created_by_id,
            "proposing_nsb_id": self.proposing_nsb_id,
            "full_title": self.full_title,
            "scope": self.scope,
            "justification": self.justification,
            "estimated_time": self.estimated_time,
            "proposed_deadline": self.proposed_deadline.isoformat() if self.proposed_deadline else None,
            "existing_intl_standard": self.existing_intl_standard,
            "existing_intl_standard_details": self.existing_intl_standard_details,
            "suitable_for_endorsement": self.suitable_for_endorsement,
            "is_draft_text_attached": self.is_draft_text_attached,
            "existing_legislation": self.existing_legislation,
            "legislation_status": self.legislation_status,
            "will_participate_in_work": self.will_participate_in_work,
            "will_undertake_secretariat": self.will_undertake_secretariat,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

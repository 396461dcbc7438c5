"""
Standards Workflow Engine
Enquiry stage record (Draft African Standard public review).
"""

import uuid
from datetime import datetime, timezone

from stageflow.models import db


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


DARS_UNDER_REVIEW = "UNDER_REVIEW"
DARS_APPROVED = "APPROVED"
DARS_REJECTED = "REJECTED"

DARS_STATUSES = {DARS_UNDER_REVIEW, DARS_APPROVED, DARS_REJECTED}

# Public review window opened when a committee draft reaches consensus
PUBLIC_REVIEW_MONTHS = 2
PUBLIC_REVIEW_EXTRA_DAYS = 7


class EnquiryDraft(db.Model):
    """One enquiry (DARS) record per project, opened at the Enquiry stage."""

    __tablename__ = "enquiry_drafts"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, unique=True,
    )
    public_review_start_date = db.Column(db.DateTime(timezone=True), nullable=False)
    public_review_end_date = db.Column(db.DateTime(timezone=True), nullable=False)
    wto_notification_date = db.Column(db.DateTime(timezone=True), nullable=True)

    status = db.Column(
        db.String(20), nullable=False, default=DARS_UNDER_REVIEW,
        comment="UNDER_REVIEW | APPROVED | REJECTED",
    )
    unresolved_issues = db.Column(db.Text, default="")
    move_to_balloting = db.Column(db.Boolean, nullable=False, default=False)
    alternative_deliverable = db.Column(db.Text, default="")
    tc_secretary_id = db.Column(db.String(36), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    project = db.relationship("Project", backref=db.backref("enquiry_draft", uselist=False))

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "public_review_start_date": self.public_review_start_date.isoformat(),
            "public_review_end_date": self.public_review_end_date.isoformat(),
            "wto_notification_date": (
                self.wto_notification_date.isoformat() if self.wto_notification_date else None
            ),
            "status": self.status,
            "unresolved_issues": self.unresolved_issues,
            "move_to_balloting": self.move_to_balloting,
            "alternative_deliverable": self.alternative_deliverable,
            "tc_secretary_id": self.tc_secretary_id,
        }

"""
Standards Workflow Engine
Clause-level feedback on drafts.

Models:
    - NationalConsultation: a member state's consultation entry on the
      enquiry draft (DARS), tied to the project's EnquiryDraft
    - CommentObservation: a comment on any draft of a project

Both rows are submitted by a national secretary; the member state is the
country of that secretary's national standards body. The TC secretariat
answers through ``secretariat_remarks``.
"""

import uuid
from datetime import datetime, timezone

from stageflow.models import db


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


COMMENT_TYPE_GENERAL = "ge"
COMMENT_TYPE_TECHNICAL = "te"
COMMENT_TYPE_EDITORIAL = "ed"

COMMENT_TYPES = {COMMENT_TYPE_GENERAL, COMMENT_TYPE_TECHNICAL, COMMENT_TYPE_EDITORIAL}


class NationalConsultation(db.Model):
    __tablename__ = "national_consultations"
    __table_args__ = (
        db.Index("idx_consultation_project_nsb", "project_id", "national_standard_body_id"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False,
    )
    enquiry_draft_id = db.Column(
        db.String(36), db.ForeignKey("enquiry_drafts.id", ondelete="CASCADE"), nullable=False,
    )
    national_secretary_id = db.Column(
        db.String(36), db.ForeignKey("members.id", ondelete="RESTRICT"), nullable=False,
    )
    # Copied from the secretary at submission
    national_standard_body_id = db.Column(
        db.String(36),
        db.ForeignKey("national_standard_bodies.id", ondelete="RESTRICT"),
        nullable=False,
    )

    clause_no = db.Column(db.String(50), nullable=False)
    paragraph_ref = db.Column(db.String(100), nullable=False)
    comment_type = db.Column(db.String(2), nullable=False, comment="ge | te | ed")
    comment = db.Column(db.Text, nullable=False)
    proposed_change = db.Column(db.Text, default="")
    secretariat_remarks = db.Column(db.Text, default="")

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    enquiry_draft = db.relationship(
        "EnquiryDraft", backref=db.backref("consultations", lazy="dynamic"),
    )
    national_secretary = db.relationship("Member", lazy="joined")
    national_standard_body = db.relationship("NationalStandardBody", lazy="joined")

    def to_dict(self):
        nsb = self.national_standard_body
        return {
            "id": self.id,
            "project_id": self.project_id,
            "enquiry_draft_id": self.enquiry_draft_id,
            "national_secretary_id": self.national_secretary_id,
            "national_standard_body_id": self.national_standard_body_id,
            "member_state": nsb.country if nsb else None,
            "clause_no": self.clause_no,
            "paragraph_ref": self.paragraph_ref,
            "comment_type": self.comment_type,
            "comment": self.comment,
            "proposed_change": self.proposed_change,
            "secretariat_remarks": self.secretariat_remarks,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class CommentObservation(db.Model):
    __tablename__ = "comment_observations"
    __table_args__ = (
        db.Index("idx_comment_project_nsb", "project_id", "national_standard_body_id"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False,
    )
    # Stage the draft was in when the comment was made
    stage_id = db.Column(
        db.String(36), db.ForeignKey("stages.id", ondelete="RESTRICT"), nullable=False,
    )
    national_secretary_id = db.Column(
        db.String(36), db.ForeignKey("members.id", ondelete="RESTRICT"), nullable=False,
    )
    national_standard_body_id = db.Column(
        db.String(36),
        db.ForeignKey("national_standard_bodies.id", ondelete="RESTRICT"),
        nullable=False,
    )

    clause_no = db.Column(db.String(50), nullable=False)
    paragraph_ref = db.Column(db.String(100), nullable=False)
    comment_type = db.Column(db.String(2), nullable=False, comment="ge | te | ed")
    comment = db.Column(db.Text, nullable=False)
    proposed_change = db.Column(db.Text, default="")
    secretariat_remarks = db.Column(db.Text, default="")

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    stage = db.relationship("Stage", lazy="joined")
    national_secretary = db.relationship("Member", lazy="joined")
    national_standard_body = db.relationship("NationalStandardBody", lazy="joined")

    def to_dict(self):
        nsb = self.national_standard_body
        return {
            "id": self.id,
            "project_id": self.project_id,
            "stage_number": self.stage.number if self.stage else None,
            "national_secretary_id": self.national_secretary_id,
            "national_standard_body_id": self.national_standard_body_id,
            "member_state": nsb.country if nsb else None,
            "clause_no": self.clause_no,
            "paragraph_ref": self.paragraph_ref,
            "comment_type": self.comment_type,
            "comment": self.comment,
            "proposed_change": self.proposed_change,
            "secretariat_remarks": self.secretariat_remarks,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

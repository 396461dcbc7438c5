"""
Standards Workflow Engine
Acceptance ledger: NSB responses to a new work item proposal.

Models:
    - Acceptance: one round per project, created lazily on first response
    - NSBResponse: one row per responding NSB per round
    - NSBResponseStatusChange: a proposed amendment to a submitted response

A response is never edited in place except by approving a status-change
request (see ``stageflow.services.status_change_service``).
"""

import uuid
from datetime import datetime, timezone

from stageflow.models import db
from stageflow.models.document import documents_to_consider


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


# ── Response taxonomy ────────────────────────────────────────────────────────

RESPONSE_AGREE_ADVANCE = "AGREE_ADVANCE"
RESPONSE_AGREE_ACCEPT_WORKING_DRAFT = "AGREE_ACCEPT_WORKING_DRAFT"
RESPONSE_AGREE_CIRCULATE_CD = "AGREE_CIRCULATE_CD"
RESPONSE_AGREE_CIRCULATE_DARS = "AGREE_CIRCULATE_DARS"
RESPONSE_NO_AGREEMENT = "NO_AGREEMENT"
RESPONSE_ABSTENTION = "ABSTENTION"

AGREEMENT_RESPONSES = frozenset({
    RESPONSE_AGREE_ADVANCE,
    RESPONSE_AGREE_ACCEPT_WORKING_DRAFT,
    RESPONSE_AGREE_CIRCULATE_CD,
    RESPONSE_AGREE_CIRCULATE_DARS,
})

NSB_RESPONSES = AGREEMENT_RESPONSES | {RESPONSE_NO_AGREEMENT, RESPONSE_ABSTENTION}

# ── Round metadata ───────────────────────────────────────────────────────────

DEVELOPMENT_TRACKS = {"DEFAULT", "INTERNATIONAL", "FAST_TRACK"}
DRAFT_STATUSES = {"NONE", "WD", "CD", "DARS"}

# ── Status-change workflow ───────────────────────────────────────────────────

STATUS_CHANGE_PENDING = "PENDING"
STATUS_CHANGE_APPROVED = "APPROVED"
STATUS_CHANGE_REJECTED = "REJECTED"

STATUS_CHANGE_TRANSITIONS = {
    STATUS_CHANGE_PENDING:  [STATUS_CHANGE_APPROVED, STATUS_CHANGE_REJECTED],
    STATUS_CHANGE_APPROVED: [],
    STATUS_CHANGE_REJECTED: [],
}


class Acceptance(db.Model):
    """Aggregation unit for NSB responses gating Proposal → Preparatory."""

    __tablename__ = "acceptances"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, unique=True,
    )
    circulation_date = db.Column(db.DateTime(timezone=True), nullable=True)
    closing_date = db.Column(db.DateTime(timezone=True), nullable=True)

    # Denormalised summary, written by recompute_summary()
    total_responses = db.Column(db.Integer, nullable=False, default=0)
    agreement_count = db.Column(db.Integer, nullable=False, default=0)
    disagreement_count = db.Column(db.Integer, nullable=False, default=0)
    abstention_count = db.Column(db.Integer, nullable=False, default=0)

    approval_criteria_met = db.Column(db.Boolean, nullable=False, default=False)
    approval_justification = db.Column(db.Text, nullable=True)
    is_approved = db.Column(db.Boolean, nullable=False, default=False)
    approved_by_id = db.Column(db.String(36), nullable=True)
    smc_approval_date = db.Column(db.DateTime(timezone=True), nullable=True)

    # ── Approval payload ─────────────────────────────────────────────────
    development_track = db.Column(
        db.String(20), default="DEFAULT", comment="DEFAULT | INTERNATIONAL | FAST_TRACK",
    )
    draft_status = db.Column(db.String(10), default="NONE", comment="NONE | WD | CD | DARS")
    draft_expected_date = db.Column(db.Date, nullable=True)
    is_preliminary_work = db.Column(db.Boolean, default=False)
    is_active_work = db.Column(db.Boolean, default=False)
    target_date_cd = db.Column(db.Date, nullable=True)
    target_date_dars = db.Column(db.Date, nullable=True)
    target_date_fdars = db.Column(db.Date, nullable=True)
    tc_secretary_id = db.Column(db.String(36), nullable=True)
    other_information = db.Column(db.Text, default="")

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    # ── Relationships ────────────────────────────────────────────────────
    project = db.relationship("Project", backref=db.backref("acceptance", uselist=False))
    responses = db.relationship(
        "NSBResponse", backref="acceptance", lazy="selectin",
        order_by="NSBResponse.created_at", cascade="all, delete-orphan",
    )
    documents = db.relationship("Document", secondary=documents_to_consider, lazy="selectin")

    def to_dict(self, include_responses=False):
        result = {
            "id": self.id,
            "project_id": self.project_id,
            "circulation_date": self.circulation_date.isoformat() if self.circulation_date else None,
            "closing_date": self.closing_date.isoformat() if self.closing_date else None,
            "total_responses": self.total_responses,
            "agreement_count": self.agreement_count,
            "disagreement_count": self.disagreement_count,
            "abstention_count": self.abstention_count,
            "approval_criteria_met": self.approval_criteria_met,
            "approval_justification": self.approval_justification,
            "is_approved": self.is_approved,
            "approved_by_id": self.approved_by_id,
            "smc_approval_date": self.smc_approval_date.isoformat() if self.smc_approval_date else None,
            "development_track": self.development_track,
            "draft_status": self.draft_status,
            "draft_expected_date": (
                self.draft_expected_date.isoformat() if self.draft_expected_date else None
            ),
            "is_preliminary_work": self.is_preliminary_work,
            "is_active_work": self.is_active_work,
            "target_date_cd": self.target_date_cd.isoformat() if self.target_date_cd else None,
            "target_date_dars": self.target_date_dars.isoformat() if self.target_date_dars else None,
            "target_date_fdars": self.target_date_fdars.isoformat() if self.target_date_fdars else None,
            "tc_secretary_id": self.tc_secretary_id,
            "other_information": self.other_information,
            "documents_to_consider": [d.id for d in self.documents],
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_responses:
            result["responses"] = [r.to_dict() for r in self.responses]
        return result


class NSBResponse(db.Model):
    """One NSB's answer to a proposal."""

    __tablename__ = "nsb_responses"
    __table_args__ = (
        db.UniqueConstraint("acceptance_id", "responding_nsb_id", name="uq_nsb_response_round"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    acceptance_id = db.Column(
        db.String(36), db.ForeignKey("acceptances.id", ondelete="CASCADE"), nullable=False,
    )
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    responding_nsb_id = db.Column(
        db.String(36),
        db.ForeignKey("national_standard_bodies.id", ondelete="RESTRICT"),
        nullable=False,
    )
    responder_id = db.Column(
        db.String(36), db.ForeignKey("members.id", ondelete="SET NULL"), nullable=True,
    )
    response = db.Column(
        db.String(40), nullable=False,
        comment="AGREE_ADVANCE | AGREE_ACCEPT_WORKING_DRAFT | AGREE_CIRCULATE_CD | "
                "AGREE_CIRCULATE_DARS | NO_AGREEMENT | ABSTENTION",
    )
    has_relevant_standards = db.Column(db.Boolean, default=False)
    relevant_regulations_refs = db.Column(db.Text, default="")
    comments = db.Column(db.Text, default="")
    is_committed_to_participate = db.Column(db.Boolean, nullable=False, default=False)
    national_tc_secretary_id = db.Column(db.String(36), nullable=True)
    response_date = db.Column(db.DateTime(timezone=True), default=_utcnow)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    responding_nsb = db.relationship("NationalStandardBody", lazy="joined")

    @property
    def is_agreement(self) -> bool:
        return self.response in AGREEMENT_RESPONSES

    def to_dict(self):
        return {
            "id": self.id,
            "acceptance_id": self.acceptance_id,
            "project_id": self.project_id,
            "responding_nsb_id": self.responding_nsb_id,
            "responder_id": self.responder_id,
            "response": self.response,
            "has_relevant_standards": self.has_relevant_standards,
            "relevant_regulations_refs": self.relevant_regulations_refs,
            "comments": self.comments,
            "is_committed_to_participate": self.is_committed_to_participate,
            "national_tc_secretary_id": self.national_tc_secretary_id,
            "response_date": self.response_date.isoformat() if self.response_date else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class NSBResponseStatusChange(db.Model):
    """
    Request to amend an already-submitted NSBResponse.

    PENDING → APPROVED | REJECTED; both targets are terminal.
    """

    __tablename__ = "nsb_response_status_changes"
    __table_args__ = (
        db.Index("idx_status_change_status", "status", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    initial_response_id = db.Column(
        db.String(36), db.ForeignKey("nsb_responses.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    responder_id = db.Column(
        db.String(36), db.ForeignKey("members.id", ondelete="SET NULL"), nullable=True,
    )
    response = db.Column(db.String(40), nullable=False)
    is_committed_to_participate = db.Column(db.Boolean, nullable=False, default=False)
    status = db.Column(
        db.String(20), nullable=False, default=STATUS_CHANGE_PENDING,
        comment="PENDING | APPROVED | REJECTED",
    )
    tc_secretariat_id = db.Column(db.String(36), nullable=True)
    tc_secretariat_comment = db.Column(db.Text, nullable=True)
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    initial_response = db.relationship("NSBResponse", backref=db.backref("status_changes", lazy="dynamic"))

    @property
    def is_terminal(self) -> bool:
        return not STATUS_CHANGE_TRANSITIONS.get(self.status)

    def to_dict(self):
        return {
            "id": self.id,
            "initial_response_id": self.initial_response_id,
            "responder_id": self.responder_id,
            "response": self.response,
            "is_committed_to_participate": self.is_committed_to_participate,
            "status": self.status,
            "tc_secretariat_id": self.tc_secretariat_id,
            "tc_secretariat_comment": self.tc_secretariat_comment,
            "reviewed_at": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

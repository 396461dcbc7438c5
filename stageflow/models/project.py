"""
Standards Workflow Engine
Project domain models.

Models:
    - Project: a standard under development, always pointing at one stage
    - ProjectStageHistory: append-only ledger of stage residencies

Ownership:
    ``stage_id`` and ``reference`` are written only by
    ``stageflow.services.stage_transition``. Every other flow goes through
    ``advance_stage`` to move a project.
"""

import uuid
from datetime import datetime, timezone

from stageflow.models import db


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


# ── Constants ────────────────────────────────────────────────────────────────

WORKING_DRAFT_STATUSES = {"PENDING", "ACCEPTED", "REJECTED"}

# Proposed course of action after a committee-draft review
CD_PROPOSED_ACTIONS = {
    "CIRCULATE_AS_DARS",
    "CIRCULATE_REVISED_CD",
    "DEFER",
    "CANCEL",
}


class Project(db.Model):
    """
    Standard under development.

    Reference format while in development: ``PWI/TC {code}/{number:03d}/{year}``;
    the leading document abbreviation is rewritten on each stage advance.
    After publication approval the reference becomes ``ARS {number:03d}:{year}``.
    """

    __tablename__ = "projects"
    __table_args__ = (
        db.Index("idx_project_stage", "stage_id"),
        db.Index("idx_project_tc", "technical_committee_id"),
        db.UniqueConstraint("number", name="uq_project_number"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    number = db.Column(db.Integer, nullable=False)
    part_number = db.Column(db.Integer, nullable=True)
    reference = db.Column(db.String(120), nullable=False)
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, default="")
    timeframe_months = db.Column(db.Integer, nullable=True)
    is_international_standard = db.Column(
        db.Boolean, nullable=False, default=False,
        comment="Selects the international acceptance rule",
    )

    technical_committee_id = db.Column(
        db.String(36), db.ForeignKey("committees.id", ondelete="RESTRICT"), nullable=False,
    )
    working_group_id = db.Column(
        db.String(36), db.ForeignKey("committees.id", ondelete="SET NULL"), nullable=True,
    )
    stage_id = db.Column(
        db.String(36), db.ForeignKey("stages.id", ondelete="RESTRICT"), nullable=False,
    )

    # ── Working draft review ─────────────────────────────────────────────
    working_draft_status = db.Column(
        db.String(20), nullable=True, comment="PENDING | ACCEPTED | REJECTED",
    )
    working_draft_comments = db.Column(db.Text, nullable=True)
    wd_tc_secretary_id = db.Column(db.String(36), nullable=True)
    working_draft_id = db.Column(
        db.String(36), db.ForeignKey("documents.id", ondelete="SET NULL"), nullable=True,
    )
    committee_draft_id = db.Column(
        db.String(36), db.ForeignKey("documents.id", ondelete="SET NULL"), nullable=True,
    )

    # ── Committee draft review ───────────────────────────────────────────
    is_consensus_reached = db.Column(db.Boolean, default=False)
    proposed_action = db.Column(db.String(40), nullable=True)
    meeting_required = db.Column(db.Boolean, default=False)
    cd_tc_secretary_id = db.Column(db.String(36), nullable=True)
    submission_date = db.Column(db.DateTime(timezone=True), nullable=True)

    # ── Cancellation / publication ───────────────────────────────────────
    cancelled = db.Column(db.Boolean, nullable=False, default=False)
    cancelled_date = db.Column(db.DateTime(timezone=True), nullable=True)
    approved_for_publication = db.Column(db.Boolean, nullable=False, default=False)
    approved_for_publication_by_id = db.Column(db.String(36), nullable=True)
    approved_for_publication_date = db.Column(db.DateTime(timezone=True), nullable=True)
    approved_for_publication_comment = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    # ── Relationships ────────────────────────────────────────────────────
    stage = db.relationship("Stage", lazy="joined")
    technical_committee = db.relationship(
        "TechnicalCommittee", foreign_keys=[technical_committee_id],
    )
    working_group = db.relationship("WorkingGroup", foreign_keys=[working_group_id])
    stage_history = db.relationship(
        "ProjectStageHistory", backref="project", lazy="dynamic",
        order_by="ProjectStageHistory.started_at",
    )

    def to_dict(self, include_history=False):
        result = {
            "id": self.id,
            "number": self.number,
            "part_number": self.part_number,
            "reference": self.reference,
            "title": self.title,
            "description": self.description,
            "timeframe_months": self.timeframe_months,
            "is_international_standard": self.is_international_standard,
            "technical_committee_id": self.technical_committee_id,
            "working_group_id": self.working_group_id,
            "stage_id": self.stage_id,
            "stage_number": self.stage.number if self.stage else None,
            "working_draft_status": self.working_draft_status,
            "is_consensus_reached": self.is_consensus_reached,
            "proposed_action": self.proposed_action,
            "submission_date": self.submission_date.isoformat() if self.submission_date else None,
            "cancelled": self.cancelled,
            "cancelled_date": self.cancelled_date.isoformat() if self.cancelled_date else None,
            "approved_for_publication": self.approved_for_publication,
            "approved_for_publication_date": (
                self.approved_for_publication_date.isoformat()
                if self.approved_for_publication_date else None
            ),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_history:
            result["stage_history"] = [h.to_dict() for h in self.stage_history]
        return result

    def __repr__(self):
        return f"<Project {self.reference}>"


class ProjectStageHistory(db.Model):
    """
    One stage residency of a project.

    ``ended_at`` is NULL while the entry is active; at most one entry per
    project is active. ``stage_id`` and ``started_at`` never change after
    insert.
    """

    __tablename__ = "project_stage_history"
    __table_args__ = (
        db.Index("idx_stage_history_project", "project_id", "ended_at"),
        db.Index("idx_stage_history_stage", "stage_id"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False,
    )
    stage_id = db.Column(
        db.String(36), db.ForeignKey("stages.id", ondelete="RESTRICT"), nullable=False,
    )
    started_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    ended_at = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, default="")
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    stage = db.relationship("Stage", lazy="joined")

    @property
    def is_active(self) -> bool:
        return self.ended_at is None

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "stage_id": self.stage_id,
            "stage_number": self.stage.number if self.stage else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "notes": self.notes,
            "is_active": self.is_active,
        }

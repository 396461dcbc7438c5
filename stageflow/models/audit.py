"""
Standards Workflow Engine
Audit domain model.

Models:
    - AuditLog: immutable, append-only audit trail for workflow events.
"""

import json
from datetime import datetime, timezone

from stageflow.core.exceptions import ValidationError
from stageflow.models import db

# ── Constants ────────────────────────────────────────────────────────────────

AUDIT_ENTITY_TYPES = {
    "project", "proposal", "acceptance", "nsb_response",
    "status_change", "enquiry_draft", "balloting", "vote",
    "meeting", "stage", "committee",
    "national_consultation", "comment_observation",
}

AUDIT_ACTIONS = {
    # Project lifecycle
    "project.create",
    "project.advance_stage",
    "project.review_working_draft",
    "project.review_committee_draft",
    "project.cancel",
    "project.approve_for_publication",
    # Proposal / acceptance
    "proposal.submit",
    "acceptance.respond",
    "acceptance.recompute",
    "acceptance.evaluate",
    "acceptance.approve",
    # Status change
    "status_change.request",
    "status_change.approve",
    "status_change.reject",
    # Enquiry / balloting
    "enquiry.open",
    "enquiry.review",
    "consultation.submit",
    "consultation.remark",
    "comment.submit",
    "comment.remark",
    "ballot.vote",
    "ballot.approve",
    # Meetings
    "meeting.quorum_check",
    # Catalog
    "stage.seed",
    # Generic
    "create",
}


class AuditLog(db.Model):
    """
    Immutable audit trail for every workflow event.

    One row per action.  ``diff_json`` carries old→new snapshot for
    field-level changes.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("idx_audit_entity", "entity_type", "entity_id"),
        db.Index("idx_audit_project", "project_id"),
        db.Index("idx_audit_action", "action"),
        db.Index("idx_audit_ts", "timestamp"),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Polymorphic entity reference
    entity_type = db.Column(
        db.String(30), nullable=False,
        comment="project | acceptance | status_change | …",
    )
    entity_id = db.Column(db.String(36), nullable=False)

    # What happened
    action = db.Column(
        db.String(60), nullable=False,
        comment="project.advance_stage | status_change.approve | …",
    )
    actor_id = db.Column(
        db.String(36), nullable=True,
        comment="Member id; NULL for system-initiated actions",
    )

    # Change payload
    diff_json = db.Column(db.Text, default="{}")

    # Timestamp (immutable)
    timestamp = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    # ── Helpers ──────────────────────────────────────────────────────────

    @property
    def diff(self) -> dict:
        """Deserialise *diff_json* to a Python dict."""
        try:
            return json.loads(self.diff_json or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": self.action,
            "actor_id": self.actor_id,
            "diff": self.diff,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self):
        return f"<AuditLog {self.id}: {self.action} on {self.entity_type}/{self.entity_id}>"


# ── Convenience writer ───────────────────────────────────────────────────────

def write_audit(
    *,
    entity_type: str,
    entity_id: str,
    action: str,
    actor_id: str | None = None,
    project_id: str | None = None,
    diff: dict | None = None,
) -> AuditLog:
    """
    Append a single audit row.  Uses ``flush`` so callers keep
    transaction control: the row commits or rolls back together with
    the workflow change it describes.

    Returns the (flushed) AuditLog instance.

    Raises:
        ValidationError: unknown ``entity_type`` or ``action``.
    """
    if entity_type not in AUDIT_ENTITY_TYPES:
        raise ValidationError(f"Unknown audit entity type {entity_type!r}")
    if action not in AUDIT_ACTIONS:
        raise ValidationError(f"Unknown audit action {action!r}")

    log = AuditLog(
        project_id=project_id,
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        actor_id=actor_id,
        diff_json=json.dumps(diff or {}, default=str),
    )
    db.session.add(log)
    db.session.flush()
    return log

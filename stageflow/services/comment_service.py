"""
Comments and observations on a project's drafts.

Any national secretary may comment on the current draft of a live
project (WD, CD, DARS or FDARS); the comment records the stage it was
made in. The TC secretariat answers with remarks.
"""

import logging

from sqlalchemy import select

from stageflow.core.exceptions import InvalidStateError, ValidationError
from stageflow.models import db
from stageflow.models.audit import write_audit
from stageflow.models.consultation import CommentObservation
from stageflow.models.project import Project
from stageflow.models.stage import STAGE_PREPARATORY
from stageflow.services.helpers.authority import require_tc_secretary
from stageflow.services.helpers.lookups import get_or_raise
from stageflow.services.helpers.observations import (
    filter_member_state,
    national_secretary,
    validate_observation,
)
from stageflow.services.notification_dispatcher import notify
from stageflow.services.stage_transition import lock_project
from stageflow.utils.helpers import atomic

logger = logging.getLogger(__name__)


def submit_comment(data: dict) -> dict:
    """Record one comment on the project's current draft.

    Same keys as a consultation entry. Projects still at the Preliminary
    or Proposal stage have no draft to comment on.
    """
    fields = validate_observation(data)
    secretary_id = data.get("national_secretary_id")
    if not secretary_id:
        raise ValidationError(
            "national_secretary_id is required", details={"national_secretary_id": "required"},
        )

    with atomic("submit_comment", "CommentObservation"):
        project = lock_project(data.get("project_id"))
        if project.cancelled:
            raise InvalidStateError(f"Project {project.id} is cancelled")
        if project.stage.number < STAGE_PREPARATORY:
            raise InvalidStateError(f"Project {project.id} has no draft yet")
        member = national_secretary(secretary_id)

        comment = CommentObservation(
            project_id=project.id,
            stage_id=project.stage_id,
            national_secretary_id=member.id,
            national_standard_body_id=member.national_standard_body_id,
            **fields,
        )
        db.session.add(comment)
        db.session.flush()
        write_audit(
            entity_type="comment_observation", entity_id=comment.id,
            action="comment.submit", actor_id=member.id, project_id=project.id,
            diff={"clause_no": fields["clause_no"], "stage": project.stage.abbreviation},
        )
        result = comment.to_dict()

    notify("comment.submitted", {"project_id": result["project_id"]})
    return result


def add_comment_remarks(comment_id: str, actor_id: str, remarks: str) -> dict:
    if not (remarks or "").strip():
        raise ValidationError("remarks are required", details={"remarks": "required"})

    with atomic("add_comment_remarks", "CommentObservation"):
        comment = get_or_raise(CommentObservation, comment_id, lock=True)
        project = get_or_raise(Project, comment.project_id)
        require_tc_secretary(project, actor_id, "add_comment_remarks")

        before = comment.secretariat_remarks
        comment.secretariat_remarks = remarks.strip()
        db.session.flush()
        write_audit(
            entity_type="comment_observation", entity_id=comment.id,
            action="comment.remark", actor_id=actor_id, project_id=project.id,
            diff={"secretariat_remarks": {"old": before, "new": comment.secretariat_remarks}},
        )
        result = comment.to_dict()

    logger.debug("Remarks recorded on comment %s", comment_id,
                 extra={"project_id": result["project_id"], "operation": "add_comment_remarks"})
    return result


def list_comments(
    project_id: str,
    member_state: str | None = None,
    stage_number: int | None = None,
) -> list[dict]:
    """Comments on a project, oldest first, filtered by member state and/or stage."""
    get_or_raise(Project, project_id)
    stmt = select(CommentObservation).where(CommentObservation.project_id == project_id)
    if member_state:
        stmt = filter_member_state(stmt, CommentObservation, member_state)
    rows = db.session.execute(
        stmt.order_by(CommentObservation.created_at.asc())
    ).scalars().all()
    if stage_number is not None:
        rows = [r for r in rows if r.stage.number == stage_number]
    return [r.to_dict() for r in rows]

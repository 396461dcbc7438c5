"""
Meeting quorum checker.

Quorum holds when present P-members >= total P-members // 2 + 1
(truncating division). The result is written back to the meeting row;
no stage or vote state is touched.
"""

import logging

from stageflow.core.exceptions import ValidationError
from stageflow.models import db
from stageflow.models.audit import write_audit
from stageflow.models.meeting import Meeting
from stageflow.services.helpers.lookups import get_or_raise
from stageflow.utils.helpers import atomic

logger = logging.getLogger(__name__)


def quorum_threshold(total_p_members: int) -> int:
    return total_p_members // 2 + 1


def has_quorum(total_p_members: int, present_p_members: int) -> bool:
    return present_p_members >= quorum_threshold(total_p_members)


def check_quorum(meeting_id: str) -> bool:
    """Recompute and persist ``meeting.has_quorum``."""
    with atomic("check_quorum", "Meeting"):
        meeting = get_or_raise(Meeting, meeting_id, lock=True)
        result = has_quorum(meeting.total_p_members or 0, meeting.present_p_members or 0)
        meeting.has_quorum = result
        db.session.flush()
        write_audit(
            entity_type="meeting", entity_id=meeting.id, action="meeting.quorum_check",
            project_id=meeting.project_id,
            diff={
                "total_p_members": meeting.total_p_members,
                "present_p_members": meeting.present_p_members,
                "has_quorum": result,
            },
        )

    logger.debug("Quorum for meeting %s: %s", meeting_id, result,
                 extra={"meeting_id": meeting_id, "operation": "check_quorum"})
    return result


def record_attendance(meeting_id: str, total_p_members: int, present_p_members: int) -> dict:
    """Store the P-member counts and refresh the quorum flag."""
    errors = {}
    for name, value in (("total_p_members", total_p_members),
                        ("present_p_members", present_p_members)):
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            errors[name] = "must be a non-negative integer"
    if not errors and present_p_members > total_p_members:
        errors["present_p_members"] = "cannot exceed total_p_members"
    if errors:
        raise ValidationError("Invalid attendance", details=errors)

    with atomic("record_attendance", "Meeting"):
        meeting = get_or_raise(Meeting, meeting_id, lock=True)
        meeting.total_p_members = total_p_members
        meeting.present_p_members = present_p_members
        meeting.has_quorum = has_quorum(total_p_members, present_p_members)
        db.session.flush()
        result = meeting.to_dict()
    return result

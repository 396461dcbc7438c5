"""
Status-change reconciler: amendments to already-submitted NSB responses.

    request_status_change()   → PENDING request against one response
    approve_status_change()   → APPROVED, proposed values copied onto the response
    reject_status_change()    → REJECTED, response untouched

Both reviews are terminal; reviewing a terminal request raises
InvalidStateError. Approval does not recompute the acceptance summary:
callers run ``acceptance_service.recompute_summary`` (and
``evaluate_round``) themselves when they want the round refreshed.
"""

import logging

from sqlalchemy import select

from stageflow.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from stageflow.models import db
from stageflow.models.acceptance import (
    NSB_RESPONSES,
    STATUS_CHANGE_APPROVED,
    STATUS_CHANGE_PENDING,
    STATUS_CHANGE_REJECTED,
    STATUS_CHANGE_TRANSITIONS,
    NSBResponse,
    NSBResponseStatusChange,
)
from stageflow.models.audit import write_audit
from stageflow.services.helpers.lookups import get_or_none, get_or_raise
from stageflow.services.notification_dispatcher import notify
from stageflow.utils.helpers import atomic, utcnow

logger = logging.getLogger(__name__)


def _transition(request: NSBResponseStatusChange, target: str) -> None:
    if request.is_terminal or target not in STATUS_CHANGE_TRANSITIONS[request.status]:
        raise InvalidStateError(
            f"Status change request {request.id} is {request.status}; cannot move to {target}"
        )
    request.status = target


def request_status_change(
    response_id: str,
    responder_id: str,
    response: str,
    is_committed_to_participate: bool = False,
) -> dict:
    """Open a PENDING amendment request for an existing NSB response."""
    if response not in NSB_RESPONSES:
        raise ValidationError(
            f"Invalid response {response!r}",
            details={"response": sorted(NSB_RESPONSES)},
        )

    with atomic("request_status_change", "NSBResponseStatusChange"):
        original = get_or_raise(NSBResponse, response_id)
        request = NSBResponseStatusChange(
            initial_response_id=original.id,
            responder_id=responder_id,
            response=response,
            is_committed_to_participate=bool(is_committed_to_participate),
            status=STATUS_CHANGE_PENDING,
        )
        db.session.add(request)
        db.session.flush()
        write_audit(
            entity_type="status_change", entity_id=request.id, action="status_change.request",
            actor_id=responder_id, project_id=original.project_id,
            diff={"response": {"old": original.response, "new": response}},
        )
        result = request.to_dict()
        project_id = original.project_id

    notify("status_change.requested", {"project_id": project_id, "request_id": result["id"]})
    return result


def approve_status_change(request_id: str, reviewer_id: str) -> dict:
    """Approve a request and copy its values onto the original response.

    Raises:
        NotFoundError: request or its original response missing.
        InvalidStateError: request is already APPROVED or REJECTED.
    """
    with atomic("approve_status_change", "NSBResponseStatusChange"):
        request = get_or_raise(NSBResponseStatusChange, request_id, lock=True)
        original = get_or_none(NSBResponse, request.initial_response_id, lock=True)
        if original is None:
            raise NotFoundError(resource="NSBResponse", resource_id=request.initial_response_id)

        _transition(request, STATUS_CHANGE_APPROVED)
        request.tc_secretariat_id = reviewer_id
        request.reviewed_at = utcnow()

        before = {
            "response": original.response,
            "is_committed_to_participate": original.is_committed_to_participate,
        }
        original.response = request.response
        original.is_committed_to_participate = request.is_committed_to_participate
        db.session.flush()

        write_audit(
            entity_type="status_change", entity_id=request.id, action="status_change.approve",
            actor_id=reviewer_id, project_id=original.project_id,
            diff={
                "response": {"old": before["response"], "new": original.response},
                "is_committed_to_participate": {
                    "old": before["is_committed_to_participate"],
                    "new": original.is_committed_to_participate,
                },
            },
        )
        result = request.to_dict()
        project_id = original.project_id

    logger.info("Status change %s approved", request_id,
                extra={"status_change_id": request_id, "project_id": project_id,
                       "actor_id": reviewer_id, "operation": "approve_status_change"})
    notify("status_change.approved", {"project_id": project_id, "request_id": request_id})
    return result


def reject_status_change(request_id: str, reviewer_id: str, comment: str = "") -> dict:
    """Reject a request, recording the reviewer and comment only."""
    with atomic("reject_status_change", "NSBResponseStatusChange"):
        request = get_or_raise(NSBResponseStatusChange, request_id, lock=True)
        _transition(request, STATUS_CHANGE_REJECTED)
        request.tc_secretariat_id = reviewer_id
        request.tc_secretariat_comment = comment or ""
        request.reviewed_at = utcnow()
        db.session.flush()

        project_id = request.initial_response.project_id if request.initial_response else None
        write_audit(
            entity_type="status_change", entity_id=request.id, action="status_change.reject",
            actor_id=reviewer_id, project_id=project_id,
            diff={"comment": comment},
        )
        result = request.to_dict()

    logger.info("Status change %s rejected", request_id,
                extra={"status_change_id": request_id, "actor_id": reviewer_id,
                       "operation": "reject_status_change"})
    notify("status_change.rejected", {"project_id": project_id, "request_id": request_id})
    return result


def list_pending_status_changes() -> list[dict]:
    """All PENDING requests, oldest first."""
    rows = db.session.execute(
        select(NSBResponseStatusChange)
        .where(NSBResponseStatusChange.status == STATUS_CHANGE_PENDING)
        .order_by(NSBResponseStatusChange.created_at.asc())
    ).scalars().all()
    return [r.to_dict() for r in rows]


def list_status_changes_for_response(response_id: str) -> list[dict]:
    get_or_raise(NSBResponse, response_id)
    rows = db.session.execute(
        select(NSBResponseStatusChange)
        .where(NSBResponseStatusChange.initial_response_id == response_id)
        .order_by(NSBResponseStatusChange.created_at.asc())
    ).scalars().all()
    return [r.to_dict() for r in rows]

"""
Later-stage review flows.

Each flow is one transaction that records the committee's decision and,
when the decision is positive, delegates the stage move to the
transition manager:

    review_working_draft     ACCEPTED    2 → 3   WD    → CD
    review_committee_draft   consensus   3 → 4   CD    → DARS   (opens enquiry)
    review_enquiry_draft     APPROVED    4 → 5   DARS  → FDARS  (opens ballot)
    approve_final_draft      approve     5 → 6   FDARS → FDARS
    approve_for_publication  approve     reference becomes ARS NNN:YYYY

All of them are restricted to the secretary of the project's technical
committee.
"""

import logging
from datetime import timedelta

from sqlalchemy import select

from stageflow.core.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from stageflow.models import db
from stageflow.models.audit import write_audit
from stageflow.models.balloting import (
    BALLOT_WINDOW_DAYS,
    FDARS_ACTION_CANCELLED,
    FDARS_ACTIONS,
    Balloting,
)
from stageflow.models.document import Document
from stageflow.models.enquiry import (
    DARS_APPROVED,
    DARS_STATUSES,
    PUBLIC_REVIEW_EXTRA_DAYS,
    PUBLIC_REVIEW_MONTHS,
    EnquiryDraft,
)
from stageflow.models.project import CD_PROPOSED_ACTIONS, WORKING_DRAFT_STATUSES
from stageflow.models.stage import STAGE_APPROVAL, STAGE_BALLOT, STAGE_COMMITTEE, STAGE_ENQUIRY
from stageflow.services.helpers.authority import require_tc_secretary
from stageflow.services.helpers.lookups import get_or_none
from stageflow.services.notification_dispatcher import notify
from stageflow.services.stage_transition import advance_to_stage_number_in_tx, lock_project
from stageflow.utils.helpers import add_months, atomic, utcnow

logger = logging.getLogger(__name__)


def _copy_draft_document(source_id: str | None, old: str, new: str) -> Document | None:
    """Clone a draft document for the next stage, rewriting its reference."""
    source = get_or_none(Document, source_id)
    if source is None:
        return None
    clone = Document(
        title=source.title,
        description=source.description,
        reference=(source.reference or "").replace(old, new),
        file_url=source.file_url,
        created_by_id=source.created_by_id,
    )
    db.session.add(clone)
    db.session.flush()
    return clone


# ── Working draft ────────────────────────────────────────────────────────────


def review_working_draft(project_id: str, actor_id: str, status: str, comment: str = "") -> dict:
    """Record the WD review; ACCEPTED elevates the WD to a committee draft."""
    if status not in WORKING_DRAFT_STATUSES:
        raise ValidationError(
            f"Invalid working draft status {status!r}",
            details={"status": sorted(WORKING_DRAFT_STATUSES)},
        )

    with atomic("review_working_draft", "Project"):
        project = lock_project(project_id)
        require_tc_secretary(project, actor_id, "review_working_draft")

        project.working_draft_status = status
        project.working_draft_comments = comment or ""
        project.wd_tc_secretary_id = actor_id

        if status == "ACCEPTED":
            advance_to_stage_number_in_tx(
                project, STAGE_COMMITTEE, "WD Elevated to a CD", "WD", actor_id=actor_id,
            )
            committee_draft = _copy_draft_document(
                project.working_draft_id, "WD", project.stage.abbreviation,
            )
            if committee_draft is not None:
                project.committee_draft_id = committee_draft.id
        db.session.flush()

        write_audit(
            entity_type="project", entity_id=project.id, action="project.review_working_draft",
            actor_id=actor_id, project_id=project.id,
            diff={"status": status, "comment": comment},
        )
        result = project.to_dict()

    if status == "ACCEPTED":
        notify("project.stage_advanced", {"project_id": project_id, "notes": "WD Elevated to a CD"})
    return result


# ── Committee draft ──────────────────────────────────────────────────────────


def review_committee_draft(
    project_id: str,
    actor_id: str,
    is_consensus_reached: bool,
    proposed_action: str | None = None,
    meeting_required: bool = False,
) -> dict:
    """Record the CD review; consensus opens the enquiry and moves to Enquiry."""
    if proposed_action is not None and proposed_action not in CD_PROPOSED_ACTIONS:
        raise ValidationError(
            f"Invalid proposed action {proposed_action!r}",
            details={"proposed_action": sorted(CD_PROPOSED_ACTIONS)},
        )

    with atomic("review_committee_draft", "Project"):
        project = lock_project(project_id)
        require_tc_secretary(project, actor_id, "review_committee_draft")

        project.is_consensus_reached = bool(is_consensus_reached)
        project.proposed_action = proposed_action
        project.meeting_required = bool(meeting_required)
        project.cd_tc_secretary_id = actor_id

        if is_consensus_reached:
            existing = db.session.execute(
                select(EnquiryDraft.id).where(EnquiryDraft.project_id == project_id)
            ).scalar_one_or_none()
            if existing is not None:
                raise ConflictError("EnquiryDraft", "project_id", project_id)

            now = utcnow()
            project.submission_date = now
            db.session.add(EnquiryDraft(
                project_id=project_id,
                public_review_start_date=now,
                public_review_end_date=add_months(
                    now, PUBLIC_REVIEW_MONTHS, PUBLIC_REVIEW_EXTRA_DAYS,
                ),
            ))
            db.session.flush()
            advance_to_stage_number_in_tx(
                project, STAGE_ENQUIRY, "CD Consensus reached", "CD", actor_id=actor_id,
            )
        db.session.flush()

        write_audit(
            entity_type="project", entity_id=project.id, action="project.review_committee_draft",
            actor_id=actor_id, project_id=project.id,
            diff={"is_consensus_reached": bool(is_consensus_reached),
                  "proposed_action": proposed_action},
        )
        result = project.to_dict()

    if is_consensus_reached:
        logger.info("CD consensus reached; enquiry opened",
                    extra={"project_id": project_id, "operation": "review_committee_draft"})
        notify("project.stage_advanced", {"project_id": project_id, "notes": "CD Consensus reached"})
    return result


# ── Enquiry ──────────────────────────────────────────────────────────────────


def review_enquiry_draft(
    project_id: str,
    actor_id: str,
    *,
    status: str | None = None,
    wto_notification_notified: bool = False,
    unresolved_issues: str = "",
    alternative_deliverable: str = "",
) -> dict:
    """Record the enquiry outcome; APPROVED opens the ballot and moves to Ballot."""
    if status and status not in DARS_STATUSES:
        raise ValidationError(
            f"Invalid enquiry status {status!r}",
            details={"status": sorted(DARS_STATUSES)},
        )

    with atomic("review_enquiry_draft", "EnquiryDraft"):
        project = lock_project(project_id)
        require_tc_secretary(project, actor_id, "review_enquiry_draft")

        enquiry = db.session.execute(
            select(EnquiryDraft).where(EnquiryDraft.project_id == project_id)
        ).scalar_one_or_none()
        if enquiry is None:
            raise NotFoundError(resource="EnquiryDraft", resource_id=f"project={project_id}")

        enquiry.tc_secretary_id = actor_id
        if unresolved_issues:
            enquiry.unresolved_issues = unresolved_issues
        if alternative_deliverable:
            enquiry.alternative_deliverable = alternative_deliverable
        if status:
            enquiry.status = status
        if wto_notification_notified and enquiry.wto_notification_date is None:
            enquiry.wto_notification_date = utcnow()

        if status == DARS_APPROVED:
            existing = db.session.execute(
                select(Balloting.id).where(Balloting.project_id == project_id)
            ).scalar_one_or_none()
            if existing is not None:
                raise ConflictError("Balloting", "project_id", project_id)
            enquiry.move_to_balloting = True
            now = utcnow()
            db.session.add(Balloting(
                project_id=project_id,
                start_date=now,
                end_date=now + timedelta(days=BALLOT_WINDOW_DAYS),
            ))
            db.session.flush()
            advance_to_stage_number_in_tx(
                project, STAGE_BALLOT,
                "DARS is accepted to advance to the balloting stage as an FDARS",
                "DARS", actor_id=actor_id,
            )
        db.session.flush()

        write_audit(
            entity_type="enquiry_draft", entity_id=enquiry.id, action="enquiry.review",
            actor_id=actor_id, project_id=project_id,
            diff={"status": enquiry.status, "move_to_balloting": enquiry.move_to_balloting},
        )
        result = enquiry.to_dict()

    if status == DARS_APPROVED:
        notify("project.stage_advanced", {
            "project_id": project_id,
            "notes": "DARS is accepted to advance to the balloting stage as an FDARS",
        })
    return result


# ── Ballot outcome ───────────────────────────────────────────────────────────


def approve_final_draft(
    project_id: str,
    actor_id: str,
    approve: bool,
    action: str | None = None,
) -> dict:
    """Record the ballot outcome.

    ``approve`` moves the project to the Approval stage. A next course of
    action of CANCELLED cancels the project; the two are mutually
    exclusive.
    """
    if action is not None and action not in FDARS_ACTIONS:
        raise ValidationError(
            f"Invalid course of action {action!r}",
            details={"action": sorted(FDARS_ACTIONS)},
        )
    if approve and action == FDARS_ACTION_CANCELLED:
        raise ValidationError("An approved final draft cannot be cancelled")

    with atomic("approve_final_draft", "Balloting"):
        project = lock_project(project_id)
        require_tc_secretary(project, actor_id, "approve_final_draft")

        balloting = db.session.execute(
            select(Balloting).where(Balloting.project_id == project_id)
        ).scalar_one_or_none()
        if balloting is None:
            raise NotFoundError(resource="Balloting", resource_id=f"project={project_id}")

        now = utcnow()
        balloting.approved = bool(approve)
        balloting.approved_by_id = actor_id
        balloting.approved_at = now
        if action:
            balloting.next_course_of_action = action

        if action == FDARS_ACTION_CANCELLED:
            if project.cancelled:
                raise InvalidStateError(f"Project {project_id} is already cancelled")
            project.cancelled = True
            project.cancelled_date = now
            project.updated_at = now
            write_audit(
                entity_type="project", entity_id=project.id, action="project.cancel",
                actor_id=actor_id, project_id=project.id,
            )

        if approve:
            advance_to_stage_number_in_tx(
                project, STAGE_APPROVAL,
                "FDARS is approved in accordance with the conditions in 7.7.3",
                "FDARS", actor_id=actor_id,
            )
        db.session.flush()

        write_audit(
            entity_type="balloting", entity_id=balloting.id, action="ballot.approve",
            actor_id=actor_id, project_id=project_id,
            diff={"approved": bool(approve), "action": action},
        )
        result = balloting.to_dict()

    if action == FDARS_ACTION_CANCELLED:
        notify("project.cancelled", {"project_id": project_id})
    elif approve:
        notify("project.stage_advanced", {"project_id": project_id})
    return result


# ── Publication ──────────────────────────────────────────────────────────────


def approve_for_publication(
    project_id: str, actor_id: str, approve: bool, comment: str = "",
) -> dict:
    """Record the publication decision; approval assigns the ARS reference."""
    with atomic("approve_for_publication", "Project"):
        project = lock_project(project_id)
        require_tc_secretary(project, actor_id, "approve_for_publication")
        if project.cancelled:
            raise InvalidStateError(f"Project {project_id} is cancelled")

        now = utcnow()
        project.approved_for_publication = bool(approve)
        project.approved_for_publication_by_id = actor_id
        project.approved_for_publication_date = now
        project.approved_for_publication_comment = comment or ""
        if approve:
            project.reference = f"ARS {project.number:03d}:{now.year}"
        project.updated_at = now
        db.session.flush()

        write_audit(
            entity_type="project", entity_id=project.id,
            action="project.approve_for_publication",
            actor_id=actor_id, project_id=project.id,
            diff={"approve": bool(approve), "reference": project.reference},
        )
        result = project.to_dict()

    if approve:
        notify("project.approved_for_publication", {
            "project_id": project_id, "reference": result["reference"],
        })
    return result

"""
National consultations on the enquiry draft (DARS).

While a project sits in the Enquiry stage each member state's national
secretary files clause-level consultation entries against the project's
EnquiryDraft. The TC secretariat answers each entry with remarks.
Entries are listed per project, optionally narrowed to one member state
(the country of the submitting NSB).
"""

import logging

from sqlalchemy import select

from stageflow.core.exceptions import InvalidStateError, ValidationError
from stageflow.models import db
from stageflow.models.audit import write_audit
from stageflow.models.consultation import NationalConsultation
from stageflow.models.enquiry import PUBLIC_REVIEW_EXTRA_DAYS, PUBLIC_REVIEW_MONTHS, EnquiryDraft
from stageflow.models.project import Project
from stageflow.models.stage import STAGE_ENQUIRY
from stageflow.services.helpers.authority import require_tc_secretary
from stageflow.services.helpers.lookups import get_or_raise
from stageflow.services.helpers.observations import (
    filter_member_state,
    national_secretary,
    validate_observation,
)
from stageflow.services.notification_dispatcher import notify
from stageflow.services.stage_transition import lock_project
from stageflow.utils.helpers import add_months, atomic, utcnow

logger = logging.getLogger(__name__)


def _enquiry_for(project: Project, actor_id: str) -> EnquiryDraft:
    """The project's enquiry record, opened now if the project reached the
    Enquiry stage without one."""
    enquiry = db.session.execute(
        select(EnquiryDraft).where(EnquiryDraft.project_id == project.id)
    ).scalar_one_or_none()
    if enquiry is not None:
        return enquiry

    now = utcnow()
    enquiry = EnquiryDraft(
        project_id=project.id,
        public_review_start_date=now,
        public_review_end_date=add_months(now, PUBLIC_REVIEW_MONTHS, PUBLIC_REVIEW_EXTRA_DAYS),
    )
    db.session.add(enquiry)
    db.session.flush()
    write_audit(
        entity_type="enquiry_draft", entity_id=enquiry.id, action="enquiry.open",
        actor_id=actor_id, project_id=project.id,
        diff={"public_review_end_date": enquiry.public_review_end_date},
    )
    return enquiry


def submit_consultation(data: dict) -> dict:
    """File one consultation entry.

    Required keys: ``project_id``, ``national_secretary_id``, ``clause_no``,
    ``paragraph_ref``, ``comment_type`` (ge | te | ed), ``comment``.
    Optional: ``proposed_change``.

    Raises:
        ValidationError: missing fields, bad comment type, or a secretary
            without a national standards body.
        InvalidStateError: project cancelled or not in the Enquiry stage.
    """
    fields = validate_observation(data)
    secretary_id = data.get("national_secretary_id")
    if not secretary_id:
        raise ValidationError(
            "national_secretary_id is required", details={"national_secretary_id": "required"},
        )

    with atomic("submit_consultation", "NationalConsultation"):
        project = lock_project(data.get("project_id"))
        if project.cancelled:
            raise InvalidStateError(f"Project {project.id} is cancelled")
        if project.stage.number != STAGE_ENQUIRY:
            raise InvalidStateError(
                f"Project {project.id} is in stage {project.stage.number}; "
                f"consultations are taken in stage {STAGE_ENQUIRY}"
            )
        member = national_secretary(secretary_id)
        enquiry = _enquiry_for(project, secretary_id)

        consultation = NationalConsultation(
            project_id=project.id,
            enquiry_draft_id=enquiry.id,
            national_secretary_id=member.id,
            national_standard_body_id=member.national_standard_body_id,
            **fields,
        )
        db.session.add(consultation)
        db.session.flush()
        write_audit(
            entity_type="national_consultation", entity_id=consultation.id,
            action="consultation.submit", actor_id=member.id, project_id=project.id,
            diff={"clause_no": fields["clause_no"], "comment_type": fields["comment_type"]},
        )
        result = consultation.to_dict()

    logger.info("Consultation filed on clause %s", result["clause_no"],
                extra={"project_id": result["project_id"], "operation": "submit_consultation"})
    notify("consultation.submitted", {
        "project_id": result["project_id"], "member_state": result["member_state"],
    })
    return result


def add_consultation_remarks(consultation_id: str, actor_id: str, remarks: str) -> dict:
    """Record the TC secretariat's answer to one consultation entry."""
    if not (remarks or "").strip():
        raise ValidationError("remarks are required", details={"remarks": "required"})

    with atomic("add_consultation_remarks", "NationalConsultation"):
        consultation = get_or_raise(NationalConsultation, consultation_id, lock=True)
        project = get_or_raise(Project, consultation.project_id)
        require_tc_secretary(project, actor_id, "add_consultation_remarks")

        before = consultation.secretariat_remarks
        consultation.secretariat_remarks = remarks.strip()
        db.session.flush()
        write_audit(
            entity_type="national_consultation", entity_id=consultation.id,
            action="consultation.remark", actor_id=actor_id, project_id=project.id,
            diff={"secretariat_remarks": {"old": before, "new": consultation.secretariat_remarks}},
        )
        result = consultation.to_dict()
    return result


def get_consultation(consultation_id: str) -> dict:
    return get_or_raise(NationalConsultation, consultation_id).to_dict()


def list_consultations(project_id: str, member_state: str | None = None) -> list[dict]:
    """Consultation entries of a project, oldest first, optionally for one member state."""
    get_or_raise(Project, project_id)
    stmt = select(NationalConsultation).where(NationalConsultation.project_id == project_id)
    if member_state:
        stmt = filter_member_state(stmt, NationalConsultation, member_state)
    rows = db.session.execute(
        stmt.order_by(NationalConsultation.created_at.asc())
    ).scalars().all()
    return [r.to_dict() for r in rows]

"""
Proposal service: new work item proposals.

Submitting the proposal moves the project from Preliminary to Proposal
and rewrites its reference from PWI to NWIP, in the same transaction as
the proposal insert.
"""

import logging

from sqlalchemy import select

from stageflow.core.exceptions import ConflictError, ValidationError
from stageflow.models import db
from stageflow.models.audit import write_audit
from stageflow.models.project import Project
from stageflow.models.proposal import LEGISLATION_STATUSES, Proposal
from stageflow.models.stage import STAGE_PROPOSAL
from stageflow.services.helpers.lookups import get_or_raise
from stageflow.services.notification_dispatcher import notify
from stageflow.services.stage_transition import advance_to_stage_number_in_tx, lock_project
from stageflow.utils.helpers import atomic, parse_date

logger = logging.getLogger(__name__)

_TEXT_FIELDS = (
    "scope", "justification", "estimated_time",
    "existing_intl_standard_details", "existing_legislation",
)
_FLAG_FIELDS = (
    "existing_intl_standard", "suitable_for_endorsement", "is_draft_text_attached",
    "will_participate_in_work", "will_undertake_secretariat",
)


def submit_proposal(data: dict, *, actor_id: str | None = None) -> dict:
    """Create the project's proposal and move the project to the Proposal stage.

    Required keys: ``project_id``, ``full_title``.
    Raises ConflictError if the project already has a proposal.
    """
    project_id = data.get("project_id")
    full_title = (data.get("full_title") or "").strip()
    errors = {}
    if not project_id:
        errors["project_id"] = "required"
    if not full_title:
        errors["full_title"] = "required"
    legislation_status = data.get("legislation_status", "NOT_KNOWN")
    if legislation_status not in LEGISLATION_STATUSES:
        errors["legislation_status"] = f"must be one of {sorted(LEGISLATION_STATUSES)}"
    if errors:
        raise ValidationError("Invalid proposal", details=errors)

    with atomic("submit_proposal", "Proposal"):
        project = lock_project(project_id)

        # Re-checked under the project lock; the unique constraint backs it up
        existing = db.session.execute(
            select(Proposal.id).where(Proposal.project_id == project_id)
        ).scalar_one_or_none()
        if existing is not None:
            raise ConflictError("Proposal", "project_id", project_id)

        proposal = Proposal(
            project_id=project_id,
            created_by_id=actor_id,
            proposing_nsb_id=data.get("proposing_nsb_id"),
            full_title=full_title,
            proposed_deadline=parse_date(data.get("proposed_deadline")),
            legislation_status=legislation_status,
            **{name: data.get(name) or "" for name in _TEXT_FIELDS},
            **{name: bool(data.get(name, False)) for name in _FLAG_FIELDS},
        )
        db.session.add(proposal)
        db.session.flush()

        advance_to_stage_number_in_tx(
            project, STAGE_PROPOSAL, "Proposal submitted", "PWI", actor_id=actor_id,
        )
        write_audit(
            entity_type="proposal", entity_id=proposal.id, action="proposal.submit",
            actor_id=actor_id, project_id=project_id,
            diff={"full_title": full_title, "reference": project.reference},
        )
        result = proposal.to_dict()

    logger.info("Proposal submitted for project %s", project_id,
                extra={"project_id": project_id, "operation": "submit_proposal"})
    notify("proposal.submitted", {"project_id": project_id})
    return result


def get_proposal_for_project(project_id: str) -> dict | None:
    get_or_raise(Project, project_id)
    proposal = db.session.execute(
        select(Proposal).where(Proposal.project_id == project_id)
    ).scalar_one_or_none()
    return proposal.to_dict() if proposal else None

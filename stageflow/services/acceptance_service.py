"""
Acceptance ledger service: NSB responses, round summary and approval.

Flow:
    submit_response()      NSB answers the proposal (round created lazily)
    recompute_summary()    write total / agreement / disagreement / abstention
    evaluate_round()       run the consensus rule and record the outcome
    set_approval()         TC secretary approves, project moves to Preparatory

Evaluation is never triggered automatically; callers invoke it
explicitly after the responses they care about are in.
"""

import logging

from sqlalchemy import select

from stageflow.core.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from stageflow.models import db
from stageflow.models.acceptance import (
    DEVELOPMENT_TRACKS,
    DRAFT_STATUSES,
    NSB_RESPONSES,
    RESPONSE_ABSTENTION,
    RESPONSE_AGREE_ACCEPT_WORKING_DRAFT,
    RESPONSE_AGREE_ADVANCE,
    RESPONSE_AGREE_CIRCULATE_CD,
    RESPONSE_AGREE_CIRCULATE_DARS,
    RESPONSE_NO_AGREEMENT,
    Acceptance,
    NSBResponse,
)
from stageflow.models.audit import write_audit
from stageflow.models.committee import Member
from stageflow.models.project import Project
from stageflow.models.stage import STAGE_PREPARATORY
from stageflow.services.consensus import count_votes, evaluate_acceptance
from stageflow.services.document_lookup import get_document_lookup
from stageflow.services.helpers.lookups import get_or_raise
from stageflow.services.notification_dispatcher import notify
from stageflow.services.stage_transition import (
    advance_to_stage_number_in_tx,
    lock_project,
)
from stageflow.utils.helpers import atomic, parse_date, utcnow

logger = logging.getLogger(__name__)

# Result-table column per agreement decision
_ACCEPTED_AS = {
    RESPONSE_AGREE_ADVANCE: "accepted_as_nwip",
    RESPONSE_AGREE_ACCEPT_WORKING_DRAFT: "accepted_as_wd",
    RESPONSE_AGREE_CIRCULATE_CD: "accepted_as_cd",
    RESPONSE_AGREE_CIRCULATE_DARS: "accepted_as_dars",
}

_DATE_FIELDS = ("draft_expected_date", "target_date_cd", "target_date_dars", "target_date_fdars")
_FLAG_FIELDS = ("is_preliminary_work", "is_active_work")


# ── Private helpers ──────────────────────────────────────────────────────────


def _acceptance_for(project_id: str, *, required: bool = True) -> Acceptance | None:
    acceptance = db.session.execute(
        select(Acceptance).where(Acceptance.project_id == project_id)
    ).scalar_one_or_none()
    if acceptance is None and required:
        raise NotFoundError(resource="Acceptance", resource_id=f"project={project_id}")
    return acceptance


def _responses_for(acceptance: Acceptance) -> list[NSBResponse]:
    return list(db.session.execute(
        select(NSBResponse)
        .where(NSBResponse.acceptance_id == acceptance.id)
        .order_by(NSBResponse.created_at)
    ).scalars().all())


def _validate_response_value(value):
    if value not in NSB_RESPONSES:
        raise ValidationError(
            f"Invalid response {value!r}",
            details={"response": sorted(NSB_RESPONSES)},
        )


def _apply_approval_payload(acceptance: Acceptance, payload: dict) -> None:
    """Copy track / draft / target metadata onto the round."""
    errors = {}
    track = payload.get("development_track")
    if track is not None:
        if track not in DEVELOPMENT_TRACKS:
            errors["development_track"] = f"must be one of {sorted(DEVELOPMENT_TRACKS)}"
        else:
            acceptance.development_track = track
    draft_status = payload.get("draft_status")
    if draft_status is not None:
        if draft_status not in DRAFT_STATUSES:
            errors["draft_status"] = f"must be one of {sorted(DRAFT_STATUSES)}"
        else:
            acceptance.draft_status = draft_status
    for name in _DATE_FIELDS:
        if payload.get(name) is None:
            continue
        parsed = parse_date(payload[name])
        if parsed is None:
            errors[name] = "invalid date"
        else:
            setattr(acceptance, name, parsed)
    for name in _FLAG_FIELDS:
        if name in payload:
            setattr(acceptance, name, bool(payload[name]))
    if "other_information" in payload:
        acceptance.other_information = payload.get("other_information") or ""
    if errors:
        raise ValidationError("Invalid approval payload", details=errors)


# ── Responses ────────────────────────────────────────────────────────────────


def submit_response(data: dict) -> dict:
    """Record one NSB's response to a project's proposal.

    Required keys: ``project_id``, ``responder_id``, ``response``.
    Optional: ``comments``, ``is_committed_to_participate``,
    ``has_relevant_standards``, ``relevant_regulations_refs``,
    ``national_tc_secretary_id``.

    The responding NSB is the responder's own national body; one response
    per NSB per round (ConflictError otherwise).
    """
    project_id = data.get("project_id")
    responder_id = data.get("responder_id")
    if not project_id or not responder_id:
        raise ValidationError(
            "project_id and responder_id are required",
            details={k: "required" for k in ("project_id", "responder_id") if not data.get(k)},
        )
    _validate_response_value(data.get("response"))

    with atomic("submit_response", "NSBResponse"):
        project = lock_project(project_id)
        if project.cancelled:
            raise InvalidStateError(f"Project {project_id} is cancelled")

        member = get_or_raise(Member, responder_id)
        nsb_id = member.national_standard_body_id
        if not nsb_id:
            raise ValidationError(
                "Responder is not attached to a national standards body",
                details={"responder_id": responder_id},
            )

        acceptance = _acceptance_for(project_id, required=False)
        if acceptance is None:
            acceptance = Acceptance(project_id=project_id, circulation_date=utcnow())
            db.session.add(acceptance)
            db.session.flush()
            logger.info("Acceptance round opened for project %s", project_id,
                        extra={"project_id": project_id, "acceptance_id": acceptance.id})

        duplicate = db.session.execute(
            select(NSBResponse.id).where(
                NSBResponse.acceptance_id == acceptance.id,
                NSBResponse.responding_nsb_id == nsb_id,
            )
        ).scalar_one_or_none()
        if duplicate is not None:
            raise ConflictError("NSBResponse", "responding_nsb_id", nsb_id)

        response = NSBResponse(
            acceptance_id=acceptance.id,
            project_id=project_id,
            responding_nsb_id=nsb_id,
            responder_id=responder_id,
            response=data["response"],
            comments=data.get("comments") or "",
            is_committed_to_participate=bool(data.get("is_committed_to_participate", False)),
            has_relevant_standards=bool(data.get("has_relevant_standards", False)),
            relevant_regulations_refs=data.get("relevant_regulations_refs") or "",
            national_tc_secretary_id=data.get("national_tc_secretary_id"),
            response_date=utcnow(),
        )
        db.session.add(response)
        db.session.flush()
        write_audit(
            entity_type="nsb_response", entity_id=response.id, action="acceptance.respond",
            actor_id=responder_id, project_id=project_id,
            diff={"response": response.response, "nsb_id": nsb_id},
        )
        result = response.to_dict()

    notify("acceptance.response_submitted", {
        "project_id": project_id, "nsb_id": result["responding_nsb_id"],
    })
    return result


def list_responses(project_id: str) -> list[dict]:
    get_or_raise(Project, project_id)
    acceptance = _acceptance_for(project_id, required=False)
    if acceptance is None:
        return []
    return [r.to_dict() for r in _responses_for(acceptance)]


# ── Aggregation ──────────────────────────────────────────────────────────────


def tally(project_id: str) -> dict[str, int]:
    """Count responses by decision value (every decision present, zero-filled)."""
    get_or_raise(Project, project_id)
    counts = {value: 0 for value in sorted(NSB_RESPONSES)}
    acceptance = _acceptance_for(project_id, required=False)
    if acceptance is None:
        return counts
    for response in _responses_for(acceptance):
        counts[response.response] = counts.get(response.response, 0) + 1
    return counts


def recompute_summary(project_id: str, *, actor_id: str | None = None) -> dict:
    """Rewrite the round's total / agreement / disagreement / abstention counts."""
    with atomic("recompute_summary", "Acceptance"):
        get_or_raise(Project, project_id)
        acceptance = _acceptance_for(project_id)
        responses = _responses_for(acceptance)

        agreement = sum(1 for r in responses if r.is_agreement)
        disagreement = sum(1 for r in responses if r.response == RESPONSE_NO_AGREEMENT)
        abstention = sum(1 for r in responses if r.response == RESPONSE_ABSTENTION)

        acceptance.total_responses = len(responses)
        acceptance.agreement_count = agreement
        acceptance.disagreement_count = disagreement
        acceptance.abstention_count = abstention
        db.session.flush()

        write_audit(
            entity_type="acceptance", entity_id=acceptance.id, action="acceptance.recompute",
            actor_id=actor_id, project_id=project_id,
            diff={
                "total": len(responses), "agreement": agreement,
                "disagreement": disagreement, "abstention": abstention,
            },
        )
        result = acceptance.to_dict()

    logger.debug("Acceptance summary recomputed for project %s", project_id,
                 extra={"project_id": project_id, "operation": "recompute_summary"})
    return result


def evaluate_round(
    project_id: str,
    is_international: bool | None = None,
    *,
    actor_id: str | None = None,
) -> dict:
    """Run the consensus rule on the current responses and record the outcome.

    ``is_international`` defaults to the project's own flag.

    Returns:
        {"met": bool, "justification": str, "counts": {...}}
    """
    with atomic("evaluate_round", "Acceptance"):
        project = get_or_raise(Project, project_id)
        acceptance = _acceptance_for(project_id)
        responses = _responses_for(acceptance)
        international = (
            project.is_international_standard if is_international is None else bool(is_international)
        )

        decision = evaluate_acceptance(responses, international)
        counts = count_votes(responses)

        acceptance.approval_criteria_met = decision.met
        acceptance.approval_justification = decision.justification
        db.session.flush()
        write_audit(
            entity_type="acceptance", entity_id=acceptance.id, action="acceptance.evaluate",
            actor_id=actor_id, project_id=project_id,
            diff={"met": decision.met, "justification": decision.justification,
                  "international": international},
        )

    logger.info("Acceptance evaluated for project %s: met=%s", project_id, decision.met,
                extra={"project_id": project_id, "operation": "evaluate_round"})
    return {
        "met": decision.met,
        "justification": decision.justification,
        "counts": {
            "counted": counts.counted,
            "abstentions": counts.abstentions,
            "favorable": counts.favorable,
            "participating": counts.participating,
            "favorable_and_participating": counts.favorable_and_participating,
        },
    }


# ── Approval ─────────────────────────────────────────────────────────────────


def set_approval(
    project_id: str,
    actor_id: str,
    payload: dict | None = None,
    *,
    document_lookup=None,
) -> dict:
    """Approve the acceptance round and move the project to Preparatory.

    Only the secretary of the project's technical committee may approve.
    Approval, referenced documents and the stage move commit together;
    any failure (including the stage move) rolls the approval back.

    Payload keys (all optional): development_track, draft_status,
    draft_expected_date, is_preliminary_work, is_active_work,
    target_date_cd, target_date_dars, target_date_fdars, other_information,
    documents_to_consider (list of document ids).
    """
    payload = payload or {}
    lookup = get_document_lookup(document_lookup)

    with atomic("set_approval", "Acceptance"):
        project = lock_project(project_id)
        tc = project.technical_committee
        if tc is None or not tc.is_secretary(actor_id):
            logger.warning(
                "Acceptance approval refused for %s", actor_id,
                extra={"project_id": project_id, "actor_id": actor_id, "operation": "set_approval"},
            )
            raise UnauthorizedError(actor_id, "set_approval")

        acceptance = _acceptance_for(project_id)
        if acceptance.is_approved:
            raise InvalidStateError(f"Acceptance for project {project_id} is already approved")

        _apply_approval_payload(acceptance, payload)
        now = utcnow()
        acceptance.is_approved = True
        acceptance.approved_by_id = actor_id
        acceptance.tc_secretary_id = actor_id
        acceptance.smc_approval_date = now
        acceptance.documents = lookup.resolve(payload.get("documents_to_consider") or [])
        db.session.flush()

        advance_to_stage_number_in_tx(
            project, STAGE_PREPARATORY, "Proposal Accepted", "NWIP", actor_id=actor_id,
        )
        write_audit(
            entity_type="acceptance", entity_id=acceptance.id, action="acceptance.approve",
            actor_id=actor_id, project_id=project_id,
            diff={"documents_to_consider": [d.id for d in acceptance.documents]},
        )
        result = acceptance.to_dict()

    logger.info("Acceptance approved for project %s", project_id,
                extra={"project_id": project_id, "actor_id": actor_id, "operation": "set_approval"})
    notify("acceptance.approved", {"project_id": project_id})
    return result


# ── Reporting ────────────────────────────────────────────────────────────────


def get_acceptance_results(project_id: str) -> dict:
    """Per-NSB result table plus the totals row."""
    get_or_raise(Project, project_id)
    acceptance = _acceptance_for(project_id)

    totals = {
        "total_responses": 0,
        "valid_responses": 0,
        "feasible_yes_count": 0,
        "feasible_no_count": 0,
        "abstention_count": 0,
        "accepted_as_nwip_count": 0,
        "accepted_as_wd_count": 0,
        "accepted_as_cd_count": 0,
        "accepted_as_dars_count": 0,
        "comments_count": 0,
        "participation_count": 0,
    }
    rows = []
    responses = _responses_for(acceptance)
    for response in responses:
        row = {
            "nsb": response.responding_nsb.name if response.responding_nsb else None,
            "nsb_id": response.responding_nsb_id,
            "feasible_yes": False,
            "feasible_no": False,
            "abstention": False,
            "accepted_as_nwip": "N",
            "accepted_as_wd": "N",
            "accepted_as_cd": "N",
            "accepted_as_dars": "N",
            "comments_enclosed": bool(response.comments),
            "participation": bool(response.is_committed_to_participate),
        }
        if response.is_agreement:
            row["feasible_yes"] = True
            totals["feasible_yes_count"] += 1
            column = _ACCEPTED_AS[response.response]
            row[column] = "Y"
            totals[f"{column}_count"] += 1
        elif response.response == RESPONSE_NO_AGREEMENT:
            row["feasible_no"] = True
            totals["feasible_no_count"] += 1
        elif response.response == RESPONSE_ABSTENTION:
            row["abstention"] = True
            totals["abstention_count"] += 1

        if row["participation"]:
            totals["participation_count"] += 1
        if row["comments_enclosed"]:
            totals["comments_count"] += 1
        rows.append(row)

    totals["total_responses"] = len(responses)
    totals["valid_responses"] = totals["total_responses"] - totals["abstention_count"]
    return {
        "acceptance_id": acceptance.id,
        "project_id": project_id,
        "nsb_responses": rows,
        "totals": totals,
    }

"""
Acceptance ledger: responses, summary, evaluation, approval and the
end-to-end Proposal -> Preparatory flow.
"""

import pytest
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
    RESPONSE_ABSTENTION,
    RESPONSE_AGREE_ACCEPT_WORKING_DRAFT,
    RESPONSE_AGREE_ADVANCE,
    RESPONSE_NO_AGREEMENT,
    Acceptance,
)
from stageflow.models.document import Document
from stageflow.models.project import Project
from stageflow.services import acceptance_service
from stageflow.services.stage_catalog import get_stage_by_number
from stageflow.services.stage_transition import get_stage_history


def _five_agree_two_against(project_id, respond):
    for i in range(5):
        respond(project_id, RESPONSE_AGREE_ADVANCE, committed=i < 2)
    for _ in range(2):
        respond(project_id, RESPONSE_NO_AGREEMENT)


# ── Responses ────────────────────────────────────────────────────────────


def test_first_response_opens_the_round(proposal_project, respond):
    assert acceptance_service.list_responses(proposal_project) == []
    response = respond(proposal_project, RESPONSE_AGREE_ADVANCE, committed=True)

    acceptance = db.session.execute(
        select(Acceptance).where(Acceptance.project_id == proposal_project)
    ).scalar_one()
    assert response["acceptance_id"] == acceptance.id
    assert acceptance.circulation_date is not None
    assert len(acceptance_service.list_responses(proposal_project)) == 1


def test_one_response_per_nsb(proposal_project, make_member):
    first = make_member()
    colleague = make_member(nsb=first.national_standard_body)
    acceptance_service.submit_response({
        "project_id": proposal_project, "responder_id": first.id,
        "response": RESPONSE_AGREE_ADVANCE,
    })
    with pytest.raises(ConflictError):
        acceptance_service.submit_response({
            "project_id": proposal_project, "responder_id": colleague.id,
            "response": RESPONSE_NO_AGREEMENT,
        })


def test_invalid_response_value(proposal_project, make_member):
    member = make_member()
    with pytest.raises(ValidationError):
        acceptance_service.submit_response({
            "project_id": proposal_project, "responder_id": member.id, "response": "MAYBE",
        })


def test_responder_without_nsb_is_rejected(proposal_project, make_member):
    member = make_member(with_nsb=False)
    with pytest.raises(ValidationError):
        acceptance_service.submit_response({
            "project_id": proposal_project, "responder_id": member.id,
            "response": RESPONSE_AGREE_ADVANCE,
        })


def test_cancelled_project_takes_no_responses(proposal_project, respond):
    db.session.get(Project, proposal_project).cancelled = True
    db.session.commit()
    with pytest.raises(InvalidStateError):
        respond(proposal_project, RESPONSE_AGREE_ADVANCE)


# ── Aggregation ──────────────────────────────────────────────────────────


def test_tally_and_recompute_summary(proposal_project, respond):
    _five_agree_two_against(proposal_project, respond)
    respond(proposal_project, RESPONSE_ABSTENTION)

    counts = acceptance_service.tally(proposal_project)
    assert counts[RESPONSE_AGREE_ADVANCE] == 5
    assert counts[RESPONSE_NO_AGREEMENT] == 2
    assert counts[RESPONSE_ABSTENTION] == 1
    assert counts[RESPONSE_AGREE_ACCEPT_WORKING_DRAFT] == 0

    summary = acceptance_service.recompute_summary(proposal_project)
    assert summary["total_responses"] == 8
    assert summary["agreement_count"] == 5
    assert summary["disagreement_count"] == 2
    assert summary["abstention_count"] == 1


def test_tally_without_round_is_zero_filled(proposal_project):
    assert set(acceptance_service.tally(proposal_project).values()) == {0}


def test_recompute_without_round_is_not_found(proposal_project):
    with pytest.raises(NotFoundError):
        acceptance_service.recompute_summary(proposal_project)


def test_evaluate_round_records_outcome(proposal_project, respond):
    _five_agree_two_against(proposal_project, respond)

    outcome = acceptance_service.evaluate_round(proposal_project, is_international=True)
    assert outcome["met"] is True
    assert "71.4%" in outcome["justification"]
    assert outcome["counts"]["counted"] == 7

    acceptance = db.session.execute(
        select(Acceptance).where(Acceptance.project_id == proposal_project)
    ).scalar_one()
    assert acceptance.approval_criteria_met is True
    assert acceptance.approval_justification == outcome["justification"]


def test_evaluate_round_defaults_to_project_track(proposal_project, respond):
    _five_agree_two_against(proposal_project, respond)
    # Non-international: only 2 participating
    outcome = acceptance_service.evaluate_round(proposal_project)
    assert outcome["met"] is False


# ── Approval ─────────────────────────────────────────────────────────────


def test_end_to_end_acceptance_moves_project_to_preparatory(
    proposal_project, respond, secretary,
):
    _five_agree_two_against(proposal_project, respond)
    outcome = acceptance_service.evaluate_round(proposal_project, is_international=True)
    assert outcome["met"] is True

    result = acceptance_service.set_approval(
        proposal_project, secretary.id,
        {"development_track": "INTERNATIONAL", "draft_status": "WD",
         "target_date_cd": "2027-03-01", "is_active_work": True},
    )
    assert result["is_approved"] is True
    assert result["development_track"] == "INTERNATIONAL"
    assert result["target_date_cd"] == "2027-03-01"
    assert result["smc_approval_date"] is not None

    project = db.session.get(Project, proposal_project)
    assert project.stage_id == get_stage_by_number(2).id
    assert project.reference.startswith("WD/TC 01/")

    history = get_stage_history(proposal_project)
    assert [h["stage_number"] for h in history] == [0, 1, 2]
    assert history[1]["ended_at"] is not None
    assert history[2]["ended_at"] is None
    assert history[2]["notes"] == "Proposal Accepted"


def test_only_the_secretary_may_approve(proposal_project, respond, make_member):
    _five_agree_two_against(proposal_project, respond)
    outsider = make_member()
    with pytest.raises(UnauthorizedError):
        acceptance_service.set_approval(proposal_project, outsider.id)

    acceptance = db.session.execute(
        select(Acceptance).where(Acceptance.project_id == proposal_project)
    ).scalar_one()
    assert acceptance.is_approved is False
    assert db.session.get(Project, proposal_project).stage_id == get_stage_by_number(1).id


def test_double_approval_is_invalid_state(proposal_project, respond, secretary):
    _five_agree_two_against(proposal_project, respond)
    acceptance_service.set_approval(proposal_project, secretary.id)
    with pytest.raises(InvalidStateError):
        acceptance_service.set_approval(proposal_project, secretary.id)


def test_failed_stage_advance_rolls_back_approval(proposal_project, respond, secretary):
    _five_agree_two_against(proposal_project, respond)
    db.session.get(Project, proposal_project).cancelled = True
    db.session.commit()

    with pytest.raises(InvalidStateError):
        acceptance_service.set_approval(proposal_project, secretary.id)

    db.session.expire_all()
    acceptance = db.session.execute(
        select(Acceptance).where(Acceptance.project_id == proposal_project)
    ).scalar_one()
    assert acceptance.is_approved is False
    assert acceptance.smc_approval_date is None


def test_documents_to_consider_are_resolved(proposal_project, respond, secretary):
    _five_agree_two_against(proposal_project, respond)
    doc = Document(title="NWIP form", reference="NWIP/TC 01/001")
    db.session.add(doc)
    db.session.commit()

    result = acceptance_service.set_approval(
        proposal_project, secretary.id, {"documents_to_consider": [doc.id]},
    )
    assert result["documents_to_consider"] == [doc.id]


def test_unknown_document_rolls_back_approval(proposal_project, respond, secretary):
    _five_agree_two_against(proposal_project, respond)
    with pytest.raises(NotFoundError):
        acceptance_service.set_approval(
            proposal_project, secretary.id, {"documents_to_consider": ["nope"]},
        )
    assert db.session.get(Project, proposal_project).stage_id == get_stage_by_number(1).id


def test_injected_document_lookup(proposal_project, respond, secretary):
    _five_agree_two_against(proposal_project, respond)
    seen = []

    class StubLookup:
        def resolve(self, identifiers):
            seen.append(list(identifiers))
            return []

    acceptance_service.set_approval(
        proposal_project, secretary.id, {"documents_to_consider": ["ext-1"]},
        document_lookup=StubLookup(),
    )
    assert seen == [["ext-1"]]


def test_invalid_payload_rolls_back(proposal_project, respond, secretary):
    _five_agree_two_against(proposal_project, respond)
    with pytest.raises(ValidationError) as exc:
        acceptance_service.set_approval(
            proposal_project, secretary.id, {"development_track": "EXPRESS"},
        )
    assert "development_track" in exc.value.details
    assert db.session.get(Project, proposal_project).stage_id == get_stage_by_number(1).id


# ── Results table ────────────────────────────────────────────────────────


def test_acceptance_results_table(proposal_project, respond):
    respond(proposal_project, RESPONSE_AGREE_ADVANCE, committed=True, comments="See annex")
    respond(proposal_project, RESPONSE_AGREE_ACCEPT_WORKING_DRAFT)
    respond(proposal_project, RESPONSE_NO_AGREEMENT)
    respond(proposal_project, RESPONSE_ABSTENTION)

    results = acceptance_service.get_acceptance_results(proposal_project)
    totals = results["totals"]
    assert totals["total_responses"] == 4
    assert totals["valid_responses"] == 3
    assert totals["feasible_yes_count"] == 2
    assert totals["feasible_no_count"] == 1
    assert totals["abstention_count"] == 1
    assert totals["accepted_as_nwip_count"] == 1
    assert totals["accepted_as_wd_count"] == 1
    assert totals["comments_count"] == 1
    assert totals["participation_count"] == 1

    first = results["nsb_responses"][0]
    assert first["accepted_as_nwip"] == "Y"
    assert first["accepted_as_wd"] == "N"
    assert first["comments_enclosed"] is True

"""
Clause-level feedback: national consultations on the enquiry draft and
comments on drafts, listed per project and per member state.
"""

import pytest
from sqlalchemy import select

from stageflow.core.exceptions import (
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from stageflow.models import db
from stageflow.models.audit import AuditLog
from stageflow.models.committee import NationalStandardBody
from stageflow.models.consultation import CommentObservation, NationalConsultation
from stageflow.models.enquiry import EnquiryDraft
from stageflow.models.notification import Notification
from stageflow.models.project import Project
from stageflow.services import comment_service, consultation_service
from stageflow.services import project_review_service as reviews
from stageflow.services.stage_catalog import get_stage_by_number
from stageflow.services.stage_transition import advance_stage, create_project


def _walk(project_id, *numbers):
    rewrites = {1: ("PWI", "NWIP"), 2: ("NWIP", "WD"), 3: ("WD", "CD"), 4: ("CD", "DARS")}
    for number in numbers:
        advance_stage(project_id, get_stage_by_number(number).id, "", rewrites.get(number))


@pytest.fixture()
def enquiry_project(project, secretary):
    _walk(project["id"], 1, 2)
    reviews.review_working_draft(project["id"], secretary.id, "ACCEPTED")
    reviews.review_committee_draft(project["id"], secretary.id, True)
    return project["id"]


@pytest.fixture()
def national_secretary(make_member):
    """Return a factory for a national secretary of a named member state."""

    def _make(country):
        nsb = NationalStandardBody(name=f"Standards body of {country}", country=country)
        db.session.add(nsb)
        db.session.flush()
        return make_member(nsb=nsb)

    return _make


def _entry(project_id, member, **overrides):
    data = {
        "project_id": project_id,
        "national_secretary_id": member.id,
        "clause_no": "4.2",
        "paragraph_ref": "b)",
        "comment_type": "te",
        "comment": "Moisture limit is too strict",
        "proposed_change": "Raise the limit to 20 %",
    }
    data.update(overrides)
    return data


# ── National consultations ───────────────────────────────────────────────


def test_consultation_is_filed_against_the_enquiry(enquiry_project, national_secretary):
    kenya = national_secretary("Kenya")
    result = consultation_service.submit_consultation(_entry(enquiry_project, kenya))

    enquiry = db.session.execute(
        select(EnquiryDraft).where(EnquiryDraft.project_id == enquiry_project)
    ).scalar_one()
    assert result["enquiry_draft_id"] == enquiry.id
    assert result["member_state"] == "Kenya"
    assert result["national_standard_body_id"] == kenya.national_standard_body_id
    assert result["comment_type"] == "te"
    assert result["secretariat_remarks"] == ""

    log = db.session.execute(
        select(AuditLog).where(AuditLog.action == "consultation.submit")
    ).scalar_one()
    assert log.entity_id == result["id"]
    assert db.session.query(Notification).filter_by(
        event_type="consultation.submitted",
    ).one().title == "National consultation received from Kenya"


def test_consultations_by_project_and_member_state(enquiry_project, national_secretary):
    kenya = national_secretary("Kenya")
    ghana = national_secretary("Ghana")
    consultation_service.submit_consultation(_entry(enquiry_project, kenya, clause_no="1"))
    consultation_service.submit_consultation(_entry(enquiry_project, ghana, clause_no="2"))
    consultation_service.submit_consultation(_entry(enquiry_project, kenya, clause_no="3"))

    everything = consultation_service.list_consultations(enquiry_project)
    assert [c["clause_no"] for c in everything] == ["1", "2", "3"]

    kenyan = consultation_service.list_consultations(enquiry_project, member_state="kenya")
    assert [c["clause_no"] for c in kenyan] == ["1", "3"]
    assert consultation_service.list_consultations(enquiry_project, member_state="Togo") == []


def test_consultations_do_not_leak_across_projects(
    tc, enquiry_project, secretary, national_secretary,
):
    other = create_project({"title": "Cocoa beans", "technical_committee_id": tc.id})
    _walk(other["id"], 1, 2)
    reviews.review_working_draft(other["id"], secretary.id, "ACCEPTED")
    reviews.review_committee_draft(other["id"], secretary.id, True)

    kenya = national_secretary("Kenya")
    consultation_service.submit_consultation(_entry(other["id"], kenya))

    assert consultation_service.list_consultations(enquiry_project) == []
    assert len(consultation_service.list_consultations(other["id"], "Kenya")) == 1


def test_consultation_outside_enquiry_stage_is_refused(project, national_secretary):
    _walk(project["id"], 1, 2, 3)
    with pytest.raises(InvalidStateError):
        consultation_service.submit_consultation(_entry(project["id"], national_secretary("Kenya")))
    assert db.session.query(NationalConsultation).count() == 0


def test_consultation_opens_missing_enquiry_record(project, national_secretary):
    _walk(project["id"], 1, 2, 3, 4)
    assert db.session.query(EnquiryDraft).count() == 0

    result = consultation_service.submit_consultation(
        _entry(project["id"], national_secretary("Kenya")),
    )

    enquiry = db.session.query(EnquiryDraft).one()
    assert result["enquiry_draft_id"] == enquiry.id
    assert enquiry.public_review_end_date > enquiry.public_review_start_date
    assert db.session.query(AuditLog).filter_by(action="enquiry.open").count() == 1


def test_consultation_validation(enquiry_project, national_secretary, make_member):
    kenya = national_secretary("Kenya")
    with pytest.raises(ValidationError) as exc:
        consultation_service.submit_consultation(
            _entry(enquiry_project, kenya, clause_no="", comment_type="xx"),
        )
    assert set(exc.value.details) == {"clause_no", "comment_type"}

    with pytest.raises(ValidationError):
        consultation_service.submit_consultation(
            _entry(enquiry_project, make_member(with_nsb=False)),
        )
    with pytest.raises(NotFoundError):
        consultation_service.submit_consultation(_entry("missing", kenya))
    assert db.session.query(NationalConsultation).count() == 0


def test_secretariat_remarks_on_consultation(enquiry_project, secretary, national_secretary):
    kenya = national_secretary("Kenya")
    entry = consultation_service.submit_consultation(_entry(enquiry_project, kenya))

    with pytest.raises(UnauthorizedError):
        consultation_service.add_consultation_remarks(entry["id"], kenya.id, "Noted")

    updated = consultation_service.add_consultation_remarks(
        entry["id"], secretary.id, "Accepted in principle",
    )
    assert updated["secretariat_remarks"] == "Accepted in principle"
    assert consultation_service.get_consultation(entry["id"]) == updated


# ── Comments and observations ────────────────────────────────────────────


def test_comment_records_the_draft_stage(project, national_secretary):
    _walk(project["id"], 1, 2)
    ghana = national_secretary("Ghana")
    result = comment_service.submit_comment(_entry(project["id"], ghana, comment_type="ed"))

    assert result["stage_number"] == 2
    assert result["member_state"] == "Ghana"
    assert db.session.query(AuditLog).filter_by(action="comment.submit").count() == 1


def test_comments_by_project_member_state_and_stage(project, national_secretary):
    _walk(project["id"], 1, 2)
    kenya = national_secretary("Kenya")
    ghana = national_secretary("Ghana")
    comment_service.submit_comment(_entry(project["id"], kenya, clause_no="WD-1"))
    _walk(project["id"], 3)
    comment_service.submit_comment(_entry(project["id"], ghana, clause_no="CD-1"))
    comment_service.submit_comment(_entry(project["id"], kenya, clause_no="CD-2"))

    assert [c["clause_no"] for c in comment_service.list_comments(project["id"])] == [
        "WD-1", "CD-1", "CD-2",
    ]
    assert [c["clause_no"] for c in comment_service.list_comments(project["id"], "Kenya")] == [
        "WD-1", "CD-2",
    ]
    assert [
        c["clause_no"] for c in comment_service.list_comments(project["id"], "Kenya", stage_number=3)
    ] == ["CD-2"]


def test_comment_needs_a_draft(proposal_project, national_secretary):
    with pytest.raises(InvalidStateError):
        comment_service.submit_comment(_entry(proposal_project, national_secretary("Kenya")))
    assert db.session.query(CommentObservation).count() == 0


def test_comment_on_cancelled_project_is_refused(project, national_secretary):
    _walk(project["id"], 1, 2)
    db.session.get(Project, project["id"]).cancelled = True
    db.session.commit()
    with pytest.raises(InvalidStateError):
        comment_service.submit_comment(_entry(project["id"], national_secretary("Kenya")))


def test_secretariat_remarks_on_comment(project, secretary, national_secretary):
    _walk(project["id"], 1, 2)
    kenya = national_secretary("Kenya")
    entry = comment_service.submit_comment(_entry(project["id"], kenya))

    with pytest.raises(ValidationError):
        comment_service.add_comment_remarks(entry["id"], secretary.id, "  ")
    with pytest.raises(UnauthorizedError):
        comment_service.add_comment_remarks(entry["id"], kenya.id, "Noted")

    updated = comment_service.add_comment_remarks(entry["id"], secretary.id, "Editorial fix applied")
    assert updated["secretariat_remarks"] == "Editorial fix applied"
    assert db.session.query(AuditLog).filter_by(action="comment.remark").count() == 1

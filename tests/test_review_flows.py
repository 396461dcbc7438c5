"""
Later-stage flows: WD -> CD -> DARS -> FDARS -> approval -> publication,
each recorded by the technical committee secretary in one transaction.
"""

from datetime import datetime, timedelta, timezone

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
from stageflow.models.balloting import FDARS_ACTION_CANCELLED, FDARS_ACTION_PUBLISH, Balloting
from stageflow.models.document import Document
from stageflow.models.enquiry import DARS_APPROVED, DARS_REJECTED, EnquiryDraft
from stageflow.models.project import Project
from stageflow.services import project_review_service as reviews
from stageflow.services.stage_catalog import get_stage_by_number
from stageflow.services.stage_transition import advance_stage, get_stage_history
from stageflow.utils.helpers import add_months


def _stage_number(project_id):
    db.session.expire_all()
    return db.session.get(Project, project_id).stage.number


def _reference(project_id):
    db.session.expire_all()
    return db.session.get(Project, project_id).reference


@pytest.fixture()
def wd_project(project):
    """Project at the Preparatory stage with a WD reference."""
    advance_stage(project["id"], get_stage_by_number(1).id, "", ("PWI", "NWIP"))
    advance_stage(project["id"], get_stage_by_number(2).id, "Proposal Accepted", ("NWIP", "WD"))
    return project["id"]


@pytest.fixture()
def cd_project(wd_project, secretary):
    reviews.review_working_draft(wd_project, secretary.id, "ACCEPTED")
    return wd_project


@pytest.fixture()
def enquiry_project(cd_project, secretary):
    reviews.review_committee_draft(cd_project, secretary.id, True, "CIRCULATE_AS_DARS")
    return cd_project


@pytest.fixture()
def ballot_project(enquiry_project, secretary):
    reviews.review_enquiry_draft(enquiry_project, secretary.id, status=DARS_APPROVED)
    return enquiry_project


# ── Working draft ────────────────────────────────────────────────────────


def test_accepted_working_draft_becomes_committee_draft(wd_project, secretary):
    reference = _reference(wd_project)
    draft = Document(title="Honey WD", reference=reference)
    db.session.add(draft)
    db.session.flush()
    db.session.get(Project, wd_project).working_draft_id = draft.id
    db.session.commit()

    result = reviews.review_working_draft(wd_project, secretary.id, "ACCEPTED", "Good")

    assert result["working_draft_status"] == "ACCEPTED"
    assert _stage_number(wd_project) == 3
    assert _reference(wd_project) == reference.replace("WD", "CD")
    project = db.session.get(Project, wd_project)
    clone = db.session.get(Document, project.committee_draft_id)
    assert clone.id != draft.id
    assert clone.reference == reference.replace("WD", "CD")
    assert get_stage_history(wd_project)[-1]["notes"] == "WD Elevated to a CD"


def test_rejected_working_draft_stays(wd_project, secretary):
    reviews.review_working_draft(wd_project, secretary.id, "REJECTED", "Rework scope")
    assert _stage_number(wd_project) == 2
    assert db.session.get(Project, wd_project).working_draft_comments == "Rework scope"


def test_working_draft_review_needs_secretary(wd_project, make_member):
    with pytest.raises(UnauthorizedError):
        reviews.review_working_draft(wd_project, make_member().id, "ACCEPTED")
    assert _stage_number(wd_project) == 2


def test_working_draft_status_is_validated(wd_project, secretary):
    with pytest.raises(ValidationError):
        reviews.review_working_draft(wd_project, secretary.id, "MAYBE")


# ── Committee draft ──────────────────────────────────────────────────────


def test_consensus_opens_enquiry(cd_project, secretary):
    result = reviews.review_committee_draft(cd_project, secretary.id, True, "CIRCULATE_AS_DARS")

    assert result["is_consensus_reached"] is True
    assert result["submission_date"] is not None
    assert _stage_number(cd_project) == 4
    assert _reference(cd_project).startswith("DARS/")

    enquiry = db.session.execute(
        select(EnquiryDraft).where(EnquiryDraft.project_id == cd_project)
    ).scalar_one()
    assert enquiry.public_review_end_date == add_months(enquiry.public_review_start_date, 2, 7)
    assert get_stage_history(cd_project)[-1]["notes"] == "CD Consensus reached"


def test_no_consensus_keeps_committee_stage(cd_project, secretary):
    reviews.review_committee_draft(cd_project, secretary.id, False, "CIRCULATE_REVISED_CD", True)
    assert _stage_number(cd_project) == 3
    project = db.session.get(Project, cd_project)
    assert project.meeting_required is True
    assert db.session.query(EnquiryDraft).count() == 0


def test_committee_draft_action_is_validated(cd_project, secretary):
    with pytest.raises(ValidationError):
        reviews.review_committee_draft(cd_project, secretary.id, True, "PUBLISH_NOW")


def test_second_enquiry_conflicts(enquiry_project, secretary):
    with pytest.raises(ConflictError):
        reviews.review_committee_draft(enquiry_project, secretary.id, True)
    assert _stage_number(enquiry_project) == 4


# ── Enquiry ──────────────────────────────────────────────────────────────


def test_approved_enquiry_opens_ballot(enquiry_project, secretary):
    result = reviews.review_enquiry_draft(
        enquiry_project, secretary.id, status=DARS_APPROVED, wto_notification_notified=True,
    )
    assert result["move_to_balloting"] is True
    assert result["wto_notification_date"] is not None
    assert _stage_number(enquiry_project) == 5
    assert _reference(enquiry_project).startswith("FDARS/")

    balloting = db.session.execute(
        select(Balloting).where(Balloting.project_id == enquiry_project)
    ).scalar_one()
    assert balloting.end_date - balloting.start_date == timedelta(days=30)


def test_rejected_enquiry_records_issues(enquiry_project, secretary):
    result = reviews.review_enquiry_draft(
        enquiry_project, secretary.id, status=DARS_REJECTED,
        unresolved_issues="Labelling clause", alternative_deliverable="Technical report",
    )
    assert result["status"] == DARS_REJECTED
    assert result["unresolved_issues"] == "Labelling clause"
    assert _stage_number(enquiry_project) == 4
    assert db.session.query(Balloting).count() == 0


def test_enquiry_review_requires_enquiry(cd_project, secretary):
    with pytest.raises(NotFoundError):
        reviews.review_enquiry_draft(cd_project, secretary.id, status=DARS_APPROVED)


# ── Ballot outcome and publication ───────────────────────────────────────


def test_approve_final_draft_moves_to_approval(ballot_project, secretary):
    result = reviews.approve_final_draft(ballot_project, secretary.id, True, FDARS_ACTION_PUBLISH)
    assert result["approved"] is True
    assert result["next_course_of_action"] == FDARS_ACTION_PUBLISH
    assert _stage_number(ballot_project) == 6
    assert _reference(ballot_project).startswith("FDARS/")
    assert get_stage_history(ballot_project)[-1]["notes"] == (
        "FDARS is approved in accordance with the conditions in 7.7.3"
    )


def test_cancelled_course_of_action_cancels_project(ballot_project, secretary):
    reviews.approve_final_draft(ballot_project, secretary.id, False, FDARS_ACTION_CANCELLED)
    db.session.expire_all()
    project = db.session.get(Project, ballot_project)
    assert project.cancelled is True
    assert project.cancelled_date is not None
    assert _stage_number(ballot_project) == 5

    with pytest.raises(InvalidStateError):
        advance_stage(ballot_project, get_stage_by_number(6).id)


def test_approve_and_cancel_are_exclusive(ballot_project, secretary):
    with pytest.raises(ValidationError):
        reviews.approve_final_draft(ballot_project, secretary.id, True, FDARS_ACTION_CANCELLED)


def test_publication_assigns_published_reference(ballot_project, secretary):
    reviews.approve_final_draft(ballot_project, secretary.id, True, FDARS_ACTION_PUBLISH)
    result = reviews.approve_for_publication(ballot_project, secretary.id, True, "Publish")

    year = datetime.now(timezone.utc).year
    number = db.session.get(Project, ballot_project).number
    assert result["approved_for_publication"] is True
    assert result["reference"] == f"ARS {number:03d}:{year}"


def test_publication_refused_for_cancelled_project(ballot_project, secretary):
    reviews.approve_final_draft(ballot_project, secretary.id, False, FDARS_ACTION_CANCELLED)
    with pytest.raises(InvalidStateError):
        reviews.approve_for_publication(ballot_project, secretary.id, True)


def test_publication_needs_secretary(ballot_project, make_member):
    with pytest.raises(UnauthorizedError):
        reviews.approve_for_publication(ballot_project, make_member().id, True)

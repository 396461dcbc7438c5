"""
Shared pytest fixtures for the stageflow test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate, stage catalog seeded (autouse)
    - make_member: factory for members, each with its own NSB by default
    - secretary / tc: a technical committee and its secretary of record
    - project: a fresh project at the Preliminary stage
    - proposal_project: a project moved to the Proposal stage
    - respond: factory submitting one NSB response to a project
"""

import itertools

import pytest

from stageflow import create_app
from stageflow.models import db as _db
from stageflow.models.committee import Member, NationalStandardBody, TechnicalCommittee
from stageflow.services import acceptance_service, proposal_service, stage_transition
from stageflow.services.stage_catalog import invalidate_cache, seed_stages

_seq = itertools.count(1)


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, seed the catalog, rollback + recreate after."""
    with app.app_context():
        seed_stages()
        yield
        # drop_all below bypasses seed_stages
        invalidate_cache()
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


# ── ORM factories ────────────────────────────────────────────────────────


def _nsb(name=None):
    n = next(_seq)
    nsb = NationalStandardBody(name=name or f"NSB {n}", acronym=f"N{n}", country=f"Country {n}")
    _db.session.add(nsb)
    _db.session.flush()
    return nsb


@pytest.fixture()
def make_member():
    """Return a factory creating a Member; ``with_nsb=True`` gives it its own NSB."""

    def _make(first_name=None, with_nsb=True, nsb=None):
        n = next(_seq)
        if nsb is None and with_nsb:
            nsb = _nsb()
        member = Member(
            first_name=first_name or f"Member{n}",
            last_name="Test",
            email=f"member{n}@example.org",
            national_standard_body_id=nsb.id if nsb else None,
        )
        _db.session.add(member)
        _db.session.flush()
        return member

    return _make


@pytest.fixture()
def secretary(make_member):
    return make_member(first_name="Secretary")


@pytest.fixture()
def tc(secretary):
    committee = TechnicalCommittee(
        code="01", name="Food and agriculture", secretary_id=secretary.id,
    )
    _db.session.add(committee)
    _db.session.commit()
    return committee


@pytest.fixture()
def project(tc):
    """Project dict at stage 0 (Preliminary), reference PWI/TC 01/001/YYYY."""
    return stage_transition.create_project(
        {"title": "Honey requirements", "technical_committee_id": tc.id},
    )


@pytest.fixture()
def proposal_project(project, secretary):
    """Project id after proposal submission (stage 1, NWIP reference)."""
    proposal_service.submit_proposal(
        {"project_id": project["id"], "full_title": "Honey requirements"},
        actor_id=secretary.id,
    )
    return project["id"]


@pytest.fixture()
def respond(make_member):
    """Return a factory submitting a response from a brand new NSB member."""

    def _respond(project_id, response, committed=False, comments=""):
        member = make_member()
        return acceptance_service.submit_response({
            "project_id": project_id,
            "responder_id": member.id,
            "response": response,
            "is_committed_to_participate": committed,
            "comments": comments,
        })

    return _respond

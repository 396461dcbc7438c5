"""
Committee variants: dispatch on the committee_type tag.
"""

import pytest

from stageflow.core.exceptions import NotFoundError, ValidationError
from stageflow.models import db
from stageflow.models.committee import (
    COMMITTEE_SMC,
    COMMITTEE_TECHNICAL,
    COMMITTEE_WORKING_GROUP,
    Committee,
    StandardsManagementCommittee,
    TechnicalCommittee,
    WorkingGroup,
)
from stageflow.services.committee_service import build_committee, create_committee


def test_build_dispatches_on_tag(secretary):
    tc = build_committee({
        "committee_type": COMMITTEE_TECHNICAL, "code": "02", "name": "Textiles",
        "secretary_id": secretary.id, "scope": "Fibres and fabrics",
    })
    assert isinstance(tc, TechnicalCommittee)
    assert tc.scope == "Fibres and fabrics"

    smc = build_committee({
        "committee_type": COMMITTEE_SMC, "code": "SMC", "name": "Management", "term_years": 4,
    })
    assert isinstance(smc, StandardsManagementCommittee)
    assert smc.term_years == 4


def test_unknown_tag_is_validation_error():
    with pytest.raises(ValidationError) as exc:
        build_committee({"committee_type": "advisory_board", "code": "X", "name": "X"})
    assert COMMITTEE_TECHNICAL in exc.value.details["committee_type"]


def test_common_fields_are_required():
    with pytest.raises(ValidationError) as exc:
        build_committee({"committee_type": COMMITTEE_TECHNICAL, "code": "", "name": ""})
    assert set(exc.value.details) == {"code", "name"}


def test_working_group_needs_existing_parent(tc):
    with pytest.raises(ValidationError):
        build_committee({"committee_type": COMMITTEE_WORKING_GROUP, "code": "WG1", "name": "WG"})
    with pytest.raises(NotFoundError):
        build_committee({
            "committee_type": COMMITTEE_WORKING_GROUP, "code": "WG1", "name": "WG",
            "parent_committee_id": "missing",
        })


def test_smc_term_must_be_positive():
    with pytest.raises(ValidationError):
        build_committee({"committee_type": COMMITTEE_SMC, "code": "S", "name": "S", "term_years": 0})


def test_create_committee_persists_polymorphic_row(tc, make_member):
    convenor = make_member()
    result = create_committee({
        "committee_type": COMMITTEE_WORKING_GROUP, "code": "WG1", "name": "Honey WG",
        "parent_committee_id": tc.id, "convenor_id": convenor.id,
    })
    assert result["committee_type"] == COMMITTEE_WORKING_GROUP
    assert result["parent_committee_id"] == tc.id

    db.session.expire_all()
    loaded = db.session.get(Committee, result["id"])
    assert isinstance(loaded, WorkingGroup)
    assert loaded.parent_committee.id == tc.id


def test_secretary_of_record(tc, secretary, make_member):
    assert tc.is_secretary(secretary.id) is True
    assert tc.is_secretary(make_member().id) is False
    assert tc.is_secretary(None) is False

"""
Committee builder: dispatch on the ``committee_type`` tag.

Each committee variant has its own builder with its own fields; the
payload's tag picks the builder. Unknown tags are a ValidationError.

Usage:
    tc = create_committee({
        "committee_type": "technical_committee",
        "code": "01", "name": "Food and agriculture",
        "secretary_id": member.id,
    })
"""

import logging

from stageflow.core.exceptions import ValidationError
from stageflow.models import db
from stageflow.models.audit import write_audit
from stageflow.models.committee import (
    COMMITTEE_SMC,
    COMMITTEE_TECHNICAL,
    COMMITTEE_TYPES,
    COMMITTEE_WORKING_GROUP,
    Committee,
    StandardsManagementCommittee,
    TechnicalCommittee,
    WorkingGroup,
)
from stageflow.services.helpers.lookups import get_or_raise
from stageflow.utils.helpers import atomic

logger = logging.getLogger(__name__)


def _common(payload: dict) -> dict:
    code = (payload.get("code") or "").strip()
    name = (payload.get("name") or "").strip()
    errors = {}
    if not code:
        errors["code"] = "required"
    if not name:
        errors["name"] = "required"
    if errors:
        raise ValidationError("Invalid committee", details=errors)
    return {
        "code": code,
        "name": name,
        "secretary_id": payload.get("secretary_id"),
        "chairperson_id": payload.get("chairperson_id"),
    }


def _build_technical_committee(payload: dict) -> TechnicalCommittee:
    return TechnicalCommittee(
        **_common(payload),
        scope=payload.get("scope"),
        work_programme=payload.get("work_programme"),
    )


def _build_working_group(payload: dict) -> WorkingGroup:
    parent_id = payload.get("parent_committee_id")
    if not parent_id:
        raise ValidationError(
            "A working group needs a parent committee",
            details={"parent_committee_id": "required"},
        )
    get_or_raise(Committee, parent_id)
    return WorkingGroup(
        **_common(payload),
        parent_committee_id=parent_id,
        convenor_id=payload.get("convenor_id"),
    )


def _build_smc(payload: dict) -> StandardsManagementCommittee:
    term_years = payload.get("term_years")
    if term_years is not None and (not isinstance(term_years, int) or term_years <= 0):
        raise ValidationError("term_years must be a positive integer",
                              details={"term_years": term_years})
    return StandardsManagementCommittee(
        **_common(payload),
        mandate=payload.get("mandate"),
        term_years=term_years,
    )


COMMITTEE_BUILDERS = {
    COMMITTEE_TECHNICAL: _build_technical_committee,
    COMMITTEE_WORKING_GROUP: _build_working_group,
    COMMITTEE_SMC: _build_smc,
}


def build_committee(payload: dict) -> Committee:
    """Build (but do not persist) the committee variant named by the payload tag."""
    tag = payload.get("committee_type")
    builder = COMMITTEE_BUILDERS.get(tag)
    if builder is None:
        raise ValidationError(
            f"Unknown committee type {tag!r}",
            details={"committee_type": sorted(COMMITTEE_TYPES)},
        )
    return builder(payload)


def create_committee(payload: dict, *, actor_id: str | None = None) -> dict:
    with atomic("create_committee", "Committee"):
        committee = build_committee(payload)
        db.session.add(committee)
        db.session.flush()
        write_audit(
            entity_type="committee", entity_id=committee.id, action="create",
            actor_id=actor_id, diff={"committee_type": committee.committee_type},
        )
        result = committee.to_dict()
    logger.info("Committee %s (%s) created", result["code"], result["committee_type"])
    return result

"""
Shared pieces of the clause-level feedback services
(``consultation_service`` and ``comment_service``).
"""

from sqlalchemy import func

from stageflow.core.exceptions import ValidationError
from stageflow.models.committee import Member, NationalStandardBody
from stageflow.models.consultation import COMMENT_TYPES
from stageflow.services.helpers.lookups import get_or_raise

_REQUIRED = ("clause_no", "paragraph_ref", "comment_type", "comment")


def validate_observation(data: dict) -> dict:
    """Return the normalised clause fields of *data* or raise ValidationError."""
    fields = {key: (data.get(key) or "").strip() for key in _REQUIRED}
    errors = {key: "required" for key, value in fields.items() if not value}
    if fields["comment_type"] and fields["comment_type"] not in COMMENT_TYPES:
        errors["comment_type"] = f"must be one of {sorted(COMMENT_TYPES)}"
    if errors:
        raise ValidationError("Invalid observation", details=errors)
    fields["proposed_change"] = data.get("proposed_change") or ""
    return fields


def national_secretary(member_id: str) -> Member:
    """Load the submitting member; they must represent a national standards body."""
    member = get_or_raise(Member, member_id)
    if not member.national_standard_body_id:
        raise ValidationError(
            f"Member {member_id} does not represent a national standards body",
            details={"national_secretary_id": "no national standards body"},
        )
    return member


def filter_member_state(stmt, model, member_state: str):
    """Restrict *stmt* to rows whose NSB belongs to *member_state* (case-insensitive)."""
    return stmt.join(
        NationalStandardBody, model.national_standard_body_id == NationalStandardBody.id,
    ).where(func.lower(NationalStandardBody.country) == member_state.strip().lower())

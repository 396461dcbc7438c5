"""
Standards Workflow Engine
Organisation models: national bodies, members and committees.

Models:
    - NationalStandardBody: a party entitled to respond and vote
    - Member: a person, optionally representing one NSB
    - Committee: single-table base, discriminated by ``committee_type``
        - TechnicalCommittee
        - WorkingGroup
        - StandardsManagementCommittee
"""

import uuid
from datetime import datetime, timezone

from stageflow.models import db


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


# ── Constants ────────────────────────────────────────────────────────────────

COMMITTEE_TECHNICAL = "technical_committee"
COMMITTEE_WORKING_GROUP = "working_group"
COMMITTEE_SMC = "standards_management_committee"

COMMITTEE_TYPES = {COMMITTEE_TECHNICAL, COMMITTEE_WORKING_GROUP, COMMITTEE_SMC}


class NationalStandardBody(db.Model):
    __tablename__ = "national_standard_bodies"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(200), nullable=False)
    acronym = db.Column(db.String(30), default="")
    country = db.Column(db.String(100), default="")
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    members = db.relationship("Member", backref="national_standard_body", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "acronym": self.acronym,
            "country": self.country,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class Member(db.Model):
    __tablename__ = "members"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), default="")
    email = db.Column(db.String(200), unique=True, nullable=False)
    national_standard_body_id = db.Column(
        db.String(36),
        db.ForeignKey("national_standard_bodies.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self):
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "national_standard_body_id": self.national_standard_body_id,
        }


class Committee(db.Model):
    """
    Base row for every committee variant.

    Variant-specific columns live on the same table and stay NULL for the
    other variants. Build instances through
    ``stageflow.services.committee_service.build_committee``.
    """

    __tablename__ = "committees"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    committee_type = db.Column(
        db.String(40), nullable=False,
        comment="technical_committee | working_group | standards_management_committee",
    )
    code = db.Column(db.String(30), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    secretary_id = db.Column(
        db.String(36), db.ForeignKey("members.id", ondelete="SET NULL"), nullable=True,
    )
    chairperson_id = db.Column(
        db.String(36), db.ForeignKey("members.id", ondelete="SET NULL"), nullable=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow,
    )

    secretary = db.relationship("Member", foreign_keys=[secretary_id])
    chairperson = db.relationship("Member", foreign_keys=[chairperson_id])

    __mapper_args__ = {
        "polymorphic_on": committee_type,
        "polymorphic_identity": "committee",
    }

    def is_secretary(self, member_id) -> bool:
        return self.secretary_id is not None and self.secretary_id == member_id

    def to_dict(self):
        return {
            "id": self.id,
            "committee_type": self.committee_type,
            "code": self.code,
            "name": self.name,
            "secretary_id": self.secretary_id,
            "chairperson_id": self.chairperson_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class TechnicalCommittee(Committee):
    scope = db.Column(db.Text, nullable=True)
    work_programme = db.Column(db.Text, nullable=True)

    __mapper_args__ = {"polymorphic_identity": COMMITTEE_TECHNICAL}

    def to_dict(self):
        result = super().to_dict()
        result.update(scope=self.scope, work_programme=self.work_programme)
        return result


class WorkingGroup(Committee):
    parent_committee_id = db.Column(
        db.String(36), db.ForeignKey("committees.id", ondelete="CASCADE"), nullable=True,
    )
    convenor_id = db.Column(
        db.String(36), db.ForeignKey("members.id", ondelete="SET NULL"), nullable=True,
    )

    parent_committee = db.relationship(
        "Committee", remote_side=[Committee.id], foreign_keys=[parent_committee_id],
    )

    __mapper_args__ = {"polymorphic_identity": COMMITTEE_WORKING_GROUP}

    def to_dict(self):
        result = super().to_dict()
        result.update(
            parent_committee_id=self.parent_committee_id,
            convenor_id=self.convenor_id,
        )
        return result


class StandardsManagementCommittee(Committee):
    mandate = db.Column(db.Text, nullable=True)
    term_years = db.Column(db.Integer, nullable=True)

    __mapper_args__ = {"polymorphic_identity": COMMITTEE_SMC}

    def to_dict(self):
        result = super().to_dict()
        result.update(mandate=self.mandate, term_years=self.term_years)
        return result

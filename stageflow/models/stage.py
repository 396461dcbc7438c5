"""
Standards Workflow Engine
Stage catalog models.

Models:
    - Stage: one ordered step of a standard's development lifecycle
    - StageTimeframe: optional min/max duration of a stage per track

Catalog rows are written once by the seeder and never changed afterwards;
the ORM guard at the bottom of this module refuses updates and deletes.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import event

from stageflow.core.exceptions import InvalidStateError
from stageflow.models import db


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


# ── Constants ────────────────────────────────────────────────────────────────

TRACK_STANDARD = "standard"
TRACK_INTERNATIONAL = "international"
TRACK_EMERGENCY = "emergency"

STAGE_TRACKS = {TRACK_STANDARD, TRACK_INTERNATIONAL, TRACK_EMERGENCY}

# Well-known stage numbers used by the transition flows
STAGE_PRELIMINARY = 0
STAGE_PROPOSAL = 1
STAGE_PREPARATORY = 2
STAGE_COMMITTEE = 3
STAGE_ENQUIRY = 4
STAGE_BALLOT = 5
STAGE_APPROVAL = 6


class Stage(db.Model):
    """Immutable catalog entry, ordered by ``number`` (0..N)."""

    __tablename__ = "stages"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    number = db.Column(db.Integer, nullable=False, unique=True, index=True)
    name = db.Column(db.String(100), nullable=False)
    document_name = db.Column(db.String(150), nullable=False, default="")
    abbreviation = db.Column(
        db.String(20), nullable=False,
        comment="Produced document suffix: PWI | NWIP | WD | CD | DARS | FDARS",
    )
    description = db.Column(db.Text, default="")
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    timeframes = db.relationship(
        "StageTimeframe", backref="stage", lazy="selectin",
        order_by="StageTimeframe.track",
    )

    def timeframe(self, track: str):
        for tf in self.timeframes:
            if tf.track == track:
                return tf
        return None

    def to_dict(self, include_timeframes=True):
        result = {
            "id": self.id,
            "number": self.number,
            "name": self.name,
            "document_name": self.document_name,
            "abbreviation": self.abbreviation,
            "description": self.description,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_timeframes:
            result["timeframes"] = {tf.track: tf.to_dict() for tf in self.timeframes}
        return result

    def __repr__(self):
        return f"<Stage {self.number}: {self.abbreviation}>"


class StageTimeframe(db.Model):
    """Duration bounds of a stage for one track, in days."""

    __tablename__ = "stage_timeframes"
    __table_args__ = (
        db.UniqueConstraint("stage_id", "track", name="uq_stage_timeframe_track"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    stage_id = db.Column(
        db.String(36), db.ForeignKey("stages.id", ondelete="CASCADE"), nullable=False,
    )
    track = db.Column(
        db.String(20), nullable=False,
        comment="standard | international | emergency",
    )
    min_days = db.Column(db.Integer, nullable=True)
    max_days = db.Column(db.Integer, nullable=True)

    def to_dict(self):
        return {
            "track": self.track,
            "min_days": self.min_days,
            "max_days": self.max_days,
        }


# ── Immutability guard ───────────────────────────────────────────────────────

@event.listens_for(Stage, "before_update")
@event.listens_for(StageTimeframe, "before_update")
def _refuse_catalog_update(mapper, connection, target):
    raise InvalidStateError(f"Stage catalog entries are immutable ({target!r})")


@event.listens_for(Stage, "before_delete")
@event.listens_for(StageTimeframe, "before_delete")
def _refuse_catalog_delete(mapper, connection, target):
    raise InvalidStateError(f"Stage catalog entries cannot be deleted ({target!r})")

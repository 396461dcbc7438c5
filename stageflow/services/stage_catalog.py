"""
Stage catalog: seeding, loading and read-only lookups.

The catalog is seeded once at bootstrap (``flask seed-stages``) either from
``DEFAULT_STAGES`` or from a JSON file of the same shape:

    [
      {"number": 0, "name": "Preliminary stage",
       "document_name": "Preliminary Work Item", "abbreviation": "PWI",
       "timeframes": {"standard": {"min_days": 90, "max_days": 150}}},
      ...
    ]

Stage rows are immutable after seeding, so lookups are served from a
frozen snapshot keyed by stage number, held per application in
``app.extensions["stage_catalog"]``. The snapshot is rebuilt on demand
and dropped whenever ``seed_stages`` writes.
"""

import json
import logging
import threading
from dataclasses import dataclass, field
from types import MappingProxyType

from flask import current_app
from sqlalchemy import select

from stageflow.core.exceptions import NotFoundError, ValidationError
from stageflow.models import db
from stageflow.models.audit import write_audit
from stageflow.models.stage import STAGE_TRACKS, Stage, StageTimeframe
from stageflow.utils.helpers import atomic

logger = logging.getLogger(__name__)


DEFAULT_STAGES = [
    {
        "number": 0,
        "name": "Preliminary stage",
        "document_name": "Preliminary Work Item",
        "abbreviation": "PWI",
        "timeframes": {},
    },
    {
        "number": 1,
        "name": "Proposal stage",
        "document_name": "New Work Item Proposal",
        "abbreviation": "NWIP",
        "timeframes": {
            "standard": {"min_days": 90, "max_days": 150},
            "international": {"min_days": 30, "max_days": 30},
            "emergency": {"min_days": 21, "max_days": 21},
        },
    },
    {
        "number": 2,
        "name": "Preparatory stage",
        "document_name": "Working Draft(s)",
        "abbreviation": "WD",
        "timeframes": {
            "standard": {"min_days": 60, "max_days": 60},
        },
    },
    {
        "number": 3,
        "name": "Committee stage",
        "document_name": "Committee Draft(s)",
        "abbreviation": "CD",
        "timeframes": {
            "standard": {"min_days": 180, "max_days": 180},
            "emergency": {"min_days": 15, "max_days": 15},
        },
    },
    {
        "number": 4,
        "name": "Enquiry stage",
        "document_name": "Draft African Standard",
        "abbreviation": "DARS",
        "timeframes": {
            "standard": {"min_days": 120, "max_days": 120},
            "international": {"min_days": 60, "max_days": 60},
            "emergency": {"min_days": 30, "max_days": 30},
        },
    },
    {
        "number": 5,
        "name": "Ballot stage",
        "document_name": "Final Draft African Standard",
        "abbreviation": "FDARS",
        "timeframes": {
            "standard": {"min_days": 30, "max_days": 30},
            "international": {"min_days": 30, "max_days": 30},
            "emergency": {"min_days": 6, "max_days": 6},
        },
    },
    {
        "number": 6,
        "name": "Approval stage",
        "document_name": "Final Draft African Standard",
        "abbreviation": "FDARS",
        "timeframes": {
            "standard": {"min_days": 90, "max_days": 90},
            "international": {"min_days": 90, "max_days": 90},
            "emergency": {"min_days": 15, "max_days": 15},
        },
    },
]


@dataclass(frozen=True)
class StageInfo:
    """Detached, read-only view of a catalog entry."""

    id: str
    number: int
    name: str
    document_name: str
    abbreviation: str
    description: str = ""
    timeframes: MappingProxyType = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def from_model(cls, stage: Stage) -> "StageInfo":
        return cls(
            id=stage.id,
            number=stage.number,
            name=stage.name,
            document_name=stage.document_name,
            abbreviation=stage.abbreviation,
            description=stage.description or "",
            timeframes=MappingProxyType({
                tf.track: (tf.min_days, tf.max_days) for tf in stage.timeframes
            }),
        )


class CatalogSnapshot:
    """Per-application holder of the frozen stage map.

    Installed as ``app.extensions["stage_catalog"]`` so two applications
    bound to different databases never share stage ids.
    """

    def __init__(self, app=None):
        self.lock = threading.Lock()
        self.stages: dict[int, StageInfo] | None = None
        if app is not None:
            app.extensions["stage_catalog"] = self

    def clear(self) -> None:
        with self.lock:
            self.stages = None


def _holder() -> CatalogSnapshot:
    holder = current_app.extensions.get("stage_catalog")
    if holder is None:
        holder = CatalogSnapshot(current_app)
    return holder


def invalidate_cache() -> None:
    _holder().clear()


def _load_snapshot() -> dict[int, StageInfo]:
    holder = _holder()
    with holder.lock:
        if holder.stages is None:
            stages = db.session.execute(
                select(Stage).order_by(Stage.number)
            ).scalars().all()
            holder.stages = {s.number: StageInfo.from_model(s) for s in stages}
            logger.debug("Stage catalog snapshot loaded: %d stages", len(holder.stages))
        return holder.stages


# ── Validation / loading ─────────────────────────────────────────────────────


def validate_catalog(entries) -> list[dict]:
    """Check a catalog definition and return it normalised.

    Rules: numbers unique and strictly increasing from 0, non-empty name
    and abbreviation, tracks limited to STAGE_TRACKS, non-negative day
    bounds with min <= max.

    Raises:
        ValidationError: with a ``details`` entry per offending stage.
    """
    if not isinstance(entries, list) or not entries:
        raise ValidationError("Stage catalog must be a non-empty list")

    errors = {}
    normalised = []
    expected = 0
    for idx, raw in enumerate(entries):
        key = f"stages[{idx}]"
        if not isinstance(raw, dict):
            errors[key] = "must be an object"
            continue
        number = raw.get("number")
        if not isinstance(number, int) or isinstance(number, bool):
            errors[key] = "number must be an integer"
            continue
        if number != expected:
            errors[key] = f"number must be {expected} (got {number})"
            continue
        expected += 1

        name = (raw.get("name") or "").strip()
        abbreviation = (raw.get("abbreviation") or "").strip()
        if not name:
            errors[key] = "name is required"
            continue
        if not abbreviation:
            errors[key] = "abbreviation is required"
            continue

        timeframes = raw.get("timeframes") or {}
        if not isinstance(timeframes, dict):
            errors[key] = "timeframes must be an object keyed by track"
            continue
        clean_tf = {}
        for track, bounds in timeframes.items():
            if track not in STAGE_TRACKS:
                errors[key] = f"unknown track {track!r}"
                break
            bounds = bounds or {}
            min_days = bounds.get("min_days")
            max_days = bounds.get("max_days")
            if any(v is not None and (not isinstance(v, int) or v < 0) for v in (min_days, max_days)):
                errors[key] = f"{track}: day bounds must be non-negative integers"
                break
            if min_days is not None and max_days is not None and min_days > max_days:
                errors[key] = f"{track}: min_days exceeds max_days"
                break
            clean_tf[track] = {"min_days": min_days, "max_days": max_days}
        if key in errors:
            continue

        normalised.append({
            "number": number,
            "name": name,
            "document_name": (raw.get("document_name") or "").strip(),
            "abbreviation": abbreviation,
            "description": raw.get("description") or "",
            "timeframes": clean_tf,
        })

    if errors:
        raise ValidationError("Invalid stage catalog", details=errors)
    return normalised


def load_catalog_file(path: str) -> list[dict]:
    """Read and validate a JSON catalog file."""
    try:
        with open(path, encoding="utf-8") as fh:
            entries = json.load(fh)
    except OSError as exc:
        raise ValidationError(f"Cannot read stage catalog {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ValidationError(f"Stage catalog {path} is not valid JSON: {exc}") from exc
    return validate_catalog(entries)


def seed_stages(stages: list[dict] | None = None) -> dict:
    """Insert catalog entries that do not exist yet, in one transaction.

    Existing stages (matched by number) are left untouched. Re-running the
    seed is a no-op.

    Returns:
        {"created": int, "existing": int}
    """
    entries = validate_catalog(stages if stages is not None else DEFAULT_STAGES)

    created = 0
    with atomic("seed_stages", "Stage"):
        existing_numbers = set(db.session.execute(select(Stage.number)).scalars().all())
        for entry in entries:
            if entry["number"] in existing_numbers:
                continue
            stage = Stage(
                number=entry["number"],
                name=entry["name"],
                document_name=entry["document_name"],
                abbreviation=entry["abbreviation"],
                description=entry["description"],
            )
            db.session.add(stage)
            db.session.flush()
            for track, bounds in entry["timeframes"].items():
                db.session.add(StageTimeframe(
                    stage_id=stage.id,
                    track=track,
                    min_days=bounds["min_days"],
                    max_days=bounds["max_days"],
                ))
            created += 1
        if created:
            write_audit(
                entity_type="stage", entity_id="catalog", action="stage.seed",
                diff={"created": created},
            )

    invalidate_cache()
    result = {"created": created, "existing": len(entries) - created}
    logger.info("Stage catalog seeded: %(created)d created, %(existing)d existing", result,
                extra={"operation": "seed_stages"})
    return result


# ── Lookups ──────────────────────────────────────────────────────────────────


def list_stages() -> list[StageInfo]:
    return list(_load_snapshot().values())


def get_stage_by_number(number: int) -> StageInfo:
    info = _load_snapshot().get(number)
    if info is None:
        raise NotFoundError(resource="Stage", resource_id=f"number={number}")
    return info


def get_stage(stage_id: str) -> StageInfo:
    for info in _load_snapshot().values():
        if info.id == stage_id:
            return info
    raise NotFoundError(resource="Stage", resource_id=stage_id)


def timeframe_for(stage: StageInfo | int, track: str) -> tuple[int | None, int | None] | None:
    """Return the (min_days, max_days) bound of *stage* on *track*.

    ``stage`` may be a StageInfo or a stage number. Returns None when the
    stage has no bound for that track.
    """
    if track not in STAGE_TRACKS:
        raise ValidationError(f"Unknown track {track!r}", details={"track": sorted(STAGE_TRACKS)})
    if isinstance(stage, int):
        stage = get_stage_by_number(stage)
    return stage.timeframes.get(track)

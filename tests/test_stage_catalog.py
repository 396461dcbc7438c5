"""
Stage catalog: seeding, validation, immutability and snapshot lookups.
"""

import json

import pytest
from sqlalchemy import select

from stageflow import create_app
from stageflow.config import TestingConfig
from stageflow.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from stageflow.models import db
from stageflow.models.stage import Stage
from stageflow.services import stage_catalog
from stageflow.services.stage_catalog import (
    DEFAULT_STAGES,
    StageInfo,
    get_stage,
    get_stage_by_number,
    list_stages,
    load_catalog_file,
    seed_stages,
    timeframe_for,
    validate_catalog,
)


def test_default_catalog_is_seeded_in_order():
    stages = list_stages()
    assert [s.number for s in stages] == list(range(len(DEFAULT_STAGES)))
    assert [s.abbreviation for s in stages] == ["PWI", "NWIP", "WD", "CD", "DARS", "FDARS", "FDARS"]
    assert all(isinstance(s, StageInfo) for s in stages)


def test_seed_is_idempotent():
    result = seed_stages()
    assert result == {"created": 0, "existing": len(DEFAULT_STAGES)}
    assert db.session.query(Stage).count() == len(DEFAULT_STAGES)


def test_lookup_by_number_and_id():
    proposal = get_stage_by_number(1)
    assert proposal.name == "Proposal stage"
    assert proposal.document_name == "New Work Item Proposal"
    assert get_stage(proposal.id) == proposal


def test_lookup_unknown_stage_raises_not_found():
    with pytest.raises(NotFoundError):
        get_stage_by_number(42)
    with pytest.raises(NotFoundError):
        get_stage("does-not-exist")


def test_timeframes_per_track():
    assert timeframe_for(1, "standard") == (90, 150)
    assert timeframe_for(1, "international") == (30, 30)
    assert timeframe_for(5, "emergency") == (6, 6)
    assert timeframe_for(2, "emergency") is None
    assert timeframe_for(get_stage_by_number(0), "standard") is None


def test_timeframe_for_unknown_track():
    with pytest.raises(ValidationError):
        timeframe_for(1, "express")


def test_stage_info_is_frozen():
    info = get_stage_by_number(0)
    with pytest.raises(AttributeError):
        info.name = "Renamed"
    with pytest.raises(TypeError):
        info.timeframes["standard"] = (1, 2)


def test_stage_rows_refuse_update():
    stage = db.session.query(Stage).filter_by(number=0).one()
    stage.name = "Changed"
    with pytest.raises(InvalidStateError):
        db.session.flush()
    db.session.rollback()


def test_stage_rows_refuse_delete():
    stage = db.session.query(Stage).filter_by(number=6).one()
    db.session.delete(stage)
    with pytest.raises(InvalidStateError):
        db.session.flush()
    db.session.rollback()


def test_snapshot_is_cached_until_invalidated():
    first = get_stage_by_number(2)
    assert get_stage_by_number(2) is first
    stage_catalog.invalidate_cache()
    reloaded = get_stage_by_number(2)
    assert reloaded is not first
    assert reloaded == first


def test_each_app_keeps_its_own_snapshot(app, tmp_path, monkeypatch):
    main_proposal = get_stage_by_number(1)
    monkeypatch.setattr(
        TestingConfig, "SQLALCHEMY_DATABASE_URI", f"sqlite:///{tmp_path / 'other.db'}",
    )
    other = create_app("testing")

    with other.app_context():
        db.create_all()
        seed_stages()
        stored = db.session.execute(select(Stage.id).where(Stage.number == 1)).scalar_one()
        assert get_stage_by_number(1).id == stored
        assert stored != main_proposal.id
        assert other.extensions["stage_catalog"] is not app.extensions["stage_catalog"]
        db.drop_all()

    assert get_stage_by_number(1) is main_proposal


# ── Validation ───────────────────────────────────────────────────────────


def test_validate_rejects_gap_in_numbers():
    with pytest.raises(ValidationError) as exc:
        validate_catalog([
            {"number": 0, "name": "A", "abbreviation": "A"},
            {"number": 2, "name": "B", "abbreviation": "B"},
        ])
    assert "stages[1]" in exc.value.details


def test_validate_rejects_min_above_max():
    with pytest.raises(ValidationError) as exc:
        validate_catalog([{
            "number": 0, "name": "A", "abbreviation": "A",
            "timeframes": {"standard": {"min_days": 10, "max_days": 5}},
        }])
    assert "min_days exceeds max_days" in exc.value.details["stages[0]"]


def test_validate_rejects_unknown_track_and_empty_abbreviation():
    with pytest.raises(ValidationError):
        validate_catalog([{
            "number": 0, "name": "A", "abbreviation": "A",
            "timeframes": {"express": {"min_days": 1, "max_days": 2}},
        }])
    with pytest.raises(ValidationError):
        validate_catalog([{"number": 0, "name": "A", "abbreviation": " "}])


def test_validate_rejects_empty_catalog():
    with pytest.raises(ValidationError):
        validate_catalog([])


def test_invalid_catalog_writes_nothing():
    before = db.session.query(Stage).count()
    with pytest.raises(ValidationError):
        seed_stages([{"number": 1, "name": "Wrong start", "abbreviation": "X"}])
    assert db.session.query(Stage).count() == before


def test_seed_adds_only_missing_stages():
    extended = DEFAULT_STAGES + [{
        "number": 7, "name": "Publication stage",
        "document_name": "African Standard", "abbreviation": "ARS",
    }]
    result = seed_stages(extended)
    assert result == {"created": 1, "existing": len(DEFAULT_STAGES)}
    assert get_stage_by_number(7).abbreviation == "ARS"


def test_load_catalog_file(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps(DEFAULT_STAGES[:2]), encoding="utf-8")
    entries = load_catalog_file(str(path))
    assert [e["abbreviation"] for e in entries] == ["PWI", "NWIP"]


def test_load_catalog_file_errors(tmp_path):
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValidationError):
        load_catalog_file(str(broken))
    with pytest.raises(ValidationError):
        load_catalog_file(str(tmp_path / "missing.json"))


def test_seed_stages_cli(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["seed-stages"])
    assert result.exit_code == 0
    assert "Stages created: 0, already present: 7" in result.output

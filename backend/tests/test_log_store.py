"""Tests for the append-only log store, settings and the demo seed."""
from datetime import date, datetime, timedelta

import pytest
from sqlmodel import Session, select

from capture import FALLBACK_BLADE, material_cost
from config import Settings
from db import engine
from extraction import estimate_blades
from log_store import LogStore, day_bounds
from models import BladeLog, ProductionLog
from seed import seed_database


def test_insert_assigns_increasing_ids(test_session):
    store = LogStore(test_session)
    first = store.insert_production(ProductionLog(good_parts=1, total_parts=1))
    second = store.insert_production(ProductionLog(good_parts=1, total_parts=1))
    assert second > first


def test_insert_defaults(test_session):
    store = LogStore(test_session)
    row_id = store.insert_blade(BladeLog(coil_count=1, total_length_ft=12.5, blades_cut=55))
    row = test_session.get(BladeLog, row_id)
    assert row.operator == "Unknown"
    assert row.timestamp.date() == datetime.now().date()


def test_aggregate_for_day_only_counts_that_day(test_session):
    store = LogStore(test_session)
    day = date(2024, 3, 5)
    store.insert_production(
        ProductionLog(timestamp=datetime(2024, 3, 5, 0, 0), good_parts=10, reject_parts=1, total_parts=11)
    )
    store.insert_production(
        ProductionLog(timestamp=datetime(2024, 3, 5, 23, 59, 59), good_parts=5, reject_parts=2, total_parts=7)
    )
    store.insert_production(
        ProductionLog(timestamp=datetime(2024, 3, 6, 0, 0), good_parts=99, reject_parts=9, total_parts=108)
    )
    store.insert_blade(BladeLog(timestamp=datetime(2024, 3, 5, 12), total_length_ft=100.5, blades_cut=442))

    summary = store.aggregate_for_day(day)
    assert summary["date"] == "2024-03-05"
    assert summary["production"].total_good == 15
    assert summary["production"].total_rejects == 3
    assert summary["production"].run_count == 2
    assert summary["blade"].total_blades == 442
    assert summary["blade"].total_steel == 100.5


def test_aggregate_empty_day_is_zero(test_session):
    summary = LogStore(test_session).aggregate_for_day(date(1999, 1, 1))
    assert summary["production"].total_good == 0
    assert summary["production"].total_rejects == 0
    assert summary["production"].run_count == 0
    assert summary["blade"].total_blades == 0
    assert summary["blade"].total_steel == 0


def test_day_bounds():
    start, end = day_bounds(date(2024, 12, 31))
    assert start == datetime(2024, 12, 31)
    assert end - start == timedelta(days=1)


def test_material_cost():
    assert material_cost(0) == 0
    assert material_cost(2) == 250


def test_fallback_blade_follows_blade_rule():
    assert FALLBACK_BLADE.estimated_blades == 2402


def test_settings_require_api_key(monkeypatch):
    monkeypatch.setenv("CLAUDE_API_KEY", "")
    with pytest.raises(RuntimeError):
        Settings().validate()


def test_settings_reject_unknown_policy(monkeypatch):
    monkeypatch.setenv("CLAUDE_API_KEY", "key")
    monkeypatch.setenv("ON_EXTRACTION_FAILURE", "retry")
    with pytest.raises(RuntimeError):
        Settings().validate()


def test_settings_defaults(monkeypatch):
    for name in ("PORT", "VISION_MODEL", "ON_EXTRACTION_FAILURE"):
        monkeypatch.delenv(name, raising=False)
    settings = Settings()
    assert settings.port == 3000
    assert settings.vision_model == "claude-3-opus-20240229"
    assert settings.use_fallback is False


def test_seed_database_is_idempotent(test_session):
    seed_database()
    seed_database()
    assert len(test_session.exec(select(ProductionLog)).all()) == 1
    blade = test_session.exec(select(BladeLog)).one()
    assert blade.blades_cut == estimate_blades(blade.total_length_ft)
    assert blade.material_cost == material_cost(blade.coil_count)


def test_local_timestamps_round_trip_naive(test_session):
    """Stored timestamps come back as naive local time on the same day."""
    store = LogStore(test_session)
    row_id = store.insert_production(ProductionLog(good_parts=3, total_parts=3))
    store.insert_blade(BladeLog(coil_count=1, total_length_ft=1.0, blades_cut=4, material_cost=125))

    with Session(engine) as fresh:
        row = fresh.get(ProductionLog, row_id)
        assert row.timestamp.tzinfo is None
        assert row.timestamp.date() == datetime.now().date()

    rows = store.list_production(datetime.now().date())
    assert [r.id for r in rows] == [row_id]
    assert store.list_blade(datetime.now().date())[0].timestamp.tzinfo is None

"""Tests for telemetry collection."""
from __future__ import annotations

import sqlite3

import pytest

from living_story import telemetry as telemetry_module
from living_story.telemetry import MetricType, TelemetryCollector, track_duration


def _row_count(db_path):
    with sqlite3.connect(db_path) as conn:
        return conn.execute("SELECT COUNT(*) FROM metrics").fetchone()[0]


def test_events_buffer_until_threshold(tmp_path):
    db_path = tmp_path / "metrics.db"
    collector = TelemetryCollector(db_path, flush_threshold=3)

    collector.track_debt(4, 7.5, is_crisis=False, trend="stable")
    collector.track_market("bet_placed", "CH03-AAAA", 50.0)
    assert _row_count(db_path) == 0

    collector.track_consequence("recorded", "CH03-AAAA", chapter=3, severity=4)
    assert _row_count(db_path) == 3


def test_summarize_groups_by_name(telemetry):
    telemetry.track_market("bet_placed", "CH03-AAAA", 50.0)
    telemetry.track_market("bet_placed", "CH03-AAAA", 25.0)
    telemetry.track_market("settled", "CH03-AAAA", 400.0, {"won": 1, "lost": 0})
    telemetry.track_error("InvalidInputError", operation="place_bet")

    market = telemetry.summarize(MetricType.MARKET_ACTIVITY)
    assert market == {
        "bet_placed": {"count": 2, "total": 75.0},
        "settled": {"count": 1, "total": 400.0},
    }
    assert telemetry.summarize(MetricType.ERROR_RATE)["InvalidInputError"]["count"] == 1
    assert telemetry.summarize(MetricType.PERFORMANCE) == {}


def test_track_duration_records_errors(telemetry):
    with pytest.raises(ValueError):
        with track_duration("score", collector=telemetry):
            raise ValueError("boom")

    with track_duration("score", collector=telemetry):
        pass

    assert telemetry.summarize(MetricType.PERFORMANCE)["score"]["count"] == 2
    assert telemetry.summarize(MetricType.ERROR_RATE)["ValueError"]["count"] == 1


def test_default_path_comes_from_environment(tmp_path, monkeypatch):
    db_path = tmp_path / "env-metrics.db"
    monkeypatch.setenv("LIVING_STORY_TELEMETRY_DB", str(db_path))
    monkeypatch.setattr(telemetry_module, "_telemetry", None)

    collector = telemetry_module.get_telemetry()
    assert collector.db_path == db_path
    assert telemetry_module.get_telemetry() is collector
    assert db_path.exists()

"""Tests for settings loading."""
from __future__ import annotations

from living_story.config import Settings, SettingsLoader, get_settings


def test_default_settings_match_ledger_rules():
    settings = get_settings()
    assert settings.crisis_threshold == 25
    assert settings.overdue_penalty_per_chapter == 0.5
    assert settings.escalated_debt_multiplier == 1.8
    assert settings.severity_thresholds == {5: 7.0, 4: 5.0, 3: 3.0, 2: 1.5}
    assert (settings.max_must_resolve, settings.max_should_address, settings.max_may_reference) == (2, 3, 5)
    assert settings.exact_chapter_multiplier == 8.0
    assert settings.within_one_multiplier == 4.0
    assert settings.within_two_multiplier == 2.0
    assert settings.range_multiplier == 1.5
    assert settings.win_tolerance == 1


def test_loader_caches_until_forced(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("debt:\n  crisis_threshold: 30\n", encoding="utf-8")
    loader = SettingsLoader(path)
    first = loader.load()
    assert first.crisis_threshold == 30

    path.write_text("debt:\n  crisis_threshold: 12\n", encoding="utf-8")
    assert loader.load() is first
    assert loader.load(force=True).crisis_threshold == 12


def test_missing_sections_fall_back_to_defaults():
    settings = Settings.from_dict({})
    assert settings.crisis_threshold == 25
    assert settings.severity_weights["survival_threat"] == 3.0
    assert settings.window_min_factor == 2
    assert settings.window_max_factor == 5
    assert settings.telemetry_db_path == "telemetry.db"

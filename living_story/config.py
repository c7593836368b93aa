"""Configuration loading utilities for the consequence ledger."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import yaml


DEFAULT_SETTINGS_PATH = Path(__file__).parent / "data" / "settings.yaml"


@dataclass(frozen=True)
class Settings:
    """Typed view over the settings YAML file."""

    crisis_threshold: float
    overdue_penalty_per_chapter: float
    escalated_debt_multiplier: float
    upcoming_horizon: int
    auto_escalate_min_severity: int
    critical_min_severity: int
    top_house_min_share: float
    trend_falling_resolved: int
    trend_rising_active: int
    summary_medium_debt: float
    summary_high_debt: float
    severity_weights: Dict[str, float]
    severity_thresholds: Dict[int, float]
    window_min_factor: int
    window_max_factor: int
    escalation_span_factor: int
    escalation_debt_factor: float
    escalation_political_scale: float
    escalation_resource_scale: float
    escalation_alliance_scale: float
    escalation_corruption_increment: float
    escalation_survival_increment: float
    max_must_resolve: int
    max_should_address: int
    max_may_reference: int
    exact_chapter_multiplier: float
    within_one_multiplier: float
    within_two_multiplier: float
    range_multiplier: float
    win_tolerance: int
    telemetry_db_path: str

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Settings":
        debt_cfg = data.get("debt", {})
        trend_cfg = debt_cfg.get("trend", {})
        bands_cfg = debt_cfg.get("summary_bands", {})
        severity_cfg = data.get("severity", {})
        windows_cfg = data.get("windows", {})
        escalation_cfg = data.get("escalation", {})
        context_cfg = data.get("context", {})
        market_cfg = data.get("market", {})
        multipliers = market_cfg.get("multipliers", {})
        telemetry_cfg = data.get("telemetry", {})
        weights = severity_cfg.get(
            "weights",
            {
                "political_pressure": 2.0,
                "resource_delta": 1.5,
                "alliance_shift": 2.0,
                "corruption_level": 2.5,
                "survival_threat": 3.0,
            },
        )
        thresholds = severity_cfg.get("thresholds", {5: 7.0, 4: 5.0, 3: 3.0, 2: 1.5})
        return Settings(
            crisis_threshold=float(debt_cfg.get("crisis_threshold", 25)),
            overdue_penalty_per_chapter=float(debt_cfg.get("overdue_penalty_per_chapter", 0.5)),
            escalated_debt_multiplier=float(debt_cfg.get("escalated_multiplier", 1.8)),
            upcoming_horizon=int(debt_cfg.get("upcoming_horizon", 3)),
            auto_escalate_min_severity=int(debt_cfg.get("auto_escalate_min_severity", 3)),
            critical_min_severity=int(debt_cfg.get("critical_min_severity", 4)),
            top_house_min_share=float(debt_cfg.get("top_house_min_share", 2.0)),
            trend_falling_resolved=int(trend_cfg.get("falling_resolved", 2)),
            trend_rising_active=int(trend_cfg.get("rising_active", 3)),
            summary_medium_debt=float(bands_cfg.get("medium", 8)),
            summary_high_debt=float(bands_cfg.get("high", 15)),
            severity_weights={str(k): float(v) for k, v in weights.items()},
            severity_thresholds={int(k): float(v) for k, v in thresholds.items()},
            window_min_factor=int(windows_cfg.get("min_factor", 2)),
            window_max_factor=int(windows_cfg.get("max_factor", 5)),
            escalation_span_factor=int(windows_cfg.get("escalation_span_factor", 2)),
            escalation_debt_factor=float(escalation_cfg.get("debt_factor", 1.5)),
            escalation_political_scale=float(escalation_cfg.get("political_scale", 1.3)),
            escalation_resource_scale=float(escalation_cfg.get("resource_scale", 1.2)),
            escalation_alliance_scale=float(escalation_cfg.get("alliance_scale", 1.2)),
            escalation_corruption_increment=float(escalation_cfg.get("corruption_increment", 0.15)),
            escalation_survival_increment=float(escalation_cfg.get("survival_increment", 0.1)),
            max_must_resolve=int(context_cfg.get("max_must_resolve", 2)),
            max_should_address=int(context_cfg.get("max_should_address", 3)),
            max_may_reference=int(context_cfg.get("max_may_reference", 5)),
            exact_chapter_multiplier=float(multipliers.get("exact_chapter", 8.0)),
            within_one_multiplier=float(multipliers.get("within_one", 4.0)),
            within_two_multiplier=float(multipliers.get("within_two", 2.0)),
            range_multiplier=float(multipliers.get("range", 1.5)),
            win_tolerance=int(market_cfg.get("win_tolerance", 1)),
            telemetry_db_path=str(telemetry_cfg.get("db_path", "telemetry.db")),
        )


class SettingsLoader:
    """Loads and caches settings from YAML configuration files."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or DEFAULT_SETTINGS_PATH
        self._cache: Settings | None = None

    @property
    def path(self) -> Path:
        return self._path

    def load(self, force: bool = False) -> Settings:
        if self._cache is not None and not force:
            return self._cache
        with self._path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
        self._cache = Settings.from_dict(data)
        return self._cache


def get_settings() -> Settings:
    """Convenience accessor for default settings."""

    return SettingsLoader().load()


__all__ = ["Settings", "SettingsLoader", "get_settings"]

"""Impact classification policies for choice text."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import yaml

from .models import House, ImpactVector

_KEYWORD_PATH = Path(__file__).parent / "data" / "impact_keywords.yaml"

_DIMENSIONS = (
    "political_pressure",
    "resource_delta",
    "alliance_shift",
    "corruption_level",
    "survival_threat",
)


class ImpactClassifier:
    """Maps a winning choice onto an :class:`ImpactVector`.

    Subclasses may use any technique (keywords, a hosted model, lookup tables)
    as long as they honour the five-dimension contract.
    """

    def classify(self, text: str, houses: Sequence[House]) -> ImpactVector:
        raise NotImplementedError


@dataclass
class KeywordRule:
    keywords: List[str]
    value: float

    def matches(self, text: str) -> bool:
        return any(keyword in text for keyword in self.keywords)


@dataclass
class DimensionRules:
    default: float
    rules: List[KeywordRule] = field(default_factory=list)
    houses: Dict[House, float] = field(default_factory=dict)

    def evaluate(self, text: str, houses: Sequence[House]) -> float:
        for house, value in self.houses.items():
            if house in houses:
                return value
        for rule in self.rules:
            if rule.matches(text):
                return rule.value
        return self.default


class KeywordImpactClassifier(ImpactClassifier):
    """Heuristic classifier driven by ``impact_keywords.yaml``."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or _KEYWORD_PATH
        self._dimensions: Dict[str, DimensionRules] = {}
        self._load()

    def _load(self) -> None:
        with self._path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}
        dimensions = raw.get("dimensions", {})
        for name in _DIMENSIONS:
            entry = dimensions.get(name) or {}
            rules = [
                KeywordRule(
                    keywords=[str(keyword).lower() for keyword in rule.get("keywords", [])],
                    value=float(rule["value"]),
                )
                for rule in entry.get("rules", []) or []
            ]
            house_overrides = {
                House(str(house)): float(value)
                for house, value in (entry.get("houses") or {}).items()
            }
            self._dimensions[name] = DimensionRules(
                default=float(entry.get("default", 0.0)),
                rules=rules,
                houses=house_overrides,
            )

    def dimension(self, name: str) -> Optional[DimensionRules]:
        return self._dimensions.get(name)

    def classify(self, text: str, houses: Sequence[House]) -> ImpactVector:
        lowered = text.lower()
        values = {
            name: self._dimensions[name].evaluate(lowered, houses)
            for name in _DIMENSIONS
        }
        return ImpactVector(**values)


__all__ = ["ImpactClassifier", "KeywordImpactClassifier", "KeywordRule", "DimensionRules"]

"""Shared fixtures for ledger tests."""
from __future__ import annotations

from typing import Dict, Sequence

import pytest

from living_story.classifier import ImpactClassifier
from living_story.config import get_settings
from living_story.models import House, ImpactVector
from living_story.orchestrator import LivingStoryOrchestrator
from living_story.store import InMemoryConsequenceStore
from living_story.telemetry import TelemetryCollector


class FixedClassifier(ImpactClassifier):
    """Returns a preset vector per choice text, defaulting to a neutral one."""

    def __init__(self, vectors: Dict[str, ImpactVector] | None = None) -> None:
        self.vectors = vectors or {}

    def classify(self, text: str, houses: Sequence[House]) -> ImpactVector:
        return self.vectors.get(text, ImpactVector())


# Vectors whose weighted magnitude lands in each severity band.
SEVERITY_VECTORS = {
    1: ImpactVector(),
    2: ImpactVector(political_pressure=-1.0),
    3: ImpactVector(political_pressure=-1.0, alliance_shift=-1.0),
    4: ImpactVector(political_pressure=-1.0, resource_delta=-1.0, alliance_shift=-1.0),
    5: ImpactVector(
        political_pressure=-1.0,
        resource_delta=-1.0,
        alliance_shift=-1.0,
        corruption_level=1.0,
    ),
}


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def telemetry(tmp_path):
    return TelemetryCollector(tmp_path / "telemetry.db")


@pytest.fixture
def severity_classifier():
    return FixedClassifier({f"severity-{level}": vector for level, vector in SEVERITY_VECTORS.items()})


@pytest.fixture
def orchestrator(settings, telemetry, severity_classifier):
    return LivingStoryOrchestrator(
        "test-story",
        store=InMemoryConsequenceStore(),
        settings=settings,
        classifier=severity_classifier,
        telemetry=telemetry,
    )

"""Core data models for the Living Story consequence ledger."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .errors import InvalidInputError


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


class House(str, Enum):
    VALDRIS = "valdris"
    OBSIDIAN = "obsidian"
    AURELIUS = "aurelius"
    STRAND = "strand"
    NULL = "null"

    @property
    def display_name(self) -> str:
        return f"House {self.value.capitalize()}"


class ConsequenceStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    RESOLVED = "resolved"
    ESCALATED = "escalated"
    CRISIS = "crisis"


class BetStatus(str, Enum):
    OPEN = "open"
    WON = "won"
    LOST = "lost"
    REFUNDED = "refunded"


class DebtTrend(str, Enum):
    RISING = "rising"
    STABLE = "stable"
    FALLING = "falling"


@dataclass
class ImpactVector:
    """Five-dimensional effect profile of a consequence.

    ``political_pressure``, ``resource_delta`` and ``alliance_shift`` live in
    [-1, 1]; ``corruption_level`` and ``survival_threat`` live in [0, 1].
    Values outside those bounds are clamped on construction.
    """

    political_pressure: float = 0.0
    resource_delta: float = 0.0
    alliance_shift: float = 0.0
    corruption_level: float = 0.0
    survival_threat: float = 0.0

    def __post_init__(self) -> None:
        self.political_pressure = _clamp(self.political_pressure, -1.0, 1.0)
        self.resource_delta = _clamp(self.resource_delta, -1.0, 1.0)
        self.alliance_shift = _clamp(self.alliance_shift, -1.0, 1.0)
        self.corruption_level = _clamp(self.corruption_level, 0.0, 1.0)
        self.survival_threat = _clamp(self.survival_threat, 0.0, 1.0)

    def to_dict(self) -> Dict[str, float]:
        return {
            "political_pressure": self.political_pressure,
            "resource_delta": self.resource_delta,
            "alliance_shift": self.alliance_shift,
            "corruption_level": self.corruption_level,
            "survival_threat": self.survival_threat,
        }

    @staticmethod
    def from_dict(data: Dict[str, float]) -> "ImpactVector":
        return ImpactVector(
            political_pressure=float(data.get("political_pressure", 0.0)),
            resource_delta=float(data.get("resource_delta", 0.0)),
            alliance_shift=float(data.get("alliance_shift", 0.0)),
            corruption_level=float(data.get("corruption_level", 0.0)),
            survival_threat=float(data.get("survival_threat", 0.0)),
        )


@dataclass
class ConsequenceBet:
    """Wager on the chapter in which a consequence resolves."""

    id: str
    consequence_id: str
    bettor: str
    predicted_chapter: int
    range_min: int
    range_max: int
    amount: float
    multiplier: float
    status: BetStatus = BetStatus.OPEN
    payout: float = 0.0
    placed_at: datetime = field(default_factory=_now)

    @property
    def is_open(self) -> bool:
        return self.status == BetStatus.OPEN

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "consequence_id": self.consequence_id,
            "bettor": self.bettor,
            "predicted_chapter": self.predicted_chapter,
            "range_min": self.range_min,
            "range_max": self.range_max,
            "amount": self.amount,
            "multiplier": self.multiplier,
            "status": self.status.value,
            "payout": self.payout,
            "placed_at": self.placed_at.isoformat(),
        }

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "ConsequenceBet":
        return ConsequenceBet(
            id=str(data["id"]),
            consequence_id=str(data["consequence_id"]),
            bettor=str(data["bettor"]),
            predicted_chapter=int(data["predicted_chapter"]),
            range_min=int(data["range_min"]),
            range_max=int(data["range_max"]),
            amount=float(data["amount"]),
            multiplier=float(data["multiplier"]),
            status=BetStatus(data.get("status", BetStatus.OPEN.value)),
            payout=float(data.get("payout", 0.0)),
            placed_at=datetime.fromisoformat(str(data["placed_at"])),
        )


@dataclass
class Consequence:
    """Durable record that a past choice still owes the story a payoff."""

    id: str
    chapter_origin: int
    choice_id: str
    houses_affected: List[House]
    description: str
    severity: int
    vector: ImpactVector
    expected_window: Tuple[int, int]
    status: ConsequenceStatus = ConsequenceStatus.PENDING
    narrative_debt: float = 0.0
    actual_resolution_chapter: Optional[int] = None
    resolution_description: Optional[str] = None
    parent_id: Optional[str] = None
    child_ids: List[str] = field(default_factory=list)
    bets: List[ConsequenceBet] = field(default_factory=list)
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def __post_init__(self) -> None:
        if not 1 <= self.severity <= 5:
            raise InvalidInputError(f"Severity must be between 1 and 5, got {self.severity}")
        window_min, window_max = self.expected_window
        if window_min <= self.chapter_origin:
            raise InvalidInputError(
                f"Resolution window must open after chapter {self.chapter_origin}"
            )
        if window_min > window_max:
            raise InvalidInputError(f"Invalid resolution window {self.expected_window}")

    @property
    def is_resolved(self) -> bool:
        return self.status == ConsequenceStatus.RESOLVED

    @property
    def window_min(self) -> int:
        return self.expected_window[0]

    @property
    def window_max(self) -> int:
        return self.expected_window[1]

    def is_overdue(self, current_chapter: int) -> bool:
        return current_chapter > self.window_max

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "chapter_origin": self.chapter_origin,
            "choice_id": self.choice_id,
            "houses_affected": [house.value for house in self.houses_affected],
            "description": self.description,
            "severity": self.severity,
            "vector": self.vector.to_dict(),
            "expected_window": list(self.expected_window),
            "status": self.status.value,
            "narrative_debt": self.narrative_debt,
            "actual_resolution_chapter": self.actual_resolution_chapter,
            "resolution_description": self.resolution_description,
            "parent_id": self.parent_id,
            "child_ids": list(self.child_ids),
            "bets": [bet.to_dict() for bet in self.bets],
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "Consequence":
        window = data["expected_window"]
        resolution_chapter = data.get("actual_resolution_chapter")
        return Consequence(
            id=str(data["id"]),
            chapter_origin=int(data["chapter_origin"]),
            choice_id=str(data["choice_id"]),
            houses_affected=[House(value) for value in data.get("houses_affected", [])],
            description=str(data["description"]),
            severity=int(data["severity"]),
            vector=ImpactVector.from_dict(data.get("vector", {})),
            expected_window=(int(window[0]), int(window[1])),
            status=ConsequenceStatus(data.get("status", ConsequenceStatus.PENDING.value)),
            narrative_debt=float(data.get("narrative_debt", 0.0)),
            actual_resolution_chapter=(
                int(resolution_chapter) if resolution_chapter is not None else None
            ),
            resolution_description=data.get("resolution_description"),
            parent_id=data.get("parent_id"),
            child_ids=list(data.get("child_ids", [])),
            bets=[ConsequenceBet.from_dict(item) for item in data.get("bets", [])],
            created_at=datetime.fromisoformat(str(data["created_at"])),
            updated_at=datetime.fromisoformat(str(data["updated_at"])),
        )


@dataclass
class DebtReport:
    chapter: int
    total_debt: float
    is_crisis: bool
    critical: List[Consequence]
    overdue: List[Consequence]
    upcoming: List[Consequence]
    debt_by_house: Dict[House, float]
    trend: DebtTrend
    escalated_ids: List[str] = field(default_factory=list)

    def top_house(self) -> Optional[Tuple[House, float]]:
        """Return the house carrying the largest share of debt, if any."""

        if not self.debt_by_house:
            return None
        return max(self.debt_by_house.items(), key=lambda item: item[1])


@dataclass
class ChapterContext:
    chapter: int
    prompt_block: str
    must_resolve: List[Consequence]
    should_address: List[Consequence]
    may_reference: List[Consequence]
    debt_score: float
    is_crisis: bool


class MarketOptionKind(str, Enum):
    EXACT_CHAPTER = "exact_chapter"
    WITHIN_WINDOW = "within_window"
    EARLY = "early"
    ESCALATES = "escalates"


@dataclass
class MarketWindow:
    key: str
    label: str
    kind: MarketOptionKind
    multiplier: float
    chapter: Optional[int] = None


@dataclass
class BetMarket:
    consequence_id: str
    windows: List[MarketWindow]

    def option(self, key: str) -> Optional[MarketWindow]:
        for window in self.windows:
            if window.key == key:
                return window
        return None


@dataclass
class Settlement:
    consequence_id: str
    actual_chapter: int
    won: List[ConsequenceBet] = field(default_factory=list)
    lost: List[ConsequenceBet] = field(default_factory=list)
    total_payout: float = 0.0


@dataclass
class DebtSummary:
    """Read-only debt overview for presentation layers."""

    chapter: int
    active_consequences: int
    severity: str
    top_tension: Optional[str]
    upcoming_explosions: List[str]
    debt_score: float


__all__ = [
    "BetMarket",
    "BetStatus",
    "ChapterContext",
    "Consequence",
    "ConsequenceBet",
    "ConsequenceStatus",
    "DebtReport",
    "DebtSummary",
    "DebtTrend",
    "House",
    "ImpactVector",
    "MarketOptionKind",
    "MarketWindow",
    "Settlement",
]

"""High-level coordinator for the consequence ledger lifecycle."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from .classifier import ImpactClassifier
from .config import Settings, get_settings
from .context import ContextBuilder
from .debt import NarrativeDebtEngine
from .errors import InvalidStateError
from .ledger import ConsequenceLedger
from .market import ConsequenceBetMarket
from .models import (
    BetMarket,
    ChapterContext,
    Consequence,
    ConsequenceBet,
    DebtReport,
    DebtSummary,
    House,
    Settlement,
)
from .recorder import ConsequenceRecorder
from .store import ConsequenceStore
from .telemetry import TelemetryCollector, get_telemetry, track_duration

logger = logging.getLogger(__name__)


@dataclass
class ChapterResolution:
    consequence: Consequence
    debt_report: DebtReport
    market: BetMarket


@dataclass
class ConsequenceResolution:
    consequence: Consequence
    settlement: Settlement


class LivingStoryOrchestrator:
    """Single entry point used by the chapter pipeline.

    ``on_chapter_resolved`` runs after each player vote closes,
    ``get_chapter_context`` runs before the next chapter is generated, and
    ``resolve_consequence`` runs once generated prose pays off a thread.
    """

    def __init__(
        self,
        story_id: str = "default",
        *,
        store: ConsequenceStore | None = None,
        settings: Settings | None = None,
        classifier: ImpactClassifier | None = None,
        telemetry: TelemetryCollector | None = None,
    ) -> None:
        self.story_id = story_id
        self.settings = settings or get_settings()
        self.recorder = ConsequenceRecorder(self.settings, classifier)
        self.ledger = ConsequenceLedger(story_id, store=store, recorder=self.recorder)
        self.debt_engine = NarrativeDebtEngine(self.ledger, self.settings)
        self.context_builder = ContextBuilder(self.ledger, self.debt_engine, self.settings)
        self.bet_market = ConsequenceBetMarket(self.ledger, self.settings)
        self._telemetry = telemetry or get_telemetry()

    def on_chapter_resolved(
        self,
        chapter: int,
        winning_choice_id: str,
        choice_text: str,
        houses_affected: Sequence[House],
        hint: str | None = None,
    ) -> ChapterResolution:
        with track_duration("on_chapter_resolved", collector=self._telemetry):
            consequence = self.ledger.record_from_choice(
                chapter, winning_choice_id, choice_text, houses_affected, hint
            )
            self._telemetry.track_consequence(
                "recorded",
                consequence.id,
                chapter=chapter,
                severity=consequence.severity,
                story_id=self.story_id,
            )
            report = self._score(chapter)
            market = self.bet_market.open_market(consequence.id)
        return ChapterResolution(
            consequence=self.ledger.require(consequence.id),
            debt_report=report,
            market=market,
        )

    def get_chapter_context(self, chapter: int) -> ChapterContext:
        with track_duration("get_chapter_context", collector=self._telemetry):
            report = self._score(chapter)
            return self.context_builder.build_chapter_context(chapter, report)

    def resolve_consequence(
        self, consequence_id: str, chapter: int, resolution: str
    ) -> ConsequenceResolution:
        """Resolve a consequence, then settle its market.

        If settlement fails after the resolution is stored, call
        :meth:`retry_settlement` to finish the job.
        """

        consequence = self.ledger.resolve(consequence_id, chapter, resolution)
        self._telemetry.track_consequence(
            "resolved",
            consequence_id,
            chapter=chapter,
            severity=consequence.severity,
            story_id=self.story_id,
        )
        settlement = self._settle(consequence_id, chapter)
        return ConsequenceResolution(consequence=consequence, settlement=settlement)

    def retry_settlement(self, consequence_id: str) -> Settlement:
        consequence = self.ledger.require(consequence_id)
        if not consequence.is_resolved or consequence.actual_resolution_chapter is None:
            raise InvalidStateError(
                f"Consequence {consequence_id} has not been resolved; nothing to settle"
            )
        logger.info("Retrying settlement for %s", consequence_id)
        return self._settle(consequence_id, consequence.actual_resolution_chapter)

    def place_bet(
        self, consequence_id: str, bettor: str, predicted_chapter: int, amount: float
    ) -> ConsequenceBet:
        bet = self.bet_market.place_bet(consequence_id, bettor, predicted_chapter, amount)
        self._telemetry.track_market(
            "bet_placed",
            consequence_id,
            bet.amount,
            {"multiplier": bet.multiplier, "predicted_chapter": predicted_chapter},
        )
        return bet

    def link_consequences(self, parent_id: str, child_id: str) -> None:
        self.ledger.link(parent_id, child_id)

    def public_debt_summary(self, chapter: int) -> DebtSummary:
        """Summarise outstanding debt for presentation layers."""

        cfg = self.settings
        report = self._score(chapter)
        if report.is_crisis:
            band = "crisis"
        elif report.total_debt > cfg.summary_high_debt:
            band = "high"
        elif report.total_debt > cfg.summary_medium_debt:
            band = "medium"
        else:
            band = "low"
        explosions = [c.description for c in report.upcoming if c.severity >= 3][:3]
        return DebtSummary(
            chapter=chapter,
            active_consequences=len(self.ledger.active()),
            severity=band,
            top_tension=report.critical[0].description if report.critical else None,
            upcoming_explosions=explosions,
            debt_score=report.total_debt,
        )

    def _score(self, chapter: int) -> DebtReport:
        report = self.debt_engine.score_and_escalate(chapter)
        for consequence_id in report.escalated_ids:
            escalated = self.ledger.require(consequence_id)
            self._telemetry.track_consequence(
                "escalated",
                consequence_id,
                chapter=chapter,
                severity=escalated.severity,
                story_id=self.story_id,
            )
        self._telemetry.track_debt(
            chapter,
            report.total_debt,
            is_crisis=report.is_crisis,
            trend=report.trend.value,
            story_id=self.story_id,
        )
        return report

    def _settle(self, consequence_id: str, chapter: int) -> Settlement:
        settlement = self.bet_market.settle_bets(consequence_id, chapter)
        self._telemetry.track_market(
            "settled",
            consequence_id,
            settlement.total_payout,
            {"won": len(settlement.won), "lost": len(settlement.lost)},
        )
        return settlement


__all__ = ["ChapterResolution", "ConsequenceResolution", "LivingStoryOrchestrator"]

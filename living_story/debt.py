"""Narrative debt scoring and overdue escalation."""
from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, List

from .config import Settings, get_settings
from .ledger import ConsequenceLedger
from .models import Consequence, ConsequenceStatus, DebtReport, DebtTrend, House

logger = logging.getLogger(__name__)


class NarrativeDebtEngine:
    """Computes the chapter Narrative Debt Score and escalates stale debts.

    Scoring is not a pure read: overdue consequences of sufficient severity are
    escalated in place while the report is built, which is why the entry point
    is named :meth:`score_and_escalate`.
    """

    def __init__(self, ledger: ConsequenceLedger, settings: Settings | None = None) -> None:
        self.ledger = ledger
        self.settings = settings or get_settings()
        self._lock = threading.Lock()

    def score_and_escalate(self, current_chapter: int) -> DebtReport:
        cfg = self.settings
        with self._lock:
            escalated_ids: List[str] = []
            for consequence in self.ledger.overdue(current_chapter):
                reason = (
                    "expected resolution window passed "
                    f"(deadline Ch{consequence.window_max}, now Ch{current_chapter})"
                )
                escalated = self.ledger.escalate_if_overdue(
                    consequence.id, reason, current_chapter, cfg.auto_escalate_min_severity
                )
                if escalated is not None:
                    escalated_ids.append(consequence.id)

            active = self.ledger.active_by_max_origin(current_chapter)
            debts = {c.id: self.consequence_debt(c, current_chapter) for c in active}
            for consequence_id, debt in debts.items():
                self.ledger.refresh_debt(consequence_id, debt)

            total = sum(debts.values())
            report = DebtReport(
                chapter=current_chapter,
                total_debt=total,
                is_crisis=total >= cfg.crisis_threshold,
                critical=sorted(
                    (c for c in active if c.severity >= cfg.critical_min_severity),
                    key=lambda c: c.severity,
                    reverse=True,
                ),
                overdue=[c for c in active if c.is_overdue(current_chapter)],
                upcoming=[
                    c
                    for c in active
                    if current_chapter <= c.window_min <= current_chapter + cfg.upcoming_horizon
                ],
                debt_by_house=self.debt_by_house(active, current_chapter),
                trend=self.trend(current_chapter),
                escalated_ids=escalated_ids,
            )

        if report.is_crisis:
            logger.warning(
                "Narrative debt crisis at chapter %d: %.1f >= %.1f",
                current_chapter,
                report.total_debt,
                cfg.crisis_threshold,
            )
        return report

    # Kept for callers that think of scoring as producing a report.
    compute_debt_report = score_and_escalate

    def consequence_debt(self, consequence: Consequence, current_chapter: int) -> float:
        if consequence.is_resolved:
            return 0.0
        cfg = self.settings
        overdue_penalty = (
            max(0, current_chapter - consequence.window_max) * cfg.overdue_penalty_per_chapter
        )
        multiplier = (
            cfg.escalated_debt_multiplier
            if consequence.status == ConsequenceStatus.ESCALATED
            else 1.0
        )
        return (consequence.severity + overdue_penalty) * multiplier

    def debt_by_house(
        self, consequences: Iterable[Consequence], current_chapter: int
    ) -> Dict[House, float]:
        result: Dict[House, float] = {house: 0.0 for house in House}
        for consequence in consequences:
            if not consequence.houses_affected:
                continue
            share = self.consequence_debt(consequence, current_chapter) / len(
                consequence.houses_affected
            )
            for house in consequence.houses_affected:
                result[house] += share
        return result

    def trend(self, current_chapter: int) -> DebtTrend:
        resolved_previous = len(self.ledger.resolved_in_chapter(current_chapter - 1))
        if resolved_previous >= self.settings.trend_falling_resolved:
            return DebtTrend.FALLING
        if resolved_previous == 0 and len(self.ledger.active()) > self.settings.trend_rising_active:
            return DebtTrend.RISING
        return DebtTrend.STABLE


__all__ = ["NarrativeDebtEngine"]

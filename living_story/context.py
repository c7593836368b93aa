"""Chapter context selection and prompt formatting."""
from __future__ import annotations

from typing import List, Sequence

from .config import Settings, get_settings
from .debt import NarrativeDebtEngine
from .ledger import ConsequenceLedger
from .models import ChapterContext, Consequence, DebtReport

_RULE = "=" * 51


class ContextBuilder:
    """Selects the consequences the next chapter must honour.

    Consequences are ranked by severity, then overdue status, then earliest
    window start. In crisis chapters the top two severe entries are promoted
    to ``must_resolve``; the remainder fill ``should_address`` and
    ``may_reference`` up to their configured limits.
    """

    def __init__(
        self,
        ledger: ConsequenceLedger,
        debt_engine: NarrativeDebtEngine,
        settings: Settings | None = None,
    ) -> None:
        self.ledger = ledger
        self.debt_engine = debt_engine
        self.settings = settings or get_settings()

    def build_chapter_context(
        self, chapter: int, report: DebtReport | None = None
    ) -> ChapterContext:
        """Build the generation context, scoring the chapter unless ``report`` is given."""

        cfg = self.settings
        if report is None:
            report = self.debt_engine.score_and_escalate(chapter)
        ranked = self.rank(self.ledger.active_by_max_origin(chapter), chapter)

        must_resolve: List[Consequence] = []
        if report.is_crisis:
            must_resolve = [
                c for c in ranked if c.severity >= cfg.critical_min_severity
            ][: cfg.max_must_resolve]
        chosen = {c.id for c in must_resolve}
        remainder = [c for c in ranked if c.id not in chosen]
        should_address = remainder[: cfg.max_should_address]
        may_reference = remainder[
            cfg.max_should_address : cfg.max_should_address + cfg.max_may_reference
        ]

        return ChapterContext(
            chapter=chapter,
            prompt_block=self.render(chapter, report, must_resolve, should_address, may_reference),
            must_resolve=must_resolve,
            should_address=should_address,
            may_reference=may_reference,
            debt_score=report.total_debt,
            is_crisis=report.is_crisis,
        )

    @staticmethod
    def rank(consequences: Sequence[Consequence], chapter: int) -> List[Consequence]:
        return sorted(
            consequences,
            key=lambda c: (-c.severity, 0 if c.is_overdue(chapter) else 1, c.window_min),
        )

    def render(
        self,
        chapter: int,
        report: DebtReport,
        must_resolve: Sequence[Consequence],
        should_address: Sequence[Consequence],
        may_reference: Sequence[Consequence],
    ) -> str:
        cfg = self.settings
        lines = [
            _RULE,
            f"NARRATIVE CONSEQUENCE LEDGER - CHAPTER {chapter}",
            f"Narrative Debt Score: {report.total_debt:.1f} / {cfg.crisis_threshold:g} threshold",
            "CRISIS MODE ACTIVE - Debt exceeds threshold" if report.is_crisis else "Status: Stable",
            _RULE,
            "",
        ]

        sections = (
            ("MUST RESOLVE IN THIS CHAPTER (narrative debt crisis):", must_resolve),
            ("SHOULD ADDRESS (high priority outstanding debts):", should_address),
            ("MAY REFERENCE (active background tensions):", may_reference),
        )
        for heading, entries in sections:
            if not entries:
                continue
            lines.append(heading)
            lines.extend(self.render_entry(c, chapter, "  ") for c in entries)
            lines.append("")

        top = report.top_house()
        if top and top[1] > cfg.top_house_min_share:
            house, share = top
            lines.append(
                f"Highest debt bearer: House {house.value.upper()} (score: {share:.1f})"
            )

        lines.extend(
            [
                _RULE,
                "NOTE: The above represents PROMISED narrative threads. Do not introduce",
                "major new consequences unless explicitly required by the chapter's choices.",
                "Resolve where possible. Escalate only if dramatically necessary.",
            ]
        )
        return "\n".join(lines)

    @staticmethod
    def render_entry(consequence: Consequence, chapter: int, indent: str) -> str:
        overdue = (
            f" [OVERDUE - Ch{consequence.window_max} deadline passed]"
            if consequence.is_overdue(chapter)
            else ""
        )
        houses = ", ".join(house.display_name for house in consequence.houses_affected)
        scale = "★" * consequence.severity + "☆" * (5 - consequence.severity)
        window = f"Expected Ch{consequence.window_min}-{consequence.window_max}"
        return "\n".join(
            [
                f"{indent}[{consequence.id}]{overdue}",
                f"{indent}  {consequence.description}",
                f"{indent}  Severity: {scale} | Affects: {houses} | {window}",
            ]
        )


__all__ = ["ContextBuilder"]

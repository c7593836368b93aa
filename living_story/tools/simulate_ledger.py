"""Replay a short storyline through the consequence ledger."""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from ..models import House
from ..orchestrator import LivingStoryOrchestrator
from ..store import ConsequenceStore, InMemoryConsequenceStore, SqliteConsequenceStore
from ..telemetry import TelemetryCollector


@dataclass
class ChapterBeat:
    chapter: int
    choice_id: str
    choice_text: str
    houses: List[House]
    hint: Optional[str] = None


@dataclass
class BetBeat:
    beat_index: int
    bettor: str
    predicted_chapter: int
    amount: float


@dataclass
class Storyline:
    beats: List[ChapterBeat] = field(default_factory=list)
    bets: List[BetBeat] = field(default_factory=list)
    context_chapter: int = 15
    resolve_index: Optional[int] = 0
    resolution_text: str = ""


def default_storyline() -> Storyline:
    return Storyline(
        beats=[
            ChapterBeat(
                chapter=3,
                choice_id="choice-a",
                choice_text="Seize control of the Null Gate by force",
                houses=[House.VALDRIS, House.NULL],
                hint=(
                    "House Valdris storms the Null Gate, triggering a permanent rift with "
                    "House Strand. The Stitching anomaly intensifies."
                ),
            ),
            ChapterBeat(
                chapter=7,
                choice_id="choice-b",
                choice_text="Allow the Aurelius heir to disappear into the Void Corridor",
                houses=[House.AURELIUS, House.VALDRIS],
                hint=(
                    "The Aurelius succession collapses. Three factions now claim the seat. "
                    "House Valdris is implicated."
                ),
            ),
            ChapterBeat(
                chapter=10,
                choice_id="choice-a",
                choice_text="Invoke the forbidden Stitching Protocol to stabilise reality",
                houses=[House.NULL, House.STRAND, House.VALDRIS],
                hint=(
                    "The Stitching Protocol tears a hole in the Strand weave. Void "
                    "Corruption index spikes across all territories."
                ),
            ),
        ],
        bets=[
            BetBeat(beat_index=0, bettor="0xAlice", predicted_chapter=14, amount=50),
            BetBeat(beat_index=1, bettor="0xBob", predicted_chapter=18, amount=100),
        ],
        context_chapter=15,
        resolve_index=0,
        resolution_text=(
            "House Strand forces a renegotiation. The Null Gate returns to joint "
            "stewardship. Political fractures partially heal."
        ),
    )


def run_simulation(
    storyline: Storyline | None = None,
    *,
    store: ConsequenceStore | None = None,
    telemetry: TelemetryCollector | None = None,
    story_id: str = "demo",
) -> List[str]:
    storyline = storyline or default_storyline()
    orchestrator = LivingStoryOrchestrator(
        story_id,
        store=store or InMemoryConsequenceStore(),
        telemetry=telemetry,
    )
    lines: List[str] = []
    recorded: List[str] = []

    for beat in storyline.beats:
        result = orchestrator.on_chapter_resolved(
            beat.chapter, beat.choice_id, beat.choice_text, beat.houses, beat.hint
        )
        recorded.append(result.consequence.id)
        crisis = " CRISIS" if result.debt_report.is_crisis else ""
        lines.append(
            f"Chapter {beat.chapter}: recorded {result.consequence.id} "
            f"(severity {result.consequence.severity}/5), "
            f"debt {result.debt_report.total_debt:.1f}{crisis}"
        )

    for wager in storyline.bets:
        bet = orchestrator.place_bet(
            recorded[wager.beat_index], wager.bettor, wager.predicted_chapter, wager.amount
        )
        lines.append(
            f"{wager.bettor} stakes {bet.amount:g} on {bet.consequence_id} "
            f"resolving in Ch{bet.predicted_chapter} (x{bet.multiplier:g})"
        )

    context = orchestrator.get_chapter_context(storyline.context_chapter)
    lines.append("")
    lines.extend(context.prompt_block.splitlines())
    lines.append("")

    if storyline.resolve_index is not None:
        resolution = orchestrator.resolve_consequence(
            recorded[storyline.resolve_index],
            storyline.context_chapter,
            storyline.resolution_text,
        )
        settlement = resolution.settlement
        lines.append(
            f"Resolved {resolution.consequence.id}: {len(settlement.won)} won, "
            f"{len(settlement.lost)} lost, payout {settlement.total_payout:g}"
        )

    summary = orchestrator.public_debt_summary(storyline.context_chapter)
    lines.append(
        f"Summary: {summary.active_consequences} active, severity {summary.severity}, "
        f"debt {summary.debt_score:.1f}"
    )
    if summary.top_tension:
        lines.append(f"Top tension: {summary.top_tension}")
    return lines


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Replay a demo storyline through the ledger")
    parser.add_argument("--db", type=Path, help="Persist ledger state to this SQLite file")
    parser.add_argument("--story", default="demo", help="Story identifier to record under")
    parser.add_argument(
        "--chapter",
        type=int,
        default=15,
        help="Chapter to build generation context for (default: 15)",
    )
    parser.add_argument("--telemetry-db", type=Path, help="Telemetry SQLite path")
    parser.add_argument("--verbose", action="store_true", help="Enable INFO logging")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)
    storyline = default_storyline()
    if args.chapter <= max(beat.chapter for beat in storyline.beats):
        print(f"Chapter {args.chapter} must come after the last recorded chapter")
        return 1
    storyline.context_chapter = args.chapter
    store = SqliteConsequenceStore(args.db) if args.db else None
    telemetry = TelemetryCollector(args.telemetry_db) if args.telemetry_db else None
    for line in run_simulation(storyline, store=store, telemetry=telemetry, story_id=args.story):
        print(line)
    if telemetry is not None:
        telemetry.flush()
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())

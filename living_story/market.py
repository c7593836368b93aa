"""Betting surface on consequence resolution timing."""
from __future__ import annotations

import logging
import uuid

from .config import Settings, get_settings
from .errors import AlreadyResolvedError, InvalidInputError, InvalidStateError
from .ledger import ConsequenceLedger
from .models import (
    BetMarket,
    BetStatus,
    Consequence,
    ConsequenceBet,
    MarketOptionKind,
    MarketWindow,
    Settlement,
)

logger = logging.getLogger(__name__)


class ConsequenceBetMarket:
    """Players bet on the chapter in which a consequence resolves.

    Multipliers are fixed when a bet is placed and depend on the distance
    from the expected window. Settlement is a separate rule: a bet wins when
    its predicted chapter lands within the win tolerance of the actual
    chapter, whatever multiplier it was given.
    """

    def __init__(self, ledger: ConsequenceLedger, settings: Settings | None = None) -> None:
        self.ledger = ledger
        self.settings = settings or get_settings()

    def open_market(self, consequence_id: str) -> BetMarket:
        consequence = self.ledger.require(consequence_id)
        if consequence.is_resolved:
            raise AlreadyResolvedError(consequence_id)
        cfg = self.settings
        window_min, window_max = consequence.expected_window
        windows = [
            MarketWindow(
                key=f"exact:{chapter}",
                label=f"Resolves exactly in Chapter {chapter}",
                kind=MarketOptionKind.EXACT_CHAPTER,
                multiplier=cfg.exact_chapter_multiplier,
                chapter=chapter,
            )
            for chapter in range(window_min, window_max + 1)
        ]
        windows.append(
            MarketWindow(
                key="window",
                label=f"Resolves within expected window (Ch{window_min}-{window_max})",
                kind=MarketOptionKind.WITHIN_WINDOW,
                multiplier=cfg.range_multiplier,
            )
        )
        windows.append(
            MarketWindow(
                key="early",
                label=f"Resolves EARLY (before Ch{window_min})",
                kind=MarketOptionKind.EARLY,
                multiplier=cfg.within_two_multiplier,
            )
        )
        windows.append(
            MarketWindow(
                key="escalates",
                label="Escalates (does NOT resolve, becomes more severe)",
                kind=MarketOptionKind.ESCALATES,
                multiplier=cfg.exact_chapter_multiplier,
            )
        )
        return BetMarket(consequence_id=consequence_id, windows=windows)

    def place_bet(
        self,
        consequence_id: str,
        bettor: str,
        predicted_chapter: int,
        amount: float,
    ) -> ConsequenceBet:
        if amount <= 0:
            raise InvalidInputError(f"Bet amount must be positive, got {amount}")
        with self.ledger.transaction(consequence_id) as consequence:
            if consequence.is_resolved:
                raise AlreadyResolvedError(consequence_id)
            if predicted_chapter <= consequence.chapter_origin:
                raise InvalidInputError(
                    f"Predicted chapter {predicted_chapter} must come after origin "
                    f"chapter {consequence.chapter_origin}"
                )
            bet = ConsequenceBet(
                id=f"bet-{uuid.uuid4().hex[:12]}-{bettor[-6:]}",
                consequence_id=consequence_id,
                bettor=bettor,
                predicted_chapter=predicted_chapter,
                range_min=predicted_chapter - 1,
                range_max=predicted_chapter + 1,
                amount=float(amount),
                multiplier=self.multiplier_for(consequence, predicted_chapter),
            )
            consequence.bets.append(bet)
        logger.info(
            "Bet %s: %s stakes %.2f on %s resolving in chapter %d (x%g)",
            bet.id,
            bettor,
            bet.amount,
            consequence_id,
            predicted_chapter,
            bet.multiplier,
        )
        return bet

    def place_option_bet(
        self,
        consequence_id: str,
        bettor: str,
        option_key: str,
        amount: float,
    ) -> ConsequenceBet:
        """Place a bet using one of the exact-chapter options of the open market."""

        option = self.open_market(consequence_id).option(option_key)
        if option is None:
            raise InvalidInputError(
                f"Option {option_key!r} is not offered for consequence {consequence_id}"
            )
        if option.kind != MarketOptionKind.EXACT_CHAPTER or option.chapter is None:
            raise InvalidInputError(
                f"Option {option_key!r} does not name a chapter and cannot be staked"
            )
        return self.place_bet(consequence_id, bettor, option.chapter, amount)

    def settle_bets(self, consequence_id: str, actual_chapter: int) -> Settlement:
        """Settle every open bet against the chapter the consequence resolved in.

        Bets that were already settled are left alone, so rerunning settlement
        after an interrupted resolution pays nothing twice.
        """

        tolerance = self.settings.win_tolerance
        settlement = Settlement(consequence_id=consequence_id, actual_chapter=actual_chapter)
        with self.ledger.transaction(consequence_id) as consequence:
            if not consequence.is_resolved:
                raise InvalidStateError(
                    f"Consequence {consequence_id} must be resolved before settlement"
                )
            if consequence.actual_resolution_chapter != actual_chapter:
                raise InvalidInputError(
                    f"Consequence {consequence_id} resolved in chapter "
                    f"{consequence.actual_resolution_chapter}, not {actual_chapter}"
                )
            for bet in consequence.bets:
                if not bet.is_open:
                    continue
                if abs(bet.predicted_chapter - actual_chapter) <= tolerance:
                    bet.status = BetStatus.WON
                    bet.payout = bet.amount * bet.multiplier
                    settlement.total_payout += bet.payout
                    settlement.won.append(bet)
                else:
                    bet.status = BetStatus.LOST
                    bet.payout = 0.0
                    settlement.lost.append(bet)
        logger.info(
            "Settled %s: %d won, %d lost, payout %.2f",
            consequence_id,
            len(settlement.won),
            len(settlement.lost),
            settlement.total_payout,
        )
        return settlement

    def multiplier_for(self, consequence: Consequence, predicted_chapter: int) -> float:
        cfg = self.settings
        window_min, window_max = consequence.expected_window
        if window_min <= predicted_chapter <= window_max:
            return cfg.exact_chapter_multiplier
        if predicted_chapter < window_min:
            distance = window_min - predicted_chapter
        else:
            distance = predicted_chapter - window_max
        if distance == 1:
            return cfg.within_one_multiplier
        if distance == 2:
            return cfg.within_two_multiplier
        return cfg.range_multiplier


__all__ = ["ConsequenceBetMarket"]

"""Tests for the consequence bet market."""
from __future__ import annotations

import threading

import pytest

from living_story.errors import (
    AlreadyResolvedError,
    ConsequenceNotFoundError,
    InvalidInputError,
    InvalidStateError,
)
from living_story.ledger import ConsequenceLedger
from living_story.market import ConsequenceBetMarket
from living_story.models import BetStatus, House, MarketOptionKind
from living_story.recorder import ConsequenceRecorder
from living_story.store import InMemoryConsequenceStore


@pytest.fixture
def ledger(settings, severity_classifier):
    return ConsequenceLedger(
        "market-test",
        store=InMemoryConsequenceStore(),
        recorder=ConsequenceRecorder(settings, severity_classifier),
    )


@pytest.fixture
def market(ledger, settings):
    return ConsequenceBetMarket(ledger, settings)


@pytest.fixture
def gate(ledger):
    # Severity 4 at chapter 3: expected window (11, 23).
    return ledger.record_from_choice(3, "seize-gate", "severity-4", [House.VALDRIS, House.NULL])


@pytest.mark.parametrize(
    "predicted, expected",
    [
        (11, 8.0),
        (17, 8.0),
        (23, 8.0),
        (10, 4.0),
        (24, 4.0),
        (9, 2.0),
        (25, 2.0),
        (8, 1.5),
        (30, 1.5),
    ],
)
def test_multiplier_tiers(market, gate, predicted, expected):
    assert gate.expected_window == (11, 23)
    bet = market.place_bet(gate.id, "0xPlayer", predicted, 10)
    assert bet.multiplier == expected
    assert (bet.range_min, bet.range_max) == (predicted - 1, predicted + 1)
    assert bet.status == BetStatus.OPEN


def test_open_market_lists_options(market, gate):
    offer = market.open_market(gate.id)
    exact = [w for w in offer.windows if w.kind == MarketOptionKind.EXACT_CHAPTER]
    assert [w.chapter for w in exact] == list(range(11, 24))
    assert all(w.multiplier == 8.0 for w in exact)
    assert offer.option("window").multiplier == 1.5
    assert offer.option("early").label == "Resolves EARLY (before Ch11)"
    assert offer.option("escalates").kind == MarketOptionKind.ESCALATES
    assert offer.option("exact:40") is None


def test_option_bet_uses_exact_chapter(market, gate, ledger):
    bet = market.place_option_bet(gate.id, "0xAlice", "exact:14", 50)
    assert bet.predicted_chapter == 14
    assert bet.multiplier == 8.0
    assert ledger.get(gate.id).bets == [bet]


@pytest.mark.parametrize("key", ["window", "early", "escalates", "exact:40"])
def test_option_bet_rejects_unstakeable_options(market, gate, key):
    with pytest.raises(InvalidInputError):
        market.place_option_bet(gate.id, "0xAlice", key, 50)


def test_place_bet_validation(market, gate, ledger):
    with pytest.raises(InvalidInputError):
        market.place_bet(gate.id, "0xAlice", 14, 0)
    with pytest.raises(InvalidInputError):
        market.place_bet(gate.id, "0xAlice", 3, 10)
    with pytest.raises(ConsequenceNotFoundError):
        market.place_bet("CH09-0000", "0xAlice", 14, 10)
    assert ledger.get(gate.id).bets == []

    ledger.resolve(gate.id, 15, "Stewardship restored.")
    with pytest.raises(AlreadyResolvedError):
        market.place_bet(gate.id, "0xAlice", 16, 10)
    with pytest.raises(AlreadyResolvedError):
        market.open_market(gate.id)


def test_settlement_uses_tolerance_not_multiplier(market, gate, ledger):
    far = market.place_bet(gate.id, "0xAlice", 14, 50)  # x8, misses
    near = market.place_bet(gate.id, "0xBob", 24, 10)  # x4, one early
    wide = market.place_bet(gate.id, "0xCarol", 26, 20)  # x1.5, one late
    miss = market.place_bet(gate.id, "0xDave", 27, 20)  # x1.5, two late

    ledger.resolve(gate.id, 25, "The gate falls late.")
    settlement = market.settle_bets(gate.id, 25)

    assert {b.id for b in settlement.won} == {near.id, wide.id}
    assert {b.id for b in settlement.lost} == {far.id, miss.id}
    assert settlement.total_payout == pytest.approx(10 * 4.0 + 20 * 1.5)
    stored = {b.id: b for b in ledger.get(gate.id).bets}
    assert stored[near.id].status == BetStatus.WON
    assert stored[near.id].payout == pytest.approx(40.0)
    assert stored[far.id].status == BetStatus.LOST
    assert stored[far.id].payout == 0


def test_settlement_is_idempotent(market, gate, ledger):
    market.place_bet(gate.id, "0xAlice", 14, 50)
    ledger.resolve(gate.id, 15, "done")

    first = market.settle_bets(gate.id, 15)
    assert first.total_payout == pytest.approx(400.0)

    second = market.settle_bets(gate.id, 15)
    assert second.won == []
    assert second.lost == []
    assert second.total_payout == 0
    assert ledger.get(gate.id).bets[0].payout == pytest.approx(400.0)


def test_settlement_requires_matching_resolution(market, gate, ledger):
    market.place_bet(gate.id, "0xAlice", 14, 50)
    with pytest.raises(InvalidStateError):
        market.settle_bets(gate.id, 15)

    ledger.resolve(gate.id, 15, "done")
    with pytest.raises(InvalidInputError):
        market.settle_bets(gate.id, 16)
    assert ledger.get(gate.id).bets[0].status == BetStatus.OPEN


def test_concurrent_bets_are_all_recorded(market, gate, ledger):
    barrier = threading.Barrier(16)

    def worker(index):
        barrier.wait()
        market.place_bet(gate.id, f"0xPlayer{index:02d}", 12 + index % 5, 5)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(16)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    bets = ledger.get(gate.id).bets
    assert len(bets) == 16
    assert len({b.id for b in bets}) == 16
